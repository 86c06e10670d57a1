from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from duckdb import DuckDBPyRelation
from pandas import DataFrame as pd_DataFrame

from episcore.internals.episcore_dataframe import EpiscoreDataFrame

logger = logging.getLogger(__name__)
if TYPE_CHECKING:
    from .database_api import DuckDBAPI


class DuckDBDataFrame(EpiscoreDataFrame):
    db_api: DuckDBAPI

    @property
    def columns(self) -> list[str]:
        relation = self.db_api._execute_sql_against_backend(
            f"SELECT * FROM {self.physical_name} LIMIT 0"
        )
        return list(relation.columns)

    def _drop_table_from_database(self, force_non_episcore_table=False):
        self._check_drop_table_created_by_episcore(force_non_episcore_table)

        self.db_api.delete_table_from_database(self.physical_name)

    def _select_sql(self, limit: int = None) -> str:
        sql = f"select * from {self.physical_name}"
        if limit:
            sql += f" limit {limit}"
        return sql

    def as_record_dict(self, limit=None):
        duckdb_table = self.db_api._execute_sql_against_backend(
            self._select_sql(limit)
        )
        rows = duckdb_table.fetchall()
        column_names = [desc[0] for desc in duckdb_table.description]
        return [dict(zip(column_names, row)) for row in rows]

    def as_pandas_dataframe(self, limit: int = None) -> pd_DataFrame:
        return self.db_api._execute_sql_against_backend(self._select_sql(limit)).df()

    def as_duckdbpyrelation(self, limit: int = None) -> DuckDBPyRelation:
        return self.db_api._execute_sql_against_backend(self._select_sql(limit))

    def _prepare_output_path(self, filepath, overwrite, extension):
        if not overwrite:
            self.check_file_exists(filepath)

        if not filepath.endswith(extension):
            raise SyntaxError(
                f"The filepath you've entered '{filepath}' does not end "
                f"with `{extension}`. Please correct it before retrying."
            )

        # create the directories recursively if they don't exist
        path = os.path.dirname(filepath)
        if path:
            os.makedirs(path, exist_ok=True)

    def to_parquet(self, filepath, overwrite=False):
        self._prepare_output_path(filepath, overwrite, ".parquet")
        sql = f"COPY {self.physical_name} TO '{filepath}' (FORMAT PARQUET);"
        self.db_api._execute_sql_against_backend(sql)

    def to_csv(self, filepath, overwrite=False):
        self._prepare_output_path(filepath, overwrite, ".csv")
        sql = f"COPY {self.physical_name} TO '{filepath}' (HEADER, DELIMITER ',');"
        self.db_api._execute_sql_against_backend(sql)
