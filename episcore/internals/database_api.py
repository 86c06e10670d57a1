from __future__ import annotations

import hashlib
import logging
import time
from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Generic,
    List,
    Optional,
    TypeVar,
    Union,
    final,
)

import pyarrow as pa
import sqlglot

from episcore.internals.cache_dict_with_logging import CacheDictWithLogging
from episcore.internals.logging_messages import (
    execute_sql_logging_message_info,
    log_sql,
)
from episcore.internals.misc import ascii_uid, parse_duration
from episcore.internals.pipeline import CTEPipeline

from .dialects import EpiscoreDialect
from .episcore_dataframe import EpiscoreDataFrame
from .exceptions import EpiscoreException

logger = logging.getLogger(__name__)

BaseAcceptableInputTableType = Union[
    List[Dict[str, Any]],
    Dict[str, Any],
    pa.Table,
]

if TYPE_CHECKING:
    from pandas import DataFrame as PandasDataFrame

    AcceptableInputTableType = Union[BaseAcceptableInputTableType, PandasDataFrame]
else:
    AcceptableInputTableType = BaseAcceptableInputTableType

# a placeholder type. This will depend on the backend subclass - something
# 'tabley' for that backend, such as duckdb.DuckDBPyRelation
TablishType = TypeVar("TablishType")


class DatabaseAPI(ABC, Generic[TablishType]):
    sql_dialect: EpiscoreDialect
    debug_mode: bool = False
    """
    DatabaseAPI class handles _all_ interactions with the database
    Anything backend-specific (but not related to SQL dialects) lives here also

    This is intended to be subclassed for specific backends
    """

    def __init__(self) -> None:
        self._intermediate_table_cache: CacheDictWithLogging = CacheDictWithLogging()
        self._cache_uid: str = ascii_uid(8)
        self._id: str = ascii_uid(8)
        self._created_tables: set[str] = set()

    @property
    @final
    def id(self) -> str:
        """Useful for debugging when multiple database API instances exist."""
        return self._id

    @final
    def _log_and_run_sql_execution(
        self, final_sql: str, templated_name: str, physical_name: str
    ) -> TablishType:
        """
        Log some sql, then call _execute_sql_against_backend()
        Any errors will be converted to EpiscoreException with more detail
        names are only relevant for logging, not execution
        """
        logger.debug(execute_sql_logging_message_info(templated_name, physical_name))
        if logger.isEnabledFor(5):
            logger.log(5, log_sql(final_sql))
        try:
            return self._execute_sql_against_backend(final_sql)
        except Exception as e:
            # Parse our SQL through sqlglot to pretty print
            try:
                final_sql = sqlglot.parse_one(
                    final_sql,
                    read=self.sql_dialect.sqlglot_dialect,
                ).sql(pretty=True)
                # if sqlglot produces any errors, just report the raw SQL
            except Exception:
                pass

            raise EpiscoreException(
                f"Error executing the following sql for table "
                f"`{templated_name}`({physical_name}):\n{final_sql}"
                f"\n\nError was: {e}"
            ) from e

    @final
    def _sql_to_episcore_dataframe(
        self, sql: str, templated_name: str, physical_name: str
    ) -> EpiscoreDataFrame:
        """
        Create a table in the backend using some given sql

        Table will have physical_name in the backend.

        Returns an EpiscoreDataFrame which also uses templated_name
        """
        sql = self._setup_for_execute_sql(sql, physical_name)
        self._log_and_run_sql_execution(sql, templated_name, physical_name)
        output_df = self.table_to_episcore_dataframe(templated_name, physical_name)
        self._intermediate_table_cache.executed_queries.append(output_df)
        self._created_tables.add(physical_name)
        return output_df

    @final
    def _execute_sql(
        self,
        sql: str,
        output_tablename_templated: str,
    ) -> EpiscoreDataFrame:
        """Execute SQL and return an EpiscoreDataFrame.

        The physical table name is the templated name suffixed by a hash of the
        SQL, so that re-running an identical query replaces its own output only.
        """
        to_hash = (sql + self._cache_uid).encode("utf-8")
        hash = hashlib.sha256(to_hash).hexdigest()[:9]
        table_name_hash = f"{output_tablename_templated}_{hash}"

        episcore_dataframe = self._sql_to_episcore_dataframe(
            sql, output_tablename_templated, table_name_hash
        )

        episcore_dataframe.created_by_episcore = True
        episcore_dataframe.sql_used_to_create = sql

        return episcore_dataframe

    def sql_pipeline_to_episcore_dataframe(
        self,
        pipeline: CTEPipeline,
    ) -> EpiscoreDataFrame:
        """
        Execute a given pipeline using input_dataframes as seeds if provided.
        self.debug_mode controls whether this is CTE or individual tables.
        pipeline is set to spent after execution ensuring it cannot be
        acidentally reused
        """

        if not self.debug_mode:
            sql_gen = pipeline.generate_cte_pipeline_sql()
            return self._execute_sql(sql_gen, pipeline.output_table_name)

        # In debug mode every CTE is materialised as its own table, so that
        # intermediate results can be inspected
        episcore_dataframe: Optional[EpiscoreDataFrame] = None
        for df in pipeline.input_dataframes:
            if not df.physical_and_template_names_equal:
                self._create_or_replace_temp_view(df.templated_name, df.physical_name)
        for cte in pipeline.stages:
            start_time = time.time()
            logger.info(f"--------Creating table: {cte.output_table_name}--------")
            episcore_dataframe = self._execute_sql(cte.sql, cte.output_table_name)
            self._create_or_replace_temp_view(
                cte.output_table_name, episcore_dataframe.physical_name
            )
            run_time = parse_duration(time.time() - start_time)
            logger.info(f"Step ran in: {run_time}")
        pipeline.spent = True

        if episcore_dataframe is None:
            raise EpiscoreException("Debug pipeline execution produced no tables.")

        return episcore_dataframe

    def register_table(
        self,
        input_table: AcceptableInputTableType,
        table_name: str,
        overwrite: bool = False,
    ) -> EpiscoreDataFrame:
        """
        Register a table to your backend database, to be used in one of the
        episcore methods, or to be queried directly.

        Args:
            input_table: The data you wish to register. This can be a pandas
                dataframe, a pyarrow table, a list of record dicts or a dict of
                columns.
            table_name (str): The name you wish to assign to the table.
            overwrite (bool): Overwrite the table in the underlying database if it
                exists.

        Returns:
            EpiscoreDataFrame: An abstraction representing the table created by
                the backend
        """
        if self.table_exists_in_database(table_name):
            if not overwrite:
                raise ValueError(
                    f"Table '{table_name}' already exists in database. "
                    "Please remove or rename before retrying"
                )
            self.delete_table_from_database(table_name)

        self._table_registration(input_table, table_name)
        return self.table_to_episcore_dataframe(table_name, table_name)

    def _setup_for_execute_sql(self, sql: str, physical_name: str) -> str:
        self.delete_table_from_database(physical_name)
        return f"CREATE TABLE {physical_name} AS {sql}"

    @abstractmethod
    def _execute_sql_against_backend(self, final_sql: str) -> TablishType:
        pass

    def delete_table_from_database(self, name: str) -> None:
        drop_sql = f"DROP TABLE IF EXISTS {name}"
        self._execute_sql_against_backend(drop_sql)

    @abstractmethod
    def _table_registration(
        self, input: AcceptableInputTableType, table_name: str
    ) -> None:
        """
        Actually register table with backend.

        Overwrite if it already exists.
        """
        pass

    @abstractmethod
    def table_to_episcore_dataframe(
        self, templated_name: str, physical_name: str
    ) -> EpiscoreDataFrame:
        pass

    @abstractmethod
    def table_exists_in_database(self, table_name: str) -> bool:
        """
        Check if table_name exists in the backend
        """
        pass

    def _create_or_replace_temp_view(self, name: str, physical: str) -> None:
        self._execute_sql_against_backend(
            f"CREATE OR REPLACE TEMP VIEW {name} AS SELECT * FROM {physical}"
        )

    def remove_episcoredataframe_from_cache(
        self, episcore_dataframe: EpiscoreDataFrame
    ) -> None:
        self._intermediate_table_cache.remove_physical_name(
            episcore_dataframe.physical_name
        )

    def delete_tables_created_by_episcore_from_db(self):
        for physical_name in list(self._created_tables):
            self.delete_table_from_database(physical_name)
            self._created_tables.discard(physical_name)
        self._intermediate_table_cache.invalidate_cache()


DatabaseAPISubClass = DatabaseAPI[Any]


def as_arrow_table(input: AcceptableInputTableType) -> pa.Table:
    """Normalise any accepted input table to a pyarrow Table.

    pyarrow preserves types (notably dates and nullable integers) better than
    pandas, so lists of records and dicts of columns go straight to arrow.
    """
    import pandas as pd

    if isinstance(input, pa.Table):
        return input
    if isinstance(input, pd.DataFrame):
        return pa.Table.from_pandas(input, preserve_index=False)
    if isinstance(input, dict):
        return pa.Table.from_pydict(input)
    if isinstance(input, list):
        return pa.Table.from_pylist(input)
    raise TypeError(
        f"Cannot register input of type {type(input).__name__}. Supply a pandas "
        "DataFrame, a pyarrow Table, a list of records or a dict of columns."
    )
