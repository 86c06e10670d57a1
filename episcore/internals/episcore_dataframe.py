from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from duckdb import DuckDBPyRelation

    from episcore.internals.database_api import DatabaseAPI


class EpiscoreDataFrame(ABC):
    """Abstraction over a table in the database backend, so that results can be
    retrieved without knowing which backend produced them.
    Uses methods like `as_pandas_dataframe()` and `as_record_dict()` to retrieve data
    """

    def __init__(
        self,
        templated_name: str,
        physical_name: str,
        db_api: DatabaseAPI[Any],
        metadata: dict[str, Any] = None,
    ):
        self.templated_name = templated_name
        self.physical_name = physical_name
        self.db_api = db_api
        self.created_by_episcore = False
        self.sql_used_to_create: str = ""
        self.metadata = metadata or {}

    @property
    @abstractmethod
    def columns(self) -> list[str]:
        pass

    @property
    def physical_and_template_names_equal(self):
        return self.templated_name == self.physical_name

    def _check_drop_table_created_by_episcore(self, force_non_episcore_table=False):
        if not self.created_by_episcore:
            if not force_non_episcore_table:
                raise ValueError(
                    f"You've asked to drop table {self.physical_name} from your "
                    "database which is not a table created by episcore.  If you "
                    "really want to drop this table, you can do so by setting "
                    "force_non_episcore_table=True"
                )
        logger.debug(
            f"Dropping table with templated name {self.templated_name} and "
            f"physical name {self.physical_name}"
        )

    @abstractmethod
    def _drop_table_from_database(self, force_non_episcore_table=False):
        pass

    def drop_table_from_database_and_remove_from_cache(
        self, force_non_episcore_table: bool = False
    ) -> None:
        """Drops the table from the underlying database, and removes it
        from the (scorer) cache.

        By default this will fail if the table is not one created by episcore,
        but this check can be overriden

        Examples:
            ```py
            df_scores = scorer.weighting.total_scores()
            df_scores.drop_table_from_database_and_remove_from_cache()
            ```
        Args:
            force_non_episcore_table (bool, optional): If True, skip check if the
                table was created by episcore and always drop regardless.
                Defaults to False.
        """
        self._drop_table_from_database(
            force_non_episcore_table=force_non_episcore_table
        )
        self.db_api.remove_episcoredataframe_from_cache(self)

    @abstractmethod
    def as_record_dict(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Return the dataframe as a list of record dictionaries.

        This can be computationally expensive if the dataframe is large.

        Args:
            limit (int, optional): If provided, return this number of rows
                (equivalent to a limit statement in SQL). Defaults to None, meaning
                return all rows
        """
        pass

    def as_pandas_dataframe(self, limit=None):
        """Return the dataframe as a pandas dataframe.

        This can be computationally expensive if the dataframe is large.

        Args:
            limit (int, optional): If provided, return this number of rows
                (equivalent to a limit statement in SQL). Defaults to None, meaning
                return all rows

        Examples:
            ```py
            df_weights = scorer.weighting.check_weights()
            df_weights.as_pandas_dataframe()
            ```
        Returns:
            pandas.DataFrame: pandas Dataframe
        """
        import pandas as pd

        return pd.DataFrame(self.as_record_dict(limit=limit))

    def as_duckdbpyrelation(self, limit: Optional[int] = None) -> DuckDBPyRelation:
        """Return the dataframe as a duckdbpyrelation.  Only available when using
        the DuckDB backend.
        """
        raise NotImplementedError(
            "This method is only available when using the DuckDB backend"
        )

    def to_parquet(self, filepath, overwrite=False):
        """Save the dataframe in parquet format.

        Args:
            filepath (str): Filepath where the parquet file will be saved.
            overwrite (bool, optional): If True, overwrites file if it already
                exists. Default is False.
        """
        raise NotImplementedError("`to_parquet` not implemented for this backend")

    def to_csv(self, filepath, overwrite=False):
        """Save the dataframe in csv format.

        Args:
            filepath (str): Filepath where csv will be saved.
            overwrite (bool, optional): If True, overwrites file if it already
                exists. Default is False.
        """
        raise NotImplementedError("`to_csv` not implemented for this backend")

    def check_file_exists(self, filepath):
        p = Path(filepath)
        if p.exists():
            raise FileExistsError(
                "The filepath you've supplied already exists. Please use "
                "either `overwrite = True` or manually move or delete the "
                "existing file."
            )

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} {self.templated_name} "
            f"(physical name: {self.physical_name})>"
        )
