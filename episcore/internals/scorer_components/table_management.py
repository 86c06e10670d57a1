from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from episcore.internals.database_api import AcceptableInputTableType

from ..episcore_dataframe import EpiscoreDataFrame

if TYPE_CHECKING:
    from episcore.internals.scorer import Scorer

logger = logging.getLogger(__name__)


class ScorerTableManagement:
    """Register tables against your database backend and manage the episcore
    cache. Accessed via `scorer.table_management`.
    """

    def __init__(self, scorer: Scorer):
        self._scorer = scorer

    def register_table(
        self,
        input_table: AcceptableInputTableType,
        table_name: str,
        overwrite: bool = False,
    ) -> EpiscoreDataFrame:
        """
        Register a table to your backend database, e.g. a lookup to join to the
        scored records with `scorer.misc.query_sql`.

        Examples:
            ```py
            trusts = [{"procode": "RX1", "region": "North"}]
            scorer.table_management.register_table(trusts, "trusts")
            ```

        Args:
            input_table: The data you wish to register. This can be a pandas
                dataframe, a pyarrow table or a list of record dicts.
            table_name (str): The name you wish to assign to the table.
            overwrite (bool): Overwrite the table in the underlying database if it
                exists.

        Returns:
            EpiscoreDataFrame: An abstraction representing the table created by
                the backend
        """
        return self._scorer._db_api.register_table(input_table, table_name, overwrite)

    def invalidate_cache(self) -> None:
        """Invalidate the episcore cache, so that every stage is recomputed on
        its next use. Tables already created in the database are not dropped.
        """
        # the cache may be shared with other scorers using the same db_api
        self._scorer._intermediate_table_cache.invalidate_cache(
            scorer_uid=self._scorer._cache_uid
        )
        logger.debug("Invalidated cached tables of this scorer")

    def delete_tables_created_by_episcore_from_db(self) -> None:
        """Drop every table episcore has created in the database through this
        scorer's `db_api`, and empty the cache."""
        self._scorer._db_api.delete_tables_created_by_episcore_from_db()
