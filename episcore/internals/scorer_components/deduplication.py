from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional

from episcore.internals.deduplication import (
    count_groups_with_multiple_retained,
    duplicate_groups_sqls,
    retention_flags_sql,
)
from episcore.internals.exceptions import EpiscoreException
from episcore.internals.pipeline import CTEPipeline

from ..episcore_dataframe import EpiscoreDataFrame

if TYPE_CHECKING:
    from episcore.internals.scorer import Scorer

logger = logging.getLogger(__name__)


class ScorerDeduplication:
    """Group records sharing a natural key and flag which to retain.
    Accessed via `scorer.deduplication`.
    """

    def __init__(self, scorer: Scorer):
        self._scorer = scorer

    def duplicate_groups(self) -> EpiscoreDataFrame:
        """Assign every record to the group of records sharing its natural key.

        Adds `group_id`, `ith_duplicate`, `group_size` and `num_filled_fields`
        to the input records.

        Examples:
            ```py
            df_groups = scorer.deduplication.duplicate_groups()
            df_groups.as_pandas_dataframe().query("group_size > 1")
            ```

        Returns:
            EpiscoreDataFrame: The input records with duplicate group columns
        """
        scorer = self._scorer

        def compute() -> EpiscoreDataFrame:
            df_input = scorer._input_table()
            pipeline = CTEPipeline([df_input])
            pipeline.enqueue_list_of_sqls(
                duplicate_groups_sqls(df_input.templated_name, scorer._settings_obj)
            )
            return scorer._db_api.sql_pipeline_to_episcore_dataframe(pipeline)

        return scorer._get_or_compute("__episcore__df_duplicate_groups", compute)

    def retention_flags(self) -> EpiscoreDataFrame:
        """Evaluate every configured retention policy against the duplicate
        groups, adding one boolean flag column per policy (by default
        `is_first` and `is_most_complete`).

        Flags are independent: filtering on `is_first` keeps exactly one record
        per natural key, whereas `is_most_complete` keeps every record that ties
        for the most populated fields.

        Returns:
            EpiscoreDataFrame: The duplicate groups with retention flags
        """
        scorer = self._scorer

        def compute() -> EpiscoreDataFrame:
            df_groups = self.duplicate_groups()
            pipeline = CTEPipeline([df_groups])
            sql = retention_flags_sql(df_groups.templated_name, scorer._settings_obj)
            pipeline.enqueue_sql(sql, "__episcore__df_retention_flags")
            return scorer._db_api.sql_pipeline_to_episcore_dataframe(pipeline)

        return scorer._get_or_compute("__episcore__df_retention_flags", compute)

    def _validate_flag(self, flag_column_name: str) -> None:
        flags = self._scorer._settings_obj.retention_flag_columns
        if flag_column_name not in flags:
            raise EpiscoreException(
                f"'{flag_column_name}' is not a retention flag. "
                f"Configured flags are: {', '.join(flags)}"
            )

    def verify_retention(
        self, flag_column_name: Optional[str] = None
    ) -> Dict[str, int]:
        """Count, for each retention flag, the natural keys that would still hold
        more than one record after keeping only the flagged records.

        A count of zero means the flag yields a table with a unique natural key.
        Non-zero counts are logged as warnings.

        Examples:
            ```py
            scorer.deduplication.verify_retention()
            {'is_first': 0, 'is_most_complete': 3}
            ```

        Args:
            flag_column_name (str, optional): Verify only this flag. Defaults to
                None, meaning every configured flag.

        Returns:
            dict: flag column name -> number of natural keys with more than one
                retained record
        """
        if flag_column_name is None:
            flags = self._scorer._settings_obj.retention_flag_columns
        else:
            self._validate_flag(flag_column_name)
            flags = [flag_column_name]

        df_flags = self.retention_flags()
        return {
            flag: count_groups_with_multiple_retained(df_flags, flag) for flag in flags
        }

    def deduplicated_records(self, flag_column_name: str) -> EpiscoreDataFrame:
        """Keep only the records carrying the given retention flag.

        Args:
            flag_column_name (str): e.g. "is_first"

        Returns:
            EpiscoreDataFrame: The flagged records
        """
        self._validate_flag(flag_column_name)
        scorer = self._scorer
        df_flags = self.retention_flags()
        settings = scorer._settings_obj

        pipeline = CTEPipeline([df_flags])
        sql = f"""
        select *
        from {df_flags.templated_name}
        where coalesce({flag_column_name}, FALSE)
        order by {settings.partition_column_name}, {settings.record_row_column_name}
        """
        pipeline.enqueue_sql(sql, f"__episcore__df_retained_{flag_column_name}")
        return scorer._db_api.sql_pipeline_to_episcore_dataframe(pipeline)
