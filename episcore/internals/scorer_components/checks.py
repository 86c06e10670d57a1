from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List

from episcore.internals.pipeline import CTEPipeline
from episcore.internals.quality_code_distribution import (
    quality_code_distribution_sqls,
)
from episcore.internals.record_scoring import (
    inter_record_context_sqls,
    quality_codes_sqls,
)

from ..episcore_dataframe import EpiscoreDataFrame

if TYPE_CHECKING:
    from episcore.internals.scorer import Scorer

logger = logging.getLogger(__name__)


class ScorerChecks:
    """Evaluate the configured data quality checks against every record.
    Accessed via `scorer.checks`.
    """

    def __init__(self, scorer: Scorer):
        self._scorer = scorer

    def record_quality_codes(self) -> EpiscoreDataFrame:
        """Compute the quality code (1-8) of every check for every record,
        together with the code rescaled by the check's category.

        Inter-record checks are evaluated against the same entity's preceding
        record, found by ordering on the occurrence date.

        Examples:
            ```py
            df_codes = scorer.checks.record_quality_codes()
            df_codes.as_pandas_dataframe()["dq_field_ethnos"].value_counts()
            ```

        Returns:
            EpiscoreDataFrame: One row per input record, with retention flags, a
                `dq_*` column per check and a `dq_*_scaled` column per check
        """
        scorer = self._scorer
        settings = scorer._settings_obj

        def compute() -> EpiscoreDataFrame:
            df_flags = scorer.deduplication.retention_flags()
            pipeline = CTEPipeline([df_flags])
            pipeline.enqueue_list_of_sqls(
                inter_record_context_sqls(df_flags.templated_name, settings)
            )
            pipeline.enqueue_list_of_sqls(
                quality_codes_sqls("__episcore__df_inter_record_context", settings)
            )
            return scorer._db_api.sql_pipeline_to_episcore_dataframe(pipeline)

        return scorer._get_or_compute("__episcore__df_quality_codes", compute)

    def quality_code_distribution(self) -> EpiscoreDataFrame:
        """Count how many records receive each quality code, per check and
        partition.

        Returns:
            EpiscoreDataFrame: Long format table with columns partition,
                check_name, check_category, quality_code, num_records,
                quality_code_label and proportion_of_records
        """
        scorer = self._scorer
        df_codes = self.record_quality_codes()

        pipeline = CTEPipeline([df_codes])
        pipeline.enqueue_list_of_sqls(
            quality_code_distribution_sqls(
                df_codes.templated_name, scorer._settings_obj
            )
        )
        return scorer._db_api.sql_pipeline_to_episcore_dataframe(pipeline)

    def describe_checks(self) -> List[Dict[str, Any]]:
        """Describe the configured checks, including the SQL condition, label and
        quality code of each of their levels.

        Examples:
            ```py
            for check in scorer.checks.describe_checks():
                print(check["output_column_name"], check["check_category"])
            ```

        Returns:
            list: One dict per check
        """
        settings = self._scorer._settings_obj
        dialect_str = settings.sql_dialect.sql_dialect_str
        return [c.create_check_dict(dialect_str) for c in settings.checks]
