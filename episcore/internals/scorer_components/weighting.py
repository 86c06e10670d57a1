from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from episcore.internals.check_weights import check_weights_sql
from episcore.internals.pipeline import CTEPipeline
from episcore.internals.score_aggregation import total_scores_sql

from ..episcore_dataframe import EpiscoreDataFrame

if TYPE_CHECKING:
    from episcore.internals.scorer import Scorer

logger = logging.getLogger(__name__)


class ScorerWeighting:
    """Derive per-partition check weights and combine records' quality codes
    into total scores. Accessed via `scorer.weighting`.
    """

    def __init__(self, scorer: Scorer):
        self._scorer = scorer

    def check_weights(self) -> EpiscoreDataFrame:
        """Compute, per partition, the weight of every check.

        A weight is the partition mean of the check's rescaled code divided by
        the largest rescaled code the check's category can take, so lies in
        [0, 1]. The table is materialised before any adjusted score is computed.

        Raises:
            EmptyPartitionException: If a partition has no records and
                `allow_empty_partitions` is not set.

        Returns:
            EpiscoreDataFrame: One row per partition, with `record_count` and a
                `weight_*` column per check
        """
        scorer = self._scorer

        def compute() -> EpiscoreDataFrame:
            df_codes = scorer.checks.record_quality_codes()
            pipeline = CTEPipeline([df_codes])
            sql = check_weights_sql(
                df_codes.templated_name,
                scorer._settings_obj,
                scorer.empty_partitions,
            )
            pipeline.enqueue_sql(sql, "__episcore__df_check_weights")
            return scorer._db_api.sql_pipeline_to_episcore_dataframe(pipeline)

        return scorer._get_or_compute("__episcore__df_check_weights", compute)

    def total_scores(self) -> EpiscoreDataFrame:
        """Compute the unadjusted and adjusted total score of every record.

        The unadjusted total is the sum of the record's rescaled codes. The
        adjusted total weights each rescaled code by its check's weight in the
        record's partition.

        Examples:
            ```py
            scorer = Scorer(records_by_year, SettingsCreator(), DuckDBAPI())
            df_scores = scorer.weighting.total_scores()
            df_scores.as_pandas_dataframe().sort_values("adjusted_total_score")
            ```

        Returns:
            EpiscoreDataFrame: One row per input record, ordered by partition
                and record row
        """
        scorer = self._scorer

        def compute() -> EpiscoreDataFrame:
            df_codes = scorer.checks.record_quality_codes()
            df_weights = self.check_weights()
            pipeline = CTEPipeline([df_codes, df_weights])
            sql = total_scores_sql(
                df_codes.templated_name,
                df_weights.templated_name,
                scorer._settings_obj,
            )
            pipeline.enqueue_sql(sql, "__episcore__df_total_scores")
            return scorer._db_api.sql_pipeline_to_episcore_dataframe(pipeline)

        return scorer._get_or_compute("__episcore__df_total_scores", compute)
