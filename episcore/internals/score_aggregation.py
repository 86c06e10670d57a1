from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from episcore.internals.settings import Settings


def total_scores_sql(
    quality_codes_table_name: str, check_weights_table_name: str, settings: Settings
) -> str:
    """
    Combine each record's rescaled check values into an unadjusted total (their
    sum) and an adjusted total (each value multiplied by the check's weight for
    the record's partition, summed).
    """
    partition_col = settings.partition_column_name
    row_col = settings.record_row_column_name

    unadjusted_sql = " + ".join(
        f"q.{settings.scaled_column_name(c)}" for c in settings.checks
    )
    adjusted_sql = " + ".join(
        f"q.{settings.scaled_column_name(c)} * w.{settings.weight_column_name(c)}"
        for c in settings.checks
    )

    return f"""
    select
        q.*,
        {unadjusted_sql} as unadjusted_total_score,
        {adjusted_sql} as adjusted_total_score
    from {quality_codes_table_name} as q
    left join {check_weights_table_name} as w
    on q.{partition_col} is not distinct from w.{partition_col}
    order by q.{partition_col}, q.{row_col}
    """
