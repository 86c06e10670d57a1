from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from episcore.internals.pipeline import CTEPipeline

from .episcore_dataframe import EpiscoreDataFrame

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from episcore.internals.settings import Settings


def duplicate_groups_sqls(
    input_table_name: str, settings: Settings
) -> List[dict[str, str]]:
    """
    Group records sharing a natural key, and rank the members of each group.

    `group_id` is the rank of the record's key tuple over the whole input (not
    per partition), so it has gaps where earlier keys are shared by several
    records. `ith_duplicate` numbers group members from 1, ordered by partition
    then record row, so the numbering is deterministic.
    """
    key_cols = ", ".join(settings.natural_key_columns)
    partition_col = settings.partition_column_name
    row_col = settings.record_row_column_name

    if settings.populated_field_columns:
        filled_count_sql = " + ".join(
            f"(case when {c} is not null then 1 else 0 end)"
            for c in settings.populated_field_columns
        )
    else:
        filled_count_sql = "0"

    sqls = []
    sql = f"""
    select
        *,
        rank() over (order by {key_cols}) as group_id,
        {filled_count_sql} as num_filled_fields
    from {input_table_name}
    """
    sqls.append({"sql": sql, "output_table_name": "__episcore__df_ranked_by_key"})

    sql = f"""
    select
        *,
        row_number() over (
            partition by group_id order by {partition_col}, {row_col}
        ) as ith_duplicate,
        count(*) over (partition by group_id) as group_size
    from __episcore__df_ranked_by_key
    """
    sqls.append({"sql": sql, "output_table_name": "__episcore__df_duplicate_groups"})
    return sqls


def retention_flags_sql(input_table_name: str, settings: Settings) -> str:
    flags_sql = ",\n        ".join(
        policy.select_sql("group_id") for policy in settings.retention_policies
    )
    if not flags_sql:
        return f"select * from {input_table_name}"
    return f"""
    select
        *,
        {flags_sql}
    from {input_table_name}
    """


def verify_retention_sql(input_table_name: str, flag_column_name: str) -> str:
    """Count the groups that still hold more than one record after keeping only
    the records carrying `flag_column_name`."""
    return f"""
    select count(*) as num_groups_with_multiple_retained
    from (
        select group_id
        from {input_table_name}
        where coalesce({flag_column_name}, FALSE)
        group by group_id
        having count(*) > 1
    )
    """


def count_groups_with_multiple_retained(
    retention_flags: EpiscoreDataFrame, flag_column_name: str
) -> int:
    db_api = retention_flags.db_api
    pipeline = CTEPipeline([retention_flags])
    sql = verify_retention_sql(retention_flags.templated_name, flag_column_name)
    pipeline.enqueue_sql(sql, "__episcore__df_retention_verification")
    result_df = db_api.sql_pipeline_to_episcore_dataframe(pipeline)
    num_groups = result_df.as_record_dict()[0]["num_groups_with_multiple_retained"]
    result_df.drop_table_from_database_and_remove_from_cache()

    if num_groups > 0:
        logger.warning(
            f"Keeping records flagged `{flag_column_name}` leaves {num_groups} "
            "natural key(s) with more than one record"
        )
    else:
        logger.info(
            f"Keeping records flagged `{flag_column_name}` leaves one record per "
            "natural key"
        )
    return int(num_groups)
