from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List

from episcore.internals.misc import dedupe_preserving_order

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from episcore.internals.settings import Settings


def inter_record_context_sqls(
    input_table_name: str, settings: Settings
) -> List[dict[str, str]]:
    """
    Attach to each record the occurrence date of the same entity's immediately
    preceding record, the whole weeks elapsed since it, and any variant-specific
    derived columns (e.g. whether every expected birth was live).

    Records are ordered per entity by occurrence date (nulls last), with
    partition and record row as tie-breaks. A record with a null entity has no
    predecessor.
    """
    entity = settings.entity_column_name
    occurrence = settings.occurrence_date_column_name
    partition_col = settings.partition_column_name
    row_col = settings.record_row_column_name
    dialect = settings.sql_dialect

    sqls = []
    sql = f"""
    select
        *,
        case
            when {entity} is null then null
            else lag({occurrence}) over (
                partition by {entity}
                order by {occurrence} nulls last, {partition_col}, {row_col}
            )
        end as previous_occurrence_date
    from {input_table_name}
    """
    sqls.append(
        {"sql": sql, "output_table_name": "__episcore__df_previous_occurrence"}
    )

    weeks_sql = dialect.whole_weeks_between_sql(
        "previous_occurrence_date", occurrence
    )
    derived_sql = "".join(
        f",\n        {expression} as {name}"
        for name, expression in settings.inter_record_columns.items()
    )
    sql = f"""
    select
        *,
        case
            when {occurrence} is not null and previous_occurrence_date is not null
            then {weeks_sql}
        end as weeks_since_previous{derived_sql}
    from __episcore__df_previous_occurrence
    """
    sqls.append(
        {"sql": sql, "output_table_name": "__episcore__df_inter_record_context"}
    )
    return sqls


def quality_codes_sqls(
    input_table_name: str, settings: Settings
) -> List[dict[str, str]]:
    """
    Evaluate every configured check against every record, giving one raw quality
    code per check, then rescale each code by its check category.
    """
    dialect = settings.sql_dialect
    partition_col = settings.partition_column_name
    row_col = settings.record_row_column_name

    if settings.retain_input_columns:
        columns_sql = "*"
    else:
        columns_sql = ", ".join(
            dedupe_preserving_order(
                settings.identity_columns + settings.derived_column_names
            )
        )

    case_statements = "".join(
        f",\n        {check.select_sql(dialect)}" for check in settings.checks
    )

    sqls = []
    sql = f"""
    select
        {columns_sql}{case_statements}
    from {input_table_name}
    """
    sqls.append({"sql": sql, "output_table_name": "__episcore__df_raw_quality_codes"})

    scaled_sql = "".join(
        f",\n        {check.output_column_name} * {check.category.scale}"
        f" as {settings.scaled_column_name(check)}"
        for check in settings.checks
    )
    sql = f"""
    select
        *{scaled_sql}
    from __episcore__df_raw_quality_codes
    order by {partition_col}, {row_col}
    """
    sqls.append({"sql": sql, "output_table_name": "__episcore__df_quality_codes"})
    return sqls
