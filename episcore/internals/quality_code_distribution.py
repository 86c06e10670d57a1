from __future__ import annotations

from typing import TYPE_CHECKING

from episcore.internals.misc import sql_literal
from episcore.internals.quality_codes import QualityCode

if TYPE_CHECKING:
    from episcore.internals.settings import Settings


def quality_code_distribution_sqls(
    input_table_name: str, settings: Settings
) -> list[dict[str, str]]:
    """Count the records receiving each quality code, per check and partition.

    Output is long format, one row per (check, partition, code) observed, which
    makes it easy to audit a rule table against real data.
    """
    partition_col = settings.partition_column_name

    sqls_to_union = [
        f"""
        select
            {partition_col},
            '{check.output_column_name}' as check_name,
            '{check.category.value}' as check_category,
            {check.output_column_name} as quality_code,
            count(*) as num_records
        from {input_table_name}
        group by {partition_col}, {check.output_column_name}
        """
        for check in settings.checks
    ]
    sqls = [
        {
            "sql": " UNION ALL ".join(sqls_to_union),
            "output_table_name": "__episcore__df_quality_code_counts",
        }
    ]

    label_cases = " ".join(
        f"when {int(code)} then {sql_literal(code.label)}" for code in QualityCode
    )
    sql = f"""
    select
        *,
        case quality_code {label_cases} end as quality_code_label,
        num_records / sum(num_records) over (
            partition by check_name, {partition_col}
        ) as proportion_of_records
    from __episcore__df_quality_code_counts
    order by check_name, {partition_col}, quality_code
    """
    sqls.append(
        {"sql": sql, "output_table_name": "__episcore__df_quality_code_distribution"}
    )
    return sqls
