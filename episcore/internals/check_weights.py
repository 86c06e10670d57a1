from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List

from episcore.internals.exceptions import EmptyPartitionException
from episcore.internals.misc import sql_literal

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from episcore.internals.settings import Settings


def check_weights_sql(
    input_table_name: str,
    settings: Settings,
    empty_partitions: List[Any] = None,
) -> str:
    """
    Derive, per partition, a weight in [0, 1] for every check: the partition
    mean of the check's rescaled value divided by the maximum attainable value
    of its category.

    Partitions without records have no defined weights. They raise
    `EmptyPartitionException` unless `allow_empty_partitions` is set, in which
    case they are carried with a record count of zero and null weights.
    """
    empty_partitions = empty_partitions or []
    if empty_partitions and not settings.allow_empty_partitions:
        raise EmptyPartitionException(empty_partitions)

    partition_col = settings.partition_column_name
    weights_sql = "".join(
        f",\n        avg({settings.scaled_column_name(check)}) "
        f"/ {float(check.category.max_scaled_value)}"
        f" as {settings.weight_column_name(check)}"
        for check in settings.checks
    )
    sql = f"""
    select
        {partition_col},
        count(*) as record_count{weights_sql}
    from {input_table_name}
    group by {partition_col}
    """

    for partition_key in empty_partitions:
        logger.warning(
            f"Partition {partition_key!r} has no records; its check weights "
            "are null and no adjusted score can be computed against them"
        )
        null_weights_sql = "".join(
            f", cast(null as double) as {settings.weight_column_name(check)}"
            for check in settings.checks
        )
        sql += f"""
    UNION ALL BY NAME
    select
        {sql_literal(partition_key)} as {partition_col},
        0 as record_count{null_weights_sql}
    """

    return f"""
    select * from ({sql})
    order by {partition_col}
    """
