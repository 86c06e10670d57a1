from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, List, Tuple

import pyarrow as pa

from episcore.internals.database_api import as_arrow_table
from episcore.internals.exceptions import (
    EmptyPartitionException,
    ErrorLogger,
    InvalidEpiscoreInput,
)
from episcore.internals.misc import ascii_uid, join_list_with_commas_final_and
from episcore.internals.settings import RESERVED_COLUMN_NAMES

from .episcore_dataframe import EpiscoreDataFrame

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from episcore.internals.database_api import (
        AcceptableInputTableType,
        DatabaseAPISubClass,
    )
    from episcore.internals.settings import Settings

INPUT_POSITION_COLUMN_NAME = "__episcore_input_position"


class PreparedInput:
    """Input tables registered with the backend, one per non-empty partition
    (or a single table already carrying the partition column).

    When every partition is empty and empty partitions are allowed, the empty
    tables are registered instead, so that scoring yields zero records."""

    def __init__(
        self,
        tables: List[EpiscoreDataFrame],
        column_names: List[str],
        empty_partitions: List[Any],
    ):
        self.tables = tables
        self.column_names = column_names
        self.empty_partitions = empty_partitions

    @property
    def num_tables(self) -> int:
        return len(self.tables)


def _without_column(table: pa.Table, column_name: str) -> pa.Table:
    return table.select([c for c in table.column_names if c != column_name])


def _with_position(table: pa.Table) -> pa.Table:
    table = _without_column(table, INPUT_POSITION_COLUMN_NAME)
    positions = pa.array(range(table.num_rows), type=pa.int64())
    return table.append_column(INPUT_POSITION_COLUMN_NAME, positions)


def _with_partition(table: pa.Table, partition_column_name: str, key: Any) -> pa.Table:
    table = _without_column(table, partition_column_name)
    # typed from the key, so that a zero-row partition still has a typed column
    partition_values = pa.array([key] * table.num_rows, type=pa.scalar(key).type)
    return table.append_column(partition_column_name, partition_values)


def _as_partitioned_arrow_tables(
    input_data: Any, settings: Settings
) -> Tuple[List[pa.Table], List[Any]]:
    partition_col = settings.partition_column_name

    if isinstance(input_data, Mapping):
        tables = []
        empty_partitions = []
        for key, table in input_data.items():
            arrow_table = as_arrow_table(table)
            if arrow_table.num_rows == 0:
                empty_partitions.append(key)
                continue
            tables.append(_with_partition(arrow_table, partition_col, key))
        if not tables and not empty_partitions:
            raise InvalidEpiscoreInput("No input partitions were supplied")
        return tables, empty_partitions

    arrow_table = as_arrow_table(input_data)
    if partition_col not in arrow_table.column_names:
        raise InvalidEpiscoreInput(
            f"A single input table must carry the partition column "
            f"'{partition_col}'. Either add it, or pass a mapping of partition "
            "key to table"
        )
    if arrow_table.num_rows == 0:
        raise InvalidEpiscoreInput("The input table has no records")
    return [arrow_table], []


def validate_input_columns(column_names: List[str], settings: Settings) -> None:
    errors = ErrorLogger()
    missing = [c for c in settings.required_input_columns if c not in column_names]
    if missing:
        errors.log_error(
            f"The input is missing the column(s) "
            f"{join_list_with_commas_final_and(missing)}, which are required by "
            f"the '{settings.dataset_variant.name}' settings"
        )
    errors.raise_and_log_all_errors(
        exception=InvalidEpiscoreInput,
        additional_txt=f"Input columns are: {', '.join(column_names)}",
    )

    shadowed = [
        c
        for c in column_names
        if c in RESERVED_COLUMN_NAMES or c in settings.retention_flag_columns
    ]
    if shadowed:
        logger.warning(
            f"Input column(s) {', '.join(shadowed)} share names with columns "
            "created during scoring and will be replaced in the outputs"
        )


def prepare_input(
    input_data: AcceptableInputTableType | Dict[Any, AcceptableInputTableType],
    settings: Settings,
    db_api: DatabaseAPISubClass,
) -> PreparedInput:
    arrow_tables, empty_partitions = _as_partitioned_arrow_tables(input_data, settings)

    if not arrow_tables:
        # only empty partitions; their schemas still describe the input
        empty_tables = [
            _with_partition(as_arrow_table(t), settings.partition_column_name, k)
            for k, t in input_data.items()
        ]
        if settings.allow_empty_partitions:
            # scored as zero records, so every stage yields an empty table
            arrow_tables = empty_tables
    else:
        empty_tables = []

    column_names: List[str] = []
    for t in arrow_tables or empty_tables:
        column_names.extend(c for c in t.column_names if c not in column_names)

    validate_input_columns(column_names, settings)

    if empty_partitions:
        logger.warning(
            f"Partition(s) {', '.join(repr(p) for p in empty_partitions)} "
            "contain no records"
        )

    uid = ascii_uid(8)
    registered = []
    for i, arrow_table in enumerate(arrow_tables):
        table_name = f"__episcore__input_table_{uid}_{i}"
        df = db_api.register_table(_with_position(arrow_table), table_name)
        registered.append(df)
        logger.debug(f"Registered {arrow_table.num_rows} records as {table_name}")

    return PreparedInput(registered, column_names, empty_partitions)


def concatenate_input_sql(prepared_input: PreparedInput, settings: Settings) -> str:
    """
    Vertically concatenate the registered input tables and number the records
    of each partition in input order.

    The resulting (partition, record_row) pair identifies a record in every
    output table.
    """
    if not prepared_input.tables:
        raise EmptyPartitionException(prepared_input.empty_partitions)

    union_sql = " UNION ALL BY NAME ".join(
        f"select * from {df.physical_name}" for df in prepared_input.tables
    )
    partition_col = settings.partition_column_name
    row_col = settings.record_row_column_name

    exclude_cols = [INPUT_POSITION_COLUMN_NAME]
    if row_col in prepared_input.column_names:
        exclude_cols.append(row_col)

    return f"""
    select
        * exclude ({', '.join(exclude_cols)}),
        row_number() over (
            partition by {partition_col} order by {INPUT_POSITION_COLUMN_NAME}
        ) as {row_col}
    from ({union_sql})
    """
