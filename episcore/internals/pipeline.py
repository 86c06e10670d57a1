from __future__ import annotations

import logging
from typing import List, Optional

import sqlglot
from sqlglot.errors import ParseError, TokenError
from sqlglot.expressions import Table

from episcore.internals.misc import ensure_is_list

from .episcore_dataframe import EpiscoreDataFrame

logger = logging.getLogger(__name__)

# templated names of episcore stages share this prefix
STAGE_NAME_PREFIX = "__episcore__df_"


class CTE:
    """One step of a stage: a select whose result is named `output_table_name`
    for the steps after it."""

    def __init__(self, sql: str, output_table_name: str):
        self.sql = sql
        self.output_table_name = output_table_name

    @property
    def tables_read(self) -> Optional[List[str]]:
        """Names of the tables the step selects from, or None if the SQL could
        not be parsed"""
        try:
            tree = sqlglot.parse_one(self.sql, read="duckdb")
        except (ParseError, TokenError):
            return None
        return sorted({t.name for t in tree.find_all(Table)})

    def describe(self) -> str:
        tables = self.tables_read
        if tables is None:
            return f"{self.output_table_name} (SQL could not be parsed for lineage)"

        stages = [t for t in tables if t.startswith(STAGE_NAME_PREFIX)]
        others = [t for t in tables if not t.startswith(STAGE_NAME_PREFIX)]
        description = f"{self.output_table_name} reads stages [{', '.join(stages)}]"
        if others:
            description += f" and tables [{', '.join(others)}]"
        return description

    def __repr__(self) -> str:
        return f"<CTE {self.describe()}>"


class CTEPipeline:
    """Steps rendered as a single `WITH ... select` so that a stage is
    materialised as one table.

    Input frames whose templated name differs from their physical name are
    exposed to the steps under their templated name, so that step SQL can refer
    to e.g. `__episcore__df_retention_flags` whatever table holds it. In debug
    mode the db_api materialises every step instead.

    A pipeline can be executed once only.
    """

    def __init__(self, input_dataframes: Optional[List[EpiscoreDataFrame]] = None):
        self.stages: List[CTE] = []
        self.input_dataframes: List[EpiscoreDataFrame] = (
            [] if input_dataframes is None else ensure_is_list(input_dataframes)
        )
        self.spent = False

    def enqueue_sql(self, sql: str, output_table_name: str) -> None:
        if self.spent:
            raise ValueError("This pipeline has already been used")
        self.stages.append(CTE(sql, output_table_name))

    def enqueue_list_of_sqls(self, sql_list: List[dict[str, str]]) -> None:
        for sql_dict in sql_list:
            self.enqueue_sql(sql_dict["sql"], sql_dict["output_table_name"])

    def _input_ctes(self) -> List[CTE]:
        return [
            CTE(f"\nselect * from {df.physical_name}", df.templated_name)
            for df in self.input_dataframes
            if not df.physical_and_template_names_equal
        ]

    def _log_lineage(self, ctes: List[CTE]) -> None:
        if not logger.isEnabledFor(7):
            return
        inputs = ", ".join(
            f"{df.templated_name} ({df.physical_name})" for df in self.input_dataframes
        )
        logger.log(7, f"Stage {self.output_table_name} from inputs [{inputs}]")
        for i, cte in enumerate(ctes):
            logger.log(7, f"    step {i + 1}: {cte.describe()}")

    def generate_cte_pipeline_sql(self) -> str:
        if self.spent:
            raise ValueError("This pipeline has already been used")
        if not self.stages:
            raise ValueError("Cannot generate SQL for a pipeline with no steps")
        self.spent = True

        ctes = self._input_ctes() + self.stages
        self._log_lineage(ctes)

        *with_ctes, final_query = ctes
        with_sql = ", \n\n".join(
            f"{c.output_table_name} as ({c.sql})" for c in with_ctes
        )
        if with_sql:
            with_sql = f"\nWITH\n\n{with_sql} "
        return with_sql + "\n" + final_query.sql

    @property
    def output_table_name(self) -> str:
        return self.stages[-1].output_table_name
