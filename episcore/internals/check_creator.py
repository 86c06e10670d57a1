from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Union, final

from episcore.internals.dialects import EpiscoreDialect
from episcore.internals.exceptions import EpiscoreException
from episcore.internals.misc import dedupe_preserving_order
from episcore.internals.quality_codes import CheckCategory

from .code_level_creator import CodeLevelCreator


class CheckCreator(ABC):
    """Author a data-quality check.

    A check is an ordered list of code levels, rendered as a single SQL CASE
    expression. The first level whose condition holds determines the record's
    quality code; the final level must be an else level so that every record
    receives exactly one code.
    """

    def __init__(self, name: str, category: Union[CheckCategory, str]):
        self.name = name
        self.category = CheckCategory.from_string(category)
        self._validate()

    def _validate(self) -> None:
        # create levels - let them raise errors if there are issues
        levels = self.create_code_levels()
        if not levels or not levels[-1].is_else_level:
            raise EpiscoreException(
                f"Check '{self.output_column_name}' must end with an else level, "
                "so that every record receives a quality code"
            )
        for cl in levels[:-1]:
            if cl.is_else_level:
                raise EpiscoreException(
                    f"Check '{self.output_column_name}' has an else level before "
                    "its final level; the levels after it can never be reached"
                )
            if cl.quality_code is None:
                raise EpiscoreException(
                    f"Level '{cl.label}' of check '{self.output_column_name}' has "
                    "no quality code"
                )

    @abstractmethod
    def create_code_levels(self) -> List[CodeLevelCreator]:
        pass

    @final
    @property
    def output_column_name(self) -> str:
        return f"dq_{self.category.value}_{self.name}".replace(" ", "_")

    @property
    def input_columns(self) -> List[str]:
        cols: List[str] = []
        for cl in self.create_code_levels():
            cols.extend(cl.input_columns)
        return dedupe_preserving_order(cols)

    @final
    @property
    def num_levels(self) -> int:
        return len(self.create_code_levels())

    @final
    def case_statement(self, sql_dialect: EpiscoreDialect) -> str:
        sqls = [cl.when_then_sql(sql_dialect) for cl in self.create_code_levels()]
        return f"CASE {' '.join(sqls)} END"

    @final
    def select_sql(self, sql_dialect: EpiscoreDialect) -> str:
        return f"{self.case_statement(sql_dialect)} as {self.output_column_name}"

    @final
    def create_check_dict(self, sql_dialect_str: str) -> dict[str, Any]:
        return {
            "output_column_name": self.output_column_name,
            "name": self.name,
            "category": self.category.value,
            "description": self.create_description(),
            "code_levels": [
                cl.create_level_dict(sql_dialect_str)
                for cl in self.create_code_levels()
            ],
        }

    def create_description(self) -> str:
        return f"{self.category.value} check of {self.name}"

    @property
    def human_readable_description(self) -> str:
        levels = "\n".join(
            f"    - {cl.label} -> {int(cl.quality_code)}"
            for cl in self.create_code_levels()
        )
        return f"{self.output_column_name} ({self.create_description()}):\n{levels}"

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} {self.output_column_name} "
            f"with {self.num_levels} levels>"
        )
