from __future__ import annotations

from typing import Any, List, Union, final

from episcore.internals.dialects import EpiscoreDialect
from episcore.internals.misc import dedupe_preserving_order
from episcore.internals.quality_codes import QualityCode

from .code_level_creator import CodeLevelCreator


def _ensure_is_code_level_creator(
    cl: Union[CodeLevelCreator, dict[str, Any]],
) -> CodeLevelCreator:
    if isinstance(cl, dict):
        from .code_level_library import CustomLevel

        return CustomLevel(**cl)
    if isinstance(cl, CodeLevelCreator):
        return cl
    raise TypeError(
        f"parameter 'cl' must be a `CodeLevelCreator` or `dict`, "
        f"but is of type {type(cl)} [{cl}]"
    )


class _Merge(CodeLevelCreator):
    _clause: str = ""

    @final
    def __init__(
        self,
        *code_levels: Union[CodeLevelCreator, dict[str, Any]],
        quality_code: Union[QualityCode, int] = None,
    ):
        if len(code_levels) == 0:
            raise ValueError(f"Must provide at least one level to {type(self)}()")
        self.code_levels = [_ensure_is_code_level_creator(cl) for cl in code_levels]
        if quality_code is not None:
            self.configure(quality_code=quality_code)

    @final
    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        return f" {self._clause} ".join(
            f"({cl.create_sql(sql_dialect)})" for cl in self.code_levels
        )

    def create_label(self) -> str:
        return f" {self._clause} ".join(f"({cl.label})" for cl in self.code_levels)

    @property
    def input_columns(self) -> List[str]:
        cols: List[str] = []
        for cl in self.code_levels:
            cols.extend(cl.input_columns)
        return dedupe_preserving_order(cols)


class And(_Merge):
    """
    Represents a code level that holds when all of the given levels hold

    Args:
        *code_levels (CodeLevelCreator | dict): The levels whose conditions are
            combined via 'AND'
        quality_code (QualityCode | int, optional): The code for the combined level
    """

    _clause = "AND"


class Or(_Merge):
    """
    Represents a code level that holds when any of the given levels hold

    Args:
        *code_levels (CodeLevelCreator | dict): The levels whose conditions are
            combined via 'OR'
        quality_code (QualityCode | int, optional): The code for the combined level
    """

    _clause = "OR"


class Not(CodeLevelCreator):
    """
    Represents a code level that holds when the given level does not

    Note that SQL three-valued logic applies: `NOT (x = 1)` is not true when x is
    NULL. Put a `NullLevel` ahead of a negated level where that matters.
    """

    def __init__(
        self,
        code_level: Union[CodeLevelCreator, dict[str, Any]],
        quality_code: Union[QualityCode, int] = None,
    ):
        self.code_level = _ensure_is_code_level_creator(code_level)
        if quality_code is not None:
            self.configure(quality_code=quality_code)

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        return f"NOT ({self.code_level.create_sql(sql_dialect)})"

    def create_label(self) -> str:
        return f"NOT ({self.code_level.label})"

    @property
    def input_columns(self) -> List[str]:
        return self.code_level.input_columns
