from __future__ import annotations

from abc import ABC, abstractmethod
from inspect import signature
from typing import Any, List, Optional, TypeVar, Union, final

from episcore.internals.dialects import EpiscoreDialect
from episcore.internals.exceptions import EpiscoreException
from episcore.internals.quality_codes import QualityCode


class _UnsuppliedOption:
    _instance: "_UnsuppliedOption" | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(_UnsuppliedOption, cls).__new__(cls)
        return cls._instance


unsupplied_option = _UnsuppliedOption()

T = TypeVar("T")
# type alias - either the specified type, _UnsuppliedOption, or None
UnsuppliedNoneOr = Union[T, _UnsuppliedOption, None]


class CodeLevelCreator(ABC):
    """One `WHEN <condition> THEN <quality code>` branch of a check.

    Subclasses supply the condition through `create_sql`. The quality code is
    set at construction or later via `.configure()`; composite levels (`And`,
    `Or`, `Not`) only need a code when they are used directly as a branch.
    """

    quality_code: Optional[QualityCode] = None

    @abstractmethod
    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        pass

    @abstractmethod
    def create_label(self) -> str:
        pass

    @property
    def input_columns(self) -> List[str]:
        return []

    @property
    def is_else_level(self) -> bool:
        return False

    @final
    def when_then_sql(self, sql_dialect: EpiscoreDialect) -> str:
        if self.quality_code is None:
            raise EpiscoreException(
                f"Code level '{self.create_label()}' has no quality code. Pass one "
                "when constructing it, or call `.configure(quality_code=...)`"
            )
        code = int(self.quality_code)
        if self.is_else_level:
            return f"ELSE {code}"
        return f"WHEN {self.create_sql(sql_dialect)} THEN {code}"

    @final
    def create_level_dict(self, sql_dialect_str: str) -> dict[str, Any]:
        sql_dialect = EpiscoreDialect.from_string(sql_dialect_str)
        level_dict: dict[str, Any] = {
            "sql_condition": "ELSE" if self.is_else_level else self.create_sql(
                sql_dialect
            ),
            "label": self.label,
        }
        if self.input_columns:
            level_dict["input_columns"] = list(self.input_columns)
        if self.quality_code is not None:
            level_dict["quality_code"] = int(self.quality_code)
        return level_dict

    @final
    def configure(
        self,
        *,
        quality_code: UnsuppliedNoneOr[Union[QualityCode, int]] = unsupplied_option,
        label: UnsuppliedNoneOr[str] = unsupplied_option,
    ) -> "CodeLevelCreator":
        """
        Configure options common to all code levels.

        Args:
            quality_code (QualityCode | int, optional): The code emitted when this
                level's condition is the first to hold for a record.
            label (str, optional): A human readable label, used when describing
                checks and in quality-code distributions.

        Returns:
            CodeLevelCreator: The instance, with the updated configuration.
        """
        args = locals()
        del args["self"]
        for k, v in args.items():
            if v is unsupplied_option:
                continue
            if k == "quality_code" and v is not None:
                v = QualityCode(v)
            if k == "label":
                k = "_custom_label"
            setattr(self, k, v)

        return self

    @property
    def label(self) -> str:
        custom_label = getattr(self, "_custom_label", None)
        return custom_label if custom_label is not None else self.create_label()

    def __repr__(self) -> str:
        code = "unset" if self.quality_code is None else int(self.quality_code)
        return f"<{self.__class__.__name__} '{self.label}' -> {code}>"


CONFIGURABLE_PARAMETERS = [
    s for s in signature(CodeLevelCreator.configure).parameters if s != "self"
]
