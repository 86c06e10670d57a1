from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Type, TypeVar, final

# equivalent to typing.Self in python >= 3.11
Self = TypeVar("Self", bound="EpiscoreDialect")


class EpiscoreDialect(ABC):
    # Stores instances of each subclass of EpiscoreDialect.
    _dialect_instances: dict[Type[EpiscoreDialect], EpiscoreDialect] = {}
    # string defined by subclasses to be used in factory method from_string
    _dialect_name_for_factory: str

    # Register a subclass of EpiscoreDialect on its creation.
    # Whenever that subclass is called again, use the previous instance.
    def __new__(cls, *args, **kwargs):
        if cls not in cls._dialect_instances:
            instance = super(EpiscoreDialect, cls).__new__(cls)
            cls._dialect_instances[cls] = instance
        return cls._dialect_instances[cls]

    @property
    @abstractmethod
    def sql_dialect_str(self) -> str:
        pass

    @property
    def sqlglot_dialect(self) -> str:
        return self.sql_dialect_str

    @classmethod
    def from_string(cls: type[Self], dialect_name: str) -> Self:
        classes_from_dialect_name = [
            c
            for c in cls.__subclasses__()
            if getattr(c, "_dialect_name_for_factory", None) == dialect_name
        ]
        if len(classes_from_dialect_name) == 1:
            subclass = classes_from_dialect_name[0]
            return subclass()
        if len(classes_from_dialect_name) > 1:
            classes_string = ", ".join(map(str, classes_from_dialect_name))
            error_message = (
                "Found multiple subclasses of `EpiscoreDialect` with "
                "lookup string `_dialect_name_for_factory` equal to "
                f"supplied value {dialect_name}: {classes_string}!"
            )
        else:
            error_message = (
                "Could not find subclass of `EpiscoreDialect` with "
                f"lookup string '{dialect_name}'."
            )
        raise ValueError(error_message)

    def extract_year_sql(self, date_expression: str) -> str:
        return f"extract(year from {date_expression})"

    def days_between_sql(self, start_expression: str, end_expression: str) -> str:
        raise NotImplementedError(
            f"Backend '{self.sql_dialect_str}' does not support date differences"
        )

    @final
    def whole_weeks_between_sql(
        self, start_expression: str, end_expression: str
    ) -> str:
        days = self.days_between_sql(start_expression, end_expression)
        return f"cast(trunc(({days}) / 7) as integer)"


class DuckDBDialect(EpiscoreDialect):
    _dialect_name_for_factory = "duckdb"

    @property
    def sql_dialect_str(self) -> str:
        return "duckdb"

    def days_between_sql(self, start_expression: str, end_expression: str) -> str:
        return f"date_diff('day', {start_expression}, {end_expression})"
