from __future__ import annotations

from typing import Any, Iterable, List, Union

from sqlglot import TokenError, parse_one

from episcore.internals.dialects import EpiscoreDialect
from episcore.internals.misc import sql_literal
from episcore.internals.quality_codes import QualityCode

# import composition functions for export
from .code_level_composition import And, Not, Or  # NOQA: F401
from .code_level_creator import CONFIGURABLE_PARAMETERS, CodeLevelCreator

QualityCodeLike = Union[QualityCode, int]

_ALLOWED_OPERATORS = ("<", "<=", "=", "!=", "<>", ">", ">=")


def _translate_sql_string(
    sqlglot_base_dialect_sql: str,
    to_sqlglot_dialect: str,
    from_sqlglot_dialect: str = None,
) -> str:
    tree = parse_one(sqlglot_base_dialect_sql, read=from_sqlglot_dialect)

    return tree.sql(dialect=to_sqlglot_dialect)


class _SingleColumnLevel(CodeLevelCreator):
    def __init__(self, col_name: str, quality_code: QualityCodeLike = None):
        if not isinstance(col_name, str) or not col_name:
            raise TypeError(
                f"{self.__class__.__name__} expects a column name, got {col_name!r}"
            )
        self.col_name = col_name
        if quality_code is not None:
            self.configure(quality_code=quality_code)

    @property
    def input_columns(self) -> List[str]:
        return [self.col_name]


class NullLevel(_SingleColumnLevel):
    """Represents a code level where the value is NULL

    e.g. `col IS NULL`. Blanks are assumed to have been normalised to NULL
    before scoring. Defaults to `QualityCode.MISSING`.
    """

    def __init__(
        self, col_name: str, quality_code: QualityCodeLike = QualityCode.MISSING
    ):
        super().__init__(col_name, quality_code)

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        return f"{self.col_name} IS NULL"

    def create_label(self) -> str:
        return f"{self.col_name} is NULL"


class ValuesLevel(_SingleColumnLevel):
    def __init__(
        self,
        col_name: str,
        values: Union[Any, Iterable[Any]],
        quality_code: QualityCodeLike = None,
    ):
        """Represents a code level where the value is one of a set of literals

        e.g. `col IN (1, 2)`

        Args:
            col_name (str): Input column name
            values: A single literal or an iterable of literals. Strings are
                compared as strings, numbers as numbers; the caller is
                responsible for matching the column's type.
            quality_code (QualityCode | int): Code emitted for these values
        """
        super().__init__(col_name, quality_code)
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            values = [values]
        self.values = list(values)
        if not self.values:
            raise ValueError("ValuesLevel requires at least one value")

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        if len(self.values) == 1:
            return f"{self.col_name} = {sql_literal(self.values[0])}"
        literals = ", ".join(sql_literal(v) for v in self.values)
        return f"{self.col_name} IN ({literals})"

    def create_label(self) -> str:
        return f"{self.col_name} in {self.values}"


class RangeLevel(_SingleColumnLevel):
    def __init__(
        self,
        col_name: str,
        lower: Union[int, float] = None,
        upper: Union[int, float] = None,
        quality_code: QualityCodeLike = None,
    ):
        """Represents a code level where the value lies in an inclusive range

        e.g. `col BETWEEN 1 AND 87`. Omitting a bound leaves that side open.

        Args:
            col_name (str): Input column name
            lower (int | float, optional): Inclusive lower bound
            upper (int | float, optional): Inclusive upper bound
            quality_code (QualityCode | int): Code emitted for values in range
        """
        super().__init__(col_name, quality_code)
        if lower is None and upper is None:
            raise ValueError("RangeLevel requires at least one of `lower`, `upper`")
        if lower is not None and upper is not None and lower > upper:
            raise ValueError(
                f"RangeLevel lower bound {lower} is greater than upper bound {upper}"
            )
        self.lower = lower
        self.upper = upper

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        col = self.col_name
        if self.lower is None:
            return f"{col} <= {sql_literal(self.upper)}"
        if self.upper is None:
            return f"{col} >= {sql_literal(self.lower)}"
        return f"{col} BETWEEN {sql_literal(self.lower)} AND {sql_literal(self.upper)}"

    def create_label(self) -> str:
        lower = "-inf" if self.lower is None else self.lower
        upper = "inf" if self.upper is None else self.upper
        return f"{self.col_name} in [{lower}, {upper}]"


class ColumnComparisonLevel(CodeLevelCreator):
    def __init__(
        self,
        left_col_name: str,
        operator: str,
        right_col_name: str,
        quality_code: QualityCodeLike = None,
    ):
        """Represents a code level comparing two columns of the same record

        e.g. `dobbaby1 < admidate`

        Args:
            left_col_name (str): Column on the left of the operator
            operator (str): One of <, <=, =, !=, <>, >, >=
            right_col_name (str): Column on the right of the operator
            quality_code (QualityCode | int): Code emitted when the comparison holds
        """
        if operator not in _ALLOWED_OPERATORS:
            allowed = "', '".join(_ALLOWED_OPERATORS)
            raise ValueError(f"'operator' must be one of: '{allowed}'")
        self.left_col_name = left_col_name
        self.operator = operator
        self.right_col_name = right_col_name
        if quality_code is not None:
            self.configure(quality_code=quality_code)

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        return f"{self.left_col_name} {self.operator} {self.right_col_name}"

    def create_label(self) -> str:
        return f"{self.left_col_name} {self.operator} {self.right_col_name}"

    @property
    def input_columns(self) -> List[str]:
        return [self.left_col_name, self.right_col_name]


class YearsSinceLevel(CodeLevelCreator):
    def __init__(
        self,
        reference_year_col_name: str,
        date_col_name: str,
        min_years: int,
        quality_code: QualityCodeLike = None,
    ):
        """Represents a code level where a date lies at least `min_years` before
        a reference year held in another column

        e.g. a mother's date of birth sixty or more years before the data year
        """
        self.reference_year_col_name = reference_year_col_name
        self.date_col_name = date_col_name
        self.min_years = min_years
        if quality_code is not None:
            self.configure(quality_code=quality_code)

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        date_year = sql_dialect.extract_year_sql(self.date_col_name)
        return f"{self.reference_year_col_name} - {date_year} >= {self.min_years}"

    def create_label(self) -> str:
        return (
            f"{self.date_col_name} at least {self.min_years} years before "
            f"{self.reference_year_col_name}"
        )

    @property
    def input_columns(self) -> List[str]:
        return [self.reference_year_col_name, self.date_col_name]


class YearMismatchLevel(CodeLevelCreator):
    def __init__(
        self,
        date_col_name: str,
        year_col_name: str,
        quality_code: QualityCodeLike = None,
    ):
        """Represents a code level where the year of a date differs from a year
        held in another column, e.g. an admission date outside the data year"""
        self.date_col_name = date_col_name
        self.year_col_name = year_col_name
        if quality_code is not None:
            self.configure(quality_code=quality_code)

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        date_year = sql_dialect.extract_year_sql(self.date_col_name)
        return f"{date_year} <> {self.year_col_name}"

    def create_label(self) -> str:
        return f"year of {self.date_col_name} differs from {self.year_col_name}"

    @property
    def input_columns(self) -> List[str]:
        return [self.date_col_name, self.year_col_name]


class ElseLevel(CodeLevelCreator):
    """
    This level captures every record that no earlier level matched. It
    corresponds to the ELSE clause in a SQL CASE statement, and must be the last
    level of every check.
    """

    def __init__(self, quality_code: QualityCodeLike = QualityCode.ILLEGAL):
        self.configure(quality_code=quality_code)

    @property
    def is_else_level(self) -> bool:
        return True

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        return "TRUE"

    def create_label(self) -> str:
        return "All other values"


class CustomLevel(CodeLevelCreator):
    def __init__(
        self,
        sql_condition: str,
        quality_code: QualityCodeLike = None,
        label: str = None,
        input_columns: List[str] = None,
        base_dialect_str: str = None,
    ):
        """Represents a code level with a custom sql expression

        Must be in a form suitable for use in a SQL CASE WHEN expression
        e.g. "numbaby BETWEEN 1 AND 3 AND birstat1 = 1"

        Args:
            sql_condition (str): SQL condition. The literal "ELSE" makes this an
                else level.
            quality_code (QualityCode | int, optional): Code emitted when the
                condition holds
            label (str, optional): A label for this level. Default None, so that
                `sql_condition` is used
            input_columns (list[str], optional): Columns the condition reads, used
                to validate the input data
            base_dialect_str (str, optional): If specified, the SQL dialect that
                this expression will parsed as when attempting to translate to
                other backends
        """
        self.sql_condition = sql_condition
        self.base_dialect_str = base_dialect_str
        self._input_columns = list(input_columns or [])
        self.configure(quality_code=quality_code, label=label)

    @property
    def is_else_level(self) -> bool:
        return self.sql_condition.strip().upper() == "ELSE"

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        sql_condition = self.sql_condition
        if self.is_else_level:
            return "TRUE"
        if self.base_dialect_str is not None:
            base_dialect = EpiscoreDialect.from_string(self.base_dialect_str)
            # if we are told it is one dialect, but try to create the level in
            # another, try to translate with sqlglot
            if sql_dialect != base_dialect:
                try:
                    sql_condition = _translate_sql_string(
                        sql_condition,
                        sql_dialect.sqlglot_dialect,
                        base_dialect.sqlglot_dialect,
                    )
                # if we hit a sqlglot error, assume the user knows what they are
                # doing; the error will surface when the SQL is executed
                except TokenError:
                    pass
        return sql_condition

    def create_label(self) -> str:
        return self.sql_condition

    @property
    def input_columns(self) -> List[str]:
        return self._input_columns

    @staticmethod
    def _convert_to_creator(
        cl: Union[CodeLevelCreator, dict[str, Any]],
    ) -> CodeLevelCreator:
        if isinstance(cl, CodeLevelCreator):
            return cl
        if isinstance(cl, dict):
            cl_dict = dict(cl)
            configurables = {
                key: cl_dict.pop(key)
                for key in list(cl_dict)
                if key in CONFIGURABLE_PARAMETERS
            }
            custom_level = CustomLevel(**cl_dict)
            if configurables:
                custom_level.configure(**configurables)
            return custom_level
        raise ValueError(
            "`code_levels` entries must be `dict` or `CodeLevelCreator`, "
            f"but found type {type(cl)} for entry {cl}"
        )


class ThresholdLevel(_SingleColumnLevel):
    def __init__(
        self,
        col_name: str,
        operator: str,
        threshold: Union[int, float],
        quality_code: QualityCodeLike = None,
    ):
        """Represents a code level comparing a value with a literal threshold

        e.g. `birweit > 7000`

        Args:
            col_name (str): Input column name
            operator (str): One of <, <=, =, !=, <>, >, >=
            threshold (int | float): The literal to compare against
            quality_code (QualityCode | int): Code emitted when the comparison holds
        """
        super().__init__(col_name, quality_code)
        if operator not in _ALLOWED_OPERATORS:
            allowed = "', '".join(_ALLOWED_OPERATORS)
            raise ValueError(f"'operator' must be one of: '{allowed}'")
        self.operator = operator
        self.threshold = threshold

    def create_sql(self, sql_dialect: EpiscoreDialect) -> str:
        return f"{self.col_name} {self.operator} {sql_literal(self.threshold)}"

    def create_label(self) -> str:
        return f"{self.col_name} {self.operator} {self.threshold}"
