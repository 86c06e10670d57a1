from episcore.internals.code_level_library import (
    And,
    ColumnComparisonLevel,
    CustomLevel,
    ElseLevel,
    Not,
    NullLevel,
    Or,
    RangeLevel,
    ThresholdLevel,
    ValuesLevel,
    YearMismatchLevel,
    YearsSinceLevel,
)

__all__ = [
    "And",
    "ColumnComparisonLevel",
    "CustomLevel",
    "ElseLevel",
    "Not",
    "NullLevel",
    "Or",
    "RangeLevel",
    "ThresholdLevel",
    "ValuesLevel",
    "YearMismatchLevel",
    "YearsSinceLevel",
]
