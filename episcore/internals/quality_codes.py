from __future__ import annotations

from enum import Enum, IntEnum


class QualityCode(IntEnum):
    """Ordinal data-quality taxonomy. Every check yields exactly one of these
    codes per record; higher is better."""

    ILLEGAL = 1
    INFEASIBLE = 2
    MISSING = 3
    NOT_KNOWN = 4
    NOT_SPECIFIED = 5
    OTHER = 6
    DOUBTFUL = 7
    VALID = 8

    @property
    def label(self) -> str:
        return _QUALITY_CODE_LABELS[self]


_QUALITY_CODE_LABELS = {
    QualityCode.ILLEGAL: "illegal value",
    QualityCode.INFEASIBLE: "medically or logically infeasible",
    QualityCode.MISSING: "missing or invalid",
    QualityCode.NOT_KNOWN: "explicitly not known",
    QualityCode.NOT_SPECIFIED: "explicitly not applicable or not specified",
    QualityCode.OTHER: "explicitly other",
    QualityCode.DOUBTFUL: "valid but doubtful",
    QualityCode.VALID: "valid",
}

MAX_QUALITY_CODE = max(QualityCode)


class CheckCategory(Enum):
    """The kind of evidence a check looks at.

    Each category rescales its codes by a fixed factor before aggregation, so the
    maximum attainable value of a check is `MAX_QUALITY_CODE * scale`.
    """

    FIELD = "field"
    INTRA = "intra"
    INTER = "inter"

    @property
    def scale(self) -> int:
        return _CATEGORY_SCALES[self]

    @property
    def max_scaled_value(self) -> int:
        return int(MAX_QUALITY_CODE) * self.scale

    @classmethod
    def from_string(cls, value: str | CheckCategory) -> CheckCategory:
        if isinstance(value, CheckCategory):
            return value
        try:
            return cls(value.lower())
        except ValueError:
            allowed = ", ".join(f"'{c.value}'" for c in cls)
            raise ValueError(
                f"Unknown check category '{value}'. Must be one of: {allowed}"
            ) from None


_CATEGORY_SCALES = {
    CheckCategory.FIELD: 1,
    CheckCategory.INTRA: 10,
    CheckCategory.INTER: 100,
}
