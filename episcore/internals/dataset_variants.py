"""Built-in dataset variants.

A variant bundles the expected schema of a kind of episode extract with its
natural key, the entity and occurrence columns used by inter-record checks, and
the rule tables of its checks. Rule tables are plain data so they can be audited
without reading control flow; see `rule_to_code_level` for the rule format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from episcore.internals.dialects import EpiscoreDialect
from episcore.internals.quality_codes import QualityCode

from .check_creator import CheckCreator
from .check_library import (
    BirthWeightPlausibilityCheck,
    ConditionalFieldCheck,
    DuplicateCheck,
    EpisodeDatesCheck,
    FieldCheck,
    IntervalCheck,
    RuleType,
)
from .code_level_library import (
    ColumnComparisonLevel,
    YearMismatchLevel,
    YearsSinceLevel,
)

ILLEGAL = QualityCode.ILLEGAL
INFEASIBLE = QualityCode.INFEASIBLE
NOT_KNOWN = QualityCode.NOT_KNOWN
NOT_SPECIFIED = QualityCode.NOT_SPECIFIED
OTHER = QualityCode.OTHER
VALID = QualityCode.VALID

ETHNIC_CATEGORY_RULES: List[RuleType] = [
    {"values": "X", "code": NOT_KNOWN},
    {"values": ["9", "Z"], "code": NOT_SPECIFIED},
    {"values": ["8", "S"], "code": OTHER},
    {"values": list("1234567ABCDEFGHJKLMNPR"), "code": VALID},
]

NUMBER_OF_BABY_SLOTS = 3
BABY_FIELDS = [
    "dobbaby",
    "delstat",
    "biresus",
    "birorder",
    "birstat",
    "birweit",
    "delmeth",
    "delplace",
    "gestat",
    "sexbaby",
]


@dataclass
class DatasetVariant:
    name: str
    columns: List[str]
    natural_key_columns: List[str]
    entity_column_name: str
    occurrence_date_column_name: str
    partition_column_name: str
    checks_factory: Callable[[], List[CheckCreator]]
    # name -> function of the dialect giving a SQL expression, evaluated per
    # record alongside the previous occurrence
    inter_record_columns: Dict[str, Callable[[EpiscoreDialect], str]] = field(
        default_factory=dict
    )
    description: str = ""

    def create_checks(self) -> List[CheckCreator]:
        return self.checks_factory()

    @property
    def default_populated_field_columns(self) -> List[str]:
        return [c for c in self.columns if c != self.partition_column_name]


def _maternity_field_rules() -> Dict[str, tuple[List[RuleType], QualityCode]]:
    # column -> (rules after the null check, code for anything else)
    return {
        "year": ([], VALID),
        "dob": ([YearsSinceLevel("year", "dob", 60, INFEASIBLE)], VALID),
        "ethnos": (ETHNIC_CATEGORY_RULES, ILLEGAL),
        "admidate": ([YearMismatchLevel("admidate", "year", INFEASIBLE)], VALID),
        "procode": ([], VALID),
        "sex": (
            [
                {"values": 1, "code": INFEASIBLE, "label": "male mother"},
                {"values": 0, "code": NOT_KNOWN},
                {"values": 9, "code": NOT_SPECIFIED},
                {"values": 2, "code": VALID},
            ],
            ILLEGAL,
        ),
        "epitype": ([{"range": (1, 6), "code": VALID}], ILLEGAL),
        "epistart": ([], VALID),
        "epiend": ([], VALID),
        "epiorder": (
            [
                {"values": 99, "code": NOT_KNOWN},
                {"values": 98, "code": NOT_SPECIFIED},
                {"range": (1, 87), "code": VALID},
            ],
            ILLEGAL,
        ),
        "matage": ([{"values": [0, 110], "code": ILLEGAL}], VALID),
        "numbaby": (
            [
                {"values": 9, "code": NOT_KNOWN},
                {"values": 6, "code": INFEASIBLE},
                {"range": (1, 5), "code": VALID},
            ],
            ILLEGAL,
        ),
    }


def _baby_field_rules(slot: int) -> Dict[str, tuple[List[RuleType], QualityCode]]:
    # base field -> (value rules for a populated, expected field, else code)
    return {
        "dobbaby": (
            [ColumnComparisonLevel(f"dobbaby{slot}", "<", "admidate", ILLEGAL)],
            VALID,
        ),
        "delstat": (
            [
                {"values": 9, "code": NOT_KNOWN},
                {"values": 8, "code": OTHER},
                {"range": (1, 3), "code": VALID},
            ],
            ILLEGAL,
        ),
        "biresus": (
            [
                {"values": 9, "code": NOT_KNOWN},
                {"values": 8, "code": NOT_SPECIFIED},
                {"range": (1, 6), "code": VALID},
            ],
            ILLEGAL,
        ),
        "birorder": (
            [
                {"values": 9, "code": NOT_KNOWN},
                {"values": 8, "code": NOT_SPECIFIED},
                {"range": (1, 7), "code": VALID},
            ],
            ILLEGAL,
        ),
        "birstat": (
            [
                {"values": 9, "code": NOT_KNOWN},
                {"range": (1, 4), "code": VALID},
            ],
            ILLEGAL,
        ),
        "birweit": (
            [
                {"below": 0, "code": ILLEGAL},
                {"range": (0, 200), "code": INFEASIBLE},
                {"range": (5000, 7000), "code": INFEASIBLE},
                {"values": 9999, "code": NOT_KNOWN},
                {"range": (7001, 9998), "code": ILLEGAL},
            ],
            VALID,
        ),
        "delmeth": (
            [
                {"values": "X", "code": NOT_KNOWN},
                {"values": "9", "code": OTHER},
                {"values": list("012345678"), "code": VALID},
            ],
            ILLEGAL,
        ),
        "delplace": (
            [
                {"values": 9, "code": NOT_KNOWN},
                {"values": 8, "code": OTHER},
                {"range": (0, 7), "code": VALID},
            ],
            ILLEGAL,
        ),
        "gestat": (
            [
                {"values": 99, "code": NOT_KNOWN},
                {"range": (10, 49), "code": VALID},
            ],
            ILLEGAL,
        ),
        "sexbaby": (
            [
                {"values": 0, "code": NOT_KNOWN},
                {"values": 9, "code": NOT_SPECIFIED},
                {"values": [1, 2], "code": VALID},
            ],
            ILLEGAL,
        ),
    }


def maternity_checks() -> List[CheckCreator]:
    checks: List[CheckCreator] = [
        FieldCheck(col, rules, else_code=else_code)
        for col, (rules, else_code) in _maternity_field_rules().items()
    ]
    for slot in range(1, NUMBER_OF_BABY_SLOTS + 1):
        for base_field, (rules, else_code) in _baby_field_rules(slot).items():
            checks.append(
                ConditionalFieldCheck(
                    f"{base_field}{slot}",
                    governing_col_name="numbaby",
                    slot=slot,
                    rules=rules,
                    else_code=else_code,
                )
            )
    for slot in range(1, NUMBER_OF_BABY_SLOTS + 1):
        checks.append(
            BirthWeightPlausibilityCheck(
                f"birstat{slot}",
                f"gestat{slot}",
                f"sexbaby{slot}",
                f"birweit{slot}",
                name=f"realistic_baby_weight{slot}",
            )
        )
    checks.append(IntervalCheck("weeks_since_previous", "all_live_births"))
    checks.append(DuplicateCheck("group_size"))
    return checks


def all_live_births_sql(sql_dialect: EpiscoreDialect) -> str:
    """True iff the number of babies is 1 to 3 and each of those babies was
    born alive"""
    slots = range(1, NUMBER_OF_BABY_SLOTS + 1)
    conditions = " AND ".join(
        f"(numbaby < {slot} OR birstat{slot} = 1)" for slot in slots
    )
    return (
        f"coalesce(numbaby BETWEEN 1 AND {NUMBER_OF_BABY_SLOTS} "
        f"AND {conditions}, FALSE)"
    )


def general_episode_checks() -> List[CheckCreator]:
    return [
        FieldCheck("patient_id", else_code=VALID),
        FieldCheck(
            "dob",
            [ColumnComparisonLevel("dob", ">", "epistart", INFEASIBLE)],
            else_code=VALID,
        ),
        FieldCheck("epistart", else_code=VALID),
        FieldCheck(
            "sex",
            [
                {"values": [1, 2], "code": VALID},
                {"values": 0, "code": NOT_KNOWN},
                {"values": 9, "code": NOT_SPECIFIED},
            ],
        ),
        FieldCheck("ethnicity", ETHNIC_CATEGORY_RULES),
        FieldCheck("diag_01", else_code=VALID),
        EpisodeDatesCheck("epistart", "epiend"),
        DuplicateCheck("group_size"),
    ]


_MATERNITY_COLUMNS = [
    "year",
    "extract_hes_id",
    "description",
    "procode",
    "epistart",
    "epiend",
    "epiorder",
    "dob",
    "ethnos",
    "admidate",
    "sex",
    "epitype",
    "matage",
    "numbaby",
] + [
    f"{base_field}{slot}"
    for slot in range(1, NUMBER_OF_BABY_SLOTS + 1)
    for base_field in BABY_FIELDS
]

MATERNITY = DatasetVariant(
    name="maternity",
    columns=_MATERNITY_COLUMNS,
    natural_key_columns=["extract_hes_id", "procode", "epistart", "epiorder"],
    entity_column_name="extract_hes_id",
    occurrence_date_column_name="admidate",
    partition_column_name="year",
    checks_factory=maternity_checks,
    inter_record_columns={"all_live_births": all_live_births_sql},
    description="Hospital episode maternity extract with up to three babies",
)

GENERAL_EPISODE = DatasetVariant(
    name="general_episode",
    columns=[
        "patient_id",
        "dob",
        "epistart",
        "epiend",
        "sex",
        "ethnicity",
        "diag_01",
        "diag_02",
        "diag_03",
    ],
    natural_key_columns=["patient_id", "dob", "epistart", "epiend"],
    entity_column_name="patient_id",
    occurrence_date_column_name="epistart",
    partition_column_name="year",
    checks_factory=general_episode_checks,
    description="Generic hospital episodes with up to three diagnosis codes",
)

_DATASET_VARIANTS: Dict[str, DatasetVariant] = {}


def register_dataset_variant(variant: DatasetVariant, overwrite: bool = False):
    if variant.name in _DATASET_VARIANTS and not overwrite:
        raise ValueError(
            f"A dataset variant named '{variant.name}' is already registered"
        )
    _DATASET_VARIANTS[variant.name] = variant


def get_dataset_variant(name: str) -> DatasetVariant:
    try:
        return _DATASET_VARIANTS[name]
    except KeyError:
        known = ", ".join(f"'{n}'" for n in _DATASET_VARIANTS)
        raise ValueError(
            f"Unknown dataset variant '{name}'. Registered variants: {known}"
        ) from None


def dataset_variant_names() -> List[str]:
    return list(_DATASET_VARIANTS)


def _variant_summary(variant: DatasetVariant) -> dict[str, Any]:
    return {
        "name": variant.name,
        "description": variant.description,
        "natural_key_columns": variant.natural_key_columns,
        "num_checks": len(variant.create_checks()),
    }


def describe_dataset_variants(name: Optional[str] = None) -> List[dict[str, Any]]:
    names = [name] if name is not None else dataset_variant_names()
    return [_variant_summary(get_dataset_variant(n)) for n in names]


register_dataset_variant(MATERNITY)
register_dataset_variant(GENERAL_EPISODE)
