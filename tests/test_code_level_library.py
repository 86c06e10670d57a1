from datetime import date

import pytest

from episcore import DuckDBAPI, QualityCode
from episcore.code_level_library import (
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
from episcore.exceptions import EpiscoreException
from episcore.internals.dialects import DuckDBDialect
from episcore.testing import code_level_applies

db_api = DuckDBAPI()
dialect = DuckDBDialect()


def test_code_level_applies():
    test_cases = [
        {
            "level": NullLevel("sex"),
            "inputs": [
                {"sex": None, "expected": True},
                {"sex": 2, "expected": False},
            ],
        },
        {
            "level": ValuesLevel("ethnos", ["9", "Z"]),
            "inputs": [
                {"ethnos": "Z", "expected": True},
                {"ethnos": "9", "expected": True},
                {"ethnos": "A", "expected": False},
            ],
        },
        {
            "level": RangeLevel("epiorder", 1, 87),
            "inputs": [
                {"epiorder": 1, "expected": True},
                {"epiorder": 87, "expected": True},
                {"epiorder": 88, "expected": False},
                {"epiorder": 0, "expected": False},
            ],
        },
        {
            "level": RangeLevel("birweit", upper=200),
            "inputs": [
                {"birweit": -5, "expected": True},
                {"birweit": 201, "expected": False},
            ],
        },
        {
            "level": ThresholdLevel("birweit", ">", 7000),
            "inputs": [
                {"birweit": 7001, "expected": True},
                {"birweit": 7000, "expected": False},
            ],
        },
        {
            "level": ColumnComparisonLevel("dobbaby1", "<", "admidate"),
            "inputs": [
                {
                    "dobbaby1": date(2015, 2, 27),
                    "admidate": date(2015, 3, 1),
                    "expected": True,
                },
                {
                    "dobbaby1": date(2015, 3, 1),
                    "admidate": date(2015, 3, 1),
                    "expected": False,
                },
            ],
        },
        {
            "level": YearsSinceLevel("year", "dob", 60),
            "inputs": [
                {"year": 2015, "dob": date(1955, 12, 31), "expected": True},
                {"year": 2015, "dob": date(1956, 1, 1), "expected": False},
            ],
        },
        {
            "level": YearMismatchLevel("admidate", "year"),
            "inputs": [
                {"admidate": date(2014, 12, 31), "year": 2015, "expected": True},
                {"admidate": date(2015, 1, 1), "year": 2015, "expected": False},
            ],
        },
        {
            "level": ElseLevel(),
            "inputs": [
                {"sex": 3, "expected": True},
            ],
        },
    ]

    for case in test_cases:
        inputs = [
            {k: v for k, v in input_data.items() if k != "expected"}
            for input_data in case["inputs"]
        ]
        expected = [input_data["expected"] for input_data in case["inputs"]]
        results = code_level_applies(case["level"], inputs, db_api)
        assert results == expected, case["level"]


def test_code_level_applies_to_single_record():
    assert code_level_applies(ValuesLevel("sex", 2), {"sex": 2}, db_api) is True


def test_composition_sql():
    level = And(
        RangeLevel("numbaby", 0, 6),
        Or(NullLevel("birweit1"), Not(ValuesLevel("birstat1", 1))),
    )
    assert level.create_sql(dialect) == (
        "(numbaby BETWEEN 0 AND 6) AND "
        "((birweit1 IS NULL) OR (NOT (birstat1 = 1)))"
    )
    assert level.input_columns == ["numbaby", "birweit1", "birstat1"]


def test_composition_evaluates():
    level = And(RangeLevel("numbaby", 0, 6), ThresholdLevel("numbaby", "<", 2))
    results = code_level_applies(
        level, [{"numbaby": 1}, {"numbaby": 2}, {"numbaby": 9}], db_api
    )
    assert results == [True, False, False]


def test_values_level_renders_literals():
    assert ValuesLevel("ethnos", "X").create_sql(dialect) == "ethnos = 'X'"
    assert ValuesLevel("sex", [1, 2]).create_sql(dialect) == "sex IN (1, 2)"
    assert ValuesLevel("name", "O'Neil").create_sql(dialect) == "name = 'O''Neil'"


def test_configure_quality_code_and_label():
    level = ValuesLevel("sex", 1).configure(
        quality_code=2, label="male mother"
    )
    assert level.quality_code == QualityCode.INFEASIBLE
    assert level.label == "male mother"
    assert level.when_then_sql(dialect) == "WHEN sex = 1 THEN 2"

    level_dict = level.create_level_dict("duckdb")
    assert level_dict == {
        "sql_condition": "sex = 1",
        "label": "male mother",
        "input_columns": ["sex"],
        "quality_code": 2,
    }


def test_level_without_code_cannot_render_a_branch():
    with pytest.raises(EpiscoreException, match="has no quality code"):
        RangeLevel("epitype", 1, 6).when_then_sql(dialect)


def test_else_level():
    level = ElseLevel(QualityCode.VALID)
    assert level.is_else_level
    assert level.when_then_sql(dialect) == "ELSE 8"
    assert level.create_level_dict("duckdb")["sql_condition"] == "ELSE"


def test_custom_level_round_trip():
    level = CustomLevel._convert_to_creator(
        {
            "sql_condition": "numbaby BETWEEN 1 AND 3",
            "quality_code": 8,
            "label": "a small number of babies",
        }
    )
    assert level.create_sql(dialect) == "numbaby BETWEEN 1 AND 3"
    assert level.quality_code == QualityCode.VALID
    assert level.label == "a small number of babies"

    else_level = CustomLevel._convert_to_creator(
        {"sql_condition": "ELSE", "quality_code": 1}
    )
    assert else_level.is_else_level


def test_invalid_levels():
    with pytest.raises(ValueError):
        RangeLevel("epiorder", 87, 1)
    with pytest.raises(ValueError):
        RangeLevel("epiorder")
    with pytest.raises(ValueError):
        ThresholdLevel("birweit", "=>", 1)
    with pytest.raises(ValueError):
        ValuesLevel("sex", [])
    with pytest.raises(TypeError):
        NullLevel(None)
