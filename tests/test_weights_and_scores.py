import pytest

from episcore import SettingsCreator
from episcore.check_library import DuplicateCheck, FieldCheck
from episcore.exceptions import EmptyPartitionException
from tests.helpers import (
    general_episode_record,
    general_episode_table,
    maternity_record,
    maternity_table,
)

from .decorator import mark_with_dialects_excluding


def _sex_and_duplicate_settings(**kwargs):
    return SettingsCreator(
        dataset_variant="general_episode",
        checks=[
            FieldCheck("sex", [{"values": [1, 2], "code": 8}]),
            DuplicateCheck(),
        ],
        **kwargs,
    )


def _three_patients(**overrides):
    return general_episode_table(
        [
            general_episode_record(patient_id="A1", sex=1, **overrides),
            general_episode_record(patient_id="A2", sex=None, **overrides),
            general_episode_record(patient_id="A3", sex=7, **overrides),
        ]
    )


@mark_with_dialects_excluding()
def test_weights_and_total_scores(test_helpers, dialect):
    helper = test_helpers[dialect]
    scorer = helper.Scorer(
        {2016: _three_patients()},
        _sex_and_duplicate_settings(),
        **helper.extra_scorer_args(),
    )

    weights = scorer.weighting.check_weights().as_record_dict()
    assert weights == [
        {
            "year": 2016,
            "record_count": 3,
            "weight_dq_field_sex": pytest.approx(0.5),
            "weight_dq_inter_is_duplicate": pytest.approx(1.0),
        }
    ]

    df = scorer.weighting.total_scores().as_pandas_dataframe()
    assert list(df["dq_field_sex"]) == [8, 3, 1]
    assert list(df["unadjusted_total_score"]) == [808, 803, 801]
    assert list(df["adjusted_total_score"]) == pytest.approx([804, 801.5, 800.5])


@mark_with_dialects_excluding()
def test_weights_are_derived_per_partition(test_helpers, dialect):
    helper = test_helpers[dialect]
    all_valid = general_episode_table(
        [
            general_episode_record(patient_id="B1", sex=2),
            general_episode_record(patient_id="B2", sex=1),
        ]
    )
    scorer = helper.Scorer(
        {2016: _three_patients(), 2017: all_valid},
        _sex_and_duplicate_settings(),
        **helper.extra_scorer_args(),
    )
    weights = {
        r["year"]: r["weight_dq_field_sex"]
        for r in scorer.weighting.check_weights().as_record_dict()
    }
    assert weights == {2016: pytest.approx(0.5), 2017: pytest.approx(1.0)}

    df = scorer.score().as_pandas_dataframe()
    df_2017 = df[df["year"] == 2017]
    assert list(df_2017["adjusted_total_score"]) == pytest.approx([808, 808])


@mark_with_dialects_excluding()
def test_maternity_scores_of_a_clean_record(test_helpers, dialect):
    helper = test_helpers[dialect]
    scorer = helper.Scorer(
        {2015: maternity_table([maternity_record()])},
        SettingsCreator(dataset_variant="maternity"),
        **helper.extra_scorer_args(),
    )
    (record,) = scorer.score().as_record_dict()

    # a single baby, so the birth weight checks of the second and third
    # slots have no inputs
    assert record["dq_intra_realistic_baby_weight1"] == 8
    assert record["dq_intra_realistic_baby_weight2"] == 3
    assert record["dq_intra_realistic_baby_weight3"] == 3
    codes = [
        v
        for k, v in record.items()
        if k.startswith("dq_")
        and not k.endswith("_scaled")
        and "realistic_baby_weight" not in k
    ]
    assert len(codes) == 12 + 30 + 2
    assert set(codes) == {8}

    # 12 field checks, 33 intra checks and 2 inter checks
    assert record["unadjusted_total_score"] == 12 * 8 + 31 * 80 + 2 * 30 + 2 * 800
    assert record["adjusted_total_score"] == pytest.approx(
        12 * 8 + 31 * 80 + 2 * 30 * 3 / 8 + 2 * 800
    )

    (weights,) = scorer.weighting.check_weights().as_record_dict()
    assert weights["weight_dq_field_ethnos"] == pytest.approx(1.0)
    assert weights["weight_dq_intra_realistic_baby_weight2"] == pytest.approx(0.375)


@mark_with_dialects_excluding()
def test_weights_lie_between_zero_and_one(test_helpers, dialect):
    helper = test_helpers[dialect]
    records = [
        maternity_record(),
        maternity_record(extract_hes_id="P002", ethnos="Q", sex=1, numbaby=9),
        maternity_record(extract_hes_id="P003", birweit1=9999, gestat1=None),
        maternity_record(extract_hes_id=None, matage=0, epiorder=None),
    ]
    scorer = helper.Scorer(
        {2015: maternity_table(records)},
        SettingsCreator(dataset_variant="maternity"),
        **helper.extra_scorer_args(),
    )
    (weights,) = scorer.weighting.check_weights().as_record_dict()
    weight_values = [v for k, v in weights.items() if k.startswith("weight_")]
    assert len(weight_values) == len(scorer.settings.checks)
    assert all(0 <= w <= 1 for w in weight_values)
    assert weights["record_count"] == 4


@mark_with_dialects_excluding()
def test_scoring_is_idempotent(test_helpers, dialect):
    helper = test_helpers[dialect]
    records = {2016: _three_patients()}

    scorer = helper.Scorer(
        records, _sex_and_duplicate_settings(), **helper.extra_scorer_args()
    )
    first = scorer.score()
    second = scorer.score()
    assert first.physical_name == second.physical_name

    rescorer = helper.Scorer(
        records, _sex_and_duplicate_settings(), **helper.extra_scorer_args()
    )
    columns = ["year", "record_row", "adjusted_total_score"]
    assert (
        rescorer.score().as_pandas_dataframe()[columns].to_dict("records")
        == first.as_pandas_dataframe()[columns].to_dict("records")
    )


@mark_with_dialects_excluding()
def test_empty_partition_raises_by_default(test_helpers, dialect):
    helper = test_helpers[dialect]
    scorer = helper.Scorer(
        {2016: _three_patients(), 2017: general_episode_table([])},
        _sex_and_duplicate_settings(),
        **helper.extra_scorer_args(),
    )
    assert scorer.empty_partitions == [2017]

    # codes do not depend on partition weights
    df = scorer.checks.record_quality_codes().as_pandas_dataframe()
    assert len(df) == 3

    with pytest.raises(EmptyPartitionException) as excinfo:
        scorer.weighting.total_scores()
    assert excinfo.value.empty_partitions == [2017]


@mark_with_dialects_excluding()
def test_empty_partition_allowed(test_helpers, dialect, caplog):
    helper = test_helpers[dialect]
    scorer = helper.Scorer(
        {2016: _three_patients(), 2017: general_episode_table([])},
        _sex_and_duplicate_settings(allow_empty_partitions=True),
        **helper.extra_scorer_args(),
    )
    with caplog.at_level("WARNING"):
        weights = scorer.weighting.check_weights().as_record_dict()
    assert "2017" in caplog.text

    assert [w["year"] for w in weights] == [2016, 2017]
    assert weights[1]["record_count"] == 0
    assert weights[1]["weight_dq_field_sex"] is None

    df = scorer.weighting.total_scores().as_pandas_dataframe()
    assert set(df["year"]) == {2016}


@mark_with_dialects_excluding()
def test_all_partitions_empty_raises_by_default(test_helpers, dialect):
    helper = test_helpers[dialect]
    scorer = helper.Scorer(
        {2016: general_episode_table([]), 2017: general_episode_table([])},
        _sex_and_duplicate_settings(),
        **helper.extra_scorer_args(),
    )
    assert scorer.empty_partitions == [2016, 2017]

    with pytest.raises(EmptyPartitionException) as excinfo:
        scorer.weighting.check_weights()
    assert excinfo.value.empty_partitions == [2016, 2017]

    with pytest.raises(EmptyPartitionException):
        scorer.score()


@mark_with_dialects_excluding()
def test_all_partitions_empty_allowed(test_helpers, dialect):
    helper = test_helpers[dialect]
    scorer = helper.Scorer(
        {2016: general_episode_table([])},
        _sex_and_duplicate_settings(allow_empty_partitions=True),
        **helper.extra_scorer_args(),
    )

    weights = scorer.weighting.check_weights().as_record_dict()
    assert weights == [
        {
            "year": 2016,
            "record_count": 0,
            "weight_dq_field_sex": None,
            "weight_dq_inter_is_duplicate": None,
        }
    ]

    df_scores = scorer.score()
    assert df_scores.as_record_dict() == []
    assert "adjusted_total_score" in df_scores.columns


@mark_with_dialects_excluding()
def test_output_without_input_columns(test_helpers, dialect):
    helper = test_helpers[dialect]
    scorer = helper.Scorer(
        {2016: _three_patients()},
        _sex_and_duplicate_settings(retain_input_columns=False),
        **helper.extra_scorer_args(),
    )
    columns = scorer.score().columns

    assert "ethnicity" not in columns
    for col in (
        "year",
        "record_row",
        "is_first",
        "is_most_complete",
        "dq_field_sex",
        "dq_field_sex_scaled",
        "unadjusted_total_score",
        "adjusted_total_score",
    ):
        assert col in columns
