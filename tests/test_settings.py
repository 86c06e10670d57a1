import json
import os

import pytest

from episcore import DuckDBAPI, Scorer, SettingsCreator
from episcore.check_library import CustomCheck, FieldCheck
from episcore.exceptions import EpiscoreException, InvalidEpiscoreInput
from episcore.internals.dataset_variants import describe_dataset_variants
from episcore.retention_policies import KeepMostRecentPolicy
from tests.helpers import (
    general_episode_record,
    general_episode_table,
    maternity_record,
    maternity_table,
)


def test_variant_defaults():
    settings = SettingsCreator().get_settings("duckdb")

    assert settings.dataset_variant.name == "maternity"
    assert settings.natural_key_columns == [
        "extract_hes_id",
        "procode",
        "epistart",
        "epiorder",
    ]
    assert settings.entity_column_name == "extract_hes_id"
    assert settings.occurrence_date_column_name == "admidate"
    assert settings.partition_column_name == "year"
    assert settings.retention_flag_columns == ["is_first", "is_most_complete"]
    assert len(settings.checks) == 47
    assert "dq_inter_interval" in [c.output_column_name for c in settings.checks]


def test_overrides_and_additional_checks():
    settings = SettingsCreator(
        dataset_variant="general_episode",
        natural_key_columns=["patient_id", "epistart"],
        additional_checks=[
            FieldCheck("diag_02", else_code=8),
            {
                "name": "long_stay",
                "category": "intra",
                "code_levels": [
                    {
                        "sql_condition": "epiend - epistart > 365",
                        "quality_code": 7,
                    },
                    {"sql_condition": "ELSE", "quality_code": 8},
                ],
            },
        ],
        retention_policies=["keep_first", KeepMostRecentPolicy("epiend")],
        scorer_uid="abc",
    ).get_settings("duckdb")

    assert settings.natural_key_columns == ["patient_id", "epistart"]
    outputs = [c.output_column_name for c in settings.checks]
    assert outputs[-2:] == ["dq_field_diag_02", "dq_intra_long_stay"]
    assert isinstance(settings.checks[-1], CustomCheck)
    assert settings.retention_flag_columns == ["is_first", "is_most_recent"]
    assert settings.scorer_uid == "abc"


def test_checks_replace_variant_checks():
    settings = SettingsCreator(
        dataset_variant="general_episode",
        checks=[FieldCheck("sex", [{"values": [1, 2], "code": 8}])],
    ).get_settings("duckdb")
    assert [c.output_column_name for c in settings.checks] == ["dq_field_sex"]
    assert "sex" in settings.required_input_columns


def test_invalid_settings():
    with pytest.raises(ValueError, match="Unknown dataset variant"):
        SettingsCreator(dataset_variant="outpatients").get_settings("duckdb")

    with pytest.raises(ValueError, match="Unknown retention policy"):
        SettingsCreator(retention_policies=["keep_last"]).get_settings("duckdb")

    with pytest.raises(EpiscoreException, match="share the output column"):
        SettingsCreator(additional_checks=[FieldCheck("sex")]).get_settings(
            "duckdb"
        )

    with pytest.raises(EpiscoreException, match="natural key"):
        SettingsCreator(natural_key_columns=[]).get_settings("duckdb")

    with pytest.raises(EpiscoreException, match="At least one check"):
        SettingsCreator(checks=[]).get_settings("duckdb")


def test_settings_dict_validated_against_schema():
    with pytest.raises(InvalidEpiscoreInput, match="allow_empty_partitions"):
        SettingsCreator.from_path_or_dict({"allow_empty_partitions": "yes"})

    with pytest.raises(InvalidEpiscoreInput, match="The check is"):
        SettingsCreator.from_path_or_dict(
            {
                "additional_checks": [
                    {
                        "name": "sex",
                        "category": "field",
                        "code_levels": [{"sql_condition": "ELSE", "quality_code": 9}],
                    }
                ]
            }
        )

    with pytest.raises(InvalidEpiscoreInput):
        SettingsCreator.from_path_or_dict({"link_type": "dedupe_only"})

    creator = SettingsCreator.from_path_or_dict(
        {"dataset_variant": "general_episode", "allow_empty_partitions": True}
    )
    assert creator.allow_empty_partitions is True


def test_settings_path_must_exist(tmp_path):
    with pytest.raises(ValueError, match="does not point to a valid file"):
        SettingsCreator.from_path_or_dict(os.path.join(tmp_path, "missing.json"))
    with pytest.raises(TypeError):
        SettingsCreator.from_path_or_dict(42)


def test_save_and_load_settings(tmp_path):
    records = {2015: maternity_table([maternity_record()])}
    scorer = Scorer(records, SettingsCreator(), DuckDBAPI())

    path = os.path.join(tmp_path, "settings.json")
    settings_dict = scorer.misc.save_settings_to_json(path)
    with open(path, encoding="utf-8") as f:
        assert json.load(f) == settings_dict

    with pytest.raises(ValueError, match="already exists"):
        scorer.misc.save_settings_to_json(path)

    loaded = Scorer(records, path, DuckDBAPI())
    assert loaded.settings.scorer_uid == scorer.settings.scorer_uid
    assert [c.output_column_name for c in loaded.settings.checks] == [
        c.output_column_name for c in scorer.settings.checks
    ]

    columns = ["year", "record_row", "unadjusted_total_score"]
    assert (
        loaded.score().as_pandas_dataframe()[columns].to_dict("records")
        == scorer.score().as_pandas_dataframe()[columns].to_dict("records")
    )


def test_missing_input_columns_reported_together():
    record = general_episode_record()
    del record["sex"], record["diag_01"]
    table = [{**record, "year": 2016}]
    with pytest.raises(InvalidEpiscoreInput) as excinfo:
        Scorer(
            table,
            SettingsCreator(dataset_variant="general_episode"),
            DuckDBAPI(),
        )
    message = str(excinfo.value)
    assert "sex" in message
    assert "diag_01" in message


def test_single_table_input_needs_partition_column():
    records = [general_episode_record()]
    settings = SettingsCreator(dataset_variant="general_episode")

    with pytest.raises(InvalidEpiscoreInput, match="partition column"):
        Scorer(records, settings, DuckDBAPI())

    scorer = Scorer(
        [{**r, "year": 2016} for r in records], settings, DuckDBAPI()
    )
    (record,) = scorer.score().as_record_dict()
    assert record["year"] == 2016
    assert record["record_row"] == 1


def test_describe_dataset_variants():
    descriptions = {d["name"]: d for d in describe_dataset_variants()}
    assert descriptions["maternity"]["num_checks"] == 47
    assert descriptions["general_episode"]["natural_key_columns"] == [
        "patient_id",
        "dob",
        "epistart",
        "epiend",
    ]
