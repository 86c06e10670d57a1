import duckdb
import pandas as pd
import pytest

from episcore import DuckDBAPI, Scorer, SettingsCreator
from episcore.check_library import DuplicateCheck, FieldCheck
from tests.helpers import (
    general_episode_record,
    general_episode_table,
    templated_names,
)


def _scorer(db_api):
    settings = SettingsCreator(
        dataset_variant="general_episode",
        checks=[FieldCheck("sex", [{"values": [1, 2], "code": 8}]), DuplicateCheck()],
    )
    records = general_episode_table(
        [
            general_episode_record(patient_id="A1"),
            general_episode_record(patient_id="A2", sex=None),
        ]
    )
    return Scorer({2016: records}, settings, db_api)


@pytest.mark.parametrize(
    "connection", [":memory:", ":temporary:", duckdb.connect()], ids=str
)
def test_connection_types(connection):
    db_api = DuckDBAPI(connection=connection)
    df = _scorer(db_api).score().as_pandas_dataframe()
    assert sorted(df["dq_field_sex"]) == [3, 8]


def test_invalid_connection():
    with pytest.raises(TypeError, match="Connection must be a string"):
        DuckDBAPI(connection=42)


def test_write_scores_to_files(tmp_path):
    df_scores = _scorer(DuckDBAPI()).score()

    parquet_path = str(tmp_path / "out" / "scores.parquet")
    df_scores.to_parquet(parquet_path)
    assert len(pd.read_parquet(parquet_path)) == 2

    with pytest.raises(FileExistsError):
        df_scores.to_parquet(parquet_path)
    df_scores.to_parquet(parquet_path, overwrite=True)

    csv_path = str(tmp_path / "scores.csv")
    df_scores.to_csv(csv_path)
    df_csv = pd.read_csv(csv_path)
    assert "adjusted_total_score" in df_csv.columns

    with pytest.raises(SyntaxError, match="does not end"):
        df_scores.to_csv(str(tmp_path / "scores.txt"))


def test_drop_table_and_remove_from_cache():
    db_api = DuckDBAPI()
    scorer = _scorer(db_api)
    df_scores = scorer.score()

    df_scores.drop_table_from_database_and_remove_from_cache()
    assert not db_api.table_exists_in_database(df_scores.physical_name)

    cache = db_api._intermediate_table_cache
    num_executed = len(cache.executed_queries)
    scorer.score()
    assert templated_names(cache.executed_queries[num_executed:]) == [
        "__episcore__df_total_scores"
    ]


def test_tables_not_created_by_episcore_are_protected():
    db_api = DuckDBAPI()
    df = db_api.register_table([{"a": 1}], "lookup")

    with pytest.raises(ValueError, match="not a table created by episcore"):
        df.drop_table_from_database_and_remove_from_cache()
    assert db_api.table_exists_in_database("lookup")

    df.drop_table_from_database_and_remove_from_cache(force_non_episcore_table=True)
    assert not db_api.table_exists_in_database("lookup")


def test_columns_and_limits():
    df_scores = _scorer(DuckDBAPI()).score()
    assert "weight_dq_field_sex" not in df_scores.columns
    assert "dq_field_sex_scaled" in df_scores.columns
    assert len(df_scores.as_record_dict(limit=1)) == 1
    assert len(df_scores.as_duckdbpyrelation().fetchall()) == 2


def test_lazy_backend_import():
    import episcore

    assert episcore.DuckDBAPI is DuckDBAPI
    with pytest.raises(AttributeError, match="no attribute 'SparkAPI'"):
        episcore.SparkAPI
