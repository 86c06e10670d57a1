import pytest

from episcore import DuckDBAPI
from episcore.internals.pipeline import CTE, CTEPipeline


def test_step_lineage_separates_stages_from_tables():
    cte = CTE(
        """
        select f.*, t.region
        from __episcore__df_retention_flags as f
        left join trusts as t on f.procode = t.procode
        """,
        "__episcore__df_with_region",
    )
    assert cte.tables_read == ["__episcore__df_retention_flags", "trusts"]
    assert cte.describe() == (
        "__episcore__df_with_region reads stages "
        "[__episcore__df_retention_flags] and tables [trusts]"
    )


def test_unparseable_step_is_still_described():
    cte = CTE("select * from (", "__episcore__df_broken")
    assert cte.tables_read is None
    assert "could not be parsed" in cte.describe()


def test_input_frames_are_exposed_under_their_templated_name():
    db_api = DuckDBAPI()
    df = db_api.register_table([{"a": 1}, {"a": 2}], "raw_records")
    df.templated_name = "__episcore__df_input"

    pipeline = CTEPipeline([df])
    pipeline.enqueue_sql(
        "select sum(a) as total from __episcore__df_input", "__episcore__df_total"
    )
    sql = pipeline.generate_cte_pipeline_sql()
    assert "__episcore__df_input as (\nselect * from raw_records)" in sql

    with pytest.raises(ValueError, match="already been used"):
        pipeline.enqueue_sql("select 1", "__episcore__df_other")
    with pytest.raises(ValueError, match="already been used"):
        pipeline.generate_cte_pipeline_sql()


def test_pipeline_runs_as_one_table(caplog):
    db_api = DuckDBAPI()
    df = db_api.register_table([{"a": 1}, {"a": 2}], "raw_records")
    df.templated_name = "__episcore__df_input"

    pipeline = CTEPipeline([df])
    pipeline.enqueue_sql(
        "select a * 10 as b from __episcore__df_input", "__episcore__df_scaled"
    )
    pipeline.enqueue_sql(
        "select sum(b) as total from __episcore__df_scaled", "__episcore__df_total"
    )

    with caplog.at_level(7, logger="episcore"):
        result = db_api.sql_pipeline_to_episcore_dataframe(pipeline)

    assert result.templated_name == "__episcore__df_total"
    assert result.as_record_dict() == [{"total": 30}]
    assert "step 3: __episcore__df_total reads stages [__episcore__df_scaled]" in (
        caplog.text
    )


def test_empty_pipeline_cannot_be_run():
    with pytest.raises(ValueError, match="no steps"):
        CTEPipeline().generate_cte_pipeline_sql()
