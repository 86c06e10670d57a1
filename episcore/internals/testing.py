from __future__ import annotations

from typing import Any, Dict, List, Union

import pyarrow as pa

from episcore.internals.check_creator import CheckCreator
from episcore.internals.code_level_creator import CodeLevelCreator
from episcore.internals.database_api import DatabaseAPISubClass
from episcore.internals.misc import ascii_uid, ensure_is_list
from episcore.internals.pipeline import CTEPipeline


def _evaluate_against_literals(
    sql_expression: str,
    literal_values: Union[Dict[str, Any], List[Dict[str, Any]], pa.Table],
    db_api: DatabaseAPISubClass,
    output_table_name: str,
) -> List[Any]:
    table_name = f"__episcore__temp_table_{ascii_uid(8)}"
    if isinstance(literal_values, pa.Table):
        db_api._table_registration(literal_values, table_name)
    else:
        literal_values_list = ensure_is_list(literal_values)
        db_api._table_registration(literal_values_list, table_name)

    sql_to_evaluate = f"SELECT {sql_expression} as result FROM {table_name}"

    pipeline = CTEPipeline()
    pipeline.enqueue_sql(sql_to_evaluate, output_table_name)
    res = db_api.sql_pipeline_to_episcore_dataframe(pipeline)

    db_api.delete_table_from_database(table_name)

    results = [row["result"] for row in res.as_record_dict()]
    res.drop_table_from_database_and_remove_from_cache()
    return results


def code_level_applies(
    code_level: CodeLevelCreator,
    literal_values: Union[Dict[str, Any], List[Dict[str, Any]], pa.Table],
    db_api: DatabaseAPISubClass,
) -> bool | List[bool]:
    """Whether the condition of `code_level` holds for each literal record"""
    if code_level.is_else_level:
        sql_cond = "TRUE"
    else:
        sql_cond = code_level.create_sql(db_api.sql_dialect)

    result = [
        bool(r)
        for r in _evaluate_against_literals(
            sql_cond, literal_values, db_api, "__episcore__code_level_applies"
        )
    ]
    return result[0] if isinstance(literal_values, dict) else result


def quality_code(
    check: CheckCreator,
    literal_values: Union[Dict[str, Any], List[Dict[str, Any]], pa.Table],
    db_api: DatabaseAPISubClass,
) -> int | List[int]:
    """Evaluate a check against literal records, returning the quality code each
    record receives.

    Examples:
        ```py
        check = FieldCheck("sex", [{"values": [2], "code": 8}])
        quality_code(check, {"sex": 2}, DuckDBAPI())
        8
        ```
    """
    case_statement = check.case_statement(db_api.sql_dialect)
    result = [
        int(r)
        for r in _evaluate_against_literals(
            case_statement, literal_values, db_api, "__episcore__quality_code"
        )
    ]
    return result[0] if isinstance(literal_values, dict) else result
