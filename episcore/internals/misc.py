from __future__ import annotations

import pkgutil
import random
import string
from collections import namedtuple
from datetime import date, datetime, timedelta
from math import ceil
from typing import Any, TypeVar

T = TypeVar("T")


def dedupe_preserving_order(list_of_items: list[T]) -> list[T]:
    return list(dict.fromkeys(list_of_items))


def ensure_is_list(a: list[T] | T) -> list[T]:
    return a if isinstance(a, list) else [a]


def join_list_with_commas_final_and(lst: list[str]) -> str:
    if len(lst) == 1:
        return lst[0]
    return ", ".join(lst[:-1]) + " and " + lst[-1]


def ascii_uid(len: int) -> str:
    # lowercase only, as table names are case-insensitive in most backends
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=len))


def sql_literal(value: Any) -> str:
    """Render a python scalar (e.g. a partition key) as a SQL literal"""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, datetime):
        return f"TIMESTAMP '{value.isoformat(sep=' ')}'"
    if isinstance(value, date):
        return f"DATE '{value.isoformat()}'"
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def parse_duration(duration: float) -> str:
    # math.ceil to clean up our output for anything over a minute
    seconds = int(ceil(duration))
    if seconds < 60:
        return "{:.5f} seconds".format(duration)

    d = datetime(1, 1, 1) + timedelta(seconds=seconds)
    time_index = namedtuple("time_index", ["Hour", "Minute", "Second"])
    duration_info = time_index(d.hour, d.minute, d.second)

    txt_duration = []
    for t, field in zip(duration_info, duration_info._fields):
        if t == 0:
            continue
        txt = f"{t} {field}s" if t > 1 else f"{t} {field}"
        txt_duration.append(txt)

    if len(txt_duration) > 1:
        # pop off the final bit of text so we can return
        # " and n seconds"
        fin = f" and {txt_duration.pop(-1)}"
        return ", ".join(txt_duration) + fin
    else:
        return txt_duration.pop()


def read_resource(path: str) -> str:
    """Reads a resource file from the episcore package"""
    if (resource_data := pkgutil.get_data("episcore", path)) is None:
        raise FileNotFoundError(f"Could not locate episcore resource at: {path}")
    return resource_data.decode("utf-8")
