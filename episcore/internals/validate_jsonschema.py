from __future__ import annotations

import json
import operator
from functools import lru_cache, reduce
from typing import Any

from jsonschema import Draft7Validator

from episcore.internals.exceptions import InvalidEpiscoreInput
from episcore.internals.misc import read_resource


@lru_cache()
def get_schema():
    path = "internals/files/settings_jsonschema.json"
    return json.loads(read_resource(path))


def get_from_dict(dataDict, mapList):
    return reduce(operator.getitem, mapList, dataDict)


def _get_enclosing(e, settings_dict, key):
    path = list(e.path)
    try:
        index_of_key = path.index(key)
    except ValueError:
        return None
    return get_from_dict(settings_dict, path[: index_of_key + 2])


def validate_settings_against_schema(settings_dict: dict[str, Any]) -> None:
    """Validate an episcore settings dictionary against its jsonschema"""

    v = Draft7Validator(get_schema())

    e = next(v.iter_errors(settings_dict), None)
    if e is None:
        return

    code_level = _get_enclosing(e, settings_dict, "code_levels")
    check = _get_enclosing(e, settings_dict, "checks") or _get_enclosing(
        e, settings_dict, "additional_checks"
    )

    error_in = ""
    if code_level:
        error_in += f"The code level is: {json.dumps(code_level, default=str)}\n\n"
    if check:
        error_in += f"The check is: {json.dumps(check, default=str)}\n\n"
    if error_in == "":
        error_in = (
            "The error is in the main settings object, not in the "
            "checks or code levels."
        )

    path = list(e.path)
    message = (
        f"There was at least one error in your settings dictionary.\n\n"
        f"The first error was:   {e.message}\n\n"
        f"The path to the error is:\n     {json.dumps(path)}\n\n"
        f"The part of your settings dictionary containing this error is:\n"
        f"{json.dumps(e.instance, default=str)}\n"
        f"{error_in}\n"
    )
    raise InvalidEpiscoreInput(message)
