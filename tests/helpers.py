from abc import ABC, abstractmethod
from collections import UserDict
from datetime import date

import pyarrow as pa

from episcore.internals.duckdb.database_api import DuckDBAPI
from episcore.internals.scorer import Scorer

NUMBER_OF_BABY_SLOTS = 3

_BABY_FIELD_TYPES = {
    "dobbaby": pa.date32(),
    "biresus": pa.int64(),
    "delstat": pa.int64(),
    "birorder": pa.int64(),
    "birstat": pa.int64(),
    "birweit": pa.int64(),
    "delmeth": pa.string(),
    "delplace": pa.int64(),
    "gestat": pa.int64(),
    "sexbaby": pa.int64(),
}

MATERNITY_SCHEMA = pa.schema(
    [
        ("year", pa.int64()),
        ("extract_hes_id", pa.string()),
        ("description", pa.string()),
        ("procode", pa.string()),
        ("epistart", pa.date32()),
        ("epiend", pa.date32()),
        ("epiorder", pa.int64()),
        ("dob", pa.date32()),
        ("ethnos", pa.string()),
        ("admidate", pa.date32()),
        ("sex", pa.int64()),
        ("epitype", pa.int64()),
        ("matage", pa.int64()),
        ("numbaby", pa.int64()),
    ]
    + [
        (f"{field}{slot}", field_type)
        for slot in range(1, NUMBER_OF_BABY_SLOTS + 1)
        for field, field_type in _BABY_FIELD_TYPES.items()
    ]
)

GENERAL_EPISODE_SCHEMA = pa.schema(
    [
        ("patient_id", pa.string()),
        ("dob", pa.date32()),
        ("epistart", pa.date32()),
        ("epiend", pa.date32()),
        ("sex", pa.int64()),
        ("ethnicity", pa.string()),
        ("diag_01", pa.string()),
        ("diag_02", pa.string()),
        ("diag_03", pa.string()),
    ]
)


def maternity_record(**overrides):
    """A singleton live birth in 2015 for which every field check scores 8"""
    record = {
        "year": 2015,
        "extract_hes_id": "P001",
        "description": "delivery episode",
        "procode": "RX1",
        "epistart": date(2015, 3, 1),
        "epiend": date(2015, 3, 3),
        "epiorder": 1,
        "dob": date(1985, 6, 1),
        "ethnos": "A",
        "admidate": date(2015, 3, 1),
        "sex": 2,
        "epitype": 2,
        "matage": 29,
        "numbaby": 1,
        "dobbaby1": date(2015, 3, 2),
        "biresus1": 1,
        "delstat1": 1,
        "birorder1": 1,
        "birstat1": 1,
        "birweit1": 3400,
        "delmeth1": "0",
        "delplace1": 1,
        "gestat1": 40,
        "sexbaby1": 1,
    }
    record.update(overrides)
    return record


def maternity_table(records):
    """Records as an arrow table with the maternity schema, so that columns
    which are null throughout still carry their type"""
    return pa.Table.from_pylist(records, schema=MATERNITY_SCHEMA)


def general_episode_record(**overrides):
    record = {
        "patient_id": "A1",
        "dob": date(1970, 1, 1),
        "epistart": date(2016, 5, 1),
        "epiend": date(2016, 5, 4),
        "sex": 1,
        "ethnicity": "A",
        "diag_01": "J18",
        "diag_02": "I10",
        "diag_03": "E11",
    }
    record.update(overrides)
    return record


def general_episode_table(records):
    return pa.Table.from_pylist(records, schema=GENERAL_EPISODE_SCHEMA)


def templated_names(episcore_dataframes):
    return [df.templated_name for df in episcore_dataframes]


class TestHelper(ABC):
    @property
    def Scorer(self) -> Scorer:
        return Scorer

    @property
    @abstractmethod
    def DatabaseAPI(self):
        pass

    def convert_frame(self, df):
        return df

    def db_api_args(self):
        return {}

    def extra_scorer_args(self):
        # create fresh api each time
        return {"db_api": self.DatabaseAPI(**self.db_api_args())}


class DuckDBTestHelper(TestHelper):
    @property
    def DatabaseAPI(self):
        return DuckDBAPI


class EpiscoreTestException(Exception):
    pass


class LazyDict(UserDict):
    """
    LazyDict
    Like a dict, but values passed are tuples of the form (func, args)
    getting returns the result of the function
    only instantiate the result when we need it.
    Need this for handling test fixtures.
    Disallow setting/deleting entries to catch errors -
    should be effectively immutable
    """

    # write only in creation
    def __init__(self, **kwargs):
        self.data = {}
        # set of keys we have accessed
        self.accessed = set()
        for key, val in kwargs.items():
            self.data[key] = val

    def __getitem__(self, key):
        func, args = self.data[key]
        self.accessed.add(key)
        return func(*args)

    def __setitem__(self, key, value):
        raise EpiscoreTestException(
            "LazyDict does not support setting values. "
            "Did you mean to read value instead?"
        )

    def __delitem__(self, key):
        raise EpiscoreTestException(
            "LazyDict does not support deleting items. "
            "Did you mean to read value instead?"
        )
