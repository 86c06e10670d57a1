import logging

import pytest

from tests.decorator import dialect_groups
from tests.helpers import DuckDBTestHelper, LazyDict

logger = logging.getLogger(__name__)


def pytest_collection_modifyitems(items, config):
    # any tests without backend-group markers will always run
    marks = {gp for groups in dialect_groups.values() for gp in groups}
    # any mark we've added, but excluding e.g. parametrize
    our_marks = {*marks, *dialect_groups.keys()}

    for item in items:
        if not any(marker.name in our_marks for marker in item.iter_markers()):
            item.add_marker("core")
            for mark in our_marks:
                item.add_marker(mark)


@pytest.fixture
def test_helpers():
    # LazyDict to lazy-load helpers
    # That way we do not instantiate helpers we do not need
    helper_dict = LazyDict(
        duckdb=(DuckDBTestHelper, []),
    )
    yield helper_dict


@pytest.fixture
def db_api():
    from episcore import DuckDBAPI

    return DuckDBAPI()
