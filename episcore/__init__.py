from typing import TYPE_CHECKING

from episcore.internals.quality_codes import CheckCategory, QualityCode
from episcore.internals.scorer import Scorer
from episcore.internals.settings_creator import SettingsCreator

# The following is a workaround for the fact that dependencies of particular backends
# may not be installed, but we don't want this to prevent import of the rest of
# episcore.

# This enables auto-complete to be used to import the DBAPIs
# and ensures that typing information is retained so e.g. the arguments autocomplete
# without importing them at runtime
if TYPE_CHECKING:
    from episcore.internals.duckdb.database_api import DuckDBAPI


# Use getattr to make the error appear at the point of use
def __getattr__(name):
    try:
        if name == "DuckDBAPI":
            from episcore.internals.duckdb.database_api import DuckDBAPI

            return DuckDBAPI
    except ImportError as err:
        if name in ["DuckDBAPI"]:
            raise ImportError(
                f"{name} cannot be imported because its dependencies are not "
                "installed. Please `pip install` the required package(s) as "
                "specified in pyproject.toml"
            ) from err
    raise AttributeError(f"module 'episcore' has no attribute '{name}'") from None


__version__ = "0.3.0"


__all__ = [
    "CheckCategory",
    "DuckDBAPI",
    "QualityCode",
    "Scorer",
    "SettingsCreator",
]
