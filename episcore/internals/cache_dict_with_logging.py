from __future__ import annotations

import logging
from collections import UserDict
from copy import copy
from typing import List, Optional

from .episcore_dataframe import EpiscoreDataFrame

logger = logging.getLogger(__name__)


class CacheDictWithLogging(UserDict):
    """Stage tables already computed, keyed by the stage's templated name and
    the uid of the scorer that computed it.

    A cache lives on each db_api and may be shared by several scorers, so a
    scorer only reads and invalidates its own stages.
    """

    def __init__(self):
        super().__init__()
        # every table materialised through the owning db_api, in order
        self.executed_queries: List[EpiscoreDataFrame] = []
        self.queries_retrieved_from_cache: List[EpiscoreDataFrame] = []

    @staticmethod
    def stage_key(templated_name: str, scorer_uid: str) -> str:
        return f"{templated_name}_{scorer_uid}"

    def __getitem__(self, key) -> EpiscoreDataFrame:
        # a copy, so renaming the returned frame leaves the cached one intact
        return copy(super().__getitem__(key))

    def __setitem__(self, key, value):
        if not isinstance(value, EpiscoreDataFrame):
            raise TypeError("Cached items must be of type EpiscoreDataFrame")
        super().__setitem__(key, value)

    def get_stage(
        self, templated_name: str, scorer_uid: str
    ) -> Optional[EpiscoreDataFrame]:
        key = self.stage_key(templated_name, scorer_uid)
        if key not in self.data:
            return None

        df = self[key]
        logger.debug(
            f"Using cached {templated_name} of scorer {scorer_uid}"
            f" with physical name {df.physical_name}"
        )
        self.queries_retrieved_from_cache.append(df)
        return df

    def set_stage(
        self, templated_name: str, scorer_uid: str, df: EpiscoreDataFrame
    ) -> None:
        df.templated_name = templated_name
        self[self.stage_key(templated_name, scorer_uid)] = df
        logger.log(
            1, f"Caching {templated_name} of scorer {scorer_uid} as {df.physical_name}"
        )

    def invalidate_cache(self, scorer_uid: Optional[str] = None) -> None:
        """Forget the stages of one scorer, or of every scorer if no uid is
        given. Tables are left in the database."""
        if scorer_uid is None:
            self.data = dict()
            return

        suffix = f"_{scorer_uid}"
        for key in [k for k in self.data if k.endswith(suffix)]:
            del self.data[key]

    def remove_physical_name(self, physical_name: str) -> None:
        """Forget any stage materialised as `physical_name`, e.g. once the table
        has been dropped."""
        stale = [k for k, df in self.data.items() if df.physical_name == physical_name]
        for key in stale:
            del self.data[key]

