from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List

from episcore.internals.cache_dict_with_logging import CacheDictWithLogging
from episcore.internals.database_api import (
    AcceptableInputTableType,
    DatabaseAPISubClass,
)
from episcore.internals.dialects import EpiscoreDialect
from episcore.internals.input_preparation import concatenate_input_sql, prepare_input
from episcore.internals.misc import ascii_uid
from episcore.internals.pipeline import CTEPipeline
from episcore.internals.scorer_components.checks import ScorerChecks
from episcore.internals.scorer_components.deduplication import ScorerDeduplication
from episcore.internals.scorer_components.misc import ScorerMisc
from episcore.internals.scorer_components.table_management import (
    ScorerTableManagement,
)
from episcore.internals.scorer_components.weighting import ScorerWeighting
from episcore.internals.settings import Settings
from episcore.internals.settings_creator import SettingsCreator

from .episcore_dataframe import EpiscoreDataFrame

logger = logging.getLogger(__name__)


class Scorer:
    """The Scorer deduplicates episode records and scores their data quality.

    Work is split into stages, each materialised as a table in the backend and
    cached, so that later stages reuse earlier ones:

    records -> duplicate groups -> retention flags -> quality codes
    -> check weights -> total scores

    Most functionality is accessed through the components, e.g.
    `scorer.deduplication.retention_flags()` or `scorer.weighting.total_scores()`.
    """

    def __init__(
        self,
        input_data: AcceptableInputTableType | Dict[Any, AcceptableInputTableType],
        settings: SettingsCreator | dict[str, Any] | Path | str,
        db_api: DatabaseAPISubClass,
        set_up_basic_logging: bool = True,
    ):
        """
        Initialise the scorer, registering the input records with the backend
        and checking that they carry the columns the settings need.

        Examples:
            Records split by data year
            ```py
            scorer = Scorer({2015: df_2015, 2016: df_2016}, settings, DuckDBAPI())
            df_scores = scorer.weighting.total_scores()
            ```
            A single table with a partition column, using a saved settings file
            ```py
            scorer = Scorer(df, "settings.json", DuckDBAPI())
            ```

        Args:
            input_data: Either a mapping of partition key (e.g. data year) to a
                table, or a single table already carrying the partition column. A
                table is a pandas DataFrame, a pyarrow Table or a list of record
                dicts. Records are expected to be cleaned and typed already.
            settings (SettingsCreator | dict | Path | str): Settings, or a path to
                a json file of settings, e.g. one written by
                `scorer.misc.save_settings_to_json()`.
            db_api (DatabaseAPI): Manages interactions with the database, e.g.
                `episcore.DuckDBAPI()`.
            set_up_basic_logging (bool, optional): If true, sets up basic logging
                so that episcore sends messages at INFO level to stdout. Defaults to
                True.
        """
        if set_up_basic_logging:
            logging.basicConfig(
                format="%(message)s",
            )
            episcore_logger = logging.getLogger("episcore")
            episcore_logger.setLevel(logging.INFO)

        self._db_api = db_api
        # keys are suffixed with this uid since the cache lives on the db_api
        self._cache_uid = ascii_uid(8)
        self._intermediate_table_cache: CacheDictWithLogging = (
            self._db_api._intermediate_table_cache
        )

        # Turn into a creator
        if not isinstance(settings, SettingsCreator):
            settings_creator = SettingsCreator.from_path_or_dict(settings)
        else:
            settings_creator = settings

        self._settings_obj: Settings = settings_creator.get_settings(
            db_api.sql_dialect.sql_dialect_str
        )

        self._prepared_input = prepare_input(input_data, self._settings_obj, db_api)
        logger.info(
            f"Scoring {self._prepared_input.num_tables} input table(s) as "
            f"'{self._settings_obj.dataset_variant.name}' records with "
            f"{len(self._settings_obj.checks)} checks"
        )

        self.checks: "ScorerChecks" = ScorerChecks(self)
        self.deduplication: "ScorerDeduplication" = ScorerDeduplication(self)
        self.misc: "ScorerMisc" = ScorerMisc(self)
        self.table_management: "ScorerTableManagement" = ScorerTableManagement(self)
        self.weighting: "ScorerWeighting" = ScorerWeighting(self)

    # convenience wrappers:
    @property
    def _debug_mode(self) -> bool:
        return self._db_api.debug_mode

    @_debug_mode.setter
    def _debug_mode(self, value: bool) -> None:
        self._db_api.debug_mode = value

    @property
    def _sql_dialect(self) -> EpiscoreDialect:
        return self._db_api.sql_dialect

    @property
    def empty_partitions(self) -> List[Any]:
        """Partition keys whose input table held no records"""
        return list(self._prepared_input.empty_partitions)

    @property
    def settings(self) -> Settings:
        return self._settings_obj

    def _get_or_compute(
        self,
        templated_name: str,
        compute: Callable[[], EpiscoreDataFrame],
    ) -> EpiscoreDataFrame:
        cache = self._intermediate_table_cache
        cached = cache.get_stage(templated_name, self._cache_uid)
        if cached is not None:
            return cached

        logger.info(f"Computing {templated_name}")
        df = compute()
        cache.set_stage(templated_name, self._cache_uid, df)
        return df

    def _input_table(self) -> EpiscoreDataFrame:
        """The vertically concatenated input records, numbered within each
        partition"""

        def compute() -> EpiscoreDataFrame:
            pipeline = CTEPipeline()
            sql = concatenate_input_sql(self._prepared_input, self._settings_obj)
            pipeline.enqueue_sql(sql, "__episcore__df_input")
            return self._db_api.sql_pipeline_to_episcore_dataframe(pipeline)

        return self._get_or_compute("__episcore__df_input", compute)

    def score(self) -> EpiscoreDataFrame:
        """Run every stage and return per-record quality codes, retention flags
        and total scores. Equivalent to `scorer.weighting.total_scores()`"""
        return self.weighting.total_scores()
