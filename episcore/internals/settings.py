from __future__ import annotations

import logging
from typing import Any, Dict, List

from episcore.internals.check_creator import CheckCreator
from episcore.internals.dataset_variants import DatasetVariant
from episcore.internals.dialects import EpiscoreDialect
from episcore.internals.exceptions import EpiscoreException
from episcore.internals.misc import dedupe_preserving_order
from episcore.internals.retention_policies import GroupSelectionPolicy

logger = logging.getLogger(__name__)

# columns created during scoring. Input columns sharing these names are
# shadowed, so they are reported when validating the input
RESERVED_COLUMN_NAMES = [
    "group_id",
    "ith_duplicate",
    "group_size",
    "num_filled_fields",
    "previous_occurrence_date",
    "weeks_since_previous",
    "unadjusted_total_score",
    "adjusted_total_score",
    "record_count",
]


class Settings:
    """Resolved settings: the dataset variant's defaults overlaid with any
    user-supplied values, with checks and retention policies as concrete
    objects. Created by `SettingsCreator.get_settings`."""

    def __init__(
        self,
        dataset_variant: DatasetVariant,
        checks: List[CheckCreator],
        natural_key_columns: List[str],
        entity_column_name: str,
        occurrence_date_column_name: str,
        partition_column_name: str,
        record_row_column_name: str,
        populated_field_columns: List[str],
        retention_policies: List[GroupSelectionPolicy],
        allow_empty_partitions: bool,
        retain_input_columns: bool,
        scaled_column_suffix: str,
        weight_column_prefix: str,
        scorer_uid: str,
        sql_dialect: str,
    ):
        self.dataset_variant = dataset_variant
        self.checks = checks
        self.natural_key_columns = natural_key_columns
        self.entity_column_name = entity_column_name
        self.occurrence_date_column_name = occurrence_date_column_name
        self.partition_column_name = partition_column_name
        self.record_row_column_name = record_row_column_name
        self.populated_field_columns = populated_field_columns
        self.retention_policies = retention_policies
        self.allow_empty_partitions = allow_empty_partitions
        self.retain_input_columns = retain_input_columns
        self.scaled_column_suffix = scaled_column_suffix
        self.weight_column_prefix = weight_column_prefix
        self.scorer_uid = scorer_uid
        self.sql_dialect = EpiscoreDialect.from_string(sql_dialect)

        self._validate()

    def _validate(self) -> None:
        if not self.natural_key_columns:
            raise EpiscoreException("At least one natural key column is required")
        if not self.checks:
            raise EpiscoreException("At least one check is required")

        output_cols = [c.output_column_name for c in self.checks]
        duplicated = {c for c in output_cols if output_cols.count(c) > 1}
        if duplicated:
            raise EpiscoreException(
                f"Several checks share the output column(s) {sorted(duplicated)}. "
                "Give each check a distinct name"
            )

        flags = [p.flag_column_name for p in self.retention_policies]
        duplicated = {f for f in flags if flags.count(f) > 1}
        if duplicated:
            raise EpiscoreException(
                f"Several retention policies share the flag column(s) "
                f"{sorted(duplicated)}"
            )

    @property
    def identity_columns(self) -> List[str]:
        return [self.partition_column_name, self.record_row_column_name]

    @property
    def retention_flag_columns(self) -> List[str]:
        return [p.flag_column_name for p in self.retention_policies]

    @property
    def inter_record_columns(self) -> Dict[str, str]:
        return {
            name: sql_fn(self.sql_dialect)
            for name, sql_fn in self.dataset_variant.inter_record_columns.items()
        }

    @property
    def derived_column_names(self) -> List[str]:
        return [
            "group_id",
            "ith_duplicate",
            "group_size",
            "num_filled_fields",
            *self.retention_flag_columns,
            "previous_occurrence_date",
            "weeks_since_previous",
            *self.inter_record_columns.keys(),
        ]

    def scaled_column_name(self, check: CheckCreator) -> str:
        return f"{check.output_column_name}{self.scaled_column_suffix}"

    def weight_column_name(self, check: CheckCreator) -> str:
        return f"{self.weight_column_prefix}{check.output_column_name}"

    @property
    def required_input_columns(self) -> List[str]:
        """Input columns the configured key, policies and checks read. Columns
        produced during scoring are not required of the input."""
        cols = [
            *self.natural_key_columns,
            self.entity_column_name,
            self.occurrence_date_column_name,
            *self.populated_field_columns,
        ]
        for policy in self.retention_policies:
            cols.extend(policy.input_columns)
        for check in self.checks:
            cols.extend(check.input_columns)
        derived = set(self.derived_column_names) | set(self.identity_columns)
        return [c for c in dedupe_preserving_order(cols) if c not in derived]

    def as_dict(self) -> Dict[str, Any]:
        dialect_str = self.sql_dialect.sql_dialect_str
        return {
            "dataset_variant": self.dataset_variant.name,
            "checks": [c.create_check_dict(dialect_str) for c in self.checks],
            "natural_key_columns": self.natural_key_columns,
            "entity_column_name": self.entity_column_name,
            "occurrence_date_column_name": self.occurrence_date_column_name,
            "partition_column_name": self.partition_column_name,
            "record_row_column_name": self.record_row_column_name,
            "populated_field_columns": self.populated_field_columns,
            "retention_policies": [p.as_dict() for p in self.retention_policies],
            "allow_empty_partitions": self.allow_empty_partitions,
            "retain_input_columns": self.retain_input_columns,
            "scaled_column_suffix": self.scaled_column_suffix,
            "weight_column_prefix": self.weight_column_prefix,
            "scorer_uid": self.scorer_uid,
        }

    @property
    def human_readable_description(self) -> str:
        checks = "\n".join(c.human_readable_description for c in self.checks)
        return (
            f"Dataset variant: {self.dataset_variant.name}\n"
            f"Natural key: {', '.join(self.natural_key_columns)}\n"
            f"Retention flags: {', '.join(self.retention_flag_columns)}\n"
            f"Checks:\n{checks}"
        )