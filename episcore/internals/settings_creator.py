from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

from episcore.internals.check_creator import CheckCreator
from episcore.internals.check_library import CustomCheck
from episcore.internals.dataset_variants import get_dataset_variant
from episcore.internals.misc import ascii_uid
from episcore.internals.retention_policies import (
    DEFAULT_RETENTION_POLICIES,
    GroupSelectionPolicy,
    to_retention_policy,
)
from episcore.internals.validate_jsonschema import validate_settings_against_schema

from .settings import Settings

RetentionPolicyType = Union[GroupSelectionPolicy, str, dict[str, Any]]


@dataclass
class SettingsCreator:
    """
    Non-dialected version of Settings.
    Responsible for authoring Settings, but not implementing anything

    Anything left as None is taken from the dataset variant.
    """

    dataset_variant: str = "maternity"

    # None means use the variant's checks
    checks: Optional[List[CheckCreator | dict[str, Any]]] = None
    additional_checks: List[CheckCreator | dict[str, Any]] = field(
        default_factory=list
    )

    natural_key_columns: Optional[List[str]] = None
    entity_column_name: Optional[str] = None
    occurrence_date_column_name: Optional[str] = None
    partition_column_name: Optional[str] = None
    record_row_column_name: str = "record_row"
    populated_field_columns: Optional[List[str]] = None

    retention_policies: List[RetentionPolicyType] = field(
        default_factory=lambda: list(DEFAULT_RETENTION_POLICIES)
    )

    allow_empty_partitions: bool = False
    retain_input_columns: bool = True

    scaled_column_suffix: str = "_scaled"
    weight_column_prefix: str = "weight_"

    scorer_uid: str | None = None

    def _as_naive_dict(self) -> dict[str, Any]:
        """
        Returns this class as a naive dict.
        Naive in the sense that we do not process the attributes in any way.

        In particular checks and policies could be dicts _or_ creator objects
        """
        return {f: getattr(self, f) for f in self.__dataclass_fields__}

    def _as_creator_dict(self) -> dict[str, Any]:
        """
        Returns class as a dict where we have converted any sub-dicts into
        'creator' types
        """
        creator_dict = self._as_naive_dict()
        if creator_dict["checks"] is not None:
            creator_dict["checks"] = [
                CustomCheck._convert_to_creator(c) for c in creator_dict["checks"]
            ]
        creator_dict["additional_checks"] = [
            CustomCheck._convert_to_creator(c)
            for c in creator_dict["additional_checks"]
        ]
        creator_dict["retention_policies"] = [
            to_retention_policy(p) for p in creator_dict["retention_policies"]
        ]
        return creator_dict

    def create_settings_dict(self, sql_dialect_str: str) -> dict[str, Any]:
        return self.get_settings(sql_dialect_str).as_dict()

    def get_settings(self, sql_dialect_str: str) -> Settings:
        creator_dict = self._as_creator_dict()
        variant = get_dataset_variant(creator_dict["dataset_variant"])

        checks = creator_dict["checks"]
        if checks is None:
            checks = variant.create_checks()
        checks = checks + creator_dict["additional_checks"]

        def or_variant_default(key: str, default: Any) -> Any:
            value = creator_dict[key]
            return deepcopy(default) if value is None else value

        return Settings(
            dataset_variant=variant,
            checks=checks,
            natural_key_columns=or_variant_default(
                "natural_key_columns", variant.natural_key_columns
            ),
            entity_column_name=or_variant_default(
                "entity_column_name", variant.entity_column_name
            ),
            occurrence_date_column_name=or_variant_default(
                "occurrence_date_column_name", variant.occurrence_date_column_name
            ),
            partition_column_name=or_variant_default(
                "partition_column_name", variant.partition_column_name
            ),
            record_row_column_name=creator_dict["record_row_column_name"],
            populated_field_columns=or_variant_default(
                "populated_field_columns", variant.default_populated_field_columns
            ),
            retention_policies=creator_dict["retention_policies"],
            allow_empty_partitions=creator_dict["allow_empty_partitions"],
            retain_input_columns=creator_dict["retain_input_columns"],
            scaled_column_suffix=creator_dict["scaled_column_suffix"],
            weight_column_prefix=creator_dict["weight_column_prefix"],
            scorer_uid=creator_dict["scorer_uid"] or ascii_uid(8),
            sql_dialect=sql_dialect_str,
        )

    @classmethod
    def from_path_or_dict(
        cls, path_or_dict: Union[Path, str, dict[str, Any]]
    ) -> SettingsCreator:
        if isinstance(path_or_dict, (str, Path)):
            settings_path = Path(path_or_dict)
            if settings_path.is_file():
                settings_dict = json.loads(settings_path.read_text())
            else:
                raise ValueError(
                    f"Path {settings_path} does not point to a valid file."
                )

        elif isinstance(path_or_dict, dict):
            settings_dict = deepcopy(path_or_dict)
        else:
            raise TypeError(
                f"Argument {path_or_dict=} must be of type `pathlib.Path`, "
                f"`str`, or `dict`.  Found type {type(path_or_dict)}"
            )

        validate_settings_against_schema(_as_schema_compatible(settings_dict))
        return SettingsCreator(**settings_dict)


def _as_schema_compatible(settings_dict: dict[str, Any]) -> dict[str, Any]:
    """Creator objects may be mixed into a settings dict. Render them as plain
    dicts so that the whole dict can be validated against the schema."""
    schema_dict = dict(settings_dict)
    for key in ("checks", "additional_checks"):
        if schema_dict.get(key):
            schema_dict[key] = [
                c.create_check_dict("duckdb") if isinstance(c, CheckCreator) else c
                for c in schema_dict[key]
            ]
    if schema_dict.get("retention_policies"):
        schema_dict["retention_policies"] = [
            p.as_dict() if isinstance(p, GroupSelectionPolicy) else p
            for p in schema_dict["retention_policies"]
        ]
    return schema_dict
