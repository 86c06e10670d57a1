from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Type, Union


class GroupSelectionPolicy(ABC):
    """Decides which members of a duplicate group to keep.

    A policy renders a boolean SQL expression, evaluated per record against the
    output of duplicate grouping (which carries `group_id`, `ith_duplicate`,
    `group_size` and `num_filled_fields` alongside the input columns). Every
    policy is independent: a record may be flagged by none, some or all of them.
    """

    policy_name: str
    default_flag_column_name: str

    def __init__(self, flag_column_name: str = None):
        self.flag_column_name = flag_column_name or self.default_flag_column_name

    @abstractmethod
    def create_flag_sql(self, group_id_column_name: str = "group_id") -> str:
        pass

    @property
    def input_columns(self) -> List[str]:
        return []

    def as_dict(self) -> Union[str, Dict[str, Any]]:
        if self.flag_column_name == self.default_flag_column_name:
            return self.policy_name
        return {"policy": self.policy_name, "flag_column_name": self.flag_column_name}

    def select_sql(self, group_id_column_name: str = "group_id") -> str:
        flag_sql = self.create_flag_sql(group_id_column_name)
        return f"{flag_sql} as {self.flag_column_name}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} flagging {self.flag_column_name}>"


class KeepFirstPolicy(GroupSelectionPolicy):
    """Keep the first record of each group under the deterministic intra-group
    ordering, so exactly one record per group is flagged."""

    policy_name = "keep_first"
    default_flag_column_name = "is_first"

    def create_flag_sql(self, group_id_column_name: str = "group_id") -> str:
        return "ith_duplicate = 1"


class KeepMostCompletePolicy(GroupSelectionPolicy):
    """Keep every record whose count of populated fields equals the group
    maximum. Ties are not broken."""

    policy_name = "keep_most_complete"
    default_flag_column_name = "is_most_complete"

    def create_flag_sql(self, group_id_column_name: str = "group_id") -> str:
        return (
            "num_filled_fields = max(num_filled_fields) "
            f"over (partition by {group_id_column_name})"
        )


class KeepMostRecentPolicy(GroupSelectionPolicy):
    def __init__(self, date_column_name: str, flag_column_name: str = None):
        """Keep every record carrying the latest value of `date_column_name`
        in its group. Where the whole group lacks the date, the first record is
        kept."""
        self.date_column_name = date_column_name
        super().__init__(flag_column_name)

    policy_name = "keep_most_recent"
    default_flag_column_name = "is_most_recent"

    def create_flag_sql(self, group_id_column_name: str = "group_id") -> str:
        date_col = self.date_column_name
        latest = f"max({date_col}) over (partition by {group_id_column_name})"
        return (
            f"coalesce({date_col} = {latest}, "
            f"ith_duplicate = 1 AND {latest} IS NULL)"
        )

    @property
    def input_columns(self) -> List[str]:
        return [self.date_column_name]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy_name,
            "flag_column_name": self.flag_column_name,
            "date_column_name": self.date_column_name,
        }


_POLICIES: Dict[str, Type[GroupSelectionPolicy]] = {
    p.policy_name: p
    for p in (KeepFirstPolicy, KeepMostCompletePolicy, KeepMostRecentPolicy)
}

DEFAULT_RETENTION_POLICIES = ["keep_first", "keep_most_complete"]


def to_retention_policy(
    policy: Union[GroupSelectionPolicy, str, Mapping[str, Any]],
) -> GroupSelectionPolicy:
    if isinstance(policy, GroupSelectionPolicy):
        return policy
    if isinstance(policy, str):
        policy = {"policy": policy}
    if isinstance(policy, Mapping):
        policy_dict = dict(policy)
        name = policy_dict.pop("policy", None)
        if name not in _POLICIES:
            known = ", ".join(f"'{n}'" for n in _POLICIES)
            raise ValueError(
                f"Unknown retention policy '{name}'. Must be one of: {known}"
            )
        return _POLICIES[name](**policy_dict)
    raise TypeError(
        "Retention policies must be a `GroupSelectionPolicy`, a policy name or a "
        f"dict, but found type {type(policy)} [{policy}]"
    )
