from episcore.internals.retention_policies import (
    GroupSelectionPolicy,
    KeepFirstPolicy,
    KeepMostCompletePolicy,
    KeepMostRecentPolicy,
)

__all__ = [
    "GroupSelectionPolicy",
    "KeepFirstPolicy",
    "KeepMostCompletePolicy",
    "KeepMostRecentPolicy",
]
