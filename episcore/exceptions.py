from episcore.internals.exceptions import (
    EmptyPartitionException,
    EpiscoreException,
    InvalidEpiscoreInput,
)

__all__ = [
    "EmptyPartitionException",
    "EpiscoreException",
    "InvalidEpiscoreInput",
]
