from episcore.internals.check_library import (
    BIRTH_WEIGHT_CENTILE_BANDS,
    BirthWeightPlausibilityCheck,
    ConditionalFieldCheck,
    CustomCheck,
    DuplicateCheck,
    EpisodeDatesCheck,
    FieldCheck,
    IntervalCheck,
)

__all__ = [
    "BIRTH_WEIGHT_CENTILE_BANDS",
    "BirthWeightPlausibilityCheck",
    "ConditionalFieldCheck",
    "CustomCheck",
    "DuplicateCheck",
    "EpisodeDatesCheck",
    "FieldCheck",
    "IntervalCheck",
]
