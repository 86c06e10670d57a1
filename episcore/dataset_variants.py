from episcore.internals.dataset_variants import (
    GENERAL_EPISODE,
    MATERNITY,
    DatasetVariant,
    dataset_variant_names,
    describe_dataset_variants,
    get_dataset_variant,
    register_dataset_variant,
)

__all__ = [
    "DatasetVariant",
    "GENERAL_EPISODE",
    "MATERNITY",
    "dataset_variant_names",
    "describe_dataset_variants",
    "get_dataset_variant",
    "register_dataset_variant",
]
