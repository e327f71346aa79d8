"""Registry snapshot diff module: differs, classifier, price resolution and merge."""

from .change_set import (
    ChangeRecord,
    ChangeSet,
    MergedEntry,
    MergedReport,
    change_sort_key,
    count_by_flag,
    legend_for,
)

from .classifier import (
    CLASSIFICATION_TABLE,
    DEFAULT_CLASSIFIER,
    FlagClassifier,
)

from .price_resolver import (
    find_effective_fact,
    resolve_effective_price,
)

from .registration_diff import (
    diff_registrations,
    diff_registration_record,
)

from .price_diff import (
    CATEGORY_ALIASES,
    CATEGORY_FILTERS,
    PRICE_TOLERANCE,
    compare_entry,
    diff_price_lists,
    partition_identifiers,
    project_changes,
)

from .merge import merge

__all__ = [
    # Records
    "ChangeRecord",
    "ChangeSet",
    "MergedEntry",
    "MergedReport",
    "change_sort_key",
    "count_by_flag",
    "legend_for",
    # Classification
    "CLASSIFICATION_TABLE",
    "DEFAULT_CLASSIFIER",
    "FlagClassifier",
    # Price resolution
    "find_effective_fact",
    "resolve_effective_price",
    # Registration differ
    "diff_registrations",
    "diff_registration_record",
    # Price-list differ
    "CATEGORY_ALIASES",
    "CATEGORY_FILTERS",
    "PRICE_TOLERANCE",
    "compare_entry",
    "diff_price_lists",
    "partition_identifiers",
    "project_changes",
    # Merge
    "merge",
]
