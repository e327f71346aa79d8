"""
Snapshot diff engine for reimbursed-price list snapshots.

Each snapshot is a set of price-list entries carrying their full price-fact
history plus the snapshot's own as-of date. Per identifier the engine:
- Resolves the effective retail and ex-factory price on each side
- Detects new / deleted products and list-entry status flips
- Detects name changes
- Compares each price category independently, direction-flagged

CONCURRENCY:
Per-identifier comparisons are independent. The sorted identifier union is
split into contiguous partitions evaluated on a thread pool; workers read the
two snapshot maps and the stateless classifier only, and return their own
result lists. The reduce step concatenates and sorts, so the output does not
depend on the partition count.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..errors import AmbiguousPriceFact
from ..records import PriceCategory, PriceListEntry
from ..schema import (
    EXFACTORY_PRICE_FIELD,
    RETAIL_PRICE_FIELD,
    SOURCE_PRICE_LIST,
    ChangeKind,
    FlagCode,
)
from .change_set import ChangeRecord, ChangeSet, change_sort_key
from .classifier import DEFAULT_CLASSIFIER, FlagClassifier
from .price_resolver import find_effective_fact

logger = logging.getLogger(__name__)

# Price differences at or below this are treated as unchanged
PRICE_TOLERANCE = 0.001

DEFAULT_PARTITIONS = 4

# Field name -> category, in comparison order
PRICE_FIELD_CATEGORIES: Tuple[Tuple[str, PriceCategory], ...] = (
    (RETAIL_PRICE_FIELD, PriceCategory.RETAIL),
    (EXFACTORY_PRICE_FIELD, PriceCategory.EXFACTORY),
)


@dataclass
class PartitionResult:
    """What one worker hands back: its changes and its price ties."""
    changes: List[ChangeRecord] = field(default_factory=list)
    ambiguities: List[AmbiguousPriceFact] = field(default_factory=list)


# =============================================================================
# PER-IDENTIFIER COMPARISON
# =============================================================================

def resolve_prices(
    entry: PriceListEntry,
    as_of: date,
    ambiguities: Optional[List[AmbiguousPriceFact]] = None
) -> Dict[str, Optional[float]]:
    """
    Effective price per price field for one entry on `as_of`.

    Ties are appended to `ambiguities` when a list is given.
    """
    prices: Dict[str, Optional[float]] = {}
    for field_name, category in PRICE_FIELD_CATEGORIES:
        fact, tie = find_effective_fact(entry.facts, as_of, category, entry.identifier)
        prices[field_name] = fact.amount if fact is not None else None
        if tie is not None and ambiguities is not None:
            ambiguities.append(tie)
    return prices


def compare_entry(
    identifier: str,
    old: Optional[PriceListEntry],
    new: Optional[PriceListEntry],
    as_of_old: date,
    as_of_new: date,
    classifier: FlagClassifier = DEFAULT_CLASSIFIER,
    ambiguities: Optional[List[AmbiguousPriceFact]] = None
) -> List[ChangeRecord]:
    """
    Compare one identifier across two price-list snapshots.

    Args:
        identifier: Identifier being compared
        old: Entry in the old snapshot, None if absent
        new: Entry in the new snapshot, None if absent
        as_of_old: Reference day for resolving old prices
        as_of_new: Reference day for resolving new prices
        classifier: Flag classifier
        ambiguities: Optional sink for price-fact ties

    Returns:
        Change records for this identifier (possibly empty)
    """
    if old is None and new is None:
        return []

    def record(kind, field_name=None, old_value=None, new_value=None, name=""):
        flag = classifier.classify(kind, field_name, old_value, new_value, identifier)
        return ChangeRecord(
            identifier=identifier,
            kind=kind,
            flag=flag,
            field=field_name,
            old_value=old_value,
            new_value=new_value,
            name=name,
            sources=(SOURCE_PRICE_LIST,),
        )

    if old is None:
        prices = resolve_prices(new, as_of_new, ambiguities)
        return [record(ChangeKind.NEW, new_value=prices, name=new.name)]

    if new is None:
        prices = resolve_prices(old, as_of_old, ambiguities)
        return [record(ChangeKind.DELETED, old_value=prices, name=old.name)]

    changes = []

    if not old.listed and new.listed:
        changes.append(record(ChangeKind.LIST_ENTRY_ADDED, name=new.name))
    elif old.listed and not new.listed:
        changes.append(record(ChangeKind.LIST_ENTRY_REMOVED, name=new.name))

    if old.name != new.name:
        changes.append(record(ChangeKind.FIELD_CHANGED, "name", old.name, new.name, name=new.name))

    old_prices = resolve_prices(old, as_of_old, ambiguities)
    new_prices = resolve_prices(new, as_of_new, ambiguities)
    for field_name, _ in PRICE_FIELD_CATEGORIES:
        old_price = old_prices[field_name]
        new_price = new_prices[field_name]
        if old_price is None and new_price is None:
            continue
        difference = (new_price or 0.0) - (old_price or 0.0)
        if abs(difference) <= PRICE_TOLERANCE:
            continue
        changes.append(record(ChangeKind.PRICE_CHANGED, field_name, old_price, new_price, name=new.name))

    return changes


# =============================================================================
# PARTITIONED EVALUATION
# =============================================================================

def index_price_list(
    entries: Iterable[PriceListEntry],
    label: str = "snapshot"
) -> Dict[str, PriceListEntry]:
    """Key entries by identifier; a later duplicate replaces the earlier one."""
    indexed: Dict[str, PriceListEntry] = {}
    duplicates = 0
    for entry in entries:
        if entry.identifier in indexed:
            duplicates += 1
        indexed[entry.identifier] = entry

    if duplicates:
        logger.warning(f"{label}: {duplicates} duplicate identifiers, later entries kept")
    return indexed


def partition_identifiers(identifiers: Sequence[str], partitions: int) -> List[Sequence[str]]:
    """
    Split identifiers into at most `partitions` contiguous, non-empty chunks.

    Raises:
        ValueError: If partitions < 1
    """
    if partitions < 1:
        raise ValueError(f"partitions must be >= 1, got {partitions}")
    if not identifiers:
        return []

    size = math.ceil(len(identifiers) / partitions)
    return [identifiers[start:start + size] for start in range(0, len(identifiers), size)]


def _compare_partition(
    identifiers: Sequence[str],
    old_map: Dict[str, PriceListEntry],
    new_map: Dict[str, PriceListEntry],
    as_of_old: date,
    as_of_new: date,
    classifier: FlagClassifier
) -> PartitionResult:
    result = PartitionResult()
    for identifier in identifiers:
        result.changes.extend(compare_entry(
            identifier,
            old_map.get(identifier),
            new_map.get(identifier),
            as_of_old,
            as_of_new,
            classifier,
            result.ambiguities,
        ))
    return result


def diff_price_lists(
    old: Iterable[PriceListEntry],
    new: Iterable[PriceListEntry],
    as_of_old: date,
    as_of_new: date,
    classifier: FlagClassifier = DEFAULT_CLASSIFIER,
    partitions: Optional[int] = None,
    max_workers: Optional[int] = None,
    old_label: Optional[str] = None,
    new_label: Optional[str] = None
) -> ChangeSet:
    """
    Compare two price-list snapshots.

    Args:
        old: Entries of the baseline snapshot
        new: Entries of the comparison snapshot
        as_of_old: Reference day of the old snapshot
        as_of_new: Reference day of the new snapshot
        classifier: Flag classifier shared with the registration differ
        partitions: Number of identifier chunks (default: max_workers or 4)
        max_workers: Thread pool size (default: executor default)
        old_label: Label of the old snapshot
        new_label: Label of the new snapshot

    Returns:
        ChangeSet sorted by identifier, then kind, then field. Metadata holds
        the as-of dates and the price-fact ties met while resolving.

    Raises:
        UnclassifiedChange: A change has no flag in the classifier's table
        ValueError: If partitions < 1
    """
    old_map = index_price_list(old, old_label or "old")
    new_map = index_price_list(new, new_label or "new")

    identifiers = sorted(old_map.keys() | new_map.keys())
    partition_count = partitions if partitions is not None else (max_workers or DEFAULT_PARTITIONS)
    chunks = partition_identifiers(identifiers, partition_count)

    logger.info(
        f"Price diff {old_label or 'old'} -> {new_label or 'new'}: "
        f"{len(identifiers)} identifiers in {len(chunks)} partitions"
    )

    results: List[PartitionResult] = []
    if chunks:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(
                lambda chunk: _compare_partition(chunk, old_map, new_map, as_of_old, as_of_new, classifier),
                chunks,
            ))

    changes = [change for result in results for change in result.changes]
    changes.sort(key=change_sort_key)
    ambiguities = [tie for result in results for tie in result.ambiguities]

    if ambiguities:
        logger.warning(f"{len(ambiguities)} price-fact ties resolved by source order")
    logger.info(f"Price diff found {len(changes)} changes")

    return ChangeSet(
        source=SOURCE_PRICE_LIST,
        old_snapshot=old_label,
        new_snapshot=new_label,
        changes=changes,
        metadata={
            "as_of_old": as_of_old.isoformat(),
            "as_of_new": as_of_new.isoformat(),
            "old_count": len(old_map),
            "new_count": len(new_map),
            "ambiguous_price_facts": len(ambiguities),
            "ambiguities": [tie.to_dict() for tie in ambiguities],
        },
    )


# =============================================================================
# CATEGORY PROJECTION
# =============================================================================
# A pure post-processing view over a finished change sequence.

CATEGORY_FILTERS: Dict[str, Tuple[FlagCode, Optional[str]]] = {
    "new": (FlagCode.NEW, None),
    "del": (FlagCode.DELETE, None),
    "sl_entry": (FlagCode.SL_ENTRY, None),
    "sl_entry_delete": (FlagCode.SL_ENTRY_DELETE, None),
    "name": (FlagCode.NAME_BASE, None),
    "retail_up": (FlagCode.PRICE_RISE, RETAIL_PRICE_FIELD),
    "retail_down": (FlagCode.PRICE_CUT, RETAIL_PRICE_FIELD),
    "exfactory_up": (FlagCode.PRICE_RISE, EXFACTORY_PRICE_FIELD),
    "exfactory_down": (FlagCode.PRICE_CUT, EXFACTORY_PRICE_FIELD),
}

CATEGORY_ALIASES: Dict[str, str] = {
    "delete": "del",
    "name_base": "name",
    "productname": "name",
    "price_rise_retail": "retail_up",
    "price_cut_retail": "retail_down",
    "price_rise_exfactory": "exfactory_up",
    "price_cut_exfactory": "exfactory_down",
}


def project_changes(
    changes: Iterable[ChangeRecord],
    category: Optional[str] = None,
    terse: bool = False
) -> Union[List[ChangeRecord], List[str]]:
    """
    Narrow a change sequence to one category and optionally to bare identifiers.

    Args:
        changes: Full change sequence
        category: Category name or alias (see CATEGORY_FILTERS); None keeps all
        terse: Return identifiers only, first occurrence order, de-duplicated

    Returns:
        Filtered change records, or identifiers when terse

    Raises:
        ValueError: For an unknown category
    """
    selected = list(changes)

    if category is not None:
        name = category.lstrip("-")
        name = CATEGORY_ALIASES.get(name, name)
        if name not in CATEGORY_FILTERS:
            valid = ", ".join(sorted(set(CATEGORY_FILTERS) | set(CATEGORY_ALIASES)))
            raise ValueError(f"Unknown category '{category}'. Valid: {valid}")
        flag, field_name = CATEGORY_FILTERS[name]
        selected = [
            c for c in selected
            if c.flag == flag and (field_name is None or c.field == field_name)
        ]

    if terse:
        return list(dict.fromkeys(c.identifier for c in selected))
    return selected
