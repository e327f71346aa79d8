"""
Merge a price-list change-set and a registration change-set into one report.

Grouping is purely by identifier, so the result does not depend on which
change-set is passed first. The only rewrite is for deletions: when both
sources say a product is gone, the report carries one deletion record that
names both sources instead of two stacked ones.
"""

import json
import logging
from dataclasses import replace
from datetime import date
from itertools import chain
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..schema import (
    CHANGE_KIND_ORDER,
    DELETION_KINDS,
    SOURCE_PRICE_LIST,
    SOURCE_REGISTRATION,
    ChangeKind,
    FlagCode,
)
from .change_set import ChangeRecord, ChangeSet, MergedEntry, MergedReport, field_rank, legend_for

logger = logging.getLogger(__name__)

ChangeInput = Union[ChangeSet, Sequence[ChangeRecord]]


def _records_of(changes: ChangeInput, default_source: str) -> List[ChangeRecord]:
    # Untagged records are attributed to the argument they came in through
    records = []
    for record in changes:
        if not record.sources:
            record = replace(record, sources=(default_source,))
        records.append(record)
    return records


def _merged_sort_key(record: ChangeRecord) -> Tuple[int, Tuple[int, str], int, Tuple[str, ...]]:
    return (int(record.flag), field_rank(record.field), CHANGE_KIND_ORDER[record.kind], record.sources)


def _dedupe(records: Iterable[ChangeRecord]) -> List[ChangeRecord]:
    seen = set()
    unique = []
    for record in records:
        key = json.dumps(record.to_dict(), sort_keys=True, default=str)
        if key not in seen:
            seen.add(key)
            unique.append(record)
    return unique


def collapse_deletions(records: Sequence[ChangeRecord]) -> List[ChangeRecord]:
    """
    Replace several deletion records of one identifier by a single one.

    The surviving record is a DELETED (flag 14) if any input was one,
    otherwise a LIST_ENTRY_REMOVED (flag 2). It lists every contributing source,
    and takes name and values from the first deletion that carries them.
    """
    deletions = [r for r in records if r.kind in DELETION_KINDS]
    if len(deletions) < 2:
        return list(records)

    deletions.sort(key=_merged_sort_key, reverse=True)
    primary = next((r for r in deletions if r.kind is ChangeKind.DELETED), deletions[0])
    ordered = [primary] + [r for r in deletions if r is not primary]
    name = next((r.name for r in ordered if r.name), "")
    old_value = next((r.old_value for r in ordered if r.old_value is not None), None)
    new_value = next((r.new_value for r in ordered if r.new_value is not None), None)
    sources = tuple(sorted({s for r in deletions for s in r.sources}))

    collapsed = ChangeRecord(
        identifier=primary.identifier,
        kind=primary.kind,
        flag=FlagCode.DELETE if primary.kind is ChangeKind.DELETED else FlagCode.SL_ENTRY_DELETE,
        field=None,
        old_value=old_value,
        new_value=new_value,
        name=name,
        sources=sources,
    )
    return [r for r in records if r.kind not in DELETION_KINDS] + [collapsed]


def merge(
    price_changes: ChangeInput,
    registration_changes: ChangeInput,
    generated_on: Optional[date] = None
) -> MergedReport:
    """
    Combine two change-sets into an identifier-keyed report.

    Args:
        price_changes: Price-list change-set (or its records)
        registration_changes: Registration change-set (or its records)
        generated_on: Report date for the metadata (default: today)

    Returns:
        MergedReport with entries sorted by identifier and a flag legend
        covering exactly the flags present
    """
    grouped: Dict[str, List[ChangeRecord]] = {}
    for record in chain(
        _records_of(price_changes, SOURCE_PRICE_LIST),
        _records_of(registration_changes, SOURCE_REGISTRATION),
    ):
        grouped.setdefault(record.identifier, []).append(record)

    entries: Dict[str, MergedEntry] = {}
    collapsed_count = 0
    for identifier in sorted(grouped):
        records = _dedupe(grouped[identifier])
        merged = collapse_deletions(records)
        collapsed_count += len(records) - len(merged)
        merged.sort(key=_merged_sort_key)
        name = next((r.name for r in merged if r.name), "")
        entries[identifier] = MergedEntry(identifier=identifier, name=name, changes=merged)

    all_records = [r for entry in entries.values() for r in entry.changes]
    generated_on = generated_on or date.today()

    metadata: Dict[str, Any] = {
        "generated_on": generated_on.strftime("%d.%m.%Y"),
        "identifiers": len(entries),
        "changes": len(all_records),
        "collapsed_deletions": collapsed_count,
    }
    for key, changes in (("price_list", price_changes), ("registration", registration_changes)):
        if isinstance(changes, ChangeSet):
            metadata[f"{key}_snapshots"] = [changes.old_snapshot, changes.new_snapshot]

    logger.info(
        f"Merged {len(entries)} identifiers, {len(all_records)} changes "
        f"({collapsed_count} duplicate deletions collapsed)"
    )

    return MergedReport(entries=entries, flag_legend=legend_for(all_records), metadata=metadata)
