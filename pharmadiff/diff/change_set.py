"""
Change records and the containers that carry them between stages.

Field names here are the serialized names: `to_dict()` is a lossless
projection and `from_dict()` its inverse, so a change-set written by one run
can be merged by another.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ..schema import CHANGE_KIND_ORDER, FLAG_LEGEND, PRICE_FIELDS, REGISTRATION_FIELDS, ChangeKind, FlagCode

# Declared field order; unknown fields sort after these, by name
FIELD_ORDER: Dict[str, int] = {name: index for index, name in enumerate(REGISTRATION_FIELDS + PRICE_FIELDS)}


@dataclass(frozen=True)
class ChangeRecord:
    """
    One detected difference for one identifier.

    A single identifier may accumulate several records in one run, one per
    changed field. `sources` names the change-set(s) that reported it; it only
    holds more than one entry after the merger collapsed duplicate deletions.
    """
    identifier: str
    kind: ChangeKind
    flag: FlagCode
    field: Optional[str] = None
    old_value: Any = None
    new_value: Any = None
    name: str = ""
    sources: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "identifier": self.identifier,
            "kind": self.kind.value,
            "flag": int(self.flag),
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "name": self.name,
            "sources": list(self.sources),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeRecord":
        return cls(
            identifier=str(data["identifier"]),
            kind=ChangeKind(data["kind"]),
            flag=FlagCode(int(data["flag"])),
            field=data.get("field"),
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            name=data.get("name") or "",
            sources=tuple(data.get("sources") or ()),
        )


def field_rank(field_name: Optional[str]) -> Tuple[int, str]:
    if field_name is None:
        return (-1, "")
    return (FIELD_ORDER.get(field_name, len(FIELD_ORDER)), field_name)


def change_sort_key(record: ChangeRecord) -> Tuple[str, int, Tuple[int, str]]:
    """Deterministic order: identifier, then kind, then declared field order."""
    return (record.identifier, CHANGE_KIND_ORDER[record.kind], field_rank(record.field))


def legend_for(records: Iterable[ChangeRecord]) -> Dict[int, str]:
    """Flag legend restricted to the codes actually present in `records`."""
    codes = sorted({int(record.flag) for record in records})
    return {code: FLAG_LEGEND[code] for code in codes}


def count_by_flag(records: Iterable[ChangeRecord]) -> Dict[int, int]:
    counts: Dict[int, int] = {}
    for record in records:
        code = int(record.flag)
        counts[code] = counts.get(code, 0) + 1
    return dict(sorted(counts.items()))


def _legend_to_json(legend: Dict[int, str]) -> Dict[str, str]:
    return {str(code): name for code, name in legend.items()}


@dataclass
class ChangeSet:
    """
    Output of one differ run.

    Contains:
    - The ordered change records
    - Which snapshots were compared (labels, usually dates)
    - Source-specific metadata (e.g. as-of dates, price tie count)
    """
    source: str
    old_snapshot: Optional[str]
    new_snapshot: Optional[str]
    changes: List[ChangeRecord]
    metadata: Dict[str, Any] = field(default_factory=dict)

    # A change-set reads as the sequence of its changes
    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self) -> Iterator[ChangeRecord]:
        return iter(self.changes)

    def __getitem__(self, index):
        return self.changes[index]

    def counts_by_flag(self) -> Dict[int, int]:
        return count_by_flag(self.changes)

    def changes_by_flag(self, flag: FlagCode) -> List[ChangeRecord]:
        """Filter changes by flag."""
        return [c for c in self.changes if c.flag == flag]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "source": self.source,
            "old_snapshot": self.old_snapshot,
            "new_snapshot": self.new_snapshot,
            "metadata": self.metadata,
            "flag_legend": _legend_to_json(legend_for(self.changes)),
            "counts_by_flag": {str(k): v for k, v in self.counts_by_flag().items()},
            "changes": [c.to_dict() for c in self.changes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeSet":
        return cls(
            source=data["source"],
            old_snapshot=data.get("old_snapshot"),
            new_snapshot=data.get("new_snapshot"),
            changes=[ChangeRecord.from_dict(c) for c in data.get("changes", [])],
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class MergedEntry:
    """All change records from both sources for one identifier."""
    identifier: str
    name: str
    changes: List[ChangeRecord]

    @property
    def flags(self) -> List[int]:
        return sorted({int(c.flag) for c in self.changes})

    @property
    def sources(self) -> List[str]:
        return sorted({s for c in self.changes for s in c.sources})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "flags": self.flags,
            "sources": self.sources,
            "changes": [c.to_dict() for c in self.changes],
        }


@dataclass
class MergedReport:
    """
    Identifier-keyed union of a price change-set and a registration change-set.

    Every flag appearing in any entry is present in `flag_legend`.
    """
    entries: Dict[str, MergedEntry]
    flag_legend: Dict[int, str]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def all_changes(self) -> List[ChangeRecord]:
        return [c for entry in self.entries.values() for c in entry.changes]

    def counts_by_flag(self) -> Dict[int, int]:
        return count_by_flag(self.all_changes())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "metadata": self.metadata,
            "flag_legend": _legend_to_json(self.flag_legend),
            "counts_by_flag": {str(k): v for k, v in self.counts_by_flag().items()},
            "entries": {identifier: entry.to_dict() for identifier, entry in self.entries.items()},
        }
