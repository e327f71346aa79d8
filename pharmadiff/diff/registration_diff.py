"""
Snapshot diff engine for registration snapshots.

This module compares two snapshots of the authorized-packages registry:
- Uses the 13-digit product identifier as identity (not row position)
- Emits one NEW / DELETED record per identifier present on one side only
- Emits one FIELD_CHANGED record per differing field for shared identifiers
- Labels every record through the injected FlagClassifier

CORE PRINCIPLES:
1. Identity is the identifier; two records with the same identifier are the
   same product regardless of any other field
2. Comparison is exact; normalization happens before this stage
3. Malformed identifiers and unknown fields abort the run
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..errors import InvalidIdentifierInput
from ..records import RegistrationRecord
from ..schema import REGISTRATION_FIELDS, SOURCE_REGISTRATION, ChangeKind
from .change_set import ChangeRecord, ChangeSet, change_sort_key
from .classifier import DEFAULT_CLASSIFIER, FlagClassifier

logger = logging.getLogger(__name__)


def index_registrations(
    records: Iterable[RegistrationRecord],
    label: str = "snapshot"
) -> Dict[str, RegistrationRecord]:
    """
    Key registration records by identifier.

    A later record with an already seen identifier replaces the earlier one.

    Raises:
        InvalidIdentifierInput: If any record has a malformed key
    """
    indexed: Dict[str, RegistrationRecord] = {}
    duplicates = 0
    for record in records:
        try:
            identifier = record.identifier
        except InvalidIdentifierInput as e:
            where = (
                f"registration {record.registration_number!r} pack {record.pack_code!r}"
                f" ({record.name or 'unnamed'}) of {label}"
            )
            raise InvalidIdentifierInput(e.field, e.value, e.reason, record=where) from None
        if identifier in indexed:
            duplicates += 1
        indexed[identifier] = record

    if duplicates:
        logger.warning(f"{label}: {duplicates} duplicate identifiers, later rows kept")
    return indexed


def diff_registration_record(
    identifier: str,
    old: RegistrationRecord,
    new: RegistrationRecord,
    classifier: FlagClassifier = DEFAULT_CLASSIFIER
) -> List[ChangeRecord]:
    """
    Field-level diff between two versions of the same pack.

    Args:
        identifier: Shared identifier of both records
        old: Record from the old snapshot
        new: Record from the new snapshot
        classifier: Flag classifier

    Returns:
        One FIELD_CHANGED record per differing field, in REGISTRATION_FIELDS order
    """
    changes = []
    for field_name in REGISTRATION_FIELDS:
        old_value = getattr(old, field_name)
        new_value = getattr(new, field_name)
        if old_value == new_value:
            continue
        flag = classifier.classify(ChangeKind.FIELD_CHANGED, field_name, old_value, new_value, identifier)
        changes.append(ChangeRecord(
            identifier=identifier,
            kind=ChangeKind.FIELD_CHANGED,
            flag=flag,
            field=field_name,
            old_value=old_value,
            new_value=new_value,
            name=new.name,
            sources=(SOURCE_REGISTRATION,),
        ))
    return changes


def diff_registrations(
    old: Iterable[RegistrationRecord],
    new: Iterable[RegistrationRecord],
    classifier: FlagClassifier = DEFAULT_CLASSIFIER,
    old_label: Optional[str] = None,
    new_label: Optional[str] = None
) -> ChangeSet:
    """
    Compare two registration snapshots.

    Args:
        old: Records of the baseline snapshot
        new: Records of the comparison snapshot
        classifier: Flag classifier shared with the price-list differ
        old_label: Label of the old snapshot (usually its date)
        new_label: Label of the new snapshot

    Returns:
        ChangeSet with records sorted by identifier, then kind, then field

    Raises:
        InvalidIdentifierInput: A record has a malformed registration key
        UnclassifiedChange: A change has no flag in the classifier's table
    """
    old_map = index_registrations(old, old_label or "old")
    new_map = index_registrations(new, new_label or "new")

    changes: List[ChangeRecord] = []

    for identifier in sorted(new_map.keys() - old_map.keys()):
        record = new_map[identifier]
        changes.append(ChangeRecord(
            identifier=identifier,
            kind=ChangeKind.NEW,
            flag=classifier.classify(ChangeKind.NEW, identifier=identifier),
            name=record.name,
            sources=(SOURCE_REGISTRATION,),
        ))

    for identifier in sorted(old_map.keys() - new_map.keys()):
        record = old_map[identifier]
        changes.append(ChangeRecord(
            identifier=identifier,
            kind=ChangeKind.DELETED,
            flag=classifier.classify(ChangeKind.DELETED, identifier=identifier),
            name=record.name,
            sources=(SOURCE_REGISTRATION,),
        ))

    for identifier in sorted(old_map.keys() & new_map.keys()):
        changes.extend(diff_registration_record(identifier, old_map[identifier], new_map[identifier], classifier))

    changes.sort(key=change_sort_key)

    logger.info(
        f"Registration diff {old_label or 'old'} -> {new_label or 'new'}: "
        f"{len(old_map)} old, {len(new_map)} new packs, {len(changes)} changes"
    )

    return ChangeSet(
        source=SOURCE_REGISTRATION,
        old_snapshot=old_label,
        new_snapshot=new_label,
        changes=changes,
        metadata={
            "old_count": len(old_map),
            "new_count": len(new_map),
        },
    )
