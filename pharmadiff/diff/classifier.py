"""
Flag classification for registry changes.

This module maps a detected change (kind + field) to one of the fixed numeric
flag codes. It is shared by the registration differ and the price-list differ,
which is what makes their independently produced change-sets mergeable under
a single flag legend.

DESIGN PRINCIPLES:
1. Deterministic: a pure table lookup, plus price direction
2. Closed: unknown (kind, field) pairs fail loudly with UnclassifiedChange
3. Injectable: differs receive a classifier instance instead of reaching
   for module state, so each differ is testable with its own table
"""

from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from ..errors import UnclassifiedChange
from ..schema import (
    EXFACTORY_PRICE_FIELD,
    RETAIL_PRICE_FIELD,
    ChangeKind,
    FlagCode,
)


# =============================================================================
# CLASSIFICATION TABLE
# =============================================================================
# (kind, field) -> base flag. Kinds that concern the whole product use None
# as field. PRICE is a base flag only: direction refines it to 13 or 15.

ClassificationKey = Tuple[ChangeKind, Optional[str]]

CLASSIFICATION_TABLE: Mapping[ClassificationKey, FlagCode] = MappingProxyType({
    # Existence
    (ChangeKind.NEW, None): FlagCode.NEW,
    (ChangeKind.DELETED, None): FlagCode.DELETE,

    # Reimbursement list status
    (ChangeKind.LIST_ENTRY_ADDED, None): FlagCode.SL_ENTRY,
    (ChangeKind.LIST_ENTRY_REMOVED, None): FlagCode.SL_ENTRY_DELETE,

    # Registration fields
    (ChangeKind.FIELD_CHANGED, "name"): FlagCode.NAME_BASE,
    (ChangeKind.FIELD_CHANGED, "owner"): FlagCode.ADDRESS,
    (ChangeKind.FIELD_CHANGED, "category"): FlagCode.IKSCAT,
    (ChangeKind.FIELD_CHANGED, "composition"): FlagCode.COMPOSITION,
    (ChangeKind.FIELD_CHANGED, "active_agent"): FlagCode.COMPOSITION,
    (ChangeKind.FIELD_CHANGED, "indication"): FlagCode.INDICATION,
    (ChangeKind.FIELD_CHANGED, "sequence"): FlagCode.SEQUENCE,
    (ChangeKind.FIELD_CHANGED, "expiry_date"): FlagCode.EXPIRY_DATE,

    # Prices
    (ChangeKind.PRICE_CHANGED, RETAIL_PRICE_FIELD): FlagCode.PRICE,
    (ChangeKind.PRICE_CHANGED, EXFACTORY_PRICE_FIELD): FlagCode.PRICE,
})


class FlagClassifier:
    """
    Stateless (kind, field) -> FlagCode classifier.

    The table is wrapped read-only at construction, so one instance can be
    shared by any number of worker threads.
    """

    def __init__(self, table: Mapping[ClassificationKey, FlagCode] = CLASSIFICATION_TABLE):
        self._table = MappingProxyType(dict(table))

    @property
    def table(self) -> Mapping[ClassificationKey, FlagCode]:
        return self._table

    def classify(
        self,
        kind: ChangeKind,
        field: Optional[str] = None,
        old_value: Any = None,
        new_value: Any = None,
        identifier: Optional[str] = None
    ) -> FlagCode:
        """
        Assign the flag code for one detected change.

        Args:
            kind: Change kind
            field: Field name, None for whole-product changes
            old_value: Value in the old snapshot (used for price direction)
            new_value: Value in the new snapshot (used for price direction)
            identifier: Only used to label the error

        Returns:
            FlagCode; for prices PRICE_RISE or PRICE_CUT, or PRICE when the
            amounts are equal (callers do not emit unchanged prices)

        Raises:
            UnclassifiedChange: If (kind, field) has no table entry
        """
        try:
            flag = self._table[(kind, field)]
        except KeyError:
            raise UnclassifiedChange(kind, field, identifier) from None

        if flag is FlagCode.PRICE:
            return _price_direction(old_value, new_value)
        return flag


def _price_direction(old_value: Any, new_value: Any) -> FlagCode:
    # An absent price counts as zero, so a first price is a rise
    old_amount = float(old_value) if old_value is not None else 0.0
    new_amount = float(new_value) if new_value is not None else 0.0

    if new_amount > old_amount:
        return FlagCode.PRICE_RISE
    if new_amount < old_amount:
        return FlagCode.PRICE_CUT
    return FlagCode.PRICE


DEFAULT_CLASSIFIER = FlagClassifier()
