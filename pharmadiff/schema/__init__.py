"""Registry schema definitions: flag taxonomy, change kinds and source column layouts."""

from enum import Enum, IntEnum
from typing import Dict, List

# Fixed 4-digit GS1 prefix of every Swiss pharmaceutical pack identifier
IDENTIFIER_PREFIX = "7680"
REGISTRATION_NUMBER_WIDTH = 5
PACK_CODE_WIDTH = 3
IDENTIFIER_LENGTH = 13


class FlagCode(IntEnum):
    """
    Numeric change taxonomy shared by every change-set and the merged report.

    Code 12 is reserved and intentionally has no member.
    """
    NEW = 1
    SL_ENTRY_DELETE = 2
    NAME_BASE = 3
    ADDRESS = 4
    IKSCAT = 5
    COMPOSITION = 6
    INDICATION = 7
    SEQUENCE = 8
    EXPIRY_DATE = 9
    SL_ENTRY = 10
    PRICE = 11
    PRICE_RISE = 13
    DELETE = 14
    PRICE_CUT = 15


# Code -> category name, the canonical legend written into every report
FLAG_LEGEND: Dict[int, str] = {
    FlagCode.NEW: "new",
    FlagCode.SL_ENTRY_DELETE: "sl_entry_delete",
    FlagCode.NAME_BASE: "name_base",
    FlagCode.ADDRESS: "address",
    FlagCode.IKSCAT: "ikscat",
    FlagCode.COMPOSITION: "composition",
    FlagCode.INDICATION: "indication",
    FlagCode.SEQUENCE: "sequence",
    FlagCode.EXPIRY_DATE: "expiry_date",
    FlagCode.SL_ENTRY: "sl_entry",
    FlagCode.PRICE: "price",
    FlagCode.PRICE_RISE: "price_rise",
    FlagCode.DELETE: "delete",
    FlagCode.PRICE_CUT: "price_cut",
}


class ChangeKind(Enum):
    """What happened to an identifier between two snapshots."""
    NEW = "new"
    DELETED = "deleted"
    FIELD_CHANGED = "field_changed"
    PRICE_CHANGED = "price_changed"
    LIST_ENTRY_ADDED = "list_entry_added"
    LIST_ENTRY_REMOVED = "list_entry_removed"


# Sort order of kinds within one identifier
CHANGE_KIND_ORDER: Dict[ChangeKind, int] = {kind: index for index, kind in enumerate(ChangeKind)}

# Kinds that mean "this product went away" for merge de-duplication
DELETION_KINDS = frozenset({ChangeKind.DELETED, ChangeKind.LIST_ENTRY_REMOVED})

# Registration fields compared by the registration differ, in output order
REGISTRATION_FIELDS: List[str] = [
    "name",
    "owner",
    "category",
    "composition",
    "active_agent",
    "indication",
    "sequence",
    "expiry_date",
]

RETAIL_PRICE_FIELD = "retail_price"
EXFACTORY_PRICE_FIELD = "exfactory_price"
PRICE_FIELDS: List[str] = [RETAIL_PRICE_FIELD, EXFACTORY_PRICE_FIELD]

# Change-set source names
SOURCE_REGISTRATION = "registration"
SOURCE_PRICE_LIST = "price_list"

# Positional columns of the authorized-packages sheet (no reliable header row)
REGISTRATION_COLUMNS: Dict[str, int] = {
    "registration_number": 0,
    "name": 2,
    "owner": 3,
    "expiry_date": 9,
    "pack_code": 10,
    "sequence": 12,
    "category": 13,
    "active_agent": 16,
    "composition": 17,
    "indication": 19,
}
MIN_REGISTRATION_COLUMNS = 11

# Sheet columns that hold dates (rendered as YYYY/MM/DD)
REGISTRATION_DATE_COLUMNS = (7, 8, 9)

# FHIR codes of the reimbursed-price list export
GTIN_SYSTEM = "urn:oid:2.51.1.1"
SL_AUTHORIZATION_CODE = "756000002003"
RETAIL_PRICE_CODE = "756002005001"
EXFACTORY_PRICE_CODE = "756002005002"
PRODUCT_PRICE_EXTENSION = "productPrice"

__all__ = [
    "IDENTIFIER_PREFIX",
    "REGISTRATION_NUMBER_WIDTH",
    "PACK_CODE_WIDTH",
    "IDENTIFIER_LENGTH",
    "FlagCode",
    "FLAG_LEGEND",
    "ChangeKind",
    "CHANGE_KIND_ORDER",
    "DELETION_KINDS",
    "REGISTRATION_FIELDS",
    "RETAIL_PRICE_FIELD",
    "EXFACTORY_PRICE_FIELD",
    "PRICE_FIELDS",
    "SOURCE_REGISTRATION",
    "SOURCE_PRICE_LIST",
    "REGISTRATION_COLUMNS",
    "MIN_REGISTRATION_COLUMNS",
    "REGISTRATION_DATE_COLUMNS",
    "GTIN_SYSTEM",
    "SL_AUTHORIZATION_CODE",
    "RETAIL_PRICE_CODE",
    "EXFACTORY_PRICE_CODE",
    "PRODUCT_PRICE_EXTENSION",
]
