from .identifier import build_identifier, gtin_checksum
from .parser import RegistrationParser
from .records import PriceCategory, PriceFact, PriceListEntry, RegistrationRecord
from .errors import AmbiguousPriceFact, InvalidIdentifierInput, PharmaDiffError, UnclassifiedChange
from .schema import FLAG_LEGEND, ChangeKind, FlagCode

__all__ = [
    "build_identifier",
    "gtin_checksum",
    "RegistrationParser",
    "PriceCategory",
    "PriceFact",
    "PriceListEntry",
    "RegistrationRecord",
    "AmbiguousPriceFact",
    "InvalidIdentifierInput",
    "PharmaDiffError",
    "UnclassifiedChange",
    "FLAG_LEGEND",
    "ChangeKind",
    "FlagCode",
]
