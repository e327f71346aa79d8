"""
Snapshot records handed to the differs.

These are produced by the adapters/parser layer and are immutable for the
lifetime of a snapshot. The differs only read them.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Tuple

from .identifier import build_identifier


class PriceCategory(Enum):
    """Price facts are tracked per category; categories never mix."""
    RETAIL = "retail"
    EXFACTORY = "exfactory"


@dataclass(frozen=True)
class RegistrationRecord:
    """
    One authorized pharmaceutical pack as registered with the authority.

    All text fields are expected to be normalized already (line endings,
    surrounding whitespace); the differ compares them verbatim.
    """
    registration_number: str
    pack_code: str
    name: str = ""
    owner: str = ""
    category: str = ""
    composition: str = ""
    active_agent: str = ""
    indication: str = ""
    sequence: str = ""
    expiry_date: str = ""

    @property
    def identifier(self) -> str:
        """13-digit join key; raises InvalidIdentifierInput for malformed keys."""
        return build_identifier(self.registration_number, self.pack_code)


@dataclass(frozen=True)
class PriceFact:
    """A dated price: in force from effective_date until superseded."""
    amount: float
    category: PriceCategory
    effective_date: date


@dataclass(frozen=True)
class PriceListEntry:
    """
    One product's presence on the reimbursed-price list.

    `listed` is the list-entry status; `facts` keep their source order, which
    decides ties between facts sharing an effective date.
    """
    identifier: str
    name: str = ""
    listed: bool = True
    facts: Tuple[PriceFact, ...] = field(default_factory=tuple)
