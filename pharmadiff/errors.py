"""
Error taxonomy for the diff-and-classify engine.

Identifier and classification failures are fatal for the enclosing diff run:
they propagate out of the differs untouched so no partially flagged change-set
is ever produced. Price-fact ties are NOT errors; they are resolved by a fixed
tie-break and reported as AmbiguousPriceFact diagnostics.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional


class PharmaDiffError(Exception):
    """Base class for all fatal pharmadiff errors."""


class InvalidIdentifierInput(PharmaDiffError, ValueError):
    """
    A registration number or pack code cannot be turned into an identifier.

    Raised for empty, non-numeric or over-width inputs. The builder never
    truncates or pads its way around malformed data.
    """

    def __init__(self, field: str, value: Any, reason: str, record: Optional[str] = None):
        self.field = field
        self.value = value
        self.reason = reason
        self.record = record
        where = f" in {record}" if record else ""
        super().__init__(f"Invalid {field} {value!r}{where}: {reason}")


class UnclassifiedChange(PharmaDiffError):
    """
    A (kind, field) pair has no entry in the flag taxonomy.

    This means the upstream schema has drifted; mapping it to some other
    flag would mislabel the report, so the whole run is aborted.
    """

    def __init__(self, kind: Any, field: Optional[str], identifier: Optional[str] = None):
        self.kind = kind
        self.field = field
        self.identifier = identifier
        kind_name = getattr(kind, "value", kind)
        where = f" for {identifier}" if identifier else ""
        super().__init__(f"No flag for change kind {kind_name!r} on field {field!r}{where}")


@dataclass(frozen=True)
class AmbiguousPriceFact:
    """
    Diagnostic: several price facts share the winning effective date.

    The last fact in source order wins. Upstream ordering is not contractually
    stable, so ties are counted and logged for data-quality monitoring.
    """
    category: str
    effective_date: date
    tied_count: int
    chosen_amount: float
    identifier: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "category": self.category,
            "effective_date": self.effective_date.isoformat(),
            "tied_count": self.tied_count,
            "chosen_amount": self.chosen_amount,
        }
