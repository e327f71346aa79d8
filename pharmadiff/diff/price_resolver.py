"""
Effective price resolution.

A price-list entry carries every price fact ever published for it. The price
in force on a given day is the fact of the wanted category with the latest
effective date not after that day. When several facts tie on that date, the
one appearing last in source order wins; ties are reported, never raised.
"""

import logging
from datetime import date
from typing import Iterable, Optional, Tuple

from ..errors import AmbiguousPriceFact
from ..records import PriceCategory, PriceFact

logger = logging.getLogger(__name__)


def find_effective_fact(
    facts: Iterable[PriceFact],
    as_of: date,
    category: PriceCategory,
    identifier: Optional[str] = None
) -> Tuple[Optional[PriceFact], Optional[AmbiguousPriceFact]]:
    """
    Select the fact in force on `as_of` for one category.

    Args:
        facts: Price facts in source order
        as_of: Reference day (inclusive)
        category: Category to resolve
        identifier: Only used to label the tie diagnostic

    Returns:
        (chosen fact or None, tie diagnostic or None)
    """
    best: Optional[PriceFact] = None
    tied = 0

    for fact in facts:
        if fact.category != category or fact.effective_date > as_of:
            continue
        if best is None or fact.effective_date > best.effective_date:
            best = fact
            tied = 1
        elif fact.effective_date == best.effective_date:
            # Later in source order wins the tie
            best = fact
            tied += 1

    if best is None or tied < 2:
        return best, None

    ambiguity = AmbiguousPriceFact(
        category=category.value,
        effective_date=best.effective_date,
        tied_count=tied,
        chosen_amount=best.amount,
        identifier=identifier,
    )
    logger.debug(
        f"Price tie for {identifier or '<unknown>'}: {tied} {category.value} facts "
        f"on {best.effective_date.isoformat()}, using {best.amount}"
    )
    return best, ambiguity


def resolve_effective_price(
    facts: Iterable[PriceFact],
    as_of: date,
    category: PriceCategory
) -> Optional[float]:
    """
    Return the amount in force on `as_of`, or None if the category was not
    active yet.

    Example:
        >>> facts = [PriceFact(10.0, PriceCategory.RETAIL, date(2024, 1, 1)),
        ...          PriceFact(12.0, PriceCategory.RETAIL, date(2024, 6, 1))]
        >>> resolve_effective_price(facts, date(2024, 3, 1), PriceCategory.RETAIL)
        10.0
    """
    fact, _ = find_effective_fact(facts, as_of, category)
    return fact.amount if fact is not None else None
