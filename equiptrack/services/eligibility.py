"""The single answer to "may this item be pulled in to fill a slot?".

Swaps and group checkouts both pick items to stand in for something else and
must agree on what counts as available, so both call
:func:`ineligibility_reason` with the constraints that apply to them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..core.config import settings
from ..core.locations import is_repair_location
from ..models.equipment import STATUS_AVAILABLE, STATUS_CHECKED_OUT, Equipment

REASON_EXCLUDED = "excluded"
REASON_CHECKED_OUT = "checked_out"
REASON_BROKEN = "broken"
REASON_IN_REPAIR = "in_repair"
REASON_SERVING_OTHER = "serving_other_system"
REASON_CATEGORY = "category_mismatch"
REASON_LOCATION = "wrong_location"

REASON_TEXT = {
    REASON_EXCLUDED: "cannot substitute for itself",
    REASON_CHECKED_OUT: "is already checked out",
    REASON_BROKEN: "is broken",
    REASON_IN_REPAIR: "is away for repair",
    REASON_SERVING_OTHER: "is already standing in for another system",
    REASON_CATEGORY: "is a different category",
    REASON_LOCATION: "is not at the required location",
}


@dataclass(frozen=True)
class SubstituteConstraints:
    """What the slot being filled requires.

    ``serving_color`` is the system the item would serve; an item already
    standing in for that same system is still acceptable.
    """

    category: str | None = None
    location: str | None = None
    serving_color: str | None = None
    exclude_ids: frozenset[str] = field(default_factory=frozenset)


def ineligibility_reason(item: Equipment, constraints: SubstituteConstraints | None = None) -> str | None:
    """Return why ``item`` cannot fill the slot, or None when it can."""

    c = constraints or SubstituteConstraints()
    if item.id in c.exclude_ids:
        return REASON_EXCLUDED
    if item.status == STATUS_CHECKED_OUT:
        return REASON_CHECKED_OUT
    if item.status != STATUS_AVAILABLE:
        return REASON_BROKEN
    if is_repair_location(item.location):
        return REASON_IN_REPAIR
    if item.temporary_system_color and item.temporary_system_color != c.serving_color:
        return REASON_SERVING_OTHER
    if item.swapped_from_id and c.serving_color is None:
        return REASON_SERVING_OTHER
    if c.category is not None and item.category != c.category:
        return REASON_CATEGORY
    if c.location is not None and item.location != c.location:
        return REASON_LOCATION
    return None


def describe(item: Equipment, reason: str) -> str:
    return f"{item.id} {REASON_TEXT.get(reason, reason)}"


def is_computer(item: Equipment) -> bool:
    """Computers anchor a system; everything else of that color is its bag."""
    return (item.category or "").casefold() == settings.COMPUTER_CATEGORY.casefold()
