"""Reserved location values.

``location`` is free text, but three values carry meaning for the engine: the
home base where idle equipment lives and the two repair sub-states. Anything
else is a staging area a technician typed in.
"""

from __future__ import annotations

import re

from .config import settings

__all__ = [
    "home_location",
    "repair_locations",
    "default_repair_location",
    "is_repair_location",
    "normalize_location",
]


def _collapse(value: str) -> str:
    return re.sub(r"\s+", " ", value.strip())


def home_location() -> str:
    return settings.HOME_LOCATION


def repair_locations() -> list[str]:
    return list(settings.REPAIR_LOCATIONS)


def default_repair_location() -> str:
    return settings.REPAIR_LOCATIONS[0]


def normalize_location(raw: str | None) -> str:
    """Return the canonical spelling of ``raw``.

    Blank values fall back to the home base. Reserved values are matched
    case-insensitively so "sent for repair" and "Sent For Repair" are stored
    the same way.
    """

    if raw is None:
        return home_location()
    cleaned = _collapse(raw)
    if not cleaned:
        return home_location()
    for reserved in (home_location(), *repair_locations()):
        if cleaned.casefold() == reserved.casefold():
            return reserved
    return cleaned


def is_repair_location(value: str | None) -> bool:
    if not value:
        return False
    folded = _collapse(value).casefold()
    return any(folded == loc.casefold() for loc in repair_locations())
