"""Equipment tag helpers.

The equipment id is also the payload printed on the item's physical QR tag,
so scanned values and typed values must land on the same key.
"""

from __future__ import annotations

import re

__all__ = ["normalize_tag"]

_WS_RE = re.compile(r"\s+")


def normalize_tag(raw: str | None) -> str | None:
    """Return the canonical id for a scanned or typed tag.

    * Trims surrounding whitespace and drops internal whitespace.
    * Upper-cases letters (``eq-001`` and ``EQ-001`` are the same item).
    """

    if raw is None:
        return None
    cleaned = _WS_RE.sub("", str(raw))
    if not cleaned:
        return None
    return cleaned.upper()
