"""Repair tracking and maintenance due dates.

Repair is a location, not a status: a broken (or suspect) item moves to one
of the repair locations and comes back to the home base as available.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import IneligibleStateError, NoMatchError, ValidationError
from ..core.locations import default_repair_location, home_location, is_repair_location, normalize_location, repair_locations
from ..core.tags import normalize_tag
from ..crud.equipment import apply_changes, lock_equipment, lock_optional, verify_links
from ..crud.history import append_history
from ..db.session import atomic
from ..models.equipment import STATUS_AVAILABLE, STATUS_BROKEN, STATUS_CHECKED_OUT, Equipment
from ..models.history import ACTION_MAINTENANCE
from .due_dates import UNITS, format_ts, normalize_ts, shift, utcnow
from .substitution import release_substitute

logger = logging.getLogger(__name__)


def send_to_repair(db: Session, item_id: str, location: str | None = None) -> Equipment:
    """Move a broken or idle item to a repair location."""

    target = normalize_location(location) if location else default_repair_location()
    if not is_repair_location(target):
        raise ValidationError(
            f"{target} is not a repair location",
            details={"allowed": repair_locations()},
        )
    key = normalize_tag(item_id)
    if not key:
        raise ValidationError("id is required")

    with atomic(db):
        item = lock_equipment(db, [key])[key]
        if item.status == STATUS_CHECKED_OUT:
            raise IneligibleStateError(
                f"{item.id} is checked out under {item.work_order}; check it in first",
                details={"id": item.id, "work_order": item.work_order},
            )
        if item.temporary_system_color or item.swapped_from_id:
            raise IneligibleStateError(
                f"{item.id} is standing in for {item.swapped_from_id or item.temporary_system_color}; return it first",
                details={"id": item.id},
            )
        previous = item.location
        if apply_changes(item, {"location": target}):
            append_history(
                db,
                equipment_id=item.id,
                action=ACTION_MAINTENANCE,
                details=f"Moved from {previous} to {target}",
            )
    db.refresh(item)
    logger.info("equipment.send_to_repair", extra={"extra_data": {"equipment_id": item.id, "location": target}})
    return item


def return_from_repair(db: Session, item_ids: Iterable[str], new_due_date: str | datetime | None = None) -> list[Equipment]:
    """Bring repaired items home as available.

    A returned item that had a spare standing in for it releases that spare
    back to its own system. ``new_due_date`` replaces the items' due date.
    """

    keys: list[str] = []
    for raw in item_ids or []:
        key = normalize_tag(raw)
        if key and key not in keys:
            keys.append(key)
    if not keys:
        raise ValidationError("at least one equipment id is required")
    try:
        due = normalize_ts(new_due_date)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    with atomic(db):
        rows = lock_equipment(db, keys)
        items = [rows[key] for key in keys]
        waiting = [i for i in items if not (is_repair_location(i.location) or i.status == STATUS_BROKEN)]
        if waiting:
            raise IneligibleStateError(
                "not in repair: " + ", ".join(i.id for i in waiting),
                details={"ids": [i.id for i in waiting]},
            )

        released = []
        for item in items:
            details = "Returned from repair"
            if item.replacement_id:
                substitute = lock_optional(db, item.replacement_id)
                if substitute is not None and substitute.swapped_from_id == item.id:
                    release_substitute(
                        db,
                        substitute,
                        record_partner=False,
                        details=f"Returned to own system; {item.id} is back from repair",
                    )
                    released.append(substitute)
                    details += f"; replacement {substitute.id} released"
                else:
                    apply_changes(item, {"replacement_id": None})
            changes = {"status": STATUS_AVAILABLE, "location": home_location()}
            if due:
                changes["due_date"] = due
                details += f"; due {due[:10]}"
            apply_changes(item, changes)
            append_history(db, equipment_id=item.id, action=ACTION_MAINTENANCE, details=details)
        verify_links(db, items + released)

    for item in items + released:
        db.refresh(item)
    logger.info(
        "equipment.return_from_repair",
        extra={"extra_data": {"equipment_ids": keys, "released": [s.id for s in released]}},
    )
    return items


def bulk_set_due_date(
    db: Session,
    category: str,
    amount: int,
    unit: str,
    *,
    now: datetime | None = None,
) -> list[Equipment]:
    """Set ``now + amount unit`` as the due date of every in-repair item of a category."""

    category = (category or "").strip()
    if not category:
        raise ValidationError("category is required")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("amount must be a positive whole number")
    if unit not in UNITS:
        raise ValidationError(f"unit must be one of {', '.join(UNITS)}")
    due = format_ts(shift(now or utcnow(), amount, unit))

    with atomic(db):
        db.flush()
        stmt = (
            select(Equipment)
            .where(Equipment.category == category, Equipment.location.in_(repair_locations()))
            .order_by(Equipment.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        items = db.execute(stmt).scalars().all()
        if not items:
            raise NoMatchError(
                "Equipment",
                category,
                message=f"No {category} equipment is currently in repair",
            )
        for item in items:
            apply_changes(item, {"due_date": due})
            append_history(
                db,
                equipment_id=item.id,
                action=ACTION_MAINTENANCE,
                details=f"Due date set to {due[:10]} ({amount} {unit})",
            )

    for item in items:
        db.refresh(item)
    logger.info(
        "equipment.bulk_set_due_date",
        extra={"extra_data": {"category": category, "due_date": due, "equipment_ids": [i.id for i in items]}},
    )
    return items
