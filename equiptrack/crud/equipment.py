"""Equipment store primitives and the record-level consistency rules.

Every write to an equipment row, whether it comes from a plain PATCH or from
one of the workflow services, goes through :func:`apply_changes`, which keeps
the checkout triple all-or-nothing, keeps substitutes out of repair locations
and stamps ``updated_at``. The workflow services compose these primitives
inside a single transaction; the CRUD helpers here commit their own.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Iterable

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from ..core.errors import (
    AlreadyExistsError,
    IneligibleStateError,
    InvariantViolationError,
    LinkedEquipmentError,
    NotFoundError,
    ValidationError,
)
from ..core.locations import is_repair_location, normalize_location
from ..core.tags import normalize_tag
from ..db.session import atomic
from ..models.equipment import (
    CHECKOUT_FIELDS,
    STATUS_AVAILABLE,
    STATUS_BROKEN,
    STATUS_CHECKED_OUT,
    STATUSES,
    Equipment,
)
from ..models.history import ACTION_CREATE, ACTION_DELETE, ACTION_UPDATE
from ..services.due_dates import normalize_ts, now_iso
from .history import append_history

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "category",
    "status",
    "location",
    "system_color",
    "work_order",
    "checked_out_by",
    "checked_out_at",
    "due_date",
    "notes",
)
# Only the substitution and repair workflows may touch these.
MANAGED_FIELDS = (
    "replacement_id",
    "swapped_from_id",
    "temporary_system_color",
    "original_system_color",
    "version",
    "created_at",
    "updated_at",
)
REQUIRED_TEXT = ("name", "category")
TIMESTAMP_FIELDS = ("due_date", "checked_out_at")
# Swap partners depend on these; the swap and repair workflows change them.
LINK_FROZEN_FIELDS = ("status", "system_color", "category")


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _require_id(raw: Any) -> str:
    if raw is not None and not isinstance(raw, str):
        raise ValidationError("id must be text", details={"type": type(raw).__name__})
    item_id = normalize_tag(raw)
    if not item_id:
        raise ValidationError("id is required")
    return item_id


def _clean_field(key: str, value: Any) -> Any:
    if value is not None and not isinstance(value, str):
        # Dates may come in as objects from Python callers; everything else is text.
        if not (key in TIMESTAMP_FIELDS and isinstance(value, (date, datetime))):
            raise ValidationError(f"{key} must be text", details={"field": key, "type": type(value).__name__})
    value = _clean(value)
    if key in REQUIRED_TEXT and not value:
        raise ValidationError(f"{key} is required")
    if key == "status" and value not in STATUSES:
        raise ValidationError(f"status must be one of {', '.join(STATUSES)}")
    if key == "location":
        return normalize_location(value)
    if key in TIMESTAMP_FIELDS and value is not None:
        try:
            return normalize_ts(value)
        except ValueError as exc:
            raise ValidationError(f"{key}: {exc}") from exc
    return value


def enforce_invariants(item: Equipment) -> None:
    """Normalize or reject a row that is about to be flushed."""

    if item.status not in STATUSES:
        raise ValidationError(f"status must be one of {', '.join(STATUSES)}")

    if item.status == STATUS_CHECKED_OUT:
        if not item.work_order or not item.checked_out_by:
            raise ValidationError("work_order and checked_out_by are required while checked out")
        if not item.checked_out_at:
            item.checked_out_at = now_iso()
    else:
        for field in CHECKOUT_FIELDS:
            setattr(item, field, None)

    if item.temporary_system_color and is_repair_location(item.location):
        raise IneligibleStateError(
            f"{item.id} is standing in for {item.temporary_system_color} and cannot be in repair",
            details={"id": item.id, "location": item.location},
        )


def apply_changes(item: Equipment, changes: dict[str, Any]) -> list[str]:
    """Set attributes, enforce the record rules and stamp ``updated_at``.

    Returns the names of fields whose value actually changed.
    """

    changed = []
    for key, value in changes.items():
        if getattr(item, key) != value:
            setattr(item, key, value)
            changed.append(key)
    enforce_invariants(item)
    if changed:
        item.updated_at = now_iso()
    return changed


def verify_links(db: Session, items: Iterable[Equipment]) -> None:
    """Check that replacement/swapped-from pointers are mutual inverses."""

    for item in items:
        if item.replacement_id:
            partner = db.get(Equipment, item.replacement_id)
            if partner is None or partner.swapped_from_id != item.id:
                raise InvariantViolationError(
                    f"{item.id}.replacement_id points at {item.replacement_id} without a back link",
                    details={"id": item.id, "replacement_id": item.replacement_id},
                )
        if item.swapped_from_id:
            partner = db.get(Equipment, item.swapped_from_id)
            if partner is None or partner.replacement_id != item.id:
                raise InvariantViolationError(
                    f"{item.id}.swapped_from_id points at {item.swapped_from_id} without a forward link",
                    details={"id": item.id, "swapped_from_id": item.swapped_from_id},
                )


def lock_equipment(db: Session, ids: Iterable[str]) -> dict[str, Equipment]:
    """Load rows for a write, fresh from the database and row-locked.

    Raises ``NotFoundError`` for the first id that does not exist.
    """

    wanted = [_require_id(i) for i in ids]
    # Reloading must not clobber edits staged earlier in the same unit of work.
    db.flush()
    stmt = (
        select(Equipment)
        .where(Equipment.id.in_(wanted))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    found = {item.id: item for item in db.execute(stmt).scalars().all()}
    for item_id in wanted:
        if item_id not in found:
            raise NotFoundError("Equipment", item_id)
    return found


def lock_optional(db: Session, item_id: str | None) -> Equipment | None:
    """Row-locked fetch that tolerates a missing id."""

    if not item_id:
        return None
    db.flush()
    stmt = (
        select(Equipment)
        .where(Equipment.id == item_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalars().first()


def lock_by_work_order(db: Session, work_order: str) -> list[Equipment]:
    """Row-locked variant of :func:`list_by_work_order` for check-in."""

    db.flush()
    stmt = (
        select(Equipment)
        .where(Equipment.status == STATUS_CHECKED_OUT, Equipment.work_order == work_order)
        .order_by(Equipment.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalars().all()


def list_equipment(
    db: Session,
    *,
    status: str | None = None,
    category: str | None = None,
    location: str | None = None,
    system_color: str | None = None,
    work_order: str | None = None,
) -> list[Equipment]:
    """Return equipment ordered by id, optionally filtered.

    ``system_color`` matches the effective group, so a substitute shows up
    under the system it is currently serving.
    """

    stmt = select(Equipment)
    if status:
        stmt = stmt.where(Equipment.status == status)
    if category:
        stmt = stmt.where(Equipment.category == category)
    if location:
        stmt = stmt.where(Equipment.location == normalize_location(location))
    if system_color:
        stmt = stmt.where(
            or_(
                Equipment.temporary_system_color == system_color,
                and_(Equipment.temporary_system_color.is_(None), Equipment.system_color == system_color),
            )
        )
    if work_order:
        stmt = stmt.where(Equipment.work_order == work_order)
    return db.execute(stmt.order_by(Equipment.id)).scalars().all()


def list_by_work_order(db: Session, work_order: str) -> list[Equipment]:
    """Items currently checked out under ``work_order``."""

    return list_equipment(db, status=STATUS_CHECKED_OUT, work_order=work_order)


def get_equipment(db: Session, item_id: str) -> Equipment | None:
    key = normalize_tag(item_id)
    if not key:
        return None
    return db.get(Equipment, key)


def require_equipment(db: Session, item_id: str) -> Equipment:
    item = get_equipment(db, item_id)
    if item is None:
        raise NotFoundError("Equipment", str(item_id))
    return item


def _reject_managed(payload: dict) -> None:
    managed = sorted(k for k in payload if k in MANAGED_FIELDS)
    if managed:
        raise ValidationError(
            f"fields are managed by the swap and repair workflows: {', '.join(managed)}",
            details={"fields": managed},
        )


def create_equipment(db: Session, payload: dict) -> Equipment:
    """Create and persist an equipment row from a payload dict."""

    data = dict(payload)
    _reject_managed(data)
    item_id = _require_id(data.pop("id", None))
    if db.get(Equipment, item_id) is not None:
        raise AlreadyExistsError("Equipment", item_id)

    fields: dict[str, Any] = {"status": STATUS_AVAILABLE, "location": None}
    for key in EDITABLE_FIELDS:
        if key in data:
            fields[key] = data[key]
    for key in REQUIRED_TEXT:
        fields.setdefault(key, None)
    fields = {key: _clean_field(key, value) for key, value in fields.items()}

    now = now_iso()
    item = Equipment(
        id=item_id,
        original_system_color=fields.get("system_color"),
        created_at=now,
        updated_at=now,
        **fields,
    )
    enforce_invariants(item)
    with atomic(db):
        db.add(item)
        append_history(
            db,
            equipment_id=item.id,
            action=ACTION_CREATE,
            details=f"Created {item.name} ({item.category})",
            work_order=item.work_order,
        )
    db.refresh(item)
    logger.info("equipment.created", extra={"extra_data": {"equipment_id": item.id}})
    return item


def update_equipment(db: Session, item_id: str, payload: dict) -> Equipment:
    """Patch editable fields of one item.

    Unknown keys are ignored so older clients with stale fields do not break.
    The id is immutable and link fields belong to the workflows.
    """

    item = require_equipment(db, item_id)
    data = dict(payload)
    _reject_managed(data)
    if "id" in data:
        if normalize_tag(data.pop("id")) != item.id:
            raise ValidationError("equipment id cannot be changed", details={"id": item.id})

    changes = {k: _clean_field(k, v) for k, v in data.items() if k in EDITABLE_FIELDS}

    partner = item.replacement_id or item.swapped_from_id
    frozen = sorted(k for k in LINK_FROZEN_FIELDS if k in changes and changes[k] != getattr(item, k))
    if partner and frozen:
        raise LinkedEquipmentError(
            f"{item.id} is linked to {partner} by an active swap; "
            "use unswap, return-borrowed or return-from-repair before changing " + ", ".join(frozen),
            details={"id": item.id, "partner_id": partner, "fields": frozen},
        )
    if "system_color" in changes and changes["system_color"] != item.system_color:
        if item.status == STATUS_BROKEN:
            raise IneligibleStateError(
                f"{item.id} is broken; its system membership is frozen until repaired",
                details={"id": item.id, "system_color": item.system_color},
            )
        if not item.temporary_system_color:
            changes["original_system_color"] = changes["system_color"]

    with atomic(db):
        changed = apply_changes(item, changes)
        if changed:
            append_history(
                db,
                equipment_id=item.id,
                action=ACTION_UPDATE,
                details="Updated " + ", ".join(sorted(changed)),
                work_order=item.work_order,
            )
    db.refresh(item)
    if changed:
        logger.info("equipment.updated", extra={"extra_data": {"equipment_id": item.id, "fields": changed}})
    return item


def delete_equipment(db: Session, item_id: str) -> None:
    """Delete one item. Items in an active swap must be unswapped first."""

    item = require_equipment(db, item_id)
    if item.replacement_id or item.swapped_from_id:
        partner = item.replacement_id or item.swapped_from_id
        raise LinkedEquipmentError(
            f"{item.id} is linked to {partner} by an active swap; unswap it first",
            details={"id": item.id, "partner_id": partner},
        )
    key = item.id
    with atomic(db):
        append_history(
            db,
            equipment_id=key,
            action=ACTION_DELETE,
            details=f"Deleted {item.name} ({item.category})",
        )
        db.delete(item)
    logger.info("equipment.deleted", extra={"extra_data": {"equipment_id": key}})
