"""Checkout and check-in, for single items and for whole systems.

A system goes out as one unit under one work order and comes back the same
way. Both directions are all-or-nothing: every item is validated before any
row changes, and the whole batch shares one transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from ..core.errors import ConflictError, IneligibleStateError, NoMatchError, NotAvailableError, ValidationError
from ..core.tags import normalize_tag
from ..crud.equipment import (
    apply_changes,
    list_equipment,
    lock_by_work_order,
    lock_equipment,
    verify_links,
)
from ..crud.history import append_history
from ..db.session import atomic
from ..models.equipment import STATUS_AVAILABLE, STATUS_BROKEN, STATUS_CHECKED_OUT, Equipment
from ..models.history import ACTION_CHECK_IN, ACTION_CHECK_OUT, ACTION_REPORT_BROKEN
from .due_dates import now_iso
from .eligibility import (
    REASON_CHECKED_OUT,
    REASON_LOCATION,
    SubstituteConstraints,
    describe,
    ineligibility_reason,
    is_computer,
)
from .substitution import release_substitute

logger = logging.getLogger(__name__)

GROUP_RETURN_NOTE = "Returned via system check-in"
GROUP_BROKEN_NOTE = "Reported broken during system check-in"


def _required_text(value: str | None, name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{name} is required")
    return cleaned


def _reject(problems: list[tuple[Equipment, str]], operation: str) -> None:
    """Raise one error describing every item that blocked a batch."""

    details = {"items": [{"id": item.id, "reason": reason} for item, reason in problems]}
    message = "; ".join(describe(item, reason) for item, reason in problems)
    logger.warning(f"equipment.{operation}.rejected", extra={"extra_data": details})
    if any(reason == REASON_CHECKED_OUT for _, reason in problems):
        raise ConflictError(message, details=details)
    raise NotAvailableError(message, details=details)


def checkout_single(db: Session, item_id: str, work_order: str, tech_name: str) -> Equipment:
    work_order = _required_text(work_order, "work_order")
    tech_name = _required_text(tech_name, "tech_name")
    key = normalize_tag(item_id)
    if not key:
        raise ValidationError("id is required")

    with atomic(db):
        item = lock_equipment(db, [key])[key]
        problem = ineligibility_reason(item, SubstituteConstraints(serving_color=item.temporary_system_color))
        if problem:
            _reject([(item, problem)], "checkout")
        apply_changes(
            item,
            {
                "status": STATUS_CHECKED_OUT,
                "work_order": work_order,
                "checked_out_by": tech_name,
                "checked_out_at": now_iso(),
            },
        )
        append_history(
            db,
            equipment_id=item.id,
            action=ACTION_CHECK_OUT,
            details=f"Checked out by {tech_name}",
            work_order=work_order,
        )
    db.refresh(item)
    logger.info("equipment.checkout", extra={"extra_data": {"equipment_id": item.id, "work_order": work_order}})
    return item


def checkin_single(db: Session, item_id: str, notes: str | None = None, is_broken: bool = False) -> Equipment:
    """Bring one item back, or report an idle item broken.

    Blank notes leave the item's existing notes untouched.
    """

    key = normalize_tag(item_id)
    if not key:
        raise ValidationError("id is required")
    notes = (notes or "").strip() or None

    with atomic(db):
        item = lock_equipment(db, [key])[key]
        if item.status == STATUS_BROKEN:
            raise IneligibleStateError(
                f"{item.id} is already broken; return it from repair instead",
                details={"id": item.id, "status": item.status},
            )
        if item.status == STATUS_AVAILABLE and not is_broken:
            raise IneligibleStateError(f"{item.id} is not checked out", details={"id": item.id})

        work_order = item.work_order
        new_status = STATUS_BROKEN if is_broken else STATUS_AVAILABLE
        if item.temporary_system_color or item.swapped_from_id:
            release_substitute(db, item, status=new_status, record=False)
        changes: dict[str, Any] = {"status": new_status}
        if notes:
            changes["notes"] = notes
        apply_changes(item, changes)
        verify_links(db, [item])
        append_history(
            db,
            equipment_id=item.id,
            action=ACTION_REPORT_BROKEN if is_broken else ACTION_CHECK_IN,
            details=notes or ("Reported broken" if is_broken else "Returned"),
            work_order=work_order,
        )
    db.refresh(item)
    logger.info("equipment.checkin", extra={"extra_data": {"equipment_id": item.id, "broken": is_broken}})
    return item


def _dedupe(ids: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for raw in ids:
        key = normalize_tag(raw)
        if key and key not in seen:
            seen.append(key)
    return seen


def checkout_group(
    db: Session,
    anchor_color: str,
    item_ids: Iterable[str],
    work_order: str,
    tech_name: str,
) -> list[Equipment]:
    """Check out a computer and its bag as one system under ``work_order``.

    The computer keeps (or is given) ``anchor_color`` as its permanent system.
    Bag items that are not permanently part of that system carry it as their
    temporary system for the duration of the deployment. Bag items must sit
    where the computer sits, unless they fill in for a category the system is
    missing from this checkout.
    """

    anchor_color = _required_text(anchor_color, "system_color")
    work_order = _required_text(work_order, "work_order")
    tech_name = _required_text(tech_name, "tech_name")
    keys = _dedupe(item_ids or [])
    if not keys:
        raise ValidationError("at least one equipment id is required")

    with atomic(db):
        rows = lock_equipment(db, keys)
        items = [rows[key] for key in keys]
        anchor = next((item for item in items if is_computer(item)), None)
        if anchor is None:
            raise ValidationError("a system checkout must include its computer")
        if anchor.effective_system_color and anchor.effective_system_color != anchor_color:
            raise IneligibleStateError(
                f"{anchor.id} belongs to {anchor.effective_system_color} System, not {anchor_color}",
                details={"id": anchor.id, "system_color": anchor.effective_system_color},
            )

        members = list_equipment(db, system_color=anchor_color)
        left_behind = {m.category for m in members if m.id not in rows and not is_computer(m)}

        problems = []
        for item in items:
            location = None if item is anchor else anchor.location
            problem = ineligibility_reason(
                item, SubstituteConstraints(serving_color=anchor_color, location=location)
            )
            if problem == REASON_LOCATION and item.category in left_behind:
                problem = None
            if problem:
                problems.append((item, problem))
        if problems:
            _reject(problems, "checkout_group")

        checked_out_at = now_iso()
        for item in items:
            changes: dict[str, Any] = {
                "status": STATUS_CHECKED_OUT,
                "work_order": work_order,
                "checked_out_by": tech_name,
                "checked_out_at": checked_out_at,
            }
            details = f"Checked out as part of {anchor_color} System by {tech_name}"
            if item is anchor:
                if not item.temporary_system_color:
                    changes["system_color"] = anchor_color
                    changes["original_system_color"] = item.original_system_color or anchor_color
            elif item.system_color != anchor_color and item.temporary_system_color != anchor_color:
                changes["temporary_system_color"] = anchor_color
                changes["original_system_color"] = item.original_system_color or item.system_color
                details += f" (borrowed from {item.system_color + ' System' if item.system_color else 'spares'})"
            apply_changes(item, changes)
            append_history(
                db,
                equipment_id=item.id,
                action=ACTION_CHECK_OUT,
                details=details,
                work_order=work_order,
            )

    for item in items:
        db.refresh(item)
    logger.info(
        "equipment.checkout_group",
        extra={"extra_data": {"system_color": anchor_color, "work_order": work_order, "equipment_ids": keys}},
    )
    return items


def _report_value(report: Any, key: str, default: Any = None) -> Any:
    if isinstance(report, Mapping):
        return report.get(key, default)
    return getattr(report, key, default)


def checkin_by_work_order(db: Session, work_order: str, reports: Mapping[str, Any] | None = None) -> list[Equipment]:
    """Check in everything still out under ``work_order``.

    ``reports`` maps equipment id to ``{"is_broken": bool, "notes": str}``.
    Items without a report come back as available with a generic note.
    """

    work_order = _required_text(work_order, "work_order")
    by_id = {normalize_tag(k): v for k, v in (reports or {}).items() if normalize_tag(k)}

    with atomic(db):
        items = lock_by_work_order(db, work_order)
        if not items:
            raise NoMatchError("Work order", work_order, message=f"No equipment is checked out under {work_order}")
        stray = sorted(set(by_id) - {item.id for item in items})
        if stray:
            logger.warning(
                "equipment.checkin_by_work_order.unmatched_reports",
                extra={"extra_data": {"work_order": work_order, "equipment_ids": stray}},
            )

        for item in items:
            report = by_id.get(item.id) or {}
            is_broken = bool(_report_value(report, "is_broken", False))
            notes = (_report_value(report, "notes") or "").strip() or (
                GROUP_BROKEN_NOTE if is_broken else GROUP_RETURN_NOTE
            )
            new_status = STATUS_BROKEN if is_broken else STATUS_AVAILABLE
            if item.temporary_system_color or item.swapped_from_id:
                release_substitute(db, item, status=new_status, record=False)
            apply_changes(item, {"status": new_status, "notes": notes})
            append_history(
                db,
                equipment_id=item.id,
                action=ACTION_REPORT_BROKEN if is_broken else ACTION_CHECK_IN,
                details=notes,
                work_order=work_order,
            )
        verify_links(db, items)

    for item in items:
        db.refresh(item)
    logger.info(
        "equipment.checkin_by_work_order",
        extra={"extra_data": {"work_order": work_order, "equipment_ids": [item.id for item in items]}},
    )
    return items
