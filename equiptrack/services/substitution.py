"""Swapping a spare in for a broken item, and undoing it.

A swap links two rows: the broken item's ``replacement_id`` points at the
spare and the spare's ``swapped_from_id`` points back. The spare also takes
the broken item's system as its ``temporary_system_color`` so it shows up in
that system until it is released.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..core.errors import (
    IneligibleStateError,
    InvalidCategoryError,
    LinkedEquipmentError,
    NotAvailableError,
    ValidationError,
)
from ..core.locations import home_location
from ..core.tags import normalize_tag
from ..crud.equipment import apply_changes, lock_equipment, lock_optional, verify_links
from ..crud.history import append_history
from ..db.session import atomic
from ..models.equipment import STATUS_AVAILABLE, STATUS_BROKEN, STATUS_CHECKED_OUT, Equipment
from ..models.history import ACTION_SWAP_IN, ACTION_SWAP_OUT, ACTION_SWAP_RETURN
from .eligibility import REASON_CATEGORY, SubstituteConstraints, describe, ineligibility_reason

logger = logging.getLogger(__name__)

CONTEXT_BROKEN = "broken"
CONTEXT_CHECKED_OUT = "checked_out"
CONTEXTS = (CONTEXT_BROKEN, CONTEXT_CHECKED_OUT)


def _append_note(existing: str | None, line: str) -> str:
    return f"{existing}\n{line}" if existing else line


def _check_swappable(broken: Equipment, context: str) -> str:
    """Validate the broken side of a swap and return the system it belongs to."""

    if broken.temporary_system_color or broken.swapped_from_id:
        raise IneligibleStateError(
            f"{broken.id} is itself a substitute; return it before swapping",
            details={"id": broken.id},
        )
    if broken.replacement_id:
        raise LinkedEquipmentError(
            f"{broken.id} is already replaced by {broken.replacement_id}",
            details={"id": broken.id, "replacement_id": broken.replacement_id},
        )
    home_color = broken.system_color or broken.original_system_color
    if not home_color:
        raise IneligibleStateError(
            f"{broken.id} is not assigned to a system, so there is nothing to stand in for",
            details={"id": broken.id},
        )
    if context == CONTEXT_CHECKED_OUT and broken.status != STATUS_CHECKED_OUT:
        raise IneligibleStateError(
            f"{broken.id} is not checked out",
            details={"id": broken.id, "status": broken.status},
        )
    if context == CONTEXT_BROKEN and broken.status == STATUS_CHECKED_OUT:
        raise IneligibleStateError(
            f"{broken.id} is checked out; swap it in the checked_out context",
            details={"id": broken.id, "status": broken.status},
        )
    return home_color


def swap(
    db: Session,
    broken_id: str,
    replacement_id: str,
    context: str,
    reason: str | None = None,
) -> tuple[Equipment, Equipment]:
    """Link ``replacement_id`` in as the stand-in for ``broken_id``.

    In the ``checked_out`` context the replacement also inherits the broken
    item's work order, technician, checkout time and field location, so the
    deployment carries on without a fresh checkout.
    """

    if context not in CONTEXTS:
        raise ValidationError(f"context must be one of {', '.join(CONTEXTS)}")
    broken_key = normalize_tag(broken_id)
    replacement_key = normalize_tag(replacement_id)
    if not broken_key or not replacement_key:
        raise ValidationError("broken_id and replacement_id are required")
    if broken_key == replacement_key:
        raise ValidationError("an item cannot replace itself")
    reason = (reason or "").strip() or None

    with atomic(db):
        rows = lock_equipment(db, [broken_key, replacement_key])
        broken, replacement = rows[broken_key], rows[replacement_key]
        home_color = _check_swappable(broken, context)

        problem = ineligibility_reason(
            replacement,
            SubstituteConstraints(category=broken.category, exclude_ids=frozenset({broken.id})),
        )
        if problem == REASON_CATEGORY:
            raise InvalidCategoryError(
                f"{replacement.id} is {replacement.category}, {broken.id} needs {broken.category}",
                details={"broken_category": broken.category, "replacement_category": replacement.category},
            )
        if problem:
            raise NotAvailableError(describe(replacement, problem), details={"id": replacement.id, "reason": problem})

        work_order, checked_out_by, checked_out_at = broken.checkout_triple()
        field_location = broken.location
        note = f"Swapped with {replacement.id}" + (f": {reason}" if reason else "")

        apply_changes(
            broken,
            {
                "status": STATUS_BROKEN,
                "location": home_location(),
                "replacement_id": replacement.id,
                "notes": _append_note(broken.notes, note),
            },
        )
        replacement_changes = {
            "temporary_system_color": home_color,
            "original_system_color": replacement.original_system_color or replacement.system_color,
            "swapped_from_id": broken.id,
        }
        if context == CONTEXT_CHECKED_OUT:
            replacement_changes.update(
                status=STATUS_CHECKED_OUT,
                work_order=work_order,
                checked_out_by=checked_out_by,
                checked_out_at=checked_out_at,
                location=field_location,
            )
        apply_changes(replacement, replacement_changes)
        verify_links(db, [broken, replacement])

        append_history(
            db,
            equipment_id=broken.id,
            action=ACTION_SWAP_OUT,
            details=note,
            work_order=work_order,
        )
        append_history(
            db,
            equipment_id=replacement.id,
            action=ACTION_SWAP_IN,
            details=f"Standing in for {broken.id} in {home_color} System" + (f": {reason}" if reason else ""),
            work_order=work_order,
        )

    db.refresh(broken)
    db.refresh(replacement)
    logger.info(
        "equipment.swap",
        extra={"extra_data": {"broken_id": broken.id, "replacement_id": replacement.id, "context": context}},
    )
    return broken, replacement


def release_substitute(
    db: Session,
    substitute: Equipment,
    *,
    status: str = STATUS_AVAILABLE,
    record: bool = True,
    record_partner: bool = True,
    details: str | None = None,
) -> Equipment | None:
    """Drop ``substitute``'s temporary assignment and both swap pointers.

    Runs inside the caller's transaction. ``record`` and ``record_partner``
    control the ``swap_return`` entries; turn one off when the caller writes
    its own entry for that item (check-in, return from repair). Returns the
    partner, if any.
    """

    partner = lock_optional(db, substitute.swapped_from_id)
    served = substitute.temporary_system_color
    apply_changes(
        substitute,
        {"temporary_system_color": None, "swapped_from_id": None, "status": status},
    )
    if partner is not None and partner.replacement_id == substitute.id:
        apply_changes(partner, {"replacement_id": None})
        if record_partner:
            append_history(
                db,
                equipment_id=partner.id,
                action=ACTION_SWAP_RETURN,
                details=f"Replacement {substitute.id} released",
            )
    if record:
        append_history(
            db,
            equipment_id=substitute.id,
            action=ACTION_SWAP_RETURN,
            details=details or (f"Returned from {served} System" if served else "Returned from substitution"),
        )
    return partner


def unswap(db: Session, broken_id: str, replacement_id: str) -> tuple[Equipment, Equipment]:
    """Reverse the swap between a named pair. Unlinked pairs are left alone."""

    broken_key = normalize_tag(broken_id)
    replacement_key = normalize_tag(replacement_id)
    if not broken_key or not replacement_key:
        raise ValidationError("broken_id and replacement_id are required")

    with atomic(db):
        rows = lock_equipment(db, [broken_key, replacement_key])
        broken, replacement = rows[broken_key], rows[replacement_key]
        if replacement.swapped_from_id == broken.id:
            release_substitute(db, replacement, details=f"Returned; no longer standing in for {broken.id}")
            verify_links(db, [broken, replacement])
            changed = True
        elif broken.replacement_id == replacement.id:
            apply_changes(broken, {"replacement_id": None})
            append_history(
                db,
                equipment_id=broken.id,
                action=ACTION_SWAP_RETURN,
                details=f"Replacement {replacement.id} released",
            )
            changed = True
        else:
            changed = False

    db.refresh(broken)
    db.refresh(replacement)
    if changed:
        logger.info(
            "equipment.unswap",
            extra={"extra_data": {"broken_id": broken.id, "replacement_id": replacement.id}},
        )
    return broken, replacement


def return_borrowed(db: Session, substitute_id: str) -> Equipment:
    """Send a substitute back to its own system, from the substitute's side."""

    key = normalize_tag(substitute_id)
    if not key:
        raise ValidationError("id is required")
    with atomic(db):
        substitute = lock_equipment(db, [key])[key]
        released = bool(substitute.temporary_system_color or substitute.swapped_from_id)
        if released:
            release_substitute(db, substitute)
            verify_links(db, [substitute])
    db.refresh(substitute)
    if released:
        logger.info("equipment.return_borrowed", extra={"extra_data": {"equipment_id": substitute.id}})
    return substitute
