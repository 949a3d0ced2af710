"""History ledger: append inside the caller's transaction, read in order."""

from __future__ import annotations

from sqlalchemy import asc, desc, select
from sqlalchemy.orm import Session

from ..core.errors import InvariantViolationError
from ..core.tags import normalize_tag
from ..models.history import ACTIONS, EquipmentHistory
from ..services.due_dates import now_iso


def append_history(
    db: Session,
    *,
    equipment_id: str,
    action: str,
    details: str | None = None,
    work_order: str | None = None,
) -> EquipmentHistory:
    """Stage one history entry on the session.

    Nothing is committed here: the entry rides along with whatever equipment
    mutation the caller is about to commit.
    """

    if action not in ACTIONS:
        raise InvariantViolationError(f"unknown history action: {action}", details={"action": action})
    entry = EquipmentHistory(
        equipment_id=equipment_id,
        action=action,
        details=details,
        work_order=work_order,
        timestamp=now_iso(),
    )
    db.add(entry)
    return entry


def list_history(db: Session, equipment_id: str) -> list[EquipmentHistory]:
    """Full history for one item, oldest first."""

    key = normalize_tag(equipment_id) or equipment_id
    stmt = (
        select(EquipmentHistory)
        .where(EquipmentHistory.equipment_id == key)
        .order_by(asc(EquipmentHistory.timestamp), asc(EquipmentHistory.id))
    )
    return db.execute(stmt).scalars().all()


def recent_history(db: Session, limit: int = 50) -> list[EquipmentHistory]:
    """Newest entries across all items, for the activity feed."""

    stmt = (
        select(EquipmentHistory)
        .order_by(desc(EquipmentHistory.timestamp), desc(EquipmentHistory.id))
        .limit(limit)
    )
    return db.execute(stmt).scalars().all()
