"""Append-only audit trail of equipment activity."""

from __future__ import annotations

from sqlalchemy import Column, Integer, Text, event

from ..core.errors import InvariantViolationError
from ..db.session import Base

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_CHECK_OUT = "check_out"
ACTION_CHECK_IN = "check_in"
ACTION_REPORT_BROKEN = "report_broken"
ACTION_MAINTENANCE = "maintenance"
ACTION_SWAP_OUT = "swap_out"
ACTION_SWAP_IN = "swap_in"
ACTION_SWAP_RETURN = "swap_return"

ACTIONS = (
    ACTION_CREATE,
    ACTION_UPDATE,
    ACTION_DELETE,
    ACTION_CHECK_OUT,
    ACTION_CHECK_IN,
    ACTION_REPORT_BROKEN,
    ACTION_MAINTENANCE,
    ACTION_SWAP_OUT,
    ACTION_SWAP_IN,
    ACTION_SWAP_RETURN,
)


class EquipmentHistory(Base):
    """One thing that happened to one item.

    ``equipment_id`` is a plain value rather than a foreign key so the trail
    outlives the equipment row it describes.
    """

    __tablename__ = "equipment_history"

    id = Column(Integer, primary_key=True, index=True)
    equipment_id = Column(Text, nullable=False, index=True)
    action = Column(Text, nullable=False)
    timestamp = Column(Text, nullable=False, index=True)
    details = Column(Text, nullable=True)
    work_order = Column(Text, nullable=True)


@event.listens_for(EquipmentHistory, "before_update")
def _reject_history_update(mapper, connection, target):
    raise InvariantViolationError(
        f"History entry {target.id} is append-only and cannot be modified",
        details={"history_id": target.id},
    )


@event.listens_for(EquipmentHistory, "before_delete")
def _reject_history_delete(mapper, connection, target):
    raise InvariantViolationError(
        f"History entry {target.id} is append-only and cannot be deleted",
        details={"history_id": target.id},
    )


__all__ = ["EquipmentHistory", "ACTIONS"]
