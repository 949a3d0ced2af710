"""SQLAlchemy model for tracked equipment items."""

from __future__ import annotations

from sqlalchemy import Column, Integer, Text

from ..db.session import Base

STATUS_AVAILABLE = "available"
STATUS_CHECKED_OUT = "checked_out"
STATUS_BROKEN = "broken"
STATUSES = (STATUS_AVAILABLE, STATUS_CHECKED_OUT, STATUS_BROKEN)

CHECKOUT_FIELDS = ("work_order", "checked_out_by", "checked_out_at")


class Equipment(Base):
    """One physical item, keyed by the id printed on its tag.

    ``system_color`` is permanent group membership. While the item stands in
    for a broken member of another group, ``temporary_system_color`` names
    that group and ``swapped_from_id`` points back at the broken item, whose
    ``replacement_id`` points forward at this one.
    """

    __tablename__ = "equipment"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default=STATUS_AVAILABLE)
    location = Column(Text, nullable=False)
    system_color = Column(Text, nullable=True, index=True)
    original_system_color = Column(Text, nullable=True)
    temporary_system_color = Column(Text, nullable=True, index=True)
    work_order = Column(Text, nullable=True, index=True)
    checked_out_by = Column(Text, nullable=True)
    checked_out_at = Column(Text, nullable=True)
    replacement_id = Column(Text, nullable=True)
    swapped_from_id = Column(Text, nullable=True)
    due_date = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def effective_system_color(self) -> str | None:
        return self.temporary_system_color or self.system_color

    @property
    def is_substitute(self) -> bool:
        return bool(self.temporary_system_color)

    @property
    def due_status(self) -> str:
        from ..services.due_dates import due_status

        return due_status(self.due_date)

    def checkout_triple(self) -> tuple[str | None, str | None, str | None]:
        return (self.work_order, self.checked_out_by, self.checked_out_at)


__all__ = ["Equipment", "STATUSES", "CHECKOUT_FIELDS"]
