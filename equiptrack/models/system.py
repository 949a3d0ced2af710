"""Named system metadata (display name for a system color)."""

from __future__ import annotations

from sqlalchemy import Column, Text

from ..db.session import Base


class System(Base):
    __tablename__ = "systems"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    color = Column(Text, nullable=False, index=True)


__all__ = ["System"]
