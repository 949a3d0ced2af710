"""CRUD helpers for named systems."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError, ValidationError
from ..models.system import System


def list_systems(db: Session) -> list[System]:
    return db.execute(select(System).order_by(System.name)).scalars().all()


def get_system(db: Session, system_id: str) -> System | None:
    return db.get(System, system_id)


def _required(payload: dict, key: str) -> str:
    value = (payload.get(key) or "").strip()
    if not value:
        raise ValidationError(f"{key} is required")
    return value


def create_system(db: Session, payload: dict) -> System:
    system = System(
        id=str(uuid4()),
        name=_required(payload, "name"),
        color=_required(payload, "color"),
    )
    db.add(system)
    db.commit()
    db.refresh(system)
    return system


def update_system(db: Session, system_id: str, payload: dict) -> System:
    system = get_system(db, system_id)
    if not system:
        raise NotFoundError("System", system_id)
    for field in ("name", "color"):
        if field in payload:
            setattr(system, field, _required(payload, field))
    db.commit()
    db.refresh(system)
    return system


def delete_system(db: Session, system_id: str) -> None:
    system = get_system(db, system_id)
    if not system:
        raise NotFoundError("System", system_id)
    db.delete(system)
    db.commit()
