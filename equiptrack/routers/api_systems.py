from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..crud.systems import create_system, delete_system, list_systems, update_system
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.system import SystemCreate, SystemOut, SystemUpdate

router = APIRouter(prefix="/api/v1/systems", tags=["systems"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[SystemOut])
def api_list_systems(db: Session = Depends(get_db)):
    return list_systems(db)


@router.post("", response_model=SystemOut, status_code=201)
def api_create_system(payload: SystemCreate, db: Session = Depends(get_db)):
    return create_system(db, payload.model_dump())


@router.patch("/{system_id}", response_model=SystemOut)
def api_update_system(system_id: str, payload: SystemUpdate, db: Session = Depends(get_db)):
    return update_system(db, system_id, payload.model_dump(exclude_unset=True))


@router.delete("/{system_id}", status_code=204)
def api_delete_system(system_id: str, db: Session = Depends(get_db)):
    delete_system(db, system_id)
    return Response(status_code=204)
