from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.equipment import BulkDueDateRequest, EquipmentOut, RepairRequest, ReturnFromRepairRequest
from ..services.repair import bulk_set_due_date, return_from_repair, send_to_repair

router = APIRouter(prefix="/api/v1/repair", tags=["repair"], dependencies=[Depends(require_api_key)])


@router.post("/return", response_model=list[EquipmentOut])
def api_return_from_repair(payload: ReturnFromRepairRequest, db: Session = Depends(get_db)):
    return return_from_repair(db, payload.equipment_ids, payload.new_due_date)


@router.post("/due-date", response_model=list[EquipmentOut])
def api_bulk_due_date(payload: BulkDueDateRequest, db: Session = Depends(get_db)):
    return bulk_set_due_date(db, payload.category, payload.amount, payload.unit)


@router.post("/{item_id}", response_model=EquipmentOut)
def api_send_to_repair(item_id: str, payload: RepairRequest | None = None, db: Session = Depends(get_db)):
    return send_to_repair(db, item_id, payload.location if payload else None)
