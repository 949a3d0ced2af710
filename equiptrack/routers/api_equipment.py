from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..crud.equipment import (
    create_equipment,
    delete_equipment,
    list_by_work_order,
    list_equipment,
    require_equipment,
    update_equipment,
)
from ..crud.history import list_history
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.equipment import (
    CheckinRequest,
    CheckoutRequest,
    EquipmentCreate,
    EquipmentOut,
    EquipmentUpdate,
    GroupCheckoutRequest,
    SwapRequest,
    SwapResult,
    UnswapRequest,
    WorkOrderCheckinRequest,
)
from ..schemas.history import HistoryOut
from ..services.checkout import checkin_by_work_order, checkin_single, checkout_group, checkout_single
from ..services.substitution import return_borrowed, swap, unswap

router = APIRouter(prefix="/api/v1/equipment", tags=["equipment"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[EquipmentOut])
def api_list_equipment(
    status: Optional[str] = None,
    category: Optional[str] = None,
    location: Optional[str] = None,
    system_color: Optional[str] = None,
    work_order: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list_equipment(
        db,
        status=status,
        category=category,
        location=location,
        system_color=system_color,
        work_order=work_order,
    )


@router.post("", response_model=EquipmentOut, status_code=201)
def api_create_equipment(payload: EquipmentCreate, db: Session = Depends(get_db)):
    return create_equipment(db, payload.model_dump(exclude_unset=True))


# Static paths are registered before /{item_id} so they are not captured by it.
@router.post("/checkout-group", response_model=list[EquipmentOut])
def api_checkout_group(payload: GroupCheckoutRequest, db: Session = Depends(get_db)):
    return checkout_group(db, payload.system_color, payload.equipment_ids, payload.work_order, payload.tech_name)


@router.post("/checkin/workorder", response_model=list[EquipmentOut])
def api_checkin_work_order(payload: WorkOrderCheckinRequest, db: Session = Depends(get_db)):
    return checkin_by_work_order(db, payload.work_order, payload.item_reports)


@router.get("/workorder/{work_order}", response_model=list[EquipmentOut])
def api_by_work_order(work_order: str, db: Session = Depends(get_db)):
    return list_by_work_order(db, work_order)


@router.post("/swap", response_model=SwapResult)
def api_swap(payload: SwapRequest, db: Session = Depends(get_db)):
    broken, replacement = swap(db, payload.broken_id, payload.replacement_id, payload.context, payload.reason)
    return {"broken": broken, "replacement": replacement}


@router.post("/unswap", response_model=SwapResult)
def api_unswap(payload: UnswapRequest, db: Session = Depends(get_db)):
    broken, replacement = unswap(db, payload.broken_id, payload.replacement_id)
    return {"broken": broken, "replacement": replacement}


@router.get("/{item_id}", response_model=EquipmentOut)
def api_get_equipment(item_id: str, db: Session = Depends(get_db)):
    return require_equipment(db, item_id)


@router.patch("/{item_id}", response_model=EquipmentOut)
def api_update_equipment(item_id: str, payload: EquipmentUpdate, db: Session = Depends(get_db)):
    return update_equipment(db, item_id, payload.model_dump(exclude_unset=True))


@router.delete("/{item_id}", status_code=204)
def api_delete_equipment(item_id: str, db: Session = Depends(get_db)):
    delete_equipment(db, item_id)
    return Response(status_code=204)


@router.get("/{item_id}/history", response_model=list[HistoryOut])
def api_equipment_history(item_id: str, db: Session = Depends(get_db)):
    # History outlives the item, so a deleted id still has a readable trail.
    return list_history(db, item_id)


@router.post("/{item_id}/checkout", response_model=EquipmentOut)
def api_checkout(item_id: str, payload: CheckoutRequest, db: Session = Depends(get_db)):
    return checkout_single(db, item_id, payload.work_order, payload.tech_name)


@router.post("/{item_id}/checkin", response_model=EquipmentOut)
def api_checkin(item_id: str, payload: CheckinRequest, db: Session = Depends(get_db)):
    return checkin_single(db, item_id, notes=payload.notes, is_broken=payload.is_broken)


@router.post("/{item_id}/return-borrowed", response_model=EquipmentOut)
def api_return_borrowed(item_id: str, db: Session = Depends(get_db)):
    return return_borrowed(db, item_id)
