from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.equipment import BulkImportRequest, BulkResultOut, BulkUpdateRequest
from ..services.bulk import bulk_import, bulk_update

router = APIRouter(prefix="/api/v1/bulk", tags=["bulk"], dependencies=[Depends(require_api_key)])


@router.post("/import", response_model=BulkResultOut)
def api_bulk_import(payload: BulkImportRequest, db: Session = Depends(get_db)):
    result = bulk_import(db, payload.rows)
    return BulkResultOut.model_validate(result, from_attributes=True)


@router.post("/update", response_model=BulkResultOut)
def api_bulk_update(payload: BulkUpdateRequest, db: Session = Depends(get_db)):
    result = bulk_update(db, payload.equipment_ids, payload.patch.model_dump(exclude_unset=True))
    return BulkResultOut.model_validate(result, from_attributes=True)
