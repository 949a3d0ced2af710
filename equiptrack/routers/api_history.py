from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.config import settings
from ..crud.history import recent_history
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.history import HistoryOut

router = APIRouter(prefix="/api/v1/history", tags=["history"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[HistoryOut])
def api_recent_history(limit: Optional[int] = Query(default=None, ge=1, le=1000), db: Session = Depends(get_db)):
    return recent_history(db, limit or settings.RECENT_HISTORY_LIMIT)
