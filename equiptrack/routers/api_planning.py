from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.equipment import GroupPlanOut
from ..services.planning import bag_colors, computer_colors, plan_group

router = APIRouter(prefix="/api/v1/planning", tags=["planning"], dependencies=[Depends(require_api_key)])


@router.get("/computers", response_model=list[str])
def api_computer_colors(db: Session = Depends(get_db)):
    return computer_colors(db)


@router.get("/bags", response_model=list[str])
def api_bag_colors(location: str, db: Session = Depends(get_db)):
    return bag_colors(db, location)


@router.get("/group/{system_color}", response_model=GroupPlanOut)
def api_plan_group(system_color: str, bag_color: Optional[str] = None, db: Session = Depends(get_db)):
    plan = plan_group(db, system_color, bag_color)
    return GroupPlanOut.model_validate(plan, from_attributes=True)
