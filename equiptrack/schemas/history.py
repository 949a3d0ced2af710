from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class HistoryOut(BaseModel):
    id: int
    equipment_id: str
    action: str
    timestamp: str
    details: Optional[str]
    work_order: Optional[str]

    class Config:
        from_attributes = True
