"""Pydantic schemas for named systems."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class SystemCreate(BaseModel):
    name: str
    color: str


class SystemUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class SystemOut(SystemCreate):
    id: str

    class Config:
        from_attributes = True
