"""Pydantic schemas for equipment payloads."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class EquipmentBase(BaseModel):
    name: str
    category: str
    system_color: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[str] = None


class EquipmentCreate(EquipmentBase):
    id: str
    status: Optional[Literal["available", "checked_out", "broken"]] = None
    work_order: Optional[str] = None
    checked_out_by: Optional[str] = None
    checked_out_at: Optional[str] = None


class EquipmentUpdate(BaseModel):
    # Only accepted so a rename attempt can be refused explicitly.
    id: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None
    status: Optional[Literal["available", "checked_out", "broken"]] = None
    location: Optional[str] = None
    system_color: Optional[str] = None
    work_order: Optional[str] = None
    checked_out_by: Optional[str] = None
    checked_out_at: Optional[str] = None
    due_date: Optional[str] = None
    notes: Optional[str] = None


class EquipmentOut(EquipmentBase):
    id: str
    status: str
    location: str
    original_system_color: Optional[str]
    temporary_system_color: Optional[str]
    effective_system_color: Optional[str]
    work_order: Optional[str]
    checked_out_by: Optional[str]
    checked_out_at: Optional[str]
    replacement_id: Optional[str]
    swapped_from_id: Optional[str]
    due_status: str
    created_at: str
    updated_at: str
    version: int

    class Config:
        from_attributes = True


class CheckoutRequest(BaseModel):
    work_order: str
    tech_name: str


class CheckinRequest(BaseModel):
    notes: Optional[str] = None
    is_broken: bool = False


class GroupCheckoutRequest(BaseModel):
    system_color: str
    equipment_ids: list[str] = Field(min_length=1)
    work_order: str
    tech_name: str


class ItemReport(BaseModel):
    is_broken: bool = False
    notes: Optional[str] = None


class WorkOrderCheckinRequest(BaseModel):
    work_order: str
    item_reports: dict[str, ItemReport] = Field(default_factory=dict)


class SwapRequest(BaseModel):
    broken_id: str
    replacement_id: str
    context: Literal["broken", "checked_out"]
    reason: Optional[str] = None


class UnswapRequest(BaseModel):
    broken_id: str
    replacement_id: str


class SwapResult(BaseModel):
    broken: EquipmentOut
    replacement: EquipmentOut


class RepairRequest(BaseModel):
    location: Optional[str] = None


class ReturnFromRepairRequest(BaseModel):
    equipment_ids: list[str] = Field(min_length=1)
    new_due_date: Optional[str] = None


class BulkDueDateRequest(BaseModel):
    category: str
    amount: int = Field(gt=0)
    unit: Literal["months", "years"]


class BulkImportRequest(BaseModel):
    # Rows are validated one by one so a bad row cannot sink the batch.
    rows: list[dict[str, Any]]


class BulkUpdateRequest(BaseModel):
    equipment_ids: list[str] = Field(min_length=1)
    patch: EquipmentUpdate


class RowErrorOut(BaseModel):
    row: int
    id: Optional[str]
    code: str
    message: str

    class Config:
        from_attributes = True


class BulkResultOut(BaseModel):
    succeeded: int
    errors: list[RowErrorOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ComponentOut(BaseModel):
    item: EquipmentOut
    ok: bool
    reason: Optional[str]

    class Config:
        from_attributes = True


class GroupPlanOut(BaseModel):
    anchor: EquipmentOut
    anchor_color: str
    bag_color: str
    location: str
    components: list[ComponentOut]
    candidates: dict[str, list[EquipmentOut]]
    ready_ids: list[str]

    class Config:
        from_attributes = True
