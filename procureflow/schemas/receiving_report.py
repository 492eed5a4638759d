from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from procureflow.models.receiving_report import ReceivingReportStatus


class ReceivingReportItemInput(BaseModel):
    purchase_order_item_id: UUID
    received_quantity: int = Field(ge=0)
    condition_notes: str | None = None


class ReceivingReportCreate(BaseModel):
    purchase_order_id: UUID
    actual_delivery_date: datetime | None = None
    delivery_notes: str | None = None
    notes: str | None = None
    items: list[ReceivingReportItemInput] | None = None


class ReceivingReportUpdate(BaseModel):
    delivery_notes: str | None = None
    notes: str | None = None
    items: list[ReceivingReportItemInput] | None = None


class ReceivingReportItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    purchase_order_item_id: UUID
    item: str
    unit: str | None = None
    ordered_quantity: int
    received_quantity: int
    unit_price: Decimal
    total_price: Decimal
    condition_notes: str | None = None


class ReceivingReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    number: str
    purchase_order_id: UUID
    status: ReceivingReportStatus
    supplier_name: str | None = None
    received_by_id: str
    received_by: str
    actual_delivery_date: datetime
    delivery_notes: str | None = None
    notes: str | None = None
    total_amount: Decimal
    submitted_at: datetime | None = None
    completed_at: datetime | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    items: list[ReceivingReportItemRead] = []
