from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from procureflow.models.purchase_order import PurchaseOrderStatus
from procureflow.schemas.approval import ApprovalRead


class PurchaseOrderItemBase(BaseModel):
    item: str = Field(min_length=1, max_length=200)
    description: str | None = None
    quantity: int = Field(ge=1)
    unit: str | None = Field(default=None, max_length=40)
    unit_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    supplier_name: str = Field(min_length=1, max_length=200)
    supplier_contact: str | None = Field(default=None, max_length=160)
    supplier_address: str | None = None
    expected_delivery_date: date | None = None


class PurchaseOrderItemCreate(PurchaseOrderItemBase):
    pass


class PurchaseOrderItemUpdate(BaseModel):
    item: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    quantity: int | None = Field(default=None, ge=1)
    unit: str | None = Field(default=None, max_length=40)
    unit_price: Decimal | None = Field(default=None, ge=0)
    supplier_name: str | None = Field(default=None, min_length=1, max_length=200)
    supplier_contact: str | None = Field(default=None, max_length=160)
    supplier_address: str | None = None
    expected_delivery_date: date | None = None


class PurchaseOrderItemRead(PurchaseOrderItemBase):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    total_price: Decimal


class PurchaseOrderCreate(BaseModel):
    job_order_id: UUID
    notes: str | None = None
    tax: Decimal | None = Field(default=None, ge=0)
    items: list[PurchaseOrderItemCreate] = []


class PurchaseOrderUpdate(BaseModel):
    notes: str | None = None
    tax: Decimal | None = Field(default=None, ge=0)


class PurchaseOrderReceive(BaseModel):
    actual_delivery_date: datetime | None = None
    delivery_notes: str | None = None


class PurchaseOrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    number: str
    job_order_id: UUID
    status: PurchaseOrderStatus
    department: str
    requested_by: str
    created_by_id: str
    created_by_name: str
    notes: str | None = None
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    actual_delivery_date: datetime | None = None
    delivery_notes: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    purchased_at: datetime | None = None
    received_at: datetime | None = None
    closed_at: datetime | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    items: list[PurchaseOrderItemRead] = []
    approvals: list[ApprovalRead] = []
