from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from procureflow.models.job_order import JobOrderStatus, JobOrderType, MaterialSource, TransferItemStatus
from procureflow.models.service_request import Priority, ServiceCategory
from procureflow.schemas.approval import ApprovalRead


class MaterialBase(BaseModel):
    item: str = Field(min_length=1, max_length=200)
    description: str | None = None
    quantity: int = Field(ge=1)
    unit: str | None = Field(default=None, max_length=40)
    unit_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    source: MaterialSource = MaterialSource.purchase


class MaterialCreate(MaterialBase):
    pass


class MaterialRead(MaterialBase):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    estimated_cost: Decimal


class MilestoneBase(BaseModel):
    activity: str = Field(min_length=1, max_length=200)
    start_date: date | None = None
    end_date: date | None = None


class MilestoneCreate(MilestoneBase):
    pass


class MilestoneRead(MilestoneBase):
    model_config = ConfigDict(from_attributes=True)
    id: UUID


class ManpowerFields(BaseModel):
    assigned_unit: str | None = Field(default=None, max_length=160)
    supervisor_in_charge: str | None = Field(default=None, max_length=160)
    supervisor_department: str | None = Field(default=None, max_length=120)
    outsource: str | None = Field(default=None, max_length=160)
    outsource_price: Decimal | None = Field(default=None, ge=0)


class JobOrderCreate(ManpowerFields):
    service_request_id: UUID
    type: JobOrderType = JobOrderType.service
    contact_person: str | None = Field(default=None, max_length=160)
    work_description: str | None = None
    location: str | None = Field(default=None, max_length=255)
    reason: str | None = None
    target_start_date: date | None = None
    target_completion_date: date | None = None
    materials: list[MaterialCreate] = []
    milestones: list[MilestoneCreate] = []


class JobOrderUpdate(ManpowerFields):
    contact_person: str | None = Field(default=None, max_length=160)
    work_description: str | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, max_length=255)
    reason: str | None = None
    target_start_date: date | None = None
    target_completion_date: date | None = None
    materials: list[MaterialCreate] | None = None
    milestones: list[MilestoneCreate] | None = None


class CanvassLine(BaseModel):
    material_id: UUID
    unit_price: Decimal = Field(ge=0)


class CanvassSubmit(BaseModel):
    lines: list[CanvassLine] = []
    comments: str | None = None


class BudgetApprove(BaseModel):
    budget_source: str | None = Field(default=None, max_length=160)
    cost_center: str | None = Field(default=None, max_length=120)
    comments: str | None = None


class BudgetReject(BaseModel):
    comments: str | None = None


class FulfillmentComplete(BaseModel):
    work_completion_notes: str | None = None


class TransferLine(BaseModel):
    item_id: UUID
    transferred_quantity: int = Field(ge=0)
    notes: str | None = None


class TransferUpdate(BaseModel):
    items: list[TransferLine] = []
    transfer_notes: str | None = None


class TransferComplete(BaseModel):
    transfer_completed: bool = True
    transfer_notes: str | None = None


class AcceptanceRecord(BaseModel):
    service_accepted_by: str | None = Field(default=None, max_length=160)


class TransferItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    purchase_order_item_id: UUID | None = None
    item: str
    description: str | None = None
    quantity: int
    unit: str | None = None
    transferred_quantity: int
    status: TransferItemStatus
    transfer_date: datetime | None = None
    transferred_by: str | None = None
    notes: str | None = None


class MaterialTransferRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    transfer_completed: bool
    transfer_completed_at: datetime | None = None
    transfer_completed_by: str | None = None
    transfer_notes: str | None = None
    transfer_items: list[TransferItemRead] = []


class JobOrderRead(ManpowerFields):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    number: str
    service_request_id: UUID
    type: JobOrderType
    status: JobOrderStatus
    department: str
    service_category: ServiceCategory
    priority: Priority
    requester_id: str
    requester_name: str
    contact_person: str | None = None
    work_description: str
    location: str | None = None
    reason: str | None = None
    target_start_date: date | None = None
    target_completion_date: date | None = None
    created_by_id: str
    created_by_name: str
    estimated_total_cost: Decimal
    budget_source: str | None = None
    cost_center: str | None = None
    transfer_completed: bool
    transfer_completed_at: datetime | None = None
    transfer_completed_by: str | None = None
    transfer_notes: str | None = None
    actual_start_date: datetime | None = None
    actual_completion_date: datetime | None = None
    work_completion_notes: str | None = None
    service_accepted_by: str | None = None
    date_accepted: datetime | None = None
    closed_at: datetime | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    materials: list[MaterialRead] = []
    milestones: list[MilestoneRead] = []
    transfer_items: list[TransferItemRead] = []
    approvals: list[ApprovalRead] = []
