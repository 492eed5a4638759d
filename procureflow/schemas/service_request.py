from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from procureflow.models.service_request import Priority, ServiceCategory, ServiceRequestStatus
from procureflow.schemas.approval import ApprovalRead


class ServiceRequestBase(BaseModel):
    department: str = Field(min_length=1, max_length=120)
    category: ServiceCategory
    priority: Priority = Priority.medium
    requester_email: str | None = Field(default=None, max_length=255)
    contact_number: str | None = Field(default=None, max_length=40)
    location: str | None = Field(default=None, max_length=255)
    description: str = Field(min_length=1)
    reason: str | None = None
    requested_completion_date: date | None = None


class ServiceRequestCreate(ServiceRequestBase):
    submit: bool = True


class ServiceRequestUpdate(BaseModel):
    category: ServiceCategory | None = None
    priority: Priority | None = None
    requester_email: str | None = Field(default=None, max_length=255)
    contact_number: str | None = Field(default=None, max_length=40)
    location: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    reason: str | None = None
    requested_completion_date: date | None = None


class ServiceRequestRead(ServiceRequestBase):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    number: str
    requester_id: str
    requester_name: str
    status: ServiceRequestStatus
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    version: int
    created_at: datetime
    updated_at: datetime
    approvals: list[ApprovalRead] = []
