from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from procureflow.models.person import PersonRole


class PersonBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    email: str = Field(min_length=3, max_length=255)
    role: PersonRole = PersonRole.requester
    department: str | None = Field(default=None, max_length=120)


class PersonCreate(PersonBase):
    pass


class PersonUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    role: PersonRole | None = None
    department: str | None = Field(default=None, max_length=120)
    is_active: bool | None = None


class PersonRead(PersonBase):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime
