from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from procureflow.models.approval import ApprovalAction, ApprovalRole


class ApprovalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    role: ApprovalRole
    action: ApprovalAction
    actor_id: str
    actor_name: str
    comments: str | None = None
    created_at: datetime


class ApprovalDecision(BaseModel):
    comments: str | None = None
