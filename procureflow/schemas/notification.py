from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from procureflow.models.notification import NotificationType, RelatedEntityType


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: UUID
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    link: str | None = None
    related_entity_type: RelatedEntityType | None = None
    related_entity_id: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class MarkReadByEntity(BaseModel):
    related_entity_type: RelatedEntityType
    related_entity_id: str
