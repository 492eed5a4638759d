import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from procureflow.db import Base


class NotificationType(enum.Enum):
    service_request_submitted = "service_request_submitted"
    service_request_approved = "service_request_approved"
    service_request_rejected = "service_request_rejected"
    job_order_created = "job_order_created"
    job_order_needs_approval = "job_order_needs_approval"
    job_order_approved = "job_order_approved"
    job_order_rejected = "job_order_rejected"
    job_order_status_changed = "job_order_status_changed"
    job_order_budget_approved = "job_order_budget_approved"
    job_order_budget_rejected = "job_order_budget_rejected"
    purchase_order_created = "purchase_order_created"
    purchase_order_needs_approval = "purchase_order_needs_approval"
    purchase_order_approved = "purchase_order_approved"
    purchase_order_rejected = "purchase_order_rejected"
    purchase_order_status_changed = "purchase_order_status_changed"
    receiving_report_created = "receiving_report_created"
    receiving_report_status_changed = "receiving_report_status_changed"
    job_order_transfer_updated = "job_order_transfer_updated"
    job_order_transfer_completed = "job_order_transfer_completed"


class RelatedEntityType(enum.Enum):
    service_request = "service_request"
    job_order = "job_order"
    purchase_order = "purchase_order"
    receiving_report = "receiving_report"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
        Index("ix_notifications_related_entity", "related_entity_type", "related_entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient_id: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[NotificationType] = mapped_column(Enum(NotificationType), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(String(500))
    related_entity_type: Mapped[RelatedEntityType | None] = mapped_column(Enum(RelatedEntityType))
    related_entity_id: Mapped[str | None] = mapped_column(String(120))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
