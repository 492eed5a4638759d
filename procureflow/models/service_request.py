import enum
import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procureflow.db import Base
from procureflow.models.approval import ApprovalEntryMixin


class ServiceCategory(enum.Enum):
    technical_support = "technical_support"
    facility_maintenance = "facility_maintenance"
    account_billing_inquiry = "account_billing_inquiry"
    general_inquiry = "general_inquiry"
    other = "other"


class Priority(enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class ServiceRequestStatus(enum.Enum):
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"


class ServiceRequest(Base):
    __tablename__ = "service_requests"
    __table_args__ = (
        UniqueConstraint("number", name="uq_service_requests_number"),
        Index("ix_service_requests_status", "status"),
        Index("ix_service_requests_department", "department"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    number: Mapped[str] = mapped_column(String(40), nullable=False)
    requester_id: Mapped[str] = mapped_column(String(120), nullable=False)
    requester_name: Mapped[str] = mapped_column(String(160), nullable=False)
    requester_email: Mapped[str | None] = mapped_column(String(255))
    contact_number: Mapped[str | None] = mapped_column(String(40))
    department: Mapped[str] = mapped_column(String(120), nullable=False)
    category: Mapped[ServiceCategory] = mapped_column(Enum(ServiceCategory), nullable=False)
    priority: Mapped[Priority] = mapped_column(Enum(Priority), default=Priority.medium)
    status: Mapped[ServiceRequestStatus] = mapped_column(
        Enum(ServiceRequestStatus), default=ServiceRequestStatus.draft
    )
    location: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    requested_completion_date: Mapped[date | None] = mapped_column(Date)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __mapper_args__ = {"version_id_col": version}

    approvals = relationship(
        "ServiceRequestApproval",
        back_populates="service_request",
        cascade="all, delete-orphan",
        order_by="ServiceRequestApproval.created_at",
    )
    job_order = relationship("JobOrder", back_populates="service_request", uselist=False)


class ServiceRequestApproval(ApprovalEntryMixin, Base):
    __tablename__ = "service_request_approvals"
    __table_args__ = (
        UniqueConstraint("service_request_id", "role", "action", name="uq_service_request_approvals_role_action"),
    )

    service_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("service_requests.id"), nullable=False
    )

    service_request = relationship("ServiceRequest", back_populates="approvals")
