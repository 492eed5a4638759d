import enum
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procureflow.db import Base
from procureflow.models.approval import ApprovalEntryMixin
from procureflow.models.service_request import Priority, ServiceCategory


class JobOrderType(enum.Enum):
    service = "service"
    material_requisition = "material_requisition"


class JobOrderStatus(enum.Enum):
    draft = "draft"
    pending_canvass = "pending_canvass"
    budget_cleared = "budget_cleared"
    approved = "approved"
    in_progress = "in_progress"
    completed = "completed"
    closed = "closed"
    rejected = "rejected"


class MaterialSource(enum.Enum):
    purchase = "purchase"
    in_house = "in_house"


class TransferItemStatus(enum.Enum):
    pending = "pending"
    partial = "partial"
    completed = "completed"


class JobOrder(Base):
    __tablename__ = "job_orders"
    __table_args__ = (
        UniqueConstraint("number", name="uq_job_orders_number"),
        UniqueConstraint("service_request_id", name="uq_job_orders_service_request_id"),
        Index("ix_job_orders_status", "status"),
        Index("ix_job_orders_department", "department"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    number: Mapped[str] = mapped_column(String(40), nullable=False)
    service_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("service_requests.id"), nullable=False
    )
    type: Mapped[JobOrderType] = mapped_column(Enum(JobOrderType), nullable=False)
    status: Mapped[JobOrderStatus] = mapped_column(Enum(JobOrderStatus), default=JobOrderStatus.draft)
    department: Mapped[str] = mapped_column(String(120), nullable=False)
    service_category: Mapped[ServiceCategory] = mapped_column(Enum(ServiceCategory), nullable=False)
    priority: Mapped[Priority] = mapped_column(Enum(Priority), default=Priority.medium)
    requester_id: Mapped[str] = mapped_column(String(120), nullable=False)
    requester_name: Mapped[str] = mapped_column(String(160), nullable=False)
    contact_person: Mapped[str | None] = mapped_column(String(160))
    work_description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    reason: Mapped[str | None] = mapped_column(Text)
    target_start_date: Mapped[date | None] = mapped_column(Date)
    target_completion_date: Mapped[date | None] = mapped_column(Date)
    created_by_id: Mapped[str] = mapped_column(String(120), nullable=False)
    created_by_name: Mapped[str] = mapped_column(String(160), nullable=False)

    # Manpower (service job orders)
    assigned_unit: Mapped[str | None] = mapped_column(String(160))
    supervisor_in_charge: Mapped[str | None] = mapped_column(String(160))
    supervisor_department: Mapped[str | None] = mapped_column(String(120))
    outsource: Mapped[str | None] = mapped_column(String(160))
    outsource_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    # Budget
    estimated_total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    budget_source: Mapped[str | None] = mapped_column(String(160))
    cost_center: Mapped[str | None] = mapped_column(String(120))

    # Material transfer
    transfer_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    transfer_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    transfer_completed_by: Mapped[str | None] = mapped_column(String(160))
    transfer_notes: Mapped[str | None] = mapped_column(Text)

    # Acceptance
    actual_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_completion_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    work_completion_notes: Mapped[str | None] = mapped_column(Text)
    service_accepted_by: Mapped[str | None] = mapped_column(String(160))
    date_accepted: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __mapper_args__ = {"version_id_col": version}

    service_request = relationship("ServiceRequest", back_populates="job_order")
    materials = relationship(
        "JobOrderMaterial",
        back_populates="job_order",
        cascade="all, delete-orphan",
        order_by="JobOrderMaterial.position",
    )
    milestones = relationship(
        "JobOrderMilestone",
        back_populates="job_order",
        cascade="all, delete-orphan",
        order_by="JobOrderMilestone.position",
    )
    transfer_items = relationship(
        "JobOrderTransferItem",
        back_populates="job_order",
        cascade="all, delete-orphan",
        order_by="JobOrderTransferItem.position",
    )
    approvals = relationship(
        "JobOrderApproval",
        back_populates="job_order",
        cascade="all, delete-orphan",
        order_by="JobOrderApproval.created_at",
    )
    purchase_order = relationship("PurchaseOrder", back_populates="job_order", uselist=False)


class JobOrderMaterial(Base):
    __tablename__ = "job_order_materials"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_order_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("job_orders.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    item: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(40))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    estimated_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    source: Mapped[MaterialSource] = mapped_column(Enum(MaterialSource), default=MaterialSource.purchase)

    job_order = relationship("JobOrder", back_populates="materials")


class JobOrderMilestone(Base):
    __tablename__ = "job_order_milestones"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_order_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("job_orders.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    activity: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)

    job_order = relationship("JobOrder", back_populates="milestones")


class JobOrderTransferItem(Base):
    __tablename__ = "job_order_transfer_items"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_order_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("job_orders.id"), nullable=False)
    purchase_order_item_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("purchase_order_items.id")
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    item: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(40))
    transferred_quantity: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[TransferItemStatus] = mapped_column(Enum(TransferItemStatus), default=TransferItemStatus.pending)
    transfer_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    transferred_by: Mapped[str | None] = mapped_column(String(160))
    notes: Mapped[str | None] = mapped_column(Text)

    job_order = relationship("JobOrder", back_populates="transfer_items")


class JobOrderApproval(ApprovalEntryMixin, Base):
    __tablename__ = "job_order_approvals"
    __table_args__ = (
        UniqueConstraint("job_order_id", "role", "action", name="uq_job_order_approvals_role_action"),
    )

    job_order_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("job_orders.id"), nullable=False)

    job_order = relationship("JobOrder", back_populates="approvals")
