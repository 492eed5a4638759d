import enum
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procureflow.db import Base


class ReceivingReportStatus(enum.Enum):
    draft = "draft"
    submitted = "submitted"
    completed = "completed"


class ReceivingReport(Base):
    __tablename__ = "receiving_reports"
    __table_args__ = (
        UniqueConstraint("number", name="uq_receiving_reports_number"),
        UniqueConstraint("purchase_order_id", name="uq_receiving_reports_purchase_order_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    number: Mapped[str] = mapped_column(String(40), nullable=False)
    purchase_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("purchase_orders.id"), nullable=False
    )
    status: Mapped[ReceivingReportStatus] = mapped_column(
        Enum(ReceivingReportStatus), default=ReceivingReportStatus.draft
    )
    supplier_name: Mapped[str | None] = mapped_column(String(200))
    received_by_id: Mapped[str] = mapped_column(String(120), nullable=False)
    received_by: Mapped[str] = mapped_column(String(160), nullable=False)
    actual_delivery_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    delivery_notes: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __mapper_args__ = {"version_id_col": version}

    purchase_order = relationship("PurchaseOrder", back_populates="receiving_report")
    items = relationship(
        "ReceivingReportItem",
        back_populates="receiving_report",
        cascade="all, delete-orphan",
        order_by="ReceivingReportItem.position",
    )


class ReceivingReportItem(Base):
    __tablename__ = "receiving_report_items"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    receiving_report_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("receiving_reports.id"), nullable=False
    )
    purchase_order_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("purchase_order_items.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    item: Mapped[str] = mapped_column(String(200), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(40))
    ordered_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    received_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    condition_notes: Mapped[str | None] = mapped_column(Text)

    receiving_report = relationship("ReceivingReport", back_populates="items")
