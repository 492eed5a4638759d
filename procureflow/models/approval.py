import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column


class ApprovalRole(enum.Enum):
    department_head = "department_head"
    operations = "operations"
    finance = "finance"
    management = "management"
    purchasing = "purchasing"
    supplier = "supplier"


class ApprovalAction(enum.Enum):
    prepared = "prepared"
    reviewed = "reviewed"
    noted = "noted"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"
    budget_approved = "budget_approved"
    budget_rejected = "budget_rejected"
    canvass_completed = "canvass_completed"


class ApprovalEntryMixin:
    """Columns shared by the append-only approval logs."""

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    role: Mapped[ApprovalRole] = mapped_column(Enum(ApprovalRole), nullable=False)
    action: Mapped[ApprovalAction] = mapped_column(Enum(ApprovalAction), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(120), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(160), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
