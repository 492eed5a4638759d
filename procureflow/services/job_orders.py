import logging
from decimal import Decimal

from sqlalchemy.orm import Session, selectinload

from procureflow.errors import (
    DuplicateApproval,
    InvalidState,
    InvariantViolation,
    PrerequisiteNotMet,
    ValidationFailed,
    commit_or_conflict,
)
from procureflow.logic.authorization_logic import Actor, EntityFacts
from procureflow.logic.workflow_logic import BudgetState, budget_required, budget_state, line_cost, transfer_status
from procureflow.models.approval import ApprovalAction, ApprovalRole
from procureflow.models.job_order import (
    JobOrder,
    JobOrderApproval,
    JobOrderMaterial,
    JobOrderMilestone,
    JobOrderStatus,
    JobOrderTransferItem,
    JobOrderType,
    TransferItemStatus,
)
from procureflow.models.purchase_order import PurchaseOrderStatus
from procureflow.models.service_request import ServiceRequest, ServiceRequestStatus
from procureflow.schemas.approval import ApprovalDecision
from procureflow.schemas.job_order import (
    AcceptanceRecord,
    BudgetApprove,
    BudgetReject,
    CanvassSubmit,
    FulfillmentComplete,
    JobOrderCreate,
    JobOrderUpdate,
    MaterialCreate,
    MilestoneCreate,
    TransferComplete,
    TransferUpdate,
)
from procureflow.services import notifications
from procureflow.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    round_money,
    utcnow,
    validate_enum,
)
from procureflow.services.numbering import generate_number
from procureflow.services.response import ListResponseMixin
from procureflow.services.workflow import (
    authorize,
    ensure_not_recorded,
    has_entry,
    job_order_facts,
    log_transition,
    record_approval,
    require_comments,
    traced,
)

logger = logging.getLogger(__name__)

PRE_APPROVAL_STATUSES = (
    JobOrderStatus.draft,
    JobOrderStatus.pending_canvass,
    JobOrderStatus.budget_cleared,
)
_TRANSFER_READY_PO_STATUSES = (PurchaseOrderStatus.received, PurchaseOrderStatus.closed)

_MANPOWER_FIELDS = (
    "assigned_unit",
    "supervisor_in_charge",
    "supervisor_department",
    "outsource",
    "outsource_price",
)
_DETAIL_FIELDS = (
    "contact_person",
    "work_description",
    "location",
    "reason",
    "target_start_date",
    "target_completion_date",
)


def _budget(jo: JobOrder) -> BudgetState:
    return budget_state((entry.role.value, entry.action.value) for entry in jo.approvals)


def _needs_budget(jo: JobOrder) -> bool:
    return budget_required(jo.type.value, len(jo.materials))


def _recalculate_costs(jo: JobOrder) -> None:
    total = Decimal("0.00")
    for material in jo.materials:
        material.estimated_cost = line_cost(material.quantity, material.unit_price)
        total += material.estimated_cost
    total += Decimal(jo.outsource_price or 0)
    jo.estimated_total_cost = round_money(total)


def _check_costs(jo: JobOrder) -> None:
    for material in jo.materials:
        expected = line_cost(material.quantity, material.unit_price)
        if round_money(material.estimated_cost) != expected:
            raise InvariantViolation(
                f"Material {material.id} cost {material.estimated_cost} != {material.quantity} x {material.unit_price}"
            )


def _ensure_not_rejected(jo: JobOrder) -> None:
    if jo.status == JobOrderStatus.rejected:
        raise InvalidState("Job order was rejected; no further actions are allowed")


def _build_materials(lines: list[MaterialCreate]) -> list[JobOrderMaterial]:
    return [
        JobOrderMaterial(
            position=index,
            item=line.item,
            description=line.description,
            quantity=line.quantity,
            unit=line.unit,
            unit_price=round_money(line.unit_price),
            source=line.source,
        )
        for index, line in enumerate(lines)
    ]


def _build_milestones(lines: list[MilestoneCreate]) -> list[JobOrderMilestone]:
    for line in lines:
        if line.start_date and line.end_date and line.end_date < line.start_date:
            raise ValidationFailed(f"Milestone '{line.activity}' ends before it starts")
    return [
        JobOrderMilestone(
            position=index,
            activity=line.activity,
            start_date=line.start_date,
            end_date=line.end_date,
        )
        for index, line in enumerate(lines)
    ]


def _load(db: Session, jo_id: str) -> JobOrder:
    return get_or_404(
        db,
        JobOrder,
        jo_id,
        detail="Job order not found",
        options=[
            selectinload(JobOrder.materials),
            selectinload(JobOrder.milestones),
            selectinload(JobOrder.transfer_items),
            selectinload(JobOrder.approvals),
        ],
    )


class JobOrders(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: JobOrderCreate, actor: Actor) -> JobOrder:
        sr = get_or_404(db, ServiceRequest, payload.service_request_id, detail="Service request not found")
        with traced("job_order", "create", sr.id, actor):
            facts = EntityFacts(
                kind="job_order",
                department=sr.department,
                service_category=sr.category.value,
                requester_id=sr.requester_id,
            )
            authorize(actor, facts, "create")
            if sr.status != ServiceRequestStatus.approved:
                raise PrerequisiteNotMet("The service request must be approved before a job order is created")
            if db.query(JobOrder.id).filter(JobOrder.service_request_id == sr.id).first():
                raise InvalidState("A job order already exists for this service request")
            if payload.type == JobOrderType.material_requisition and not payload.materials:
                raise ValidationFailed("A material requisition needs at least one material line")
            milestones = _build_milestones(payload.milestones)

            jo = JobOrder(
                number=generate_number(db, "job_order_number"),
                service_request_id=sr.id,
                type=payload.type,
                department=sr.department,
                service_category=sr.category,
                priority=sr.priority,
                requester_id=sr.requester_id,
                requester_name=sr.requester_name,
                contact_person=payload.contact_person or sr.contact_number,
                work_description=payload.work_description or sr.description,
                location=payload.location or sr.location,
                reason=payload.reason or sr.reason,
                target_start_date=payload.target_start_date,
                target_completion_date=payload.target_completion_date,
                created_by_id=actor.id,
                created_by_name=actor.name,
                **{field: getattr(payload, field) for field in _MANPOWER_FIELDS},
            )
            jo.materials = _build_materials(payload.materials)
            jo.milestones = milestones
            _recalculate_costs(jo)
            if jo.type == JobOrderType.service:
                jo.status = JobOrderStatus.draft
                record_approval(
                    jo,
                    JobOrderApproval,
                    ApprovalRole.department_head,
                    ApprovalAction.approved,
                    actor,
                    comments="Approved by the handling department on creation",
                )
            else:
                jo.status = JobOrderStatus.pending_canvass
                record_approval(jo, JobOrderApproval, ApprovalRole.operations, ApprovalAction.prepared, actor)
            db.add(jo)
            commit_or_conflict(db)
            db.refresh(jo)
            logger.info("Job order %s (%s) created from %s by %s", jo.number, jo.type.value, sr.number, actor.id)
        notifications.notify_job_order_created(db, jo)
        return jo

    @staticmethod
    def get(db: Session, jo_id: str) -> JobOrder:
        return _load(db, jo_id)

    @staticmethod
    def list(
        db: Session,
        status: str | None = None,
        type: str | None = None,
        department: str | None = None,
        service_request_id: str | None = None,
        order_by: str = "created_at",
        order_dir: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(JobOrder)
        if status:
            query = query.filter(JobOrder.status == validate_enum(status, JobOrderStatus, "status"))
        if type:
            query = query.filter(JobOrder.type == validate_enum(type, JobOrderType, "type"))
        if department:
            query = query.filter(JobOrder.department == department)
        if service_request_id:
            query = query.filter(JobOrder.service_request_id == coerce_uuid(service_request_id))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": JobOrder.created_at,
                "number": JobOrder.number,
                "status": JobOrder.status,
                "priority": JobOrder.priority,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, jo_id: str, payload: JobOrderUpdate, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        authorize(actor, job_order_facts(jo), "update")
        _ensure_not_rejected(jo)
        if jo.status not in (JobOrderStatus.draft, JobOrderStatus.pending_canvass):
            raise InvalidState(f"Cannot edit a job order in {jo.status.value} status")
        if _budget(jo).started:
            raise InvalidState("Job order details are locked once budget approval has started")
        data = payload.model_dump(exclude_unset=True)
        if "materials" in data:
            if has_entry(jo.approvals, action=ApprovalAction.canvass_completed):
                raise InvalidState("Materials are locked once the canvass is completed")
            if jo.type == JobOrderType.material_requisition and not payload.materials:
                raise ValidationFailed("A material requisition needs at least one material line")
        milestones = _build_milestones(payload.milestones) if payload.milestones is not None else None

        for field in _DETAIL_FIELDS + _MANPOWER_FIELDS:
            if field in data:
                setattr(jo, field, data[field])
        if payload.materials is not None:
            jo.materials = _build_materials(payload.materials)
        if milestones is not None:
            jo.milestones = milestones
        _recalculate_costs(jo)
        jo.updated_at = utcnow()
        commit_or_conflict(db)
        db.refresh(jo)
        return jo

    # ── Canvass and budget ──────────────────────────────────────────

    @staticmethod
    def submit_canvass(db: Session, jo_id: str, payload: CanvassSubmit, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "canvass", jo.id, actor):
            authorize(actor, job_order_facts(jo), "canvass")
            _ensure_not_rejected(jo)
            if jo.type != JobOrderType.material_requisition:
                raise InvalidState("Only material requisitions go through canvass")
            if jo.status != JobOrderStatus.pending_canvass:
                raise InvalidState(f"Cannot submit a canvass for a job order in {jo.status.value} status")
            ensure_not_recorded(jo.approvals, ApprovalRole.purchasing, ApprovalAction.canvass_completed, "completed the canvass")

            materials = {material.id: material for material in jo.materials}
            prices = {}
            for line in payload.lines:
                if line.material_id not in materials:
                    raise ValidationFailed(f"Material {line.material_id} does not belong to this job order")
                prices[line.material_id] = round_money(line.unit_price)
            for material in jo.materials:
                price = prices.get(material.id, round_money(material.unit_price))
                if price <= 0 or line_cost(material.quantity, price) <= 0:
                    raise ValidationFailed(f"Material '{material.item}' needs a unit price before the canvass is submitted")

            previous = jo.status
            for material in jo.materials:
                if material.id in prices:
                    material.unit_price = prices[material.id]
            _recalculate_costs(jo)
            record_approval(
                jo,
                JobOrderApproval,
                ApprovalRole.purchasing,
                ApprovalAction.canvass_completed,
                actor,
                comments=payload.comments,
            )
            jo.status = JobOrderStatus.draft
            commit_or_conflict(db)
            db.refresh(jo)
            log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_needs_approval(db, jo, "finance")
        return jo

    @staticmethod
    def _ensure_budget_open(jo: JobOrder) -> None:
        _ensure_not_rejected(jo)
        if jo.status not in PRE_APPROVAL_STATUSES:
            raise InvalidState(f"Budget actions are not allowed for a job order in {jo.status.value} status")
        if not _needs_budget(jo):
            raise InvalidState("This job order has no materials and does not go through budget approval")
        if _budget(jo).rejected:
            raise InvalidState("The budget for this job order was rejected")

    @staticmethod
    def approve_budget(db: Session, jo_id: str, payload: BudgetApprove, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "budget_approve", jo.id, actor):
            decision = authorize(actor, job_order_facts(jo), "budget_approve")
            role = ApprovalRole(decision.approval_role)
            JobOrders._ensure_budget_open(jo)
            if jo.status == JobOrderStatus.pending_canvass:
                raise PrerequisiteNotMet("The canvass must be completed before budget approval")
            ensure_not_recorded(jo.approvals, role, ApprovalAction.budget_approved, "approved this budget")
            if has_entry(jo.approvals, action=ApprovalAction.budget_approved, actor_id=actor.id):
                raise DuplicateApproval("You have already approved this budget")
            state = _budget(jo)
            if role == ApprovalRole.management and not state.finance_approved:
                raise PrerequisiteNotMet("Finance must approve the budget before the President")
            _check_costs(jo)

            previous = jo.status
            _recalculate_costs(jo)
            if payload.budget_source is not None:
                jo.budget_source = payload.budget_source
            if payload.cost_center is not None:
                jo.cost_center = payload.cost_center
            record_approval(
                jo,
                JobOrderApproval,
                role,
                ApprovalAction.budget_approved,
                actor,
                comments=payload.comments,
            )
            if _budget(jo).cleared and jo.type == JobOrderType.material_requisition:
                jo.status = JobOrderStatus.budget_cleared
            commit_or_conflict(db)
            db.refresh(jo)
            logger.info("Job order %s budget approved by %s (%s)", jo.number, actor.id, role.value)
            if previous != jo.status:
                log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_budget_decided(db, jo, True, role.value)
        return jo

    @staticmethod
    def reject_budget(db: Session, jo_id: str, payload: BudgetReject, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "budget_reject", jo.id, actor):
            decision = authorize(actor, job_order_facts(jo), "budget_reject")
            role = ApprovalRole(decision.approval_role)
            JobOrders._ensure_budget_open(jo)
            comments = require_comments(payload.comments, "reject a budget")
            previous = jo.status
            record_approval(jo, JobOrderApproval, role, ApprovalAction.budget_rejected, actor, comments=comments)
            jo.status = JobOrderStatus.rejected
            commit_or_conflict(db)
            db.refresh(jo)
            log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_budget_decided(db, jo, False, role.value)
        return jo

    # ── Management decision ─────────────────────────────────────────

    @staticmethod
    def approve(db: Session, jo_id: str, actor: Actor, payload: ApprovalDecision | None = None) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "approve", jo.id, actor):
            authorize(actor, job_order_facts(jo), "approve")
            _ensure_not_rejected(jo)
            if jo.status not in PRE_APPROVAL_STATUSES:
                raise InvalidState(f"Cannot approve a job order in {jo.status.value} status")
            ensure_not_recorded(jo.approvals, ApprovalRole.management, ApprovalAction.approved, "approved this job order")
            if _needs_budget(jo):
                if jo.status == JobOrderStatus.pending_canvass:
                    raise PrerequisiteNotMet("The canvass must be completed before approval")
                if not _budget(jo).cleared:
                    raise PrerequisiteNotMet("The budget must be approved by Finance and the President first")
            previous = jo.status
            record_approval(
                jo,
                JobOrderApproval,
                ApprovalRole.management,
                ApprovalAction.approved,
                actor,
                comments=payload.comments if payload else None,
            )
            jo.status = JobOrderStatus.approved
            commit_or_conflict(db)
            db.refresh(jo)
            log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_decided(db, jo, approved=True)
        return jo

    @staticmethod
    def reject(db: Session, jo_id: str, actor: Actor, payload: ApprovalDecision | None = None) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "reject", jo.id, actor):
            authorize(actor, job_order_facts(jo), "reject")
            _ensure_not_rejected(jo)
            if jo.status not in PRE_APPROVAL_STATUSES:
                raise InvalidState(f"Cannot reject a job order in {jo.status.value} status")
            comments = require_comments(payload.comments if payload else None, "reject a job order")
            previous = jo.status
            record_approval(
                jo,
                JobOrderApproval,
                ApprovalRole.management,
                ApprovalAction.rejected,
                actor,
                comments=comments,
            )
            jo.status = JobOrderStatus.rejected
            commit_or_conflict(db)
            db.refresh(jo)
            log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_decided(db, jo, approved=False)
        return jo

    # ── Fulfillment ─────────────────────────────────────────────────

    @staticmethod
    def start(db: Session, jo_id: str, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "start", jo.id, actor):
            authorize(actor, job_order_facts(jo), "start")
            _ensure_not_rejected(jo)
            if jo.status != JobOrderStatus.approved:
                raise InvalidState(f"Cannot start a job order in {jo.status.value} status")
            if jo.type == JobOrderType.material_requisition:
                if jo.purchase_order is None:
                    raise PrerequisiteNotMet("A purchase order is required before work can start")
                if not jo.transfer_completed:
                    raise PrerequisiteNotMet("Material transfer must be completed before work can start")
            elif _needs_budget(jo) and not _budget(jo).cleared:
                raise PrerequisiteNotMet("The budget must be cleared before work can start")
            previous = jo.status
            jo.status = JobOrderStatus.in_progress
            jo.actual_start_date = utcnow()
            commit_or_conflict(db)
            db.refresh(jo)
            log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_status_changed(db, jo, previous)
        return jo

    @staticmethod
    def complete(db: Session, jo_id: str, payload: FulfillmentComplete, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "complete", jo.id, actor):
            authorize(actor, job_order_facts(jo), "complete")
            _ensure_not_rejected(jo)
            if jo.status != JobOrderStatus.in_progress:
                raise InvalidState(f"Cannot complete a job order in {jo.status.value} status")
            previous = jo.status
            jo.status = JobOrderStatus.completed
            jo.actual_completion_date = utcnow()
            if payload.work_completion_notes:
                jo.work_completion_notes = payload.work_completion_notes
            commit_or_conflict(db)
            db.refresh(jo)
            log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_status_changed(db, jo, previous)
        return jo

    @staticmethod
    def accept(db: Session, jo_id: str, payload: AcceptanceRecord, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "accept", jo.id, actor):
            authorize(actor, job_order_facts(jo), "accept")
            _ensure_not_rejected(jo)
            if jo.service_accepted_by:
                raise InvalidState("Acceptance has already been recorded")
            if jo.status != JobOrderStatus.completed:
                raise InvalidState(f"Cannot accept a job order in {jo.status.value} status")
            previous = jo.status
            now = utcnow()
            jo.service_accepted_by = (payload.service_accepted_by or "").strip() or actor.name
            jo.date_accepted = now
            jo.status = JobOrderStatus.closed
            jo.closed_at = now
            commit_or_conflict(db)
            db.refresh(jo)
            log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_status_changed(db, jo, previous)
        return jo

    @staticmethod
    def close(db: Session, jo_id: str, actor: Actor) -> JobOrder:
        """Administrative close, used for data correction."""
        jo = _load(db, jo_id)
        authorize(actor, job_order_facts(jo), "close")
        _ensure_not_rejected(jo)
        if jo.status == JobOrderStatus.closed:
            return jo
        if jo.status not in (JobOrderStatus.in_progress, JobOrderStatus.completed):
            raise InvalidState(f"Cannot close a job order in {jo.status.value} status")
        previous = jo.status
        jo.status = JobOrderStatus.closed
        jo.closed_at = utcnow()
        commit_or_conflict(db)
        db.refresh(jo)
        log_transition("Job order", jo.number, previous, jo.status, actor)
        notifications.notify_job_order_status_changed(db, jo, previous)
        return jo

    # ── Material transfer ───────────────────────────────────────────

    @staticmethod
    def initialize_transfer(jo: JobOrder, purchase_order) -> None:
        """Seed per-item transfer tracking from a received purchase order.

        Called inside the purchase order's receive transaction; no commit.
        """
        if jo.transfer_items:
            return
        jo.transfer_items = [
            JobOrderTransferItem(
                purchase_order_item_id=item.id,
                position=index,
                item=item.item,
                description=item.description,
                quantity=item.quantity,
                unit=item.unit,
                transferred_quantity=0,
                status=TransferItemStatus.pending,
            )
            for index, item in enumerate(purchase_order.items)
        ]
        jo.updated_at = utcnow()

    @staticmethod
    def _ensure_transfer_open(jo: JobOrder) -> None:
        _ensure_not_rejected(jo)
        if jo.type != JobOrderType.material_requisition:
            raise InvalidState("Material transfer applies to material requisitions only")
        po = jo.purchase_order
        if po is None or po.status not in _TRANSFER_READY_PO_STATUSES:
            raise PrerequisiteNotMet("The purchase order must be received before materials are transferred")
        if jo.transfer_completed:
            raise InvalidState("Material transfer is already completed and cannot be changed")

    @staticmethod
    def update_transfer(db: Session, jo_id: str, payload: TransferUpdate, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "transfer", jo.id, actor):
            authorize(actor, job_order_facts(jo), "transfer")
            JobOrders._ensure_transfer_open(jo)
            items = {item.id: item for item in jo.transfer_items}
            for line in payload.items:
                item = items.get(line.item_id)
                if item is None:
                    raise ValidationFailed(f"Transfer item {line.item_id} does not belong to this job order")
                if line.transferred_quantity > item.quantity:
                    raise ValidationFailed(
                        f"Cannot transfer {line.transferred_quantity} of '{item.item}'; only {item.quantity} ordered"
                    )
            now = utcnow()
            for line in payload.items:
                item = items[line.item_id]
                if item.transferred_quantity != line.transferred_quantity:
                    item.transferred_quantity = line.transferred_quantity
                    item.transfer_date = now
                    item.transferred_by = actor.name
                item.status = TransferItemStatus(transfer_status(item.transferred_quantity, item.quantity))
                if line.notes is not None:
                    item.notes = line.notes
            if payload.transfer_notes is not None:
                jo.transfer_notes = payload.transfer_notes
            jo.updated_at = now
            commit_or_conflict(db)
            db.refresh(jo)
            logger.info("Job order %s material transfer updated by %s", jo.number, actor.id)
        notifications.notify_transfer_updated(db, jo)
        return jo

    @staticmethod
    def complete_transfer(db: Session, jo_id: str, payload: TransferComplete, actor: Actor) -> JobOrder:
        jo = _load(db, jo_id)
        with traced("job_order", "transfer_complete", jo.id, actor):
            authorize(actor, job_order_facts(jo), "transfer")
            if not payload.transfer_completed:
                if jo.transfer_completed:
                    raise InvalidState("A completed material transfer cannot be reopened")
                raise ValidationFailed("transfer_completed must be true")
            JobOrders._ensure_transfer_open(jo)
            pending = [item.item for item in jo.transfer_items if item.status != TransferItemStatus.completed]
            if not jo.transfer_items or pending:
                raise PrerequisiteNotMet(f"Items not fully transferred: {', '.join(pending) or 'none recorded'}")
            jo.transfer_completed = True
            jo.transfer_completed_at = utcnow()
            jo.transfer_completed_by = actor.name
            if payload.transfer_notes is not None:
                jo.transfer_notes = payload.transfer_notes
            jo.updated_at = utcnow()
            commit_or_conflict(db)
            db.refresh(jo)
            logger.info("Job order %s material transfer completed by %s", jo.number, actor.id)
        notifications.notify_transfer_completed(db, jo)
        return jo


job_orders = JobOrders()
