import logging

from sqlalchemy.orm import Session, selectinload

from procureflow.config import settings
from procureflow.errors import InvalidState, PrerequisiteNotMet, ValidationFailed, commit_or_conflict
from procureflow.logic.authorization_logic import Actor, EntityFacts
from procureflow.logic.workflow_logic import budget_state, line_cost, order_totals
from procureflow.models.approval import ApprovalAction, ApprovalRole
from procureflow.models.job_order import JobOrder, JobOrderStatus, JobOrderType
from procureflow.models.notification import NotificationType
from procureflow.models.purchase_order import (
    PurchaseOrder,
    PurchaseOrderApproval,
    PurchaseOrderItem,
    PurchaseOrderStatus,
)
from procureflow.schemas.approval import ApprovalDecision
from procureflow.schemas.purchase_order import (
    PurchaseOrderCreate,
    PurchaseOrderItemCreate,
    PurchaseOrderItemUpdate,
    PurchaseOrderReceive,
    PurchaseOrderUpdate,
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
from procureflow.services.job_orders import job_orders
from procureflow.services.numbering import generate_number
from procureflow.services.response import ListResponseMixin
from procureflow.services.workflow import (
    authorize,
    ensure_not_recorded,
    log_transition,
    record_approval,
    require_comments,
    traced,
)

logger = logging.getLogger(__name__)

_FACTS = EntityFacts(kind="purchase_order")


def _recalculate_totals(po: PurchaseOrder) -> None:
    for item in po.items:
        item.total_price = line_cost(item.quantity, item.unit_price)
    po.subtotal, po.total = order_totals(((item.quantity, item.unit_price) for item in po.items), po.tax)


def _build_item(payload: PurchaseOrderItemCreate, position: int) -> PurchaseOrderItem:
    data = payload.model_dump()
    data["unit_price"] = round_money(data["unit_price"])
    return PurchaseOrderItem(position=position, **data)


def _ensure_draft(po: PurchaseOrder) -> None:
    if po.status != PurchaseOrderStatus.draft:
        raise InvalidState(f"Purchase order items can only be edited in draft (currently {po.status.value})")


def _load(db: Session, po_id: str) -> PurchaseOrder:
    return get_or_404(
        db,
        PurchaseOrder,
        po_id,
        detail="Purchase order not found",
        options=[selectinload(PurchaseOrder.items), selectinload(PurchaseOrder.approvals)],
    )


class PurchaseOrders(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: PurchaseOrderCreate, actor: Actor) -> PurchaseOrder:
        jo = get_or_404(
            db,
            JobOrder,
            payload.job_order_id,
            detail="Job order not found",
            options=[selectinload(JobOrder.approvals)],
        )
        with traced("purchase_order", "create", jo.id, actor):
            authorize(actor, _FACTS, "create")
            if jo.type != JobOrderType.material_requisition:
                raise InvalidState("Purchase orders can only be created for material requisitions")
            if jo.status == JobOrderStatus.rejected:
                raise InvalidState("Job order was rejected; no further actions are allowed")
            budget = budget_state((entry.role.value, entry.action.value) for entry in jo.approvals)
            if not budget.cleared or jo.status not in (JobOrderStatus.budget_cleared, JobOrderStatus.approved):
                raise PrerequisiteNotMet("The job order budget must be cleared before a purchase order is created")
            if db.query(PurchaseOrder.id).filter(PurchaseOrder.job_order_id == jo.id).first():
                raise InvalidState("A purchase order already exists for this job order")
            if not payload.items:
                raise ValidationFailed("A purchase order needs at least one item")

            po = PurchaseOrder(
                number=generate_number(db, "purchase_order_number"),
                job_order_id=jo.id,
                status=PurchaseOrderStatus.draft,
                department=jo.department,
                requested_by=jo.requester_name,
                created_by_id=actor.id,
                created_by_name=actor.name,
                notes=payload.notes,
                tax=round_money(payload.tax if payload.tax is not None else settings.default_po_tax),
            )
            po.items = [_build_item(item, index) for index, item in enumerate(payload.items)]
            _recalculate_totals(po)
            record_approval(po, PurchaseOrderApproval, ApprovalRole.purchasing, ApprovalAction.prepared, actor)
            db.add(po)
            commit_or_conflict(db)
            db.refresh(po)
            logger.info("Purchase order %s created for job order %s by %s", po.number, jo.number, actor.id)
        notifications.notify_purchase_order(
            db,
            po,
            NotificationType.purchase_order_created,
            "New purchase order",
            f"{po.number} was prepared for {jo.number}.",
        )
        return po

    @staticmethod
    def get(db: Session, po_id: str) -> PurchaseOrder:
        return _load(db, po_id)

    @staticmethod
    def get_for_job_order(db: Session, jo_id: str) -> PurchaseOrder:
        jo = get_or_404(db, JobOrder, jo_id, detail="Job order not found")
        po = jo.purchase_order
        if po is None:
            raise PrerequisiteNotMet("No purchase order exists for this job order")
        return po

    @staticmethod
    def list(
        db: Session,
        status: str | None = None,
        job_order_id: str | None = None,
        department: str | None = None,
        order_by: str = "created_at",
        order_dir: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(PurchaseOrder)
        if status:
            query = query.filter(PurchaseOrder.status == validate_enum(status, PurchaseOrderStatus, "status"))
        if job_order_id:
            query = query.filter(PurchaseOrder.job_order_id == coerce_uuid(job_order_id))
        if department:
            query = query.filter(PurchaseOrder.department == department)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": PurchaseOrder.created_at,
                "number": PurchaseOrder.number,
                "total": PurchaseOrder.total,
                "status": PurchaseOrder.status,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, po_id: str, payload: PurchaseOrderUpdate, actor: Actor) -> PurchaseOrder:
        po = _load(db, po_id)
        authorize(actor, _FACTS, "update")
        _ensure_draft(po)
        data = payload.model_dump(exclude_unset=True)
        if "notes" in data:
            po.notes = data["notes"]
        if data.get("tax") is not None:
            po.tax = round_money(data["tax"])
        _recalculate_totals(po)
        commit_or_conflict(db)
        db.refresh(po)
        return po

    # ── Items ───────────────────────────────────────────────────────

    @staticmethod
    def add_item(db: Session, po_id: str, payload: PurchaseOrderItemCreate, actor: Actor) -> PurchaseOrder:
        po = _load(db, po_id)
        authorize(actor, _FACTS, "update")
        _ensure_draft(po)
        position = max((item.position for item in po.items), default=-1) + 1
        po.items.append(_build_item(payload, position))
        _recalculate_totals(po)
        commit_or_conflict(db)
        db.refresh(po)
        return po

    @staticmethod
    def update_item(
        db: Session, po_id: str, item_id: str, payload: PurchaseOrderItemUpdate, actor: Actor
    ) -> PurchaseOrder:
        po = _load(db, po_id)
        authorize(actor, _FACTS, "update")
        _ensure_draft(po)
        item = next((i for i in po.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationFailed("Purchase order item not found on this order")
        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is None and key in ("item", "quantity", "unit_price", "supplier_name"):
                continue
            setattr(item, key, round_money(value) if key == "unit_price" else value)
        _recalculate_totals(po)
        commit_or_conflict(db)
        db.refresh(po)
        return po

    @staticmethod
    def remove_item(db: Session, po_id: str, item_id: str, actor: Actor) -> PurchaseOrder:
        po = _load(db, po_id)
        authorize(actor, _FACTS, "update")
        _ensure_draft(po)
        item = next((i for i in po.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationFailed("Purchase order item not found on this order")
        if len(po.items) <= 1:
            raise ValidationFailed("A purchase order must keep at least one item")
        po.items.remove(item)
        _recalculate_totals(po)
        commit_or_conflict(db)
        db.refresh(po)
        return po

    # ── Status transitions ──────────────────────────────────────────

    @staticmethod
    def submit(db: Session, po_id: str, actor: Actor) -> PurchaseOrder:
        po = _load(db, po_id)
        with traced("purchase_order", "submit", po.id, actor):
            authorize(actor, _FACTS, "submit")
            if po.status != PurchaseOrderStatus.draft:
                raise InvalidState(f"Cannot submit a purchase order in {po.status.value} status")
            if not po.items:
                raise ValidationFailed("A purchase order needs at least one item")
            previous = po.status
            record_approval(po, PurchaseOrderApproval, ApprovalRole.purchasing, ApprovalAction.submitted, actor)
            po.status = PurchaseOrderStatus.submitted
            po.submitted_at = utcnow()
            commit_or_conflict(db)
            db.refresh(po)
            log_transition("Purchase order", po.number, previous, po.status, actor)
        notifications.notify_purchase_order(
            db,
            po,
            NotificationType.purchase_order_needs_approval,
            "Purchase order needs approval",
            f"{po.number} was submitted for approval.",
        )
        return po

    @staticmethod
    def review(db: Session, po_id: str, actor: Actor, payload: ApprovalDecision | None = None) -> PurchaseOrder:
        """Optional Finance review; informational, does not change status."""
        po = _load(db, po_id)
        authorize(actor, _FACTS, "review")
        if po.status != PurchaseOrderStatus.submitted:
            raise InvalidState(f"Cannot review a purchase order in {po.status.value} status")
        ensure_not_recorded(po.approvals, ApprovalRole.finance, ApprovalAction.reviewed, "reviewed this purchase order")
        record_approval(
            po,
            PurchaseOrderApproval,
            ApprovalRole.finance,
            ApprovalAction.reviewed,
            actor,
            comments=payload.comments if payload else None,
        )
        commit_or_conflict(db)
        db.refresh(po)
        logger.info("Purchase order %s reviewed by %s", po.number, actor.id)
        return po

    @staticmethod
    def approve(db: Session, po_id: str, actor: Actor, payload: ApprovalDecision | None = None) -> PurchaseOrder:
        po = _load(db, po_id)
        with traced("purchase_order", "approve", po.id, actor):
            authorize(actor, _FACTS, "approve")
            if po.status != PurchaseOrderStatus.submitted:
                raise InvalidState(f"Cannot approve a purchase order in {po.status.value} status")
            ensure_not_recorded(
                po.approvals, ApprovalRole.management, ApprovalAction.approved, "approved this purchase order"
            )
            previous = po.status
            record_approval(
                po,
                PurchaseOrderApproval,
                ApprovalRole.management,
                ApprovalAction.approved,
                actor,
                comments=payload.comments if payload else None,
            )
            po.status = PurchaseOrderStatus.approved
            po.approved_at = utcnow()
            commit_or_conflict(db)
            db.refresh(po)
            log_transition("Purchase order", po.number, previous, po.status, actor)
        notifications.notify_purchase_order(
            db,
            po,
            NotificationType.purchase_order_approved,
            "Purchase order approved",
            f"{po.number} was approved and can be placed with the supplier.",
        )
        return po

    @staticmethod
    def reject(db: Session, po_id: str, actor: Actor, payload: ApprovalDecision | None = None) -> PurchaseOrder:
        po = _load(db, po_id)
        with traced("purchase_order", "reject", po.id, actor):
            authorize(actor, _FACTS, "reject")
            if po.status != PurchaseOrderStatus.submitted:
                raise InvalidState(f"Cannot reject a purchase order in {po.status.value} status")
            comments = require_comments(payload.comments if payload else None, "reject a purchase order")
            previous = po.status
            record_approval(
                po,
                PurchaseOrderApproval,
                ApprovalRole.management,
                ApprovalAction.rejected,
                actor,
                comments=comments,
            )
            po.status = PurchaseOrderStatus.rejected
            po.rejected_at = utcnow()
            commit_or_conflict(db)
            db.refresh(po)
            log_transition("Purchase order", po.number, previous, po.status, actor)
        notifications.notify_purchase_order(
            db,
            po,
            NotificationType.purchase_order_rejected,
            "Purchase order rejected",
            f"{po.number} was rejected: {comments}",
        )
        return po

    @staticmethod
    def mark_purchased(db: Session, po_id: str, actor: Actor) -> PurchaseOrder:
        po = _load(db, po_id)
        with traced("purchase_order", "purchase", po.id, actor):
            authorize(actor, _FACTS, "purchase")
            if po.status != PurchaseOrderStatus.approved:
                raise InvalidState(f"Cannot mark a purchase order in {po.status.value} status as purchased")
            previous = po.status
            po.status = PurchaseOrderStatus.purchased
            po.purchased_at = utcnow()
            commit_or_conflict(db)
            db.refresh(po)
            log_transition("Purchase order", po.number, previous, po.status, actor)
        notifications.notify_purchase_order(
            db,
            po,
            NotificationType.purchase_order_status_changed,
            "Purchase order placed",
            f"{po.number} was placed with the supplier.",
        )
        return po

    @staticmethod
    def mark_received(db: Session, po_id: str, payload: PurchaseOrderReceive, actor: Actor) -> PurchaseOrder:
        po = _load(db, po_id)
        with traced("purchase_order", "receive", po.id, actor):
            authorize(actor, _FACTS, "receive")
            if po.status != PurchaseOrderStatus.purchased:
                raise InvalidState(f"Cannot receive a purchase order in {po.status.value} status")
            previous = po.status
            now = utcnow()
            po.status = PurchaseOrderStatus.received
            po.received_at = now
            po.actual_delivery_date = payload.actual_delivery_date or now
            if payload.delivery_notes is not None:
                po.delivery_notes = payload.delivery_notes
            job_orders.initialize_transfer(po.job_order, po)
            commit_or_conflict(db)
            db.refresh(po)
            log_transition("Purchase order", po.number, previous, po.status, actor)
        notifications.notify_purchase_order(
            db,
            po,
            NotificationType.purchase_order_status_changed,
            "Purchase order received",
            f"Goods for {po.number} were delivered; material transfer can begin.",
        )
        return po

    @staticmethod
    def close(db: Session, po_id: str, actor: Actor) -> PurchaseOrder:
        po = _load(db, po_id)
        authorize(actor, _FACTS, "close")
        if po.status != PurchaseOrderStatus.received:
            raise InvalidState(f"Cannot close a purchase order in {po.status.value} status")
        previous = po.status
        po.status = PurchaseOrderStatus.closed
        po.closed_at = utcnow()
        commit_or_conflict(db)
        db.refresh(po)
        log_transition("Purchase order", po.number, previous, po.status, actor)
        notifications.notify_purchase_order(
            db,
            po,
            NotificationType.purchase_order_status_changed,
            "Purchase order closed",
            f"{po.number} was closed.",
        )
        return po


purchase_orders = PurchaseOrders()
