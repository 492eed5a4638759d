import logging

from sqlalchemy.orm import Session, selectinload

from procureflow.errors import InvalidState, PrerequisiteNotMet, ValidationFailed, commit_or_conflict
from procureflow.logic.authorization_logic import Actor, EntityFacts
from procureflow.logic.workflow_logic import line_cost
from procureflow.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from procureflow.models.receiving_report import ReceivingReport, ReceivingReportItem, ReceivingReportStatus
from procureflow.schemas.receiving_report import (
    ReceivingReportCreate,
    ReceivingReportItemInput,
    ReceivingReportUpdate,
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
from procureflow.services.workflow import authorize, log_transition, traced

logger = logging.getLogger(__name__)

_FACTS = EntityFacts(kind="receiving_report")


def _build_items(po: PurchaseOrder, lines: list[ReceivingReportItemInput] | None) -> list[ReceivingReportItem]:
    """Map received quantities onto the order lines; unlisted lines default to the ordered quantity."""
    ordered = {item.id: item for item in po.items}
    received = {}
    for line in lines or []:
        po_item = ordered.get(line.purchase_order_item_id)
        if po_item is None:
            raise ValidationFailed(f"Item {line.purchase_order_item_id} is not on {po.number}")
        if line.received_quantity > po_item.quantity:
            raise ValidationFailed(
                f"Received {line.received_quantity} of '{po_item.item}' but only {po_item.quantity} were ordered"
            )
        received[po_item.id] = line

    items = []
    for index, po_item in enumerate(po.items):
        line = received.get(po_item.id)
        quantity = line.received_quantity if line else po_item.quantity
        items.append(
            ReceivingReportItem(
                purchase_order_item_id=po_item.id,
                position=index,
                item=po_item.item,
                unit=po_item.unit,
                ordered_quantity=po_item.quantity,
                received_quantity=quantity,
                unit_price=round_money(po_item.unit_price),
                total_price=line_cost(quantity, po_item.unit_price),
                condition_notes=line.condition_notes if line else None,
            )
        )
    return items


def _total(items: list[ReceivingReportItem]):
    return round_money(sum((item.total_price for item in items), round_money(0)))


def _load(db: Session, report_id: str) -> ReceivingReport:
    return get_or_404(
        db,
        ReceivingReport,
        report_id,
        detail="Receiving report not found",
        options=[selectinload(ReceivingReport.items)],
    )


class ReceivingReports(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ReceivingReportCreate, actor: Actor) -> ReceivingReport:
        po = get_or_404(
            db,
            PurchaseOrder,
            payload.purchase_order_id,
            detail="Purchase order not found",
            options=[selectinload(PurchaseOrder.items)],
        )
        with traced("receiving_report", "create", po.id, actor):
            authorize(actor, _FACTS, "create")
            if po.status != PurchaseOrderStatus.received:
                raise PrerequisiteNotMet("Goods can only be reported once the purchase order is marked received")
            if db.query(ReceivingReport.id).filter(ReceivingReport.purchase_order_id == po.id).first():
                raise InvalidState("A receiving report already exists for this purchase order")
            delivered_at = payload.actual_delivery_date or po.actual_delivery_date
            if delivered_at is None:
                raise ValidationFailed("actual_delivery_date is required")
            items = _build_items(po, payload.items)

            report = ReceivingReport(
                number=generate_number(db, "receiving_report_number"),
                purchase_order_id=po.id,
                status=ReceivingReportStatus.draft,
                supplier_name=po.items[0].supplier_name if po.items else None,
                received_by_id=actor.id,
                received_by=actor.name,
                actual_delivery_date=delivered_at,
                delivery_notes=payload.delivery_notes,
                notes=payload.notes,
            )
            report.items = items
            report.total_amount = _total(items)
            po.actual_delivery_date = delivered_at
            if payload.delivery_notes:
                po.delivery_notes = payload.delivery_notes
            db.add(report)
            commit_or_conflict(db)
            db.refresh(report)
            logger.info("Receiving report %s created for %s by %s", report.number, po.number, actor.id)
        notifications.notify_receiving_report_created(db, report, po.job_order)
        return report

    @staticmethod
    def get(db: Session, report_id: str) -> ReceivingReport:
        return _load(db, report_id)

    @staticmethod
    def list(
        db: Session,
        status: str | None = None,
        purchase_order_id: str | None = None,
        order_by: str = "created_at",
        order_dir: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(ReceivingReport)
        if status:
            query = query.filter(ReceivingReport.status == validate_enum(status, ReceivingReportStatus, "status"))
        if purchase_order_id:
            query = query.filter(ReceivingReport.purchase_order_id == coerce_uuid(purchase_order_id))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": ReceivingReport.created_at,
                "number": ReceivingReport.number,
                "actual_delivery_date": ReceivingReport.actual_delivery_date,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, report_id: str, payload: ReceivingReportUpdate, actor: Actor) -> ReceivingReport:
        report = _load(db, report_id)
        authorize(actor, _FACTS, "update")
        if report.status != ReceivingReportStatus.draft:
            raise InvalidState(f"Cannot edit a receiving report in {report.status.value} status")
        data = payload.model_dump(exclude_unset=True)
        if payload.items is not None:
            items = _build_items(report.purchase_order, payload.items)
            report.items = items
            report.total_amount = _total(items)
        for key in ("delivery_notes", "notes"):
            if key in data:
                setattr(report, key, data[key])
        report.updated_at = utcnow()
        commit_or_conflict(db)
        db.refresh(report)
        return report

    # ── Status transitions ──────────────────────────────────────────

    @staticmethod
    def submit(db: Session, report_id: str, actor: Actor) -> ReceivingReport:
        report = _load(db, report_id)
        authorize(actor, _FACTS, "submit")
        if report.status != ReceivingReportStatus.draft:
            raise InvalidState(f"Cannot submit a receiving report in {report.status.value} status")
        previous = report.status
        report.status = ReceivingReportStatus.submitted
        report.submitted_at = utcnow()
        commit_or_conflict(db)
        db.refresh(report)
        log_transition("Receiving report", report.number, previous, report.status, actor)
        notifications.notify_receiving_report_status_changed(db, report, previous)
        return report

    @staticmethod
    def complete(db: Session, report_id: str, actor: Actor) -> ReceivingReport:
        report = _load(db, report_id)
        authorize(actor, _FACTS, "complete")
        if report.status != ReceivingReportStatus.submitted:
            raise InvalidState(f"Cannot complete a receiving report in {report.status.value} status")
        previous = report.status
        report.status = ReceivingReportStatus.completed
        report.completed_at = utcnow()
        commit_or_conflict(db)
        db.refresh(report)
        log_transition("Receiving report", report.number, previous, report.status, actor)
        notifications.notify_receiving_report_status_changed(db, report, previous)
        return report


receiving_reports = ReceivingReports()
