from decimal import Decimal

from procureflow.models.approval import ApprovalAction, ApprovalRole
from procureflow.models.job_order import JobOrderStatus
from procureflow.models.purchase_order import PurchaseOrderStatus
from procureflow.models.receiving_report import ReceivingReportStatus
from procureflow.models.service_request import ServiceRequestStatus
from procureflow.schemas.job_order import (
    AcceptanceRecord,
    BudgetApprove,
    CanvassLine,
    CanvassSubmit,
    FulfillmentComplete,
    JobOrderCreate,
    MaterialCreate,
    TransferComplete,
    TransferLine,
    TransferUpdate,
)
from procureflow.schemas.purchase_order import PurchaseOrderCreate, PurchaseOrderReceive
from procureflow.schemas.receiving_report import ReceivingReportCreate
from procureflow.schemas.service_request import ServiceRequestCreate
from procureflow.services.job_orders import job_orders
from procureflow.services.purchase_orders import purchase_orders
from procureflow.services.receiving_reports import receiving_reports
from procureflow.services.service_requests import service_requests


def _trail(entity):
    return [(entry.role, entry.action) for entry in entity.approvals]


def test_material_requisition_from_request_to_acceptance(
    db_session,
    directory,
    dispatcher,
    requester,
    it_head,
    operations,
    finance_approver,
    president,
    purchasing_approver,
    purchase_lines,
):
    sr = service_requests.create(
        db_session,
        ServiceRequestCreate(
            department="IT",
            category="technical_support",
            description="Two replacement switches for floor 3",
        ),
        requester,
    )
    assert sr.status == ServiceRequestStatus.submitted
    sr = service_requests.approve(db_session, sr.id, it_head)
    assert sr.status == ServiceRequestStatus.approved

    jo = job_orders.create(
        db_session,
        JobOrderCreate(
            service_request_id=sr.id,
            type="material_requisition",
            materials=[
                MaterialCreate(item="Network switch", quantity=2, unit="pcs"),
                MaterialCreate(item="Patch cable", quantity=10, unit="pcs"),
            ],
        ),
        it_head,
    )
    assert jo.status == JobOrderStatus.pending_canvass

    prices = {"Network switch": "1250.00", "Patch cable": "4.50"}
    jo = job_orders.submit_canvass(
        db_session,
        jo.id,
        CanvassSubmit(lines=[CanvassLine(material_id=m.id, unit_price=prices[m.item]) for m in jo.materials]),
        purchasing_approver,
    )
    assert jo.estimated_total_cost == Decimal("2545.00")

    job_orders.approve_budget(db_session, jo.id, BudgetApprove(budget_source="Capex"), finance_approver)
    jo = job_orders.approve_budget(db_session, jo.id, BudgetApprove(), president)
    assert jo.status == JobOrderStatus.budget_cleared
    jo = job_orders.approve(db_session, jo.id, president)
    assert jo.status == JobOrderStatus.approved

    po = purchase_orders.create(
        db_session,
        PurchaseOrderCreate(job_order_id=jo.id, items=purchase_lines()),
        purchasing_approver,
    )
    po = purchase_orders.submit(db_session, po.id, purchasing_approver)
    po = purchase_orders.review(db_session, po.id, finance_approver)
    po = purchase_orders.approve(db_session, po.id, president)
    po = purchase_orders.mark_purchased(db_session, po.id, purchasing_approver)
    po = purchase_orders.mark_received(db_session, po.id, PurchaseOrderReceive(delivery_notes="Dock 2"), purchasing_approver)
    assert po.status == PurchaseOrderStatus.received
    assert _trail(po) == [
        (ApprovalRole.purchasing, ApprovalAction.prepared),
        (ApprovalRole.purchasing, ApprovalAction.submitted),
        (ApprovalRole.finance, ApprovalAction.reviewed),
        (ApprovalRole.management, ApprovalAction.approved),
    ]

    report = receiving_reports.create(
        db_session, ReceivingReportCreate(purchase_order_id=po.id), purchasing_approver
    )
    receiving_reports.submit(db_session, report.id, purchasing_approver)
    report = receiving_reports.complete(db_session, report.id, purchasing_approver)
    assert report.status == ReceivingReportStatus.completed

    jo = job_orders.get(db_session, jo.id)
    lines = [TransferLine(item_id=item.id, transferred_quantity=item.quantity) for item in jo.transfer_items]
    job_orders.update_transfer(db_session, jo.id, TransferUpdate(items=lines), operations)
    job_orders.complete_transfer(db_session, jo.id, TransferComplete(), operations)

    jo = job_orders.start(db_session, jo.id, it_head)
    jo = job_orders.complete(db_session, jo.id, FulfillmentComplete(work_completion_notes="Installed"), it_head)
    jo = job_orders.accept(db_session, jo.id, AcceptanceRecord(), it_head)
    assert jo.status == JobOrderStatus.closed
    assert jo.service_accepted_by == it_head.name
    assert jo.date_accepted is not None
    assert _trail(jo) == [
        (ApprovalRole.operations, ApprovalAction.prepared),
        (ApprovalRole.purchasing, ApprovalAction.canvass_completed),
        (ApprovalRole.finance, ApprovalAction.budget_approved),
        (ApprovalRole.management, ApprovalAction.budget_approved),
        (ApprovalRole.management, ApprovalAction.approved),
    ]

    po = purchase_orders.close(db_session, po.id, purchasing_approver)
    assert po.status == PurchaseOrderStatus.closed

    types = {call["type"] for call in dispatcher.calls}
    assert {
        "service_request_submitted",
        "service_request_approved",
        "job_order_created",
        "job_order_budget_approved",
        "job_order_approved",
        "purchase_order_created",
        "purchase_order_approved",
        "receiving_report_created",
        "job_order_status_changed",
    } <= types
