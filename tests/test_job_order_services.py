from datetime import date
from decimal import Decimal

import pytest

from procureflow.errors import (
    DuplicateApproval,
    InvalidState,
    PrerequisiteNotMet,
    Unauthorized,
    ValidationFailed,
)
from procureflow.models.approval import ApprovalAction, ApprovalRole
from procureflow.models.job_order import JobOrderStatus, JobOrderType
from procureflow.schemas.approval import ApprovalDecision
from procureflow.schemas.job_order import (
    AcceptanceRecord,
    BudgetApprove,
    BudgetReject,
    CanvassLine,
    CanvassSubmit,
    FulfillmentComplete,
    JobOrderCreate,
    JobOrderUpdate,
    MaterialCreate,
    MilestoneCreate,
)
from procureflow.services.job_orders import job_orders
from procureflow.services.service_requests import service_requests


def _service_job_order(db_session, sr, actor, **kwargs):
    return job_orders.create(db_session, JobOrderCreate(service_request_id=sr.id, **kwargs), actor)


def _entries(jo):
    return [(a.role, a.action) for a in jo.approvals]


# ── Creation ────────────────────────────────────────────────────


def test_service_job_order_starts_in_draft_with_department_head_approval(
    db_session, approved_service_request, it_head
):
    jo = _service_job_order(db_session, approved_service_request, it_head)

    assert jo.type == JobOrderType.service
    assert jo.status == JobOrderStatus.draft
    assert jo.number.startswith("JO-")
    assert jo.department == "IT"
    assert jo.work_description == approved_service_request.description
    assert _entries(jo) == [(ApprovalRole.department_head, ApprovalAction.approved)]


def test_requisition_starts_pending_canvass(requisition):
    assert requisition.type == JobOrderType.material_requisition
    assert requisition.status == JobOrderStatus.pending_canvass
    assert _entries(requisition) == [(ApprovalRole.operations, ApprovalAction.prepared)]
    assert [m.item for m in requisition.materials] == ["Network switch", "Patch cable"]


def test_job_order_requires_approved_service_request(db_session, make_service_request, it_head):
    sr = make_service_request()
    with pytest.raises(PrerequisiteNotMet):
        _service_job_order(db_session, sr, it_head)


def test_only_one_job_order_per_service_request(db_session, approved_service_request, it_head):
    _service_job_order(db_session, approved_service_request, it_head)
    with pytest.raises(InvalidState):
        _service_job_order(db_session, approved_service_request, it_head)


def test_non_handling_department_cannot_create(db_session, approved_service_request, maintenance_head):
    with pytest.raises(Unauthorized):
        _service_job_order(db_session, approved_service_request, maintenance_head)


def test_requisition_without_materials_is_invalid(db_session, approved_service_request, it_head):
    with pytest.raises(ValidationFailed):
        _service_job_order(db_session, approved_service_request, it_head, type="material_requisition")


def test_milestone_ending_before_start_is_invalid(db_session, approved_service_request, it_head):
    milestones = [MilestoneCreate(activity="Cabling", start_date=date(2026, 5, 2), end_date=date(2026, 5, 1))]
    with pytest.raises(ValidationFailed):
        _service_job_order(db_session, approved_service_request, it_head, milestones=milestones)


def test_estimated_cost_includes_materials_and_outsource(db_session, approved_service_request, it_head):
    jo = _service_job_order(
        db_session,
        approved_service_request,
        it_head,
        materials=[MaterialCreate(item="Bracket", quantity=3, unit_price="12.50")],
        outsource="CableCo",
        outsource_price="100.00",
    )
    assert jo.materials[0].estimated_cost == Decimal("37.50")
    assert jo.estimated_total_cost == Decimal("137.50")


def test_update_recalculates_costs_and_locks_after_budget(
    db_session, approved_service_request, it_head, finance_approver
):
    jo = _service_job_order(
        db_session,
        approved_service_request,
        it_head,
        materials=[MaterialCreate(item="Bracket", quantity=3, unit_price="12.50")],
    )
    jo = job_orders.update(
        db_session,
        jo.id,
        JobOrderUpdate(materials=[MaterialCreate(item="Bracket", quantity=4, unit_price="12.50")]),
        it_head,
    )
    assert jo.estimated_total_cost == Decimal("50.00")

    job_orders.approve_budget(db_session, jo.id, BudgetApprove(), finance_approver)
    with pytest.raises(InvalidState):
        job_orders.update(db_session, jo.id, JobOrderUpdate(location="Annex"), it_head)


# ── Scenario: service job order end to end ──────────────────────


def test_service_job_order_lifecycle(db_session, approved_service_request, it_head, president, dispatcher):
    jo = _service_job_order(db_session, approved_service_request, it_head)

    jo = job_orders.approve(db_session, jo.id, president)
    assert jo.status == JobOrderStatus.approved

    jo = job_orders.start(db_session, jo.id, it_head)
    assert jo.status == JobOrderStatus.in_progress
    assert jo.actual_start_date is not None

    jo = job_orders.complete(db_session, jo.id, FulfillmentComplete(work_completion_notes="Switch replaced"), it_head)
    assert jo.status == JobOrderStatus.completed
    assert jo.work_completion_notes == "Switch replaced"

    jo = job_orders.accept(db_session, jo.id, AcceptanceRecord(), it_head)
    assert jo.status == JobOrderStatus.closed
    assert jo.service_accepted_by == it_head.name
    assert jo.date_accepted is not None
    assert jo.closed_at is not None

    changes = dispatcher.of_type("job_order_status_changed")
    assert len(changes) == 3


def test_service_job_order_without_materials_needs_no_budget(db_session, approved_service_request, it_head, finance_approver):
    jo = _service_job_order(db_session, approved_service_request, it_head)
    with pytest.raises(InvalidState):
        job_orders.approve_budget(db_session, jo.id, BudgetApprove(), finance_approver)


def test_service_job_order_with_materials_needs_budget_before_approval(
    db_session, approved_service_request, it_head, finance_approver, president
):
    jo = _service_job_order(
        db_session,
        approved_service_request,
        it_head,
        materials=[MaterialCreate(item="Bracket", quantity=1, unit_price="10.00")],
    )
    with pytest.raises(PrerequisiteNotMet):
        job_orders.approve(db_session, jo.id, president)

    job_orders.approve_budget(db_session, jo.id, BudgetApprove(), finance_approver)
    jo = job_orders.approve_budget(db_session, jo.id, BudgetApprove(), president)
    # Service job orders stay in draft; only requisitions move to budget_cleared
    assert jo.status == JobOrderStatus.draft

    jo = job_orders.approve(db_session, jo.id, president)
    assert jo.status == JobOrderStatus.approved


def test_start_requires_approval(db_session, approved_service_request, it_head):
    jo = _service_job_order(db_session, approved_service_request, it_head)
    with pytest.raises(InvalidState):
        job_orders.start(db_session, jo.id, it_head)


def test_complete_requires_in_progress(db_session, approved_service_request, it_head, president):
    jo = _service_job_order(db_session, approved_service_request, it_head)
    job_orders.approve(db_session, jo.id, president)
    with pytest.raises(InvalidState):
        job_orders.complete(db_session, jo.id, FulfillmentComplete(), it_head)


def test_acceptance_only_once_and_after_completion(db_session, approved_service_request, it_head, president):
    jo = _service_job_order(db_session, approved_service_request, it_head)
    job_orders.approve(db_session, jo.id, president)
    job_orders.start(db_session, jo.id, it_head)
    with pytest.raises(InvalidState):
        job_orders.accept(db_session, jo.id, AcceptanceRecord(), it_head)

    job_orders.complete(db_session, jo.id, FulfillmentComplete(), it_head)
    jo = job_orders.accept(db_session, jo.id, AcceptanceRecord(service_accepted_by="Facilities desk"), it_head)
    assert jo.service_accepted_by == "Facilities desk"
    with pytest.raises(InvalidState):
        job_orders.accept(db_session, jo.id, AcceptanceRecord(), it_head)


def test_requester_cannot_accept(db_session, approved_service_request, it_head, president, requester):
    jo = _service_job_order(db_session, approved_service_request, it_head)
    job_orders.approve(db_session, jo.id, president)
    job_orders.start(db_session, jo.id, requester)
    job_orders.complete(db_session, jo.id, FulfillmentComplete(), requester)
    with pytest.raises(Unauthorized):
        job_orders.accept(db_session, jo.id, AcceptanceRecord(), requester)


def test_admin_close_is_idempotent(db_session, approved_service_request, it_head, president, admin):
    jo = _service_job_order(db_session, approved_service_request, it_head)
    job_orders.approve(db_session, jo.id, president)
    job_orders.start(db_session, jo.id, it_head)

    with pytest.raises(Unauthorized):
        job_orders.close(db_session, jo.id, president)

    jo = job_orders.close(db_session, jo.id, admin)
    assert jo.status == JobOrderStatus.closed
    version = jo.version
    jo = job_orders.close(db_session, jo.id, admin)
    assert jo.version == version


# ── Canvass and budget ──────────────────────────────────────────


def test_canvass_prices_materials_and_returns_to_draft(directory, canvassed_requisition, dispatcher):
    jo = canvassed_requisition
    assert jo.status == JobOrderStatus.draft
    costs = {m.item: m.estimated_cost for m in jo.materials}
    assert costs == {"Network switch": Decimal("2500.00"), "Patch cable": Decimal("45.00")}
    assert jo.estimated_total_cost == Decimal("2545.00")
    assert (ApprovalRole.purchasing, ApprovalAction.canvass_completed) in _entries(jo)
    calls = dispatcher.of_type("job_order_needs_approval")
    assert calls[-1]["target_user_ids"] == [directory["finance"]]


def test_canvass_requires_every_material_priced(db_session, requisition, purchasing_approver):
    first = requisition.materials[0]
    payload = CanvassSubmit(lines=[CanvassLine(material_id=first.id, unit_price="10.00")])
    with pytest.raises(ValidationFailed):
        job_orders.submit_canvass(db_session, requisition.id, payload, purchasing_approver)
    db_session.expire_all()
    assert job_orders.get(db_session, requisition.id).status == JobOrderStatus.pending_canvass


def test_canvass_by_non_purchasing_is_denied(db_session, requisition, finance_approver):
    with pytest.raises(Unauthorized):
        job_orders.submit_canvass(db_session, requisition.id, CanvassSubmit(), finance_approver)


def test_budget_cannot_be_approved_before_canvass(db_session, requisition, finance_approver):
    with pytest.raises(PrerequisiteNotMet):
        job_orders.approve_budget(db_session, requisition.id, BudgetApprove(), finance_approver)


def test_president_budget_approval_requires_finance_first(db_session, canvassed_requisition, president):
    with pytest.raises(PrerequisiteNotMet):
        job_orders.approve_budget(db_session, canvassed_requisition.id, BudgetApprove(), president)


def test_dual_budget_approval_clears_requisition(budget_cleared_requisition):
    jo = budget_cleared_requisition
    assert jo.status == JobOrderStatus.budget_cleared
    assert jo.budget_source == "Capex"
    entries = _entries(jo)
    assert (ApprovalRole.finance, ApprovalAction.budget_approved) in entries
    assert (ApprovalRole.management, ApprovalAction.budget_approved) in entries


def test_finance_cannot_approve_budget_twice(db_session, canvassed_requisition, finance_approver):
    job_orders.approve_budget(db_session, canvassed_requisition.id, BudgetApprove(), finance_approver)
    with pytest.raises(DuplicateApproval):
        job_orders.approve_budget(db_session, canvassed_requisition.id, BudgetApprove(), finance_approver)


def test_president_budget_rejection_blocks_both_approvals(
    db_session, canvassed_requisition, finance_approver, president
):
    jo_id = canvassed_requisition.id
    jo = job_orders.reject_budget(db_session, jo_id, BudgetReject(comments="insufficient funds"), president)
    assert jo.status == JobOrderStatus.rejected
    [entry] = [e for e in jo.approvals if e.action == ApprovalAction.budget_rejected]
    assert entry.role == ApprovalRole.management
    assert entry.comments == "insufficient funds"

    with pytest.raises(InvalidState):
        job_orders.approve_budget(db_session, jo_id, BudgetApprove(), finance_approver)
    with pytest.raises(InvalidState):
        job_orders.approve_budget(db_session, jo_id, BudgetApprove(), president)


def test_budget_rejection_requires_comments_and_is_terminal(
    db_session, canvassed_requisition, finance_approver, president
):
    jo_id = canvassed_requisition.id
    with pytest.raises(ValidationFailed):
        job_orders.reject_budget(db_session, jo_id, BudgetReject(), finance_approver)

    jo = job_orders.reject_budget(db_session, jo_id, BudgetReject(comments="Over budget"), finance_approver)
    assert jo.status == JobOrderStatus.rejected
    assert (ApprovalRole.finance, ApprovalAction.budget_rejected) in _entries(jo)

    with pytest.raises(InvalidState):
        job_orders.approve_budget(db_session, jo_id, BudgetApprove(), president)
    with pytest.raises(InvalidState):
        job_orders.approve(db_session, jo_id, president)


def test_management_can_reject_budget_after_finance_approval(
    db_session, canvassed_requisition, finance_approver, president
):
    job_orders.approve_budget(db_session, canvassed_requisition.id, BudgetApprove(), finance_approver)
    jo = job_orders.reject_budget(
        db_session, canvassed_requisition.id, BudgetReject(comments="Defer to next quarter"), president
    )
    assert jo.status == JobOrderStatus.rejected
    assert (ApprovalRole.management, ApprovalAction.budget_rejected) in _entries(jo)


def test_requisition_approval_requires_cleared_budget(db_session, canvassed_requisition, finance_approver, president):
    job_orders.approve_budget(db_session, canvassed_requisition.id, BudgetApprove(), finance_approver)
    with pytest.raises(PrerequisiteNotMet):
        job_orders.approve(db_session, canvassed_requisition.id, president)


def test_management_rejection_requires_comments(db_session, approved_service_request, it_head, president):
    jo = _service_job_order(db_session, approved_service_request, it_head)
    with pytest.raises(ValidationFailed):
        job_orders.reject(db_session, jo.id, president)
    jo = job_orders.reject(db_session, jo.id, president, ApprovalDecision(comments="Duplicate of JO-7"))
    assert jo.status == JobOrderStatus.rejected
    with pytest.raises(InvalidState):
        job_orders.start(db_session, jo.id, it_head)


def test_job_order_approve_twice_is_invalid(db_session, approved_service_request, it_head, president):
    jo = _service_job_order(db_session, approved_service_request, it_head)
    job_orders.approve(db_session, jo.id, president)
    with pytest.raises(InvalidState):
        job_orders.approve(db_session, jo.id, president)


def test_approved_requisition_cannot_start_without_purchase_order(db_session, approved_requisition, it_head):
    with pytest.raises(PrerequisiteNotMet):
        job_orders.start(db_session, approved_requisition.id, it_head)


def test_list_filters_by_type(db_session, requisition, make_service_request, it_head):
    sr = service_requests.approve(db_session, make_service_request().id, it_head)
    _service_job_order(db_session, sr, it_head)

    requisitions = job_orders.list(db_session, type="material_requisition")
    assert [jo.id for jo in requisitions] == [requisition.id]
    assert len(job_orders.list(db_session, department="IT")) == 2
