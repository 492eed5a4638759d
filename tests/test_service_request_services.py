import pytest

from procureflow.errors import DuplicateApproval, InvalidState, Unauthorized, ValidationFailed
from procureflow.models.approval import ApprovalAction, ApprovalRole
from procureflow.models.service_request import ServiceCategory, ServiceRequestStatus
from procureflow.schemas.approval import ApprovalDecision
from procureflow.schemas.job_order import JobOrderCreate
from procureflow.schemas.service_request import ServiceRequestUpdate
from procureflow.services.job_orders import job_orders
from procureflow.services.service_requests import service_requests


def test_create_submits_by_default_and_numbers_request(make_service_request, requester):
    sr = make_service_request()
    assert sr.status == ServiceRequestStatus.submitted
    assert sr.submitted_at is not None
    assert sr.number.startswith("SR-")
    assert sr.requester_id == requester.id
    assert sr.version == 1


def test_create_as_draft_then_submit(db_session, make_service_request, requester):
    sr = make_service_request(submit=False)
    assert sr.status == ServiceRequestStatus.draft

    sr = service_requests.submit(db_session, sr.id, requester)
    assert sr.status == ServiceRequestStatus.submitted


def test_numbers_are_sequential(make_service_request):
    first = make_service_request()
    second = make_service_request()
    assert first.number != second.number
    assert int(second.number.rsplit("-", 1)[1]) == int(first.number.rsplit("-", 1)[1]) + 1


def test_only_drafts_can_be_edited(db_session, make_service_request, requester):
    draft = make_service_request(submit=False)
    updated = service_requests.update(db_session, draft.id, ServiceRequestUpdate(location="Lobby"), requester)
    assert updated.location == "Lobby"

    submitted = make_service_request()
    with pytest.raises(InvalidState):
        service_requests.update(db_session, submitted.id, ServiceRequestUpdate(location="Lobby"), requester)


def test_other_user_cannot_submit_someone_elses_request(db_session, make_service_request, operations):
    draft = make_service_request(submit=False)
    with pytest.raises(Unauthorized):
        service_requests.submit(db_session, draft.id, operations)


def test_department_head_approves(db_session, make_service_request, it_head, dispatcher):
    sr = make_service_request()
    sr = service_requests.approve(db_session, sr.id, it_head, ApprovalDecision(comments="Go ahead"))

    assert sr.status == ServiceRequestStatus.approved
    assert sr.approved_at is not None
    assert [(a.role, a.action) for a in sr.approvals] == [(ApprovalRole.department_head, ApprovalAction.approved)]
    assert sr.approvals[0].comments == "Go ahead"
    assert sr.version == 2
    assert dispatcher.of_type("service_request_approved")


def test_head_of_another_department_cannot_approve(db_session, make_service_request, maintenance_head):
    sr = make_service_request()
    with pytest.raises(Unauthorized):
        service_requests.approve(db_session, sr.id, maintenance_head)
    db_session.expire_all()
    assert service_requests.get(db_session, sr.id).status == ServiceRequestStatus.submitted


def test_approving_twice_is_rejected(db_session, approved_service_request, president):
    with pytest.raises(InvalidState):
        service_requests.approve(db_session, approved_service_request.id, president)


def test_duplicate_approval_entry_is_detected(db_session, make_service_request, it_head, president):
    sr = make_service_request()
    service_requests.approve(db_session, sr.id, it_head)
    sr = service_requests.get(db_session, sr.id)
    # Force the record back to submitted while the approval entry remains
    sr.status = ServiceRequestStatus.submitted
    db_session.commit()
    with pytest.raises(DuplicateApproval):
        service_requests.approve(db_session, sr.id, president)


def test_draft_cannot_be_approved(db_session, make_service_request, it_head):
    sr = make_service_request(submit=False)
    with pytest.raises(InvalidState):
        service_requests.approve(db_session, sr.id, it_head)


def test_reject_requires_comments(db_session, make_service_request, it_head):
    sr = make_service_request()
    with pytest.raises(ValidationFailed):
        service_requests.reject(db_session, sr.id, it_head, ApprovalDecision(comments="  "))

    sr = service_requests.reject(db_session, sr.id, it_head, ApprovalDecision(comments="Out of scope"))
    assert sr.status == ServiceRequestStatus.rejected
    assert sr.approvals[-1].action == ApprovalAction.rejected
    assert sr.approvals[-1].comments == "Out of scope"


def test_list_filters_by_status_and_category(db_session, make_service_request):
    make_service_request()
    make_service_request(category=ServiceCategory.facility_maintenance, department="Maintenance", submit=False)

    drafts = service_requests.list(db_session, status="draft")
    assert [sr.category for sr in drafts] == [ServiceCategory.facility_maintenance]

    with pytest.raises(ValidationFailed):
        service_requests.list(db_session, status="bogus")


def test_awaiting_job_order_excludes_converted_requests(db_session, make_service_request, it_head):
    first = service_requests.approve(db_session, make_service_request().id, it_head)
    second = service_requests.approve(db_session, make_service_request().id, it_head)
    job_orders.create(db_session, JobOrderCreate(service_request_id=first.id), it_head)

    awaiting = service_requests.list_awaiting_job_order(db_session)
    assert [sr.id for sr in awaiting] == [second.id]


def test_submission_notifies_department_heads(make_service_request, directory, dispatcher):
    make_service_request()
    calls = dispatcher.of_type("service_request_submitted")
    assert len(calls) == 1
    assert calls[0]["target_user_ids"] == [directory["it_head"]]
    assert calls[0]["related_entity_type"] == "service_request"
