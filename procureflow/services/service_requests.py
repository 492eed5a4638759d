import logging

from sqlalchemy.orm import Session, selectinload

from procureflow.errors import DuplicateApproval, InvalidState, commit_or_conflict
from procureflow.logic.authorization_logic import Actor, EntityFacts
from procureflow.models.approval import ApprovalAction, ApprovalRole
from procureflow.models.job_order import JobOrder
from procureflow.models.service_request import (
    Priority,
    ServiceCategory,
    ServiceRequest,
    ServiceRequestApproval,
    ServiceRequestStatus,
)
from procureflow.schemas.approval import ApprovalDecision
from procureflow.schemas.service_request import ServiceRequestCreate, ServiceRequestUpdate
from procureflow.services import notifications
from procureflow.services.common import apply_ordering, apply_pagination, get_or_404, utcnow, validate_enum
from procureflow.services.numbering import generate_number
from procureflow.services.response import ListResponseMixin
from procureflow.services.workflow import (
    authorize,
    has_entry,
    log_transition,
    record_approval,
    require_comments,
    service_request_facts,
    traced,
)

logger = logging.getLogger(__name__)


class ServiceRequests(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ServiceRequestCreate, actor: Actor) -> ServiceRequest:
        authorize(actor, EntityFacts(kind="service_request", department=payload.department), "create")
        data = payload.model_dump(exclude={"submit"})
        sr = ServiceRequest(
            number=generate_number(db, "service_request_number"),
            requester_id=actor.id,
            requester_name=actor.name,
            status=ServiceRequestStatus.draft,
            **data,
        )
        if payload.submit:
            sr.status = ServiceRequestStatus.submitted
            sr.submitted_at = utcnow()
        db.add(sr)
        commit_or_conflict(db)
        db.refresh(sr)
        logger.info("Service request %s created as %s by %s", sr.number, sr.status.value, actor.id)
        if sr.status == ServiceRequestStatus.submitted:
            notifications.notify_service_request_submitted(db, sr)
        return sr

    @staticmethod
    def get(db: Session, sr_id: str) -> ServiceRequest:
        return get_or_404(
            db,
            ServiceRequest,
            sr_id,
            detail="Service request not found",
            options=[selectinload(ServiceRequest.approvals)],
        )

    @staticmethod
    def list(
        db: Session,
        status: str | None = None,
        department: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        requester_id: str | None = None,
        without_job_order: bool = False,
        order_by: str = "created_at",
        order_dir: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(ServiceRequest)
        if status:
            query = query.filter(ServiceRequest.status == validate_enum(status, ServiceRequestStatus, "status"))
        if department:
            query = query.filter(ServiceRequest.department == department)
        if category:
            query = query.filter(ServiceRequest.category == validate_enum(category, ServiceCategory, "category"))
        if priority:
            query = query.filter(ServiceRequest.priority == validate_enum(priority, Priority, "priority"))
        if requester_id:
            query = query.filter(ServiceRequest.requester_id == requester_id)
        if without_job_order:
            query = query.outerjoin(JobOrder, JobOrder.service_request_id == ServiceRequest.id).filter(
                JobOrder.id.is_(None)
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": ServiceRequest.created_at,
                "number": ServiceRequest.number,
                "priority": ServiceRequest.priority,
                "status": ServiceRequest.status,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_awaiting_job_order(db: Session, limit: int = 50, offset: int = 0):
        """Approved requests that have not been converted into a job order."""
        return ServiceRequests.list(
            db,
            status=ServiceRequestStatus.approved.value,
            without_job_order=True,
            limit=limit,
            offset=offset,
        )

    @staticmethod
    def update(db: Session, sr_id: str, payload: ServiceRequestUpdate, actor: Actor) -> ServiceRequest:
        sr = ServiceRequests.get(db, sr_id)
        authorize(actor, service_request_facts(sr), "update")
        if sr.status != ServiceRequestStatus.draft:
            raise InvalidState(f"Cannot edit a service request in {sr.status.value} status")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(sr, key, value)
        commit_or_conflict(db)
        db.refresh(sr)
        return sr

    # ── Status transitions ──────────────────────────────────────────

    @staticmethod
    def submit(db: Session, sr_id: str, actor: Actor) -> ServiceRequest:
        sr = ServiceRequests.get(db, sr_id)
        with traced("service_request", "submit", sr.id, actor):
            authorize(actor, service_request_facts(sr), "submit")
            if sr.status != ServiceRequestStatus.draft:
                raise InvalidState("Only draft service requests can be submitted")
            previous = sr.status
            sr.status = ServiceRequestStatus.submitted
            sr.submitted_at = utcnow()
            commit_or_conflict(db)
            db.refresh(sr)
            log_transition("Service request", sr.number, previous, sr.status, actor)
        notifications.notify_service_request_submitted(db, sr)
        return sr

    @staticmethod
    def approve(db: Session, sr_id: str, actor: Actor, payload: ApprovalDecision | None = None) -> ServiceRequest:
        sr = ServiceRequests.get(db, sr_id)
        with traced("service_request", "approve", sr.id, actor):
            decision = authorize(actor, service_request_facts(sr), "approve")
            if sr.status != ServiceRequestStatus.submitted:
                raise InvalidState(f"Cannot approve a service request in {sr.status.value} status")
            if has_entry(sr.approvals, action=ApprovalAction.approved):
                raise DuplicateApproval("This service request has already been approved")
            previous = sr.status
            record_approval(
                sr,
                ServiceRequestApproval,
                ApprovalRole(decision.approval_role),
                ApprovalAction.approved,
                actor,
                comments=payload.comments if payload else None,
            )
            sr.status = ServiceRequestStatus.approved
            sr.approved_at = utcnow()
            commit_or_conflict(db)
            db.refresh(sr)
            log_transition("Service request", sr.number, previous, sr.status, actor)
        notifications.notify_service_request_decided(db, sr, approved=True)
        return sr

    @staticmethod
    def reject(db: Session, sr_id: str, actor: Actor, payload: ApprovalDecision | None = None) -> ServiceRequest:
        sr = ServiceRequests.get(db, sr_id)
        with traced("service_request", "reject", sr.id, actor):
            decision = authorize(actor, service_request_facts(sr), "reject")
            if sr.status != ServiceRequestStatus.submitted:
                raise InvalidState(f"Cannot reject a service request in {sr.status.value} status")
            comments = require_comments(payload.comments if payload else None, "reject a service request")
            previous = sr.status
            record_approval(
                sr,
                ServiceRequestApproval,
                ApprovalRole(decision.approval_role),
                ApprovalAction.rejected,
                actor,
                comments=comments,
            )
            sr.status = ServiceRequestStatus.rejected
            sr.rejected_at = utcnow()
            commit_or_conflict(db)
            db.refresh(sr)
            log_transition("Service request", sr.number, previous, sr.status, actor)
        notifications.notify_service_request_decided(db, sr, approved=False)
        return sr


service_requests = ServiceRequests()
