from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from procureflow.api.deps import get_actor, get_db
from procureflow.logic.authorization_logic import Actor
from procureflow.schemas.approval import ApprovalDecision
from procureflow.schemas.common import ListResponse
from procureflow.schemas.service_request import ServiceRequestCreate, ServiceRequestRead, ServiceRequestUpdate
from procureflow.services.response import list_response
from procureflow.services.service_requests import service_requests

router = APIRouter(prefix="/service-requests", tags=["service-requests"])


@router.post("", response_model=ServiceRequestRead, status_code=status.HTTP_201_CREATED)
def create_service_request(
    payload: ServiceRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service_requests.create(db, payload, actor)


@router.get("", response_model=ListResponse[ServiceRequestRead])
def list_service_requests(
    status_filter: str | None = Query(default=None, alias="status"),
    department: str | None = None,
    category: str | None = None,
    priority: str | None = None,
    requester_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = service_requests.list(
        db,
        status=status_filter,
        department=department,
        category=category,
        priority=priority,
        requester_id=requester_id,
        order_by=order_by,
        order_dir=order_dir,
        limit=limit,
        offset=offset,
    )
    return list_response(items, limit, offset)


@router.get("/approved", response_model=ListResponse[ServiceRequestRead])
def list_service_requests_awaiting_job_order(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = service_requests.list_awaiting_job_order(db, limit=limit, offset=offset)
    return list_response(items, limit, offset)


@router.get("/{sr_id}", response_model=ServiceRequestRead)
def get_service_request(sr_id: str, db: Session = Depends(get_db)):
    return service_requests.get(db, sr_id)


@router.patch("/{sr_id}", response_model=ServiceRequestRead)
def update_service_request(
    sr_id: str,
    payload: ServiceRequestUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service_requests.update(db, sr_id, payload, actor)


# ── Status transitions ──────────────────────────────────────────


@router.post("/{sr_id}/submit", response_model=ServiceRequestRead)
def submit_service_request(sr_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return service_requests.submit(db, sr_id, actor)


@router.post("/{sr_id}/approve", response_model=ServiceRequestRead)
def approve_service_request(
    sr_id: str,
    payload: ApprovalDecision | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service_requests.approve(db, sr_id, actor, payload)


@router.post("/{sr_id}/reject", response_model=ServiceRequestRead)
def reject_service_request(
    sr_id: str,
    payload: ApprovalDecision | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return service_requests.reject(db, sr_id, actor, payload)
