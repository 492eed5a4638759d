from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from procureflow.api.deps import get_actor, get_db
from procureflow.logic.authorization_logic import Actor
from procureflow.schemas.approval import ApprovalDecision
from procureflow.schemas.common import ListResponse
from procureflow.schemas.job_order import (
    AcceptanceRecord,
    BudgetApprove,
    BudgetReject,
    CanvassSubmit,
    FulfillmentComplete,
    JobOrderCreate,
    JobOrderRead,
    JobOrderUpdate,
    MaterialTransferRead,
    TransferComplete,
    TransferUpdate,
)
from procureflow.schemas.purchase_order import PurchaseOrderRead
from procureflow.services.job_orders import job_orders
from procureflow.services.purchase_orders import purchase_orders
from procureflow.services.response import list_response

router = APIRouter(prefix="/job-orders", tags=["job-orders"])


@router.post("", response_model=JobOrderRead, status_code=status.HTTP_201_CREATED)
def create_job_order(payload: JobOrderCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return job_orders.create(db, payload, actor)


@router.get("", response_model=ListResponse[JobOrderRead])
def list_job_orders(
    status_filter: str | None = Query(default=None, alias="status"),
    type: str | None = None,
    department: str | None = None,
    service_request_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = job_orders.list(
        db,
        status=status_filter,
        type=type,
        department=department,
        service_request_id=service_request_id,
        order_by=order_by,
        order_dir=order_dir,
        limit=limit,
        offset=offset,
    )
    return list_response(items, limit, offset)


@router.get("/{jo_id}", response_model=JobOrderRead)
def get_job_order(jo_id: str, db: Session = Depends(get_db)):
    return job_orders.get(db, jo_id)


@router.patch("/{jo_id}", response_model=JobOrderRead)
def update_job_order(
    jo_id: str,
    payload: JobOrderUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.update(db, jo_id, payload, actor)


@router.get("/{jo_id}/purchase-order", response_model=PurchaseOrderRead)
def get_job_order_purchase_order(jo_id: str, db: Session = Depends(get_db)):
    return purchase_orders.get_for_job_order(db, jo_id)


# ── Canvass and budget ──────────────────────────────────────────


@router.post("/{jo_id}/canvass", response_model=JobOrderRead)
def submit_job_order_canvass(
    jo_id: str,
    payload: CanvassSubmit,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.submit_canvass(db, jo_id, payload, actor)


@router.post("/{jo_id}/budget/approve", response_model=JobOrderRead)
def approve_job_order_budget(
    jo_id: str,
    payload: BudgetApprove | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.approve_budget(db, jo_id, payload or BudgetApprove(), actor)


@router.post("/{jo_id}/budget/reject", response_model=JobOrderRead)
def reject_job_order_budget(
    jo_id: str,
    payload: BudgetReject | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.reject_budget(db, jo_id, payload or BudgetReject(), actor)


# ── Status transitions ──────────────────────────────────────────


@router.post("/{jo_id}/approve", response_model=JobOrderRead)
def approve_job_order(
    jo_id: str,
    payload: ApprovalDecision | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.approve(db, jo_id, actor, payload)


@router.post("/{jo_id}/reject", response_model=JobOrderRead)
def reject_job_order(
    jo_id: str,
    payload: ApprovalDecision | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.reject(db, jo_id, actor, payload)


@router.post("/{jo_id}/start", response_model=JobOrderRead)
def start_job_order(jo_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return job_orders.start(db, jo_id, actor)


@router.post("/{jo_id}/complete", response_model=JobOrderRead)
def complete_job_order(
    jo_id: str,
    payload: FulfillmentComplete | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.complete(db, jo_id, payload or FulfillmentComplete(), actor)


@router.post("/{jo_id}/accept", response_model=JobOrderRead)
def accept_job_order(
    jo_id: str,
    payload: AcceptanceRecord | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.accept(db, jo_id, payload or AcceptanceRecord(), actor)


@router.post("/{jo_id}/close", response_model=JobOrderRead)
def close_job_order(jo_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return job_orders.close(db, jo_id, actor)


# ── Material transfer ───────────────────────────────────────────


@router.get("/{jo_id}/transfer", response_model=MaterialTransferRead)
def get_material_transfer(jo_id: str, db: Session = Depends(get_db)):
    return job_orders.get(db, jo_id)


@router.patch("/{jo_id}/transfer", response_model=MaterialTransferRead)
def update_material_transfer(
    jo_id: str,
    payload: TransferUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.update_transfer(db, jo_id, payload, actor)


@router.post("/{jo_id}/transfer/complete", response_model=MaterialTransferRead)
def complete_material_transfer(
    jo_id: str,
    payload: TransferComplete | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return job_orders.complete_transfer(db, jo_id, payload or TransferComplete(), actor)
