from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from procureflow.api.deps import get_actor, get_db
from procureflow.logic.authorization_logic import Actor
from procureflow.schemas.approval import ApprovalDecision
from procureflow.schemas.common import ListResponse
from procureflow.schemas.purchase_order import (
    PurchaseOrderCreate,
    PurchaseOrderItemCreate,
    PurchaseOrderItemUpdate,
    PurchaseOrderRead,
    PurchaseOrderReceive,
    PurchaseOrderUpdate,
)
from procureflow.services.purchase_orders import purchase_orders
from procureflow.services.response import list_response

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])


@router.post("", response_model=PurchaseOrderRead, status_code=status.HTTP_201_CREATED)
def create_purchase_order(
    payload: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.create(db, payload, actor)


@router.get("", response_model=ListResponse[PurchaseOrderRead])
def list_purchase_orders(
    status_filter: str | None = Query(default=None, alias="status"),
    job_order_id: str | None = None,
    department: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = purchase_orders.list(
        db,
        status=status_filter,
        job_order_id=job_order_id,
        department=department,
        order_by=order_by,
        order_dir=order_dir,
        limit=limit,
        offset=offset,
    )
    return list_response(items, limit, offset)


@router.get("/{po_id}", response_model=PurchaseOrderRead)
def get_purchase_order(po_id: str, db: Session = Depends(get_db)):
    return purchase_orders.get(db, po_id)


@router.patch("/{po_id}", response_model=PurchaseOrderRead)
def update_purchase_order(
    po_id: str,
    payload: PurchaseOrderUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.update(db, po_id, payload, actor)


# ── Items ───────────────────────────────────────────────────────


@router.post("/{po_id}/items", response_model=PurchaseOrderRead, status_code=status.HTTP_201_CREATED)
def add_purchase_order_item(
    po_id: str,
    payload: PurchaseOrderItemCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.add_item(db, po_id, payload, actor)


@router.patch("/{po_id}/items/{item_id}", response_model=PurchaseOrderRead)
def update_purchase_order_item(
    po_id: str,
    item_id: str,
    payload: PurchaseOrderItemUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.update_item(db, po_id, item_id, payload, actor)


@router.delete("/{po_id}/items/{item_id}", response_model=PurchaseOrderRead)
def remove_purchase_order_item(
    po_id: str,
    item_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.remove_item(db, po_id, item_id, actor)


# ── Status transitions ──────────────────────────────────────────


@router.post("/{po_id}/submit", response_model=PurchaseOrderRead)
def submit_purchase_order(po_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return purchase_orders.submit(db, po_id, actor)


@router.post("/{po_id}/review", response_model=PurchaseOrderRead)
def review_purchase_order(
    po_id: str,
    payload: ApprovalDecision | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.review(db, po_id, actor, payload)


@router.post("/{po_id}/approve", response_model=PurchaseOrderRead)
def approve_purchase_order(
    po_id: str,
    payload: ApprovalDecision | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.approve(db, po_id, actor, payload)


@router.post("/{po_id}/reject", response_model=PurchaseOrderRead)
def reject_purchase_order(
    po_id: str,
    payload: ApprovalDecision | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.reject(db, po_id, actor, payload)


@router.post("/{po_id}/purchase", response_model=PurchaseOrderRead)
def mark_purchase_order_purchased(po_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return purchase_orders.mark_purchased(db, po_id, actor)


@router.post("/{po_id}/receive", response_model=PurchaseOrderRead)
def mark_purchase_order_received(
    po_id: str,
    payload: PurchaseOrderReceive | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return purchase_orders.mark_received(db, po_id, payload or PurchaseOrderReceive(), actor)


@router.post("/{po_id}/close", response_model=PurchaseOrderRead)
def close_purchase_order(po_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return purchase_orders.close(db, po_id, actor)
