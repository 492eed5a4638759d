from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from procureflow.api.deps import get_actor, get_db
from procureflow.logic.authorization_logic import Actor
from procureflow.schemas.common import ListResponse
from procureflow.schemas.notification import MarkReadByEntity, NotificationRead
from procureflow.services.notifications import notifications
from procureflow.services.response import list_response

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=ListResponse[NotificationRead])
def list_notifications(
    unread_only: bool = False,
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    items = notifications.list(
        db,
        actor.id,
        unread_only=unread_only,
        order_dir=order_dir,
        limit=limit,
        offset=offset,
    )
    return list_response(items, limit, offset)


@router.get("/unread-count")
def unread_notification_count(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return {"count": notifications.unread_count(db, actor.id)}


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return notifications.mark_read(db, notification_id, actor.id)


@router.post("/read-all")
def mark_all_notifications_read(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return {"updated": notifications.mark_all_read(db, actor.id)}


@router.post("/read-by-entity")
def mark_entity_notifications_read(
    payload: MarkReadByEntity,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    updated = notifications.mark_read_by_entity(
        db, actor.id, payload.related_entity_type, payload.related_entity_id
    )
    return {"updated": updated}
