"""Workflow notifications.

Transitions call the ``notify_*`` helpers after their commit. Recipient
lookup and delivery are fire-and-forget: any failure is logged and
swallowed so it can never undo or block the transition that triggered it.
"""

import logging
from collections.abc import Iterable
from typing import Protocol

from fastapi import HTTPException
from sqlalchemy.orm import Session

from procureflow.config import settings
from procureflow.logic.authorization_logic import (
    DEPT_FINANCE,
    DEPT_PRESIDENT,
    DEPT_PURCHASING,
    handling_departments,
    normalize_department,
)
from procureflow.models.notification import Notification, NotificationType, RelatedEntityType
from procureflow.models.person import Person, PersonRole
from procureflow.services.common import apply_ordering, apply_pagination, get_or_404, utcnow, validate_enum
from procureflow.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_HEAD_ROLES = (PersonRole.approver, PersonRole.admin, PersonRole.super_admin)
_ADMIN_ROLES = (PersonRole.admin, PersonRole.super_admin)


class NotificationDispatcher(Protocol):
    def notify(
        self,
        target_user_ids: list[str],
        type: str,
        title: str,
        message: str,
        link: str | None,
        related_entity_type: str | None,
        related_entity_id: str | None,
    ) -> None: ...


class CeleryNotificationDispatcher:
    """Hands notifications to the Celery worker, which stores them."""

    def notify(
        self,
        target_user_ids: list[str],
        type: str,
        title: str,
        message: str,
        link: str | None,
        related_entity_type: str | None,
        related_entity_id: str | None,
    ) -> None:
        from procureflow.tasks.notifications import deliver_workflow_notification

        deliver_workflow_notification.delay(
            {
                "target_user_ids": list(target_user_ids),
                "type": type,
                "title": title,
                "message": message,
                "link": link,
                "related_entity_type": related_entity_type,
                "related_entity_id": related_entity_id,
            }
        )


# ── Recipient resolution ────────────────────────────────────────


def _people(db: Session, roles: Iterable[PersonRole] | None = None) -> list[Person]:
    query = db.query(Person).filter(Person.is_active.is_(True))
    if roles is not None:
        query = query.filter(Person.role.in_(list(roles)))
    return query.all()


def department_heads(db: Session, *departments: str) -> list[str]:
    wanted = {normalize_department(d) for d in departments if d}
    return [str(p.id) for p in _people(db, _HEAD_ROLES) if normalize_department(p.department) in wanted]


def management(db: Session) -> list[str]:
    return [
        str(p.id)
        for p in _people(db)
        if p.role in _ADMIN_ROLES or normalize_department(p.department) == DEPT_PRESIDENT
    ]


def finance(db: Session) -> list[str]:
    return [
        str(p.id)
        for p in _people(db)
        if p.role == PersonRole.finance
        or (p.role == PersonRole.approver and normalize_department(p.department) == DEPT_FINANCE)
    ]


def purchasing(db: Session) -> list[str]:
    return department_heads(db, DEPT_PURCHASING)


def _link(path: str) -> str:
    return f"{settings.app_base_url.rstrip('/')}{path}"


def dispatch(
    target_user_ids: Iterable[str],
    notification_type: NotificationType,
    title: str,
    message: str,
    related_entity_type: RelatedEntityType,
    related_entity_id,
    link: str | None = None,
) -> None:
    from procureflow.container import container

    if not settings.notifications_enabled:
        return
    targets = sorted({str(t) for t in target_user_ids if t})
    if not targets:
        return
    try:
        container.notification_dispatcher().notify(
            targets,
            notification_type.value,
            title,
            message,
            link,
            related_entity_type.value,
            str(related_entity_id),
        )
    except Exception:
        logger.warning(
            "Notification dispatch failed (type=%s, entity=%s)",
            notification_type.value,
            related_entity_id,
            exc_info=True,
        )


def _safely(event: str, func, *args) -> None:
    try:
        func(*args)
    except Exception:
        logger.warning("Notification %s skipped: recipient lookup failed", event, exc_info=True)


# ── Service requests ────────────────────────────────────────────


def _service_request_submitted(db: Session, sr) -> None:
    dispatch(
        department_heads(db, sr.department),
        NotificationType.service_request_submitted,
        "Service request awaiting approval",
        f"{sr.requester_name} submitted {sr.number} for {sr.department}.",
        RelatedEntityType.service_request,
        sr.id,
        _link(f"/service-requests/{sr.id}"),
    )


def _service_request_decided(db: Session, sr, approved: bool) -> None:
    verb = "approved" if approved else "rejected"
    dispatch(
        [sr.requester_id],
        NotificationType.service_request_approved if approved else NotificationType.service_request_rejected,
        f"Service request {verb}",
        f"Your service request {sr.number} was {verb}.",
        RelatedEntityType.service_request,
        sr.id,
        _link(f"/service-requests/{sr.id}"),
    )
    if approved:
        dispatch(
            department_heads(db, *handling_departments(sr.category)),
            NotificationType.service_request_approved,
            "Service request ready for a job order",
            f"{sr.number} was approved and can be converted into a job order.",
            RelatedEntityType.service_request,
            sr.id,
            _link(f"/service-requests/{sr.id}"),
        )


def notify_service_request_submitted(db: Session, sr) -> None:
    _safely("service_request_submitted", _service_request_submitted, db, sr)


def notify_service_request_decided(db: Session, sr, approved: bool) -> None:
    _safely("service_request_decided", _service_request_decided, db, sr, approved)


# ── Job orders ──────────────────────────────────────────────────


def _job_order_people(jo) -> list[str]:
    return [jo.requester_id, jo.created_by_id]


def _job_order_created(db: Session, jo) -> None:
    dispatch(
        management(db),
        NotificationType.job_order_created,
        "New job order",
        f"{jo.number} was created for {jo.department}.",
        RelatedEntityType.job_order,
        jo.id,
        _link(f"/job-orders/{jo.id}"),
    )


def _job_order_needs_approval(db: Session, jo, stage: str) -> None:
    recipients = finance(db) if stage == "finance" else management(db)
    dispatch(
        recipients,
        NotificationType.job_order_needs_approval,
        "Job order needs approval",
        f"{jo.number} is waiting for {stage} approval.",
        RelatedEntityType.job_order,
        jo.id,
        _link(f"/job-orders/{jo.id}"),
    )


def _job_order_budget_decided(db: Session, jo, approved: bool, role: str) -> None:
    if approved:
        dispatch(
            _job_order_people(jo),
            NotificationType.job_order_budget_approved,
            "Job order budget approved",
            f"The {role} budget approval for {jo.number} was recorded.",
            RelatedEntityType.job_order,
            jo.id,
            _link(f"/job-orders/{jo.id}"),
        )
        if role == "finance":
            _job_order_needs_approval(db, jo, "management")
        return
    dispatch(
        _job_order_people(jo),
        NotificationType.job_order_budget_rejected,
        "Job order budget rejected",
        f"The budget for {jo.number} was rejected by {role}.",
        RelatedEntityType.job_order,
        jo.id,
        _link(f"/job-orders/{jo.id}"),
    )


def _job_order_decided(db: Session, jo, approved: bool) -> None:
    verb = "approved" if approved else "rejected"
    dispatch(
        _job_order_people(jo) + department_heads(db, *handling_departments(jo.service_category)),
        NotificationType.job_order_approved if approved else NotificationType.job_order_rejected,
        f"Job order {verb}",
        f"{jo.number} was {verb}.",
        RelatedEntityType.job_order,
        jo.id,
        _link(f"/job-orders/{jo.id}"),
    )


def _job_order_status_changed(db: Session, jo, previous_status) -> None:
    previous = getattr(previous_status, "value", previous_status)
    dispatch(
        _job_order_people(jo) + department_heads(db, jo.department),
        NotificationType.job_order_status_changed,
        "Job order status changed",
        f"{jo.number} moved from {previous} to {jo.status.value}.",
        RelatedEntityType.job_order,
        jo.id,
        _link(f"/job-orders/{jo.id}"),
    )


def notify_job_order_created(db: Session, jo) -> None:
    _safely("job_order_created", _job_order_created, db, jo)


def notify_job_order_needs_approval(db: Session, jo, stage: str) -> None:
    _safely("job_order_needs_approval", _job_order_needs_approval, db, jo, stage)


def notify_job_order_budget_decided(db: Session, jo, approved: bool, role: str) -> None:
    _safely("job_order_budget_decided", _job_order_budget_decided, db, jo, approved, role)


def notify_job_order_decided(db: Session, jo, approved: bool) -> None:
    _safely("job_order_decided", _job_order_decided, db, jo, approved)


def notify_job_order_status_changed(db: Session, jo, previous_status) -> None:
    _safely("job_order_status_changed", _job_order_status_changed, db, jo, previous_status)


# ── Purchase orders and receiving ───────────────────────────────


def _purchase_order_event(db: Session, po, notification_type: NotificationType, title: str, message: str) -> None:
    if notification_type in (
        NotificationType.purchase_order_created,
        NotificationType.purchase_order_needs_approval,
    ):
        recipients = management(db)
    else:
        recipients = purchasing(db) + [po.created_by_id]
    dispatch(
        recipients,
        notification_type,
        title,
        message,
        RelatedEntityType.purchase_order,
        po.id,
        _link(f"/purchase-orders/{po.id}"),
    )


def notify_purchase_order(db: Session, po, notification_type: NotificationType, title: str, message: str) -> None:
    _safely(notification_type.value, _purchase_order_event, db, po, notification_type, title, message)


def _receiving_report_created(db: Session, report, jo) -> None:
    dispatch(
        _job_order_people(jo) + purchasing(db),
        NotificationType.receiving_report_created,
        "Goods received",
        f"{report.number} recorded delivery for {jo.number}.",
        RelatedEntityType.receiving_report,
        report.id,
        _link(f"/receiving-reports/{report.id}"),
    )


def notify_receiving_report_created(db: Session, report, jo) -> None:
    _safely("receiving_report_created", _receiving_report_created, db, report, jo)


def _receiving_report_status_changed(db: Session, report, previous_status) -> None:
    previous = getattr(previous_status, "value", previous_status)
    dispatch(
        purchasing(db) + [report.received_by_id],
        NotificationType.receiving_report_status_changed,
        "Receiving report status changed",
        f"{report.number} moved from {previous} to {report.status.value}.",
        RelatedEntityType.receiving_report,
        report.id,
        _link(f"/receiving-reports/{report.id}"),
    )


def notify_receiving_report_status_changed(db: Session, report, previous_status) -> None:
    _safely("receiving_report_status_changed", _receiving_report_status_changed, db, report, previous_status)


# ── Material transfer ───────────────────────────────────────────


def _transfer_event(db: Session, jo, completed: bool) -> None:
    if completed:
        notification_type = NotificationType.job_order_transfer_completed
        title = "Material transfer completed"
        message = f"All materials for {jo.number} were handed over; work can start."
    else:
        notification_type = NotificationType.job_order_transfer_updated
        title = "Material transfer updated"
        message = f"Material transfer progress was recorded for {jo.number}."
    dispatch(
        _job_order_people(jo) + department_heads(db, *handling_departments(jo.service_category)),
        notification_type,
        title,
        message,
        RelatedEntityType.job_order,
        jo.id,
        _link(f"/job-orders/{jo.id}/transfer"),
    )


def notify_transfer_updated(db: Session, jo) -> None:
    _safely("job_order_transfer_updated", _transfer_event, db, jo, False)


def notify_transfer_completed(db: Session, jo) -> None:
    _safely("job_order_transfer_completed", _transfer_event, db, jo, True)


# ── Inbox ───────────────────────────────────────────────────────


class Notifications(ListResponseMixin):
    @staticmethod
    def persist(
        db: Session,
        target_user_ids: list[str],
        type: str,
        title: str,
        message: str,
        link: str | None = None,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
    ) -> int:
        notification_type = validate_enum(type, NotificationType, "type")
        entity_type = validate_enum(related_entity_type, RelatedEntityType, "related_entity_type")
        for recipient_id in target_user_ids:
            db.add(
                Notification(
                    recipient_id=str(recipient_id),
                    type=notification_type,
                    title=title,
                    message=message,
                    link=link,
                    related_entity_type=entity_type,
                    related_entity_id=related_entity_id,
                )
            )
        db.flush()
        return len(target_user_ids)

    @staticmethod
    def list(
        db: Session,
        recipient_id: str,
        unread_only: bool = False,
        order_by: str = "created_at",
        order_dir: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(Notification).filter(Notification.recipient_id == recipient_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        query = apply_ordering(query, order_by, order_dir, {"created_at": Notification.created_at})
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def unread_count(db: Session, recipient_id: str) -> int:
        return (
            db.query(Notification)
            .filter(Notification.recipient_id == recipient_id)
            .filter(Notification.is_read.is_(False))
            .count()
        )

    @staticmethod
    def mark_read(db: Session, notification_id: str, recipient_id: str) -> Notification:
        notification = get_or_404(db, Notification, notification_id, detail="Notification not found")
        if notification.recipient_id != recipient_id:
            raise HTTPException(status_code=404, detail="Notification not found")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(db: Session, recipient_id: str) -> int:
        updated = (
            db.query(Notification)
            .filter(Notification.recipient_id == recipient_id)
            .filter(Notification.is_read.is_(False))
            .update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated

    @staticmethod
    def mark_read_by_entity(db: Session, recipient_id: str, related_entity_type, related_entity_id: str) -> int:
        entity_type = validate_enum(related_entity_type, RelatedEntityType, "related_entity_type")
        updated = (
            db.query(Notification)
            .filter(Notification.recipient_id == recipient_id)
            .filter(Notification.related_entity_type == entity_type)
            .filter(Notification.related_entity_id == str(related_entity_id))
            .filter(Notification.is_read.is_(False))
            .update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
        )
        db.commit()
        return updated


notifications = Notifications()
