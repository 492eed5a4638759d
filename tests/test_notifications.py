import uuid
from dataclasses import replace

import pytest
from fastapi import HTTPException

from procureflow.config import settings
from procureflow.container import container
from procureflow.models.service_request import ServiceRequestStatus
from procureflow.services.notifications import notifications
from procureflow.services.service_requests import service_requests
from procureflow.tasks.notifications import deliver_workflow_notification


class ExplodingDispatcher:
    def notify(self, *args, **kwargs):
        raise RuntimeError("broker unavailable")


def _store(db_session, recipient_id, entity_id=None, notification_type="service_request_submitted"):
    notifications.persist(
        db_session,
        [recipient_id],
        notification_type,
        "New service request",
        "SR awaiting approval",
        link="/service-requests/1",
        related_entity_type="service_request",
        related_entity_id=entity_id or str(uuid.uuid4()),
    )
    db_session.commit()


def test_failed_delivery_does_not_block_transition(db_session, make_service_request, it_head, directory):
    sr = make_service_request()
    with container.notification_dispatcher.override(ExplodingDispatcher()):
        sr = service_requests.approve(db_session, sr.id, it_head)
    assert sr.status == ServiceRequestStatus.approved


def test_disabled_notifications_are_not_dispatched(
    db_session, make_service_request, it_head, dispatcher, monkeypatch
):
    monkeypatch.setattr(
        "procureflow.services.notifications.settings", replace(settings, notifications_enabled=False)
    )
    sr = make_service_request()
    service_requests.approve(db_session, sr.id, it_head)
    assert dispatcher.calls == []


def test_inbox_listing_and_unread_count(db_session):
    _store(db_session, "user-a")
    _store(db_session, "user-a")
    _store(db_session, "user-b")

    assert notifications.unread_count(db_session, "user-a") == 2
    items = notifications.list(db_session, "user-a")
    assert len(items) == 2
    assert {item.recipient_id for item in items} == {"user-a"}

    notifications.mark_read(db_session, items[0].id, "user-a")
    assert notifications.unread_count(db_session, "user-a") == 1
    assert len(notifications.list(db_session, "user-a", unread_only=True)) == 1


def test_mark_read_hides_other_recipients(db_session):
    _store(db_session, "user-b")
    other = notifications.list(db_session, "user-b")[0]
    with pytest.raises(HTTPException) as exc_info:
        notifications.mark_read(db_session, other.id, "user-a")
    assert exc_info.value.status_code == 404


def test_mark_read_is_idempotent(db_session):
    _store(db_session, "user-a")
    item = notifications.list(db_session, "user-a")[0]
    first = notifications.mark_read(db_session, item.id, "user-a")
    read_at = first.read_at
    second = notifications.mark_read(db_session, item.id, "user-a")
    assert second.is_read
    assert second.read_at == read_at


def test_mark_all_and_by_entity(db_session):
    entity_id = str(uuid.uuid4())
    _store(db_session, "user-a", entity_id=entity_id)
    _store(db_session, "user-a", entity_id=entity_id, notification_type="service_request_approved")
    _store(db_session, "user-a")
    _store(db_session, "user-b", entity_id=entity_id)

    assert notifications.mark_read_by_entity(db_session, "user-a", "service_request", entity_id) == 2
    assert notifications.unread_count(db_session, "user-a") == 1
    assert notifications.unread_count(db_session, "user-b") == 1

    assert notifications.mark_all_read(db_session, "user-a") == 1
    assert notifications.unread_count(db_session, "user-a") == 0


def test_celery_task_stores_notifications(db_session, monkeypatch):
    monkeypatch.setattr("procureflow.tasks.notifications.SessionLocal", lambda: db_session)
    created = deliver_workflow_notification(
        {
            "target_user_ids": ["user-a", "user-b"],
            "type": "job_order_created",
            "title": "Job order created",
            "message": "JO created",
            "link": None,
            "related_entity_type": "job_order",
            "related_entity_id": str(uuid.uuid4()),
        }
    )
    assert created == 2
    assert notifications.unread_count(db_session, "user-a") == 1
    assert notifications.unread_count(db_session, "user-b") == 1


def test_recipients_are_deduplicated(db_session, make_service_request, it_head, directory, dispatcher):
    sr = make_service_request()
    service_requests.approve(db_session, sr.id, it_head)
    approved = dispatcher.of_type("service_request_approved")
    assert approved
    for call in approved:
        assert len(call["target_user_ids"]) == len(set(call["target_user_ids"]))
