import logging

from procureflow.celery_app import celery_app
from procureflow.db import SessionLocal
from procureflow.services.notifications import notifications

logger = logging.getLogger(__name__)


@celery_app.task(name="procureflow.tasks.notifications.deliver_workflow_notification")
def deliver_workflow_notification(payload: dict) -> int:
    session = SessionLocal()
    try:
        created = notifications.persist(session, **payload)
        session.commit()
        logger.debug("Stored %s notification(s) of type %s", created, payload.get("type"))
        return created
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
