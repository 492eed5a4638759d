from celery import Celery

from procureflow.config import settings

celery_app = Celery(
    "procureflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["procureflow.tasks.notifications"],
)
celery_app.conf.update(
    task_always_eager=settings.celery_task_always_eager,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
)
