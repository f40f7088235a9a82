# campus_orders/celery_worker.py
from celery import Celery

from campus_orders.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    RECEIPT_SWEEP_INTERVAL_SECONDS,
)

celery_app = Celery(
    "campus_orders",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks have to be imported explicitly so the worker registers them
celery_app.conf.imports = (
    "campus_orders.tasks.expire",
    "campus_orders.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "decline-expired-receipts": {
        "task": "campus_orders.tasks.expire.decline_expired_receipts_task",
        "schedule": float(RECEIPT_SWEEP_INTERVAL_SECONDS),
    },
}

celery_app.conf.update(
    timezone="UTC",
    enable_utc=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_always_eager=CELERY_TASK_ALWAYS_EAGER,
    broker_connection_timeout=2,
    task_time_limit=5 * 60,
)
