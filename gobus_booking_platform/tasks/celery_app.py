"""
Celery application for notification delivery.
"""

from celery import Celery
from ..config import get_settings

settings = get_settings()

NOTIFICATION_QUEUE = "notifications"

celery_app = Celery(
    "gobus_booking_platform",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "gobus_booking_platform.tasks.notification_tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_routes={
        "send_booking_confirmation_task": {"queue": NOTIFICATION_QUEUE},
    },
    # Enqueue happens off the request path; give up quickly when the broker is down
    task_publish_retry=True,
    task_publish_retry_policy={
        "max_retries": 3,
        "interval_start": 0,
        "interval_step": 0.5,
        "interval_max": 2,
    },
    task_acks_late=True,
    task_time_limit=2 * 60,
    task_soft_time_limit=90,
    result_expires=24 * 3600,
    worker_prefetch_multiplier=1,
)
