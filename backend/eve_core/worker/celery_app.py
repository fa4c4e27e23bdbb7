# eve_core/worker/celery_app.py
from celery import Celery

from eve_core.core.config import settings

celery_app = Celery(
    "eve_tasks",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "eve_core.worker.tasks_backfill",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_retry_delay=30,
    task_routes={
        "backfill.*": {"queue": "backfill"},
    },
)
