"""
Celery application: broker and result backend from settings.
Unlock counter increments are enqueued here so the unlock flow never waits on the database.
"""
from celery import Celery

from lockflow.core.config import settings

celery_app = Celery(
    "lockflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "lockflow.workers.tasks.unlock_counter",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=60,
    result_expires=3600,
    task_ignore_result=True,
)

celery_app.conf.task_routes = {
    "lockflow.workers.tasks.unlock_counter.increment_unlock_count": {"queue": "counters"},
}
