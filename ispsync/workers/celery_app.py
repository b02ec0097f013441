from celery import Celery

from ispsync.core.config import get_settings
from ispsync.core.logging import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

celery_app = Celery(
    "isp_reconciler",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "ispsync.workers.tasks.reconciliation",
    ],
)

celery_app.conf.update(
    task_default_queue="q_reconcile",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # One slot per registered job type.
    worker_concurrency=max(1, settings.celery_worker_concurrency),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.business_timezone,
    enable_utc=True,
)


@celery_app.task(name="ispsync.workers.celery_app.ping")
def ping() -> str:
    return "pong"
