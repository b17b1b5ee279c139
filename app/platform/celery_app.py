from celery import Celery
from kombu import Queue

from app.platform.config import settings

RUN_AUDIT_TASK = "app.features.audits.workers.tasks.run_audit"


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - default: anything not explicitly routed
    - <AUDIT_QUEUE_NAME>: one job per audit task, payload ``task_id``

    Delivery is at-least-once: jobs are acknowledged only after the worker
    returns, and a job whose worker dies is handed back to the broker.
    """
    celery_app = Celery(
        "lighthouse_audit",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=settings.CELERY_TASK_TRACK_STARTED,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,

        result_expires=3600,

        task_routes={
            RUN_AUDIT_TASK: {"queue": settings.AUDIT_QUEUE_NAME},
        },

        task_queues=(
            Queue("default"),
            Queue(settings.AUDIT_QUEUE_NAME),
        ),

        task_default_queue="default",

        # one browser-driving job per worker process at a time
        worker_prefetch_multiplier=1,

        task_acks_late=True,
        task_reject_on_worker_lost=True,
    )

    celery_app.autodiscover_tasks(["app.features.audits.workers"])

    return celery_app


# Global Celery app instance
celery_app = create_celery_app()
