import logging
from typing import Optional

logger = logging.getLogger(__name__)


class AuditJobQueue:
    """Producer side of the audit job queue: one ``{task_id}`` job per task."""

    def __init__(self, queue_name: str):
        self.queue_name = queue_name

    @classmethod
    def from_settings(cls, settings) -> "AuditJobQueue":
        return cls(queue_name=settings.AUDIT_QUEUE_NAME)

    def enqueue(self, task_id: str) -> Optional[str]:
        # imported here: the worker module builds services from this package
        from app.features.audits.workers.tasks import run_audit

        async_result = run_audit.apply_async(args=[task_id], queue=self.queue_name)
        logger.info(f"[{task_id}] Added to queue {self.queue_name} (job {async_result.id})")
        return async_result.id
