from typing import Any, Dict

from celery.signals import task_failure, task_retry, task_success

from app.platform.celery_app import RUN_AUDIT_TASK, celery_app
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    name=RUN_AUDIT_TASK,
    max_retries=max(settings.AUDIT_JOB_MAX_ATTEMPTS - 1, 0),
    autoretry_for=(Exception,),
    retry_backoff=settings.AUDIT_JOB_BACKOFF_SECONDS,
    retry_jitter=False,
    acks_late=True,
)
def run_audit(self, task_id: str) -> Dict[str, Any]:
    """
    Run every planned configuration of one audit task.

    Args:
        task_id: The audit task to process

    Returns:
        Dict with the task id and the status the run ended in
    """
    from app.features.audits.dependencies.services import build_orchestrator

    attempt = self.request.retries + 1
    logger.info(f"[{task_id}] Audit job started (attempt {attempt})")

    status = build_orchestrator().process(task_id, retrying=self.request.retries > 0)

    logger.info(f"[{task_id}] Audit job finished with status {status.value}")
    return {"task_id": task_id, "status": status.value}


def _is_audit_job(sender) -> bool:
    return getattr(sender, "name", None) == RUN_AUDIT_TASK


@task_success.connect
def log_audit_success(sender=None, result=None, **kwargs):
    if _is_audit_job(sender):
        logger.info(f"Audit job succeeded: {result}")


@task_retry.connect
def log_audit_retry(sender=None, request=None, reason=None, **kwargs):
    if _is_audit_job(sender):
        task_args = getattr(request, "args", None) or []
        task_id = task_args[0] if task_args else "?"
        logger.warning(f"[{task_id}] Audit job scheduled for retry: {reason}")


@task_failure.connect
def log_audit_failure(sender=None, task_id=None, exception=None, args=None, **kwargs):
    if _is_audit_job(sender):
        audit_task_id = args[0] if args else "?"
        logger.error(f"[{audit_task_id}] Audit job {task_id} failed permanently: {exception}")
