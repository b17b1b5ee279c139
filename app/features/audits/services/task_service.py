import logging
import uuid
from typing import List, Optional, Sequence

from app.features.audits.exceptions import ArtifactStoreError, TaskValidationError
from app.features.audits.models.audit_task import TaskStatus
from app.features.audits.schemas.report_details import iter_screenshot_frames
from app.features.audits.schemas.task import (
    DEFAULT_TEST_CONFIGS,
    AuditConfig,
    CreateTaskRequest,
    Task,
    find_duplicate_configs,
)
from app.features.audits.services.report.screenshots import (
    Err,
    FrameResult,
    Ok,
    apply_rehydration,
    collect_object_keys,
    frame_object_key,
)
from app.platform.utils.url_validator import validate_absolute_url

logger = logging.getLogger(__name__)


class TaskService:
    """
    Entry point for the request layer: create, read (with signed screenshot
    links), list and delete audit tasks.
    """

    def __init__(
        self,
        repository,
        artifact_store,
        job_queue,
        default_configs: Sequence[AuditConfig] = DEFAULT_TEST_CONFIGS,
        recent_limit: int = 100,
    ):
        self.repository = repository
        self.artifact_store = artifact_store
        self.job_queue = job_queue
        self.default_configs = list(default_configs)
        self.recent_limit = recent_limit

    def create_task(self, request: CreateTaskRequest) -> Task:
        is_valid, url, error_message = validate_absolute_url(request.url)
        if not is_valid:
            raise TaskValidationError(f"Invalid URL provided: {error_message}")

        planned_configs = list(request.configs) if request.configs else list(self.default_configs)
        duplicates = find_duplicate_configs(planned_configs)
        if duplicates:
            raise TaskValidationError(f"Duplicate configuration: {duplicates[0]}")

        task_id = str(uuid.uuid4())
        task = self.repository.create_task(url, task_id, planned_configs)
        logger.info(f"[{task_id}] Created task for {url} with {len(planned_configs)} config(s)")

        try:
            self.job_queue.enqueue(task_id)
        except Exception:
            logger.exception(f"[{task_id}] Failed to enqueue task")
            self.repository.update_task_status(task_id, TaskStatus.error)
            raise

        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        task = self.repository.get_task_by_id(task_id)
        if task is None:
            return None
        return self.rehydrate(task)

    def rehydrate(self, task: Task) -> Task:
        """
        Copy of ``task`` with every screenshot ``objectKey`` swapped for a
        signed ``url``. The stored document is never written back.
        """
        payload = task.model_dump(mode="json", by_alias=True)

        for result in payload["results"]:
            for audit_id, frame in iter_screenshot_frames(result.get("report")):
                object_key = frame_object_key(frame)
                if object_key is None:
                    continue
                apply_rehydration(frame, self._sign(task.task_id, audit_id, object_key))

        return Task.model_validate(payload)

    def _sign(self, task_id: str, audit_id: str, object_key: str) -> FrameResult:
        try:
            return Ok(self.artifact_store.sign(object_key))
        except ArtifactStoreError as e:
            logger.error(f"[{task_id}] Error generating signed URL for {audit_id} item {object_key}: {e}")
            return Err(f"Failed to generate signed URL: {e}")

    def list_recent_tasks(self, limit: Optional[int] = None) -> List[Task]:
        # list views skip rehydration: one signing call per frame is too costly here
        return self.repository.get_recent_tasks(limit or self.recent_limit)

    def delete_task(self, task_id: str) -> bool:
        task = self.repository.get_task_by_id(task_id)
        if task is None:
            return False

        object_keys = collect_object_keys(result.report for result in task.results)
        if object_keys:
            try:
                summary = self.artifact_store.delete_many(object_keys)
            except ArtifactStoreError as e:
                logger.error(f"[{task_id}] Artifact cleanup failed, {len(object_keys)} object(s) left behind: {e}")
            else:
                logger.info(
                    f"[{task_id}] Deleted {summary.deleted}/{summary.requested} artifact(s) "
                    f"in {summary.batches} batch(es), {summary.failed_batches} batch(es) failed"
                )
                if summary.failed_keys:
                    logger.warning(
                        f"[{task_id}] {len(summary.failed_keys)} artifact(s) left behind: "
                        f"{', '.join(summary.failed_keys)}"
                    )

        deleted = self.repository.delete_task(task_id)
        if deleted:
            logger.info(f"[{task_id}] Task deleted")
        else:
            logger.warning(f"[{task_id}] Task document was already gone at delete time")
        return deleted
