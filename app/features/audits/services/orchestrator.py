import logging
from typing import Callable, Optional, Sequence

from app.features.audits.exceptions import BrowserSessionError, TaskNotFoundError
from app.features.audits.models.audit_task import (
    TERMINAL_RESULT_STATUSES,
    TERMINAL_TASK_STATUSES,
    ResultStatus,
    TaskStatus,
)
from app.features.audits.schemas.task import DEFAULT_TEST_CONFIGS, AuditConfig, AuditOutcome, Task
from app.features.audits.services.report.screenshots import collect_object_keys

logger = logging.getLogger(__name__)


class TaskOrchestrator:
    """
    Drives one task run: every planned configuration, strictly one after the
    other, on a single browser session.

    A failing configuration is recorded on its own result and the loop moves
    on. Anything that breaks the run as a whole (browser launch, a dead
    browser, the document store) marks the task and its unfinished results
    as ``error`` and is re-raised for the job queue to retry.
    """

    def __init__(self, repository, runner, processor, browser_factory: Callable):
        self.repository = repository
        self.runner = runner
        self.processor = processor
        self.browser_factory = browser_factory

    def process(self, task_id: str, *, retrying: bool = False) -> TaskStatus:
        task = self.repository.get_task_by_id(task_id)
        if task is None:
            logger.error(f"[{task_id}] Task not found in document store")
            raise TaskNotFoundError(task_id)

        if self._already_processed(task, retrying):
            logger.warning(
                f"[{task_id}] Task is already {task.status.value}, skipping duplicate delivery"
            )
            return task.status

        configs = list(task.planned_configs) or list(DEFAULT_TEST_CONFIGS)
        if task.results:
            self._log_discarded_attempt(task)

        logger.info(f"[{task_id}] Starting {len(configs)} audit(s) for {task.url}")
        self.repository.initialize_partial_results(task_id, configs)
        self.repository.update_task_status(task_id, TaskStatus.running)

        try:
            with self.browser_factory() as session:
                for config in configs:
                    self._run_config(session, task, config)
            return self._finalize(task_id, configs)
        except Exception as e:
            logger.exception(f"[{task_id}] Fatal error running audits: {e}")
            self._fail_unfinished(task_id, e)
            raise

    @staticmethod
    def _already_processed(task: Task, retrying: bool) -> bool:
        if task.status not in TERMINAL_TASK_STATUSES:
            return False
        # a queue retry re-runs a task its own failed attempt left in ``error``
        return not (retrying and task.status == TaskStatus.error)

    def _log_discarded_attempt(self, task: Task) -> None:
        finished = sum(1 for result in task.results if result.status in TERMINAL_RESULT_STATUSES)
        orphaned = collect_object_keys(result.report for result in task.results)
        logger.warning(
            f"[{task.task_id}] Re-running all configs; discarding {finished} finished result(s) "
            f"and leaving {len(orphaned)} artifact(s) from the previous attempt unreferenced"
        )

    def _run_config(self, session, task: Task, config: AuditConfig) -> None:
        task_id = task.task_id
        logger.info(f"[{task_id}] Running audit with config {config}")
        self.repository.update_partial_result_status(task_id, config, ResultStatus.running)

        try:
            run = self.runner.run(session, task.url, config)
            if run.failed:
                outcome = AuditOutcome.failure(run.error_message)
            else:
                outcome = self.processor.process(run.report, task_id, config)
        except BrowserSessionError:
            raise
        except Exception as e:
            logger.exception(f"[{task_id}] Error during single audit ({config}): {e}")
            outcome = AuditOutcome.failure(str(e) or "Audit failed")

        if outcome.failed:
            self.repository.update_partial_result_status(
                task_id, config, ResultStatus.error, {"error_message": outcome.error_message}
            )
            logger.warning(f"[{task_id}] Audit failed for {config}: {outcome.error_message}")
        else:
            self.repository.update_partial_result_status(
                task_id, config, ResultStatus.completed, outcome.result_fields()
            )
            logger.info(f"[{task_id}] Audit completed for {config}. Score: {outcome.score}")

    def _finalize(self, task_id: str, configs: Sequence[AuditConfig]) -> TaskStatus:
        task = self.repository.get_task_by_id(task_id)
        all_terminal = (
            task is not None
            and len(task.results) == len(configs)
            and all(result.status in TERMINAL_RESULT_STATUSES for result in task.results)
        )

        if all_terminal:
            status = TaskStatus.completed
            logger.info(f"[{task_id}] Task completed")
        else:
            status = TaskStatus.error
            logger.warning(f"[{task_id}] Finished processing configs, but not all results reached a final status")

        self.repository.update_task_status(task_id, status)
        return status

    def _fail_unfinished(self, task_id: str, error: Exception) -> None:
        message = f"Task failed: {str(error) or type(error).__name__}"
        try:
            self.repository.update_task_status(task_id, TaskStatus.error)
            task: Optional[Task] = self.repository.get_task_by_id(task_id)
            if task is None:
                return
            for result in task.results:
                if result.status in (ResultStatus.pending, ResultStatus.running):
                    self.repository.update_partial_result_status(
                        task_id, result.config, ResultStatus.error, {"error_message": message}
                    )
        except Exception as db_error:
            # the original failure is what gets re-raised to the queue
            logger.error(f"[{task_id}] Failed to record fatal error on task: {db_error}")
