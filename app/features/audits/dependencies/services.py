"""
Service providers for the audits feature.

Routes receive their collaborators through ``Depends`` and the worker builds
its orchestrator here, so tests can swap any of them without patching
module globals.
"""
from functools import lru_cache, partial

from fastapi import Depends

from app.features.audits.services.browser.browser_session import BrowserSession
from app.features.audits.services.job_queue import AuditJobQueue
from app.features.audits.services.lighthouse.audit_runner import AuditRunner
from app.features.audits.services.orchestrator import TaskOrchestrator
from app.features.audits.services.report.report_processor import ReportProcessor
from app.features.audits.services.repository.task_repository import TaskRepository
from app.features.audits.services.task_service import TaskService
from app.platform.config import settings
from app.platform.db.session import get_session_factory
from app.platform.storage.artifact_store import ArtifactStore


def get_task_repository() -> TaskRepository:
    return TaskRepository(get_session_factory())


@lru_cache
def get_artifact_store() -> ArtifactStore:
    # one store (and boto3 client) per process
    return ArtifactStore.from_settings(settings)


def get_job_queue() -> AuditJobQueue:
    return AuditJobQueue.from_settings(settings)


def get_task_service(
    repository: TaskRepository = Depends(get_task_repository),
    artifact_store: ArtifactStore = Depends(get_artifact_store),
    job_queue: AuditJobQueue = Depends(get_job_queue),
) -> TaskService:
    return TaskService(
        repository=repository,
        artifact_store=artifact_store,
        job_queue=job_queue,
        recent_limit=settings.RECENT_TASKS_LIMIT,
    )


def build_orchestrator() -> TaskOrchestrator:
    """Wire a fresh orchestrator for one worker job."""
    return TaskOrchestrator(
        repository=get_task_repository(),
        runner=AuditRunner.from_settings(settings),
        processor=ReportProcessor(get_artifact_store()),
        browser_factory=partial(BrowserSession.from_settings, settings),
    )
