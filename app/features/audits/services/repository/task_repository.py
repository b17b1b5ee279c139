import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.attributes import flag_modified

from app.features.audits.models.audit_task import AuditTask, ResultStatus, TaskStatus
from app.features.audits.schemas.task import AuditConfig, PartialResult, Task

logger = logging.getLogger(__name__)

# fields a caller may merge into a partial result besides status/timestamp
MERGEABLE_RESULT_FIELDS = ("score", "metrics", "report", "error_message")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _to_task(row: AuditTask) -> Task:
    return Task(
        task_id=row.task_id,
        url=row.url,
        created_at=row.created_at,
        status=row.status,
        planned_configs=row.planned_configs or [],
        results=row.results or [],
    )


class TaskRepository:
    """
    Document-store access for audit tasks.

    Every method runs in its own short session. No transition checks happen
    here; the orchestrator is the only writer during a run.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db: Session = self.session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _locked_row(db: Session, task_id: str) -> Optional[AuditTask]:
        return db.execute(
            select(AuditTask).where(AuditTask.task_id == task_id).with_for_update()
        ).scalar_one_or_none()

    def create_task(self, url: str, task_id: str, planned_configs: Sequence[AuditConfig]) -> Task:
        with self._session() as db:
            row = AuditTask(
                task_id=task_id,
                url=url,
                created_at=_utcnow(),
                status=TaskStatus.queued,
                planned_configs=[_dump(config) for config in planned_configs],
                results=[],
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_task(row)

    def get_task_by_id(self, task_id: str) -> Optional[Task]:
        with self._session() as db:
            row = db.execute(
                select(AuditTask).where(AuditTask.task_id == task_id)
            ).scalar_one_or_none()
            return _to_task(row) if row else None

    def get_recent_tasks(self, limit: int = 100) -> List[Task]:
        with self._session() as db:
            rows = db.execute(
                select(AuditTask).order_by(AuditTask.created_at.desc()).limit(limit)
            ).scalars().all()
            return [_to_task(row) for row in rows]

    def update_task_status(self, task_id: str, status: TaskStatus) -> None:
        with self._session() as db:
            row = self._locked_row(db, task_id)
            if row is None:
                logger.warning(f"[{task_id}] Status update to {status.value} for unknown task")
                return
            row.status = status
            db.commit()

    def initialize_partial_results(self, task_id: str, configs: Sequence[AuditConfig]) -> None:
        """Reset ``results`` to one pending entry per config and pin ``planned_configs`` to the same list."""
        now = _utcnow()
        with self._session() as db:
            row = self._locked_row(db, task_id)
            if row is None:
                logger.warning(f"[{task_id}] Cannot initialize results for unknown task")
                return
            row.planned_configs = [_dump(config) for config in configs]
            row.results = [
                _dump(PartialResult(config=config, status=ResultStatus.pending, timestamp=now))
                for config in configs
            ]
            flag_modified(row, "planned_configs")
            flag_modified(row, "results")
            db.commit()

    def update_partial_result_status(
        self,
        task_id: str,
        config: AuditConfig,
        status: ResultStatus,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Set the status of the result whose config equals ``config`` and merge
        the non-null ``data`` fields into it. Returns False when nothing matched.
        """
        updates = {
            key: value
            for key, value in (data or {}).items()
            if key in MERGEABLE_RESULT_FIELDS and value is not None
        }

        with self._session() as db:
            row = self._locked_row(db, task_id)
            if row is None:
                logger.warning(f"[{task_id}] Result update for unknown task")
                return False

            results = list(row.results or [])
            for index, element in enumerate(results):
                current = PartialResult.model_validate(element)
                if current.config.key != config.key:
                    continue

                merged = current.model_dump()
                merged.update(updates)
                merged["status"] = status
                merged["timestamp"] = _utcnow()
                results[index] = _dump(PartialResult.model_validate(merged))

                row.results = results
                flag_modified(row, "results")
                db.commit()
                return True

            logger.warning(f"[{task_id}] No result entry for config {config}")
            return False

    def delete_task(self, task_id: str) -> bool:
        with self._session() as db:
            result = db.execute(delete(AuditTask).where(AuditTask.task_id == task_id))
            db.commit()
            return result.rowcount > 0
