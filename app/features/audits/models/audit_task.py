import enum

from sqlalchemy import JSON, Column, Enum, Index, String, Text

from app.platform.db.base import BaseModel


class TaskStatus(str, enum.Enum):
    """Task state machine: queued -> running -> completed | error"""
    queued = "queued"
    running = "running"
    completed = "completed"
    error = "error"


class ResultStatus(str, enum.Enum):
    """Per-configuration progress within a task run"""
    pending = "pending"
    running = "running"
    completed = "completed"
    error = "error"


TERMINAL_TASK_STATUSES = frozenset({TaskStatus.completed, TaskStatus.error})
TERMINAL_RESULT_STATUSES = frozenset({ResultStatus.completed, ResultStatus.error})


class AuditTask(BaseModel):
    """
    One audit request against a URL.

    ``planned_configs`` and ``results`` are stored as JSON documents in their
    API (camelCase) form; ``results`` is rewritten as a whole on every targeted
    update of a single entry.
    """
    __tablename__ = "audit_tasks"

    # Caller-facing identity (created_at / updated_at inherited from BaseModel)
    task_id = Column(String(64), nullable=False, unique=True, index=True)
    url = Column(Text, nullable=False)

    status = Column(Enum(TaskStatus), default=TaskStatus.queued, nullable=False, index=True)

    planned_configs = Column(JSON, nullable=False, default=list)
    results = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("idx_audit_tasks_url", "url", postgresql_using="hash"),
    )
