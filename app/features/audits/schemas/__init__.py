from app.features.audits.schemas.task import (
    DEFAULT_TEST_CONFIGS,
    AuditConfig,
    AuditMetrics,
    AuditOutcome,
    CreateTaskRequest,
    PartialResult,
    Task,
)

__all__ = [
    "DEFAULT_TEST_CONFIGS",
    "AuditConfig",
    "AuditMetrics",
    "AuditOutcome",
    "CreateTaskRequest",
    "PartialResult",
    "Task",
]
