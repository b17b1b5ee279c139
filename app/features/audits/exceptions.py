"""Errors raised by the audit task pipeline."""


class AuditServiceError(Exception):
    """Base class for audit pipeline errors."""


class TaskValidationError(AuditServiceError):
    """Malformed URL or configuration list, rejected before anything is written."""


class TaskNotFoundError(AuditServiceError):
    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found.")
        self.task_id = task_id


class BrowserSessionError(AuditServiceError):
    """The shared browser could not be launched or stopped responding."""


class AuditEngineError(AuditServiceError):
    """One audit failed (engine exit status, timeout or unreadable output)."""


class ArtifactStoreError(AuditServiceError):
    """Upload, signing or deletion against the artifact store failed."""
