"""
Audit models package.
"""
from app.features.audits.models.audit_task import AuditTask, ResultStatus, TaskStatus

__all__ = ["AuditTask", "ResultStatus", "TaskStatus"]
