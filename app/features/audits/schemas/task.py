"""
Audit Task Schemas

Documents exchanged between the repository, the worker and the API. All of
them serialize with camelCase keys (``taskId``, ``errorMessage``...).
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.features.audits.models.audit_task import ResultStatus, TaskStatus

DeviceType = Literal["mobile", "desktop"]
BrowserType = Literal["Chrome", "Firefox"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuditConfig(CamelModel):
    """(device, browser, location): the natural key of one result within a task."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    device: DeviceType
    browser: BrowserType
    location: str = Field(min_length=1)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.device, self.browser, self.location)

    def __str__(self) -> str:
        return f"{self.device}/{self.browser}/{self.location}"


DEFAULT_TEST_CONFIGS: List[AuditConfig] = [
    AuditConfig(device="mobile", browser="Chrome", location="us-east-1"),
    AuditConfig(device="desktop", browser="Chrome", location="us-east-1"),
    AuditConfig(device="mobile", browser="Chrome", location="eu-west-2"),
]


def find_duplicate_configs(configs: Iterable[AuditConfig]) -> List[AuditConfig]:
    seen = set()
    duplicates = []
    for config in configs:
        if config.key in seen:
            duplicates.append(config)
        seen.add(config.key)
    return duplicates


class AuditMetrics(CamelModel):
    """Opaque pass-through of the engine's numbers: ms, except layout shift (unitless)."""
    first_contentful_paint: Optional[float] = None
    largest_contentful_paint: Optional[float] = None
    cumulative_layout_shift: Optional[float] = None
    total_blocking_time: Optional[float] = None
    speed_index: Optional[float] = None
    interactive: Optional[float] = None


class PartialResult(CamelModel):
    config: AuditConfig
    status: ResultStatus = ResultStatus.pending
    score: Optional[int] = Field(default=None, ge=0, le=100)
    metrics: Optional[AuditMetrics] = None
    report: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    timestamp: datetime


class Task(CamelModel):
    task_id: str
    url: str
    created_at: datetime
    status: TaskStatus = TaskStatus.queued
    planned_configs: List[AuditConfig] = Field(default_factory=list)
    results: List[PartialResult] = Field(default_factory=list)


class AuditOutcome(BaseModel):
    """What one configuration's audit produced, success or structured failure."""
    score: Optional[int] = None
    metrics: Optional[AuditMetrics] = None
    report: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None

    @classmethod
    def failure(cls, message: str) -> "AuditOutcome":
        return cls(error_message=message or "Unknown error during audit")

    @property
    def failed(self) -> bool:
        return self.error_message is not None

    def result_fields(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "metrics": self.metrics,
            "report": self.report,
            "error_message": self.error_message,
        }


class CreateTaskRequest(BaseModel):
    """POST /tasks body. ``url`` is checked by the task service, not here."""
    url: str
    configs: Optional[List[AuditConfig]] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "url": "https://example.com",
                "configs": [
                    {"device": "mobile", "browser": "Chrome", "location": "us-east-1"},
                    {"device": "desktop", "browser": "Chrome", "location": "eu-west-2"},
                ],
            }
        }
    )

    @field_validator("configs")
    @classmethod
    def configs_must_be_unique(cls, configs: Optional[List[AuditConfig]]):
        if configs:
            duplicates = find_duplicate_configs(configs)
            if duplicates:
                raise ValueError(f"Duplicate configuration: {duplicates[0]}")
        return configs
