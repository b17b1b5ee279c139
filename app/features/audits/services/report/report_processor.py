import copy
import logging
import math
import re
import time
from typing import Any, Callable, Dict, Optional

from app.features.audits.exceptions import ArtifactStoreError
from app.features.audits.schemas.report_details import iter_screenshot_frames
from app.features.audits.schemas.task import AuditConfig, AuditMetrics, AuditOutcome
from app.features.audits.services.report.screenshots import (
    Err,
    FrameResult,
    Ok,
    apply_offload,
    decode_inline_image,
    inline_payload,
)

logger = logging.getLogger(__name__)

# metric field -> Lighthouse audit id carrying its numericValue
METRIC_AUDIT_IDS = {
    "first_contentful_paint": "first-contentful-paint",
    "largest_contentful_paint": "largest-contentful-paint",
    "cumulative_layout_shift": "cumulative-layout-shift",
    "total_blocking_time": "total-blocking-time",
    "speed_index": "speed-index",
    "interactive": "interactive",
}

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9]")


def sanitize_key_part(value: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", value)


def extract_metrics(report: Dict[str, Any]) -> AuditMetrics:
    audits = report.get("audits") or {}
    values = {}
    for field_name, audit_id in METRIC_AUDIT_IDS.items():
        audit = audits.get(audit_id)
        value = audit.get("numericValue") if isinstance(audit, dict) else None
        values[field_name] = value if isinstance(value, (int, float)) else None
    return AuditMetrics(**values)


def extract_score(report: Dict[str, Any]) -> Optional[int]:
    """Performance category score as an integer 0-100, halves rounded up."""
    performance = (report.get("categories") or {}).get("performance") or {}
    score = performance.get("score")
    if not isinstance(score, (int, float)):
        return None
    return int(math.floor(score * 100 + 0.5))


class ReportProcessor:
    """
    Turns a raw Lighthouse report into what gets persisted: score, metrics and
    a sanitized deep copy whose screenshots live in the artifact store.

    Upload failures are per frame: the frame gets an ``errorMessage`` and its
    inline payload is still dropped, the remaining frames are processed.
    """

    def __init__(self, artifact_store, clock: Callable[[], float] = time.time):
        self.artifact_store = artifact_store
        self._clock = clock
        self._last_timestamp = 0

    def process(self, raw_report: Dict[str, Any], task_id: str, config: AuditConfig) -> AuditOutcome:
        if not isinstance(raw_report, dict):
            raise ValueError("Lighthouse report must be a JSON object")

        metrics = extract_metrics(raw_report)
        score = extract_score(raw_report)

        sanitized = copy.deepcopy(raw_report)
        uploaded = failed = 0
        for audit_id, frame in iter_screenshot_frames(sanitized):
            payload = inline_payload(frame)
            if payload is None:
                continue
            result = self._offload(payload, task_id, config, audit_id)
            apply_offload(frame, result)
            if isinstance(result, Ok):
                uploaded += 1
            else:
                failed += 1

        if uploaded or failed:
            logger.info(
                f"[{task_id}] {config}: offloaded {uploaded} screenshot(s), {failed} failed"
            )

        return AuditOutcome(score=score, metrics=metrics, report=sanitized, error_message=None)

    def build_object_key(self, task_id: str, config: AuditConfig, audit_id: str) -> str:
        return (
            f"{task_id}/{sanitize_key_part(config.device)}_{sanitize_key_part(config.location)}"
            f"_{sanitize_key_part(audit_id)}_{self._next_timestamp()}.png"
        )

    def _next_timestamp(self) -> int:
        # strictly increasing ms so frames uploaded within one millisecond never share a key
        now = int(self._clock() * 1000)
        self._last_timestamp = max(now, self._last_timestamp + 1)
        return self._last_timestamp

    def _offload(self, payload: str, task_id: str, config: AuditConfig, audit_id: str) -> FrameResult:
        try:
            body, content_type = decode_inline_image(payload)
        except ValueError as e:
            logger.warning(f"[{task_id}] {config}: undecodable screenshot in {audit_id}: {e}")
            return Err(f"Failed to decode screenshot: {e}")

        object_key = self.build_object_key(task_id, config, audit_id)
        try:
            self.artifact_store.upload(object_key, body, content_type)
        except ArtifactStoreError as e:
            logger.error(f"[{task_id}] {config}: error uploading screenshot for {audit_id}: {e}")
            return Err(f"Failed to upload screenshot: {e}")

        return Ok(object_key)
