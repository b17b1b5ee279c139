"""
Screenshot frame bookkeeping shared by the three places that touch artifacts:
offload (worker), rehydration (read path) and collection (delete path).

A frame is a dict inside a report's screenshot-bearing audit. Over its life it
holds exactly one of:

- ``data``       inline ``data:image/...;base64,...`` payload (raw report only)
- ``objectKey``  artifact store reference (what gets persisted)
- ``url``        signed link (read responses only, never persisted)

plus an optional ``errorMessage`` annotation when an artifact call failed.
"""
import base64
import binascii
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from app.features.audits.schemas.report_details import iter_screenshot_frames

INLINE_DATA_FIELD = "data"
OBJECT_KEY_FIELD = "objectKey"
URL_FIELD = "url"
ERROR_FIELD = "errorMessage"

INLINE_IMAGE_PREFIX = "data:image/"


@dataclass(frozen=True)
class Ok:
    value: str


@dataclass(frozen=True)
class Err:
    annotation: str


FrameResult = Union[Ok, Err]


def inline_payload(frame: Dict[str, Any]) -> Optional[str]:
    payload = frame.get(INLINE_DATA_FIELD)
    if isinstance(payload, str) and payload.startswith(INLINE_IMAGE_PREFIX):
        return payload
    return None


def decode_inline_image(payload: str) -> Tuple[bytes, str]:
    """Split a ``data:`` URL into (bytes, mime type). Raises ValueError on malformed input."""
    header, sep, encoded = payload.partition(",")
    if not sep:
        raise ValueError("data URL has no payload")

    mime_type = header[len("data:"):].split(";", 1)[0] or "image/png"
    try:
        body = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 payload: {e}") from e

    if not body:
        raise ValueError("empty image payload")
    return body, mime_type


def apply_offload(frame: Dict[str, Any], result: FrameResult) -> None:
    # the inline payload never survives into a persisted report, even on failure
    frame.pop(INLINE_DATA_FIELD, None)
    if isinstance(result, Ok):
        frame[OBJECT_KEY_FIELD] = result.value
        frame.pop(ERROR_FIELD, None)
    else:
        frame[ERROR_FIELD] = result.annotation


def apply_rehydration(frame: Dict[str, Any], result: FrameResult) -> None:
    if isinstance(result, Ok):
        frame.pop(OBJECT_KEY_FIELD, None)
        frame[URL_FIELD] = result.value
    else:
        frame[ERROR_FIELD] = result.annotation


def frame_object_key(frame: Dict[str, Any]) -> Optional[str]:
    key = frame.get(OBJECT_KEY_FIELD)
    return key if isinstance(key, str) and key else None


def collect_object_keys(reports: Iterable[Optional[Dict[str, Any]]]) -> List[str]:
    """Every distinct object key referenced by ``reports``, in traversal order."""
    keys: List[str] = []
    seen = set()
    for report in reports:
        for _audit_id, frame in iter_screenshot_frames(report):
            key = frame_object_key(frame)
            if key and key not in seen:
                seen.add(key)
                keys.append(key)
    return keys
