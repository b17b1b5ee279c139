"""
Typed views over the ``details`` payload of a Lighthouse audit.

A raw report carries a handful of detail shapes told apart by their ``type``
field. Each view wraps the original dict without copying it, so code holding a
view can mutate the report in place. Anything unrecognized, or recognized but
malformed, becomes ``UnknownDetails`` and is left untouched.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Union

FILMSTRIP_AUDIT_ID = "screenshot-thumbnails"
THUMBNAIL_AUDIT_ID = "final-screenshot"

# Audits whose details may embed screenshots, in traversal order
SCREENSHOT_AUDIT_IDS = (FILMSTRIP_AUDIT_ID, THUMBNAIL_AUDIT_ID)


@dataclass
class TableDetails:
    raw: Dict[str, Any]


@dataclass
class ListDetails:
    raw: Dict[str, Any]


@dataclass
class CodeDetails:
    raw: Dict[str, Any]


@dataclass
class FilmstripDetails:
    """A sequence of frames: ``{"type": "filmstrip", "items": [{"data": ..., "timing": ...}]}``"""
    raw: Dict[str, Any]

    @property
    def items(self) -> List[Dict[str, Any]]:
        return [item for item in self.raw["items"] if isinstance(item, dict)]


@dataclass
class ThumbnailDetails:
    """A single frame: ``{"type": "screenshot"|"thumbnail", "data": ..., "width": ...}``"""
    raw: Dict[str, Any]


@dataclass
class UnknownDetails:
    raw: Any


AuditDetails = Union[
    TableDetails, ListDetails, CodeDetails, FilmstripDetails, ThumbnailDetails, UnknownDetails
]

_DETAIL_TYPES = {
    "table": TableDetails,
    "opportunity": TableDetails,
    "list": ListDetails,
    "code": CodeDetails,
    "filmstrip": FilmstripDetails,
    "thumbnail": ThumbnailDetails,
    "screenshot": ThumbnailDetails,
}


def classify_details(details: Any) -> AuditDetails:
    if not isinstance(details, dict):
        return UnknownDetails(details)

    details_cls = _DETAIL_TYPES.get(details.get("type"))
    if details_cls is None:
        return UnknownDetails(details)

    if details_cls is FilmstripDetails and not isinstance(details.get("items"), list):
        return UnknownDetails(details)

    return details_cls(details)


def get_audit_details(report: Optional[Dict[str, Any]], audit_id: str) -> AuditDetails:
    """Classify ``report["audits"][audit_id]["details"]``, tolerating missing levels."""
    audits = report.get("audits") if isinstance(report, dict) else None
    audit = audits.get(audit_id) if isinstance(audits, dict) else None
    details = audit.get("details") if isinstance(audit, dict) else None
    return classify_details(details)


def iter_screenshot_frames(report: Optional[Dict[str, Any]]) -> Iterator[tuple]:
    """
    Yield ``(audit_id, frame)`` for every dict in the report that can hold a
    screenshot: each filmstrip item and each single thumbnail.
    """
    for audit_id in SCREENSHOT_AUDIT_IDS:
        details = get_audit_details(report, audit_id)
        if isinstance(details, FilmstripDetails):
            for item in details.items:
                yield audit_id, item
        elif isinstance(details, ThumbnailDetails):
            yield audit_id, details.raw
