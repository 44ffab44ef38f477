from __future__ import annotations

import math
from typing import Final, Literal, NotRequired, TypedDict

from zupf_builds.json_utils import (
    JSONObject,
    JSONTypeError,
    dump_json_str,
    load_json_bytes,
    load_json_str,
    narrow_json_to_dict,
    optional_float,
    optional_str,
    require_str,
)

BuildStatus = Literal["pending", "running", "completed", "failed"]

_STATUS_VALUES: Final[tuple[BuildStatus, ...]] = ("pending", "running", "completed", "failed")
_TERMINAL_STATUSES: Final[frozenset[BuildStatus]] = frozenset({"completed", "failed"})


class BuildStatusUpdate(TypedDict):
    """Status update pushed by the server for one build."""

    build_id: str
    status: BuildStatus
    progress: NotRequired[float]
    message: NotRequired[str]
    started_at: NotRequired[str]
    completed_at: NotRequired[str]


def make_build_status(
    *,
    build_id: str,
    status: BuildStatus,
    progress: float | None = None,
    message: str | None = None,
    started_at: str | None = None,
    completed_at: str | None = None,
) -> BuildStatusUpdate:
    """Create a status update, omitting optional fields that are None."""
    update: BuildStatusUpdate = {"build_id": build_id, "status": status}
    if progress is not None:
        update["progress"] = progress
    if message is not None:
        update["message"] = message
    if started_at is not None:
        update["started_at"] = started_at
    if completed_at is not None:
        update["completed_at"] = completed_at
    return update


def encode_build_status(update: BuildStatusUpdate) -> str:
    """Serialize a status update to a compact JSON string."""
    return dump_json_str(update)


def _parse_status(raw: str) -> BuildStatus:
    for value in _STATUS_VALUES:
        if raw == value:
            return value
    raise JSONTypeError(f"Invalid build status '{raw}'")


def _parse_progress(decoded: JSONObject) -> float | None:
    progress = optional_float(decoded, "progress")
    if progress is None:
        return None
    if not math.isfinite(progress) or progress < 0.0 or progress > 100.0:
        raise JSONTypeError(f"Field 'progress' must be within 0-100, got {progress}")
    return progress


def _decode_object(decoded: JSONObject) -> BuildStatusUpdate:
    build_id = require_str(decoded, "build_id")
    if build_id == "":
        raise JSONTypeError("Field 'build_id' must not be empty")
    status = _parse_status(require_str(decoded, "status"))
    return make_build_status(
        build_id=build_id,
        status=status,
        progress=_parse_progress(decoded),
        message=optional_str(decoded, "message"),
        started_at=optional_str(decoded, "started_at"),
        completed_at=optional_str(decoded, "completed_at"),
    )


def decode_build_status(payload: str | bytes) -> BuildStatusUpdate:
    """Parse and validate a serialized status update.

    Binary payloads are decoded as UTF-8 first. Unknown keys are ignored and
    optional fields set to null are treated as absent.

    Raises:
        InvalidJsonError: if the payload is not JSON.
        JSONTypeError: if the payload is not a well-formed status update.
    """
    raw = load_json_bytes(payload) if isinstance(payload, bytes) else load_json_str(payload)
    return _decode_object(narrow_json_to_dict(raw))


def is_terminal(update: BuildStatusUpdate) -> bool:
    """Check if the update reports a finished build (completed or failed)."""
    return update["status"] in _TERMINAL_STATUSES


def is_completed(update: BuildStatusUpdate) -> bool:
    return update["status"] == "completed"


def is_failed(update: BuildStatusUpdate) -> bool:
    return update["status"] == "failed"


__all__ = [
    "BuildStatus",
    "BuildStatusUpdate",
    "decode_build_status",
    "encode_build_status",
    "is_completed",
    "is_failed",
    "is_terminal",
    "make_build_status",
]
