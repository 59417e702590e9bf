"""JSON-safe normalization helpers.

Converts arbitrary Python values (dataclasses, enums, datetimes, exceptions,
self-referential containers) into plain JSON-compatible structures. Used by
error serialization and telemetry flushing, neither of which may raise while
formatting a payload.
"""

import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Final, Optional, Set

CIRCULAR_MARKER: Final[str] = "[Circular]"
MAX_DEPTH_MARKER: Final[str] = "[Max Depth]"
TRUNCATION_MARKER: Final[str] = "...[truncated]"


def to_json_safe(value: Any, *, max_depth: int = 10) -> Any:
    """Recursively convert ``value`` into JSON-compatible data.

    Containers already on the current path are replaced with
    ``CIRCULAR_MARKER``; nesting beyond ``max_depth`` is replaced with
    ``MAX_DEPTH_MARKER``. Unknown objects fall back to ``str()``.

    Example:
        >>> payload = {"name": "site"}
        >>> payload["self"] = payload
        >>> to_json_safe(payload)
        {'name': 'site', 'self': '[Circular]'}
    """
    return _normalize(value, max_depth, set())


def _normalize(value: Any, depth: int, ancestors: Set[int]) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if depth <= 0:
        return MAX_DEPTH_MARKER

    marker = id(value)
    if marker in ancestors:
        return CIRCULAR_MARKER

    serialize = getattr(value, "serialize", None)
    if isinstance(value, BaseException) and callable(serialize):
        return _normalize(serialize(), depth - 1, ancestors | {marker})
    if isinstance(value, BaseException):
        return {"name": type(value).__name__, "message": str(value)}

    if is_dataclass(value) and not isinstance(value, type):
        try:
            value = asdict(value)
        except (TypeError, RecursionError):
            return str(value)

    ancestors = ancestors | {marker}
    if isinstance(value, dict):
        return {str(key): _normalize(item, depth - 1, ancestors) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize(item, depth - 1, ancestors) for item in value]

    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


def safe_json_dumps(value: Any, *, max_depth: int = 10, indent: Optional[int] = None) -> str:
    """Serialize ``value`` to a JSON string without raising.

    Self-referential structures are broken with ``CIRCULAR_MARKER``.
    """
    normalized = to_json_safe(value, max_depth=max_depth)
    try:
        return json.dumps(normalized, indent=indent, default=str)
    except (TypeError, ValueError):
        return json.dumps(str(normalized))


def truncate_text(text: str, max_length: int, marker: str = TRUNCATION_MARKER) -> str:
    """Cap ``text`` at ``max_length`` characters, ending with ``marker`` when cut."""
    if max_length <= 0:
        return ""
    if len(text) <= max_length:
        return text
    if max_length <= len(marker):
        return text[:max_length]
    return text[: max_length - len(marker)] + marker
