"""Parsing helpers for configuration values.

Provides boolean parsing and lenient numeric parsing shared by the
settings dataclasses and the environment loader.
"""

import logging
from typing import Any, Callable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _try_parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


def _parse_number(raw: Any, convert: Callable[[Any], T], default: T, *, source: str) -> T:
    """Convert ``raw`` with ``convert``, logging a warning and returning ``default`` on failure."""
    try:
        return convert(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid value for %s: %r (keeping %r)", source, raw, default)
        return default


def _parse_str_list(value: Any) -> List[str]:
    """Accept a TOML list or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]
