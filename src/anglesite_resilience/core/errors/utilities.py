"""Error construction, classification and inspection helpers.

``wrap`` is the single entry point that turns anything raised (or
rejected) into a ``StructuredError``. Wrapping an already structured error
only merges context, so repeated wrapping never nests errors.
"""

from __future__ import annotations

import asyncio
import errno as errno_codes
import json
import re
import socket
import traceback
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from anglesite_resilience.core.errors.base import (
    ErrorCategory,
    ErrorMetadata,
    ErrorSeverity,
    MetadataLike,
    StructuredError,
    coerce_metadata,
)
from anglesite_resilience.core.errors.schema import SerializedError, parse_serialized_error

E = TypeVar("E", bound=BaseException)

# Severity a builder-made error gets when none is given
CATEGORY_DEFAULT_SEVERITY: Dict[ErrorCategory, ErrorSeverity] = {
    ErrorCategory.SYSTEM: ErrorSeverity.HIGH,
    ErrorCategory.CONFIGURATION: ErrorSeverity.HIGH,
    ErrorCategory.SERVER: ErrorSeverity.HIGH,
    ErrorCategory.CERTIFICATE: ErrorSeverity.HIGH,
    ErrorCategory.ATOMIC_OPERATION: ErrorSeverity.HIGH,
    ErrorCategory.VALIDATION: ErrorSeverity.LOW,
}

# Metadata fields that context keys may fill in when wrapping
_METADATA_CONTEXT_KEYS = ("operation", "resource", "request_id", "user_id", "website_id")

NETWORK_ERROR_CODES = frozenset(
    {
        "ECONNREFUSED",
        "ECONNRESET",
        "ECONNABORTED",
        "ETIMEDOUT",
        "EHOSTUNREACH",
        "ENETUNREACH",
        "ENETDOWN",
        "EPIPE",
        "ENOTFOUND",
        "EAI_AGAIN",
    }
)

FILE_SYSTEM_ERROR_CODES = frozenset(
    {
        "ENOENT",
        "EACCES",
        "EPERM",
        "EEXIST",
        "ENOTDIR",
        "EISDIR",
        "ENOSPC",
        "ENOTEMPTY",
        "EMFILE",
        "EROFS",
        "EBUSY",
    }
)

_CODE_TOKEN_RE = re.compile(r"^\s*(E[A-Z_]{2,})\b")


def create_error(
    message: str,
    code: str,
    category: Union[ErrorCategory, str],
    severity: Union[ErrorSeverity, str, None] = None,
    metadata: MetadataLike = None,
    cause: Optional[BaseException] = None,
    *,
    name: Optional[str] = None,
) -> StructuredError:
    """Build a one-off structured error without declaring a subclass.

    Example:
        >>> error = create_error("Theme missing", "THEME_NOT_FOUND", ErrorCategory.BUSINESS_LOGIC)
        >>> error.severity
        <ErrorSeverity.MEDIUM: 'MEDIUM'>
    """
    category = ErrorCategory(category)
    if severity is None:
        severity = CATEGORY_DEFAULT_SEVERITY.get(category, ErrorSeverity.MEDIUM)
    return StructuredError(message, code, category, severity, metadata, cause, name=name)


def apply_context(error: StructuredError, context: Optional[Mapping[str, Any]]) -> StructuredError:
    """Return ``error`` enriched with ``context``.

    Keys naming a metadata field fill that field only when it is unset;
    everything else is merged into ``metadata.context``.
    """
    if not context:
        return error
    fields: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, value in context.items():
        if key in _METADATA_CONTEXT_KEYS:
            if getattr(error.metadata, key) is None and value is not None:
                fields[key] = value
        else:
            extra[key] = value
    if extra:
        fields["context"] = extra
    return error.with_metadata(**fields) if fields else error


def _format_stack(exc: BaseException) -> Optional[str]:
    if exc.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def _errno_name(exc: OSError) -> Optional[str]:
    if isinstance(exc, socket.gaierror):
        return "ENOTFOUND"
    if exc.errno is None:
        return None
    return errno_codes.errorcode.get(exc.errno)


def classify_exception(exc: BaseException) -> Tuple[str, ErrorCategory, Optional[str]]:
    """Map a native exception to ``(code, category, resource)``."""
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return "TIMEOUT", ErrorCategory.NETWORK, None
    if isinstance(exc, OSError):
        name = _errno_name(exc)
        if name in NETWORK_ERROR_CODES:
            return name, ErrorCategory.NETWORK, None
        if name is not None:
            resource = str(exc.filename) if exc.filename is not None else None
            return name, ErrorCategory.FILE_SYSTEM, resource
    match = _CODE_TOKEN_RE.match(str(exc))
    if match:
        token = match.group(1)
        if token in NETWORK_ERROR_CODES:
            return token, ErrorCategory.NETWORK, None
        if token in FILE_SYSTEM_ERROR_CODES:
            return token, ErrorCategory.FILE_SYSTEM, None
    return "WRAPPED_ERROR", ErrorCategory.SYSTEM, None


def wrap(error: Any, context: Optional[Mapping[str, Any]] = None) -> StructuredError:
    """Convert any raised value into a StructuredError.

    Structured errors are returned as-is (with ``context`` merged). Native
    exceptions are classified by errno, timeout type or a leading
    ``EXXX`` code token; anything else becomes ``UNKNOWN_ERROR``.
    """
    if isinstance(error, StructuredError):
        return apply_context(error, context)

    if isinstance(error, BaseException):
        code, category, resource = classify_exception(error)
        message = str(error) or type(error).__name__
        metadata = ErrorMetadata(resource=resource, stack=_format_stack(error))
        wrapped = StructuredError(
            message,
            code,
            category,
            ErrorSeverity.MEDIUM,
            metadata,
            error,
            name=f"Wrapped{type(error).__name__}",
        )
        return apply_context(wrapped, context)

    serialized = parse_serialized_error(error)
    if serialized is not None:
        return apply_context(from_serialized(serialized), context)

    message = error if isinstance(error, str) else repr(error)
    unknown = StructuredError(message, "UNKNOWN_ERROR", ErrorCategory.SYSTEM, ErrorSeverity.MEDIUM, name="UnknownError")
    return apply_context(unknown, context)


def from_serialized(data: Union[SerializedError, Mapping[str, Any]]) -> StructuredError:
    """Rebuild a structured error (and its structured cause chain) from the wire record.

    Raises:
        ValueError: If ``data`` does not match the serialized error schema.
    """
    record = parse_serialized_error(data)
    if record is None:
        raise ValueError("Not a serialized structured error")
    metadata = coerce_metadata(record.metadata.model_dump(exclude_none=True))
    if record.stack and not metadata.stack:
        metadata = metadata.merged(stack=record.stack)
    cause = from_serialized(record.cause) if record.cause is not None else None
    return StructuredError(
        record.message,
        record.code,
        record.category,
        record.severity,
        metadata,
        cause,
        name=record.name,
    )


def matches_error(error: Any, matcher: Union[str, Type[BaseException]]) -> bool:
    """True if ``error`` has code ``matcher`` or is an instance of it."""
    if error is None:
        return False
    if isinstance(matcher, str):
        return isinstance(error, StructuredError) and error.code == matcher
    return isinstance(error, matcher)


def find_in_chain(error: StructuredError, error_type: Type[E]) -> Optional[E]:
    """Return the first error in the cause chain that is an ``error_type``."""
    for link in error.iter_chain():
        if isinstance(link, error_type):
            return link
    return None


def format_error(error: StructuredError, include_stack: bool = False) -> str:
    parts = [f"[{error.severity.value}] {error.category.value}:{error.code}", error.message]
    if error.metadata.context:
        rendered = ", ".join(
            f"{key}={json.dumps(value, default=str)}" for key, value in error.metadata.context.items()
        )
        parts.append(f"Context: {{{rendered}}}")
    if include_stack and error.stack:
        parts.append(f"Stack: {error.stack}")
    return "\n".join(parts)


def to_log_object(error: StructuredError) -> Dict[str, Any]:
    """Convert an error to a structured log record, following the cause chain."""
    cause = error.cause
    if isinstance(cause, StructuredError):
        cause_record: Optional[Dict[str, Any]] = to_log_object(cause)
    elif cause is not None:
        cause_record = {"name": type(cause).__name__, "message": str(cause)}
    else:
        cause_record = None
    return {
        "name": error.name,
        "message": error.message,
        "code": error.code,
        "category": error.category.value,
        "severity": error.severity.value,
        "timestamp": error.timestamp.isoformat(),
        "stack": error.stack,
        "metadata": error.metadata.to_dict(),
        "cause": cause_record,
    }


def group_by_category(errors: Iterable[StructuredError]) -> Dict[ErrorCategory, List[StructuredError]]:
    grouped: Dict[ErrorCategory, List[StructuredError]] = defaultdict(list)
    for error in errors:
        grouped[error.category].append(error)
    return dict(grouped)


def get_statistics(errors: Iterable[StructuredError]) -> Dict[str, Any]:
    """Summarize errors by category, severity and recoverability."""
    by_category: Dict[str, int] = defaultdict(int)
    by_severity: Dict[str, int] = defaultdict(int)
    total = recoverable = 0
    for error in errors:
        total += 1
        by_category[error.category.value] += 1
        by_severity[error.severity.value] += 1
        if error.is_recoverable():
            recoverable += 1
    return {
        "total": total,
        "by_category": dict(by_category),
        "by_severity": dict(by_severity),
        "recoverable": recoverable,
        "non_recoverable": total - recoverable,
    }
