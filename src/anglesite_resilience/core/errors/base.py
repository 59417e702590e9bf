"""Structured error taxonomy.

Every error raised by the resilience core is a ``StructuredError``: an
``Exception`` carrying a stable machine ``code``, a ``category``, a
``severity`` and immutable ``metadata``. Category base classes set the
category and the default severity for their family.

Usage:
    from anglesite_resilience.core.errors.base import (
        ErrorCategory,
        ErrorSeverity,
        NetworkError,
    )

    try:
        await fetch_schema()
    except ConnectionRefusedError as exc:
        raise NetworkError("Schema service unreachable", "ECONNREFUSED", cause=exc)
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type, Union

from anglesite_resilience.core.safe_json import to_json_safe


class ErrorSeverity(str, Enum):
    """Impact level of an error."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorCategory(str, Enum):
    """Domain grouping of an error."""

    SYSTEM = "SYSTEM"
    NETWORK = "NETWORK"
    FILE_SYSTEM = "FILE_SYSTEM"
    VALIDATION = "VALIDATION"
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    CONFIGURATION = "CONFIGURATION"
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    USER_INPUT = "USER_INPUT"
    CERTIFICATE = "CERTIFICATE"
    DNS = "DNS"
    SERVER = "SERVER"
    WEBSITE = "WEBSITE"
    ATOMIC_OPERATION = "ATOMIC_OPERATION"


# Exponent cap for network backoff: 2**5 * 1000 ms = 32 s
MAX_BACKOFF_EXPONENT = 5
FILE_SYSTEM_RETRY_DELAY_MS = 500


@dataclass(frozen=True)
class ErrorMetadata:
    """Contextual information attached to a structured error.

    Attributes:
        timestamp: Creation time, set once by the owning error.
        request_id: Correlation identifier of the originating request.
        user_id: Identifier of the acting user, if any.
        website_id: Website the failing operation targeted.
        operation: Name of the failing operation (usually the channel).
        resource: Path or identifier of the resource involved.
        context: Free-form context map.
        stack: Captured stack trace text, if known.
        inner_errors: Errors aggregated under this one.
        retry_count: Number of retries already performed.
    """

    timestamp: Optional[datetime] = None
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    website_id: Optional[str] = None
    operation: Optional[str] = None
    resource: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    stack: Optional[str] = None
    inner_errors: Tuple[Any, ...] = ()
    retry_count: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ErrorMetadata":
        """Build metadata from a (possibly serialized) mapping."""
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            timestamp=timestamp,
            request_id=data.get("request_id"),
            user_id=data.get("user_id"),
            website_id=data.get("website_id"),
            operation=data.get("operation"),
            resource=data.get("resource"),
            context=dict(data.get("context") or {}),
            stack=data.get("stack"),
            inner_errors=tuple(data.get("inner_errors") or ()),
            retry_count=int(data.get("retry_count") or 0),
        )

    def merged(self, **changes: Any) -> "ErrorMetadata":
        """Return a copy with ``changes`` applied; ``context`` is merged, not replaced."""
        context = changes.pop("context", None)
        if context:
            changes["context"] = {**self.context, **context}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary, omitting empty fields."""
        result: Dict[str, Any] = {}
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp.isoformat()
        for key in ("request_id", "user_id", "website_id", "operation", "resource", "stack"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.context:
            result["context"] = to_json_safe(self.context)
        if self.inner_errors:
            result["inner_errors"] = [to_json_safe(inner) for inner in self.inner_errors]
        result["retry_count"] = self.retry_count
        return result


MetadataLike = Union[ErrorMetadata, Mapping[str, Any], None]


def coerce_metadata(metadata: MetadataLike) -> ErrorMetadata:
    if metadata is None:
        return ErrorMetadata()
    if isinstance(metadata, ErrorMetadata):
        return metadata
    return ErrorMetadata.from_dict(metadata)


def merge_metadata(metadata: MetadataLike, resource: Optional[str] = None, **context: Any) -> ErrorMetadata:
    """Merge non-None ``context`` entries (and ``resource``) into ``metadata``."""
    base = coerce_metadata(metadata)
    extra = {key: value for key, value in context.items() if value is not None}
    changes: Dict[str, Any] = {}
    if extra:
        changes["context"] = extra
    if resource is not None:
        changes["resource"] = resource
    return base.merged(**changes) if changes else base


class StructuredError(Exception):
    """Base class for every structured error.

    ``timestamp`` is fixed at construction. ``with_context`` and
    ``with_metadata`` return new errors and leave the original untouched.

    Attributes:
        message: Human-readable description.
        code: Stable machine identifier (e.g. ``FILE_NOT_FOUND``).
        category: ErrorCategory of the error.
        severity: ErrorSeverity of the error.
        metadata: Immutable ErrorMetadata.
        cause: The error this one wraps, if any.
    """

    default_severity: ClassVar[ErrorSeverity] = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        code: str,
        category: Union[ErrorCategory, str],
        severity: Union[ErrorSeverity, str, None] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
        *,
        name: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = ErrorCategory(category)
        self.severity = ErrorSeverity(severity) if severity is not None else self.default_severity
        base = coerce_metadata(metadata)
        self.timestamp: datetime = base.timestamp or datetime.now(timezone.utc)
        self.metadata = replace(base, timestamp=self.timestamp)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause
        self._name = name

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.name}(code={self.code!r}, category={self.category.value}, "
            f"severity={self.severity.value}, message={self.message!r})"
        )

    @property
    def name(self) -> str:
        return self._name or type(self).__name__

    @property
    def stack(self) -> Optional[str]:
        """Stack trace text: captured metadata stack, else this error's traceback."""
        if self.metadata.stack:
            return self.metadata.stack
        if self.__traceback__ is not None:
            return "".join(traceback.format_exception(type(self), self, self.__traceback__))
        return None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> Dict[str, Any]:
        """Serialize to the JSON-safe wire record.

        ``cause`` is included only when it is itself a StructuredError.
        """
        record: Dict[str, Any] = {
            "name": self.name,
            "message": self.message,
            "code": self.code,
            "category": self.category.value,
            "severity": self.severity.value,
            "metadata": self.metadata.to_dict(),
        }
        if isinstance(self.cause, StructuredError):
            record["cause"] = self.cause.serialize()
        stack = self.stack
        if stack:
            record["stack"] = stack
        return record

    def to_json(self) -> Dict[str, Any]:
        return self.serialize()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def get_user_message(self) -> str:
        if self.severity == ErrorSeverity.CRITICAL:
            return "A critical system error occurred. Please contact support."
        if self.severity == ErrorSeverity.HIGH:
            return "An error occurred that requires immediate attention."
        return self.message

    def is_recoverable(self) -> bool:
        """Whether retrying or user correction can resolve this error."""
        if self.severity == ErrorSeverity.CRITICAL:
            return False
        if self.category in (ErrorCategory.SYSTEM, ErrorCategory.CONFIGURATION):
            return self.severity != ErrorSeverity.HIGH
        if self.category in (ErrorCategory.NETWORK, ErrorCategory.EXTERNAL_SERVICE):
            return True
        if self.category in (ErrorCategory.VALIDATION, ErrorCategory.USER_INPUT):
            return True
        return self.severity in (ErrorSeverity.LOW, ErrorSeverity.MEDIUM)

    def get_retry_delay(self) -> Optional[int]:
        """Suggested delay before the next retry in milliseconds, or None.

        None means the error is not recoverable or has no opinion, in which
        case the caller's retry policy decides.
        """
        if not self.is_recoverable():
            return None
        if self.category in (ErrorCategory.NETWORK, ErrorCategory.EXTERNAL_SERVICE):
            exponent = min(max(self.metadata.retry_count, 0), MAX_BACKOFF_EXPONENT)
            return (2**exponent) * 1000
        if self.category == ErrorCategory.FILE_SYSTEM:
            return FILE_SYSTEM_RETRY_DELAY_MS
        return None

    # ------------------------------------------------------------------
    # Copy-on-write context
    # ------------------------------------------------------------------

    def _clone(self, metadata: ErrorMetadata) -> "StructuredError":
        clone = type(self).__new__(type(self))
        clone.__dict__.update(self.__dict__)
        clone.args = self.args
        clone.metadata = metadata
        clone.__cause__ = self.__cause__
        clone.__traceback__ = self.__traceback__
        return clone

    def with_context(self, context: Mapping[str, Any]) -> "StructuredError":
        """Return a new error whose metadata context includes ``context``."""
        return self._clone(self.metadata.merged(context=dict(context)))

    def add_context(self, key: str, value: Any) -> "StructuredError":
        return self.with_context({key: value})

    def with_metadata(self, **changes: Any) -> "StructuredError":
        """Return a new error with metadata fields replaced (timestamp is kept)."""
        changes.pop("timestamp", None)
        return self._clone(self.metadata.merged(**changes))

    # ------------------------------------------------------------------
    # Cause chain
    # ------------------------------------------------------------------

    def iter_chain(self):
        """Yield this error followed by each cause, stopping on a repeat."""
        seen = set()
        current: Optional[BaseException] = self
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            yield current
            if isinstance(current, StructuredError):
                current = current.cause if current.cause is not None else current.__cause__
            else:
                current = current.__cause__

    def matches(self, kind: Union[str, Type[BaseException]]) -> bool:
        """True if this error or any cause in its chain matches ``kind``.

        ``kind`` is either an exception class or a structured error code.
        """
        for error in self.iter_chain():
            if isinstance(kind, str):
                if isinstance(error, StructuredError) and error.code == kind:
                    return True
            elif isinstance(error, kind):
                return True
        return False

    def get_root_cause(self) -> BaseException:
        root: BaseException = self
        for error in self.iter_chain():
            root = error
        return root


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class SystemLevelError(StructuredError):
    """Infrastructure, OS or process-level failure."""

    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        code: str,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
        *,
        category: ErrorCategory = ErrorCategory.SYSTEM,
    ):
        super().__init__(message, code, category, severity, metadata, cause)


class NetworkError(StructuredError):
    """Connectivity, timeout or resolution failure."""

    def __init__(
        self,
        message: str,
        code: str,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
        *,
        category: ErrorCategory = ErrorCategory.NETWORK,
    ):
        super().__init__(message, code, category, severity, metadata, cause)


class FileSystemError(StructuredError):
    """File system operation failure.

    Attributes:
        path: Path of the file or directory involved.
    """

    def __init__(
        self,
        message: str,
        code: str,
        path: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code,
            ErrorCategory.FILE_SYSTEM,
            severity,
            merge_metadata(metadata, resource=path),
            cause,
        )
        self.path = path


class ValidationError(StructuredError):
    """Input or data validation failure.

    Attributes:
        field: Name of the offending field.
        value: The rejected value.
    """

    default_severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        code: str,
        field: Optional[str] = None,
        value: Any = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code,
            ErrorCategory.VALIDATION,
            severity,
            merge_metadata(metadata, field=field, value=value),
            cause,
        )
        self.field = field
        self.value = value


class ConfigurationError(StructuredError):
    """Invalid or missing configuration."""

    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        code: str,
        config_key: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code,
            ErrorCategory.CONFIGURATION,
            severity,
            merge_metadata(metadata, config_key=config_key),
            cause,
        )
        self.config_key = config_key


class BusinessLogicError(StructuredError):
    """Violation of an application rule."""

    def __init__(
        self,
        message: str,
        code: str,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
        *,
        category: ErrorCategory = ErrorCategory.BUSINESS_LOGIC,
    ):
        super().__init__(message, code, category, severity, metadata, cause)


class ExternalServiceError(StructuredError):
    """Failure reported by a third-party service."""

    def __init__(
        self,
        message: str,
        code: str,
        service: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code,
            ErrorCategory.EXTERNAL_SERVICE,
            severity,
            merge_metadata(metadata, service=service),
            cause,
        )
        self.service = service
