"""Serialized error wire schema.

Errors crossing a process boundary travel as plain JSON records. Instead of
guessing whether an arbitrary mapping "looks like" a structured error, both
sides validate it against ``SerializedError``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from anglesite_resilience.core.errors.base import ErrorCategory, ErrorSeverity


class SerializedMetadata(BaseModel):
    """Wire form of ``ErrorMetadata``; a record with malformed fields is rejected."""

    model_config = ConfigDict(extra="ignore")

    timestamp: Optional[datetime] = None
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    website_id: Optional[str] = None
    operation: Optional[str] = None
    resource: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    stack: Optional[str] = None
    inner_errors: Optional[List[Any]] = None
    retry_count: Optional[int] = Field(default=0, ge=0)


class SerializedError(BaseModel):
    """Wire record produced by ``StructuredError.serialize()``."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="StructuredError", description="Error class name")
    message: str = Field(description="Human-readable message")
    code: str = Field(min_length=1, description="Stable machine identifier")
    category: ErrorCategory = Field(description="Error category")
    severity: ErrorSeverity = Field(default=ErrorSeverity.MEDIUM, description="Error severity")
    metadata: SerializedMetadata = Field(default_factory=SerializedMetadata, description="Serialized ErrorMetadata")
    cause: Optional["SerializedError"] = Field(default=None, description="Structured cause, if any")
    stack: Optional[str] = Field(default=None, description="Stack trace text")

    @field_validator("category", "severity", mode="before")
    @classmethod
    def normalize_enum_case(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value


SerializedError.model_rebuild()


def parse_serialized_error(data: Any) -> Optional[SerializedError]:
    """Validate ``data`` against the wire schema.

    Returns:
        The parsed record, or None if ``data`` is not a serialized error.
    """
    if isinstance(data, SerializedError):
        return data
    if not isinstance(data, Mapping):
        return None
    try:
        return SerializedError.model_validate(dict(data))
    except ValidationError:
        return None


def is_serialized_error(data: Any) -> bool:
    return parse_serialized_error(data) is not None
