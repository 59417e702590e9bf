"""
Error-to-user-message translation.

Classifies any raised value into a catalog entry (explicit code first, then
ordered message patterns), renders the entry against a context record, and
sanitizes everything that reaches the user.

Usage:
    from anglesite_resilience.core.translation import translate_error, TranslationContext

    friendly = translate_error(exc, TranslationContext(channel="get-website-schema"))
    show(friendly.title, friendly.message, friendly.suggestion)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from anglesite_resilience.core.errors.base import ErrorCategory, ErrorSeverity, StructuredError
from anglesite_resilience.core.errors.utilities import wrap
from anglesite_resilience.core.translation.catalog import (
    MESSAGE_CATALOG,
    UNKNOWN_KEY,
    lookup_code,
    match_error_pattern,
    render_template,
)
from anglesite_resilience.core.translation.sanitize import (
    MAX_MESSAGE_LENGTH,
    extract_filename,
    sanitize_message,
    sanitize_path,
    sanitize_stack_trace,
    truncate_message,
)

logger = logging.getLogger(__name__)

DEVELOPMENT = "development"
PRODUCTION = "production"

# Codes assigned by ``wrap`` itself carry no classification of their own
_GENERIC_CODES = frozenset({"WRAPPED_ERROR", "UNKNOWN_ERROR"})


@dataclass
class TranslationContext:
    """Caller-supplied context for a translation.

    Attributes:
        channel: Invocation channel the error came from.
        operation: Operation name, if different from the channel.
        resource: Resource path or identifier involved.
        filename: File name to show; extracted from the error when unset.
        retry_count: Retries already performed.
        max_retries: Retry budget of the invocation.
        environment: ``development`` or ``production``; overrides the
            translator default.
        show_details: Force the technical-details affordance on or off.
        severity_override: Severity to report instead of the classified one.
        extra: Additional template context values.
    """

    channel: Optional[str] = None
    operation: Optional[str] = None
    resource: Optional[str] = None
    filename: Optional[str] = None
    retry_count: Optional[int] = None
    max_retries: Optional[int] = None
    environment: Optional[str] = None
    show_details: Optional[bool] = None
    severity_override: Optional[ErrorSeverity] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FriendlyError:
    """User-facing representation of an error. Created fresh per translation."""

    title: str
    message: str
    suggestion: Optional[str]
    technical_message: str
    error_code: str
    category: ErrorCategory
    severity: ErrorSeverity
    is_retryable: bool
    is_dismissible: bool
    show_details: bool
    context: Dict[str, Any] = field(default_factory=dict)
    original_error: Any = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe view for display layers. ``original_error`` is left out."""
        data: Dict[str, Any] = {
            "title": self.title,
            "message": self.message,
            "technical_message": self.technical_message,
            "error_code": self.error_code,
            "category": self.category.value,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
            "is_dismissible": self.is_dismissible,
            "show_details": self.show_details,
            "context": dict(self.context),
        }
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        return data


def classify(error: StructuredError) -> str:
    """Catalog key for a structured error: explicit code, then message patterns."""
    if error.code not in _GENERIC_CODES:
        key = lookup_code(error.code)
        if key is not None:
            return key
    return match_error_pattern(error.message)


def _template_context(error: StructuredError, ctx: TranslationContext) -> Dict[str, Any]:
    metadata = error.metadata
    values: Dict[str, Any] = dict(ctx.extra)
    values.update(
        channel=ctx.channel,
        operation=ctx.operation or metadata.operation or ctx.channel,
        retry_count=ctx.retry_count if ctx.retry_count is not None else metadata.retry_count,
        max_retries=ctx.max_retries,
    )

    resource = ctx.resource or metadata.resource
    if resource:
        values["resource"] = sanitize_path(str(resource))

    filename = ctx.filename
    if not filename and values.get("resource") and "." in values["resource"]:
        filename = values["resource"]
    if not filename:
        filename = extract_filename(error.message)
    if filename:
        values["filename"] = sanitize_path(filename)

    for key in ("field", "port", "config_key", "service"):
        if key in metadata.context and key not in values:
            values[key] = metadata.context[key]
    return values


def _technical_message(error: StructuredError, environment: str, limit: int) -> str:
    text = sanitize_message(error.message)
    if environment == DEVELOPMENT:
        stack = error.stack
        if stack:
            text = f"{text}\n\n{sanitize_stack_trace(stack)}"
    return truncate_message(text, limit)


def translate_error(
    error: Any,
    context: Optional[TranslationContext] = None,
    *,
    environment: Optional[str] = None,
    max_message_length: int = MAX_MESSAGE_LENGTH,
) -> FriendlyError:
    """Translate any error shape into a sanitized FriendlyError.

    Never raises: any internal failure yields the generic fallback.

    Args:
        error: Exception, StructuredError, serialized error dict, or any value.
        context: Optional TranslationContext.
        environment: Default environment when the context has none
            (``production`` if both are unset).
        max_message_length: Cap for the user-facing message; the technical
            message is capped at twice this.
    """
    ctx = context or TranslationContext()
    try:
        env = ctx.environment or environment or PRODUCTION
        structured = wrap(error)
        key = classify(structured)
        rendered = render_template(MESSAGE_CATALOG[key], _template_context(structured, ctx))

        category = rendered.category
        if key == UNKNOWN_KEY and structured.code not in _GENERIC_CODES:
            category = structured.category
        severity = ctx.severity_override or (
            structured.severity if key == UNKNOWN_KEY else rendered.severity
        )
        suggestion = (
            truncate_message(sanitize_message(rendered.suggestion), max_message_length)
            if rendered.suggestion
            else None
        )
        show_details = ctx.show_details if ctx.show_details is not None else key == UNKNOWN_KEY

        return FriendlyError(
            title=rendered.title,
            message=truncate_message(sanitize_message(rendered.message), max_message_length),
            suggestion=suggestion,
            technical_message=_technical_message(structured, env, max_message_length * 2),
            error_code=key,
            category=category,
            severity=severity,
            is_retryable=rendered.is_retryable,
            is_dismissible=rendered.is_dismissible,
            show_details=show_details,
            context={
                "channel": ctx.channel,
                "operation": ctx.operation or structured.metadata.operation,
                "resource": sanitize_path(str(ctx.resource or structured.metadata.resource or "")) or None,
                "retry_count": ctx.retry_count,
                "max_retries": ctx.max_retries,
            },
            original_error=error,
        )
    except Exception as e:
        logger.error("Error translation failed: %s", e, exc_info=True)
        return create_fallback_error(error, ctx)


def create_fallback_error(error: Any = None, context: Optional[TranslationContext] = None) -> FriendlyError:
    """Generic friendly error used when translation itself fails."""
    ctx = context or TranslationContext()
    return FriendlyError(
        title="An Error Occurred",
        message="An unexpected error occurred",
        suggestion="Try again, or restart the application if the problem persists.",
        technical_message="Error details unavailable",
        error_code=UNKNOWN_KEY,
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=True,
        is_dismissible=True,
        show_details=False,
        context={"channel": ctx.channel, "operation": ctx.operation},
        original_error=error,
    )
