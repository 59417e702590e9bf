"""Friendly error message catalog.

Maps error keys to display templates and classifies raw error messages
into those keys with an ordered list of patterns (most specific first).
The catalog is read-only after import.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Pattern, Tuple, Union

from anglesite_resilience.core.errors.base import ErrorCategory, ErrorSeverity

logger = logging.getLogger(__name__)

TemplateText = Union[str, Callable[[Mapping[str, Any]], str]]

UNKNOWN_KEY = "UNKNOWN"


@dataclass(frozen=True)
class ErrorMessageTemplate:
    """Display template for one class of error.

    ``message`` and ``suggestion`` are literal strings or pure functions of
    the template context.
    """

    title: str
    message: TemplateText
    category: ErrorCategory
    severity: ErrorSeverity
    is_retryable: bool
    is_dismissible: bool = True
    suggestion: Optional[TemplateText] = None


@dataclass(frozen=True)
class RenderedMessage:
    title: str
    message: str
    suggestion: Optional[str]
    category: ErrorCategory
    severity: ErrorSeverity
    is_retryable: bool
    is_dismissible: bool


def _file_message(present: str, absent: str) -> Callable[[Mapping[str, Any]], str]:
    def render(ctx: Mapping[str, Any]) -> str:
        filename = ctx.get("filename")
        return present.format(filename=filename) if filename else absent

    return render


def _required_field_message(ctx: Mapping[str, Any]) -> str:
    field = ctx.get("field")
    return f'The field "{field}" is required' if field else "A required field is missing"


def _server_start_suggestion(ctx: Mapping[str, Any]) -> str:
    port = ctx.get("port")
    if port:
        return f"Port {port} may already be in use. Try closing other applications and try again."
    return "The port may already be in use. Try closing other applications and try again."


_CATALOG = {
    # Network
    "NETWORK_CONNECTION_REFUSED": ErrorMessageTemplate(
        title="Connection Failed",
        message="Can't connect to the server",
        suggestion="The server may not be running. Try starting it from the menu or check your network connection.",
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=True,
    ),
    "NETWORK_TIMEOUT": ErrorMessageTemplate(
        title="Request Timed Out",
        message="The operation took too long to complete",
        suggestion="The server might be slow or unresponsive. Try again, or check your network connection.",
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=True,
    ),
    "NETWORK_CONNECTION_RESET": ErrorMessageTemplate(
        title="Connection Lost",
        message="The connection to the server was interrupted",
        suggestion="This usually happens when the server restarts or crashes. Try again in a moment.",
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=True,
    ),
    "NETWORK_DNS_FAILED": ErrorMessageTemplate(
        title="Server Not Found",
        message="Could not find the server address",
        suggestion="Check that the server address is correct and your network connection is working.",
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=True,
    ),
    "NETWORK_OFFLINE": ErrorMessageTemplate(
        title="No Internet Connection",
        message="Your computer appears to be offline",
        suggestion="Check your network connection and try again.",
        category=ErrorCategory.NETWORK,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=True,
    ),
    # File system
    "FILE_NOT_FOUND": ErrorMessageTemplate(
        title="File Not Found",
        message=_file_message('The file "{filename}" could not be found', "The requested file could not be found"),
        suggestion="The file may have been moved, renamed, or deleted. Check that it exists and try again.",
        category=ErrorCategory.FILE_SYSTEM,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=False,
    ),
    "FILE_PERMISSION_DENIED": ErrorMessageTemplate(
        title="Permission Denied",
        message=_file_message(
            "You don't have permission to access \"{filename}\"",
            "You don't have permission to access this file",
        ),
        suggestion="Check the file permissions or try running the application with appropriate access rights.",
        category=ErrorCategory.FILE_SYSTEM,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=False,
    ),
    "FILE_ALREADY_EXISTS": ErrorMessageTemplate(
        title="File Already Exists",
        message=_file_message('A file named "{filename}" already exists', "The file already exists"),
        suggestion="Choose a different name or delete the existing file first.",
        category=ErrorCategory.FILE_SYSTEM,
        severity=ErrorSeverity.LOW,
        is_retryable=False,
    ),
    "FILE_NOT_DIRECTORY": ErrorMessageTemplate(
        title="Not a Directory",
        message="The path you specified is not a directory",
        suggestion="Check that you are using the correct path and try again.",
        category=ErrorCategory.FILE_SYSTEM,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=False,
    ),
    "FILE_IS_DIRECTORY": ErrorMessageTemplate(
        title="Is a Directory",
        message="The path you specified is a directory, not a file",
        suggestion="Specify a file path instead of a directory path.",
        category=ErrorCategory.FILE_SYSTEM,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=False,
    ),
    "FILE_DISK_FULL": ErrorMessageTemplate(
        title="Disk Full",
        message="There is not enough disk space to complete the operation",
        suggestion="Free up some disk space and try again.",
        category=ErrorCategory.FILE_SYSTEM,
        severity=ErrorSeverity.HIGH,
        is_retryable=False,
    ),
    # Validation
    "VALIDATION_INVALID_JSON": ErrorMessageTemplate(
        title="Invalid Data Format",
        message="The configuration file contains invalid JSON",
        suggestion="Check the file for syntax errors like missing commas or quotes, or restore from a backup.",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=False,
    ),
    "VALIDATION_SCHEMA_MISMATCH": ErrorMessageTemplate(
        title="Invalid Configuration",
        message="The configuration does not match the expected format",
        suggestion="Check that all required fields are present and have the correct data types.",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=False,
    ),
    "VALIDATION_REQUIRED_FIELD": ErrorMessageTemplate(
        title="Missing Required Field",
        message=_required_field_message,
        suggestion="Fill in all required fields and try again.",
        category=ErrorCategory.VALIDATION,
        severity=ErrorSeverity.LOW,
        is_retryable=False,
    ),
    # Configuration
    "CONFIG_MISSING_WEBSITE": ErrorMessageTemplate(
        title="No Website Selected",
        message="You need to select or create a website first",
        suggestion="Create a new website or select an existing one from the sidebar.",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=False,
    ),
    "CONFIG_INVALID_WEBSITE_NAME": ErrorMessageTemplate(
        title="Invalid Website Name",
        message="The website name contains invalid characters",
        suggestion="Use only letters, numbers, hyphens, and underscores in website names.",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.LOW,
        is_retryable=False,
    ),
    "CONFIG_SERVER_NOT_STARTED": ErrorMessageTemplate(
        title="Server Not Running",
        message="The website server has not been started",
        suggestion="Start the development server from the menu before accessing the website.",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=False,
    ),
    # Server
    "SERVER_START_FAILED": ErrorMessageTemplate(
        title="Server Start Failed",
        message="Could not start the development server",
        suggestion=_server_start_suggestion,
        category=ErrorCategory.SERVER,
        severity=ErrorSeverity.HIGH,
        is_retryable=True,
    ),
    "SERVER_CRASHED": ErrorMessageTemplate(
        title="Server Crashed",
        message="The development server stopped unexpectedly",
        suggestion="Check the console for error details and try restarting the server.",
        category=ErrorCategory.SERVER,
        severity=ErrorSeverity.HIGH,
        is_retryable=True,
    ),
    # Generic
    UNKNOWN_KEY: ErrorMessageTemplate(
        title="An Error Occurred",
        message="An unexpected error occurred",
        suggestion="Try again, or check the technical details below for more information.",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.MEDIUM,
        is_retryable=True,
    ),
}

MESSAGE_CATALOG: Mapping[str, ErrorMessageTemplate] = MappingProxyType(_CATALOG)

# Machine codes that name a catalog entry without being a catalog key
CODE_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "ECONNREFUSED": "NETWORK_CONNECTION_REFUSED",
        "TIMEOUT": "NETWORK_TIMEOUT",
        "ETIMEDOUT": "NETWORK_TIMEOUT",
        "ECONNRESET": "NETWORK_CONNECTION_RESET",
        "ENOTFOUND": "NETWORK_DNS_FAILED",
        "EAI_AGAIN": "NETWORK_DNS_FAILED",
        "DNS_RESOLUTION_FAILED": "NETWORK_DNS_FAILED",
        "ENETUNREACH": "NETWORK_OFFLINE",
        "ENOENT": "FILE_NOT_FOUND",
        "DIRECTORY_NOT_FOUND": "FILE_NOT_FOUND",
        "EACCES": "FILE_PERMISSION_DENIED",
        "EPERM": "FILE_PERMISSION_DENIED",
        "PERMISSION_DENIED": "FILE_PERMISSION_DENIED",
        "EEXIST": "FILE_ALREADY_EXISTS",
        "ENOTDIR": "FILE_NOT_DIRECTORY",
        "EISDIR": "FILE_IS_DIRECTORY",
        "ENOSPC": "FILE_DISK_FULL",
        "INSUFFICIENT_DISK_SPACE": "FILE_DISK_FULL",
        "REQUIRED_FIELD_MISSING": "VALIDATION_REQUIRED_FIELD",
        "EADDRINUSE": "SERVER_START_FAILED",
        "PORT_IN_USE": "SERVER_START_FAILED",
    }
)

ERROR_PATTERNS: Tuple[Tuple[Pattern[str], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), key)
    for pattern, key in [
        # Network, specific patterns first
        (r"econnrefused|connection refused", "NETWORK_CONNECTION_REFUSED"),
        (r"etimedout|timed? ?out|timeout", "NETWORK_TIMEOUT"),
        (r"econnreset|connection reset", "NETWORK_CONNECTION_RESET"),
        (r"enotfound|getaddrinfo|dns", "NETWORK_DNS_FAILED"),
        (r"network error|offline", "NETWORK_OFFLINE"),
        # File system
        (r"enoent|no such file|not found", "FILE_NOT_FOUND"),
        (r"eacces|eaccess|permission denied|access denied", "FILE_PERMISSION_DENIED"),
        (r"eexist|already exists", "FILE_ALREADY_EXISTS"),
        (r"enotdir|not a directory", "FILE_NOT_DIRECTORY"),
        (r"eisdir|is a directory", "FILE_IS_DIRECTORY"),
        (r"enospc|no space|disk full", "FILE_DISK_FULL"),
        # Validation
        (r"unexpected token|json\.parse|invalid json|parse.*json|expecting value", "VALIDATION_INVALID_JSON"),
        (r"schema.*invalid|invalid.*schema|does not match schema", "VALIDATION_SCHEMA_MISMATCH"),
        (r"required field|field.*required|missing.*required", "VALIDATION_REQUIRED_FIELD"),
        # Configuration
        (r"no website|website.*not.*selected|select.*website", "CONFIG_MISSING_WEBSITE"),
        (r"invalid.*website.*name|website.*name.*invalid", "CONFIG_INVALID_WEBSITE_NAME"),
        (r"server.*not.*started|server.*not.*running", "CONFIG_SERVER_NOT_STARTED"),
        # Server
        (r"server.*start.*failed|failed.*start.*server|eaddrinuse", "SERVER_START_FAILED"),
        (r"server.*crashed|server.*stopped", "SERVER_CRASHED"),
    ]
)

_RENDER_FALLBACK = RenderedMessage(
    title="An Error Occurred",
    message="An unexpected error occurred while displaying the error message",
    suggestion="Check the technical details for more information",
    category=ErrorCategory.SYSTEM,
    severity=ErrorSeverity.MEDIUM,
    is_retryable=False,
    is_dismissible=True,
)


def lookup_code(code: Optional[str]) -> Optional[str]:
    """Catalog key for an explicit machine code, or None."""
    if not code:
        return None
    if code in MESSAGE_CATALOG:
        return code
    return CODE_ALIASES.get(code.upper())


def match_error_pattern(message: Optional[str]) -> str:
    """Classify a raw message; first matching pattern wins, else ``UNKNOWN``."""
    if not message:
        return UNKNOWN_KEY
    for pattern, key in ERROR_PATTERNS:
        if pattern.search(message):
            return key
    return UNKNOWN_KEY


def _resolve(text: Optional[TemplateText], context: Mapping[str, Any]) -> Optional[str]:
    if text is None:
        return None
    if callable(text):
        return str(text(context))
    return text


def render_template(template: ErrorMessageTemplate, context: Mapping[str, Any]) -> RenderedMessage:
    """Resolve a template against ``context``; a failing template yields a generic message."""
    try:
        message = _resolve(template.message, context) or ""
        suggestion = _resolve(template.suggestion, context)
    except Exception as e:
        logger.warning("Error message template %r failed to render: %s", template.title, e)
        return _RENDER_FALLBACK
    return RenderedMessage(
        title=template.title,
        message=message,
        suggestion=suggestion,
        category=template.category,
        severity=template.severity,
        is_retryable=template.is_retryable,
        is_dismissible=template.is_dismissible,
    )
