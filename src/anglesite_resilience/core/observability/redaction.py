"""Sensitive data redaction utilities.

Provides pattern-based anonymization for API keys, passwords, bearer
tokens, email addresses and IP addresses. Applied to telemetry events
before they are queued and to payloads before they are logged.
"""

import json
import re
from typing import Any, Final, List, Optional, Tuple

from anglesite_resilience.core.safe_json import to_json_safe

SENSITIVE_PATTERNS: Final[List[Tuple[str, str]]] = [
    # API keys and tokens
    (r"(?i)(api[_-]?key|apikey)\s*[:=]\s*['\"]?([a-zA-Z0-9_\-]{8,})['\"]?", "API_KEY"),
    (
        r"(?i)(access[_-]?token|secret[_-]?key)\s*[:=]\s*['\"]?([a-zA-Z0-9_\-\.]{8,})['\"]?",
        "ACCESS_TOKEN",
    ),
    (r"(?i)bearer\s+([a-zA-Z0-9_\-\.=]+)", "BEARER_TOKEN"),
    (r"\bsk[-_][a-zA-Z0-9_\-]{16,}\b", "API_KEY"),
    # Passwords
    (r"(?i)(password|passwd|pwd)\s*[:=]\s*['\"]?([^\s'\"]{4,})['\"]?", "PASSWORD"),
    # Private keys
    (r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----", "PRIVATE_KEY"),
    # Email addresses (PII)
    (r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", "EMAIL"),
    # IPv4 addresses (PII)
    (r"\b(?:(?:25[0-5]|2[0-4]\d|1?\d?\d)\.){3}(?:25[0-5]|2[0-4]\d|1?\d?\d)\b", "IP_ADDRESS"),
]
"""Patterns for detecting sensitive data that should be redacted.

Each tuple contains:
- regex pattern: The pattern to match sensitive data
- label: A human-readable label for the type of sensitive data
"""

SENSITIVE_KEYS: Final[frozenset] = frozenset(
    {
        "password",
        "passwd",
        "pwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "access_token",
        "refresh_token",
        "private_key",
        "secret_key",
        "auth",
        "authorization",
        "credential",
        "credentials",
        "email",
        "ip_address",
    }
)

_COMPILED = [(re.compile(pattern), label) for pattern, label in SENSITIVE_PATTERNS]


def redact_text(text: str, *, redaction_format: str = "[REDACTED:{label}]") -> str:
    """Replace every sensitive pattern in ``text`` with a redaction marker."""
    result = text
    for pattern, label in _COMPILED:
        result = pattern.sub(redaction_format.format(label=label), result)
    return result


def redact_sensitive_data(
    data: Any,
    *,
    redaction_format: str = "[REDACTED:{label}]",
    max_depth: int = 10,
) -> Any:
    """Recursively redact sensitive data from strings, dicts, and lists.

    Values under well-known sensitive keys are replaced entirely; all other
    strings are scanned with ``SENSITIVE_PATTERNS``. Input is first
    normalized with ``to_json_safe`` so self-referential payloads are safe.

    Example:
        >>> redact_sensitive_data({"api_key": "sk_live_abc123", "site": "blog"})
        {'api_key': '[REDACTED:API_KEY]', 'site': 'blog'}
    """
    return _redact(to_json_safe(data, max_depth=max_depth), redaction_format, max_depth)


def _redact(data: Any, redaction_format: str, depth: int) -> Any:
    if depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"
    if isinstance(data, str):
        return redact_text(data, redaction_format=redaction_format)
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            key_lower = str(key).lower().replace("-", "_")
            if key_lower in SENSITIVE_KEYS and value is not None:
                result[key] = f"[REDACTED:{key_lower.upper()}]"
            else:
                result[key] = _redact(value, redaction_format, depth - 1)
        return result
    if isinstance(data, list):
        return [_redact(item, redaction_format, depth - 1) for item in data]
    return data


def redact_for_logging(data: Any, max_length: Optional[int] = None) -> str:
    """Redact and serialize ``data`` for a log line.

    Example:
        >>> logger.info("Reporting event: %s", redact_for_logging(payload))
    """
    redacted = redact_sensitive_data(data)
    if isinstance(redacted, str):
        text = redacted
    else:
        try:
            text = json.dumps(redacted, default=str)
        except (TypeError, ValueError):
            text = str(redacted)
    if max_length is not None and len(text) > max_length:
        return text[:max_length] + "..."
    return text
