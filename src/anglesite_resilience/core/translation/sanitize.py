"""
Message sanitization for user-facing error display.

Reduces local user paths to their basename, redacts ``key=value`` style
secrets, and truncates messages so no translated error ever shows a home
directory, a credential, or an unbounded blob of text.
"""

import re
from typing import Final, List, Optional, Pattern

MAX_MESSAGE_LENGTH: Final[int] = 500
ELLIPSIS: Final[str] = "..."

# Path characters stop at whitespace, colon, closing paren and quotes
_PATH_TAIL = r"[^\s:)'\"]+"

HOME_PATH_PATTERNS: Final[List[Pattern[str]]] = [
    re.compile(r"/Users/[^/\s]+/" + _PATH_TAIL),
    re.compile(r"[A-Za-z]:\\Users\\[^\\\s]+\\" + _PATH_TAIL, re.IGNORECASE),
    re.compile(r"/home/[^/\s]+/" + _PATH_TAIL),
    re.compile(r"/private/var/folders/" + _PATH_TAIL),
    re.compile(r"/var/folders/" + _PATH_TAIL),
]

SECRET_PATTERNS: Final[List[Pattern[str]]] = [
    re.compile(r"(token)[=:\s]+[a-zA-Z0-9_\-.]+", re.IGNORECASE),
    re.compile(r"(password)[=:\s]+\S+", re.IGNORECASE),
    re.compile(r"(api[_-]?key)[=:\s]+[a-zA-Z0-9_\-.]+", re.IGNORECASE),
    re.compile(r"(secret)[=:\s]+\S+", re.IGNORECASE),
    re.compile(r"(auth)[=:\s]+[a-zA-Z0-9_\-.]+", re.IGNORECASE),
]

FILENAME_PATTERNS: Final[List[Pattern[str]]] = [
    # "file.txt" or 'file.txt'
    re.compile(r"['\"]([^'\"]+\.[a-zA-Z0-9]+)['\"]"),
    # ": file.txt"
    re.compile(r":\s+([^\s:]+\.[a-zA-Z0-9]+)"),
    # file "something.txt"
    re.compile(r"file\s+['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
]

_WINDOWS_FILE_RE = re.compile(r"[A-Za-z]:\\(?:[^\\]+\\)*([^\\\s]+\.[a-zA-Z0-9]+)")


def sanitize_path(path: str) -> str:
    """Return only the last component of a Unix or Windows path."""
    if not path:
        return ""
    return path.replace("\\", "/").rstrip("/").split("/")[-1]


def reduce_user_paths(text: str) -> str:
    """Replace every user-home or temp-dir path in ``text`` with its basename."""
    if not text:
        return ""
    for pattern in HOME_PATH_PATTERNS:
        text = pattern.sub(lambda match: sanitize_path(match.group(0)), text)
    return text


def redact_secrets(text: str) -> str:
    """Rewrite ``token=abc``-style secrets as ``token=[REDACTED]``."""
    if not text:
        return ""
    for pattern in SECRET_PATTERNS:
        text = pattern.sub(lambda match: f"{match.group(1)}=[REDACTED]", text)
    return text


def sanitize_message(text: str) -> str:
    return reduce_user_paths(redact_secrets(text))


def sanitize_stack_trace(stack: str) -> str:
    """Sanitize a stack trace, keeping file basenames and line numbers."""
    return sanitize_message(stack)


def truncate_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Cap ``text`` at ``max_length`` characters, ending with ``...`` when cut."""
    if len(text) <= max_length:
        return text
    if max_length <= len(ELLIPSIS):
        return text[:max_length]
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def extract_filename(message: str) -> Optional[str]:
    """Pull a file name out of an error message, if one is mentioned."""
    if not message:
        return None
    for pattern in FILENAME_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1):
            name = sanitize_path(match.group(1))
            if name:
                return name
    match = _WINDOWS_FILE_RE.search(message)
    if match:
        return match.group(1)
    return None
