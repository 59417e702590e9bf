"""User-facing error translation: catalog, pattern classification and sanitization."""

# --- Catalog ---
from anglesite_resilience.core.translation.catalog import (
    CODE_ALIASES,
    ERROR_PATTERNS,
    MESSAGE_CATALOG,
    UNKNOWN_KEY,
    ErrorMessageTemplate,
    RenderedMessage,
    lookup_code,
    match_error_pattern,
    render_template,
)

# --- Sanitization ---
from anglesite_resilience.core.translation.sanitize import (
    MAX_MESSAGE_LENGTH,
    extract_filename,
    redact_secrets,
    reduce_user_paths,
    sanitize_message,
    sanitize_path,
    sanitize_stack_trace,
    truncate_message,
)

# --- Translator ---
from anglesite_resilience.core.translation.translator import (
    DEVELOPMENT,
    PRODUCTION,
    FriendlyError,
    TranslationContext,
    classify,
    create_fallback_error,
    translate_error,
)

__all__ = [
    # Catalog
    "CODE_ALIASES",
    "ERROR_PATTERNS",
    "MESSAGE_CATALOG",
    "UNKNOWN_KEY",
    "ErrorMessageTemplate",
    "RenderedMessage",
    "lookup_code",
    "match_error_pattern",
    "render_template",
    # Sanitization
    "MAX_MESSAGE_LENGTH",
    "extract_filename",
    "redact_secrets",
    "reduce_user_paths",
    "sanitize_message",
    "sanitize_path",
    "sanitize_stack_trace",
    "truncate_message",
    # Translator
    "DEVELOPMENT",
    "PRODUCTION",
    "FriendlyError",
    "TranslationContext",
    "classify",
    "create_fallback_error",
    "translate_error",
]
