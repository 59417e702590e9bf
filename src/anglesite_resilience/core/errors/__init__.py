"""Structured error taxonomy for anglesite-resilience.

All error classes are defined in the modules of this package; this
__init__.py re-exports everything for convenient access.

Usage:
    # Import from the defining module for specificity
    from anglesite_resilience.core.errors.domain import WebsiteNotFoundError

    # Or from the package
    from anglesite_resilience.core.errors import StructuredError, wrap
"""

# --- Taxonomy ---
from anglesite_resilience.core.errors.base import (
    BusinessLogicError,
    ConfigurationError,
    ErrorCategory,
    ErrorMetadata,
    ErrorSeverity,
    ExternalServiceError,
    FileSystemError,
    NetworkError,
    StructuredError,
    SystemLevelError,
    ValidationError,
)

# --- Domain errors ---
from anglesite_resilience.core.errors.domain import (
    AtomicCopyError,
    AtomicOperationError,
    AtomicWriteError,
    CertificateError,
    CertificateExpiredError,
    CertificateGenerationError,
    CertificateValidationError,
    DirectoryNotFoundError,
    DiskSpaceError,
    DnsError,
    DnsRecordUpdateError,
    DnsResolutionError,
    HostsFileError,
    InvalidFormatError,
    PermissionDeniedError,
    PortAlreadyInUseError,
    RequiredFieldError,
    RollbackError,
    ServerError,
    ServerStartError,
    ServerStopError,
    SiteFileNotFoundError,
    TemplateError,
    TemplateNotFoundError,
    TemplateParsingError,
    ValueOutOfRangeError,
    WebsiteConfigurationError,
    WebsiteCreationError,
    WebsiteDeletionError,
    WebsiteError,
    WebsiteNotFoundError,
)

# --- Wire schema ---
from anglesite_resilience.core.errors.schema import (
    SerializedError,
    SerializedMetadata,
    is_serialized_error,
    parse_serialized_error,
)

# --- Utilities ---
from anglesite_resilience.core.errors.utilities import (
    apply_context,
    create_error,
    find_in_chain,
    format_error,
    from_serialized,
    get_statistics,
    group_by_category,
    matches_error,
    to_log_object,
    wrap,
)

__all__ = [
    # Taxonomy
    "ErrorCategory",
    "ErrorSeverity",
    "ErrorMetadata",
    "StructuredError",
    "SystemLevelError",
    "NetworkError",
    "FileSystemError",
    "ValidationError",
    "ConfigurationError",
    "BusinessLogicError",
    "ExternalServiceError",
    # Website errors
    "WebsiteError",
    "WebsiteNotFoundError",
    "WebsiteCreationError",
    "WebsiteDeletionError",
    "WebsiteConfigurationError",
    # Server errors
    "ServerError",
    "ServerStartError",
    "ServerStopError",
    "PortAlreadyInUseError",
    # DNS errors
    "DnsError",
    "DnsResolutionError",
    "DnsRecordUpdateError",
    "HostsFileError",
    # Certificate errors
    "CertificateError",
    "CertificateGenerationError",
    "CertificateValidationError",
    "CertificateExpiredError",
    # Atomic operation errors
    "AtomicOperationError",
    "AtomicWriteError",
    "AtomicCopyError",
    "RollbackError",
    # Template errors
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateParsingError",
    # File system errors
    "SiteFileNotFoundError",
    "DirectoryNotFoundError",
    "PermissionDeniedError",
    "DiskSpaceError",
    # Validation errors
    "RequiredFieldError",
    "InvalidFormatError",
    "ValueOutOfRangeError",
    # Wire schema
    "SerializedError",
    "SerializedMetadata",
    "parse_serialized_error",
    "is_serialized_error",
    # Utilities
    "create_error",
    "wrap",
    "apply_context",
    "from_serialized",
    "matches_error",
    "find_in_chain",
    "format_error",
    "to_log_object",
    "group_by_category",
    "get_statistics",
]
