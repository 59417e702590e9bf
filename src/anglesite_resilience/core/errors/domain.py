"""Domain error classes.

Concrete errors for website management, the preview server, DNS and hosts
file handling, certificates, atomic file operations and templates, plus
the most common file system and validation failures.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from anglesite_resilience.core.errors.base import (
    BusinessLogicError,
    ErrorCategory,
    ErrorSeverity,
    FileSystemError,
    MetadataLike,
    NetworkError,
    StructuredError,
    SystemLevelError,
    ValidationError,
    coerce_metadata,
    merge_metadata,
)


# ---------------------------------------------------------------------------
# Website management
# ---------------------------------------------------------------------------


class WebsiteError(BusinessLogicError):
    """Website management failure.

    Attributes:
        website_id: Identifier of the website.
        website_path: Path of the website on disk.
    """

    def __init__(
        self,
        message: str,
        code: str,
        website_id: Optional[str] = None,
        website_path: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        base = merge_metadata(
            metadata,
            resource=website_path,
            website_id=website_id,
            website_path=website_path,
        )
        if website_id is not None:
            base = base.merged(website_id=website_id)
        super().__init__(message, code, severity, base, cause, category=ErrorCategory.WEBSITE)
        self.website_id = website_id
        self.website_path = website_path


class WebsiteNotFoundError(WebsiteError):
    def __init__(self, website_id: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Website not found: {website_id}",
            "WEBSITE_NOT_FOUND",
            website_id=website_id,
            metadata=metadata,
            cause=cause,
        )


class WebsiteCreationError(WebsiteError):
    def __init__(
        self,
        website_path: str,
        reason: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Failed to create website at {website_path}: {reason}",
            "WEBSITE_CREATION_FAILED",
            website_path=website_path,
            severity=ErrorSeverity.HIGH,
            metadata=metadata,
            cause=cause,
        )


class WebsiteDeletionError(WebsiteError):
    def __init__(
        self,
        website_id: str,
        reason: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Failed to delete website {website_id}: {reason}",
            "WEBSITE_DELETION_FAILED",
            website_id=website_id,
            severity=ErrorSeverity.HIGH,
            metadata=metadata,
            cause=cause,
        )


class WebsiteConfigurationError(WebsiteError):
    def __init__(
        self,
        website_id: str,
        config_key: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Invalid configuration for website {website_id}: {config_key}",
            "WEBSITE_CONFIG_INVALID",
            website_id=website_id,
            metadata=merge_metadata(metadata, config_key=config_key),
            cause=cause,
        )
        self.config_key = config_key


# ---------------------------------------------------------------------------
# Preview server
# ---------------------------------------------------------------------------


class ServerError(SystemLevelError):
    """Preview server failure.

    Attributes:
        port: Port the server was bound (or binding) to.
        server_id: Identifier of the server instance.
    """

    def __init__(
        self,
        message: str,
        code: str,
        port: Optional[int] = None,
        server_id: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code,
            severity,
            merge_metadata(metadata, port=port, server_id=server_id),
            cause,
            category=ErrorCategory.SERVER,
        )
        self.port = port
        self.server_id = server_id


class ServerStartError(ServerError):
    def __init__(self, port: int, reason: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to start server on port {port}: {reason}",
            "SERVER_START_FAILED",
            port=port,
            metadata=metadata,
            cause=cause,
        )


class ServerStopError(ServerError):
    def __init__(
        self,
        server_id: str,
        reason: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Failed to stop server {server_id}: {reason}",
            "SERVER_STOP_FAILED",
            server_id=server_id,
            severity=ErrorSeverity.MEDIUM,
            metadata=metadata,
            cause=cause,
        )


class PortAlreadyInUseError(ServerError):
    def __init__(self, port: int, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Port {port} is already in use",
            "PORT_IN_USE",
            port=port,
            severity=ErrorSeverity.MEDIUM,
            metadata=metadata,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# DNS and hosts file
# ---------------------------------------------------------------------------


class DnsError(NetworkError):
    """DNS or hosts file failure."""

    def __init__(
        self,
        message: str,
        code: str,
        domain: Optional[str] = None,
        record_type: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code,
            severity,
            merge_metadata(metadata, domain=domain, record_type=record_type),
            cause,
            category=ErrorCategory.DNS,
        )
        self.domain = domain
        self.record_type = record_type


class DnsResolutionError(DnsError):
    def __init__(self, domain: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to resolve domain: {domain}",
            "DNS_RESOLUTION_FAILED",
            domain=domain,
            metadata=metadata,
            cause=cause,
        )


class DnsRecordUpdateError(DnsError):
    def __init__(
        self,
        domain: str,
        record_type: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Failed to update {record_type} record for {domain}",
            "DNS_RECORD_UPDATE_FAILED",
            domain=domain,
            record_type=record_type,
            severity=ErrorSeverity.HIGH,
            metadata=metadata,
            cause=cause,
        )


class HostsFileError(DnsError):
    def __init__(self, reason: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Hosts file operation failed: {reason}",
            "HOSTS_FILE_ERROR",
            severity=ErrorSeverity.HIGH,
            metadata=metadata,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


class CertificateError(SystemLevelError):
    """Local HTTPS certificate failure."""

    def __init__(
        self,
        message: str,
        code: str,
        domain: Optional[str] = None,
        certificate_path: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code,
            severity,
            merge_metadata(
                metadata,
                resource=certificate_path,
                domain=domain,
                certificate_path=certificate_path,
            ),
            cause,
            category=ErrorCategory.CERTIFICATE,
        )
        self.domain = domain
        self.certificate_path = certificate_path


class CertificateGenerationError(CertificateError):
    def __init__(self, domain: str, reason: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to generate certificate for {domain}: {reason}",
            "CERTIFICATE_GENERATION_FAILED",
            domain=domain,
            metadata=metadata,
            cause=cause,
        )


class CertificateValidationError(CertificateError):
    def __init__(
        self,
        certificate_path: str,
        reason: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Certificate validation failed: {reason}",
            "CERTIFICATE_VALIDATION_FAILED",
            certificate_path=certificate_path,
            metadata=metadata,
            cause=cause,
        )


class CertificateExpiredError(CertificateError):
    def __init__(
        self,
        domain: str,
        expiration_date: datetime,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Certificate for {domain} expired on {expiration_date.isoformat()}",
            "CERTIFICATE_EXPIRED",
            domain=domain,
            metadata=merge_metadata(metadata, expiration_date=expiration_date.isoformat()),
            cause=cause,
        )
        self.expiration_date = expiration_date


# ---------------------------------------------------------------------------
# Atomic file operations
# ---------------------------------------------------------------------------


class AtomicOperationError(StructuredError):
    """Failure of a write/copy that must leave the file system consistent."""

    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        code: str,
        operation_type: Optional[str] = None,
        target_path: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        base = merge_metadata(
            metadata,
            resource=target_path,
            operation_type=operation_type,
            target_path=target_path,
        )
        if operation_type is not None and base.operation is None:
            base = base.merged(operation=operation_type)
        super().__init__(message, code, ErrorCategory.ATOMIC_OPERATION, severity, base, cause)
        self.operation_type = operation_type
        self.target_path = target_path


class AtomicWriteError(AtomicOperationError):
    def __init__(self, file_path: str, reason: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Atomic write failed for {file_path}: {reason}",
            "ATOMIC_WRITE_FAILED",
            operation_type="write",
            target_path=file_path,
            metadata=metadata,
            cause=cause,
        )


class AtomicCopyError(AtomicOperationError):
    def __init__(
        self,
        source_path: str,
        target_path: str,
        reason: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Atomic copy failed from {source_path} to {target_path}: {reason}",
            "ATOMIC_COPY_FAILED",
            operation_type="copy",
            target_path=target_path,
            metadata=merge_metadata(metadata, source_path=source_path),
            cause=cause,
        )
        self.source_path = source_path


class RollbackError(AtomicOperationError):
    """Rollback of a failed atomic operation itself failed."""

    def __init__(
        self,
        operation_type: str,
        reason: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Rollback failed for {operation_type} operation: {reason}",
            "ROLLBACK_FAILED",
            operation_type=operation_type,
            severity=ErrorSeverity.CRITICAL,
            metadata=metadata,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class TemplateError(BusinessLogicError):
    def __init__(
        self,
        message: str,
        code: str,
        template_path: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            code,
            severity,
            merge_metadata(metadata, resource=template_path, template_path=template_path),
            cause,
        )
        self.template_path = template_path


class TemplateNotFoundError(TemplateError):
    def __init__(self, template_path: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Template not found: {template_path}",
            "TEMPLATE_NOT_FOUND",
            template_path=template_path,
            severity=ErrorSeverity.HIGH,
            metadata=metadata,
            cause=cause,
        )


class TemplateParsingError(TemplateError):
    def __init__(
        self,
        template_path: str,
        reason: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Template parsing failed for {template_path}: {reason}",
            "TEMPLATE_PARSING_FAILED",
            template_path=template_path,
            severity=ErrorSeverity.HIGH,
            metadata=metadata,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------


class SiteFileNotFoundError(FileSystemError):
    def __init__(self, path: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(f"File not found: {path}", "FILE_NOT_FOUND", path, metadata=metadata, cause=cause)


class DirectoryNotFoundError(FileSystemError):
    def __init__(self, path: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(f"Directory not found: {path}", "DIRECTORY_NOT_FOUND", path, metadata=metadata, cause=cause)


class PermissionDeniedError(FileSystemError):
    def __init__(
        self,
        path: str,
        operation: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        base = coerce_metadata(metadata)
        if base.operation is None:
            base = base.merged(operation=operation)
        super().__init__(
            f"Permission denied for {operation} on {path}",
            "PERMISSION_DENIED",
            path,
            severity=ErrorSeverity.HIGH,
            metadata=base,
            cause=cause,
        )


class DiskSpaceError(FileSystemError):
    def __init__(
        self,
        path: str,
        required_space: Optional[int] = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        detail = f" (required: {required_space} bytes)" if required_space else ""
        super().__init__(
            f"Insufficient disk space for operation on {path}{detail}",
            "INSUFFICIENT_DISK_SPACE",
            path,
            severity=ErrorSeverity.HIGH,
            metadata=merge_metadata(metadata, required_space=required_space),
            cause=cause,
        )
        self.required_space = required_space


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class RequiredFieldError(ValidationError):
    def __init__(self, field: str, metadata: MetadataLike = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"Required field missing: {field}",
            "REQUIRED_FIELD_MISSING",
            field=field,
            severity=ErrorSeverity.MEDIUM,
            metadata=metadata,
            cause=cause,
        )


class InvalidFormatError(ValidationError):
    def __init__(
        self,
        field: str,
        value: Any,
        expected_format: str,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Invalid format for {field}: expected {expected_format}",
            "INVALID_FORMAT",
            field=field,
            value=value,
            severity=ErrorSeverity.MEDIUM,
            metadata=merge_metadata(metadata, expected_format=expected_format),
            cause=cause,
        )
        self.expected_format = expected_format


class ValueOutOfRangeError(ValidationError):
    def __init__(
        self,
        field: str,
        value: Any,
        min_value: Any = None,
        max_value: Any = None,
        metadata: MetadataLike = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Value out of range for {field}: {value} (min: {min_value}, max: {max_value})",
            "VALUE_OUT_OF_RANGE",
            field=field,
            value=value,
            severity=ErrorSeverity.MEDIUM,
            metadata=merge_metadata(metadata, min=min_value, max=max_value),
            cause=cause,
        )
