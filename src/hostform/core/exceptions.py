"""Custom exceptions for hostform.

This module defines a hierarchy of exceptions used throughout hostform
to provide meaningful error messages and enable proper error handling.

Exception Hierarchy:
    HostformError (base)
    ├── ConfigurationError
    │   └── ConfigNotFoundError
    ├── ValidationRejectedError
    ├── ResourceNotFoundError
    ├── MonotonicViolationError
    ├── RemoteOperationError
    └── PartialUpdateError
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hostform.reconcilers.base import ReconcileReport


class HostformError(Exception):
    """Base exception for all hostform errors.

    Args:
        message: Human-readable error message.
        details: Optional dictionary with additional error context.

    Attributes:
        message: The error message.
        details: Additional context about the error.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class ConfigurationError(HostformError):
    """Raised when there is a configuration-related error.

    Examples:
        - Invalid YAML syntax in config, manifest or state file
        - Missing required configuration fields
        - A manifest reference that cannot be resolved
    """


class ConfigNotFoundError(ConfigurationError):
    """Raised when a configuration file cannot be found.

    Args:
        path: The path where the file was expected.
    """

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Configuration file not found: {path}",
            details={"path": path},
        )
        self.path = path


class ValidationRejectedError(HostformError):
    """Raised when a desired configuration violates a constraint.

    Always raised before any remote call is made, e.g. an invalid disk
    name, a malformed SSH public key or a memory size that is not a
    multiple of the allocation granularity.
    """


class ResourceNotFoundError(HostformError):
    """Raised when a required lookup returns no result.

    Args:
        kind: Kind of resource that was looked up (disk, ip, image...).
        key: The ID or name used for the lookup.
    """

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(
            f"{kind} '{key}' not found",
            details={"kind": kind, "key": key},
        )
        self.kind = kind
        self.key = key


class MonotonicViolationError(HostformError):
    """Raised when a field that may only grow is asked to shrink.

    Args:
        kind: Kind of the resource.
        field: Name of the monotonic field (e.g. 'size').
        old: Previously applied value.
        new: Requested value.
    """

    def __init__(self, kind: str, field: str, old: int, new: int) -> None:
        super().__init__(
            f"{kind} {field} cannot decrease from {old} to {new}",
            details={"kind": kind, "field": field},
        )
        self.kind = kind
        self.field = field
        self.old = old
        self.new = new


class RemoteOperationError(HostformError):
    """Raised when the hosting service rejects or fails an operation.

    Args:
        operation: Name of the hosting operation (e.g. 'attach_disk').
        message: Description of the failure returned by the service.
        resource_id: Optional ID of the resource the call was about.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        resource_id: str | None = None,
    ) -> None:
        target = f" on '{resource_id}'" if resource_id else ""
        super().__init__(
            f"Hosting operation {operation}{target} failed: {message}",
            details={"operation": operation},
        )
        self.operation = operation
        self.resource_id = resource_id


class PartialUpdateError(HostformError):
    """Raised when some attribute groups of an update failed.

    Groups that committed before or after the failure are not rolled
    back; the report describes exactly which ones did.

    Args:
        report: The reconcile report holding per-group results.
    """

    def __init__(self, report: ReconcileReport) -> None:
        failed = ", ".join(g.name for g in report.failed)
        committed = ", ".join(g.name for g in report.committed) or "none"
        super().__init__(
            f"{report.operation} of {report.kind.value} '{report.resource_id}' "
            f"partially failed in: {failed} (committed: {committed})",
            details={"kind": report.kind.value},
        )
        self.report = report
