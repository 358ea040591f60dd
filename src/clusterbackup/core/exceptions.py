"""
Custom exception classes for the clusterbackup framework.

Provides structured error handling with domain-specific exceptions
for the different layers of the backup pipeline:

- Reader errors come from the cluster API collaborator.
- Listing and cancellation errors are fatal for one resource type.
- Resolve and sink errors are absorbed per item and logged.
- Registry errors are startup-time programming faults.
"""

from typing import Any, Dict, Optional


class ClusterBackupException(Exception):
    """Base exception class for all clusterbackup exceptions."""

    pass


class ConfigurationError(ClusterBackupException):
    """Raised when a backup configuration cannot be loaded or is inconsistent."""

    pass


class ReaderError(ClusterBackupException):
    """
    Raised when the cluster reader fails to list or fetch a resource.

    Carries the HTTP status code when the failure came from the API server,
    so callers can render a short reason (forbidden, not found, timeout...).

    Example:
        >>> raise ReaderError(
        ...     "getting configmaps default/cfg-a",
        ...     status_code=500,
        ...     details={"body": "etcdserver: request timed out"},
        ... )
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status_code = status_code
        self.details = details or {}
        if self.details:
            message += f" - {self.details}"
        super().__init__(message)


class ResourceNotFoundError(ReaderError):
    """Raised by ``Reader.get`` when the requested object does not exist."""

    def __init__(self, resource: str, namespace: str, name: str):
        self.resource = resource
        self.namespace = namespace
        self.name = name
        where = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{resource} {where} not found", status_code=404)


class ReaderForbiddenError(ReaderError):
    """Raised when the API server rejects a call with 401/403."""

    pass


class ListingError(ClusterBackupException):
    """Raised when the discovery stage cannot list instances of a resource type."""

    pass


class ResolveError(ClusterBackupException):
    """Raised when a workload's dependencies cannot be resolved at all."""

    pass


class ResolverRegistryError(RuntimeError):
    """Raised on registry misuse such as registering None; a startup programming fault, hence RuntimeError."""

    pass


class NoResolverError(ResolverRegistryError):
    """No registered resolver claims the resource type. Expected and recoverable."""

    pass


class SinkError(ClusterBackupException):
    """Raised when a sink fails to persist a resource."""

    pass


class PipelineCancelled(ClusterBackupException):
    """Raised by a stage that observed cancellation (explicit, deadline or sibling failure)."""

    def __init__(self, stage: str, reason: Optional[str] = None):
        self.stage = stage
        self.reason = reason
        message = f"{stage} cancelled"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class DocumentQueryError(ClusterBackupException):
    """Raised when a document query is malformed or hits a value of the wrong shape."""

    pass


class QueryNotFoundError(DocumentQueryError):
    """Raised by ``docquery.query`` when the addressed path does not exist."""

    def __init__(self, expression: str):
        self.expression = expression
        super().__init__(f"path not found: {expression}")
