"""Exception hierarchy for the intelligence graph.

Every error carries a stable ``code`` so an API layer can map it to a
structured response without inspecting the message.
"""

from __future__ import annotations


class IntelGraphError(Exception):
    """Base exception for all intelligence-graph errors."""

    code: str = "intelgraph_error"


class NotFoundError(IntelGraphError):
    """Raised when an entity does not exist in the caller's tenant.

    Entities owned by another tenant resolve to this error as well, so
    existence never leaks across tenants.
    """

    code = "not_found"


class DuplicateExternalSourceError(IntelGraphError):
    """Raised when ``(tenant_id, type, external_source_id)`` is already taken."""

    code = "duplicate_external_source"


class CrossTenantError(IntelGraphError):
    """Raised when an operation would link entities from different tenants."""

    code = "cross_tenant"


class InvalidSelfLoopError(IntelGraphError):
    """Raised when a self-loop is created for a non-whitelisted edge type."""

    code = "invalid_self_loop"


class MergeConflictError(IntelGraphError):
    """Raised when a merge cannot be applied.  Nothing was written."""

    code = "merge_conflict"


class CollaboratorError(IntelGraphError):
    """An external collaborator (embedding or narrative model) failed."""

    code = "collaborator_error"


class CollaboratorTimeoutError(CollaboratorError):
    """An external collaborator did not answer within its timeout."""

    code = "collaborator_timeout"


class StorageUnavailableError(IntelGraphError):
    """Raised on database failures.  The message never carries driver details."""

    code = "storage_unavailable"

    def __init__(self, msg: str = "Storage is temporarily unavailable; try again") -> None:
        super().__init__(msg)


class InvalidArgumentError(IntelGraphError, ValueError):
    """Raised when an argument is outside its allowed range."""

    code = "invalid_argument"


class PropertySchemaError(InvalidArgumentError):
    """Raised when ``properties`` do not match the schema for the entity type."""

    code = "invalid_properties"


class OperationCancelledError(IntelGraphError):
    """Raised when a cancellation token fires during a long-running operation."""

    code = "cancelled"


class AuditIntegrityError(IntelGraphError):
    """Raised when the audit hash chain of a tenant does not verify."""

    code = "audit_integrity"
