"""
Reconciler Exception Hierarchy

Centralized exception classes for structured error handling across the codebase.
All reconciler-specific exceptions inherit from ReconcilerError.

Usage:
    from reconciler.exceptions import NotFoundError, TransientStoreError

    try:
        store.get_by_id("members", member_id)
    except NotFoundError:
        logger.debug(f"Member already gone: {member_id}")
"""


class ReconcilerError(Exception):
    """Base exception for all reconciler errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ReconcilerError):
    """Error in reconciler configuration (reference map, runtime settings)."""

    pass


class UnknownTargetError(ConfigurationError):
    """Requested cleanup target is not registered in the reference map."""

    pass


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(ReconcilerError):
    """Base class for document store errors."""

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        document_id: str | None = None,
    ):
        details = {}
        if collection:
            details["collection"] = collection
        if document_id:
            details["id"] = document_id
        super().__init__(message, details)
        self.collection = collection
        self.document_id = document_id


class NotFoundError(StorageError):
    """Document does not exist. Deletes treat this as a successful no-op."""

    pass


class CapabilityUnavailableError(StorageError):
    """Optional store capability (e.g. join_on_missing) is not supported."""

    pass


class TransientStoreError(StorageError):
    """Store call failed; recorded into the cleanup summary, never retried here."""

    pass


# =============================================================================
# Sweep Errors
# =============================================================================


class SweepError(ReconcilerError):
    """Base class for profile sweep errors."""

    pass


class RefreshError(SweepError):
    """Refreshing a single member's derived profile failed."""

    def __init__(self, message: str, member_id: str | None = None):
        details = {"member_id": member_id} if member_id else {}
        super().__init__(message, details)
        self.member_id = member_id
