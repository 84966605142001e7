"""
Errors raised by supplier management and consolidation.

Every error carries a user-facing message; callers (CLI, API) show it
as-is. None of them is fatal to the application: each is scoped to the
single operation that raised it.
"""
from typing import Optional


class SupplierError(Exception):
    """Base class for all supplier management errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SupplierError):
    """Supplier fields missing or malformed. Raised before any store call."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        summary = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(f"Invalid supplier data — {summary}")


class ConflictError(SupplierError):
    """The requested operation contradicts the current identity set."""


class NotFoundError(SupplierError):
    """A referenced supplier or merge intent does not exist."""


class PartialFailureError(SupplierError):
    """
    One or more material updates failed during a merge.

    Already repointed materials are not reverted. The merge intent stays
    open so the operation can be resumed.
    """

    def __init__(
        self,
        intent_id: str,
        migrated: list[str],
        failed: dict[str, str],
        message: Optional[str] = None,
    ):
        self.intent_id = intent_id
        self.migrated = list(migrated)
        self.failed = dict(failed)
        super().__init__(
            message
            or f"Merge partially completed: {len(self.migrated)} materials migrated, "
               f"{len(self.failed)} failed (intent {intent_id})"
        )
