"""Error types raised by the reconciliation engine and its collaborators."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for every error raised by sync_reservations."""


class ValidationRejection(ReconciliationError):
    """
    A single upstream record cannot be reconciled.

    Rejections are recorded in the batch summary and never abort the batch.
    """

    def __init__(self, reason: str, detail: str | None = None) -> None:
        super().__init__(detail or reason)
        self.reason = reason
        self.detail = detail


class StoreFailure(ReconciliationError):
    """A store mutation for one record failed and its transaction was rolled back."""


class StoreUnavailable(ReconciliationError):
    """The store connection is gone; no further record can be written."""


class ProvisioningFailure(ReconciliationError):
    """Tenant provisioning failed, so the batch cannot start."""


class ReservationNotFound(ReconciliationError):
    """No reservation with the given id exists for the tenant."""


class ReservationAlreadyConfirmed(ReconciliationError):
    """The reservation status is already "confirmed"."""
