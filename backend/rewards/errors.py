# Overview: Error taxonomy shared by the service layer and the API routes.

from __future__ import annotations


class RewardsError(Exception):
    """Base for every error the rewards services raise on purpose."""

    code = "REWARDS_ERROR"
    status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvalidInputError(RewardsError, ValueError):
    """400-level input problem. Raised before any state is touched."""

    code = "INVALID_INPUT"
    status = 400


class NotFoundError(RewardsError):
    """Account, catalog item, or purchase request is missing."""

    code = "NOT_FOUND"
    status = 404


class ConflictError(RewardsError):
    """409-level conflict with the caller's view of a record (stale version)."""

    code = "CONFLICT"
    status = 409


class InsufficientPointsError(RewardsError):
    code = "INSUFFICIENT_POINTS"
    status = 409


class InsufficientStockError(RewardsError):
    code = "INSUFFICIENT_STOCK"
    status = 409


class PersistenceConflict(RewardsError):
    """Transaction contention. Retried internally, never surfaced as-is."""

    code = "PERSISTENCE_CONFLICT"
    status = 503


class PersistenceFailure(RewardsError):
    """Backend failure, or contention that outlived every retry."""

    code = "PERSISTENCE_FAILURE"
    status = 503


# Expected business outcomes: returned as typed results, not raised to callers
BUSINESS_FAILURES = (InsufficientPointsError, InsufficientStockError)


def error_payload(exc: RewardsError) -> dict:
    return {"error": str(exc), "code": exc.code, "details": exc.details}
