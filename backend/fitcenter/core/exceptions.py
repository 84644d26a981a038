"""
Custom exceptions for the booking core.
Centralized error taxonomy shared by every service.
"""

from typing import Any, Dict, Optional


class FitnessCenterError(Exception):
    """Base class for all domain failures surfaced to callers."""

    retryable = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class NotFoundError(FitnessCenterError):
    """A referenced appointment, member, purchase, location or service does not exist."""

    pass


class ValidationError(FitnessCenterError):
    """A business rule rejected the request (capacity, timing, entitlement...)."""

    pass


class UnauthorizedError(FitnessCenterError):
    """The principal's role, ownership or location scope forbids the operation."""

    pass


class InvalidStateError(FitnessCenterError):
    """The operation is not permitted given the current status of the entity."""

    pass


class ConcurrencyConflictError(FitnessCenterError):
    """
    The store reported a lock timeout, deadlock or serialization failure.
    All writes were rolled back; the caller may retry.
    """

    retryable = True
