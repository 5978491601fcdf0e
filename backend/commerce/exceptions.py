# backend/commerce/exceptions.py
"""
Custom exceptions for the commerce scheduling backend.

Every error a caller can act on has its own class so the HTTP layer can
map it to a status code without inspecting messages.
"""

from typing import Optional

from .enums import RejectionReason


class CommerceError(Exception):
    """Base exception for all commerce-specific errors."""

    pass


class CustomerNotFoundError(CommerceError):
    """Raised when a user id does not resolve to a customer."""

    def __init__(self, message: str = "Customer not found"):
        super().__init__(message)


class ReplenishmentNotFoundError(CommerceError):
    """Raised when a replenishment does not exist for the requesting customer."""

    def __init__(self, message: str = "Replenishment not found"):
        super().__init__(message)


class InvalidStateTransitionError(CommerceError):
    """Raised when a replenishment's status forbids the requested change."""

    def __init__(self, reason: RejectionReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or reason.value)


class InvalidScheduleError(CommerceError):
    """Raised for interval, unit, date or occurrence-limit values that cannot be scheduled."""

    pass


class SchedulingFailureError(CommerceError):
    """Raised when the job queue does not hand back a job for a scheduler upsert."""

    def __init__(self, message: str = "Failed to schedule job"):
        super().__init__(message)


class PaymentGatewayError(CommerceError):
    """Raised when the payment service rejects or cannot process a request."""

    pass
