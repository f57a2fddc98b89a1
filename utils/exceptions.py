"""
Custom exception classes for better error handling.
Provides specific error types instead of generic exceptions.
"""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class BookingNotFoundError(DatabaseError):
    """Raised when a booking request is not found."""

    pass


class PaymentError(Exception):
    """Base exception for payment operations."""

    pass


class RefundError(PaymentError):
    """Raised when a refund cannot be requested or created."""

    pass


class WebhookVerificationError(Exception):
    """Raised when webhook signature verification fails."""

    pass


class AuthorizationError(Exception):
    """Raised when an internal endpoint is called without a valid secret."""

    pass


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass
