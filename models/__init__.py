"""Pydantic models for data validation and serialization."""

from .booking import (
    TARGET_STATUSES,
    BookingCreate,
    BookingRequest,
    BookingStatus,
    BookingStatusUpdate,
    CancelledBy,
    RefundStatus,
)
from .business import Business, BusinessStripeAccount
from .message import Message, MessageCreate
from .notification import Notification, NotificationCreate
from .payment import Payment, PaymentCreate, PaymentStatus
from .refund import RefundOutcome, RefundRequest

__all__ = [
    "TARGET_STATUSES",
    "BookingCreate",
    "BookingRequest",
    "BookingStatus",
    "BookingStatusUpdate",
    "CancelledBy",
    "RefundStatus",
    "Business",
    "BusinessStripeAccount",
    "Message",
    "MessageCreate",
    "Notification",
    "NotificationCreate",
    "Payment",
    "PaymentCreate",
    "PaymentStatus",
    "RefundOutcome",
    "RefundRequest",
]
