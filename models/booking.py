"""Booking request models for the booking lifecycle."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.exceptions import ValidationError
from utils.validation import missing_fields, validate_email


class BookingStatus(str, Enum):
    """Booking request lifecycle status."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses a status-change request may target. Any of them may be requested
# regardless of the booking's current status.
TARGET_STATUSES = (
    BookingStatus.ACCEPTED,
    BookingStatus.DECLINED,
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
)


class RefundStatus(str, Enum):
    """Refund bookkeeping status stored on a cancelled booking."""

    NONE = "none"
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class CancelledBy(str, Enum):
    """Party that initiated a cancellation."""

    CUSTOMER = "customer"
    BUSINESS = "business"


class BookingRequest(BaseModel):
    """Row of the booking_requests table."""

    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    id: str
    customer_id: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    business_id: str
    business_name: Optional[str] = None
    service_id: Optional[str] = None
    service_name: Optional[str] = None
    requested_date: Optional[str] = None
    requested_time: Optional[str] = None
    total_cost: Optional[float] = None
    platform_fee: Optional[float] = None
    status: BookingStatus = BookingStatus.PENDING
    response_message: Optional[str] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = None
    refund_status: Optional[RefundStatus] = None
    refund_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def effective_refund_status(self) -> RefundStatus:
        """Refund status with a missing column value read as ``none``."""
        return RefundStatus(self.refund_status or RefundStatus.NONE)


class BookingStatusUpdate(BaseModel):
    """Status-change request accepted by ``PATCH /bookings``."""

    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(..., alias="bookingId")
    status: BookingStatus
    # Free text is stored exactly as supplied
    response_message: Optional[str] = Field(None, alias="responseMessage")
    cancelled_by: Optional[CancelledBy] = Field(None, alias="cancelledBy")
    cancellation_reason: Optional[str] = Field(None, alias="cancellationReason")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "BookingStatusUpdate":
        """
        Build a status update from a raw JSON body.

        Raises:
            ValidationError: If required fields are missing or a value is
                outside its allowed set
        """
        if not isinstance(payload, dict) or missing_fields(
            payload, ("bookingId", "status")
        ):
            raise ValidationError("bookingId and status are required")

        valid_statuses = [s.value for s in TARGET_STATUSES]
        if payload["status"] not in valid_statuses:
            raise ValidationError(
                "Invalid status. Must be one of: " + ", ".join(valid_statuses)
            )

        cancelled_by = payload.get("cancelledBy")
        if cancelled_by is not None and cancelled_by not in [
            c.value for c in CancelledBy
        ]:
            raise ValidationError("cancelledBy must be one of: customer, business")

        return cls.model_validate(payload)


class BookingCreate(BaseModel):
    """Booking request creation model (``bookingData`` of ``POST /bookings``)."""

    customer_id: str = Field(..., min_length=1)
    customer_name: str
    customer_email: str
    business_id: str = Field(..., min_length=1)
    business_name: Optional[str] = None
    service_id: Optional[str] = None
    service_name: str
    requested_date: str
    requested_time: Optional[str] = None
    total_cost: float = Field(..., ge=0)
    platform_fee: float = Field(0, ge=0)

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not validate_email(v):
            raise ValueError("customer_email is not a valid email address")
        return v
