"""Payment models (one payment per booking request)."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, Enum):
    """Payment status as stored in the payments table."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(BaseModel):
    """Row of the payments table."""

    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    id: Optional[str] = None
    booking_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    amount: Optional[float] = None
    status: PaymentStatus
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[float] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_refundable(self) -> bool:
        """Only succeeded payments with a processor reference can be refunded."""
        return bool(self.stripe_payment_intent_id) and (
            self.status == PaymentStatus.SUCCEEDED
        )


class PaymentCreate(BaseModel):
    """Payment record creation model (``paymentData`` of ``POST /bookings``)."""

    stripe_payment_intent_id: Optional[str] = None
    amount: float = Field(..., ge=0)
