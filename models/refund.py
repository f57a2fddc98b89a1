"""Refund request/outcome models exchanged with the internal refund endpoint."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RefundRequest(BaseModel):
    """Body of ``POST /stripe/refund``."""

    model_config = ConfigDict(populate_by_name=True)

    payment_intent_id: str = Field(..., alias="paymentIntentId", min_length=1)
    stripe_connect_account_id: Optional[str] = Field(
        None, alias="stripeConnectAccountId"
    )


class RefundOutcome(BaseModel):
    """Result of a refund attempt, serialized in camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool
    refund_id: Optional[str] = Field(None, alias="refundId")
    status: Optional[str] = None
    is_connect_payment: Optional[bool] = Field(None, alias="isConnectPayment")
    error: Optional[str] = None

    def to_response(self) -> dict:
        """Serialize for a JSON response, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
