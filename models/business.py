"""Business models used for routing notifications and refunds."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Business(BaseModel):
    """Subset of the businesses table needed by the booking lifecycle."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    business_name: Optional[str] = None
    owner_id: Optional[str] = None


class BusinessStripeAccount(BaseModel):
    """Stripe Connect account linked to a business."""

    model_config = ConfigDict(extra="ignore")

    business_id: Optional[str] = None
    stripe_connect_account_id: Optional[str] = None
