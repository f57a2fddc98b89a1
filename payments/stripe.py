"""
Stripe integration for booking refunds and payment webhooks.
"""

import asyncio
from typing import Any, Dict, Optional

import stripe
from stripe import PaymentIntent, StripeError

from bookings.notifications import (
    compose_payment_failed_notification,
    compose_payment_succeeded_notification,
    compose_refund_processed_notification,
)
from config import settings
from db import SupabaseClient, get_db_client
from models.notification import NotificationCreate
from models.payment import Payment, PaymentStatus
from models.refund import RefundOutcome
from utils.datetime_utils import to_iso_string, utc_now
from utils.exceptions import DatabaseError, RefundError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="payments.log", log_dir="logs")

# Initialize Stripe
stripe.api_key = settings.stripe_secret_key

# Retry configuration (reads only; refunds are never retried)
_MAX_RETRIES = 3
_RETRY_DELAY = 1.0  # seconds
_RETRY_BACKOFF = 2.0  # exponential backoff multiplier

# Refund states Stripe reports for a refund that will reach the customer
_LIVE_REFUND_STATES = ("succeeded", "pending", "requires_action")

_PAYMENT_INTENT_EVENTS = (
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
)


def is_configured() -> bool:
    """Whether a Stripe secret key is available."""
    return bool(settings.stripe_secret_key)


async def get_payment_intent(payment_intent_id: str) -> Optional[PaymentIntent]:
    """
    Get payment intent by ID.

    Runs the synchronous SDK call in a worker thread and retries transient
    (5xx / network) failures with exponential backoff.

    Args:
        payment_intent_id: Stripe payment intent ID

    Returns:
        PaymentIntent object or None if not found

    Raises:
        ValueError: If payment_intent_id is empty
    """
    if not payment_intent_id:
        raise ValueError("Payment intent ID is required")

    delay = _RETRY_DELAY

    for attempt in range(_MAX_RETRIES):
        try:
            return await asyncio.to_thread(
                stripe.PaymentIntent.retrieve, payment_intent_id
            )
        except StripeError as e:
            if e.http_status and 400 <= e.http_status < 500:
                logger.debug(
                    f"Payment intent {payment_intent_id} not found or client error: {e}"
                )
                return None

            if attempt < _MAX_RETRIES - 1:
                logger.warning(
                    f"Stripe error (attempt {attempt + 1}/{_MAX_RETRIES}) retrieving "
                    f"payment intent {payment_intent_id}: {e}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                delay *= _RETRY_BACKOFF
            else:
                logger.error(
                    f"Stripe error retrieving payment intent {payment_intent_id} "
                    f"after {_MAX_RETRIES} attempts: {e}",
                    exc_info=True,
                )
                return None

    return None


async def create_refund(
    payment_intent_id: str,
    stripe_connect_account_id: Optional[str] = None,
) -> RefundOutcome:
    """
    Refund a payment intent in full.

    For Stripe Connect destination charges (or when the business has a
    connected account) the transfer is reversed out of the business's
    account and the platform fee is refunded too, so the customer gets the
    whole amount back.

    A single attempt: refunds are not retried here.

    Args:
        payment_intent_id: Stripe payment intent ID of the original charge
        stripe_connect_account_id: Connected account of the business, if any

    Returns:
        Successful RefundOutcome carrying the Stripe refund ID

    Raises:
        RefundError: If the payment intent cannot be found or Stripe
            rejects the refund
    """
    if not payment_intent_id:
        raise ValueError("Payment intent ID is required")

    payment_intent = await get_payment_intent(payment_intent_id)
    if payment_intent is None:
        raise RefundError(f"Payment intent {payment_intent_id} not found")

    transfer_data = getattr(payment_intent, "transfer_data", None)
    destination = getattr(transfer_data, "destination", None) if transfer_data else None
    connected_account_id = destination or stripe_connect_account_id

    refund_params: Dict[str, Any] = {"payment_intent": payment_intent_id}
    if connected_account_id:
        logger.info(
            f"Refunding Stripe Connect payment {payment_intent_id} "
            f"(connected account {connected_account_id})"
        )
        refund_params["reverse_transfer"] = True
        refund_params["refund_application_fee"] = True

    try:
        refund = await asyncio.to_thread(stripe.Refund.create, **refund_params)
    except StripeError as e:
        logger.error(
            f"Stripe refund failed for payment intent {payment_intent_id}: {e}",
            exc_info=True,
        )
        raise RefundError(f"Refund failed: {e}") from e

    logger.info(f"Created refund {refund.id} for payment intent {payment_intent_id}")
    return RefundOutcome(
        success=True,
        refund_id=refund.id,
        status=refund.status,
        is_connect_payment=bool(destination),
    )


async def find_refund_for_payment_intent(payment_intent_id: str) -> Optional[Any]:
    """
    Return an existing live refund for a payment intent, if Stripe has one.

    Raises:
        RefundError: If Stripe cannot be queried
    """
    try:
        refunds = await asyncio.to_thread(
            stripe.Refund.list, payment_intent=payment_intent_id, limit=10
        )
    except StripeError as e:
        raise RefundError(
            f"Failed to list refunds for {payment_intent_id}: {e}"
        ) from e

    for refund in refunds.data:
        if refund.status in _LIVE_REFUND_STATES:
            return refund
    return None


# ========== Webhook Event Handling ==========


async def _notify_booking_customer(
    db: SupabaseClient, payment: Optional[Payment], compose
) -> None:
    """Send a payment notification to the customer of the payment's booking."""
    if not payment or not payment.booking_id:
        return

    try:
        booking = await db.get_booking_by_id(payment.booking_id)
        if booking:
            notification: NotificationCreate = compose(booking)
            await db.create_notification(notification)
    except DatabaseError as e:
        logger.error(
            f"Failed to notify customer for booking {payment.booking_id}: {e}",
            exc_info=True,
        )


async def handle_webhook(event_data: dict, db: Optional[SupabaseClient] = None) -> dict:
    """
    Handle Stripe webhook events.

    Payment rows follow the processor: succeeded, failed and refunded. The
    booking's own lifecycle status is left untouched.

    Args:
        event_data: Verified Stripe webhook event
        db: Database client (defaults to the shared client)

    Returns:
        Response dict
    """
    event_type = event_data.get("type")
    obj = event_data.get("data", {}).get("object")

    if not obj:
        return {"status": "error", "message": "Invalid webhook data"}

    db = db or get_db_client()

    intent_id = obj.get("id")
    if event_type in _PAYMENT_INTENT_EVENTS and not intent_id:
        logger.warning(f"{event_type} event without a payment intent id")
        return {"status": "ignored", "message": "No payment intent id"}

    if event_type == "payment_intent.succeeded":
        payment = await db.update_payment_by_intent(
            intent_id,
            {
                "status": PaymentStatus.SUCCEEDED.value,
                "paid_at": to_iso_string(utc_now()),
            },
        )
        if payment is None:
            # The payment row may be written after Stripe delivers the event
            logger.info(f"No payment record yet for {intent_id}")
            return {"status": "ignored", "payment_intent_id": intent_id}

        await _notify_booking_customer(db, payment, compose_payment_succeeded_notification)
        logger.info(f"Payment {intent_id} marked as succeeded")
        return {"status": "success", "payment_intent_id": intent_id}

    if event_type in ("payment_intent.payment_failed", "payment_intent.canceled"):
        if event_type == "payment_intent.canceled":
            reason = "Payment was canceled"
        else:
            last_error = obj.get("last_payment_error") or {}
            reason = last_error.get("message") or last_error.get("code") or "Payment failed"

        payment = await db.update_payment_by_intent(
            intent_id,
            {"status": PaymentStatus.FAILED.value, "failure_reason": reason},
        )
        await _notify_booking_customer(db, payment, compose_payment_failed_notification)
        logger.warning(f"Payment {intent_id} marked as failed: {reason}")
        return {"status": "failed", "payment_intent_id": intent_id}

    if event_type == "charge.refunded":
        payment_intent = obj.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        if not payment_intent:
            logger.warning(f"Refunded charge {obj.get('id')} has no payment intent")
            return {"status": "ignored", "message": "No payment intent on charge"}

        refunded_amount = (obj.get("amount_refunded") or 0) / 100
        payment = await db.update_payment_by_intent(
            payment_intent,
            {
                "status": PaymentStatus.REFUNDED.value,
                "refunded_at": to_iso_string(utc_now()),
                "refund_amount": refunded_amount,
            },
        )
        await _notify_booking_customer(
            db,
            payment,
            lambda booking: compose_refund_processed_notification(
                booking, refunded_amount
            ),
        )
        logger.info(f"Payment {payment_intent} marked as refunded (£{refunded_amount:.2f})")
        return {"status": "refunded", "payment_intent_id": payment_intent}

    if event_type == "charge.dispute.created":
        logger.warning(
            f"Dispute {obj.get('id')} created for charge {obj.get('charge')}: "
            f"manual review required"
        )
        return {"status": "flagged", "dispute_id": obj.get("id")}

    return {"status": "processed", "event_type": event_type}
