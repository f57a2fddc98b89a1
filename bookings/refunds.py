"""
Refund trigger for cancelled bookings.

When a booking with a succeeded payment is cancelled, the charge is reversed
through the internal ``POST /stripe/refund`` endpoint and the outcome is
recorded on the booking:

    none -> pending -> processed | failed

``pending`` is written before the processor is called so an interrupted
refund stays visible (see scheduler.refund_reconciliation). There is one
attempt per cancellation and no automatic retry.
"""

from typing import Optional

import httpx

from config import settings
from db.supabase_client import SupabaseClient
from models.booking import BookingRequest, RefundStatus
from models.refund import RefundOutcome
from utils.constants import INTERNAL_SERVICE_HEADER
from utils.exceptions import DatabaseError, RefundError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="refunds.log", log_dir="logs")


class RefundServiceClient:
    """HTTP client for the internal refund endpoint."""

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        internal_secret: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.endpoint_url = endpoint_url or settings.refund_endpoint_url
        self.internal_secret = (
            internal_secret if internal_secret is not None else settings.internal_secret
        )
        self.timeout = (
            timeout if timeout is not None else settings.internal_request_timeout_seconds
        )

    async def request_refund(
        self,
        payment_intent_id: str,
        stripe_connect_account_id: Optional[str] = None,
    ) -> RefundOutcome:
        """
        Ask the refund endpoint to reverse a payment.

        Args:
            payment_intent_id: Stripe payment intent of the original charge
            stripe_connect_account_id: Connected account of the business, if any

        Returns:
            The endpoint's RefundOutcome (success or failure)

        Raises:
            RefundError: If the endpoint cannot be reached or returns a body
                that is not a refund outcome
        """
        body = {"paymentIntentId": payment_intent_id}
        if stripe_connect_account_id:
            body["stripeConnectAccountId"] = stripe_connect_account_id

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.endpoint_url,
                    json=body,
                    headers={INTERNAL_SERVICE_HEADER: self.internal_secret},
                )
            payload = response.json()
        except httpx.HTTPError as e:
            raise RefundError(f"Refund endpoint unreachable: {e}") from e
        except ValueError as e:
            raise RefundError(
                f"Refund endpoint returned invalid JSON (HTTP {response.status_code})"
            ) from e

        if not isinstance(payload, dict) or "success" not in payload:
            raise RefundError(
                f"Unexpected refund endpoint response (HTTP {response.status_code})"
            )
        return RefundOutcome.model_validate(payload)


async def _record_refund_status(
    db: SupabaseClient,
    booking_id: str,
    refund_status: RefundStatus,
    refund_id: Optional[str] = None,
) -> None:
    """Best-effort refund bookkeeping write."""
    try:
        await db.set_refund_status(booking_id, refund_status, refund_id=refund_id)
    except DatabaseError as e:
        logger.error(
            f"Failed to mark refund {refund_status.value} for booking {booking_id}: {e}",
            exc_info=True,
        )


async def trigger_refund(
    db: SupabaseClient,
    refund_client: RefundServiceClient,
    booking: BookingRequest,
) -> Optional[RefundOutcome]:
    """
    Refund the payment of a booking being cancelled.

    Args:
        db: Database client
        refund_client: Client for the internal refund endpoint
        booking: The booking, already persisted as cancelled

    Returns:
        The refund outcome, or None if there was nothing to refund
    """
    try:
        payment = await db.get_payment_for_booking(booking.id)
    except DatabaseError as e:
        logger.error(f"Failed to look up payment for booking {booking.id}: {e}")
        return None

    if payment is None or not payment.is_refundable:
        logger.debug(f"Booking {booking.id} has no refundable payment")
        return None

    logger.info(f"Booking {booking.id} has a succeeded payment - triggering refund")
    await _record_refund_status(db, booking.id, RefundStatus.PENDING)

    try:
        connect_account_id = None
        try:
            account = await db.get_business_stripe_account(booking.business_id)
            if account:
                connect_account_id = account.stripe_connect_account_id
        except DatabaseError as e:
            logger.warning(
                f"Stripe account lookup failed for business {booking.business_id}: {e}"
            )

        outcome = await refund_client.request_refund(
            payment.stripe_payment_intent_id, connect_account_id
        )
    except Exception as e:
        logger.error(f"Error triggering refund for booking {booking.id}: {e}", exc_info=True)
        await _record_refund_status(db, booking.id, RefundStatus.FAILED)
        return RefundOutcome(success=False, error=str(e))

    if outcome.success:
        await _record_refund_status(
            db, booking.id, RefundStatus.PROCESSED, refund_id=outcome.refund_id
        )
        logger.info(f"Refund processed for booking {booking.id}: {outcome.refund_id}")
    else:
        await _record_refund_status(db, booking.id, RefundStatus.FAILED)
        logger.error(f"Refund failed for booking {booking.id}: {outcome.error}")

    return outcome
