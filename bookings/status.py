"""
Booking status transition.

Persists a new status on a booking request and runs the side effects that
follow from it, in order:

1. status (and cancellation metadata) is written; failure aborts
2. the business's response message is stored on the booking
3. cancellation triggers a refund when a succeeded payment exists
4. the customer is notified
5. an accept/decline reply becomes a conversation message
6. a business-initiated cancellation is confirmed to the business owner

Only step 1 can fail the request. Everything after it is best-effort: errors
are logged and the status change stands.
"""

from dataclasses import dataclass
from typing import Optional

from bookings.notifications import (
    compose_business_cancellation_notification,
    compose_customer_notification,
    compose_response_message,
)
from bookings.refunds import RefundServiceClient, trigger_refund
from db.supabase_client import SupabaseClient
from models.booking import BookingRequest, BookingStatus, BookingStatusUpdate, CancelledBy
from models.business import Business
from models.refund import RefundOutcome
from utils.exceptions import DatabaseError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__)


@dataclass
class StatusUpdateResult:
    """Outcome of a status transition returned to the caller."""

    booking: BookingRequest
    refund: Optional[RefundOutcome] = None

    @property
    def refunded(self) -> bool:
        return bool(self.refund and self.refund.success)


async def _get_business(db: SupabaseClient, business_id: str) -> Optional[Business]:
    try:
        return await db.get_business(business_id)
    except DatabaseError as e:
        logger.error(f"Failed to look up business {business_id}: {e}")
        return None


async def update_booking_status(
    db: SupabaseClient,
    refund_client: RefundServiceClient,
    update: BookingStatusUpdate,
) -> StatusUpdateResult:
    """
    Apply a status change to a booking and fan out its side effects.

    Transitions are not checked against the booking's current status; any
    target status is accepted from any state.

    Args:
        db: Database client
        refund_client: Client for the internal refund endpoint
        update: Validated status-change request

    Returns:
        The updated booking and the refund outcome (None unless a refund
        was attempted)

    Raises:
        BookingNotFoundError: If the booking does not exist
        DatabaseError: If the status itself cannot be persisted
    """
    status = BookingStatus(update.status)

    booking = await db.update_booking_status(
        update.booking_id,
        status,
        cancelled_by=update.cancelled_by,
        cancellation_reason=update.cancellation_reason,
    )
    logger.info(f"Booking {booking.id} moved to {status.value}")

    if update.response_message:
        try:
            updated = await db.set_response_message(booking.id, update.response_message)
            if updated:
                booking = updated
        except DatabaseError as e:
            # The conversation message below still carries the reply
            logger.warning(
                f"Could not store response_message on booking {booking.id}: {e}"
            )

    result = StatusUpdateResult(booking=booking)

    if status == BookingStatus.CANCELLED:
        result.refund = await trigger_refund(db, refund_client, booking)

    try:
        await db.create_notification(
            compose_customer_notification(
                booking, status, update.response_message, refunded=result.refunded
            )
        )
    except DatabaseError as e:
        logger.error(
            f"Error creating customer notification for booking {booking.id}: {e}",
            exc_info=True,
        )

    business: Optional[Business] = None

    if update.response_message and status in (
        BookingStatus.ACCEPTED,
        BookingStatus.DECLINED,
    ):
        business = await _get_business(db, booking.business_id)
        try:
            await db.create_message(
                compose_response_message(
                    booking, status, update.response_message, business
                )
            )
            logger.info(f"Created message for customer about booking {status.value}")
        except DatabaseError as e:
            logger.error(
                f"Error creating booking response message for {booking.id} "
                f"(business {booking.business_id}): {e}",
                exc_info=True,
            )

    if status == BookingStatus.CANCELLED and update.cancelled_by == CancelledBy.BUSINESS:
        business = business or await _get_business(db, booking.business_id)
        if business and business.owner_id:
            try:
                await db.create_notification(
                    compose_business_cancellation_notification(
                        booking, business.owner_id, refunded=result.refunded
                    )
                )
            except DatabaseError as e:
                logger.error(
                    f"Error notifying owner of business {booking.business_id}: {e}",
                    exc_info=True,
                )
        else:
            logger.warning(
                f"No owner found for business {booking.business_id}; "
                f"skipping cancellation confirmation"
            )

    return result
