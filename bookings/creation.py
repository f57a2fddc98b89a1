"""
Booking request creation after a successful checkout.
"""

from dataclasses import dataclass
from typing import Optional

from bookings.notifications import compose_new_booking_notification
from db.supabase_client import SupabaseClient
from models.booking import BookingCreate, BookingRequest
from models.payment import Payment, PaymentCreate
from utils.exceptions import DatabaseError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__)


@dataclass
class BookingCreationResult:
    booking: BookingRequest
    payment: Optional[Payment] = None


async def create_booking(
    db: SupabaseClient,
    booking_data: BookingCreate,
    payment_data: Optional[PaymentCreate] = None,
) -> BookingCreationResult:
    """
    Create a pending booking, record its payment and alert the business.

    Only the booking insert can fail the call. The payment row and the
    owner notification are written best-effort.

    Args:
        db: Database client
        booking_data: Validated booking fields
        payment_data: Payment captured at checkout, if any

    Returns:
        The created booking and payment (None if not recorded)

    Raises:
        DatabaseError: If the booking cannot be inserted
    """
    booking = await db.create_booking(booking_data)
    logger.info(
        f"Created booking {booking.id} for business {booking.business_id} "
        f"(customer {booking.customer_id})"
    )

    result = BookingCreationResult(booking=booking)

    if payment_data is not None:
        try:
            result.payment = await db.create_payment(booking.id, payment_data)
        except DatabaseError as e:
            logger.error(
                f"Error creating payment record for booking {booking.id}: {e}",
                exc_info=True,
            )

    try:
        business = await db.get_business(booking.business_id)
        if business and business.owner_id:
            await db.create_notification(
                compose_new_booking_notification(booking, business.owner_id)
            )
    except DatabaseError as e:
        logger.error(
            f"Error notifying business {booking.business_id} of new booking: {e}",
            exc_info=True,
        )

    return result
