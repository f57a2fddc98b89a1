"""
Notification and message composition for booking lifecycle events.

Pure formatting: given a booking, a status and optional response text,
build the insert payloads. Nothing here touches the database.
"""

from typing import Optional

from models.booking import BookingRequest, BookingStatus
from models.business import Business
from models.message import MessageCreate
from models.notification import NotificationCreate
from utils.constants import (
    BUSINESS_REFUND_TEXT,
    DEFAULT_SENDER_NAME,
    REFUND_TIMELINE_TEXT,
)

STATUS_TITLES = {
    BookingStatus.ACCEPTED: "Booking Confirmed!",
    BookingStatus.COMPLETED: "Service Completed",
    BookingStatus.DECLINED: "Booking Update",
    BookingStatus.CANCELLED: "Booking Cancelled",
}

MESSAGE_SUBJECTS = {
    BookingStatus.ACCEPTED: "Booking Confirmed: {service}",
    BookingStatus.DECLINED: "Booking Update: {service}",
}


def _service_label(booking: BookingRequest) -> str:
    return booking.service_name or "service"


def compose_customer_notification(
    booking: BookingRequest,
    status: BookingStatus,
    response_message: Optional[str] = None,
    refunded: bool = False,
) -> NotificationCreate:
    """
    Build the customer notification for a status transition.

    The business's response message, when given, replaces the default body.
    A successful refund on cancellation appends the refund timeline.
    """
    status = BookingStatus(status)
    message = (
        response_message
        or f"Your {_service_label(booking)} booking has been {status.value}."
    )
    if status == BookingStatus.CANCELLED and refunded:
        message += REFUND_TIMELINE_TEXT

    return NotificationCreate(
        user_id=booking.customer_id,
        type=f"booking_{status.value}",
        title=STATUS_TITLES[status],
        message=message,
    )


def compose_business_cancellation_notification(
    booking: BookingRequest, owner_id: str, refunded: bool = False
) -> NotificationCreate:
    """Confirmation sent to the business owner after they cancel a booking."""
    customer = booking.customer_name or "the customer"
    message = f"You cancelled {customer}'s {_service_label(booking)} booking."
    if refunded:
        message += BUSINESS_REFUND_TEXT

    return NotificationCreate(
        user_id=owner_id,
        type="booking_cancelled_by_business",
        title=STATUS_TITLES[BookingStatus.CANCELLED],
        message=message,
    )


def compose_response_message(
    booking: BookingRequest,
    status: BookingStatus,
    response_message: str,
    business: Optional[Business] = None,
) -> MessageCreate:
    """
    Build the conversation message carrying a business's accept/decline reply.

    The booking ID is used as the conversation ID so the customer finds the
    reply under the booking in their inbox.
    """
    status = BookingStatus(status)
    sender_name = (
        (business.business_name if business else None)
        or booking.business_name
        or DEFAULT_SENDER_NAME
    )

    return MessageCreate(
        sender_id=business.owner_id if business else None,
        recipient_business_id=booking.business_id,
        sender_name=sender_name,
        sender_email=booking.customer_email,
        subject=MESSAGE_SUBJECTS[status].format(service=_service_label(booking)),
        message=response_message,
        sender_business_id=booking.business_id,
        conversation_id=booking.id,
    )


# ========== Payment Event Notifications ==========


def compose_payment_succeeded_notification(booking: BookingRequest) -> NotificationCreate:
    business = booking.business_name or "the business"
    return NotificationCreate(
        user_id=booking.customer_id,
        type="payment_succeeded",
        title="Payment Successful!",
        message=(
            f"Your payment for {_service_label(booking)} with {business} "
            f"has been confirmed."
        ),
    )


def compose_payment_failed_notification(booking: BookingRequest) -> NotificationCreate:
    return NotificationCreate(
        user_id=booking.customer_id,
        type="payment_failed",
        title="Payment Failed",
        message=(
            f"Your payment for {_service_label(booking)} could not be processed. "
            f"Please try again."
        ),
    )


def compose_refund_processed_notification(
    booking: BookingRequest, refunded_amount: float
) -> NotificationCreate:
    return NotificationCreate(
        user_id=booking.customer_id,
        type="payment_refunded",
        title="Refund Processed",
        message=(
            f"Your refund of £{refunded_amount:.2f} for {_service_label(booking)} "
            f"has been processed."
        ),
    )


def compose_new_booking_notification(
    booking: BookingRequest, owner_id: str
) -> NotificationCreate:
    """Alert the business owner about a new booking request."""
    customer = booking.customer_name or "A customer"
    when = f" for {booking.requested_date}" if booking.requested_date else ""
    return NotificationCreate(
        user_id=owner_id,
        type="new_booking_request",
        title="New Booking Request!",
        message=f"{customer} has requested {_service_label(booking)}{when}",
    )
