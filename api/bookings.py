"""
HTTP handlers for ``/bookings``.

- ``PATCH``: status transition (accept, decline, complete, cancel)
- ``POST``: create a booking request after checkout
- ``GET``: list bookings for a business or a customer
"""

from aiohttp import web
from aiohttp.web import Request, Response
from pydantic import ValidationError as PydanticValidationError

from api.responses import error_response, read_json_object
from api.state import DB_KEY, REFUND_CLIENT_KEY
from bookings.creation import create_booking
from bookings.status import update_booking_status
from models.booking import BookingCreate, BookingStatusUpdate
from models.payment import PaymentCreate
from utils.exceptions import BookingNotFoundError, DatabaseError, ValidationError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="bookings.log", log_dir="logs")


def _first_error(e: PydanticValidationError) -> str:
    error = e.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else error["msg"]


async def update_booking_handler(request: Request) -> Response:
    """PATCH /bookings: change a booking's status."""
    try:
        payload = await read_json_object(request)
        update = BookingStatusUpdate.from_payload(payload)
    except ValidationError as e:
        return error_response(str(e), 400)
    except PydanticValidationError as e:
        return error_response(_first_error(e), 400)

    try:
        result = await update_booking_status(
            request.app[DB_KEY], request.app[REFUND_CLIENT_KEY], update
        )
    except BookingNotFoundError as e:
        logger.info(f"Status update for unknown booking: {e}")
        return error_response("Booking not found", 404)
    except DatabaseError as e:
        logger.error(f"Error updating booking {update.booking_id}: {e}", exc_info=True)
        return error_response("Failed to update booking", 500)
    except Exception as e:
        logger.error(f"Error in PATCH /bookings: {e}", exc_info=True)
        return error_response("Internal server error", 500)

    return web.json_response(
        {
            "success": True,
            "booking": result.booking.model_dump(mode="json"),
            "refund": result.refund.to_response() if result.refund else None,
        }
    )


async def create_booking_handler(request: Request) -> Response:
    """POST /bookings: create a booking request and record its payment."""
    try:
        payload = await read_json_object(request)
        booking_data = payload.get("bookingData")
        if not isinstance(booking_data, dict):
            raise ValidationError("bookingData is required")

        payment_data = payload.get("paymentData")
        if payment_data is not None and not isinstance(payment_data, dict):
            raise ValidationError("paymentData must be an object")

        booking = BookingCreate.model_validate(booking_data)
        payment = PaymentCreate.model_validate(payment_data) if payment_data else None
    except ValidationError as e:
        return error_response(str(e), 400)
    except PydanticValidationError as e:
        return error_response(_first_error(e), 400)

    try:
        result = await create_booking(request.app[DB_KEY], booking, payment)
    except DatabaseError as e:
        logger.error(f"Error creating booking: {e}", exc_info=True)
        return error_response("Failed to create booking", 500)
    except Exception as e:
        logger.error(f"Error in POST /bookings: {e}", exc_info=True)
        return error_response("Internal server error", 500)

    return web.json_response(
        {
            "success": True,
            "booking": result.booking.model_dump(mode="json"),
            "payment": result.payment.model_dump(mode="json") if result.payment else None,
        }
    )


async def list_bookings_handler(request: Request) -> Response:
    """GET /bookings?businessId=... or ?customerId=..."""
    business_id = request.query.get("businessId")
    customer_id = request.query.get("customerId")

    if bool(business_id) == bool(customer_id):
        return error_response("Exactly one of businessId or customerId is required", 400)

    try:
        bookings = await request.app[DB_KEY].list_bookings(
            business_id=business_id, customer_id=customer_id
        )
    except DatabaseError as e:
        logger.error(f"Error listing bookings: {e}", exc_info=True)
        return error_response("Failed to fetch bookings", 500)

    return web.json_response(
        {
            "success": True,
            "bookings": [booking.model_dump(mode="json") for booking in bookings],
        }
    )
