"""
Internal refund endpoint: ``POST /stripe/refund``.

Only reachable by other services holding the internal shared secret,
passed in the ``x-internal-service`` header.
"""

import hmac

from aiohttp import web
from aiohttp.web import Request, Response
from pydantic import ValidationError as PydanticValidationError

from api.responses import error_response, read_json_object
from config import settings
from models.refund import RefundOutcome, RefundRequest
from payments import stripe as stripe_payments
from utils.constants import INTERNAL_SERVICE_HEADER
from utils.exceptions import AuthorizationError, RefundError, ValidationError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="refunds.log", log_dir="logs")


def _check_internal_secret(request: Request) -> None:
    """
    Raises:
        AuthorizationError: If the header is missing or does not match
    """
    expected = settings.internal_secret
    provided = request.headers.get(INTERNAL_SERVICE_HEADER, "")
    if not expected or not provided or not hmac.compare_digest(provided, expected):
        raise AuthorizationError("Invalid or missing internal service credentials")


async def refund_handler(request: Request) -> Response:
    """POST /stripe/refund: refund a payment intent in full."""
    try:
        _check_internal_secret(request)
    except AuthorizationError as e:
        logger.warning(f"Rejected refund request from {request.remote}: {e}")
        return error_response("Unauthorized", 401)

    try:
        payload = await read_json_object(request)
        if not payload.get("paymentIntentId"):
            raise ValidationError("paymentIntentId is required")
        refund_request = RefundRequest.model_validate(payload)
    except ValidationError as e:
        return error_response(str(e), 400)
    except PydanticValidationError:
        return error_response("paymentIntentId is required", 400)

    if not stripe_payments.is_configured():
        logger.warning(
            f"Stripe not configured; refund for {refund_request.payment_intent_id} "
            f"not triggered"
        )
        outcome = RefundOutcome(
            success=False, error="Stripe not configured; refund not triggered."
        )
        return web.json_response(outcome.to_response())

    try:
        outcome = await stripe_payments.create_refund(
            refund_request.payment_intent_id,
            refund_request.stripe_connect_account_id,
        )
    except RefundError as e:
        outcome = RefundOutcome(success=False, error=str(e))
        return web.json_response(outcome.to_response(), status=500)
    except Exception as e:
        logger.error(f"Error processing refund: {e}", exc_info=True)
        outcome = RefundOutcome(success=False, error="Failed to process refund")
        return web.json_response(outcome.to_response(), status=500)

    return web.json_response(outcome.to_response())
