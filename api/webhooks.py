"""
Stripe webhook endpoint: ``POST /webhook/stripe``.

- Signature verification
- Payload shape validation and body size limit
- In-memory idempotency by event ID
- Counters reported by ``/health``
"""

import json
import time
from collections import deque
from typing import Any, Dict, Optional

import stripe
from aiohttp import web
from aiohttp.web import Request, Response
from stripe import SignatureVerificationError

from config import settings
from api.state import DB_KEY
from payments import stripe as stripe_payments
from utils.constants import MAX_REQUEST_BODY_SIZE
from utils.exceptions import ValidationError, WebhookVerificationError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="webhook.log", log_dir="logs")

_MAX_EVENT_HISTORY = 1000
_EVENT_ID_CLEANUP_INTERVAL = 3600  # seconds
_EVENT_ID_MAX_AGE = 86400  # seconds

# Per-process state: duplicates are only caught within one worker
_processed_events: deque = deque(maxlen=_MAX_EVENT_HISTORY)
_processed_event_ids: Dict[str, float] = {}  # event_id -> timestamp
_last_cleanup_time = time.time()

_health_metrics: Dict[str, Any] = {
    "total_events": 0,
    "successful_events": 0,
    "failed_events": 0,
    "verification_failures": 0,
    "validation_failures": 0,
    "duplicate_events": 0,
    "start_time": time.time(),
}


def reset_webhook_state() -> None:
    """Clear the idempotency cache, event history and counters."""
    global _last_cleanup_time
    _processed_events.clear()
    _processed_event_ids.clear()
    for key in _health_metrics:
        _health_metrics[key] = 0
    _health_metrics["start_time"] = time.time()
    _last_cleanup_time = time.time()


def _cleanup_old_event_ids() -> None:
    """Drop idempotency entries older than _EVENT_ID_MAX_AGE (at most hourly)."""
    global _last_cleanup_time
    current_time = time.time()

    if current_time - _last_cleanup_time < _EVENT_ID_CLEANUP_INTERVAL:
        return

    cutoff_time = current_time - _EVENT_ID_MAX_AGE
    expired_ids = [
        event_id
        for event_id, timestamp in _processed_event_ids.items()
        if timestamp < cutoff_time
    ]
    for event_id in expired_ids:
        _processed_event_ids.pop(event_id, None)

    _last_cleanup_time = current_time
    if expired_ids:
        logger.debug(f"Cleaned up {len(expired_ids)} expired event IDs")


def _parse_payload(payload: bytes) -> Any:
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ValidationError("Webhook payload is not valid JSON") from e


def _verify_webhook_signature(payload: bytes, signature: Optional[str]) -> Any:
    """
    Verify the Stripe-Signature header and parse the event.

    Verification is skipped only when no webhook secret is set and a
    test-mode secret key is in use.

    Returns:
        Parsed event as plain JSON data

    Raises:
        WebhookVerificationError: If signature verification fails
        ValidationError: If no webhook secret is configured outside test mode
    """
    if not settings.stripe_webhook_secret:
        if settings.stripe_secret_key.startswith("sk_test_"):
            logger.warning(
                "STRIPE_WEBHOOK_SECRET not set - skipping signature verification. "
                "Only acceptable in development."
            )
            return _parse_payload(payload)
        raise ValidationError(
            "Stripe webhook secret is required for webhook verification"
        )

    if not signature:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        stripe.Webhook.construct_event(
            payload, signature, settings.stripe_webhook_secret
        )
    except ValueError as e:
        raise WebhookVerificationError(f"Invalid payload: {e}") from e
    except SignatureVerificationError as e:
        raise WebhookVerificationError(f"Invalid signature: {e}") from e

    # Handlers work on plain dicts rather than StripeObject
    return _parse_payload(payload)


def _validate_webhook_payload(payload: Any) -> None:
    """
    Raises:
        ValidationError: If the event is missing id/type/data
    """
    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    for field in ("id", "type"):
        value = payload.get(field)
        if not isinstance(value, str) or not value:
            raise ValidationError(f"Webhook '{field}' must be a non-empty string")

    if not isinstance(payload.get("data"), dict):
        raise ValidationError("Webhook payload 'data' field must be an object")


def _check_and_mark_idempotency(event_id: str) -> bool:
    """
    Return True if the event was already seen, otherwise mark it as seen.

    There is no await between the check and the mark, so concurrent
    deliveries of one event on the same loop cannot both pass.
    """
    _cleanup_old_event_ids()

    if event_id in _processed_event_ids:
        return True

    _processed_event_ids[event_id] = time.time()
    return False


def _too_large() -> Response:
    _health_metrics["validation_failures"] += 1
    return web.json_response(
        {
            "status": "error",
            "error": "request_too_large",
            "message": f"Request body exceeds maximum size of {MAX_REQUEST_BODY_SIZE} bytes",
        },
        status=413,
    )


async def stripe_webhook_handler(request: Request) -> Response:
    """POST /webhook/stripe: verify, de-duplicate and dispatch a Stripe event."""
    event_id: Optional[str] = None
    event_type: Optional[str] = None

    try:
        if request.content_length and request.content_length > MAX_REQUEST_BODY_SIZE:
            logger.warning(f"Request body too large: {request.content_length} bytes")
            return _too_large()

        raw_body = await request.read()
        if len(raw_body) > MAX_REQUEST_BODY_SIZE:
            logger.warning(f"Request body too large: {len(raw_body)} bytes")
            return _too_large()

        if not raw_body:
            raise ValidationError("Empty payload")

        payload = _verify_webhook_signature(
            raw_body, request.headers.get("Stripe-Signature")
        )
        _validate_webhook_payload(payload)

        event_id = payload["id"]
        event_type = payload["type"]
        logger.info(f"Received Stripe webhook: event_id={event_id}, type={event_type}")

        if _check_and_mark_idempotency(event_id):
            _health_metrics["duplicate_events"] += 1
            logger.info(f"Duplicate webhook event {event_id} ignored")
            return web.json_response(
                {
                    "status": "success",
                    "message": "Event already processed",
                    "event_id": event_id,
                    "event_type": event_type,
                }
            )

        _health_metrics["total_events"] += 1
        try:
            result = await stripe_payments.handle_webhook(payload, request.app[DB_KEY])
        except Exception:
            # Let Stripe redeliver
            _processed_event_ids.pop(event_id, None)
            raise

        _health_metrics["successful_events"] += 1
        _processed_events.append(
            {"id": event_id, "type": event_type, "timestamp": time.time()}
        )
        logger.info(f"Processed webhook {event_id} ({event_type}): {result.get('status')}")

        return web.json_response(
            {
                "status": "success",
                "event_id": event_id,
                "event_type": event_type,
                "result": result,
            }
        )

    except WebhookVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        _health_metrics["verification_failures"] += 1
        return web.json_response(
            {
                "status": "error",
                "error": "verification_failed",
                "message": "Invalid webhook signature",
            },
            status=401,
        )

    except ValidationError as e:
        logger.warning(f"Invalid webhook payload: {e}")
        _health_metrics["validation_failures"] += 1
        return web.json_response(
            {"status": "error", "error": "validation_failed", "message": str(e)},
            status=400,
        )

    except Exception as e:
        logger.error(
            f"Unexpected webhook error (event_id={event_id or 'unknown'}, "
            f"type={event_type or 'unknown'}): {e}",
            exc_info=True,
        )
        _health_metrics["failed_events"] += 1
        return web.json_response(
            {
                "status": "error",
                "error": "processing_failed",
                "message": "Internal server error while processing webhook",
            },
            status=500,
        )


def webhook_metrics() -> Dict[str, Any]:
    """Snapshot of webhook counters for the health endpoint."""
    _cleanup_old_event_ids()

    total = _health_metrics["total_events"]
    success_rate = (_health_metrics["successful_events"] / total * 100) if total else 0.0

    recent_event_types: Dict[str, int] = {}
    for event in _processed_events:
        event_type = event.get("type", "unknown")
        recent_event_types[event_type] = recent_event_types.get(event_type, 0) + 1

    return {
        "total_events": total,
        "successful_events": _health_metrics["successful_events"],
        "failed_events": _health_metrics["failed_events"],
        "verification_failures": _health_metrics["verification_failures"],
        "validation_failures": _health_metrics["validation_failures"],
        "duplicate_events": _health_metrics["duplicate_events"],
        "success_rate_percent": round(success_rate, 2),
        "recent_events_count": len(_processed_events),
        "unique_event_ids_tracked": len(_processed_event_ids),
        "recent_event_types": recent_event_types,
        "uptime_hours": round((time.time() - _health_metrics["start_time"]) / 3600, 2),
    }
