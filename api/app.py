"""
aiohttp application factory.
"""

import time
from typing import Optional

from aiohttp import web
from aiohttp.web import Request, Response

from api.bookings import (
    create_booking_handler,
    list_bookings_handler,
    update_booking_handler,
)
from api.refunds import refund_handler
from api.state import DB_KEY, REFUND_CLIENT_KEY
from api.webhooks import stripe_webhook_handler, webhook_metrics
from bookings.refunds import RefundServiceClient
from config import settings
from db.supabase_client import SupabaseClient, get_db_client
from payments import is_configured as stripe_configured
from utils.constants import MAX_REQUEST_BODY_SIZE


@web.middleware
async def security_headers_middleware(request: Request, handler):
    """Add security headers to every response."""
    response = await handler(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Strict-Transport-Security"] = (
        "max-age=31536000; includeSubDomains"
    )
    response.headers["Cache-Control"] = "no-store"

    return response


async def health_check(request: Request) -> Response:
    """GET /health: liveness plus webhook counters."""
    return web.json_response(
        {
            "status": "ok",
            "service": "booking-lifecycle-service",
            "environment": settings.environment,
            "timestamp": time.time(),
            "webhooks": webhook_metrics(),
            "configuration": {
                "stripe_configured": stripe_configured(),
                "webhook_secret_configured": bool(settings.stripe_webhook_secret),
                "internal_secret_configured": bool(settings.internal_secret),
                "max_request_size_bytes": MAX_REQUEST_BODY_SIZE,
            },
        }
    )


def create_app(
    db: Optional[SupabaseClient] = None,
    refund_client: Optional[RefundServiceClient] = None,
) -> web.Application:
    """
    Create the aiohttp application with middleware and routes.

    Args:
        db: Database client (defaults to the shared Supabase client)
        refund_client: Client for the internal refund endpoint

    Returns:
        Configured web application
    """
    app = web.Application(
        middlewares=[security_headers_middleware],
        client_max_size=MAX_REQUEST_BODY_SIZE,
    )
    app[DB_KEY] = db or get_db_client()
    app[REFUND_CLIENT_KEY] = refund_client or RefundServiceClient()

    app.router.add_patch("/bookings", update_booking_handler)
    app.router.add_post("/bookings", create_booking_handler)
    app.router.add_get("/bookings", list_bookings_handler)
    app.router.add_post("/stripe/refund", refund_handler)
    app.router.add_post("/webhook/stripe", stripe_webhook_handler)
    app.router.add_get("/health", health_check)

    return app
