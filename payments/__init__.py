"""Payment processing with Stripe."""

from .stripe import (
    create_refund,
    find_refund_for_payment_intent,
    get_payment_intent,
    handle_webhook,
    is_configured,
)

__all__ = [
    "create_refund",
    "find_refund_for_payment_intent",
    "get_payment_intent",
    "handle_webhook",
    "is_configured",
]
