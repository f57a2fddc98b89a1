"""
Pytest configuration and shared fixtures.
"""

import os

# Settings are read once at import time, so the environment must be set first
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_KEY"] = "test_service_role_key"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_123"
os.environ["INTERNAL_SERVICE_KEY"] = "internal_test_key"
os.environ["INTERNAL_API_URL"] = "http://internal.test"
os.environ["REFUND_RECONCILIATION_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from bookings.refunds import RefundServiceClient  # noqa: E402
from db.supabase_client import SupabaseClient  # noqa: E402
from models.booking import BookingRequest  # noqa: E402
from models.business import Business, BusinessStripeAccount  # noqa: E402
from models.payment import Payment  # noqa: E402

BOOKING_ID = "11111111-1111-1111-1111-111111111111"
BUSINESS_ID = "22222222-2222-2222-2222-222222222222"
CUSTOMER_ID = "33333333-3333-3333-3333-333333333333"
OWNER_ID = "44444444-4444-4444-4444-444444444444"


def make_booking(**overrides) -> BookingRequest:
    """Build a booking request row with sensible defaults."""
    data = {
        "id": BOOKING_ID,
        "customer_id": CUSTOMER_ID,
        "customer_name": "Jane Smith",
        "customer_email": "jane@example.com",
        "business_id": BUSINESS_ID,
        "business_name": "Sparkle Cleaning",
        "service_name": "Deep Clean",
        "requested_date": "2026-11-02",
        "requested_time": "10:00",
        "total_cost": 45.0,
        "platform_fee": 4.5,
        "status": "pending",
    }
    data.update(overrides)
    return BookingRequest(**data)


def make_payment(**overrides) -> Payment:
    data = {
        "id": "pay_row_1",
        "booking_id": BOOKING_ID,
        "stripe_payment_intent_id": "pi_test_123",
        "amount": 45.0,
        "status": "succeeded",
    }
    data.update(overrides)
    return Payment(**data)


@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client."""
    mock_client = MagicMock()
    mock_table = MagicMock()
    mock_client.table.return_value = mock_table
    return mock_client, mock_table


@pytest.fixture
def mock_db():
    """
    SupabaseClient double.

    update_booking_status echoes the requested status back on a pending
    booking; everything else returns an empty result by default.
    """
    db = MagicMock(spec=SupabaseClient)

    async def _update_status(booking_id, status, cancelled_by=None, cancellation_reason=None):
        overrides = {"id": booking_id, "status": status}
        if cancelled_by:
            overrides["cancelled_by"] = cancelled_by
        if cancellation_reason:
            overrides["cancellation_reason"] = cancellation_reason
        return make_booking(**overrides)

    db.update_booking_status = AsyncMock(side_effect=_update_status)
    db.set_response_message = AsyncMock(return_value=None)
    db.set_refund_status = AsyncMock(return_value=None)
    db.get_payment_for_booking = AsyncMock(return_value=None)
    db.get_business = AsyncMock(
        return_value=Business(
            id=BUSINESS_ID, business_name="Sparkle Cleaning Ltd", owner_id=OWNER_ID
        )
    )
    db.get_business_stripe_account = AsyncMock(return_value=None)
    db.create_notification = AsyncMock()
    db.create_message = AsyncMock()
    db.get_booking_by_id = AsyncMock(return_value=make_booking())
    db.list_bookings = AsyncMock(return_value=[])
    db.create_booking = AsyncMock(return_value=make_booking())
    db.create_payment = AsyncMock(return_value=make_payment())
    db.update_payment_by_intent = AsyncMock(return_value=None)
    db.get_bookings_with_refund_status = AsyncMock(return_value=[])
    return db


@pytest.fixture
def connect_account():
    return BusinessStripeAccount(
        business_id=BUSINESS_ID, stripe_connect_account_id="acct_test_123"
    )


@pytest.fixture
def mock_refund_client():
    """RefundServiceClient double; tests set request_refund's behaviour."""
    client = MagicMock(spec=RefundServiceClient)
    client.request_refund = AsyncMock()
    return client


@pytest.fixture(autouse=True)
def reset_webhook_cache():
    """Each test starts with an empty webhook idempotency cache."""
    from api.webhooks import reset_webhook_state

    reset_webhook_state()
    yield
    reset_webhook_state()
