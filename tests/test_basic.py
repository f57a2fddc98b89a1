"""
Basic tests for configuration and enums.
"""

import pytest

from config import Settings
from models.booking import BookingStatus, RefundStatus


def _settings(**overrides):
    values = {
        "supabase_url": "https://test.supabase.co",
        "supabase_key": "service_key",
        "stripe_secret_key": "sk_test_123",
        "internal_service_key": None,
        "internal_api_url": None,
        "stripe_webhook_secret": None,
        "environment": "development",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_booking_status_enum():
    assert [s.value for s in BookingStatus] == [
        "pending",
        "accepted",
        "declined",
        "completed",
        "cancelled",
    ]


def test_refund_status_enum():
    assert RefundStatus.NONE.value == "none"
    assert RefundStatus.PROCESSED.value == "processed"


def test_internal_secret_falls_back_to_service_key():
    assert _settings().internal_secret == "service_key"
    assert _settings(internal_service_key="shared").internal_secret == "shared"


def test_refund_endpoint_url():
    assert _settings(port=9000).refund_endpoint_url == "http://127.0.0.1:9000/stripe/refund"
    assert (
        _settings(internal_api_url="https://api.example.com/").refund_endpoint_url
        == "https://api.example.com/stripe/refund"
    )


def test_validate_all_required_ok():
    _settings().validate_all_required()


@pytest.mark.parametrize(
    "overrides",
    [
        {"supabase_url": ""},
        {"stripe_secret_key": "your_stripe_secret_key"},
        {"environment": "production"},
    ],
)
def test_validate_all_required_rejects(overrides):
    with pytest.raises(ValueError, match="Missing or invalid required configuration"):
        _settings(**overrides).validate_all_required()
