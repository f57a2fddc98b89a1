"""
End-to-end tests through the HTTP API.
Tests the complete booking flow: book -> cancel -> refund -> webhook.

Supabase is replaced by an in-memory store and Stripe calls are patched;
the refund request travels over HTTP to the app's own /stripe/refund.
"""

import json
import uuid
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest
import pytest_asyncio
from aiohttp import test_utils
from stripe import StripeError

from api import create_app
from bookings.refunds import RefundServiceClient
from models.booking import BookingRequest, BookingStatus, RefundStatus
from models.business import Business, BusinessStripeAccount
from models.message import Message
from models.notification import Notification
from models.payment import Payment, PaymentStatus
from utils.datetime_utils import to_iso_string, utc_now
from utils.exceptions import BookingNotFoundError

BUSINESS_ID = "biz-1"
OWNER_ID = "owner-1"
CUSTOMER_ID = "cust-1"


class InMemoryDB:
    """Just enough of SupabaseClient's interface, backed by dicts."""

    def __init__(self):
        self.bookings: Dict[str, Dict[str, Any]] = {}
        self.payments: List[Dict[str, Any]] = []
        self.notifications: List[Notification] = []
        self.messages: List[Message] = []
        self.businesses = {
            BUSINESS_ID: Business(
                id=BUSINESS_ID, business_name="Sparkle Cleaning", owner_id=OWNER_ID
            )
        }
        self.stripe_accounts: Dict[str, BusinessStripeAccount] = {}

    async def create_booking(self, booking_data) -> BookingRequest:
        row = booking_data.model_dump(exclude_none=True)
        row.update(id=str(uuid.uuid4()), status="pending", created_at=to_iso_string(utc_now()))
        self.bookings[row["id"]] = row
        return BookingRequest(**row)

    async def get_booking_by_id(self, booking_id) -> Optional[BookingRequest]:
        row = self.bookings.get(booking_id)
        return BookingRequest(**row) if row else None

    async def list_bookings(self, business_id=None, customer_id=None, limit=100):
        rows = [
            row
            for row in self.bookings.values()
            if (not business_id or row["business_id"] == business_id)
            and (not customer_id or row["customer_id"] == customer_id)
        ]
        return [BookingRequest(**row) for row in rows[:limit]]

    async def update_booking(self, booking_id, update_data) -> Optional[BookingRequest]:
        row = self.bookings.get(booking_id)
        if row is None:
            return None
        row.update(update_data, updated_at=to_iso_string(utc_now()))
        return BookingRequest(**row)

    async def update_booking_status(
        self, booking_id, status, cancelled_by=None, cancellation_reason=None
    ) -> BookingRequest:
        data = {"status": BookingStatus(status).value}
        if status == BookingStatus.CANCELLED:
            if cancelled_by:
                data["cancelled_by"] = cancelled_by.value
            if cancellation_reason:
                data["cancellation_reason"] = cancellation_reason
        booking = await self.update_booking(booking_id, data)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    async def set_response_message(self, booking_id, response_message):
        return await self.update_booking(booking_id, {"response_message": response_message})

    async def set_refund_status(self, booking_id, refund_status, refund_id=None):
        data = {"refund_status": RefundStatus(refund_status).value}
        if refund_id:
            data["refund_id"] = refund_id
        return await self.update_booking(booking_id, data)

    async def get_payment_for_booking(self, booking_id) -> Optional[Payment]:
        for row in self.payments:
            if row["booking_id"] == booking_id:
                return Payment(**row)
        return None

    async def create_payment(self, booking_id, payment_data) -> Payment:
        row = payment_data.model_dump(exclude_none=True)
        row.update(
            id=str(uuid.uuid4()),
            booking_id=booking_id,
            status=PaymentStatus.SUCCEEDED.value,
            paid_at=to_iso_string(utc_now()),
        )
        self.payments.append(row)
        return Payment(**row)

    async def update_payment_by_intent(self, payment_intent_id, update_data):
        for row in self.payments:
            if row.get("stripe_payment_intent_id") == payment_intent_id:
                row.update(update_data)
                return Payment(**row)
        return None

    async def get_business(self, business_id):
        return self.businesses.get(business_id)

    async def get_business_stripe_account(self, business_id):
        return self.stripe_accounts.get(business_id)

    async def create_notification(self, notification) -> Notification:
        created = Notification(id=str(uuid.uuid4()), **notification.model_dump())
        self.notifications.append(created)
        return created

    async def create_message(self, message) -> Message:
        created = Message(id=str(uuid.uuid4()), **message.model_dump())
        self.messages.append(created)
        return created


@pytest.fixture
def db():
    return InMemoryDB()


@pytest_asyncio.fixture
async def client(db):
    refund_client = RefundServiceClient(internal_secret="internal_test_key", timeout=5)
    app = create_app(db=db, refund_client=refund_client)
    async with test_utils.TestClient(test_utils.TestServer(app)) as test_client:
        refund_client.endpoint_url = str(test_client.make_url("/stripe/refund"))
        yield test_client


async def _create_booking(client, payment_intent_id: Optional[str] = "pi_e2e_1"):
    body = {
        "bookingData": {
            "customer_id": CUSTOMER_ID,
            "customer_name": "Jane Smith",
            "customer_email": "jane@example.com",
            "business_id": BUSINESS_ID,
            "business_name": "Sparkle Cleaning",
            "service_name": "Deep Clean",
            "requested_date": "2026-11-02",
            "total_cost": 45,
            "platform_fee": 4.5,
        }
    }
    if payment_intent_id:
        body["paymentData"] = {"stripe_payment_intent_id": payment_intent_id, "amount": 45}

    response = await client.post("/bookings", json=body)
    assert response.status == 200
    return (await response.json())["booking"]


@pytest.mark.asyncio
async def test_business_cancellation_refunds_payment(client, db):
    booking = await _create_booking(client)
    assert db.notifications[-1].title == "New Booking Request!"

    intent = SimpleNamespace(id="pi_e2e_1", transfer_data=None)
    with patch(
        "payments.stripe.stripe.PaymentIntent.retrieve", return_value=intent
    ), patch(
        "payments.stripe.stripe.Refund.create",
        return_value=SimpleNamespace(id="re_e2e_1", status="succeeded"),
    ) as mock_create:
        response = await client.patch(
            "/bookings",
            json={
                "bookingId": booking["id"],
                "status": "cancelled",
                "cancelledBy": "business",
                "cancellationReason": "Staff illness",
            },
        )

    assert response.status == 200
    data = await response.json()
    assert data["booking"]["status"] == "cancelled"
    assert data["refund"]["refundId"] == "re_e2e_1"
    mock_create.assert_called_once_with(payment_intent="pi_e2e_1")

    stored = db.bookings[booking["id"]]
    assert stored["refund_status"] == "processed"
    assert stored["refund_id"] == "re_e2e_1"
    assert stored["cancelled_by"] == "business"

    customer_note = next(n for n in db.notifications if n.user_id == CUSTOMER_ID)
    owner_note = next(
        n for n in db.notifications if n.type == "booking_cancelled_by_business"
    )
    assert "refund has been initiated" in customer_note.message
    assert owner_note.user_id == OWNER_ID
    assert owner_note.message.endswith("Refund has been processed.")

    # Stripe later confirms the refund
    event = {
        "id": "evt_e2e_1",
        "type": "charge.refunded",
        "data": {
            "object": {"id": "ch_1", "payment_intent": "pi_e2e_1", "amount_refunded": 4500}
        },
    }
    with patch("api.webhooks.stripe.Webhook.construct_event"):
        response = await client.post(
            "/webhook/stripe",
            data=json.dumps(event),
            headers={"Stripe-Signature": "t=1,v1=sig"},
        )

    assert response.status == 200
    assert db.payments[0]["status"] == "refunded"
    assert db.payments[0]["refund_amount"] == 45.0
    assert db.bookings[booking["id"]]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_reopening_refunded_booking_keeps_refund_fields(client, db):
    booking = await _create_booking(client)

    with patch(
        "payments.stripe.stripe.PaymentIntent.retrieve",
        return_value=SimpleNamespace(id="pi_e2e_1", transfer_data=None),
    ), patch(
        "payments.stripe.stripe.Refund.create",
        return_value=SimpleNamespace(id="re_e2e_2", status="succeeded"),
    ):
        await client.patch(
            "/bookings",
            json={"bookingId": booking["id"], "status": "cancelled", "cancelledBy": "customer"},
        )

    with patch("payments.stripe.stripe.Refund.create") as mock_create:
        response = await client.patch(
            "/bookings", json={"bookingId": booking["id"], "status": "accepted"}
        )

    assert response.status == 200
    data = await response.json()
    assert data["refund"] is None
    assert data["booking"]["status"] == "accepted"
    assert data["booking"]["refund_status"] == "processed"
    assert data["booking"]["refund_id"] == "re_e2e_2"
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_decline_with_reply_creates_conversation(client, db):
    booking = await _create_booking(client, payment_intent_id=None)

    response = await client.patch(
        "/bookings",
        json={
            "bookingId": booking["id"],
            "status": "declined",
            "responseMessage": "Fully booked that day",
        },
    )

    assert response.status == 200
    data = await response.json()
    assert data["refund"] is None
    assert data["booking"]["response_message"] == "Fully booked that day"

    assert len(db.messages) == 1
    assert db.messages[0].conversation_id == booking["id"]
    assert db.messages[0].sender_id == OWNER_ID
    assert db.messages[0].subject == "Booking Update: Deep Clean"

    customer_notes = [n for n in db.notifications if n.user_id == CUSTOMER_ID]
    assert len(customer_notes) == 1
    assert customer_notes[0].title == "Booking Update"


@pytest.mark.asyncio
async def test_reply_text_reaches_customer_unchanged(client, db):
    booking = await _create_booking(client, payment_intent_id=None)
    reply = "  Fully booked that day\n" + "x" * 2500

    response = await client.patch(
        "/bookings",
        json={"bookingId": booking["id"], "status": "declined", "responseMessage": reply},
    )

    assert response.status == 200
    assert (await response.json())["booking"]["response_message"] == reply
    assert db.messages[0].message == reply
    assert db.bookings[booking["id"]]["response_message"] == reply


@pytest.mark.asyncio
async def test_refund_failure_keeps_cancellation(client, db):
    booking = await _create_booking(client)

    with patch(
        "payments.stripe.stripe.PaymentIntent.retrieve",
        return_value=SimpleNamespace(id="pi_e2e_1", transfer_data=None),
    ), patch(
        "payments.stripe.stripe.Refund.create",
        side_effect=StripeError("charge_already_refunded", http_status=400),
    ):
        response = await client.patch(
            "/bookings",
            json={"bookingId": booking["id"], "status": "cancelled", "cancelledBy": "customer"},
        )

    assert response.status == 200
    data = await response.json()
    assert data["booking"]["status"] == "cancelled"
    assert data["refund"]["success"] is False
    assert db.bookings[booking["id"]]["refund_status"] == "failed"


@pytest.mark.asyncio
async def test_list_bookings_for_customer(client, db):
    await _create_booking(client)
    await _create_booking(client, payment_intent_id="pi_e2e_2")

    response = await client.get("/bookings", params={"customerId": CUSTOMER_ID})

    assert response.status == 200
    assert len((await response.json())["bookings"]) == 2
