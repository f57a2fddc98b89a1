"""
Supabase database client for the booking lifecycle.
Handles all reads and writes against booking_requests, payments,
notifications, messages, businesses and business_stripe_accounts.

Row Level Security (RLS) Notes:
==============================
This client uses the service_role key, which bypasses RLS. Customer and
business dashboards read these tables through their own RLS-guarded
sessions; this service is the only writer for status transitions and
refund bookkeeping.

Every statement is its own atomic unit. Multi-step sequences built on top of
this client (status change, refund, notifications) are not transactional.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from supabase import Client as SupabaseClientType
from supabase import create_client

from config import settings
from models.booking import (
    BookingCreate,
    BookingRequest,
    BookingStatus,
    CancelledBy,
    RefundStatus,
)
from models.business import Business, BusinessStripeAccount
from models.message import Message, MessageCreate
from models.notification import Notification, NotificationCreate
from models.payment import Payment, PaymentCreate, PaymentStatus
from utils.constants import BOOKINGS_LIST_LIMIT
from utils.datetime_utils import to_iso_string, utc_now
from utils.exceptions import BookingNotFoundError, DatabaseError

BOOKINGS_TABLE = "booking_requests"
PAYMENTS_TABLE = "payments"
NOTIFICATIONS_TABLE = "notifications"
MESSAGES_TABLE = "messages"
BUSINESSES_TABLE = "businesses"
STRIPE_ACCOUNTS_TABLE = "business_stripe_accounts"


class SupabaseClient:
    """
    Supabase database client wrapper.

    Blocking PostgREST calls run in a worker thread so the event loop keeps
    serving other requests while a statement is in flight.

    Business rows and their Stripe accounts change rarely, so lookups are
    kept in a small in-memory TTL cache.
    """

    def __init__(self):
        self.client: SupabaseClientType = create_client(
            settings.supabase_url, settings.supabase_key
        )

        # Format: {cache_key: (data, expiry_time)}
        self._cache: Dict[str, Tuple[Any, datetime]] = {}
        self._cache_ttl = timedelta(minutes=5)

    # ========== Cache Helpers ==========

    def _get_from_cache(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        if key not in self._cache:
            return None

        data, expiry = self._cache[key]
        if utc_now() > expiry:
            del self._cache[key]
            return None

        return data

    def _set_cache(self, key: str, value: Any) -> None:
        """Set value in cache with TTL."""
        self._cache[key] = (value, utc_now() + self._cache_ttl)

    # ========== Execution ==========

    async def _execute(self, query: Any, action: str) -> List[Dict[str, Any]]:
        """
        Execute a PostgREST query and return its rows.

        Raises:
            DatabaseError: If the request fails
        """
        try:
            response = await asyncio.to_thread(query.execute)
        except Exception as e:
            raise DatabaseError(f"Failed to {action}: {e}") from e
        return response.data or []

    # ========== Booking Operations ==========

    async def get_booking_by_id(self, booking_id: str) -> Optional[BookingRequest]:
        """Get booking request by ID."""
        rows = await self._execute(
            self.client.table(BOOKINGS_TABLE).select("*").eq("id", booking_id).limit(1),
            "get booking",
        )
        return BookingRequest(**rows[0]) if rows else None

    async def list_bookings(
        self,
        business_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        limit: int = BOOKINGS_LIST_LIMIT,
    ) -> List[BookingRequest]:
        """
        List booking requests for a business or a customer, newest first.

        Args:
            business_id: Filter by business
            customer_id: Filter by customer profile
            limit: Maximum number of bookings to return

        Returns:
            Matching booking requests
        """
        query = self.client.table(BOOKINGS_TABLE).select("*")
        if business_id:
            query = query.eq("business_id", business_id)
        if customer_id:
            query = query.eq("customer_id", customer_id)
        query = query.order("created_at", desc=True).limit(limit)

        rows = await self._execute(query, "list bookings")
        return [BookingRequest(**row) for row in rows]

    async def create_booking(self, booking_data: BookingCreate) -> BookingRequest:
        """Insert a new booking request in ``pending`` status."""
        data = booking_data.model_dump(exclude_none=True)
        data["status"] = BookingStatus.PENDING.value

        rows = await self._execute(
            self.client.table(BOOKINGS_TABLE).insert(data), "create booking"
        )
        if not rows:
            raise DatabaseError("Failed to create booking: no data returned")
        return BookingRequest(**rows[0])

    async def update_booking(
        self, booking_id: str, update_data: Dict[str, Any]
    ) -> Optional[BookingRequest]:
        """
        Apply a partial update to a booking request.

        Returns:
            The updated booking, or None if no row matched
        """
        data = dict(update_data)
        data["updated_at"] = to_iso_string(utc_now())

        rows = await self._execute(
            self.client.table(BOOKINGS_TABLE).update(data).eq("id", booking_id),
            "update booking",
        )
        return BookingRequest(**rows[0]) if rows else None

    async def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        cancelled_by: Optional[CancelledBy] = None,
        cancellation_reason: Optional[str] = None,
    ) -> BookingRequest:
        """
        Persist a status transition, with cancellation metadata when cancelling.

        Raises:
            BookingNotFoundError: If no booking has this ID
            DatabaseError: If the update fails
        """
        update_data: Dict[str, Any] = {"status": BookingStatus(status).value}

        if status == BookingStatus.CANCELLED:
            if cancelled_by:
                update_data["cancelled_by"] = CancelledBy(cancelled_by).value
            if cancellation_reason:
                update_data["cancellation_reason"] = cancellation_reason

        booking = await self.update_booking(booking_id, update_data)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    async def set_response_message(
        self, booking_id: str, response_message: str
    ) -> Optional[BookingRequest]:
        """Store the business's response message on the booking."""
        return await self.update_booking(
            booking_id, {"response_message": response_message}
        )

    async def set_refund_status(
        self,
        booking_id: str,
        refund_status: RefundStatus,
        refund_id: Optional[str] = None,
    ) -> Optional[BookingRequest]:
        """Record refund progress on a booking."""
        update_data: Dict[str, Any] = {"refund_status": RefundStatus(refund_status).value}
        if refund_id:
            update_data["refund_id"] = refund_id
        return await self.update_booking(booking_id, update_data)

    async def get_bookings_with_refund_status(
        self,
        refund_status: RefundStatus,
        updated_before: Optional[datetime] = None,
    ) -> List[BookingRequest]:
        """Find bookings whose refund is in the given state (oldest first)."""
        query = (
            self.client.table(BOOKINGS_TABLE)
            .select("*")
            .eq("refund_status", RefundStatus(refund_status).value)
        )
        if updated_before:
            query = query.lte("updated_at", to_iso_string(updated_before))
        query = query.order("updated_at", desc=False)

        rows = await self._execute(query, "get bookings by refund status")
        return [BookingRequest(**row) for row in rows]

    # ========== Payment Operations ==========

    async def get_payment_for_booking(self, booking_id: str) -> Optional[Payment]:
        """Get the payment tied to a booking, if any."""
        rows = await self._execute(
            self.client.table(PAYMENTS_TABLE)
            .select("*")
            .eq("booking_id", booking_id)
            .limit(1),
            "get payment",
        )
        return Payment(**rows[0]) if rows else None

    async def create_payment(
        self, booking_id: str, payment_data: PaymentCreate
    ) -> Payment:
        """Insert the succeeded payment captured at checkout."""
        data = payment_data.model_dump(exclude_none=True)
        data["booking_id"] = booking_id
        data["status"] = PaymentStatus.SUCCEEDED.value
        data["paid_at"] = to_iso_string(utc_now())

        rows = await self._execute(
            self.client.table(PAYMENTS_TABLE).insert(data), "create payment"
        )
        if not rows:
            raise DatabaseError("Failed to create payment: no data returned")
        return Payment(**rows[0])

    async def update_payment_by_intent(
        self, payment_intent_id: str, update_data: Dict[str, Any]
    ) -> Optional[Payment]:
        """
        Update the payment matching a Stripe payment intent.

        Returns:
            The updated payment, or None if no row matched
        """
        rows = await self._execute(
            self.client.table(PAYMENTS_TABLE)
            .update(update_data)
            .eq("stripe_payment_intent_id", payment_intent_id),
            "update payment",
        )
        return Payment(**rows[0]) if rows else None

    # ========== Business Operations ==========

    async def get_business(self, business_id: str) -> Optional[Business]:
        """Get business name and owner profile (cached)."""
        cache_key = f"business:{business_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        rows = await self._execute(
            self.client.table(BUSINESSES_TABLE)
            .select("id, business_name, owner_id")
            .eq("id", business_id)
            .limit(1),
            "get business",
        )
        if not rows:
            return None

        business = Business(**rows[0])
        self._set_cache(cache_key, business)
        return business

    async def get_business_stripe_account(
        self, business_id: str
    ) -> Optional[BusinessStripeAccount]:
        """Get the Stripe Connect account linked to a business (cached)."""
        cache_key = f"stripe_account:{business_id}"
        cached = self._get_from_cache(cache_key)
        if cached is not None:
            return cached

        rows = await self._execute(
            self.client.table(STRIPE_ACCOUNTS_TABLE)
            .select("business_id, stripe_connect_account_id")
            .eq("business_id", business_id)
            .limit(1),
            "get business stripe account",
        )
        if not rows:
            return None

        account = BusinessStripeAccount(**rows[0])
        self._set_cache(cache_key, account)
        return account

    # ========== Notification & Message Operations ==========

    async def create_notification(
        self, notification: NotificationCreate
    ) -> Notification:
        """Insert a user-facing notification."""
        rows = await self._execute(
            self.client.table(NOTIFICATIONS_TABLE).insert(notification.model_dump()),
            "create notification",
        )
        if not rows:
            raise DatabaseError("Failed to create notification: no data returned")
        return Notification(**rows[0])

    async def create_message(self, message: MessageCreate) -> Message:
        """Insert a conversation message."""
        rows = await self._execute(
            self.client.table(MESSAGES_TABLE).insert(message.model_dump()),
            "create message",
        )
        if not rows:
            raise DatabaseError("Failed to create message: no data returned")
        return Message(**rows[0])


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
