"""
Scheduler job that settles refunds left in ``pending``.

A booking stays at ``refund_status = pending`` when the process died (or the
bookkeeping write failed) between marking the refund and recording its
outcome. The job asks Stripe whether a refund exists for the payment intent
and records the answer. It never creates a refund.
"""

from datetime import timedelta
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings
from db import get_db_client
from db.supabase_client import SupabaseClient
from models.booking import BookingRequest, RefundStatus
from payments.stripe import find_refund_for_payment_intent
from utils.datetime_utils import utc_now
from utils.exceptions import DatabaseError, RefundError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="scheduler.log", log_dir="logs")

scheduler = AsyncIOScheduler()

JOB_ID = "reconcile_stale_refunds"


async def _reconcile_booking(db: SupabaseClient, booking: BookingRequest) -> Optional[RefundStatus]:
    """
    Resolve one stale pending refund.

    Returns:
        The status written, or None if the booking was left pending
    """
    payment = await db.get_payment_for_booking(booking.id)
    if payment is None or not payment.stripe_payment_intent_id:
        logger.error(
            f"Booking {booking.id} has a pending refund but no payment intent; "
            f"marking failed for manual follow-up"
        )
        await db.set_refund_status(booking.id, RefundStatus.FAILED)
        return RefundStatus.FAILED

    try:
        refund = await find_refund_for_payment_intent(payment.stripe_payment_intent_id)
    except RefundError as e:
        logger.warning(f"Could not check refunds for booking {booking.id}: {e}")
        return None

    if refund is not None:
        await db.set_refund_status(booking.id, RefundStatus.PROCESSED, refund_id=refund.id)
        logger.info(f"Booking {booking.id}: found refund {refund.id}, marked processed")
        return RefundStatus.PROCESSED

    await db.set_refund_status(booking.id, RefundStatus.FAILED)
    logger.error(
        f"Booking {booking.id}: no refund exists for payment "
        f"{payment.stripe_payment_intent_id}; marked failed for manual follow-up"
    )
    return RefundStatus.FAILED


async def reconcile_stale_refunds(db: Optional[SupabaseClient] = None) -> Dict[str, int]:
    """
    Settle bookings whose refund has been pending longer than the stale threshold.

    Args:
        db: Database client (defaults to the shared client)

    Returns:
        Counts of bookings marked processed, failed and left pending
    """
    counts = {"processed": 0, "failed": 0, "skipped": 0}
    db = db or get_db_client()
    cutoff = utc_now() - timedelta(minutes=settings.refund_reconciliation_stale_minutes)

    try:
        bookings = await db.get_bookings_with_refund_status(
            RefundStatus.PENDING, updated_before=cutoff
        )
    except DatabaseError as e:
        logger.error(f"Database error loading pending refunds: {e}", exc_info=True)
        return counts

    if not bookings:
        logger.debug("No stale pending refunds")
        return counts

    logger.info(f"Reconciling {len(bookings)} stale pending refunds")

    for booking in bookings:
        try:
            result = await _reconcile_booking(db, booking)
        except DatabaseError as e:
            logger.error(f"Failed to reconcile booking {booking.id}: {e}", exc_info=True)
            result = None

        if result is None:
            counts["skipped"] += 1
        else:
            counts[result.value] += 1

    logger.info(
        f"Refund reconciliation complete: {counts['processed']} processed, "
        f"{counts['failed']} failed, {counts['skipped']} skipped"
    )
    return counts


def setup_scheduler(db: Optional[SupabaseClient] = None) -> None:
    """Register the reconciliation job and start the scheduler.

    Args:
        db: Database client the job runs against (defaults to the shared client)
    """
    if not settings.refund_reconciliation_enabled:
        logger.info("Refund reconciliation disabled")
        return

    scheduler.add_job(
        reconcile_stale_refunds,
        kwargs={"db": db},
        trigger=IntervalTrigger(minutes=settings.refund_reconciliation_interval_minutes),
        id=JOB_ID,
        name="Reconcile stale pending refunds",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    """Shutdown the scheduler if it is running."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
