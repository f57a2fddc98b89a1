"""Background jobs."""

from .refund_reconciliation import (
    reconcile_stale_refunds,
    setup_scheduler,
    shutdown_scheduler,
)

__all__ = ["reconcile_stale_refunds", "setup_scheduler", "shutdown_scheduler"]
