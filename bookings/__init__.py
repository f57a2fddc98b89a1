"""Booking lifecycle operations: creation, status transitions and refunds."""
