"""Supabase data access for bookings, payments, notifications and messages."""

from .supabase_client import SupabaseClient, get_db_client

__all__ = ["SupabaseClient", "get_db_client"]
