"""Application-level dependencies stored on the aiohttp app."""

from aiohttp import web

from bookings.refunds import RefundServiceClient
from db.supabase_client import SupabaseClient

DB_KEY = web.AppKey("db", SupabaseClient)
REFUND_CLIENT_KEY = web.AppKey("refund_client", RefundServiceClient)
