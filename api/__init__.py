"""HTTP API (aiohttp) for the booking lifecycle service."""

from .app import create_app

__all__ = ["create_app"]
