"""
Main entry point for the booking lifecycle service.
Serves the HTTP API and runs the refund reconciliation job.
"""

import sys

from aiohttp import web

from api import create_app
from api.state import DB_KEY
from config import settings
from scheduler import setup_scheduler, shutdown_scheduler
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="server.log", log_dir="logs")


async def on_startup(app: web.Application) -> None:
    # Started here so the scheduler binds to the running event loop
    setup_scheduler(app[DB_KEY])


async def on_shutdown(app: web.Application) -> None:
    shutdown_scheduler()


def build_app() -> web.Application:
    """Create the application with scheduler lifecycle hooks attached."""
    app = create_app()
    app.on_startup.append(on_startup)
    app.on_shutdown.append(on_shutdown)
    return app


def main() -> None:
    try:
        settings.validate_all_required()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info(
        f"Starting booking lifecycle service on {settings.host}:{settings.port} "
        f"({settings.environment})"
    )
    web.run_app(build_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
