#!/usr/bin/env python3
# main.py
"""
ParcelTrack entry point.
Runs the shipment API under uvicorn or prepares the database schema.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from parceltrack.config import settings
from parceltrack.common.constants import TypeMsg
from parceltrack.common.logger import log_error, log_info, setup_logging


# Set by the signal handlers
_shutdown_event: asyncio.Event | None = None


def setup_signal_handlers() -> None:
    """Installs SIGINT/SIGTERM handlers for graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nReceived stop signal (sig={sig}), shutting down...")
            _shutdown_event.set()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows has no add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def run_api() -> None:
    """Runs the shipment API (REST + /ws)."""
    import uvicorn

    await log_info(
        f"Starting shipment API on {settings.deployment.API_HOST}:{settings.deployment.API_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "parceltrack.services.api.app:app",
        host=settings.deployment.API_HOST,
        port=settings.deployment.API_PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    serve_task = asyncio.create_task(server.serve())

    if _shutdown_event is not None:
        stop_task = asyncio.create_task(_shutdown_event.wait())
        done, _ = await asyncio.wait({serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if stop_task in done:
            await log_info("Shipment API: graceful shutdown", type_msg=TypeMsg.DEBUG)
            server.should_exit = True
            await serve_task
        else:
            stop_task.cancel()
    else:
        await serve_task


async def run_migrations() -> None:
    """Creates the database if needed and applies migrations/init.sql."""
    from create_db import create_db, apply_schema

    await create_db()
    await apply_schema()


async def main(mode: str = "api") -> None:
    """
    Main entry.

    Args:
        mode: api | migrate
    """
    setup_logging()
    setup_signal_handlers()

    await log_info(f"ParcelTrack v{settings.system.VERSION}: mode '{mode}'", type_msg=TypeMsg.INFO)

    try:
        if mode == "api":
            await run_api()
        elif mode == "migrate":
            await run_migrations()
        else:
            await log_error(f"Unknown mode: {mode}")
    except asyncio.CancelledError:
        await log_info("Cancelled, shutting down", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Fatal error: {e}")
        raise
    finally:
        await log_info("Application stopped", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Prints usage help."""
    print("""
ParcelTrack: shipment lifecycle and driver assignment service

Usage:
    python main.py [mode]

Modes:
    api        Shipment API (REST under /api, WebSocket at /ws)
    migrate    Create the database and apply migrations/init.sql

Environment:
    STORAGE_BACKEND=memory     run without PostgreSQL
    REALTIME_REDIS_BRIDGE=1    fan out realtime events through Redis
    AUTH_TOKEN_SECRET=...      bearer token signing secret
    """)


if __name__ == "__main__":
    mode = "api"

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in ("api", "migrate"):
            mode = arg
        else:
            print(f"Unknown mode: {arg}")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
