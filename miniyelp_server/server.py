# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Run the MiniYelp API server.

Usage:
    miniyelp-server
    python -m miniyelp_server.server --reload  # Development mode

Uncaught exceptions, whether raised synchronously or left unhandled in an
asyncio task, are logged and end the process with status 1. SIGINT/SIGTERM
are handled by uvicorn, which drains open connections before the app
lifespan closes the database engine.
"""

import argparse
import asyncio
import logging
import os
import sys

import uvicorn

from miniyelp_server.config import settings

logger = logging.getLogger("miniyelp_server.server")


def _excepthook(exc_type, exc, tb) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("UNCAUGHT EXCEPTION! Shutting down...", exc_info=(exc_type, exc, tb))
    logging.shutdown()
    sys.exit(1)


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    logger.critical(
        "UNHANDLED REJECTION! Shutting down... %s",
        context.get("message"),
        exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
    )
    logging.shutdown()
    # may run from a task finalizer where SystemExit would be swallowed
    os._exit(1)


async def _serve(config: uvicorn.Config) -> None:
    asyncio.get_running_loop().set_exception_handler(_loop_exception_handler)
    await uvicorn.Server(config).serve()


def run(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run MiniYelp API server")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--host", type=str, help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to bind to")
    args = parser.parse_args(argv)

    sys.excepthook = _excepthook
    if args.reload:
        # the reloader spawns its own worker processes and loops
        uvicorn.run(
            "miniyelp_server.main:app",
            host=args.host or settings.host,
            port=args.port or settings.port,
            reload=True,
            log_level=settings.log_level.lower(),
        )
        return

    config = uvicorn.Config(
        "miniyelp_server.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    asyncio.run(_serve(config))


if __name__ == "__main__":
    run()
