# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""MiniYelp Server - Main FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from miniyelp_server.config import settings
from miniyelp_server.database import engine, init_db
from miniyelp_server.errors import register_exception_handlers
from miniyelp_server.routers import bookings, restaurants, reviews, users, views

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    logger.info("MiniYelp Server started (%s)", settings.environment)
    yield
    logger.info("Shutdown signal received. Closing database connections.")
    await engine.dispose()


app = FastAPI(
    title="MiniYelp Server",
    description="Restaurant listings, reviews and bookings API",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, and duration for each request (no body or auth headers)."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


# API v1
app.include_router(users.router, prefix="/api/v1")
app.include_router(restaurants.router, prefix="/api/v1")
app.include_router(reviews.router, prefix="/api/v1")
app.include_router(reviews.nested_router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(views.router)


@app.get("/api/v1")
async def api_info():
    """API info."""
    return {
        "name": "MiniYelp Server",
        "version": VERSION,
        "api": "/api/v1",
        "docs": "/api/docs",
    }


@app.get("/api/v1/health")
async def health():
    """Health check for load balancers."""
    return {"status": "ok"}
