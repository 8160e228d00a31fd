# src/swap_market/main.py
"""Main entry point for the Swap Market messaging service."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from swap_market.api.v1 import messages_router
from swap_market.core.logging import configure_logging
from swap_market.core.settings import settings
from swap_market.services.realtime import get_realtime_feed

configure_logging()
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Swap Market API",
    description="Messaging between buyers and owners of used electronics listings",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(messages_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    logger.info("%s %s starting", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    open_streams = get_realtime_feed().subscriber_count()
    if open_streams:
        logger.info("Shutting down with %d open realtime subscription(s)", open_streams)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Swap Market API",
        "version": settings.app_version,
        "description": "Messaging between buyers and owners of used electronics listings",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("swap_market.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
