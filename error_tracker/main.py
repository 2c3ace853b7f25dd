"""
FastAPI application entry point.
"""

import asyncio
from typing import Optional

from fastapi import FastAPI
from error_tracker.config import settings
from error_tracker.api import errors
from error_tracker.middleware.capture import register_error_handlers
from error_tracker.services.error_reporter import get_error_reporter
from error_tracker.utils.logging import setup_logging, get_logger

# Configure structured logging
setup_logging(settings.log_level)

logger = get_logger(__name__)

VERSION = "0.1.0"

# Create FastAPI application
app = FastAPI(
    title="Error Tracker",
    description="Error capture, deduplication and throttled operator notifications",
    version=VERSION
)

register_error_handlers(app)

_sweeper_stop: Optional[asyncio.Event] = None
_sweeper_task: Optional[asyncio.Task] = None


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "version": VERSION}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Error Tracker API",
        "version": VERSION,
        "docs": "/docs"
    }


# Include API routers
app.include_router(errors.router)


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup."""
    global _sweeper_stop, _sweeper_task
    logger.info("Starting Error Tracker API")

    reporter = get_error_reporter()
    if reporter.store is not None:
        try:
            await reporter.store.initialize()
            logger.info(f"Error store initialized: {reporter.store.describe()}")
        except Exception as e:
            logger.error(f"Error store unavailable, continuing without persistence: {e}")
            reporter.store = None

    _sweeper_stop = asyncio.Event()
    _sweeper_task = asyncio.create_task(
        reporter.throttle.run_sweeper(settings.throttle_sweep_interval_seconds, _sweeper_stop)
    )
    logger.info("Throttle sweeper started")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup services on application shutdown."""
    logger.info("Shutting down Error Tracker API")

    if _sweeper_stop:
        _sweeper_stop.set()
    if _sweeper_task:
        await _sweeper_task

    reporter = get_error_reporter()
    if reporter.store is not None:
        await reporter.store.close()
        logger.info("Error store closed")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
