"""
FastAPI application entry point for the line monitor API.

Provides the root endpoint and serves as the application entry point. On
startup the lifespan loads MonitorSettings, builds the SampleBuffer and the
StreamConsumer that owns it, and, when STREAM_URL is set, starts ingestion
as a background task. Route handlers read everything from app.state.

Run with::

    uvicorn monitor.src.api.main:app --host 0.0.0.0 --port 8000

CHANGELOG:
- 2026-10-14: Register dashboard router
- 2026-10-13: Initial creation (STORY-013)
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from monitor.src.api.dashboard import router as dashboard_router
from monitor.src.api.health import router as health_router
from monitor.src.buffer import SampleBuffer
from monitor.src.config import MonitorSettings
from monitor.src.stream import StreamConsumer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build ingestion state, start and stop the stream.

    Startup:
        - Loads and validates settings.
        - Creates the buffer and stream consumer on app.state.
        - Starts the consumer task when STREAM_URL is configured.

    Shutdown:
        - Signals the consumer to stop and waits for it.
    """
    settings = MonitorSettings()
    app.state.settings = settings
    app.state.consumer = StreamConsumer(
        settings.stream_url,
        SampleBuffer(capacity=settings.buffer_capacity),
        max_backoff_s=settings.max_backoff_s,
        gap_threshold_s=settings.gap_threshold_s,
    )

    shutdown_event = asyncio.Event()
    task: asyncio.Task[None] | None = None
    if settings.stream_url:
        task = asyncio.create_task(app.state.consumer.run(shutdown_event))
        logger.info("Ingestion started from %s", settings.stream_url)
    else:
        logger.warning("STREAM_URL not set, ingestion disabled")

    logger.info("Line monitor API ready")
    yield

    logger.info("Line monitor API shutting down")
    shutdown_event.set()
    if task is not None:
        await task


app = FastAPI(
    title="Line Monitor API",
    description="Rolling KPIs and insights for a live machine telemetry stream.",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_methods=["GET"],
)

app.include_router(health_router)
app.include_router(dashboard_router)


@app.get("/")
async def root() -> dict:
    """Root health check endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}
