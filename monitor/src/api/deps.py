"""
FastAPI dependency injection providers.

Provides the stream consumer, the buffered window, and window-length
validation for use with FastAPI's Depends() mechanism. All state lives on
``app.state`` and is created by the application lifespan.

CHANGELOG:
- 2026-10-13: Initial creation (STORY-013)
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request

from monitor.src.models import TelemetrySample
from monitor.src.stream import StreamConsumer
from monitor.src.window import WINDOW_CHOICES, select_window


def get_consumer(request: Request) -> StreamConsumer:
    """Return the stream consumer created by the lifespan.

    Args:
        request: The incoming FastAPI request.

    Returns:
        StreamConsumer: The application's single ingestion path.
    """
    return request.app.state.consumer


def get_window_minutes(
    request: Request,
    window: Annotated[int | None, Query()] = None,
) -> int:
    """Resolve the requested window length, defaulting to the configured one.

    Raises:
        HTTPException: 400 if *window* is not one of the offered choices.
    """
    if window is None:
        return request.app.state.settings.window_minutes
    if window not in WINDOW_CHOICES:
        choices = ", ".join(str(c) for c in WINDOW_CHOICES)
        raise HTTPException(
            status_code=400,
            detail=f"window must be one of {choices} minutes.",
        )
    return window


Consumer = Annotated[StreamConsumer, Depends(get_consumer)]
WindowMinutes = Annotated[int, Depends(get_window_minutes)]


def get_window(
    consumer: Consumer,
    window_minutes: WindowMinutes,
) -> tuple[TelemetrySample, ...]:
    """Return the visible window from an atomic snapshot of the buffer."""
    return select_window(consumer.buffer.snapshot(), window_minutes)


Window = Annotated[tuple[TelemetrySample, ...], Depends(get_window)]
