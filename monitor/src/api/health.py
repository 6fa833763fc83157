"""
Health check endpoint for the line monitor API.

Provides GET /health returning the ingestion status: connectivity flag,
last error, buffer fill, and data-gap detection. No authentication is
required; this is intended for Docker HEALTHCHECK, internal monitoring, and
the dashboard's status bar.

CHANGELOG:
- 2026-10-13: Initial creation (STORY-013)

TODO:
- None
"""

from dataclasses import asdict

from fastapi import APIRouter

from monitor.src.api.deps import Consumer

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(consumer: Consumer) -> dict:
    """Return the stream status and buffer fill.

    Returns:
        dict: ``status`` (always ``"ok"`` while the API is serving), the
        StreamStatus fields, and the buffer ``capacity``.
    """
    status = consumer.status()
    body = asdict(status)
    if status.last_message_at is not None:
        body["last_message_at"] = status.last_message_at.isoformat()
    return {"status": "ok", **body, "capacity": consumer.buffer.capacity}
