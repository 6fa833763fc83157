"""
Health file writer for the line monitor daemon.

Writes a JSON health file at a configurable path with these fields:
- last_message_ts: ISO timestamp of the most recent accepted stream record.
- last_report_ts: ISO timestamp of the most recent KPI/insight report.
- buffered: Number of samples currently held in memory.
- connected: Whether the stream connection is open.
- last_error: Most recent transport or parse error, or null.

The file is rewritten on every state change, providing a simple liveness
signal that Docker HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-13: Track stream status instead of spool counters
- 2026-10-12: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from monitor.src.stream import StreamStatus


class HealthWriter:
    """Writes line monitor health status to a JSON file.

    Each mutating method updates the in-memory state and immediately
    rewrites the health file so it always reflects the latest status.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_message_ts: str | None = None
        self._last_report_ts: str | None = None
        self._buffered: int = 0
        self._connected: bool = False
        self._last_error: str | None = None

    def record_report(self) -> None:
        """Record a report event and write health file."""
        self._last_report_ts = datetime.now(tz=UTC).isoformat()
        self._write()

    def set_status(self, status: StreamStatus) -> None:
        """Copy the stream status into the health state and write health file.

        Args:
            status: Current status of the stream consumer.
        """
        if status.last_message_at is not None:
            self._last_message_ts = status.last_message_at.isoformat()
        self._buffered = status.total_samples
        self._connected = status.connected
        self._last_error = status.last_error
        self._write()

    def _write(self) -> None:
        """Write the health JSON file with current state."""
        data = {
            "last_message_ts": self._last_message_ts,
            "last_report_ts": self._last_report_ts,
            "buffered": self._buffered,
            "connected": self._connected,
            "last_error": self._last_error,
        }
        self.path.write_text(json.dumps(data))
