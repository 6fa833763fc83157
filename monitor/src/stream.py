"""
Live telemetry stream consumer feeding the sample buffer.

Connects to the device's HTTP event stream with httpx, decodes each event
into a TelemetrySample and appends it to the SampleBuffer, one sample at a
time in arrival order. Designed to be robust:

- Accepts Server-Sent Events (``data:`` lines, blank-line delimited) and
  newline-delimited JSON on the same connection.
- A malformed record is logged, counted, and dropped; ingestion continues.
- Connection failures flip the ``connected`` flag off and are retried with
  exponential backoff (1s -> 2s -> 4s -> ... -> max_backoff_s).
- Tracks the time since the last accepted record so consumers can flag a
  data gap.

Operations:
- handle_data(data): parse one event payload and buffer it.
- consume_once(client): read one connection until the server closes it.
- run(shutdown_event): reconnect loop until shutdown.
- status(): StreamStatus snapshot (connected, last error, gap, counters).

CHANGELOG:
- 2026-10-13: Add data-gap tracking to status()
- 2026-10-12: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from monitor.src.buffer import SampleBuffer
from monitor.src.models import TelemetrySample
from monitor.src.parser import SampleParseError, parse_record

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_BACKOFF_S: float = 1.0
"""Initial reconnect delay in seconds after a connection failure."""

DEFAULT_MAX_BACKOFF_S: float = 30.0
"""Default cap for the exponential reconnect delay."""

DEFAULT_GAP_THRESHOLD_S: float = 10.0
"""Seconds without an accepted record after which a data gap is flagged."""

STREAM_READ_TIMEOUT_S: float = 30.0
"""Read timeout on the open stream; a silent server triggers a reconnect."""

PARSE_ERROR_MESSAGE = "Failed to parse incoming data"
CONNECTION_ERROR_MESSAGE = "Connection error"


# ---------------------------------------------------------------------------
# Event framing
# ---------------------------------------------------------------------------


async def iter_events(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield event payloads from a line stream.

    Server-Sent Events: consecutive ``data:`` lines are joined with ``\\n``
    and dispatched on a blank line; ``:`` comments and other fields
    (``event:``, ``id:``, ``retry:``) are ignored, and an event left
    unterminated when the stream ends is discarded. A bare line starting
    with ``{`` outside an event is treated as one newline-delimited JSON
    record.
    """
    data_lines: list[str] = []
    async for raw_line in lines:
        line = raw_line.rstrip("\r")
        if not line:
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            value = line[len("data:") :]
            data_lines.append(value[1:] if value.startswith(" ") else value)
            continue
        if line.startswith("{") and not data_lines:
            yield line


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StreamStatus:
    """Point-in-time view of the ingestion path.

    Attributes:
        connected: True while a stream connection is open.
        last_error: Most recent transport or parse error message, cleared
            on a successful (re)connect.
        total_samples: Samples currently held in the buffer.
        accepted: Records accepted since start.
        parse_errors: Records dropped as malformed since start.
        last_message_at: Wall-clock time of the last accepted record.
        gap_seconds: Seconds since the last accepted record, or ``None``
            before the first one.
        has_gap: True when *gap_seconds* exceeds the gap threshold.
    """

    connected: bool
    last_error: str | None
    total_samples: int
    accepted: int
    parse_errors: int
    last_message_at: datetime | None
    gap_seconds: float | None
    has_gap: bool


# ---------------------------------------------------------------------------
# Consumer
# ---------------------------------------------------------------------------


def _default_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=STREAM_READ_TIMEOUT_S))


class StreamConsumer:
    """Single ingestion path from the device stream into a SampleBuffer.

    The consumer owns the buffer's write side. Readers take
    :meth:`SampleBuffer.snapshot` copies and never mutate it.

    Args:
        url: Stream endpoint, ``http://`` or ``https://``.
        buffer: Buffer that receives accepted samples.
        max_backoff_s: Cap for the exponential reconnect delay.
        gap_threshold_s: Seconds of silence after which ``has_gap`` is set.
        client_factory: Builds the ``httpx.AsyncClient`` used by :meth:`run`.
        clock: Monotonic clock used for gap measurement.

    Usage::

        buffer = SampleBuffer(capacity=1800)
        consumer = StreamConsumer("http://device.local:8080/stream", buffer)
        await consumer.run(shutdown_event)
    """

    def __init__(
        self,
        url: str,
        buffer: SampleBuffer,
        *,
        max_backoff_s: float = DEFAULT_MAX_BACKOFF_S,
        gap_threshold_s: float = DEFAULT_GAP_THRESHOLD_S,
        client_factory: Callable[[], httpx.AsyncClient] = _default_client,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._url = url
        self._buffer = buffer
        self._max_backoff_s = max_backoff_s
        self._gap_threshold_s = gap_threshold_s
        self._client_factory = client_factory
        self._clock = clock

        self._connected = False
        self._last_error: str | None = None
        self._accepted = 0
        self._parse_errors = 0
        self._last_message_at: datetime | None = None
        self._last_message_mono: float | None = None
        self._current_backoff = BASE_BACKOFF_S

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def buffer(self) -> SampleBuffer:
        """The buffer this consumer appends to."""
        return self._buffer

    @property
    def connected(self) -> bool:
        """True while a stream connection is open."""
        return self._connected

    @property
    def last_error(self) -> str | None:
        """Most recent error message, or ``None``."""
        return self._last_error

    @property
    def current_backoff(self) -> float:
        """Delay before the next reconnect attempt, in seconds."""
        return self._current_backoff

    def gap_seconds(self, now: float | None = None) -> float | None:
        """Seconds since the last accepted record, ``None`` before the first."""
        if self._last_message_mono is None:
            return None
        current = self._clock() if now is None else now
        return current - self._last_message_mono

    def status(self, now: float | None = None) -> StreamStatus:
        """Return a :class:`StreamStatus` snapshot."""
        gap = self.gap_seconds(now)
        return StreamStatus(
            connected=self._connected,
            last_error=self._last_error,
            total_samples=len(self._buffer),
            accepted=self._accepted,
            parse_errors=self._parse_errors,
            last_message_at=self._last_message_at,
            gap_seconds=gap,
            has_gap=gap is not None and gap > self._gap_threshold_s,
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def handle_data(self, data: str | bytes) -> TelemetrySample | None:
        """Parse one event payload and append it to the buffer.

        A malformed payload is logged and dropped, and the parse-error
        message is recorded; it never raises.

        Returns:
            The buffered sample, or ``None`` if the payload was rejected.
        """
        try:
            sample = parse_record(data)
        except SampleParseError as exc:
            self._parse_errors += 1
            self._last_error = PARSE_ERROR_MESSAGE
            logger.warning("Dropping malformed stream record: %s", exc)
            return None

        self._buffer.append(sample)
        self._accepted += 1
        self._last_message_mono = self._clock()
        self._last_message_at = datetime.now(tz=UTC)
        return sample

    async def consume_once(self, client: httpx.AsyncClient) -> None:
        """Open one stream connection and ingest until the server closes it.

        Raises:
            httpx.HTTPError: On connection failure, a non-2xx response, or
                a read error while streaming.
        """
        async with client.stream(
            "GET",
            self._url,
            headers={"Accept": "text/event-stream"},
        ) as response:
            response.raise_for_status()
            self._mark_connected()
            async for data in iter_events(response.aiter_lines()):
                self.handle_data(data)

        logger.warning("Stream closed by server: %s", self._url)
        self._mark_disconnected()

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Consume the stream, reconnecting with backoff, until shutdown.

        Exceptions from a single connection are logged and never escape the
        loop. Setting *shutdown_event* interrupts an open connection.
        """
        logger.info("Stream consumer started (url=%s)", self._url)
        async with self._client_factory() as client:
            while not shutdown_event.is_set():
                try:
                    await self._consume_until_shutdown(client, shutdown_event)
                except httpx.HTTPError as exc:
                    logger.warning("Stream connection failed: %s", exc)
                    self._mark_disconnected()
                except Exception:
                    logger.error("Stream consumer error", exc_info=True)
                    self._mark_disconnected()

                if shutdown_event.is_set():
                    break

                logger.info("Reconnecting in %.1fs", self._current_backoff)
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(
                        shutdown_event.wait(),
                        timeout=self._current_backoff,
                    )
                self._increase_backoff()

        self._connected = False
        logger.info("Stream consumer stopped")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _consume_until_shutdown(
        self,
        client: httpx.AsyncClient,
        shutdown_event: asyncio.Event,
    ) -> None:
        """Run :meth:`consume_once`, cancelling it if shutdown is requested."""
        consume = asyncio.create_task(self.consume_once(client))
        stop = asyncio.create_task(shutdown_event.wait())
        try:
            await asyncio.wait({consume, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (consume, stop):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
        if not consume.cancelled():
            consume.result()

    def _mark_connected(self) -> None:
        logger.info("Stream connected: %s", self._url)
        self._connected = True
        self._last_error = None
        self._current_backoff = BASE_BACKOFF_S

    def _mark_disconnected(self) -> None:
        self._connected = False
        self._last_error = CONNECTION_ERROR_MESSAGE

    def _increase_backoff(self) -> None:
        """Double the reconnect delay, capped at max_backoff_s."""
        self._current_backoff = min(
            self._current_backoff * 2,
            self._max_backoff_s,
        )
