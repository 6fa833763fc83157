"""
Line monitor daemon main loop.

Runs two concurrent asyncio loops:
1. **Ingest loop**: the StreamConsumer reads the device event stream, parses
   each record into a TelemetrySample, and appends it to the SampleBuffer.
2. **Report loop**: takes a buffer snapshot, selects the configured window,
   computes KPIs and insights, logs a summary and the latest record, and
   refreshes the health file.

Both loops are resilient: an exception in one iteration is logged and does
not crash the loop or affect the other loop. Graceful shutdown on
SIGTERM/SIGINT sets a shared asyncio.Event; both loops finish and a final
report is logged before exiting.

Structured JSON logging is used for all events.

CHANGELOG:
- 2026-10-16: Log the latest buffered record with each report
- 2026-10-13: Write stream status into the health file on every report
- 2026-10-12: Initial creation (STORY-012)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from monitor.src.health import HealthWriter
from monitor.src.insights import compute_insights, format_timestamp
from monitor.src.kpis import compute_kpis
from monitor.src.window import select_window

if TYPE_CHECKING:
    from monitor.src.config import MonitorSettings
    from monitor.src.stream import StreamConsumer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: MonitorSettings) -> None:
    """Log a config summary at startup."""
    logger.info(
        "Line monitor starting with config: "
        "stream_url=%s, buffer_capacity=%s, window_minutes=%s, "
        "gap_threshold_s=%s, max_backoff_s=%s, report_interval_s=%s, "
        "health_path=%s, log_level=%s",
        settings.stream_url or "(disabled)",
        settings.buffer_capacity,
        settings.window_minutes,
        settings.gap_threshold_s,
        settings.max_backoff_s,
        settings.report_interval_s,
        settings.health_path,
        settings.log_level,
    )


# ---------------------------------------------------------------------------
# Single-iteration functions (easily testable)
# ---------------------------------------------------------------------------


def _report_once(
    *,
    consumer: StreamConsumer,
    window_minutes: int,
    health: HealthWriter | None,
) -> None:
    """Compute and log KPIs and insights for the current window.

    Catches all exceptions so that the caller's loop is never broken. The
    health writer is refreshed after every attempt.

    Args:
        consumer: The stream consumer whose buffer is reported on.
        window_minutes: Visible window length in minutes.
        health: HealthWriter instance, or None to skip health writes.
    """
    try:
        window = select_window(consumer.buffer.snapshot(), window_minutes)
        if not window:
            logger.info("No samples buffered yet, skipping report")
        else:
            kpis = compute_kpis(window)
            insights = compute_insights(window)
            logger.info(
                "Window %dmin (%d samples): run=%.1f%% idle=%.1f%% off=%.1f%% "
                "avg_kw=%.2f energy_kwh=%.2f avg_pf=%.3f "
                "throughput=%.2f/min imbalance=%.1f%%",
                window_minutes,
                kpis.sample_count,
                kpis.run_pct,
                kpis.idle_pct,
                kpis.off_pct,
                kpis.avg_kw,
                kpis.energy_kwh,
                kpis.avg_pf,
                kpis.throughput_per_min,
                kpis.phase_imbalance_pct,
            )
            for insight in insights:
                log = logger.warning if insight.severity == "warning" else logger.info
                log(
                    "Insight %s: %s (%s)",
                    insight.id,
                    insight.details,
                    insight.time_range,
                )

            latest = consumer.buffer.latest()
            if latest is not None:
                logger.info(
                    "Latest record at %s: state=%s kw=%s",
                    format_timestamp(latest),
                    latest.state,
                    latest.kw,
                )
    except Exception:
        logger.error("Report cycle error", exc_info=True)

    status = consumer.status()
    if status.has_gap:
        logger.warning(
            "No new data received for %.0fs",
            status.gap_seconds,
        )

    if health is not None:
        try:
            health.set_status(status)
            health.record_report()
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)


# ---------------------------------------------------------------------------
# Loop runners
# ---------------------------------------------------------------------------


async def _report_loop(
    *,
    consumer: StreamConsumer,
    window_minutes: int,
    report_interval_s: float,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None,
) -> None:
    """Run the report loop until shutdown_event is set."""
    logger.info("Report loop started (interval=%ss)", report_interval_s)
    while not shutdown_event.is_set():
        _report_once(consumer=consumer, window_minutes=window_minutes, health=health)
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=report_interval_s,
            )
    logger.info("Report loop stopped")


async def run_loops(
    *,
    consumer: StreamConsumer,
    window_minutes: int,
    report_interval_s: float,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
) -> None:
    """Run ingest and report loops concurrently until shutdown.

    Both loops run as independent asyncio tasks via asyncio.gather(). When
    the shutdown_event is set, both loops stop and one final report is
    logged before returning.

    Args:
        consumer: The stream consumer (ingest loop).
        window_minutes: Visible window length in minutes.
        report_interval_s: Seconds between report cycles.
        shutdown_event: Event to signal graceful shutdown.
        health: HealthWriter instance, or None to skip health writes.
    """
    logger.info("Starting concurrent ingest and report loops")

    await asyncio.gather(
        consumer.run(shutdown_event),
        _report_loop(
            consumer=consumer,
            window_minutes=window_minutes,
            report_interval_s=report_interval_s,
            shutdown_event=shutdown_event,
            health=health,
        ),
    )

    logger.info("Logging final report before exit")
    _report_once(consumer=consumer, window_minutes=window_minutes, health=health)
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build components, run loops.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.

    Raises:
        RuntimeError: If STREAM_URL is not configured.
    """
    from monitor.src.buffer import SampleBuffer
    from monitor.src.config import MonitorSettings
    from monitor.src.stream import StreamConsumer

    settings = MonitorSettings()
    configure_logging(settings.log_level)
    log_config_summary(settings)

    if not settings.stream_url:
        raise RuntimeError("STREAM_URL must be set to run the line monitor daemon")

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    consumer = StreamConsumer(
        settings.stream_url,
        SampleBuffer(capacity=settings.buffer_capacity),
        max_backoff_s=settings.max_backoff_s,
        gap_threshold_s=settings.gap_threshold_s,
    )

    await run_loops(
        consumer=consumer,
        window_minutes=settings.window_minutes,
        report_interval_s=settings.report_interval_s,
        shutdown_event=shutdown_event,
        health=HealthWriter(settings.health_path),
    )


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event.

    Args:
        shutdown_event: The event to set for graceful shutdown.
    """
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the line monitor daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
