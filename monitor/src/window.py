"""
Trailing-window selection over the buffered sample history.

A window of W minutes is the last ``W * 60`` samples of the history. This is
a count-based stand-in for elapsed time that assumes the device streams at
a steady 1 Hz; when samples arrive irregularly the "minutes" are only
approximate. Gaps are deliberately not corrected for.

CHANGELOG:
- 2026-10-16: A zero-length window selects no samples
- 2026-10-10: Add latest_sample for the raw-record display
- 2026-10-08: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Sequence

from monitor.src.models import TelemetrySample

SAMPLES_PER_MINUTE = 60
"""Samples in one minute at the nominal 1 Hz stream rate."""

WINDOW_CHOICES: tuple[int, ...] = (5, 15, 30)
"""Window lengths, in minutes, offered to consumers."""

DEFAULT_WINDOW_MINUTES = 15


def window_sample_count(window_minutes: int) -> int:
    """Return the number of samples that stand in for *window_minutes*."""
    return window_minutes * SAMPLES_PER_MINUTE


def select_window(
    samples: Sequence[TelemetrySample],
    window_minutes: int,
) -> tuple[TelemetrySample, ...]:
    """Return the trailing slice of *samples* covering *window_minutes*.

    The result holds the final ``min(len(samples), window_minutes * 60)``
    samples in their original order; the whole input when it is shorter
    than the window, and an empty tuple for an empty input.

    Args:
        samples: Buffered history, oldest first.
        window_minutes: Requested window length in minutes. Values outside
            :data:`WINDOW_CHOICES` behave the same way; 0 selects nothing.

    Returns:
        Tuple of the selected samples.

    Raises:
        ValueError: If *window_minutes* is negative.
    """
    if window_minutes < 0:
        raise ValueError(
            f"window_minutes must not be negative (got {window_minutes})"
        )

    count = min(len(samples), window_sample_count(window_minutes))
    if count == 0:
        return ()
    return tuple(samples[len(samples) - count :])


def latest_sample(
    samples: Sequence[TelemetrySample],
    window: Sequence[TelemetrySample],
) -> TelemetrySample | None:
    """Return the newest sample of *window*, falling back to *samples*.

    Returns ``None`` when both are empty.
    """
    if window:
        return window[-1]
    if samples:
        return samples[-1]
    return None
