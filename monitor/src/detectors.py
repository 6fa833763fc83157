"""
Contiguous-run and rolling-peak detectors over a window of samples.

Both detectors are count-based and assume one sample per second, so a
duration of N minutes means ``N * 60`` consecutive samples.

- find_run: first contiguous run of samples matching a predicate that is at
  least a minimum duration long.
- find_peak_window: fixed-size window with the highest mean active power.

Threshold tiers (strict first, relaxed as fallback) are applied by the
callers in :mod:`monitor.src.insights`, not here.

CHANGELOG:
- 2026-10-09: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from monitor.src.models import PeakWindow, Span, TelemetrySample
from monitor.src.window import SAMPLES_PER_MINUTE

SamplePredicate = Callable[[TelemetrySample], bool]


def min_sample_count(minutes: float) -> int:
    """Return the number of 1 Hz samples in *minutes*, rounded down."""
    return math.floor(minutes * SAMPLES_PER_MINUTE)


def find_run(
    samples: Sequence[TelemetrySample],
    predicate: SamplePredicate,
    min_minutes: float,
) -> Span | None:
    """Find the first contiguous run of matching samples of sufficient length.

    Scans left to right once. A run opens at the first matching sample and
    closes at the first non-matching sample or at the end of the slice. The
    first run that is at least ``min_minutes * 60`` samples long is returned
    straight away; later, longer runs are not considered.

    Args:
        samples: The window to scan, oldest first.
        predicate: Returns True for samples that belong to a run.
        min_minutes: Minimum run duration in minutes.

    Returns:
        The inclusive index span of the run, or ``None`` if the slice is
        shorter than the minimum or no run qualifies.
    """
    min_samples = min_sample_count(min_minutes)
    if len(samples) < min_samples:
        return None

    start: int | None = None
    for index, sample in enumerate(samples):
        if predicate(sample):
            if start is None:
                start = index
            continue
        if start is not None and index - start >= min_samples:
            return Span(start_index=start, end_index=index - 1)
        start = None

    if start is not None and len(samples) - start >= min_samples:
        return Span(start_index=start, end_index=len(samples) - 1)
    return None


def find_peak_window(
    samples: Sequence[TelemetrySample],
    minutes: float = 15,
) -> PeakWindow | None:
    """Find the window of ``minutes * 60`` samples with the highest mean kW.

    The window shrinks to the whole slice when the slice is shorter. The
    rolling mean is maintained with a running sum, adding the entering
    sample and subtracting the leaving one, so the scan is O(n). On ties the
    earliest window wins.

    Missing power readings count as 0 here, unlike the KPI average which
    leaves them out.

    Args:
        samples: The window to scan, oldest first.
        minutes: Length of the rolling window in minutes.

    Returns:
        The best window, or ``None`` for an empty slice.
    """
    if not samples:
        return None

    size = min(len(samples), min_sample_count(minutes))
    if size <= 0:
        return None

    kw = [s.kw if s.kw is not None else 0.0 for s in samples]

    running = sum(kw[:size])
    best_avg = running / size
    best_start = 0

    for end in range(size, len(kw)):
        running += kw[end]
        running -= kw[end - size]
        avg = running / size
        if avg > best_avg:
            best_avg = avg
            best_start = end - size + 1

    return PeakWindow(
        avg_kw=best_avg,
        start_index=best_start,
        end_index=best_start + size - 1,
    )
