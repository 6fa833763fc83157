"""
Unit tests for the run and peak-window detectors.

Tests verify:
- find_run() returns the first qualifying run, not the longest.
- Runs ending at the slice end qualify; slices shorter than the minimum
  never do.
- find_peak_window() finds the highest rolling mean, prefers the earliest
  window on ties, and shrinks to short slices.

CHANGELOG:
- 2026-10-09: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import pytest
from monitor.src.detectors import find_peak_window, find_run, min_sample_count
from monitor.src.models import PeakWindow, Span, TelemetrySample
from monitor.tests.factories import make_sample, make_series


def _is_low(sample: TelemetrySample) -> bool:
    return sample.pf is not None and sample.pf < 0.8


def _pf_series(*segments: tuple[int, float]) -> list[TelemetrySample]:
    """Build consecutive samples from (count, pf) segments."""
    samples: list[TelemetrySample] = []
    for count, pf in segments:
        samples.extend(make_series(count, start=len(samples), pf=pf))
    return samples


def _kw_series(values: list[float | None]) -> list[TelemetrySample]:
    return [make_sample(i, kw=kw) for i, kw in enumerate(values)]


class TestMinSampleCount:
    """Minutes convert to 1 Hz sample counts, rounded down."""

    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [(5, 300), (2, 120), (0.5, 30), (0.25, 15)],
    )
    def test_conversion(self, minutes: float, expected: int) -> None:
        assert min_sample_count(minutes) == expected


# ---------------------------------------------------------------------------
# Test: find_run
# ---------------------------------------------------------------------------


class TestFindRun:
    """First contiguous run at least min_minutes long."""

    def test_run_followed_by_normal_samples(self) -> None:
        samples = _pf_series((300, 0.75), (10, 0.95))

        assert find_run(samples, _is_low, 5) == Span(start_index=0, end_index=299)

    def test_run_reaching_end_of_slice(self) -> None:
        samples = _pf_series((20, 0.95), (60, 0.5))

        assert find_run(samples, _is_low, 1) == Span(start_index=20, end_index=79)

    def test_first_qualifying_run_wins(self) -> None:
        samples = _pf_series((60, 0.5), (1, 0.95), (200, 0.5))

        assert find_run(samples, _is_low, 1) == Span(start_index=0, end_index=59)

    def test_short_run_is_skipped(self) -> None:
        samples = _pf_series((30, 0.5), (1, 0.95), (70, 0.5))

        assert find_run(samples, _is_low, 1) == Span(start_index=31, end_index=100)

    def test_run_one_sample_short(self) -> None:
        samples = _pf_series((59, 0.5), (10, 0.95))

        assert find_run(samples, _is_low, 1) is None

    def test_slice_shorter_than_minimum(self) -> None:
        samples = _pf_series((119, 0.5))

        assert find_run(samples, _is_low, 2) is None

    def test_no_matching_samples(self) -> None:
        assert find_run(_pf_series((400, 0.99)), _is_low, 5) is None

    def test_empty_slice(self) -> None:
        assert find_run([], _is_low, 1) is None


# ---------------------------------------------------------------------------
# Test: find_peak_window
# ---------------------------------------------------------------------------


class TestFindPeakWindow:
    """Rolling window with the highest mean active power."""

    def test_peak_in_second_half(self) -> None:
        samples = _kw_series([1.0] * 60 + [5.0] * 60)

        peak = find_peak_window(samples, minutes=1)

        assert peak == PeakWindow(avg_kw=5.0, start_index=60, end_index=119)

    def test_earliest_window_wins_ties(self) -> None:
        samples = _kw_series([2.0] * 90)

        peak = find_peak_window(samples, minutes=1)

        assert peak is not None
        assert peak.start_index == 0
        assert peak.avg_kw == 2.0

    def test_short_slice_uses_whole_slice(self) -> None:
        samples = _kw_series([1.0, 2.0, 3.0])

        peak = find_peak_window(samples, minutes=15)

        assert peak == PeakWindow(avg_kw=2.0, start_index=0, end_index=2)

    def test_missing_kw_counts_as_zero(self) -> None:
        samples = _kw_series([None, None, 3.0])

        peak = find_peak_window(samples)

        assert peak is not None
        assert peak.avg_kw == 1.0

    def test_single_spike(self) -> None:
        values: list[float | None] = [0.0] * 200
        values[150] = 60.0

        peak = find_peak_window(_kw_series(values), minutes=1)

        assert peak is not None
        assert peak.start_index == 91
        assert peak.end_index == 150
        assert peak.avg_kw == pytest.approx(1.0)

    def test_empty_slice(self) -> None:
        assert find_peak_window([]) is None

    def test_zero_length_window(self) -> None:
        assert find_peak_window(_kw_series([1.0]), minutes=0) is None
