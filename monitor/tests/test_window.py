"""
Unit tests for trailing-window selection.

Tests verify:
- select_window() returns the last W * 60 samples, in order.
- Shorter histories are returned whole; empty input gives an empty window.
- A zero-length window is empty; negative lengths are rejected.
- latest_sample() prefers the window and falls back to the full history.

CHANGELOG:
- 2026-10-16: Zero-length window selects nothing
- 2026-10-10: Cover latest_sample()
- 2026-10-08: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import pytest
from monitor.src.window import (
    WINDOW_CHOICES,
    latest_sample,
    select_window,
    window_sample_count,
)
from monitor.tests.factories import make_series


class TestSelectWindow:
    """The window is a count-based trailing slice."""

    def test_window_choices(self) -> None:
        assert WINDOW_CHOICES == (5, 15, 30)
        assert window_sample_count(15) == 900

    def test_long_history_is_trimmed_to_window(self) -> None:
        samples = make_series(1800)

        window = select_window(samples, 5)

        assert len(window) == 300
        assert window[0] is samples[1500]
        assert window[-1] is samples[-1]

    def test_short_history_is_returned_whole(self) -> None:
        samples = make_series(42)

        window = select_window(samples, 15)

        assert window == tuple(samples)

    def test_exact_length_history(self) -> None:
        samples = make_series(300)

        assert len(select_window(samples, 5)) == 300

    def test_empty_history(self) -> None:
        assert select_window([], 30) == ()

    def test_window_outside_choices_is_accepted(self) -> None:
        samples = make_series(200)

        assert len(select_window(samples, 1)) == 60

    def test_zero_window_is_empty(self) -> None:
        assert select_window(make_series(5), 0) == ()

    @pytest.mark.parametrize("minutes", [-1, -15])
    def test_negative_window_raises(self, minutes: int) -> None:
        with pytest.raises(ValueError, match="negative"):
            select_window(make_series(5), minutes)


class TestLatestSample:
    """The raw-record display shows the newest visible sample."""

    def test_latest_from_window(self) -> None:
        samples = make_series(10)
        window = select_window(samples, 5)

        assert latest_sample(samples, window) is samples[-1]

    def test_falls_back_to_history(self) -> None:
        samples = make_series(3)

        assert latest_sample(samples, ()) is samples[-1]

    def test_nothing_received(self) -> None:
        assert latest_sample((), ()) is None
