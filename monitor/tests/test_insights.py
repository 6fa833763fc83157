"""
Unit tests for insight detection.

Tests verify:
- Low power factor: strict rule (PF < 0.80 for 5 min) is a warning, the
  relaxed rule (PF < 0.90 for 2 min) is info, OFF samples never match.
- Phase imbalance: strict (> 15% for 2 min) and relaxed (> 10% for 1 min).
- Peak demand is reported for every non-empty window.
- Insights come out in a fixed order and are recomputed from scratch.
- Time-range labels and timestamp fallbacks, including records that only
  carry ts, time, device_time, sample_time or created_at.

CHANGELOG:
- 2026-10-16: Cover ts/created_at fallback in time-range labels
- 2026-10-11: Assert tier on emitted insights
- 2026-10-10: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

from monitor.src.insights import (
    LOW_PF,
    PHASE_IMBALANCE,
    compute_insights,
    detect_peak_demand,
    detect_run_category,
    format_time_range,
    format_timestamp,
)
from monitor.src.models import TelemetrySample
from monitor.src.parser import parse_record
from monitor.tests.factories import make_sample, make_series

_T0 = "2026-10-14T08:00:00+00:00"


def _segments(*segments: tuple[int, dict[str, object]]) -> list[TelemetrySample]:
    """Build consecutive samples from (count, fields) segments."""
    samples: list[TelemetrySample] = []
    for count, fields in segments:
        samples.extend(make_series(count, start=len(samples), **fields))
    return samples


# ---------------------------------------------------------------------------
# Test: low power factor
# ---------------------------------------------------------------------------


class TestLowPowerFactor:
    """Sustained low PF while the machine is not OFF."""

    def test_strict_match_is_a_warning(self) -> None:
        samples = _segments(
            (300, {"state": "RUN", "pf": 0.75}),
            (30, {"state": "RUN", "pf": 0.95}),
        )

        insight = detect_run_category(samples, LOW_PF)

        assert insight is not None
        assert insight.id == "low-pf"
        assert insight.title == "Low Power Factor"
        assert insight.severity == "warning"
        assert insight.tier == "strict"
        assert insight.details == "Average PF in span: 0.750"
        assert insight.time_range == (
            f"{_T0} → 2026-10-14T08:04:59+00:00 (5.0 min)"
        )

    def test_relaxed_match_is_info(self) -> None:
        samples = make_series(150, state="RUN", pf=0.85)

        insight = detect_run_category(samples, LOW_PF)

        assert insight is not None
        assert insight.severity == "info"
        assert insight.tier == "relaxed"
        assert insight.description.startswith("Relaxed rule")
        assert insight.time_range.endswith("(2.5 min)")

    def test_strict_preferred_over_relaxed(self) -> None:
        """A window matching both tiers reports the strict one."""
        samples = _segments(
            (200, {"state": "RUN", "pf": 0.85}),
            (1, {"state": "RUN", "pf": 0.99}),
            (320, {"state": "RUN", "pf": 0.70}),
        )

        insight = detect_run_category(samples, LOW_PF)

        assert insight is not None
        assert insight.tier == "strict"
        assert insight.time_range.startswith("2026-10-14T08:03:21+00:00")

    def test_just_under_two_minutes_is_not_reported(self) -> None:
        samples = make_series(119, state="RUN", pf=0.85)

        assert detect_run_category(samples, LOW_PF) is None

    def test_off_samples_never_match(self) -> None:
        samples = make_series(400, state="OFF", pf=0.5)

        assert detect_run_category(samples, LOW_PF) is None

    def test_unknown_state_counts_as_not_off(self) -> None:
        samples = make_series(300, pf=0.5)

        insight = detect_run_category(samples, LOW_PF)

        assert insight is not None
        assert insight.tier == "strict"


# ---------------------------------------------------------------------------
# Test: phase imbalance
# ---------------------------------------------------------------------------


class TestPhaseImbalance:
    """Sustained imbalance between the three phase currents."""

    def test_strict_match(self) -> None:
        samples = make_series(130, ir=9.0, iy=10.0, ib=11.0)

        insight = detect_run_category(samples, PHASE_IMBALANCE)

        assert insight is not None
        assert insight.id == "phase-imbalance"
        assert insight.severity == "warning"
        assert insight.details == "Average imbalance: 20.0%"
        assert insight.time_range.endswith("(2.2 min)")

    def test_relaxed_match(self) -> None:
        samples = make_series(70, ir=9.4, iy=10.0, ib=10.6)

        insight = detect_run_category(samples, PHASE_IMBALANCE)

        assert insight is not None
        assert insight.severity == "info"
        assert insight.tier == "relaxed"
        assert insight.details == "Average imbalance: 12.0%"

    def test_balanced_phases(self) -> None:
        samples = make_series(300, ir=10.0, iy=10.0, ib=10.0)

        assert detect_run_category(samples, PHASE_IMBALANCE) is None

    def test_missing_currents(self) -> None:
        samples = make_series(300, ir=9.0, iy=20.0)

        assert detect_run_category(samples, PHASE_IMBALANCE) is None


# ---------------------------------------------------------------------------
# Test: peak demand
# ---------------------------------------------------------------------------


class TestPeakDemand:
    """The highest rolling 15-minute mean power."""

    def test_short_window(self) -> None:
        samples = make_series(30, kw=2.0)

        insight = detect_peak_demand(samples)

        assert insight is not None
        assert insight.id == "peak-demand"
        assert insight.title == "Peak 15-min Demand"
        assert insight.severity == "info"
        assert insight.tier is None
        assert insight.details == "Average kW: 2.00"
        assert insight.time_range == f"{_T0} → 2026-10-14T08:00:29+00:00"

    def test_full_window_peak(self) -> None:
        samples = _segments((900, {"kw": 10.0}), (900, {"kw": 30.0}))

        insight = detect_peak_demand(samples)

        assert insight is not None
        assert insight.details == "Average kW: 30.00"
        assert insight.time_range.startswith("2026-10-14T08:15:00+00:00")

    def test_empty_window(self) -> None:
        assert detect_peak_demand([]) is None


# ---------------------------------------------------------------------------
# Test: compute_insights
# ---------------------------------------------------------------------------


class TestComputeInsights:
    """All categories together, in a fixed order."""

    def test_empty_window(self) -> None:
        assert compute_insights([]) == []

    def test_only_peak_demand_for_short_healthy_window(self) -> None:
        samples = make_series(119, state="RUN", pf=0.85, kw=5.0)

        insights = compute_insights(samples)

        assert [i.id for i in insights] == ["peak-demand"]

    def test_category_order(self) -> None:
        samples = make_series(320, state="RUN", pf=0.7, kw=12.0, ir=9, iy=10, ib=11)

        insights = compute_insights(samples)

        assert [i.id for i in insights] == ["low-pf", "phase-imbalance", "peak-demand"]

    def test_recomputed_from_scratch(self) -> None:
        samples = make_series(320, state="RUN", pf=0.7, kw=12.0)

        assert compute_insights(samples) == compute_insights(samples)
        assert compute_insights(samples[:100]) != compute_insights(samples)


# ---------------------------------------------------------------------------
# Test: labels
# ---------------------------------------------------------------------------


class TestLabels:
    """Timestamp and time-range rendering."""

    def test_format_timestamp(self) -> None:
        assert format_timestamp(make_sample(0)) == _T0

    def test_format_timestamp_without_sample(self) -> None:
        assert format_timestamp(None) == "(no data)"

    def test_format_timestamp_without_timestamp(self) -> None:
        assert format_timestamp(make_sample(0, timestamp=None)) == "(no timestamp)"

    def test_ts_key_is_used_without_timestamp(self) -> None:
        sample = parse_record({"ts": "2026-10-14T08:00:00Z", "pf": 0.5})

        assert format_timestamp(sample) == _T0

    def test_epoch_ms_created_at(self) -> None:
        sample = parse_record({"created_at": 1_760_428_800_000, "pf": 0.5})

        assert format_timestamp(sample) == "2025-10-14T08:00:00+00:00"

    def test_fallback_keys_in_order(self) -> None:
        sample = parse_record(
            {"created_at": 1_760_428_800, "time": "2026-10-14T08:00:00+00:00"}
        )

        assert format_timestamp(sample) == _T0

    def test_empty_fallback_key_is_skipped(self) -> None:
        sample = parse_record({"ts": "", "sample_time": 1_760_428_800})

        assert format_timestamp(sample) == "2025-10-14T08:00:00+00:00"

    def test_unparseable_fallback_is_shown_as_text(self) -> None:
        sample = parse_record({"device_time": "shift-2 08:00"})

        assert format_timestamp(sample) == "shift-2 08:00"

    def test_fallback_key_in_span_label(self) -> None:
        samples = [
            parse_record({"ts": 1_760_428_800 + i, "state": "RUN", "pf": 0.85})
            for i in range(130)
        ]

        insight = detect_run_category(samples, LOW_PF)

        assert insight is not None
        assert insight.time_range == (
            "2025-10-14T08:00:00+00:00 → 2025-10-14T08:02:09+00:00 (2.2 min)"
        )

    def test_time_range_without_timestamps(self) -> None:
        samples = make_series(60, timestamp=None)

        label = format_time_range(samples, 0, 59)

        assert label == "(no timestamp) → (no timestamp) (1.0 min)"

    def test_time_range_without_duration(self) -> None:
        samples = make_series(2)

        label = format_time_range(samples, 0, 1, with_duration=False)

        assert label == f"{_T0} → 2026-10-14T08:00:01+00:00"
