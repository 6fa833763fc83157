"""
Insight detection over the visible window of telemetry samples.

Produces an ordered list of :class:`~monitor.src.models.Insight` records:

1. **low-pf**: sustained low power factor while the machine is not OFF.
2. **phase-imbalance**: sustained phase current imbalance.
3. **peak-demand**: the 15-minute window with the highest mean power.

The first two categories try a strict rule and fall back to a relaxed rule
(shorter duration, looser threshold) so that short datasets still yield a
result. A strict match is reported as a ``warning``, a relaxed match as
``info``. The relaxed thresholds are kept exactly as the dashboard has
always used them. Peak demand is informational and is always reported for a
non-empty window.

Insights are recomputed from scratch on every call; nothing is carried over
between calls.

CHANGELOG:
- 2026-10-16: Fall back to ts/time/created_at keys in time-range labels
- 2026-10-11: Record the matching tier on each insight
- 2026-10-10: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from monitor.src.detectors import SamplePredicate, find_peak_window, find_run
from monitor.src.kpis import phase_imbalance_pct
from monitor.src.models import (
    Insight,
    InsightId,
    MachineState,
    Span,
    TelemetrySample,
    Tier,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

PEAK_DEMAND_MINUTES = 15

NO_DATA_LABEL = "(no data)"
NO_TIMESTAMP_LABEL = "(no timestamp)"

TIMESTAMP_FALLBACK_FIELDS: tuple[str, ...] = (
    "ts",
    "time",
    "device_time",
    "sample_time",
    "created_at",
)
"""Extra keys tried, in order, when a record has no ``timestamp``."""


# ---------------------------------------------------------------------------
# Rule configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TierRule:
    """One threshold tier of a run-based insight category.

    Attributes:
        predicate: Returns True for samples that are part of the condition.
        min_minutes: Minimum duration of the contiguous run.
        description: Human-readable description of the rule.
    """

    predicate: SamplePredicate
    min_minutes: float
    description: str


@dataclass(frozen=True)
class RunCategory:
    """A run-based insight category with a strict and a relaxed tier.

    Attributes:
        insight_id: Identifier placed on the emitted insight.
        title: Display title.
        strict: Tier tried first; a match is a ``warning``.
        relaxed: Fallback tier; a match is ``info``.
        metric: Per-sample value averaged over the detected span.
        format_details: Renders the span average (``None`` if no sample
            in the span carried the metric).
    """

    insight_id: InsightId
    title: str
    strict: TierRule
    relaxed: TierRule
    metric: Callable[[TelemetrySample], float | None]
    format_details: Callable[[float | None], str]


def _low_pf(threshold: float) -> SamplePredicate:
    """Predicate: PF present and below *threshold* while not OFF."""

    def predicate(sample: TelemetrySample) -> bool:
        return (
            sample.pf is not None
            and sample.pf < threshold
            and sample.machine_state is not MachineState.OFF
        )

    return predicate


def _imbalance_above(threshold_pct: float) -> SamplePredicate:
    """Predicate: phase imbalance defined and above *threshold_pct*."""

    def predicate(sample: TelemetrySample) -> bool:
        value = phase_imbalance_pct(sample)
        return value is not None and value > threshold_pct

    return predicate


def _fmt(value: float | None, decimals: int) -> str:
    return "-" if value is None else f"{value:.{decimals}f}"


LOW_PF = RunCategory(
    insight_id="low-pf",
    title="Low Power Factor",
    strict=TierRule(
        predicate=_low_pf(0.80),
        min_minutes=5,
        description="PF < 0.80 for ≥ 5 minutes detected in the current window.",
    ),
    relaxed=TierRule(
        predicate=_low_pf(0.90),
        min_minutes=2,
        description=(
            "Relaxed rule: PF < 0.90 for ≥ 2 minutes (allowed for short datasets)."
        ),
    ),
    metric=lambda sample: sample.pf,
    format_details=lambda avg: f"Average PF in span: {_fmt(avg, 3)}",
)

PHASE_IMBALANCE = RunCategory(
    insight_id="phase-imbalance",
    title="Phase Imbalance Detected",
    strict=TierRule(
        predicate=_imbalance_above(15),
        min_minutes=2,
        description="Phase current imbalance > 15% for ≥ 2 minutes.",
    ),
    relaxed=TierRule(
        predicate=_imbalance_above(10),
        min_minutes=1,
        description=(
            "Relaxed rule: imbalance > 10% for ≥ 1 minute "
            "(allowed for short datasets)."
        ),
    ),
    metric=phase_imbalance_pct,
    format_details=lambda avg: f"Average imbalance: {_fmt(avg, 1)}%",
)

RUN_CATEGORIES: tuple[RunCategory, ...] = (LOW_PF, PHASE_IMBALANCE)
"""Run-based categories, in the order their insights are emitted."""


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_timestamp(sample: TelemetrySample | None) -> str:
    """Render the timestamp of *sample* for a time-range label.

    Records that lack ``timestamp`` fall back to the first non-empty extra
    key in :data:`TIMESTAMP_FALLBACK_FIELDS`. Values that parse as ISO-8601
    or epoch seconds/milliseconds are rendered as ISO-8601; anything else
    is shown as text.
    """
    if sample is None:
        return NO_DATA_LABEL
    if sample.timestamp is not None:
        return sample.timestamp.isoformat()

    extras = sample.model_extra or {}
    for key in TIMESTAMP_FALLBACK_FIELDS:
        raw = extras.get(key)
        if not raw:
            continue
        parsed = parse_timestamp(raw)
        return parsed.isoformat() if parsed is not None else str(raw)
    return NO_TIMESTAMP_LABEL


def format_time_range(
    samples: Sequence[TelemetrySample],
    start_index: int,
    end_index: int,
    *,
    with_duration: bool = True,
) -> str:
    """Render ``"<start> → <end>"`` for an inclusive index range.

    With *with_duration*, the count-based length in minutes is appended,
    e.g. ``"... (5.0 min)"``.
    """
    label = (
        f"{format_timestamp(samples[start_index])} → "
        f"{format_timestamp(samples[end_index])}"
    )
    if with_duration:
        minutes = (end_index - start_index + 1) / 60
        label += f" ({minutes:.1f} min)"
    return label


def _span_average(
    samples: Sequence[TelemetrySample],
    span: Span,
    metric: Callable[[TelemetrySample], float | None],
) -> float | None:
    """Mean of *metric* over the span, skipping samples where it is absent."""
    values = [
        value
        for value in (metric(s) for s in samples[span.start_index : span.end_index + 1])
        if value is not None
    ]
    if not values:
        return None
    return sum(values) / len(values)


# ---------------------------------------------------------------------------
# Category evaluation
# ---------------------------------------------------------------------------


def detect_run_category(
    samples: Sequence[TelemetrySample],
    category: RunCategory,
) -> Insight | None:
    """Evaluate one run-based category with strict-then-relaxed fallback.

    Returns:
        The insight for the first tier that matched, or ``None`` when
        neither tier found a long enough run.
    """
    tier: Tier = "strict"
    rule = category.strict
    span = find_run(samples, rule.predicate, rule.min_minutes)

    if span is None:
        tier = "relaxed"
        rule = category.relaxed
        span = find_run(samples, rule.predicate, rule.min_minutes)

    if span is None:
        return None

    logger.debug(
        "Insight '%s' matched %s tier at samples %d..%d",
        category.insight_id,
        tier,
        span.start_index,
        span.end_index,
    )
    return Insight(
        id=category.insight_id,
        title=category.title,
        severity="warning" if tier == "strict" else "info",
        description=rule.description,
        details=category.format_details(_span_average(samples, span, category.metric)),
        time_range=format_time_range(samples, span.start_index, span.end_index),
        tier=tier,
    )


def detect_peak_demand(
    samples: Sequence[TelemetrySample],
    minutes: int = PEAK_DEMAND_MINUTES,
) -> Insight | None:
    """Report the rolling window with the highest mean power.

    Always returns an insight for a non-empty window; ``None`` otherwise.
    """
    peak = find_peak_window(samples, minutes)
    if peak is None:
        return None

    return Insight(
        id="peak-demand",
        title=f"Peak {minutes}-min Demand",
        severity="info",
        description=(
            f"Highest rolling {minutes}-minute average kW in the current window."
        ),
        details=f"Average kW: {peak.avg_kw:.2f}",
        time_range=format_time_range(
            samples, peak.start_index, peak.end_index, with_duration=False
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_insights(samples: Sequence[TelemetrySample]) -> list[Insight]:
    """Compute all insights for the visible window.

    Categories are evaluated in a fixed order: low power factor, phase
    imbalance, peak demand.

    Args:
        samples: The visible window, oldest first.

    Returns:
        The insights that matched, in category order. Empty for an empty
        window.
    """
    if not samples:
        return []

    insights: list[Insight] = []
    for category in RUN_CATEGORIES:
        insight = detect_run_category(samples, category)
        if insight is not None:
            insights.append(insight)

    peak = detect_peak_demand(samples)
    if peak is not None:
        insights.append(peak)

    return insights
