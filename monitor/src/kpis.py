"""
KPI aggregation over a window of telemetry samples.

Computes the fixed set of dashboard KPIs (state distribution, mean power,
energy delta, mean power factor, throughput, phase imbalance) from a slice
of samples. Each metric tolerates partial data on its own: a sample that
lacks a field is left out of that field's average rather than counted as
zero.

All functions here are pure: the same slice always yields the same
snapshot.

CHANGELOG:
- 2026-10-09: Expose phase_imbalance_pct for the insight detectors
- 2026-10-08: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from monitor.src.models import KpiSnapshot, MachineState, TelemetrySample


def _mean(values: Iterable[float]) -> float:
    """Arithmetic mean of *values*, or 0.0 when there are none."""
    total = 0.0
    count = 0
    for value in values:
        total += value
        count += 1
    return total / count if count else 0.0


# ---------------------------------------------------------------------------
# Per-sample helpers
# ---------------------------------------------------------------------------


def phase_imbalance_pct(sample: TelemetrySample) -> float | None:
    """Return the phase current imbalance of one sample, in percent.

    Imbalance is ``(max - min) / mean * 100`` over the three phase
    currents. Returns ``None`` when any current is absent or their mean is
    zero.
    """
    ir, iy, ib = sample.ir, sample.iy, sample.ib
    if ir is None or iy is None or ib is None:
        return None
    avg = (ir + iy + ib) / 3
    if avg == 0:
        return None
    return (max(ir, iy, ib) - min(ir, iy, ib)) / avg * 100


# ---------------------------------------------------------------------------
# Individual KPIs
# ---------------------------------------------------------------------------


def state_percentages(samples: Sequence[TelemetrySample]) -> tuple[float, float, float]:
    """Return ``(run_pct, idle_pct, off_pct)`` over samples with a known state.

    Samples with an unknown or missing state are ignored. All three are 0
    when no sample reports a known state.
    """
    counts = dict.fromkeys(MachineState, 0)
    for sample in samples:
        state = sample.machine_state
        if state is not None:
            counts[state] += 1

    total = sum(counts.values())
    if total == 0:
        return 0.0, 0.0, 0.0
    return (
        counts[MachineState.RUN] / total * 100,
        counts[MachineState.IDLE] / total * 100,
        counts[MachineState.OFF] / total * 100,
    )


def average_kw(samples: Sequence[TelemetrySample]) -> float:
    """Mean of the present active power readings; 0 if there are none."""
    return _mean(s.kw for s in samples if s.kw is not None)


def energy_kwh(samples: Sequence[TelemetrySample]) -> float:
    """Spread (max - min) of the cumulative energy counter.

    Returns 0 when no sample carries the counter.
    """
    readings = [s.kwh_total for s in samples if s.kwh_total is not None]
    if not readings:
        return 0.0
    delta = max(readings) - min(readings)
    return delta if delta > 0 else 0.0


def average_pf(samples: Sequence[TelemetrySample]) -> float:
    """Mean power factor over samples that are not OFF and report a PF.

    Samples with an unknown state count as not OFF.
    """
    return _mean(
        s.pf
        for s in samples
        if s.pf is not None and s.machine_state is not MachineState.OFF
    )


def throughput_per_min(samples: Sequence[TelemetrySample]) -> float:
    """Units produced per minute between the first and last sample.

    Uses only the two endpoint samples of the slice (by position), not the
    counter extremes. Returns 0 unless both endpoints carry the unit counter
    and a timestamp, and the elapsed time between them is positive.
    """
    if len(samples) < 2:
        return 0.0

    first, last = samples[0], samples[-1]
    if first.count_total is None or last.count_total is None:
        return 0.0

    if first.timestamp is None or last.timestamp is None:
        return 0.0

    elapsed_s = (last.timestamp - first.timestamp).total_seconds()
    if elapsed_s <= 0:
        return 0.0

    minutes = elapsed_s / 60
    return (last.count_total - first.count_total) / minutes


def average_phase_imbalance(samples: Sequence[TelemetrySample]) -> float:
    """Mean of the per-sample phase imbalance over samples where it is defined."""
    return _mean(
        value
        for value in (phase_imbalance_pct(s) for s in samples)
        if value is not None
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_kpis(samples: Sequence[TelemetrySample]) -> KpiSnapshot:
    """Compute every KPI for *samples* in one pass-per-metric.

    Args:
        samples: The visible window, oldest first. May be empty.

    Returns:
        A fresh :class:`KpiSnapshot`; all metrics are 0 for an empty slice.
    """
    run_pct, idle_pct, off_pct = state_percentages(samples)
    return KpiSnapshot(
        run_pct=run_pct,
        idle_pct=idle_pct,
        off_pct=off_pct,
        avg_kw=average_kw(samples),
        energy_kwh=energy_kwh(samples),
        avg_pf=average_pf(samples),
        throughput_per_min=throughput_per_min(samples),
        phase_imbalance_pct=average_phase_imbalance(samples),
        sample_count=len(samples),
    )
