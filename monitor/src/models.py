"""
Value objects for device telemetry, KPI snapshots, and insights.

Defines the TelemetrySample pydantic model that represents one per-second
reading from a monitored machine, plus the derived value objects returned
by the analytics engine (KpiSnapshot, Insight) and the index spans produced
by the run and peak detectors.

Every metric on TelemetrySample is optional. A missing, non-numeric, or
non-finite value is stored as ``None`` so aggregations can tell an absent
reading apart from a legitimate zero.

CHANGELOG:
- 2026-10-16: Expose parse_timestamp for time-range labels
- 2026-10-12: Keep unknown record keys as extras so exports carry them
- 2026-10-09: Add Span / PeakWindow detector results
- 2026-10-08: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

# Epoch values above this are milliseconds, below it seconds.
_EPOCH_MS_THRESHOLD = 1e12

NUMERIC_FIELDS: tuple[str, ...] = (
    "kw",
    "pf",
    "ir",
    "iy",
    "ib",
    "vr",
    "vy",
    "vb",
    "count_total",
    "kwh_total",
)
"""TelemetrySample fields holding optional floating point readings."""


class MachineState(StrEnum):
    """Known operating states reported by the device."""

    RUN = "RUN"
    IDLE = "IDLE"
    OFF = "OFF"


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _to_float(value: object) -> float | None:
    """Return *value* as a finite float, or ``None`` when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 string or an epoch number into an aware datetime.

    Epoch numbers above 1e12 are read as milliseconds, anything else as
    seconds. Naive datetimes are assumed to be UTC. Returns ``None`` for
    anything that cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
            parsed = datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# ---------------------------------------------------------------------------
# Telemetry sample
# ---------------------------------------------------------------------------


class TelemetrySample(BaseModel):
    """A single telemetry reading from the monitored device.

    Instances are immutable. Keys that are not declared below (for example
    ``device_id``) are kept as pydantic extras so that a tabular export of
    the sample reproduces every field of the original record.

    Attributes:
        timestamp: Instant the reading was taken, timezone-aware.
        state: Operating state as reported (``RUN``, ``IDLE``, ``OFF`` or
            anything else, which counts as unknown).
        kw: Active power in kilowatts.
        pf: Power factor, nominally in [-1, 1].
        ir: Current on the R phase in amperes.
        iy: Current on the Y phase in amperes.
        ib: Current on the B phase in amperes.
        vr: Voltage on the R phase in volts.
        vy: Voltage on the Y phase in volts.
        vb: Voltage on the B phase in volts.
        count_total: Cumulative produced-unit counter.
        kwh_total: Cumulative energy counter in kilowatt-hours.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    timestamp: datetime | None = None
    state: str | None = None
    kw: float | None = None
    pf: float | None = None
    ir: float | None = None
    iy: float | None = None
    ib: float | None = None
    vr: float | None = None
    vy: float | None = None
    vb: float | None = None
    count_total: float | None = None
    kwh_total: float | None = None

    @field_validator(*NUMERIC_FIELDS, mode="before")
    @classmethod
    def _coerce_reading(cls, v: object) -> float | None:
        """Map non-numeric and non-finite readings to ``None``."""
        return _to_float(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, v: object) -> datetime | None:
        """Accept ISO-8601 strings and epoch seconds/milliseconds."""
        return parse_timestamp(v)

    @field_validator("state", mode="before")
    @classmethod
    def _coerce_state(cls, v: object) -> str | None:
        """Keep string states verbatim; anything else is unknown."""
        if isinstance(v, str) and v:
            return v
        return None

    @property
    def machine_state(self) -> MachineState | None:
        """The reported state as a :class:`MachineState`, or ``None`` if unknown."""
        try:
            return MachineState(self.state)
        except ValueError:
            return None

    def present_fields(self) -> list[str]:
        """Return the field names supplied in the source record.

        Declared fields come first in declaration order, followed by extra
        keys in the order they were received.
        """
        declared = [
            name for name in type(self).model_fields if name in self.model_fields_set
        ]
        return declared + list(self.model_extra or {})


# ---------------------------------------------------------------------------
# Derived value objects
# ---------------------------------------------------------------------------


class KpiSnapshot(BaseModel):
    """Scalar KPIs computed over one window of samples.

    Attributes:
        run_pct: Share of samples with a known state that are RUN (0-100).
        idle_pct: Share of samples with a known state that are IDLE (0-100).
        off_pct: Share of samples with a known state that are OFF (0-100).
        avg_kw: Mean of the present active power readings.
        energy_kwh: Spread of the cumulative energy counter over the window.
        avg_pf: Mean power factor while the machine is not OFF.
        throughput_per_min: Units produced per minute between the first and
            last sample of the window.
        phase_imbalance_pct: Mean per-sample phase current imbalance.
        sample_count: Number of samples the snapshot was computed from.
    """

    model_config = ConfigDict(frozen=True)

    run_pct: float = 0.0
    idle_pct: float = 0.0
    off_pct: float = 0.0
    avg_kw: float = 0.0
    energy_kwh: float = 0.0
    avg_pf: float = 0.0
    throughput_per_min: float = 0.0
    phase_imbalance_pct: float = 0.0
    sample_count: int = 0


InsightId = Literal["low-pf", "phase-imbalance", "peak-demand"]
Severity = Literal["warning", "info"]
Tier = Literal["strict", "relaxed"]


class Insight(BaseModel):
    """A detected condition in the current window, ready for display."""

    model_config = ConfigDict(frozen=True)

    id: InsightId
    title: str
    description: str
    severity: Severity
    details: str
    time_range: str
    tier: Tier | None = None


@dataclass(frozen=True)
class Span:
    """Inclusive index range of a contiguous run inside a sample slice."""

    start_index: int
    end_index: int

    @property
    def length(self) -> int:
        """Number of samples covered by the span."""
        return self.end_index - self.start_index + 1


@dataclass(frozen=True)
class PeakWindow:
    """Fixed-size window with the highest rolling mean active power."""

    avg_kw: float
    start_index: int
    end_index: int

    @property
    def length(self) -> int:
        """Number of samples covered by the window."""
        return self.end_index - self.start_index + 1
