"""
Bounded in-memory history of the most recent telemetry samples.

The buffer is owned by the ingestion path, which appends one sample at a
time in arrival order. Once the buffer holds ``capacity`` samples, each
append evicts the oldest one. Readers (KPI aggregation, insight detection,
exports, the HTTP API) only ever see immutable tuple snapshots.

Operations:
- append(sample): add one sample, evicting the oldest beyond capacity.
- snapshot(): immutable ordered copy of the current contents.
- latest(): newest sample, or None when empty.
- len(buffer): number of buffered samples.

CHANGELOG:
- 2026-10-09: Guard snapshot/append with a lock for threadpool readers
- 2026-10-08: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import threading
from collections import deque

from monitor.src.models import TelemetrySample

DEFAULT_CAPACITY = 1800
"""30 minutes of history at one sample per second."""


class SampleBuffer:
    """Fixed-capacity, insertion-ordered store of recent samples.

    Appends and snapshots are serialised by a single lock, so a snapshot
    never observes a half-finished append or eviction. Snapshots are tuples
    and can be handed to any number of concurrent readers.

    Args:
        capacity: Maximum number of samples retained. Must be >= 1.

    Raises:
        ValueError: If *capacity* is smaller than 1.

    Usage::

        buffer = SampleBuffer(capacity=1800)
        buffer.append(sample)
        window = select_window(buffer.snapshot(), 15)
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Buffer capacity must be >= 1 (got {capacity})")
        self._capacity = capacity
        self._samples: deque[TelemetrySample] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of samples retained."""
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def append(self, sample: TelemetrySample) -> None:
        """Add *sample* as the newest entry, evicting the oldest if full."""
        with self._lock:
            self._samples.append(sample)

    def snapshot(self) -> tuple[TelemetrySample, ...]:
        """Return the buffered samples, oldest first, as an immutable tuple."""
        with self._lock:
            return tuple(self._samples)

    def latest(self) -> TelemetrySample | None:
        """Return the most recently appended sample, or ``None`` if empty."""
        with self._lock:
            return self._samples[-1] if self._samples else None
