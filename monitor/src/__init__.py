"""
Line monitor package.

Ingests a live per-second telemetry stream from a production machine, keeps
a bounded in-memory history, and derives rolling KPIs and anomaly insights
(low power factor, phase imbalance, peak demand) for the visible window.

CHANGELOG:
- 2026-10-08: Initial creation (STORY-001)

TODO:
- None
"""
