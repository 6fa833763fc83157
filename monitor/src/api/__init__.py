"""
HTTP API package.

Serves the analytics products (KPI snapshot, insight list, latest record,
CSV export) and the ingestion status to the dashboard front end.

CHANGELOG:
- 2026-10-13: Initial creation (STORY-013)

TODO:
- None
"""
