"""
Shared test fixtures for line monitor tests.

Provides environment isolation for MonitorSettings and a FastAPI TestClient
with ingestion disabled.

CHANGELOG:
- 2026-10-13: Add API client fixture
- 2026-10-08: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# All MonitorSettings environment variable names, used for cleanup.
_ALL_MONITOR_ENV_VARS = (
    "STREAM_URL",
    "BUFFER_CAPACITY",
    "WINDOW_MINUTES",
    "GAP_THRESHOLD_S",
    "MAX_BACKOFF_S",
    "REPORT_INTERVAL_S",
    "HEALTH_PATH",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_monitor_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all monitor env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_MONITOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    """Create a FastAPI TestClient with ingestion disabled.

    STREAM_URL is unset by the autouse fixture, so the lifespan builds the
    buffer and consumer without starting a network task. Tests feed data
    through ``app.state.consumer.handle_data``.
    """
    from monitor.src.api.main import app

    with TestClient(app) as test_client:
        yield test_client
