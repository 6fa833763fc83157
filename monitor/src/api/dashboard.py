"""
Dashboard endpoints: KPIs, insights, latest record, and CSV export.

Every endpoint works on the visible window (``?window=5|15|30``, default
from WINDOW_MINUTES) selected from an atomic snapshot of the buffer, and
recomputes its result from scratch on each request.

Routes are plain ``def`` handlers: the computations are CPU-bound and run in
FastAPI's threadpool, concurrently with ingestion on the event loop.

CHANGELOG:
- 2026-10-14: Add latest record and CSV export routes
- 2026-10-13: Initial creation (STORY-013)

TODO:
- None
"""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from monitor.src.api.deps import Consumer, Window, WindowMinutes
from monitor.src.export import export_filename, to_csv
from monitor.src.insights import compute_insights
from monitor.src.kpis import compute_kpis
from monitor.src.window import latest_sample, select_window

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["dashboard"])


@router.get("/kpis")
def kpis(window: Window, window_minutes: WindowMinutes) -> dict:
    """Return the KPI snapshot for the visible window.

    Returns:
        dict: ``window_minutes`` plus every KpiSnapshot field. All metrics
        are 0 when the window is empty.
    """
    snapshot = compute_kpis(window)
    return {"window_minutes": window_minutes, **snapshot.model_dump()}


@router.get("/insights")
def insights(window: Window, window_minutes: WindowMinutes) -> dict:
    """Return the insights detected in the visible window.

    Returns:
        dict: ``window_minutes`` and the ordered ``insights`` list, which
        is empty when there is not enough data.
    """
    found = compute_insights(window)
    return {
        "window_minutes": window_minutes,
        "insights": [insight.model_dump() for insight in found],
    }


@router.get("/latest")
def latest(consumer: Consumer, window_minutes: WindowMinutes) -> dict:
    """Return the most recent raw record.

    Taken from the visible window when it is non-empty, otherwise from the
    whole buffer.

    Raises:
        HTTPException: 404 if nothing has been received yet.
    """
    samples = consumer.buffer.snapshot()
    sample = latest_sample(samples, select_window(samples, window_minutes))
    if sample is None:
        raise HTTPException(status_code=404, detail="No data received yet.")
    return sample.model_dump(mode="json", exclude_unset=True)


@router.get("/export")
def export(window: Window, window_minutes: WindowMinutes) -> Response:
    """Download the visible window as CSV.

    Raises:
        HTTPException: 404 if the visible window is empty.
    """
    if not window:
        raise HTTPException(status_code=404, detail="No data in the visible window.")

    filename = export_filename(window_minutes)
    logger.info("Exporting %d samples as %s", len(window), filename)
    return Response(
        content=to_csv(window),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
