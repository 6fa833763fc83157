"""
Delimited-text export of a window of samples, and the matching reader.

The export format mirrors the dashboard's "Export visible CSV" action:

- Header: the field names of the first sample in the slice, comma-joined.
- One row per sample, every value wrapped in double quotes with embedded
  quotes doubled. Absent values are empty strings; timestamps are ISO-8601.
- Rows are joined with ``\\n``; an empty slice exports as ``""``.
- Extra (undeclared) fields are written as plain text when that reads back
  unambiguously, and as JSON otherwise (numbers, booleans, objects, and
  text such as ``"42"``).

:func:`parse_csv` reads the format back into samples, treating empty cells
as absent, so present fields survive an export/import round trip.

CHANGELOG:
- 2026-10-16: Encode extra fields so their type survives re-parse
- 2026-10-12: Revive numeric/boolean extra fields on re-parse
- 2026-10-11: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence
from datetime import datetime

from monitor.src.models import TelemetrySample
from monitor.src.parser import parse_record


def export_filename(window_minutes: int) -> str:
    """Return the download filename for an export of *window_minutes*."""
    return f"visible_window_{window_minutes}min.csv"


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _reads_as_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def _extra_text(value: object) -> str:
    """Encode an extra value so that :func:`_revive_extra` restores it exactly.

    Plain text is written as is, unless it is empty or would itself read
    back as JSON (``"42"``, ``"true"``); such text and every non-string
    value are written as JSON.
    """
    if isinstance(value, str) and value and not _reads_as_json(value):
        return value
    return json.dumps(value, default=str)


def _cell_text(value: object, *, extra: bool) -> str:
    """Render one value as cell text, before quoting."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if extra:
        return _extra_text(value)
    return str(value)


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _field_value(sample: TelemetrySample, name: str) -> tuple[object, bool]:
    """Return ``(value, is_extra)`` for field *name* of *sample*."""
    if name in TelemetrySample.model_fields:
        return getattr(sample, name), False
    extras = sample.model_extra or {}
    return extras.get(name), True


def to_csv(samples: Sequence[TelemetrySample]) -> str:
    """Export *samples* as quoted, comma-delimited text.

    Args:
        samples: The slice to export, oldest first.

    Returns:
        Header line plus one line per sample, or ``""`` for an empty slice.
    """
    if not samples:
        return ""

    keys = samples[0].present_fields()
    lines = [",".join(keys)]
    for sample in samples:
        cells = []
        for key in keys:
            value, extra = _field_value(sample, key)
            cells.append(_quote(_cell_text(value, extra=extra)))
        lines.append(",".join(cells))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _revive_extra(text: str) -> object:
    """Restore an extra value written by :func:`_extra_text`."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_csv(text: str) -> list[TelemetrySample]:
    """Read text produced by :func:`to_csv` back into samples.

    Empty cells are treated as absent fields.

    Raises:
        SampleParseError: If a row cannot be turned into a sample.
    """
    if not text:
        return []

    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header is None:
        return []

    samples: list[TelemetrySample] = []
    for row in reader:
        if not row:
            continue
        record: dict[str, object] = {}
        for key, cell in zip(header, row, strict=False):
            if cell == "":
                continue
            if key in TelemetrySample.model_fields:
                record[key] = cell
            else:
                record[key] = _revive_extra(cell)
        samples.append(parse_record(record))
    return samples
