"""
Ingestion boundary that decodes one raw stream record into a TelemetrySample.

Takes the payload of a single stream event (a JSON object as ``str`` or
``bytes``, or an already-decoded ``dict``) and returns a validated, immutable
TelemetrySample. Individual fields that are missing or non-numeric become
``None`` on the sample; only a record that is not a JSON object at all is
rejected, with :class:`SampleParseError`.

This is a pure function: no side effects, no I/O, no clock.

CHANGELOG:
- 2026-10-12: Accept pre-decoded mappings for the CSV re-parse path
- 2026-10-08: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import json
from collections.abc import Mapping

from pydantic import ValidationError

from monitor.src.models import TelemetrySample


class SampleParseError(ValueError):
    """Raised when a stream record cannot be decoded into a sample.

    The record is dropped by the caller; ingestion continues.
    """


def _decode(raw: str | bytes | Mapping[str, object]) -> Mapping[str, object]:
    """Return the record as a mapping, or raise SampleParseError."""
    if isinstance(raw, Mapping):
        return raw

    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SampleParseError(f"record is not valid JSON: {exc}") from exc

    if not isinstance(decoded, dict):
        raise SampleParseError(
            f"record must be a JSON object, got {type(decoded).__name__}"
        )
    return decoded


def parse_record(raw: str | bytes | Mapping[str, object]) -> TelemetrySample:
    """Decode one stream record into a validated TelemetrySample.

    Args:
        raw: JSON text of a single record, or a mapping of field name to
            value (for example a row re-read from a CSV export).

    Returns:
        The immutable sample. Fields that were absent or could not be read
        as numbers are ``None``.

    Raises:
        SampleParseError: If *raw* is not a JSON object, or its keys are not
            valid field names.
    """
    record = _decode(raw)

    if not all(isinstance(key, str) for key in record):
        raise SampleParseError("record keys must be strings")

    try:
        return TelemetrySample.model_validate(dict(record))
    except ValidationError as exc:
        raise SampleParseError(f"record failed validation: {exc}") from exc
