"""
Time-series normalization: standardize timestamps and values.

Converts raw rows (which may have inconsistent formats) into TimeSeriesPoint
objects that are consistent across the pipeline.

Design:
- Timestamp normalization to UTC datetime
- Values coerced to finite floats
- Extra columns preserved as point metadata
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict

from src.anomaly.schema import TimeSeriesPoint

logger = logging.getLogger(__name__)


class NormalizationError(Exception):
    """Raised when a row cannot be normalized into a point."""
    pass


def normalize_timestamp(ts: Any) -> datetime:
    """
    Normalize a timestamp to UTC datetime.

    Supports common formats:
    - datetime objects (naive values are treated as UTC)
    - ISO 8601: 2025-02-07T10:30:45Z, with or without offset / fraction
    - Date-time: 2025-02-07 10:30:45
    - Date: 2025-02-07
    - Epoch seconds: 1707315045
    - Epoch millis: 1707315045000

    Raises:
        NormalizationError: If timestamp format not recognized
    """
    if isinstance(ts, datetime):
        return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts.astimezone(timezone.utc)

    if ts is None or (isinstance(ts, str) and not ts.strip()):
        raise NormalizationError("Empty timestamp")

    ts_str = str(ts).strip()

    # Try numeric (epoch seconds or millis)
    try:
        ts_float = float(ts_str)
    except ValueError:
        ts_float = None

    if ts_float is not None:
        if not math.isfinite(ts_float):
            raise NormalizationError(f"Non-finite timestamp: {ts_str}")
        # Timestamps before year 3000 are seconds
        seconds = ts_float if ts_float < 32503680000 else ts_float / 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise NormalizationError(f"Epoch timestamp out of range: {ts_str}") from e

    iso = ts_str[:-1] + "+00:00" if ts_str.endswith("Z") else ts_str
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError as e:
        raise NormalizationError(f"Could not parse timestamp: {ts_str}") from e

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_value(value: Any) -> float:
    """
    Coerce a raw value to a finite float.

    Strings may carry surrounding whitespace and thousands separators ("1,024.5").

    Raises:
        NormalizationError: If the value is missing, not numeric or not finite
    """
    if value is None or isinstance(value, bool):
        raise NormalizationError(f"Invalid value: {value!r}")

    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            raise NormalizationError("Empty value")

    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise NormalizationError(f"Non-numeric value: {value!r}") from e

    if not math.isfinite(number):
        raise NormalizationError(f"Non-finite value: {value!r}")
    return number


def normalize_point(
    row: Dict[str, Any],
    timestamp_field: str = "timestamp",
    value_field: str = "value",
) -> TimeSeriesPoint:
    """
    Normalize one raw row into a TimeSeriesPoint.

    Columns other than the timestamp and value (and the ingestion "_metadata"
    entry) become point metadata.
    """
    if timestamp_field not in row:
        raise NormalizationError(f"Missing field: {timestamp_field}")
    if value_field not in row:
        raise NormalizationError(f"Missing field: {value_field}")

    timestamp = normalize_timestamp(row[timestamp_field])
    value = normalize_value(row[value_field])

    metadata: Dict[str, Any] = {
        k: v for k, v in row.items()
        if k is not None and k not in {timestamp_field, value_field, "_metadata"} and v not in (None, "")
    }
    return TimeSeriesPoint(timestamp=timestamp, value=value, metadata=metadata)


def normalize_points(
    rows: list[Dict[str, Any]],
    timestamp_field: str = "timestamp",
    value_field: str = "value",
) -> tuple[list[TimeSeriesPoint], int]:
    """
    Normalize multiple raw rows, preserving their order.

    Returns:
        Tuple of (points, skipped_count)

    Notes:
        - Rows that fail normalization are skipped and logged with their source location
    """
    points = []
    skipped = 0

    for row in rows:
        try:
            points.append(normalize_point(row, timestamp_field, value_field))
        except NormalizationError as e:
            logger.warning("Skipped row %s: %s", _location(row), e)
            skipped += 1

    return points, skipped


def _location(row: Dict[str, Any]) -> str:
    meta = row.get("_metadata") or {}
    for key in ("line_number", "index", "row"):
        if key in meta:
            return f"{meta.get('source', '?')}:{meta[key]}"
    return "?"
