"""
Time-series ingestion from files and data frames.

Supports CSV, JSON array and NDJSON sources plus pandas DataFrames.
Malformed rows are skipped and logged; unreadable files raise
SeriesIngestionError.

Design:
- Format detection from the file extension, or explicit format
- Sources yield raw dicts with a "_metadata" entry for error reporting
- Normalization into TimeSeriesPoint happens in src.data.normalizers
- Row order in the file is the series order; nothing is re-sorted
"""

import csv
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import pandas as pd

from src.anomaly.schema import TimeSeriesPoint
from src.core.exceptions import DataValidationError
from src.data.normalizers import normalize_points

logger = logging.getLogger(__name__)


class SeriesIngestionError(DataValidationError):
    """Raised when a series source cannot be read."""
    pass


class BaseSeriesSource(ABC):
    """
    Abstract base class for series sources.

    Each source type (JSON, CSV) implements this interface.
    """

    def __init__(self, filepath: Union[str, Path], encoding: str = "utf-8"):
        self.filepath = Path(filepath)
        self.encoding = encoding

        if not self.filepath.exists():
            raise SeriesIngestionError(f"Series file not found: {self.filepath}")

    @abstractmethod
    def ingest(self) -> Iterator[Dict[str, Any]]:
        """
        Yields:
            Dict representing a single raw row (format-dependent)
        """
        pass


class JSONSeriesSource(BaseSeriesSource):
    """
    Ingests JSON-formatted points.

    Supports:
    - JSON array: [{"timestamp": "...", "value": 1.0}, ...]
    - JSON object with a "data" array (the shape the detect API accepts)
    - NDJSON (one object per line)
    """

    def ingest(self) -> Iterator[Dict[str, Any]]:
        try:
            with open(self.filepath, "r", encoding=self.encoding) as f:
                content = f.read().lstrip("\ufeff").strip()
        except OSError as e:
            raise SeriesIngestionError(f"Failed to read JSON series: {e}") from e

        if content.startswith("[") or (content.startswith("{") and "\n" not in content):
            try:
                payload = json.loads(content)
            except json.JSONDecodeError as e:
                raise SeriesIngestionError(f"Invalid JSON: {e}") from e

            if isinstance(payload, dict):
                payload = payload["data"] if "data" in payload else [payload]
            if not isinstance(payload, list):
                raise SeriesIngestionError("JSON must be an array, an object with a 'data' array, or NDJSON")

            for idx, row in enumerate(payload):
                if isinstance(row, dict):
                    row["_metadata"] = {"source": str(self.filepath), "index": idx, "format": "json_array"}
                    yield row
                else:
                    logger.warning("Non-dict entry at index %d: %s", idx, type(row).__name__)
            return

        for line_num, line in enumerate(content.split("\n"), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Malformed JSON at line %d: %s", line_num, line[:100])
                continue
            if isinstance(row, dict):
                row["_metadata"] = {"source": str(self.filepath), "line_number": line_num, "format": "ndjson"}
                yield row
            else:
                logger.warning("NDJSON line %d not a dict: %s", line_num, type(row).__name__)


class CSVSeriesSource(BaseSeriesSource):
    """
    Ingests CSV-formatted points. The first row must contain headers.

    Example:
        timestamp,value,region
        2025-02-07T10:30:00Z,42.5,eu-west
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        encoding: str = "utf-8",
        delimiter: str = ",",
    ):
        super().__init__(filepath, encoding)
        self.delimiter = delimiter

    def ingest(self) -> Iterator[Dict[str, Any]]:
        try:
            with open(self.filepath, "r", encoding=self.encoding, newline="") as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)
                if reader.fieldnames is None:
                    raise SeriesIngestionError("CSV file is empty")
                reader.fieldnames = [name.lstrip("\ufeff").strip() for name in reader.fieldnames]

                for line_num, row in enumerate(reader, start=2):  # Row 1 is header
                    if all(v in (None, "") for v in row.values()):
                        logger.warning("Empty row at line %d", line_num)
                        continue
                    row["_metadata"] = {"source": str(self.filepath), "line_number": line_num, "format": "csv"}
                    yield row
        except SeriesIngestionError:
            raise
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            logger.error("Error reading CSV series file %s: %s", self.filepath, e)
            raise SeriesIngestionError(f"Failed to read CSV series: {e}") from e


def load_series(
    filepath: Union[str, Path],
    format: str = "auto",
    timestamp_field: str = "timestamp",
    value_field: str = "value",
) -> Tuple[List[TimeSeriesPoint], int]:
    """
    Load a time series from a file.

    Args:
        filepath: Path to the series file
        format: "json", "csv", or "auto" to detect from the extension
        timestamp_field: Column/key holding timestamps
        value_field: Column/key holding values

    Returns:
        Tuple of (points in file order, skipped_row_count)

    Raises:
        SeriesIngestionError: If the file is missing, unreadable or the format unsupported
    """
    filepath = Path(filepath)

    if format == "auto":
        suffix = filepath.suffix.lower()
        if suffix in {".json", ".ndjson", ".jsonl"}:
            format = "json"
        elif suffix in {".csv", ".tsv"}:
            format = "csv"
        else:
            raise SeriesIngestionError(f"Cannot detect series format from extension: {filepath.suffix!r}")

    if format == "json":
        source: BaseSeriesSource = JSONSeriesSource(filepath)
    elif format == "csv":
        delimiter = "\t" if filepath.suffix.lower() == ".tsv" else ","
        source = CSVSeriesSource(filepath, delimiter=delimiter)
    else:
        raise SeriesIngestionError(f"Unknown format: {format}")

    points, skipped = normalize_points(list(source.ingest()), timestamp_field, value_field)
    if skipped:
        logger.warning("Skipped %d malformed rows while loading %s", skipped, filepath)
    return points, skipped


def points_from_dataframe(
    frame: pd.DataFrame,
    timestamp_column: Optional[str] = "timestamp",
    value_column: str = "value",
) -> Tuple[List[TimeSeriesPoint], int]:
    """
    Convert a pandas DataFrame into points, keeping row order.

    Args:
        frame: Source frame
        timestamp_column: Column with timestamps, or None to use the index
        value_column: Column with numeric values

    Returns:
        Tuple of (points, skipped_row_count)
    """
    if value_column not in frame.columns:
        raise SeriesIngestionError(f"Missing value column: {value_column}")
    if timestamp_column is not None and timestamp_column not in frame.columns:
        raise SeriesIngestionError(f"Missing timestamp column: {timestamp_column}")

    data = frame.reset_index() if timestamp_column is None else frame
    ts_col = data.columns[0] if timestamp_column is None else timestamp_column

    rows: List[Dict[str, Any]] = []
    for position, record in enumerate(data.to_dict(orient="records")):
        ts = record.pop(ts_col)
        if _is_missing(ts):
            ts = None
        elif isinstance(ts, pd.Timestamp):
            ts = ts.to_pydatetime()
        value = record.pop(value_column)
        row = {"timestamp": ts, "value": None if _is_missing(value) else value}
        row.update({str(k): v for k, v in record.items() if not _is_missing(v)})
        row["_metadata"] = {"source": "dataframe", "row": position}
        rows.append(row)

    return normalize_points(rows)


def _is_missing(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
