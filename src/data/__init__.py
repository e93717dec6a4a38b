"""
Data module: time-series ingestion and normalization.

Converts raw series files and frames into ordered TimeSeriesPoint lists
suitable for anomaly detection. Pipeline:

    Raw series (CSV / JSON / NDJSON / DataFrame)
        ↓
    Ingestion (src/data/ingestion.py) → raw rows
        ↓
    Normalization (src/data/normalizers.py) → TimeSeriesPoint
        ↓
    Ready for anomaly detection (src/anomaly)
"""

from src.data.ingestion import (
    CSVSeriesSource,
    JSONSeriesSource,
    SeriesIngestionError,
    load_series,
    points_from_dataframe,
)
from src.data.normalizers import (
    NormalizationError,
    normalize_point,
    normalize_points,
    normalize_timestamp,
    normalize_value,
)

__all__ = [
    # Ingestion
    "load_series",
    "points_from_dataframe",
    "JSONSeriesSource",
    "CSVSeriesSource",
    "SeriesIngestionError",

    # Normalization
    "normalize_timestamp",
    "normalize_value",
    "normalize_point",
    "normalize_points",
    "NormalizationError",
]
