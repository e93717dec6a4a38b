"""
Custom exceptions for the anomaly detection service.

These exceptions provide clear error semantics across the system.
Use them to distinguish between bad options, model problems, bad input data
and storage failures.
"""


class AnomalyDetectionError(Exception):
    """Base exception for anomaly detection failures."""
    pass


class ConfigurationError(AnomalyDetectionError):
    """Raised when detection options are invalid (e.g. an unsupported method)."""
    pass


class ModelInferenceError(AnomalyDetectionError):
    """Raised when the text-completion call fails or returns an unusable payload."""
    pass


class DataValidationError(AnomalyDetectionError):
    """Raised when input data fails validation or ingestion."""
    pass


class StorageError(AnomalyDetectionError):
    """Raised when the configuration store rejects a write."""
    pass
