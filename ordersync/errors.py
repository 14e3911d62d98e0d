"""
Custom domain exceptions for the whole pipeline.
Every error has a name, not chaos.
"""
from typing import Optional


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


class NetworkError(Exception):
    """Base class for network-related failures (connection errors, timeouts)."""
    pass


class ExternalServiceError(Exception):
    """Raised when an external service (LLM, embeddings, storage) fails."""
    pass


class RetryExhaustedError(ExternalServiceError):
    """Raised when all retry attempts for an external service are exhausted."""
    pass


class DataContractError(Exception):
    """Raised when data doesn't conform to the internal model."""
    pass


class RecordValidationError(DataContractError):
    """Raised when a single input record is malformed. Collected per row, never fatal for a batch."""

    def __init__(self, message: str, row: Optional[int] = None):
        super().__init__(message)
        self.row = row


class UnsupportedSourceError(RecordValidationError):
    """Raised when a record claims a source kind we do not know how to map."""
    pass


class DimensionMismatchError(ValueError):
    """Raised when two embedding vectors of different length are compared."""
    pass


class CatalogStoreError(Exception):
    """Raised when catalog persistence fails."""
    pass
