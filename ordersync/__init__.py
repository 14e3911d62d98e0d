"""
OrderSync - catalog ingestion, product matching and order intent extraction.
"""

__version__ = "1.0.0"
__author__ = "Engineering Team"

# Export main components for easy import
from ordersync.config import config
from ordersync.logger import logger
from ordersync.errors import (
    ConfigError,
    NetworkError,
    ExternalServiceError,
    RetryExhaustedError,
    DataContractError,
    RecordValidationError,
    UnsupportedSourceError,
    DimensionMismatchError,
    CatalogStoreError,
)

__all__ = [
    'config',
    'logger',
    'ConfigError',
    'NetworkError',
    'ExternalServiceError',
    'RetryExhaustedError',
    'DataContractError',
    'RecordValidationError',
    'UnsupportedSourceError',
    'DimensionMismatchError',
    'CatalogStoreError',
]
