"""
Services package initialization.
Centralizes service imports.
"""

from ordersync.services.ai_service import ai_service
from ordersync.services.embedding_service import embedding_service
from ordersync.services.product_repository import product_repository

__all__ = [
    'ai_service',
    'embedding_service',
    'product_repository',
]
