from ordersync.models.product import (
    PRODUCT_SOURCES,
    VariantOption,
    CanonicalVariant,
    CanonicalProduct,
    ProductVariant,
    Product,
    build_search_string,
)
from ordersync.models.index import LookupIndex, CatalogState
from ordersync.models.analysis import (
    ChatMessage,
    ParsedOrder,
    ParsedIntent,
    AnalysisResult,
    RowError,
    CSVImportResult,
    IngestionResult,
)

__all__ = [
    'PRODUCT_SOURCES',
    'VariantOption',
    'CanonicalVariant',
    'CanonicalProduct',
    'ProductVariant',
    'Product',
    'build_search_string',
    'LookupIndex',
    'CatalogState',
    'ChatMessage',
    'ParsedOrder',
    'ParsedIntent',
    'AnalysisResult',
    'RowError',
    'CSVImportResult',
    'IngestionResult',
]
