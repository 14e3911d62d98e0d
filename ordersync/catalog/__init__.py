from ordersync.catalog.header_mapping import auto_map_headers, calculate_similarity, mapping_confidence
from ordersync.catalog.csv_import import (
    parse_csv,
    map_csv_row_to_product,
    validate_csv_structure,
    export_products_to_csv,
)
from ordersync.catalog.ingestion import ingest_catalog, build_lookup_index, extract_variant_attributes
from ordersync.catalog.search import rank_products, search_index
from ordersync.catalog.manager import CatalogManager

__all__ = [
    'auto_map_headers',
    'calculate_similarity',
    'mapping_confidence',
    'parse_csv',
    'map_csv_row_to_product',
    'validate_csv_structure',
    'export_products_to_csv',
    'ingest_catalog',
    'build_lookup_index',
    'extract_variant_attributes',
    'search_index',
    'rank_products',
    'CatalogManager',
]
