from ordersync.normalizers.text import normalize, generate_bigrams, parse_price
from ordersync.normalizers.canonical import (
    CanonicalMapper,
    map_to_canonical_product,
    canonical_to_product,
    merge_duplicate_products,
)

__all__ = [
    'normalize',
    'generate_bigrams',
    'parse_price',
    'CanonicalMapper',
    'map_to_canonical_product',
    'canonical_to_product',
    'merge_duplicate_products',
]
