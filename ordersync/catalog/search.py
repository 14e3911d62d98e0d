"""
Lexical search over the inverted lookup index.
"""
from typing import Dict, Iterable, List, Optional, Set

from ordersync.catalog.ingestion import extract_variant_attributes
from ordersync.config import config
from ordersync.models.index import LookupIndex
from ordersync.models.product import Product
from ordersync.normalizers.text import generate_bigrams, normalize


TOKEN_WEIGHT = 1
BIGRAM_WEIGHT = 2
COLOR_BONUS = 3
_MIN_COLOR_TOKEN = 2


def _matched_colors(query_tokens: List[str], colors: Iterable[str]) -> Set[str]:
    """Catalog color values hit by the first query token that names a color."""
    colors = set(colors)
    for token in query_tokens:
        if len(token) < _MIN_COLOR_TOKEN:
            continue
        matched = {c for c in colors if token in c}
        if matched:
            return matched
    return set()


def score_candidates(query: str, index: LookupIndex, products: List[Product]) -> Dict[str, int]:
    """Product id -> lexical score for every active product hit by the query."""
    query_tokens = normalize(query)
    active = {p.id: p for p in products if p.is_active}
    scores: Dict[str, int] = {}

    def bump(product_id: str, amount: int):
        if product_id in active:
            scores[product_id] = scores.get(product_id, 0) + amount

    for token in query_tokens:
        for product_id in index.token_map.get(token, ()):
            bump(product_id, TOKEN_WEIGHT)

    for bigram in generate_bigrams(query_tokens):
        for product_id in index.bigram_map.get(bigram, ()):
            bump(product_id, BIGRAM_WEIGHT)

    catalog_colors = [k.split(":", 1)[1] for k in index.attribute_map if k.startswith("color:")]
    matched = _matched_colors(query_tokens, catalog_colors)
    if matched:
        variant_ids = {vid for color in matched for vid in index.attribute_map[f"color:{color}"]}
        for product in active.values():
            if any(v.id in variant_ids for v in product.variants):
                bump(product.id, COLOR_BONUS)

    return scores


def score_products(query: str, products: List[Product]) -> Dict[str, int]:
    """
    The scores score_candidates would give, read straight off the products.
    For small candidate sets that have no index of their own, such as rows
    returned by a database pre-filter.
    """
    query_tokens = normalize(query)
    query_bigrams = generate_bigrams(query_tokens)
    variant_colors = {
        id(variant): set(extract_variant_attributes(variant).get("color", []))
        for product in products for variant in product.variants
    }
    matched = _matched_colors(query_tokens, set().union(*variant_colors.values()))

    scores: Dict[str, int] = {}
    for product in products:
        if not product.is_active:
            continue
        name_tokens = normalize(product.name)
        tokens = set(name_tokens)
        bigrams = set(generate_bigrams(name_tokens))

        score = TOKEN_WEIGHT * sum(1 for t in query_tokens if t in tokens)
        score += BIGRAM_WEIGHT * sum(1 for b in query_bigrams if b in bigrams)
        if matched and any(variant_colors[id(v)] & matched for v in product.variants):
            score += COLOR_BONUS
        if score:
            scores[product.id] = score
    return scores


def _ranked(scores: Dict[str, int], products: List[Product], limit: Optional[int]) -> List[Product]:
    limit = config.SEARCH_LIMIT if limit is None else limit
    by_id = {p.id: p for p in products}
    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return [by_id[product_id] for product_id, _ in ranked[:limit]]


def search_index(
    query: str,
    index: LookupIndex,
    products: List[Product],
    limit: Optional[int] = None,
) -> List[Product]:
    """
    Rank catalog products against a free-text query.

    Ties are broken by product id so results are stable across runs.
    An empty list means no match, not an error.
    """
    return _ranked(score_candidates(query, index, products), products, limit)


def rank_products(query: str, products: List[Product], limit: Optional[int] = None) -> List[Product]:
    """search_index ordering for a handful of products, without building an index."""
    return _ranked(score_products(query, products), products, limit)
