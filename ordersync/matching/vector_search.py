"""
Semantic product search over embeddings, with a deterministic token-overlap
fallback when embeddings are unavailable.
"""
import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ordersync.config import config
from ordersync.errors import DimensionMismatchError, ExternalServiceError, NetworkError
from ordersync.logger import logger
from ordersync.models.product import Product, build_search_string
from ordersync.services.embedding_service import EmbeddingService


@dataclass
class SearchResult:
    product: Product
    score: float

    def to_dict(self):
        return {"product": self.product.to_dict(), "score": round(self.score, 4)}


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors; 0.0 if either is all zeros.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(f"Vectors must have the same dimension ({len(a)} != {len(b)})")

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def create_search_text(product: Product) -> str:
    return build_search_string(product.name, product.sku, product.variants)


def fuzzy_search(products: List[Product], query: str, limit: Optional[int] = None) -> List[SearchResult]:
    """
    Share of query words (two or more characters) found in each product's search text.
    Products scoring 0 are dropped.
    """
    limit = config.SEARCH_LIMIT if limit is None else limit
    query_words = query.lower().split()
    if not query_words:
        return []

    results = []
    for product in products:
        if not product.is_active:
            continue
        search_text = (product.search_string or f"{product.name} {product.sku}").lower()
        hits = sum(1 for word in query_words if len(word) >= 2 and word in search_text)
        score = hits / len(query_words)
        if score > 0:
            results.append(SearchResult(product=product, score=score))

    results.sort(key=lambda r: -r.score)
    return results[:limit]


class VectorSearchEngine:
    """Embedding search; concurrent embedding calls are bounded by a semaphore."""

    def __init__(self, embeddings: EmbeddingService, concurrency: Optional[int] = None):
        self.embeddings = embeddings
        self._semaphore = asyncio.Semaphore(concurrency or config.EMBEDDING_CONCURRENCY)

    async def _embed(self, text: str) -> List[float]:
        async with self._semaphore:
            return await self.embeddings.generate_embedding(text)

    async def search_products(
        self,
        products: List[Product],
        query: str,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Rank active products by cosine similarity to the query.

        Raises:
            ExternalServiceError: If the query or any product cannot be embedded
            DimensionMismatchError: If the model returns vectors of different sizes
        """
        threshold = config.VECTOR_THRESHOLD if threshold is None else threshold
        limit = config.SEARCH_LIMIT if limit is None else limit
        active = [p for p in products if p.is_active]

        query_vector = await self._embed(query)
        product_vectors = await asyncio.gather(
            *(self._embed(create_search_text(p)) for p in active)
        )

        results = []
        for product, vector in zip(active, product_vectors):
            score = cosine_similarity(query_vector, vector)
            if score >= threshold:
                results.append(SearchResult(product=product, score=score))

        results.sort(key=lambda r: -r.score)
        return results[:limit]


async def search_products(
    products: List[Product],
    query: str,
    engine: Optional[VectorSearchEngine] = None,
    use_vector: bool = True,
    threshold: Optional[float] = None,
    limit: Optional[int] = None,
) -> List[SearchResult]:
    """
    Vector search when possible, token-overlap fallback otherwise.
    Service and network failures degrade to the fallback; dimension mismatches propagate.
    """
    if use_vector and engine is not None:
        try:
            return await engine.search_products(products, query, threshold=threshold, limit=limit)
        except (ExternalServiceError, NetworkError) as e:
            logger.warning(f"Vector search failed, falling back to fuzzy search: {e}")

    return fuzzy_search(products, query, limit=limit)
