"""
Test semantic search, the fuzzy fallback and the embedding cache.
Embedding calls are faked; no network is used.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from ordersync.catalog.ingestion import ingest_catalog
from ordersync.errors import DimensionMismatchError, ExternalServiceError
from ordersync.matching.vector_search import (
    VectorSearchEngine,
    cosine_similarity,
    fuzzy_search,
    search_products,
)
from ordersync.services.embedding_service import EmbeddingCache, EmbeddingService


class FakeEmbeddings:
    """Two-dimensional toy space: hoodies point one way, jackets the other."""

    def __init__(self):
        self.calls = []

    async def generate_embedding(self, text):
        self.calls.append(text)
        if "hoodie" in text.lower() or "sweatshirt" in text.lower():
            return [1.0, 0.0]
        if "jacket" in text.lower():
            return [0.0, 1.0]
        return [0.6, 0.6]


def _products():
    return ingest_catalog([
        {"id": "p1", "name": "Graphic Hoodie", "sku": "GH-7", "price": 65},
        {"id": "p2", "name": "Denim Jacket", "sku": "DJ-5", "price": 95},
        {"id": "p3", "name": "Old Hoodie", "sku": "OH-1", "price": 10, "is_active": False},
    ]).products


def test_cosine_similarity():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 1], [-1, -1]) == pytest.approx(-1.0)
    assert cosine_similarity([0, 0], [1, 0]) == 0.0


def test_cosine_dimension_mismatch():
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1, 0, 0], [1, 0])


def test_fuzzy_search_scores_word_share():
    results = fuzzy_search(_products(), "graphic hoodie xl")

    assert [r.product.id for r in results] == ["p1"]
    assert results[0].score == pytest.approx(2 / 3)


def test_fuzzy_search_no_hits():
    assert fuzzy_search(_products(), "spaceship") == []
    assert fuzzy_search(_products(), "   ") == []


@pytest.mark.asyncio
async def test_vector_search_ranks_active_products():
    engine = VectorSearchEngine(FakeEmbeddings(), concurrency=2)

    results = await engine.search_products(_products(), "comfy sweatshirt")

    assert [r.product.id for r in results] == ["p1"]
    assert results[0].score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_search_products_falls_back_when_embeddings_fail():
    engine = MagicMock()
    engine.search_products = AsyncMock(side_effect=ExternalServiceError("quota exceeded"))

    results = await search_products(_products(), "denim jacket", engine=engine)

    assert [r.product.id for r in results] == ["p2"]
    assert results[0].score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_search_products_without_vector():
    engine = MagicMock()
    engine.search_products = AsyncMock()

    results = await search_products(_products(), "hoodie", engine=engine, use_vector=False)

    engine.search_products.assert_not_called()
    assert [r.product.id for r in results] == ["p1"]


@pytest.mark.asyncio
async def test_dimension_mismatch_is_not_swallowed():
    engine = MagicMock()
    engine.search_products = AsyncMock(side_effect=DimensionMismatchError("3 != 2"))

    with pytest.raises(DimensionMismatchError):
        await search_products(_products(), "hoodie", engine=engine)


def test_embedding_cache_is_lru():
    cache = EmbeddingCache(max_size=2)
    cache.put("Red Hoodie", [1.0])
    cache.put("jacket", [2.0])

    assert cache.get("  red hoodie ") == [1.0]

    cache.put("cap", [3.0])

    assert len(cache) == 2
    assert cache.get("jacket") is None
    assert cache.get("red hoodie") == [1.0]


@pytest.mark.asyncio
async def test_embedding_service_serves_cache_without_session():
    service = EmbeddingService(cache_size=4)
    service.cache.put("hoodie", [0.1, 0.2])

    assert await service.generate_embedding("Hoodie") == [0.1, 0.2]


@pytest.mark.asyncio
async def test_embedding_service_unavailable():
    service = EmbeddingService(cache_size=4)
    service.is_available = False

    with pytest.raises(ExternalServiceError):
        await service.generate_embedding("hoodie")


@pytest.mark.asyncio
async def test_embedding_service_caches_api_result():
    service = EmbeddingService(cache_size=4)
    service.is_available = True
    service.session = MagicMock()
    service._request_embedding = AsyncMock(return_value={"data": [{"embedding": [0.5, 0.25]}]})

    first = await service.generate_embedding("Beanie")
    second = await service.generate_embedding("beanie ")

    assert first == second == [0.5, 0.25]
    service._request_embedding.assert_awaited_once()


if __name__ == "__main__":
    test_cosine_similarity()
    test_cosine_dimension_mismatch()
    test_fuzzy_search_scores_word_share()
    test_embedding_cache_is_lru()
    print("\nAll vector search tests passed!")
