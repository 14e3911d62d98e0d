"""
Test conversation analysis: confidence adjustment, catalog authority and fallbacks.
The LLM, semantic engine and repository are all mocked.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from ordersync.catalog.ingestion import ingest_catalog
from ordersync.errors import DataContractError, NetworkError
from ordersync.matching.analyzer import (
    ConversationAnalyzer,
    build_envelope,
    choose_variant,
    confidence_tier,
    parse_analysis_response,
)
from ordersync.matching.vector_search import SearchResult
from ordersync.models.analysis import AnalysisResult, ChatMessage


CATALOG = [{
    "id": "h1",
    "name": "Hoodie",
    "sku": "HD-1",
    "price": 40,
    "variants": [
        {"id": "v-red-m", "options": [{"name": "Color", "value": "Red"}, {"name": "Size", "value": "Medium"}]},
        {"id": "v-red-l", "price": 42, "options": [{"name": "Color", "value": "Red"}, {"name": "Size", "value": "Large"}]},
    ],
}]

CONVERSATION = [
    ChatMessage(role="buyer", text="Do you still have the red hoodie?"),
    ChatMessage(role="seller", text="Yes! What size?"),
    ChatMessage(role="buyer", text="Large. I'll take 2"),
]


def _draft(**overrides):
    draft = {
        "intent_detected": True,
        "confidence": 0.6,
        "product_id": "guessed-id",
        "variant_id": "guessed-variant",
        "product_title": "Hoodie",
        "variant_title": "Red / Large",
        "quantity": 2,
        "total_value": None,
        "trigger_message": "Large. I'll take 2",
        "reasoning": "Buyer committed.",
    }
    draft.update(overrides)
    return json.dumps(draft)


def _ai(content=None, error=None):
    ai = MagicMock()
    ai.is_available = True
    ai.chat_completion = AsyncMock(return_value=content, side_effect=error)
    return ai


def _catalog():
    result = ingest_catalog(CATALOG)
    return result.products, result.index


@pytest.mark.asyncio
async def test_catalog_match_raises_confidence_and_overwrites_ids():
    products, index = _catalog()
    analyzer = ConversationAnalyzer(ai=_ai(_draft()))

    result = await analyzer.analyze(CONVERSATION, catalog=products, index=index)

    assert result.confidence == 0.7
    assert result.product_id == "h1"
    assert result.variant_id == "v-red-l"
    assert result.variant_title == "Red / Large"
    assert result.quantity == 2
    assert result.total_value == 84.0
    assert "[Matched to catalog product: h1]" in result.reasoning


@pytest.mark.asyncio
async def test_catalog_miss_lowers_confidence_and_clears_ids():
    products, index = _catalog()
    analyzer = ConversationAnalyzer(ai=_ai(_draft(product_title="Spaceship")))

    result = await analyzer.analyze(CONVERSATION, catalog=products, index=index)

    assert result.intent_detected is True
    assert result.confidence == 0.4
    assert result.product_id is None
    assert result.variant_id is None
    assert result.total_value is None
    assert "[WARNING: No matching product in catalog]" in result.reasoning


@pytest.mark.asyncio
async def test_confidence_never_drops_below_floor():
    products, index = _catalog()
    analyzer = ConversationAnalyzer(ai=_ai(_draft(product_title="Spaceship", confidence=0.35)))

    result = await analyzer.analyze(CONVERSATION, catalog=products, index=index)

    assert result.confidence == 0.3


@pytest.mark.asyncio
async def test_boost_is_capped_at_one():
    products, index = _catalog()
    analyzer = ConversationAnalyzer(ai=_ai(_draft(confidence=0.97)))

    result = await analyzer.analyze(CONVERSATION, catalog=products, index=index)

    assert result.confidence == 1.0


@pytest.mark.asyncio
async def test_no_intent_has_no_product_fields():
    products, index = _catalog()
    analyzer = ConversationAnalyzer(ai=_ai(_draft(intent_detected=False, quantity=None)))

    result = await analyzer.analyze(CONVERSATION, catalog=products, index=index)

    assert result.intent_detected is False
    assert result.product_id is None
    assert result.product_title is None
    assert result.quantity == 0
    assert result.total_value is None


@pytest.mark.asyncio
async def test_llm_failure_uses_local_parser_on_last_buyer_message():
    products, index = _catalog()
    messages = [
        ChatMessage(role="seller", text="We have hoodies in red and black"),
        ChatMessage(isSeller=False, text="I'll take 2 of the red hoodie in large"),
    ]
    analyzer = ConversationAnalyzer(ai=_ai(error=NetworkError("timeout")))

    result = await analyzer.analyze(messages, catalog=products, index=index)

    assert result.intent_detected is True
    assert result.trigger_message == "I'll take 2 of the red hoodie in large"
    assert result.product_id == "h1"
    assert result.variant_id == "v-red-l"
    assert result.confidence == 0.85


@pytest.mark.asyncio
async def test_unconfigured_llm_with_only_seller_messages():
    ai = _ai()
    ai.is_available = False
    analyzer = ConversationAnalyzer(ai=ai)

    result = await analyzer.analyze([ChatMessage(role="seller", text="Anything else?")], catalog=[])

    ai.chat_completion.assert_not_called()
    assert result.intent_detected is False
    assert result.confidence == 0.0


@pytest.mark.asyncio
async def test_only_recent_messages_are_sent():
    products, index = _catalog()
    ai = _ai(_draft())
    messages = [ChatMessage(role="buyer", text=f"message number {i:02d}") for i in range(25)]

    await ConversationAnalyzer(ai=ai).analyze(messages, catalog=products, index=index)

    prompt = ai.chat_completion.await_args.args[0][0]["content"]
    assert "number 04" not in prompt
    assert "BUYER: message number 05" in prompt
    assert "BUYER: message number 24" in prompt
    assert '"id": "h1"' in prompt


@pytest.mark.asyncio
async def test_semantic_tier_runs_only_after_lexical_miss():
    products, index = _catalog()
    engine = MagicMock()
    engine.search_products = AsyncMock(return_value=[SearchResult(product=products[0], score=0.9)])
    analyzer = ConversationAnalyzer(ai=_ai(_draft(product_title="sweatshirt")), engine=engine)

    result = await analyzer.analyze(CONVERSATION, catalog=products, index=index)

    engine.search_products.assert_awaited_once()
    assert result.product_id == "h1"


@pytest.mark.asyncio
async def test_catalog_without_index_is_rejected():
    products, _ = _catalog()
    analyzer = ConversationAnalyzer(ai=_ai(_draft()))

    with pytest.raises(ValueError):
        await analyzer.find_catalog_match("Hoodie", catalog=products)

    assert await analyzer.find_catalog_match("Hoodie", catalog=[]) is None


@pytest.mark.asyncio
async def test_seller_catalog_from_repository():
    products, _ = _catalog()
    repository = MagicMock()
    repository.is_available = True
    repository.find_matching_products = AsyncMock(return_value=products)
    analyzer = ConversationAnalyzer(ai=_ai(_draft()), repository=repository)

    result = await analyzer.analyze(CONVERSATION, seller_id="seller-1")

    repository.find_matching_products.assert_awaited_once_with("seller-1", "Hoodie", 5)
    assert result.product_id == "h1"


def test_parse_analysis_response():
    result = parse_analysis_response("```json\n" + _draft(quantity=None) + "\n```")
    assert result.quantity == 1

    with pytest.raises(DataContractError):
        parse_analysis_response("[1, 2, 3]")
    with pytest.raises(DataContractError):
        parse_analysis_response(_draft(quantity="lots"))


def test_choose_variant():
    products, _ = _catalog()
    hoodie = products[0]

    assert choose_variant(hoodie, "red large").id == "v-red-l"
    assert choose_variant(hoodie, "Medium").id == "v-red-m"
    assert choose_variant(hoodie, "purple").id == "v-red-m"
    assert choose_variant(hoodie, None).id == "v-red-m"


def test_confidence_tiers():
    assert confidence_tier(0.76) == "auto_accept"
    assert confidence_tier(0.75) == "disambiguate"
    assert confidence_tier(0.45) == "disambiguate"
    assert confidence_tier(0.44) == "manual"


def test_envelope_checkout_ready():
    ready = AnalysisResult(intent_detected=True, confidence=0.9, product_id="h1", variant_id="v1", quantity=1)
    partial = AnalysisResult(intent_detected=True, confidence=0.5, product_title="Hoodie", quantity=1)

    assert build_envelope(ready)["checkout_ready"] is True
    assert build_envelope(ready)["tier"] == "auto_accept"
    assert build_envelope(partial)["checkout_ready"] is False
    assert build_envelope(partial)["tier"] == "disambiguate"


def test_analysis_result_clamps_confidence():
    assert AnalysisResult(confidence=1.7).confidence == 1.0
    assert AnalysisResult(confidence=-0.2).confidence == 0.0


if __name__ == "__main__":
    test_parse_analysis_response()
    test_choose_variant()
    test_confidence_tiers()
    print("\nAll analyzer tests passed!")
