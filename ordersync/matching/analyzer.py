"""
Conversation analysis: LLM draft, two-tier catalog matching, confidence adjustment.

The catalog is the store of record. A confirmed match overwrites whatever
ids the LLM guessed; a miss lowers confidence but keeps the intent signal.
"""
import json
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ordersync.catalog.search import search_index
from ordersync.config import config
from ordersync.errors import CatalogStoreError, DataContractError, ExternalServiceError, NetworkError
from ordersync.logger import logger
from ordersync.matching.intent_parser import fallback_parser
from ordersync.matching.vector_search import VectorSearchEngine
from ordersync.models.analysis import AnalysisResult, ChatMessage
from ordersync.models.index import LookupIndex
from ordersync.models.product import Product, ProductVariant
from ordersync.normalizers.text import normalize
from ordersync.services.ai_service import AIService, ai_service, parse_json_completion
from ordersync.services.product_repository import ProductRepository


MATCH_CANDIDATES = 5
CONFIDENCE_DIGITS = 4

ANALYSIS_PROMPT = """<system>
You are an Order Sync Agent. Extract order data with zero prose.
Return ONLY valid JSON.
Highly accurate and conservative.

Step 1: Intent Detection (STRONG: commitment, payment readiness, confirmation).
Step 2: Product Matching (Exact title, variant options, quantity).
Step 3: Confidence (0.50+ to trigger).
</system>

<examples>
Input:
Conversation:
BUYER: "Hey do you still have the black hoodie?"
SELLER: "Yes! What size?"
BUYER: "Medium. I'll take 2"
Output:
{
  "intent_detected": true,
  "confidence": 0.95,
  "product_id": "prod_123",
  "variant_id": "var_2",
  "product_title": "Premium Black Hoodie",
  "variant_title": "Medium",
  "quantity": 2,
  "total_value": 90.00,
  "trigger_message": "Medium. I'll take 2",
  "reasoning": "Buyer explicitly committed with quantity and size."
}
</examples>

<task>
Analyze the following conversation:
<conversation>
{{MESSAGES}}
</conversation>

Match against catalog:
<catalog>
{{CATALOG}}
</catalog>

Critical Rules:
1. Return ONLY JSON.
2. product_id/variant_id MUST exist in catalog.
3. Default qty 1.
4. price = qty * variant.price.
5. Ignore seller for intent.
</task>"""


def format_conversation(messages: Sequence[ChatMessage]) -> str:
    return "\n".join(f"{m.speaker}: {m.text}" for m in messages)


def format_catalog(products: Sequence[Product]) -> str:
    """Compact catalog view for the prompt: ids, titles and variant prices only."""
    view = [
        {
            "id": p.id,
            "title": p.name,
            "variants": [
                {"id": v.id, "title": v.display_title, "price": v.price}
                for v in p.variants if v.is_active
            ],
        }
        for p in products if p.is_active
    ]
    return json.dumps(view, indent=2)


def build_analysis_prompt(messages: Sequence[ChatMessage], catalog: Sequence[Product]) -> str:
    return (ANALYSIS_PROMPT
            .replace("{{MESSAGES}}", format_conversation(messages))
            .replace("{{CATALOG}}", format_catalog(catalog)))


def parse_analysis_response(content: str) -> AnalysisResult:
    """
    Validate an LLM analysis completion.

    Raises:
        DataContractError: If the completion is not a JSON object of the expected shape
    """
    data = parse_json_completion(content)
    intent = bool(data.get("intent_detected"))
    if data.get("quantity") is None:
        data["quantity"] = 1 if intent else 0
    data["intent_detected"] = intent
    data["reasoning"] = data.get("reasoning") or ""
    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as e:
        raise DataContractError(f"Analysis response does not match schema: {e}") from e


def confidence_tier(confidence: float) -> str:
    """auto_accept above AUTO_ACCEPT_THRESHOLD, disambiguate from DISAMBIGUATE_THRESHOLD, else manual."""
    if confidence > config.AUTO_ACCEPT_THRESHOLD:
        return "auto_accept"
    if confidence >= config.DISAMBIGUATE_THRESHOLD:
        return "disambiguate"
    return "manual"


def build_envelope(result: AnalysisResult) -> Dict[str, Any]:
    return {
        "result": result.to_dict(),
        "tier": confidence_tier(result.confidence),
        "checkout_ready": bool(result.intent_detected and result.product_id and result.variant_id),
    }


def choose_variant(product: Product, variant_title: Optional[str]) -> Optional[ProductVariant]:
    """Variant whose options cover every token of variant_title, else the primary one."""
    active = [v for v in product.variants if v.is_active] or product.variants
    if not active:
        return None

    wanted = set(normalize(variant_title)) if variant_title else set()
    if wanted:
        for variant in active:
            values = set(normalize(" ".join([variant.display_title] + [o.value for o in variant.options])))
            if wanted <= values:
                return variant
    return active[0]


def draft_from_fallback(messages: Sequence[ChatMessage]) -> AnalysisResult:
    """Analysis draft from the local parser run on the latest buyer message."""
    buyer_lines = [m for m in messages if m.speaker == "BUYER" and m.text.strip()]
    if not buyer_lines:
        return AnalysisResult(reasoning="No buyer messages to analyze")

    trigger = buyer_lines[-1].text
    parsed = fallback_parser(trigger)
    order = parsed.orders[0]
    intent = parsed.customer_intent == "purchase"

    return AnalysisResult(
        intent_detected=intent,
        confidence=order.confidence_score,
        product_title=order.product_name,
        variant_title=order.variant,
        quantity=order.quantity if intent else 0,
        trigger_message=trigger,
        reasoning=f"Local parser: customer_intent={parsed.customer_intent}",
    )


class ConversationAnalyzer:
    """
    Orchestrates intent extraction and catalog matching for a conversation.

    Tier 1 is a lexical match against the catalog given to analyze(), or
    against the seller's products in the repository. Tier 2, semantic
    search, only runs when tier 1 finds nothing.
    """

    def __init__(
        self,
        ai: Optional[AIService] = None,
        engine: Optional[VectorSearchEngine] = None,
        repository: Optional[ProductRepository] = None,
    ):
        self.ai = ai or ai_service
        self.engine = engine
        self.repository = repository

    async def _draft(self, messages: Sequence[ChatMessage], catalog: Sequence[Product]) -> AnalysisResult:
        if not self.ai.is_available:
            logger.info("LLM not configured, analyzing with local parser")
            return draft_from_fallback(messages)

        try:
            content = await self.ai.chat_completion(
                [{"role": "user", "content": build_analysis_prompt(messages, catalog)}],
                json_mode=True,
            )
            return parse_analysis_response(content)
        except (ExternalServiceError, NetworkError, DataContractError) as e:
            logger.warning(f"LLM analysis failed, falling back to local parser: {e}")
            return draft_from_fallback(messages)

    async def _semantic_match(self, products: List[Product], term: str) -> List[Product]:
        if self.engine is None or not products:
            return []
        try:
            results = await self.engine.search_products(products, term, limit=MATCH_CANDIDATES)
        except (ExternalServiceError, NetworkError) as e:
            logger.warning(f"Semantic match failed: {e}")
            return []
        return [r.product for r in results]

    async def find_catalog_match(
        self,
        term: str,
        catalog: Optional[List[Product]] = None,
        index: Optional[LookupIndex] = None,
        seller_id: Optional[str] = None,
    ) -> Optional[Product]:
        """
        Raises:
            ValueError: If a non-empty catalog comes without its LookupIndex
        """
        if catalog is not None:
            if not catalog:
                return None
            if index is None:
                raise ValueError("A catalog must be passed with its cached LookupIndex")
            hits = search_index(term, index, catalog, limit=MATCH_CANDIDATES)
            if hits:
                return hits[0]
            semantic = await self._semantic_match([p for p in catalog if p.is_active], term)
            return semantic[0] if semantic else None

        if seller_id and self.repository is not None and self.repository.is_available:
            try:
                hits = await self.repository.find_matching_products(seller_id, term, MATCH_CANDIDATES)
                if hits:
                    return hits[0]
                semantic = await self._semantic_match(await self.repository.list_products(seller_id), term)
                return semantic[0] if semantic else None
            except CatalogStoreError as e:
                logger.warning(f"Catalog lookup failed for seller {seller_id}: {e}")

        return None

    async def analyze(
        self,
        messages: Sequence[ChatMessage],
        catalog: Optional[List[Product]] = None,
        index: Optional[LookupIndex] = None,
        seller_id: Optional[str] = None,
    ) -> AnalysisResult:
        messages = list(messages)[-config.MAX_CONVERSATION_MESSAGES:]
        result = await self._draft(messages, catalog or [])

        if result.intent_detected and result.product_title:
            match = await self.find_catalog_match(result.product_title, catalog, index, seller_id)
            if match is not None:
                self._apply_match(result, match)
            else:
                self._apply_miss(result)
        elif result.intent_detected:
            known_ids = {p.id for p in catalog or []}
            if result.product_id not in known_ids:
                result.product_id = None
                result.variant_id = None

        return AnalysisResult.model_validate(result.model_dump())

    @staticmethod
    def _apply_match(result: AnalysisResult, product: Product):
        variant = choose_variant(product, result.variant_title)
        quantity = result.quantity or 1
        price = variant.price if variant else product.price

        result.product_id = product.id
        result.product_title = product.name
        result.variant_id = variant.id if variant else None
        result.variant_title = variant.display_title if variant and variant.display_title else result.variant_title
        result.quantity = quantity
        result.total_value = round(price * quantity, 2)
        raised = min(1.0, result.confidence + config.CONFIDENCE_BOOST)
        result.confidence = round(raised, CONFIDENCE_DIGITS)
        result.reasoning = f"{result.reasoning} [Matched to catalog product: {product.id}]".strip()
        logger.info(f"Analysis matched catalog product {product.id}")

    @staticmethod
    def _apply_miss(result: AnalysisResult):
        result.product_id = None
        result.variant_id = None
        result.total_value = None
        lowered = max(config.CONFIDENCE_FLOOR, result.confidence - config.CONFIDENCE_PENALTY)
        result.confidence = round(lowered, CONFIDENCE_DIGITS)
        result.reasoning = f"{result.reasoning} [WARNING: No matching product in catalog]".strip()
        logger.info(f"No catalog product for '{result.product_title}'")
