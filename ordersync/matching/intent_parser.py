"""
Intent extraction from a single customer message.
LLM first; any failure degrades to the local rule-based parser so callers
always get a usable ParsedIntent.
"""
import re
from typing import List, Optional

from pydantic import ValidationError

from ordersync.config import config
from ordersync.errors import DataContractError, ExternalServiceError, NetworkError
from ordersync.logger import logger
from ordersync.models.analysis import ParsedIntent, ParsedOrder
from ordersync.services.ai_service import AIService, ai_service, parse_json_completion
from ordersync.vocabulary import vocabulary


SYSTEM_PROMPT = """You are the Order Sync Agent Extraction Engine. Your goal is to convert messy chat messages into structured order data.

CONSTRAINTS:
1. ONLY output valid JSON.
2. If multiple products are mentioned, return an array of objects.
3. If information is missing (e.g., size), leave the value as null.
4. Normalize quantities to integers.

EXTRACTION SCHEMA:
{
  "orders": [
    {
      "product_name": string,
      "variant": string (size/color),
      "quantity": number,
      "price_mentioned": string or null,
      "confidence_score": 0.0-1.0
    }
  ],
  "customer_intent": "purchase" | "inquiry" | "shipping_update" | "unknown"
}

EXAMPLES:
Input: "yo i'll take two of those red vintage tees in large"
Output: {"orders": [{"product_name": "vintage tees", "variant": "red large", "quantity": 2, "price_mentioned": null, "confidence_score": 0.95}], "customer_intent": "purchase"}

Input: "how much for the hat?"
Output: {"orders": [{"product_name": "hat", "variant": null, "quantity": 1, "price_mentioned": null, "confidence_score": 0.8}], "customer_intent": "inquiry"}

Input: "do you have this in medium?"
Output: {"orders": [{"product_name": null, "variant": "medium", "quantity": 1, "price_mentioned": null, "confidence_score": 0.6}], "customer_intent": "inquiry"}"""

INTENT_MAX_TOKENS = 256

PRICE_PATTERN = re.compile(r"\$(\d+(?:\.\d{2})?)")
_MULTIPLIED_QTY = re.compile(r"\b(\d+)\s*(?:x|pcs?|pieces?|items?|units?|of)\b", re.IGNORECASE)
_BARE_QTY = re.compile(r"\b(\d+)\b")
_PHRASE_END = r"(?=\s+(?:in|for|at|with)\b|[.,!?;]|$)"
_LEADING_FILLER = re.compile(r"^(?:(?:of|the|a|an|some|those|these|that|this|my|your)\s+)+", re.IGNORECASE)


def _alternation(words) -> str:
    return "|".join(re.escape(w) for w in sorted(set(words), key=len, reverse=True))


def _keyword_pattern(words) -> re.Pattern:
    """Whole-word match that does not fire inside contractions such as "it's"."""
    return re.compile(rf"(?<![\w'])({_alternation(words)})(?![\w'])", re.IGNORECASE)


def _product_patterns() -> List[re.Pattern]:
    verbs = _alternation(vocabulary.purchase_verbs)
    inquiries = _alternation(vocabulary.inquiry_phrases)
    return [
        re.compile(
            rf"\b(?:{verbs})\s+(?:\d+\s*(?:x|pcs?|pieces?|items?|units?)?\s+)?(.+?){_PHRASE_END}",
            re.IGNORECASE,
        ),
        re.compile(rf"\b(?:those|these|that|this)\s+(.+?){_PHRASE_END}", re.IGNORECASE),
        re.compile(rf"\b(?:{inquiries})\s+(?:is|are|for|of)\s+(.+?)(?=[.,!?;]|$)", re.IGNORECASE),
    ]


def extract_quantity(message: str) -> int:
    """Digit with a multiplier, then any bare number, then number words; default 1."""
    text = PRICE_PATTERN.sub(" ", message)

    match = _MULTIPLIED_QTY.search(text) or _BARE_QTY.search(text)
    if match:
        return int(match.group(1))

    words = _keyword_pattern(vocabulary.number_words).search(text)
    if words:
        return vocabulary.number_words[words.group(1).lower()]
    return 1


def extract_price(message: str) -> Optional[str]:
    match = PRICE_PATTERN.search(message)
    return f"${match.group(1)}" if match else None


def extract_product(message: str) -> Optional[str]:
    for pattern in _product_patterns():
        match = pattern.search(message)
        if not match:
            continue
        phrase = _LEADING_FILLER.sub("", match.group(1).strip()).strip()
        if phrase and not phrase.isdigit():
            return phrase.lower()
    return None


def extract_variant(message: str) -> Optional[str]:
    """Size and color keywords in order of appearance, de-duplicated."""
    found: List[str] = []
    keywords = _keyword_pattern(vocabulary.message_sizes + vocabulary.message_colors)
    for match in keywords.finditer(message):
        value = match.group(1).lower()
        if value not in found:
            found.append(value)

    known = set(vocabulary.colors) | set(vocabulary.sizes)
    for match in re.finditer(r"\bin\s+(?:size\s+|color\s+)?([\w-]+)", message, re.IGNORECASE):
        value = match.group(1).lower()
        if value in known and value not in found:
            found.append(value)

    return " ".join(found) if found else None


def classify_intent(message: str) -> str:
    """Price questions win over purchase verbs, which win over shipping words."""
    checks = (
        ("inquiry", vocabulary.inquiry_phrases),
        ("purchase", vocabulary.purchase_phrases),
        ("shipping_update", vocabulary.shipping_phrases),
    )
    for intent, phrases in checks:
        if re.search(rf"\b(?:{_alternation(phrases)})\b", message, re.IGNORECASE):
            return intent
    return "unknown"


def fallback_parser(message: str) -> ParsedIntent:
    """Deterministic, network-free extraction."""
    product = extract_product(message)
    confidence = (
        config.FALLBACK_CONFIDENCE_WITH_PRODUCT if product
        else config.FALLBACK_CONFIDENCE_WITHOUT_PRODUCT
    )

    return ParsedIntent(
        orders=[ParsedOrder(
            product_name=product,
            variant=extract_variant(message),
            quantity=extract_quantity(message),
            price_mentioned=extract_price(message),
            confidence_score=confidence,
        )],
        customer_intent=classify_intent(message),
        is_fallback=True,
    )


async def parse_intent(message: str, ai: Optional[AIService] = None) -> ParsedIntent:
    """Structured order draft for a customer message. Never raises for LLM trouble."""
    ai = ai or ai_service

    if not ai.is_available:
        logger.info("LLM not configured, using fallback parser")
        return fallback_parser(message)

    try:
        content = await ai.chat_completion(
            [{"role": "user", "content": message}],
            system_prompt=SYSTEM_PROMPT,
            json_mode=True,
            max_tokens=INTENT_MAX_TOKENS,
        )
        return ParsedIntent.model_validate(parse_json_completion(content))

    except (ExternalServiceError, NetworkError, DataContractError) as e:
        logger.warning(f"Intent extraction failed, falling back to local parser: {e}")
    except ValidationError as e:
        logger.warning(f"LLM intent did not match schema, falling back to local parser: {e}")

    return fallback_parser(message)
