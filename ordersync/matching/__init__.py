from ordersync.matching.intent_parser import parse_intent, fallback_parser
from ordersync.matching.product_matcher import ProductMatcher, generate_cart_link, DEMO_CATALOG
from ordersync.matching.vector_search import VectorSearchEngine, cosine_similarity, fuzzy_search, search_products
from ordersync.matching.analyzer import ConversationAnalyzer, confidence_tier

__all__ = [
    'parse_intent',
    'fallback_parser',
    'ProductMatcher',
    'generate_cart_link',
    'DEMO_CATALOG',
    'VectorSearchEngine',
    'cosine_similarity',
    'fuzzy_search',
    'search_products',
    'ConversationAnalyzer',
    'confidence_tier',
]
