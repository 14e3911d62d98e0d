"""
Fast-path product matcher and cart link generator.

Weighted fuzzy match over a small catalog. A wrong product would produce a
wrong checkout link, so anything under MATCH_THRESHOLD is no match at all.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlencode

from rapidfuzz.utils import default_process

from ordersync.catalog.ingestion import extract_variant_attributes
from ordersync.config import config
from ordersync.logger import logger
from ordersync.matching.scorer import Scorer, default_scorer, token_coverage
from ordersync.models.product import Product
from ordersync.vocabulary import vocabulary


PLATFORMS = ("shopify", "stripe", "generic")

NAME_WEIGHT = 0.6
SKU_WEIGHT = 0.3
SIZE_WEIGHT = 0.05
COLOR_WEIGHT = 0.05
# A key only counts toward the combined score when it is at least this similar
KEY_FLOOR = 0.6

# Variant words in a product query; they do not have to appear in the product name
DESCRIPTOR_WORDS = frozenset(
    word
    for keyword in vocabulary.colors + vocabulary.sizes
    for word in default_process(keyword).split()
)


@dataclass(frozen=True)
class CatalogItem:
    id: str
    name: str
    sku: str
    price: float
    sizes: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    variant_id: Optional[str] = None
    stripe_price_id: Optional[str] = None

    @classmethod
    def from_product(cls, product: Product) -> "CatalogItem":
        sizes: List[str] = []
        colors: List[str] = []
        for variant in product.variants:
            attrs = extract_variant_attributes(variant)
            for value in attrs.get("size", []):
                if value not in sizes:
                    sizes.append(value)
            for value in attrs.get("color", []):
                if value not in colors:
                    colors.append(value)

        primary = product.primary_variant
        return cls(
            id=product.id,
            name=product.name,
            sku=product.sku,
            price=product.price,
            sizes=tuple(sizes),
            colors=tuple(colors),
            variant_id=(primary.external_id or primary.id) if primary else None,
        )


DEMO_CATALOG: Tuple[CatalogItem, ...] = (
    CatalogItem("1", "Vintage Leather Camera Bag", "VLCB-001", 125.00,
                colors=("Brown", "Black", "Tan"),
                variant_id="40012345678901", stripe_price_id="price_1234567890"),
    CatalogItem("2", "Vintage Tee", "VTEE-002", 35.00,
                sizes=("S", "M", "L", "XL", "XXL"),
                colors=("Red", "Blue", "White", "Black", "Navy"),
                variant_id="40012345678902", stripe_price_id="price_1234567891"),
    CatalogItem("3", "Canvas Messenger Bag", "CMB-003", 85.00,
                colors=("Olive", "Charcoal", "Beige"),
                variant_id="40012345678903", stripe_price_id="price_1234567892"),
    CatalogItem("4", "Leather Wallet", "LW-004", 55.00,
                colors=("Brown", "Black", "Tan"),
                variant_id="40012345678904", stripe_price_id="price_1234567893"),
    CatalogItem("5", "Denim Jacket", "DJ-005", 95.00,
                sizes=("S", "M", "L", "XL"),
                colors=("Blue", "Black", "Light Blue"),
                variant_id="40012345678905", stripe_price_id="price_1234567894"),
    CatalogItem("6", "Baseball Cap", "BC-006", 28.00,
                colors=("Navy", "Black", "White", "Red"),
                variant_id="40012345678906", stripe_price_id="price_1234567895"),
    CatalogItem("7", "Graphic Hoodie", "GH-007", 65.00,
                sizes=("S", "M", "L", "XL", "XXL"),
                colors=("Black", "Grey", "Navy"),
                variant_id="40012345678907", stripe_price_id="price_1234567896"),
    CatalogItem("8", "Beanie Hat", "BH-008", 22.00,
                colors=("Black", "Grey", "Navy", "Burgundy"),
                variant_id="40012345678908", stripe_price_id="price_1234567897"),
)


@dataclass
class ExtractedOrder:
    product: Optional[str]
    variant: Optional[str] = None
    quantity: int = 1


@dataclass
class ProductMatch:
    item: CatalogItem
    score: float
    matched_variant: Optional[str] = None
    key_scores: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "id": self.item.id,
            "name": self.item.name,
            "sku": self.item.sku,
            "price": self.item.price,
            "variant_id": self.item.variant_id,
            "stripe_price_id": self.item.stripe_price_id,
            "score": round(self.score, 4),
            "matched_variant": self.matched_variant,
        }


class ProductMatcher:
    """
    Weighted fuzzy matcher: name 60%, sku 30%, sizes 5%, colors 5%.
    Only keys scoring at least KEY_FLOOR contribute, and their weights are
    renormalized; name or sku must be among them. Name and sku scores are
    scaled by token coverage, so a query word the product does not account
    for ("leather jacket" vs "Leather Wallet") sinks the match.
    """

    def __init__(
        self,
        catalog: Iterable[CatalogItem] = DEMO_CATALOG,
        scorer: Optional[Scorer] = None,
        threshold: Optional[float] = None,
    ):
        self.catalog = tuple(catalog)
        self.scorer = scorer or default_scorer
        self.threshold = config.MATCH_THRESHOLD if threshold is None else threshold

    @classmethod
    def from_products(cls, products: Iterable[Product], **kwargs) -> "ProductMatcher":
        return cls([CatalogItem.from_product(p) for p in products if p.is_active], **kwargs)

    def _best_of(self, query: str, values: Iterable[str]) -> float:
        return max((self.scorer.score(query, v) for v in values), default=0.0)

    def _identity_score(self, product: str, text: str) -> float:
        """Similarity scaled by how many query words the text accounts for."""
        return self.scorer.score(product, text) * token_coverage(product, text, DESCRIPTOR_WORDS)

    def score_item(self, item: CatalogItem, product: str, variant: Optional[str]) -> Tuple[float, dict]:
        key_scores = {
            "name": (NAME_WEIGHT, self._identity_score(product, item.name)),
            "sku": (SKU_WEIGHT, self._identity_score(product, item.sku)),
        }
        if variant:
            key_scores["sizes"] = (SIZE_WEIGHT, self._best_of(variant, item.sizes))
            key_scores["colors"] = (COLOR_WEIGHT, self._best_of(variant, item.colors))

        contributing = {k: ws for k, ws in key_scores.items() if ws[1] >= KEY_FLOOR}
        if "name" not in contributing and "sku" not in contributing:
            return 0.0, {k: s for k, (_, s) in key_scores.items()}

        total_weight = sum(w for w, _ in contributing.values())
        combined = sum(w * s for w, s in contributing.values()) / total_weight
        return combined, {k: s for k, (_, s) in key_scores.items()}

    @staticmethod
    def _size_forms(variant: str) -> set:
        tokens = variant.lower().split()
        forms = set(tokens)
        for token in tokens:
            if token in vocabulary.size_abbreviations:
                forms.add(vocabulary.size_abbreviations[token])
        return forms

    def confirm_variant(self, item: CatalogItem, variant: Optional[str]) -> Optional[str]:
        """Color and size from the item's option lists that the variant text names."""
        if not variant:
            return None

        lowered = variant.lower()
        forms = self._size_forms(variant)

        size_match = next(
            (s for s in item.sizes
             if s.lower() in forms or (len(s) > 2 and s.lower() in lowered)),
            None
        )
        color_match = next((c for c in item.colors if c.lower() in lowered), None)

        matched = " ".join(v for v in (color_match, size_match) if v)
        return matched or None

    def find_best_match(self, order: ExtractedOrder) -> Optional[ProductMatch]:
        """
        Best catalog item for an extracted order, or None.
        None is returned for every best score under the threshold.
        """
        product = (order.product or "").strip()
        if not product or product.lower() == "unknown":
            return None

        best: Optional[Tuple[float, CatalogItem, dict]] = None
        for item in self.catalog:
            score, key_scores = self.score_item(item, product, order.variant)
            if best is None or score > best[0]:
                best = (score, item, key_scores)

        if best is None or best[0] <= 0.0:
            logger.info(f"No catalog candidate for: {product}")
            return None

        score, item, key_scores = best
        if score < self.threshold:
            logger.info(f"Match score {score:.2f} below threshold for: {product}")
            return None

        return ProductMatch(
            item=item,
            score=score,
            matched_variant=self.confirm_variant(item, order.variant),
            key_scores=key_scores,
        )


def _generic_link(match: ProductMatch, qty: int, store_url: str) -> str:
    params = {"sku": match.item.sku, "q": str(qty), "product": match.item.name}
    if match.matched_variant:
        params["variant"] = match.matched_variant
    return f"{store_url}/checkout?{urlencode(params)}"


def generate_cart_link(
    match: ProductMatch,
    qty: int = 1,
    platform: str = "generic",
    store_url: Optional[str] = None,
) -> str:
    """
    Checkout URL for a match.

    shopify: <store>/cart/<variant_id>:<qty>
    stripe:  https://checkout.stripe.com/pay/<price_id>?quantity=<qty>
    generic: <store>/checkout?sku=..&q=..&product=..[&variant=..]
    """
    store_url = (store_url or config.STORE_URL).rstrip("/")

    if platform == "shopify":
        return f"{store_url}/cart/{match.item.variant_id or match.item.id}:{qty}"

    if platform == "stripe":
        if match.item.stripe_price_id:
            return f"https://checkout.stripe.com/pay/{match.item.stripe_price_id}?quantity={qty}"
        return _generic_link(match, qty, store_url)

    return _generic_link(match, qty, store_url)


default_matcher = ProductMatcher()
