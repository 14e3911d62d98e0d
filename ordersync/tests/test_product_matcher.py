"""
Test the fast-path product matcher and cart link generation.
"""
from ordersync.catalog.ingestion import ingest_catalog
from ordersync.matching.intent_parser import fallback_parser
from ordersync.matching.product_matcher import (
    DEMO_CATALOG,
    CatalogItem,
    ExtractedOrder,
    ProductMatch,
    ProductMatcher,
    generate_cart_link,
)
from ordersync.matching.scorer import TokenSetScorer, token_coverage


def test_scorer_bounds():
    scorer = TokenSetScorer()
    assert scorer.score("Vintage Tee", "vintage tee") == 1.0
    assert scorer.score("hoodie", "Graphic Hoodie") == 1.0
    assert scorer.score("", "anything") == 0.0
    assert 0.0 <= scorer.score("xyzzy", "Denim Jacket") < 0.6


def test_token_coverage():
    assert token_coverage("leather jacket", "Leather Wallet") == 0.5
    assert token_coverage("hodie", "Graphic Hoodie") == 1.0
    assert token_coverage("red hoodie", "Hoodie", ignore={"red"}) == 1.0
    assert token_coverage("red", "Hoodie", ignore={"red"}) == 0.0
    assert token_coverage("", "Hoodie") == 0.0


def test_shared_word_is_not_a_match():
    matcher = ProductMatcher()

    for query in ("leather jacket", "baseball bat", "graphic tee", "canvas tote"):
        assert matcher.find_best_match(ExtractedOrder(product=query)) is None, query


def test_descriptor_words_do_not_block_a_match():
    hoodie = CatalogItem("h1", "Hoodie", "HD-1", 40.0, colors=("red",))

    match = ProductMatcher([hoodie]).find_best_match(ExtractedOrder(product="red hoodie"))
    assert match.item.id == "h1"
    assert match.score >= 0.7

    demo = ProductMatcher().find_best_match(ExtractedOrder(product="Hoodie"))
    assert demo.item.name == "Graphic Hoodie"
    assert demo.score >= 0.7


def test_gibberish_never_matches():
    matcher = ProductMatcher()
    assert matcher.find_best_match(ExtractedOrder(product="xyzzy plugh")) is None


def test_empty_and_unknown_product():
    matcher = ProductMatcher()
    assert matcher.find_best_match(ExtractedOrder(product=None)) is None
    assert matcher.find_best_match(ExtractedOrder(product="  ")) is None
    assert matcher.find_best_match(ExtractedOrder(product="unknown")) is None


def test_match_by_name_with_variant():
    matcher = ProductMatcher()

    match = matcher.find_best_match(ExtractedOrder(product="vintage tee", variant="red large", quantity=2))

    assert match.item.id == "2"
    assert match.score >= 0.7
    assert match.matched_variant == "Red L"


def test_match_by_sku():
    match = ProductMatcher().find_best_match(ExtractedOrder(product="DJ-005"))
    assert match.item.name == "Denim Jacket"


def test_threshold_is_respected():
    strict = ProductMatcher(threshold=1.01)
    assert strict.find_best_match(ExtractedOrder(product="vintage tee")) is None


def test_message_to_catalog_end_to_end():
    catalog = ingest_catalog([{
        "id": "h1",
        "name": "Hoodie",
        "sku": "HD-1",
        "price": 40,
        "variants": [{
            "id": "v-red-l",
            "options": [{"name": "Color", "value": "Red"}, {"name": "Size", "value": "Large"}],
        }],
    }])
    order = fallback_parser("I'll take 2 of the red hoodie in large").orders[0]

    match = ProductMatcher.from_products(catalog.products).find_best_match(
        ExtractedOrder(product=order.product_name, variant=order.variant, quantity=order.quantity)
    )

    assert match.item.id == "h1"
    assert match.item.variant_id == "v-red-l"
    assert match.matched_variant == "red large"
    assert generate_cart_link(match, order.quantity, "shopify", "https://shop.test") == \
        "https://shop.test/cart/v-red-l:2"


def test_from_products_skips_inactive():
    catalog = ingest_catalog([{"id": "a", "name": "Cap", "sku": "C", "is_active": False}])
    assert ProductMatcher.from_products(catalog.products).catalog == ()


def _match(item, variant=None):
    return ProductMatch(item=item, score=1.0, matched_variant=variant)


def test_cart_links():
    tee = DEMO_CATALOG[1]

    assert generate_cart_link(_match(tee), 3, "shopify", "https://shop.test/") == \
        "https://shop.test/cart/40012345678902:3"
    assert generate_cart_link(_match(tee), 2, "stripe") == \
        "https://checkout.stripe.com/pay/price_1234567891?quantity=2"
    assert generate_cart_link(_match(tee, "Red L"), 2, "generic", "https://shop.test") == \
        "https://shop.test/checkout?sku=VTEE-002&q=2&product=Vintage+Tee&variant=Red+L"


def test_stripe_without_price_id_falls_back_to_generic():
    item = CatalogItem("9", "Tote", "TT-9", 40.0)

    link = generate_cart_link(_match(item), 1, "stripe", "https://shop.test")

    assert link == "https://shop.test/checkout?sku=TT-9&q=1&product=Tote"


if __name__ == "__main__":
    test_gibberish_never_matches()
    test_match_by_name_with_variant()
    test_message_to_catalog_end_to_end()
    test_cart_links()
    print("\nAll product matcher tests passed!")
