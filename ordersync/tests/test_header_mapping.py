"""
Test fuzzy CSV header mapping.
"""
import pytest

from ordersync.catalog.header_mapping import auto_map_headers, calculate_similarity, mapping_confidence


def test_similarity_rules():
    assert calculate_similarity("SKU", " sku ") == 1.0
    assert calculate_similarity("Product Title", "title") == 0.8
    assert calculate_similarity("", "title") == 0.0
    assert calculate_similarity("price", "prices") == pytest.approx(0.8)
    assert 0.0 <= calculate_similarity("color", "amount") < 0.6


def test_known_headers_map_with_link_unmapped():
    mapping = auto_map_headers(["Product Title", "SKU", "Cost"], 0.6)

    assert mapping == {
        "title": "Product Title",
        "sku": "SKU",
        "price": "Cost",
        "link": None,
    }


def test_independent_mapping_lets_one_header_win_twice():
    # "Product Title" is close enough to "product link" to clear 0.6 on its own
    mapping = auto_map_headers(["Product Title", "SKU", "Cost"], 0.6, exclusive=False)

    assert mapping["title"] == "Product Title"
    assert mapping["link"] == "Product Title"


def test_all_fields_from_messy_headers():
    mapping = auto_map_headers(["Item Name", "Product ID", "Retail Price", "Checkout URL"])

    assert mapping["title"] == "Item Name"
    assert mapping["sku"] == "Product ID"
    assert mapping["price"] == "Retail Price"
    assert mapping["link"] == "Checkout URL"


def test_unrelated_headers_stay_unmapped():
    mapping = auto_map_headers(["Weight", "Warehouse"])
    assert mapping == {"title": None, "sku": None, "price": None, "link": None}


def test_mapping_confidence_labels():
    assert mapping_confidence("price", "Cost") == "Exact match"
    assert mapping_confidence("title", "Item Name") == "High confidence"
    assert mapping_confidence("sku", None) == "Not mapped"
    assert mapping_confidence("price", "Weight") == "Low confidence"


if __name__ == "__main__":
    test_similarity_rules()
    test_known_headers_map_with_link_unmapped()
    test_all_fields_from_messy_headers()
    print("\nAll header mapping tests passed!")
