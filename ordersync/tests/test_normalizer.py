"""
Test text normalization.
Tokens feed both the index and every query, so this must stay deterministic.
"""
import pytest

from ordersync.normalizers.text import generate_bigrams, normalize, parse_price


def test_normalize_basic():
    assert normalize("The Red HOODIE, size Large!") == ["red", "hoodie", "size", "large"]


def test_normalize_drops_stop_words_and_punctuation():
    assert normalize("I want some of those caps...") == ["want", "caps"]


def test_normalize_empty_input():
    assert normalize("") == []
    assert normalize(None) == []
    assert normalize("   ") == []


@pytest.mark.parametrize("text", [
    "Vintage Leather Camera-Bag (Brown)",
    "I'll take 2 of the red hoodie in large",
    "  multiple   spaces\tand\nnewlines ",
    "¡Hola! café crème",
])
def test_normalize_is_idempotent(text):
    tokens = normalize(text)
    assert normalize(" ".join(tokens)) == tokens


def test_generate_bigrams():
    assert generate_bigrams(["red", "hoodie", "large"]) == ["red hoodie", "hoodie large"]
    assert generate_bigrams(["hoodie"]) == []
    assert generate_bigrams([]) == []


def test_parse_price():
    assert parse_price("$29.99") == 29.99
    assert parse_price("USD 1,250.00") == 1250.0
    assert parse_price(15) == 15.0
    assert parse_price("free") == 0.0
    assert parse_price("") == 0.0
    assert parse_price(None) == 0.0


if __name__ == "__main__":
    test_normalize_basic()
    test_normalize_drops_stop_words_and_punctuation()
    test_normalize_empty_input()
    test_generate_bigrams()
    test_parse_price()
    print("\nAll normalizer tests passed!")
