"""
Text normalization shared by indexing and search.
Deterministic, side-effect free; empty input yields an empty token list.
"""
import re
from typing import Iterable, List, Optional

from ordersync.vocabulary import vocabulary

_PUNCTUATION = re.compile(r"[^\w\s]")
_PRICE_CHARS = re.compile(r"[^\d.\-]")


def normalize(text: Optional[str], stop_words: Optional[Iterable[str]] = None) -> List[str]:
    """
    Tokenize free text: lowercase, strip punctuation, split on whitespace,
    drop empties and stop words.

    normalize(" ".join(normalize(x))) == normalize(x) for any x.
    """
    if not text:
        return []
    stops = vocabulary.stop_words if stop_words is None else set(stop_words)
    cleaned = _PUNCTUATION.sub("", text.lower())
    return [token for token in cleaned.split() if token and token not in stops]


def generate_bigrams(tokens: List[str]) -> List[str]:
    """Adjacent token pairs joined by a space; empty for fewer than two tokens."""
    if len(tokens) < 2:
        return []
    return [f"{tokens[i]} {tokens[i + 1]}" for i in range(len(tokens) - 1)]


def parse_price(raw_price) -> float:
    """Price as float with currency symbols and separators removed; 0.0 when unparseable."""
    if raw_price is None or raw_price == "":
        return 0.0
    if isinstance(raw_price, bool):
        return 0.0
    if isinstance(raw_price, (int, float)):
        return float(raw_price)
    try:
        clean = _PRICE_CHARS.sub("", str(raw_price))
        if clean and clean not in (".", "-"):
            return float(clean)
    except ValueError:
        pass
    return 0.0
