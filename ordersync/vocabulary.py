"""
Keyword tables used by tokenization, attribute detection and intent parsing.
Kept out of the matching code so a locale or vertical can swap them via JSON.
"""
import json
from dataclasses import dataclass, field, fields, replace
from typing import Dict, FrozenSet, Tuple

from ordersync.config import config
from ordersync.errors import ConfigError
from ordersync.logger import logger


DEFAULT_STOP_WORDS = frozenset([
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "are", "was", "were", "be", "been",
    "being", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can", "this",
    "that", "these", "those", "i", "you", "he", "she", "it", "we", "they",
    "what", "which", "who", "whom", "whose", "where", "when", "why", "how",
    "all", "each", "every", "both", "few", "more", "most", "other", "some",
    "such", "no", "nor", "not", "only", "own", "same", "so", "than", "too",
    "very", "just", "about", "into", "over", "after", "before", "between",
])

DEFAULT_COLORS = (
    "red", "blue", "green", "black", "white", "pink", "purple", "yellow",
    "orange", "brown", "gray", "grey", "navy", "beige", "gold", "silver",
    "cream", "teal", "magenta", "cyan",
)

DEFAULT_SIZES = (
    "xs", "s", "m", "l", "xl", "xxl", "small", "medium", "large",
    "x-small", "x-large",
)


@dataclass(frozen=True)
class Vocabulary:
    """Immutable bundle of every keyword list the pipeline consults."""
    stop_words: FrozenSet[str] = DEFAULT_STOP_WORDS
    colors: Tuple[str, ...] = DEFAULT_COLORS
    sizes: Tuple[str, ...] = DEFAULT_SIZES
    size_abbreviations: Dict[str, str] = field(default_factory=lambda: {
        "small": "s", "medium": "m", "large": "l",
        "x-small": "xs", "x-large": "xl", "extra large": "xl", "extra small": "xs",
    })
    number_words: Dict[str, int] = field(default_factory=lambda: {
        "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
        "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    })
    # Words that open an order phrase ("i'll take ...", "can i get ...")
    purchase_verbs: Tuple[str, ...] = ("take", "want", "need", "buy", "order", "get")
    # Variant keywords recognised in free-text messages
    message_sizes: Tuple[str, ...] = ("small", "medium", "large", "xxl", "xl", "s", "m", "l")
    message_colors: Tuple[str, ...] = (
        "red", "blue", "green", "black", "white", "yellow", "pink",
        "purple", "orange", "brown", "gray", "grey",
    )
    inquiry_phrases: Tuple[str, ...] = ("how much", "price", "cost")
    purchase_phrases: Tuple[str, ...] = ("take", "want", "need", "buy", "get", "order")
    shipping_phrases: Tuple[str, ...] = ("shipping", "track", "delivered", "arrived")
    # Exact (case-insensitive) header names accepted for a CSV row without a mapping
    csv_header_aliases: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: {
        "title": ("title", "name", "product name", "product title"),
        "sku": ("sku", "sku code"),
        "price": ("price", "unit price", "unit_price"),
    })
    csv_field_synonyms: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: {
        "title": ("product", "item", "name", "title", "description", "product name",
                  "product title", "product_name", "product_title"),
        "sku": ("sku", "id", "code", "identifier", "ref", "reference", "sku code",
                "sku_code", "product id", "product_id"),
        "price": ("price", "cost", "amount", "msrp", "unit price", "unit_price",
                  "selling price", "selling_price", "retail price", "retail_price"),
        "link": ("link", "url", "checkout", "cart", "checkout link", "cart link",
                 "product link", "product_url", "buy link"),
    })


def _coerce(name: str, value, default):
    if isinstance(default, frozenset):
        return frozenset(str(v).lower() for v in value)
    if isinstance(default, tuple):
        return tuple(str(v).lower() for v in value)
    if name in ("csv_field_synonyms", "csv_header_aliases"):
        return {k: tuple(str(s).lower() for s in v) for k, v in value.items()}
    if isinstance(default, dict):
        return dict(value)
    return value


def load_vocabulary(path: str = "") -> Vocabulary:
    """
    Build the vocabulary, overlaying a JSON file on the defaults.

    Args:
        path: Optional JSON file whose keys are Vocabulary field names

    Raises:
        ConfigError: If the file is unreadable or names an unknown table
    """
    base = Vocabulary()
    if not path:
        return base

    try:
        with open(path, "r", encoding="utf-8") as fh:
            overrides = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot load vocabulary from {path}: {e}") from e

    known = {f.name for f in fields(Vocabulary)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigError(f"Unknown vocabulary tables: {sorted(unknown)}")

    changes = {
        name: _coerce(name, value, getattr(base, name))
        for name, value in overrides.items()
    }
    logger.info(f"Vocabulary overrides loaded from {path}: {sorted(changes)}")
    return replace(base, **changes)


vocabulary = load_vocabulary(config.VOCABULARY_PATH)
