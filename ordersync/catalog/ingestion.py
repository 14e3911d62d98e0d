"""
Catalog ingestion engine.
Validates raw products, fills defaults and builds the inverted lookup index.
The index is always rebuilt from scratch; nothing here patches it in place.
"""
from typing import Any, Dict, List, Union

from ordersync.errors import RecordValidationError
from ordersync.logger import logger
from ordersync.models.analysis import IngestionResult
from ordersync.models.index import LookupIndex
from ordersync.models.product import (
    Product,
    ProductVariant,
    options_from_raw,
    new_id,
    utc_now_iso,
)
from ordersync.normalizers.text import generate_bigrams, normalize, parse_price
from ordersync.vocabulary import vocabulary


RawProduct = Union[Product, Dict[str, Any]]


def _keyword_forms(keywords) -> Dict[str, str]:
    """Normalized token form -> keyword, so "x-large" is found as "xlarge"."""
    forms = {}
    for keyword in keywords:
        form = "".join(normalize(keyword, stop_words=()))
        if form:
            forms.setdefault(form, keyword)
    return forms


def extract_variant_attributes(variant: ProductVariant) -> Dict[str, List[str]]:
    """
    Attribute type -> values for one variant.

    Explicit options are keyed by their lower-cased option name; color and
    size keywords found anywhere in the option values are added under
    "color" and "size".
    """
    attributes: Dict[str, List[str]] = {}
    title_parts = []

    for option in variant.options:
        value = option.value.lower().strip()
        if not value:
            continue
        title_parts.append(value)
        normalized_value = " ".join(normalize(option.value))
        if normalized_value:
            attributes.setdefault(option.name.lower(), []).append(normalized_value)

    if variant.title and not title_parts:
        title_parts.append(variant.title.lower())

    colors = _keyword_forms(vocabulary.colors)
    sizes = _keyword_forms(vocabulary.sizes)

    for token in normalize(" / ".join(title_parts)):
        if token in colors:
            found = attributes.setdefault("color", [])
            if colors[token] not in found:
                found.append(colors[token])
        if token in sizes:
            found = attributes.setdefault("size", [])
            if sizes[token] not in found:
                found.append(sizes[token])

    return attributes


def _append_unique(mapping: Dict[str, List[str]], key: str, value: str):
    bucket = mapping.setdefault(key, [])
    if value not in bucket:
        bucket.append(value)


def build_lookup_index(products: List[Product]) -> LookupIndex:
    """
    Pure function of the product list.
    token_map and bigram_map come from product names, attribute_map from variants.
    """
    token_map: Dict[str, List[str]] = {}
    bigram_map: Dict[str, List[str]] = {}
    attribute_map: Dict[str, List[str]] = {}
    variant_count = 0

    for product in products:
        tokens = normalize(product.name)
        for token in tokens:
            _append_unique(token_map, token, product.id)
        for bigram in generate_bigrams(tokens):
            _append_unique(bigram_map, bigram, product.id)

        for variant in product.variants:
            variant_count += 1
            for attr_type, values in extract_variant_attributes(variant).items():
                for value in values:
                    _append_unique(attribute_map, f"{attr_type}:{value}", variant.id)

    return LookupIndex(
        token_map=token_map,
        bigram_map=bigram_map,
        attribute_map=attribute_map,
        product_count=len(products),
        variant_count=variant_count,
        last_indexed_at=utc_now_iso(),
    )


def _raw_value(raw: RawProduct, key: str, default=None):
    if isinstance(raw, Product):
        return getattr(raw, key, default)
    return raw.get(key, default)


def _parse_quantity(value) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise RecordValidationError(f"Invalid inventory_quantity: {value!r}") from e


def _prepare_variant(raw_variant: Any, product_sku: str, product_price: float, position: int) -> ProductVariant:
    if isinstance(raw_variant, ProductVariant):
        data = raw_variant.to_dict()
    else:
        data = dict(raw_variant or {})

    price = data.get("price")
    return ProductVariant(
        id=str(data.get("id") or new_id("var")),
        sku=str(data.get("sku") or f"{product_sku}_{position}"),
        price=parse_price(price) if price is not None else product_price,
        options=options_from_raw(data.get("options")),
        title=data.get("title"),
        external_id=data.get("external_id"),
        inventory_quantity=_parse_quantity(data.get("inventory_quantity")),
        is_active=data.get("is_active") is not False,
    )


def prepare_product(raw: RawProduct) -> Product:
    """
    Fill ids and defaults on an already validated raw product.

    Raises:
        RecordValidationError: If a field cannot be read as its type
    """
    try:
        return _build_product(raw)
    except (TypeError, ValueError) as e:
        raise RecordValidationError(f"Malformed product data: {e}") from e


def _build_product(raw: RawProduct) -> Product:
    name = str(_raw_value(raw, "name")).strip()
    product_id = str(_raw_value(raw, "id") or "") or new_id("prod")
    sku = str(_raw_value(raw, "sku") or "")
    raw_price = _raw_value(raw, "price")
    price = parse_price(raw_price)

    variants = [
        _prepare_variant(v, sku or product_id, price, position)
        for position, v in enumerate(_raw_value(raw, "variants") or [])
    ]

    product = Product(
        id=product_id,
        name=name,
        sku=sku,
        price=price,
        source=_raw_value(raw, "source") or "manual",
        seller_id=_raw_value(raw, "seller_id"),
        external_id=_raw_value(raw, "external_id"),
        attributes=dict(_raw_value(raw, "attributes") or {}),
        image_url=_raw_value(raw, "image_url"),
        is_active=_raw_value(raw, "is_active") is not False,
        last_synced_at=_raw_value(raw, "last_synced_at"),
        created_at=_raw_value(raw, "created_at") or utc_now_iso(),
        updated_at=utc_now_iso(),
        variants=variants,
    )
    product.refresh_search_string()
    return product


def ingest_catalog(raw_products: List[RawProduct]) -> IngestionResult:
    """
    Validate and index a batch of raw products.
    Records without a name or with unreadable fields are reported in errors;
    the rest are still indexed.
    Persisting the result is the caller's job (see CatalogManager).
    """
    errors: List[str] = []
    valid: List[Product] = []

    for position, raw in enumerate(raw_products):
        if not isinstance(raw, (Product, dict)):
            errors.append(f"Product at index {position}: Not a product object")
            continue
        name = _raw_value(raw, "name")
        if not name or not str(name).strip():
            errors.append(f"Product at index {position}: Missing name")
            continue
        try:
            valid.append(prepare_product(raw))
        except RecordValidationError as e:
            errors.append(f"Product at index {position}: {e}")

    if errors:
        logger.warning(f"Ingestion rejected {len(errors)} of {len(raw_products)} products")

    index = build_lookup_index(valid)
    logger.info(
        f"Indexed {index.product_count} products, {index.variant_count} variants, "
        f"{len(index.token_map)} tokens"
    )

    return IngestionResult(
        success=not errors,
        products=valid,
        index=index,
        processed_at=utc_now_iso(),
        errors=errors,
    )
