"""
Explicit canonical mapping layer.
Converts manual entries, CSV rows and Shopify payloads into one CanonicalProduct shape.
"""
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from ordersync.errors import RecordValidationError, UnsupportedSourceError
from ordersync.logger import logger
from ordersync.models.product import (
    PRODUCT_SOURCES,
    CanonicalProduct,
    CanonicalVariant,
    Product,
    ProductVariant,
    VariantOption,
    build_search_string,
    new_id,
    utc_now_iso,
)
from ordersync.normalizers.text import parse_price
from ordersync.vocabulary import vocabulary


class CanonicalMapper:
    """
    Maps any incoming product data to the canonical model.
    This is the single transformation every import path goes through.
    """

    @staticmethod
    def map_to_canonical_product(data: Dict[str, Any], source: str) -> CanonicalProduct:
        """
        Dispatch on source kind.

        Raises:
            UnsupportedSourceError: If source is not manual, csv or shopify
            RecordValidationError: If the record has no usable title
        """
        if source == "csv":
            return CanonicalMapper._map_csv(data)
        if source == "shopify":
            return CanonicalMapper._map_shopify(data)
        if source == "manual":
            return CanonicalMapper._map_manual(data)
        raise UnsupportedSourceError(
            f"Unsupported source '{source}', expected one of {', '.join(PRODUCT_SOURCES)}"
        )

    @staticmethod
    def _resolve(row: Dict[str, Any], field_name: str) -> str:
        """First non-empty value among the header aliases of a field, case-insensitive."""
        lowered = {str(k).strip().lower(): v for k, v in row.items() if k is not None}
        for alias in vocabulary.csv_header_aliases.get(field_name, (field_name,)):
            value = lowered.get(alias)
            if value is not None and str(value).strip():
                return str(value).strip()
        return ""

    @staticmethod
    def _require_title(title: str, source: str) -> str:
        if not title or not title.strip():
            raise RecordValidationError(f"Missing required field: title ({source} record)")
        return title.strip()

    @staticmethod
    def _map_csv(row: Dict[str, Any]) -> CanonicalProduct:
        title = CanonicalMapper._require_title(CanonicalMapper._resolve(row, "title"), "csv")
        sku = CanonicalMapper._resolve(row, "sku")
        price = parse_price(CanonicalMapper._resolve(row, "price"))

        return CanonicalProduct(
            id=new_id("csv"),
            title=title,
            source="csv",
            variants=(CanonicalVariant(id=f"variant_{sku}" if sku else new_id("variant"),
                                       sku=sku, price=price),),
        )

    @staticmethod
    def _shopify_options(variant: Dict[str, Any], option_names: List[str]) -> Tuple[VariantOption, ...]:
        if variant.get("option_values"):
            return tuple(
                VariantOption(name=str(opt.get("name") or ""), value=str(opt.get("value")))
                for opt in variant["option_values"]
                if opt.get("value") not in (None, "")
            )

        options = []
        for position in (1, 2, 3):
            value = variant.get(f"option{position}")
            if value in (None, "", "Default Title"):
                continue
            name = option_names[position - 1] if len(option_names) >= position else f"Option{position}"
            options.append(VariantOption(name=name, value=str(value)))
        return tuple(options)

    @staticmethod
    def _map_shopify(payload: Dict[str, Any]) -> CanonicalProduct:
        title = CanonicalMapper._require_title(str(payload.get("title") or ""), "shopify")
        product_id = str(payload.get("id") or "") or new_id("shopify")
        option_names = [str(o.get("name") or "") for o in payload.get("options") or []]

        variants = [
            CanonicalVariant(
                id=str(v.get("id") or ""),
                sku=str(v.get("sku") or ""),
                price=parse_price(v.get("price")),
                options=CanonicalMapper._shopify_options(v, option_names),
            )
            for v in payload.get("variants") or []
        ]

        if not variants:
            # Placeholder so every canonical product keeps a primary variant
            variants.append(CanonicalVariant(id=product_id, sku="", price=0.0))

        return CanonicalProduct(id=product_id, title=title, source="shopify", variants=tuple(variants))

    @staticmethod
    def _map_manual(entry: Dict[str, Any]) -> CanonicalProduct:
        title = CanonicalMapper._require_title(str(entry.get("name") or entry.get("title") or ""), "manual")
        product_id = str(entry.get("id") or "") or new_id("manual")
        sku = str(entry.get("sku") or "")

        return CanonicalProduct(
            id=product_id,
            title=title,
            source="manual",
            variants=(CanonicalVariant(id=str(entry.get("variant_id") or product_id),
                                       sku=sku, price=parse_price(entry.get("price"))),),
        )

    @staticmethod
    def canonical_to_product(canonical: CanonicalProduct, seller_id: Optional[str] = None) -> Product:
        """Flatten onto the primary variant and build the search string."""
        primary = canonical.primary_variant
        variants = [
            ProductVariant(id=v.id, sku=v.sku, price=v.price, options=list(v.options))
            for v in canonical.variants
        ]
        now = utc_now_iso()

        return Product(
            id=canonical.id,
            seller_id=seller_id,
            source=canonical.source,
            external_id=canonical.id if canonical.source == "shopify" else None,
            name=canonical.title,
            sku=primary.sku,
            price=primary.price,
            search_string=build_search_string(canonical.title, primary.sku, variants),
            is_active=True,
            created_at=now,
            updated_at=now,
            variants=variants,
        )

    @staticmethod
    def map_batch(items: List[Dict[str, Any]], source: str) -> List[CanonicalProduct]:
        """
        Map a batch of records, skipping the ones that fail validation.

        Raises:
            UnsupportedSourceError: If source itself is unknown (fails the whole batch)
        """
        if source not in PRODUCT_SOURCES:
            raise UnsupportedSourceError(f"Unsupported source '{source}'")

        mapped = []
        for position, item in enumerate(items):
            try:
                mapped.append(CanonicalMapper.map_to_canonical_product(item, source))
            except RecordValidationError as e:
                logger.warning(f"Skipping {source} record {position}: {e}")
        return mapped

    @staticmethod
    def merge_duplicate_products(products: List[CanonicalProduct]) -> List[CanonicalProduct]:
        """
        Union products sharing a primary-variant SKU.
        The first-seen entry keeps its position; later duplicates only
        contribute their variants. Products without a SKU are never merged.
        """
        merged: List[CanonicalProduct] = []
        position_by_sku: Dict[str, int] = {}

        for product in products:
            sku = product.primary_variant.sku
            if not sku:
                merged.append(product)
                continue
            if sku in position_by_sku:
                slot = position_by_sku[sku]
                existing = merged[slot]
                merged[slot] = replace(existing, variants=existing.variants + product.variants)
            else:
                position_by_sku[sku] = len(merged)
                merged.append(product)

        return merged


map_to_canonical_product = CanonicalMapper.map_to_canonical_product
canonical_to_product = CanonicalMapper.canonical_to_product
merge_duplicate_products = CanonicalMapper.merge_duplicate_products
