"""
Catalog application state: one product set, its index, one persistence adapter.
Every mutation rebuilds the index from scratch and saves the whole document.
"""
from dataclasses import replace
from typing import Any, Dict, List, Optional

from ordersync.catalog.csv_import import parse_csv
from ordersync.catalog.ingestion import RawProduct, build_lookup_index, ingest_catalog, prepare_product
from ordersync.catalog.search import search_index
from ordersync.errors import RecordValidationError
from ordersync.logger import logger
from ordersync.models.analysis import CSVImportResult, IngestionResult
from ordersync.models.index import CatalogState
from ordersync.models.product import Product, utc_now_iso
from ordersync.normalizers.text import parse_price
from ordersync.sentry import capture_ingestion_errors
from ordersync.services.catalog_store import CatalogStore, InMemoryCatalogStore


# Fields a catalog edit may change
EDITABLE_FIELDS = ("name", "sku", "price", "attributes", "image_url", "variants", "is_active")


class CatalogManager:

    def __init__(self, store: Optional[CatalogStore] = None):
        self.store = store or InMemoryCatalogStore()
        self.state = CatalogState()

    async def load(self) -> CatalogState:
        """Replace the in-process state with the persisted one, if any."""
        loaded = await self.store.load()
        if loaded is not None:
            self.state = loaded
            logger.info(f"Loaded catalog with {len(loaded.products)} products")
        return self.state

    async def _commit(self, products: List[Product]):
        index = build_lookup_index(products)
        self.state = CatalogState(products=products, index=index, last_updated=utc_now_iso())
        await self.store.save(self.state)

    async def ingest(self, raw_products: List[RawProduct]) -> IngestionResult:
        """Replace the catalog with a freshly ingested product set."""
        result = ingest_catalog(raw_products)
        capture_ingestion_errors("ingest", result.errors)
        self.state = CatalogState(products=result.products, index=result.index, last_updated=result.processed_at)
        await self.store.save(self.state)
        return result

    async def import_csv(
        self,
        text: str,
        seller_id: Optional[str] = None,
        mapping: Optional[Dict[str, Optional[str]]] = None,
    ) -> CSVImportResult:
        """Parse a CSV file and append its valid rows to the catalog."""
        result = parse_csv(text, seller_id=seller_id, mapping=mapping)
        capture_ingestion_errors("csv", [f"row {e.row}: {e.message}" for e in result.errors])

        if result.products:
            await self._commit(self.state.products + result.products)
            logger.info(f"Imported {result.imported_rows} CSV products")
        return result

    def get_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.state.products if p.id == product_id), None)

    async def add_product(self, raw: RawProduct) -> Product:
        """
        Raises:
            RecordValidationError: If the product has no name
        """
        name = raw.name if isinstance(raw, Product) else (raw or {}).get("name")
        if not name or not str(name).strip():
            raise RecordValidationError("Product name is required")

        product = prepare_product(raw)
        await self._commit(self.state.products + [product])
        return product

    async def update_product(self, product_id: str, updates: Dict[str, Any]) -> Optional[Product]:
        """
        Apply edits, regenerate the search string and rebuild the index. None if unknown.
        Edits are made on a copy, so a rejected update leaves the catalog untouched.

        Raises:
            RecordValidationError: If the name is blank or a field cannot be read as its type
        """
        current = self.get_product(product_id)
        if current is None:
            return None
        if "name" in updates and not str(updates["name"] or "").strip():
            raise RecordValidationError("Product name is required")

        edited = replace(current)
        try:
            for key, value in updates.items():
                if key not in EDITABLE_FIELDS or key == "variants":
                    continue
                if key == "name":
                    edited.name = str(value).strip()
                elif key == "price":
                    edited.price = parse_price(value)
                elif key == "attributes":
                    edited.attributes = dict(value or {})
                else:
                    setattr(edited, key, value)
        except (TypeError, ValueError) as e:
            raise RecordValidationError(f"Malformed product update: {e}") from e

        if "variants" in updates:
            edited.variants = prepare_product({"name": edited.name, "sku": edited.sku,
                                               "price": edited.price, "variants": updates["variants"]}).variants

        edited.updated_at = utc_now_iso()
        edited.refresh_search_string()
        await self._commit([edited if p.id == product_id else p for p in self.state.products])
        return edited

    async def soft_delete(self, product_id: str) -> bool:
        product = self.get_product(product_id)
        if product is None:
            return False
        product.is_active = False
        product.updated_at = utc_now_iso()
        await self._commit(list(self.state.products))
        return True

    async def clear(self):
        self.state = CatalogState()
        await self.store.clear()

    def list_products(self, source: Optional[str] = None, include_inactive: bool = False) -> List[Product]:
        return [
            p for p in self.state.products
            if (include_inactive or p.is_active) and (source is None or p.source == source)
        ]

    def search(self, query: str, limit: Optional[int] = None) -> List[Product]:
        return search_index(query, self.state.index, self.state.products, limit=limit)
