"""
PostgreSQL store of record for seller catalogs.
Server-side matching queries go through here.
"""
import json
from typing import Any, List

# Import external dependencies at module level for easier testing
import asyncpg

from ordersync.catalog.search import rank_products
from ordersync.config import config
from ordersync.errors import CatalogStoreError
from ordersync.logger import logger
from ordersync.models.product import Product, utc_now_iso
from ordersync.normalizers.text import normalize


# Rows fetched by the SQL pre-filter before lexical ranking
PREFILTER_LIMIT = 200

_COLUMNS = (
    "id, seller_id, source, external_id, name, sku, price, attributes, search_string, "
    "image_url, is_active, last_synced_at, created_at, updated_at, variants"
)


def _json_field(value: Any, default):
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def row_to_product(row) -> Product:
    data = dict(row)
    data["attributes"] = _json_field(data.get("attributes"), {})
    data["variants"] = _json_field(data.get("variants"), [])
    data["price"] = float(data.get("price") or 0)
    return Product.from_dict(data)


class ProductRepository:
    """asyncpg-backed products table."""

    def __init__(self):
        self.pool = None
        self.is_available = False

    async def initialize(self):
        try:
            self.pool = await asyncpg.create_pool(config.DATABASE_URL)
            async with self.pool.acquire() as conn:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS products (
                        id TEXT PRIMARY KEY,
                        seller_id TEXT,
                        source TEXT NOT NULL DEFAULT 'manual',
                        external_id TEXT,
                        name TEXT NOT NULL,
                        sku TEXT NOT NULL DEFAULT '',
                        price NUMERIC NOT NULL DEFAULT 0,
                        attributes JSONB NOT NULL DEFAULT '{}',
                        search_string TEXT NOT NULL DEFAULT '',
                        image_url TEXT,
                        is_active BOOLEAN NOT NULL DEFAULT TRUE,
                        last_synced_at TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        variants JSONB NOT NULL DEFAULT '[]'
                    );
                    CREATE INDEX IF NOT EXISTS products_seller_idx ON products (seller_id);
                """)
            self.is_available = True
            logger.info("Product repository initialized")
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"Product repository init failed: {e}")
            self.is_available = False

    async def close(self):
        if self.pool:
            await self.pool.close()

    def _require(self):
        if not self.is_available or self.pool is None:
            raise CatalogStoreError("Product repository is not available")

    async def upsert_products(self, products: List[Product]) -> int:
        """Insert or replace products by id. Returns the number written."""
        self._require()
        rows = []
        for product in products:
            product.refresh_search_string()
            data = product.to_dict()
            rows.append((
                data["id"], data["seller_id"], data["source"], data["external_id"],
                data["name"], data["sku"], data["price"], json.dumps(data["attributes"]),
                data["search_string"], data["image_url"], data["is_active"],
                data["last_synced_at"], data["created_at"], data["updated_at"],
                json.dumps(data["variants"]),
            ))

        try:
            async with self.pool.acquire() as conn:
                await conn.executemany(
                    f"INSERT INTO products ({_COLUMNS}) VALUES "
                    "($1,$2,$3,$4,$5,$6,$7,$8::jsonb,$9,$10,$11,$12,$13,$14,$15::jsonb) "
                    "ON CONFLICT (id) DO UPDATE SET seller_id=$2, source=$3, external_id=$4, "
                    "name=$5, sku=$6, price=$7, attributes=$8::jsonb, search_string=$9, "
                    "image_url=$10, is_active=$11, last_synced_at=$12, updated_at=$14, "
                    "variants=$15::jsonb",
                    rows
                )
        except asyncpg.PostgresError as e:
            raise CatalogStoreError(f"Failed to upsert products: {e}") from e

        logger.info(f"Upserted {len(rows)} products")
        return len(rows)

    async def list_products(self, seller_id: str, include_inactive: bool = False) -> List[Product]:
        self._require()
        query = f"SELECT {_COLUMNS} FROM products WHERE seller_id=$1"
        if not include_inactive:
            query += " AND is_active"
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query + " ORDER BY created_at", seller_id)
        except asyncpg.PostgresError as e:
            raise CatalogStoreError(f"Failed to list products: {e}") from e
        return [row_to_product(r) for r in rows]

    async def soft_delete(self, product_id: str) -> bool:
        """Mark a product inactive. Returns False when the id is unknown."""
        self._require()
        try:
            async with self.pool.acquire() as conn:
                status = await conn.execute(
                    "UPDATE products SET is_active=FALSE, updated_at=$2 WHERE id=$1",
                    product_id, utc_now_iso()
                )
        except asyncpg.PostgresError as e:
            raise CatalogStoreError(f"Failed to delete product {product_id}: {e}") from e
        return status.endswith(" 1")

    async def find_matching_products(self, seller_id: str, term: str, limit: int = 5) -> List[Product]:
        """
        Active seller products matching a free-text term, best first.
        SQL narrows by token containment, then the rows are ranked directly
        with the lexical scores, without building an index.
        """
        self._require()
        tokens = normalize(term)
        if not tokens:
            return []

        patterns = [f"%{t}%" for t in tokens]
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM products WHERE seller_id=$1 AND is_active "
                    "AND search_string ILIKE ANY($2::text[]) LIMIT $3",
                    seller_id, patterns, PREFILTER_LIMIT
                )
        except asyncpg.PostgresError as e:
            raise CatalogStoreError(f"Failed to query products: {e}") from e

        candidates = [row_to_product(r) for r in rows]
        if not candidates:
            return []

        return rank_products(term, candidates, limit=limit)


# Global repository instance
product_repository = ProductRepository()
