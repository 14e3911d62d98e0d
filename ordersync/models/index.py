"""
Inverted lookup index and the persisted catalog document.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ordersync.models.product import Product, utc_now_iso


@dataclass(frozen=True)
class LookupIndex:
    """
    Derived structure; always rebuilt in full from the product list.
    attribute_map keys look like "color:red" and point at variant ids.
    """
    token_map: Dict[str, List[str]] = field(default_factory=dict)
    bigram_map: Dict[str, List[str]] = field(default_factory=dict)
    attribute_map: Dict[str, List[str]] = field(default_factory=dict)
    product_count: int = 0
    variant_count: int = 0
    last_indexed_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_map": self.token_map,
            "bigram_map": self.bigram_map,
            "attribute_map": self.attribute_map,
            "product_count": self.product_count,
            "variant_count": self.variant_count,
            "last_indexed_at": self.last_indexed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LookupIndex":
        return cls(
            token_map={k: list(v) for k, v in (data.get("token_map") or {}).items()},
            bigram_map={k: list(v) for k, v in (data.get("bigram_map") or {}).items()},
            attribute_map={k: list(v) for k, v in (data.get("attribute_map") or {}).items()},
            product_count=int(data.get("product_count") or 0),
            variant_count=int(data.get("variant_count") or 0),
            last_indexed_at=data.get("last_indexed_at") or utc_now_iso(),
        )


@dataclass
class CatalogState:
    """Application catalog state: the product set plus its derived index."""
    products: List[Product] = field(default_factory=list)
    index: LookupIndex = field(default_factory=LookupIndex)
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "products": [p.to_dict() for p in self.products],
            "index": self.index.to_dict(),
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogState":
        return cls(
            products=[Product.from_dict(p) for p in data.get("products") or []],
            index=LookupIndex.from_dict(data.get("index") or {}),
            last_updated=data.get("last_updated"),
        )
