"""
Canonical internal data contract for catalog products.
Everything downstream of import depends on these shapes.
"""
import re
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


PRODUCT_SOURCES = ("manual", "csv", "shopify")

_WS = re.compile(r"\s+")


def utc_now_iso() -> str:
    return datetime.utcnow().isoformat()


def new_id(prefix: str) -> str:
    """Collision-resistant identifier such as prod_3f2a...."""
    return f"{prefix}_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class VariantOption:
    """Single option on a variant, e.g. Color=Red."""
    name: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "value": self.value}


def options_from_raw(raw: Any) -> List[VariantOption]:
    options = []
    for opt in raw or []:
        if isinstance(opt, VariantOption):
            options.append(opt)
        elif isinstance(opt, dict) and opt.get("value") not in (None, ""):
            options.append(VariantOption(name=str(opt.get("name") or ""), value=str(opt["value"])))
    return options


@dataclass(frozen=True)
class CanonicalVariant:
    id: str
    sku: str
    price: float
    options: Tuple[VariantOption, ...] = ()


@dataclass(frozen=True)
class CanonicalProduct:
    """
    Source-agnostic product produced by the canonical mapper.
    variants[0] is the primary variant used for flat price/sku projection.
    """
    id: str
    title: str
    source: str
    variants: Tuple[CanonicalVariant, ...]

    def __post_init__(self):
        if not self.variants:
            raise ValueError("CanonicalProduct requires at least one variant")

    @property
    def primary_variant(self) -> CanonicalVariant:
        return self.variants[0]


@dataclass
class ProductVariant:
    id: str
    sku: str
    price: float
    options: List[VariantOption] = field(default_factory=list)
    title: Optional[str] = None
    external_id: Optional[str] = None
    inventory_quantity: int = 0
    is_active: bool = True

    @property
    def display_title(self) -> str:
        """Human label such as "Red / Large"."""
        if self.title:
            return self.title
        return " / ".join(o.value for o in self.options)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sku": self.sku,
            "price": self.price,
            "options": [o.to_dict() for o in self.options],
            "title": self.title,
            "external_id": self.external_id,
            "inventory_quantity": self.inventory_quantity,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductVariant":
        return cls(
            id=str(data.get("id") or ""),
            sku=str(data.get("sku") or ""),
            price=float(data.get("price") or 0),
            options=options_from_raw(data.get("options")),
            title=data.get("title"),
            external_id=data.get("external_id"),
            inventory_quantity=int(data.get("inventory_quantity") or 0),
            is_active=data.get("is_active") is not False,
        )


def build_search_string(name: str, sku: str, variants: Optional[List[Any]] = None) -> str:
    """
    Lowercase concatenation of name, sku and every variant sku/option value.
    Must be regenerated whenever any of those change.
    """
    parts = [name or "", sku or ""]
    for variant in variants or []:
        parts.append(variant.sku or "")
        parts.extend(o.value for o in variant.options)
    return _WS.sub(" ", " ".join(parts)).strip().lower()


@dataclass
class Product:
    """Flat catalog record. is_active=False is a soft delete."""
    id: str
    name: str
    sku: str
    price: float
    source: str = "manual"
    seller_id: Optional[str] = None
    external_id: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    search_string: str = ""
    image_url: Optional[str] = None
    is_active: bool = True
    last_synced_at: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    variants: List[ProductVariant] = field(default_factory=list)

    def refresh_search_string(self) -> str:
        self.search_string = build_search_string(self.name, self.sku, self.variants)
        return self.search_string

    @property
    def primary_variant(self) -> Optional[ProductVariant]:
        return self.variants[0] if self.variants else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["variants"] = [v.to_dict() for v in self.variants]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            sku=str(data.get("sku") or ""),
            price=float(data.get("price") or 0),
            source=data.get("source") or "manual",
            seller_id=data.get("seller_id"),
            external_id=data.get("external_id"),
            attributes=dict(data.get("attributes") or {}),
            search_string=data.get("search_string") or "",
            image_url=data.get("image_url"),
            is_active=data.get("is_active") is not False,
            last_synced_at=data.get("last_synced_at"),
            created_at=data.get("created_at") or utc_now_iso(),
            updated_at=data.get("updated_at") or utc_now_iso(),
            variants=[ProductVariant.from_dict(v) for v in data.get("variants") or []],
        )
