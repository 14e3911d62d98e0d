"""
Contracts for intent extraction, conversation analysis and batch results.
LLM payloads are validated against these schemas; anything partially shaped
is rejected so callers can fall back instead of guessing.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ordersync.models.index import LookupIndex
from ordersync.models.product import Product


CustomerIntent = Literal["purchase", "inquiry", "shipping_update", "unknown"]


class ChatMessage(BaseModel):
    """One scraped chat line; role wins over the is_seller flag when both are set."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    role: Optional[Literal["buyer", "seller"]] = None
    is_seller: bool = Field(default=False, alias="isSeller")
    text: str
    timestamp: Optional[Union[str, float]] = None

    @property
    def speaker(self) -> str:
        if self.role:
            return self.role.upper()
        return "SELLER" if self.is_seller else "BUYER"


class ParsedOrder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_name: Optional[str] = None
    variant: Optional[str] = None
    quantity: int = Field(ge=0)
    price_mentioned: Optional[str] = None
    confidence_score: float = Field(ge=0.0, le=1.0)


class ParsedIntent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    orders: List[ParsedOrder]
    customer_intent: CustomerIntent
    is_fallback: bool = False


class AnalysisResult(BaseModel):
    """Stable shape consumed by every UI surface."""
    model_config = ConfigDict(extra="ignore")

    intent_detected: bool = False
    confidence: float = 0.0
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    product_title: Optional[str] = None
    variant_title: Optional[str] = None
    quantity: int = 0
    total_value: Optional[float] = None
    trigger_message: Optional[str] = None
    reasoning: str = ""

    @model_validator(mode="after")
    def _enforce_no_intent_shape(self):
        self.confidence = max(0.0, min(1.0, float(self.confidence)))
        if not self.intent_detected:
            self.product_id = None
            self.variant_id = None
            self.product_title = None
            self.variant_title = None
            self.total_value = None
            self.quantity = 0
        return self

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


@dataclass
class RowError:
    row: int
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "message": self.message}


@dataclass
class CSVImportResult:
    """importedRows + len(errors) == totalRows holds by construction."""
    success: bool
    products: List[Product] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    total_rows: int = 0
    imported_rows: int = 0
    mapping: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "products": [p.to_dict() for p in self.products],
            "errors": [e.to_dict() for e in self.errors],
            "total_rows": self.total_rows,
            "imported_rows": self.imported_rows,
            "mapping": self.mapping,
        }


@dataclass
class IngestionResult:
    success: bool
    products: List[Product]
    index: LookupIndex
    processed_at: str
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "products": [p.to_dict() for p in self.products],
            "index": self.index.to_dict(),
            "processed_at": self.processed_at,
            "errors": list(self.errors),
        }
