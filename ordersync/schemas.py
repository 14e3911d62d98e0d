"""
Request bodies for the HTTP API.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ordersync.models.analysis import ChatMessage


class IngestRequest(BaseModel):
    products: List[Dict[str, Any]]


class CSVImportRequest(BaseModel):
    csv_text: str
    seller_id: Optional[str] = None
    mapping: Optional[Dict[str, Optional[str]]] = None


class HeaderMappingRequest(BaseModel):
    headers: List[str]
    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    exclusive: bool = True


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    attributes: Optional[Dict[str, Any]] = None
    image_url: Optional[str] = None
    variants: Optional[List[Dict[str, Any]]] = None
    is_active: Optional[bool] = None


class IntentRequest(BaseModel):
    message: str = Field(min_length=1)


class MatchRequest(BaseModel):
    product: str
    variant: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    platform: Literal["shopify", "stripe", "generic"] = "generic"
    use_catalog: bool = False


class AnalyzeRequest(BaseModel):
    messages: List[ChatMessage]
    seller_id: Optional[str] = None
    catalog: Optional[List[Dict[str, Any]]] = None
