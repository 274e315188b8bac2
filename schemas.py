# schemas.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

ProductId = Union[int, str]

# =========================
# Base model configurations
# =========================

class APIBase(BaseModel):
    """Base for models mapped to external API payloads."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

# ======================================================
# Canonical catalog record (shared by both projections)
# ======================================================

class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: ProductId
    title: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, decimal_places=2)
    category: str
    stock: int = Field(..., ge=0)
    sku: str
    image: str

    @property
    def price_display(self) -> str:
        return f"{self.price:.2f}"

# ======================================================
# Form surface payloads
# ======================================================

class ProductDraft(BaseModel):
    """What the editing surface hands over on submit."""
    title: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    category: str = Field(..., min_length=1)
    image: Optional[str] = None
    stock: int = Field(0, ge=0)

    def api_payload(self, placeholder_image: str) -> Dict[str, Any]:
        return {
            "title": self.title,
            "price": float(self.price),
            "category": self.category,
            "image": self.image or placeholder_image,
            "stock": self.stock,
            # The remote API rejects products without a brand.
            "brand": "Generic",
            "description": f"{self.title} - Quality product in {self.category} category",
        }

    @classmethod
    def from_product(cls, product: Product) -> "ProductDraft":
        return cls(
            title=product.title,
            price=product.price,
            category=product.category,
            image=product.image,
            stock=product.stock,
        )

# ======================================================
# Remote API ingest models
# ======================================================

class ProductListPage(APIBase):
    products: List[Dict[str, Any]]
    total: Optional[int] = None
    skip: Optional[int] = None
    limit: Optional[int] = None

class DeleteAck(APIBase):
    id: Optional[ProductId] = None
    is_deleted: Optional[bool] = Field(None, alias="isDeleted")
    ok: Optional[bool] = None

    @property
    def acknowledged(self) -> bool:
        return bool(self.is_deleted or self.ok)

# ======================================================
# HTTP surface responses
# ======================================================

class PatchOut(BaseModel):
    op: str
    projection: Optional[str] = None
    product_id: Optional[ProductId] = None
    html: Optional[str] = None
    transition: Optional[str] = None

class NotificationOut(BaseModel):
    id: str
    title: str
    message: str
    severity: str
    sticky: bool
    delay_ms: Optional[int] = None

class ControlsOut(BaseModel):
    disabled: bool
    submit_label: str

class OperationResponse(BaseModel):
    action: str
    state: str
    product_id: Optional[ProductId] = None
    patches: List[PatchOut] = Field(default_factory=list)
    notifications: List[NotificationOut] = Field(default_factory=list)
    controls: Optional[ControlsOut] = None
    edit: Optional[Dict[str, Any]] = None
