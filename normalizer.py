# normalizer.py
from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping, Optional, Union

from config import settings
from schemas import Product, ProductId
from utils import first_valid_url

DEFAULT_TITLE = "Untitled Product"
DEFAULT_CATEGORY = "Uncategorized"
_CENTS = Decimal("0.01")


class MalformedRecord(ValueError):
    """Raised when an upstream record cannot be mapped onto a Product."""


# --- Helper functions ---
def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None

def coerce_id(value: Any) -> ProductId:
    if value is None or isinstance(value, bool):
        raise MalformedRecord(f"record has no usable id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        raise MalformedRecord(f"record id is not an integer: {value!r}")
    if isinstance(value, str) and value.strip():
        v = value.strip()
        return int(v) if v.isascii() and v.isdigit() else v
    raise MalformedRecord(f"record has no usable id: {value!r}")

def _coerce_price(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0.00")
    try:
        price = Decimal(str(value).strip())
        if not price.is_finite() or price < 0:
            return Decimal("0.00")
        # Raises InvalidOperation when cents exceed the context precision.
        return price.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return Decimal("0.00")

def _coerce_stock(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, float):
        value = int(value) if math.isfinite(value) and value.is_integer() else 0
    elif isinstance(value, str):
        text = value.strip()
        value = int(text) if text.isascii() and text.isdigit() else 0
    elif not isinstance(value, int):
        return 0
    return max(value, 0)

def derive_sku(product_id: ProductId) -> str:
    return f"SKU-{str(product_id).rjust(3, '0')}"

def _image(raw: Mapping[str, Any], placeholder: str) -> str:
    images = raw.get("images")
    first_listed = images[0] if isinstance(images, (list, tuple)) and images else None
    return first_valid_url(raw.get("image"), raw.get("thumbnail"), first_listed) or placeholder


# --- Public API ---
def normalize(raw: Union[Mapping[str, Any], Product], placeholder_image: Optional[str] = None) -> Product:
    """
    Map an upstream payload (API record, form echo, or an already canonical
    Product) onto the canonical Product. Every field is resolved on its own;
    only the SKU fallback reads the id.

    Raises MalformedRecord when the record carries no usable id.
    """
    if isinstance(raw, Product):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"expected an object, got {type(raw).__name__}")

    product_id = coerce_id(raw.get("id"))
    return Product(
        id=product_id,
        title=_text(raw.get("title")) or DEFAULT_TITLE,
        price=_coerce_price(raw.get("price")),
        category=_text(raw.get("category")) or DEFAULT_CATEGORY,
        stock=_coerce_stock(raw.get("stock")),
        sku=_text(raw.get("sku")) or derive_sku(product_id),
        image=_image(raw, placeholder_image or settings.placeholder_image),
    )

def normalize_many(raws: Iterable[Any], placeholder_image: Optional[str] = None) -> List[Product]:
    return [normalize(r, placeholder_image) for r in raws]
