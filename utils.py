# utils.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from config import settings

ELLIPSIS = "..."
CARD_TITLE_LIMIT = 30
TABLE_TITLE_LIMIT = 25

_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
_url_adapter = TypeAdapter(HttpUrl)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """
    Named logger with a single stream handler, shared by every catalog module.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(settings.log_level.upper())
    return logger


# ---------------------------------------------------------------------------
# Display helpers (shared by the card and table projections)
# ---------------------------------------------------------------------------

STOCK_BADGES: Dict[str, str] = {
    "healthy": "bg-success",
    "low": "bg-warning",
    "out": "bg-danger",
}


def truncate_text(text: str, limit: int) -> str:
    """
    Cut `text` to `limit` characters and append an ellipsis when it is longer.
    """
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def stock_tier(stock: int) -> str:
    if stock > 10:
        return "healthy"
    if stock > 0:
        return "low"
    return "out"


def stock_badge(stock: int) -> str:
    return STOCK_BADGES[stock_tier(stock)]


def is_valid_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        _url_adapter.validate_python(value.strip())
    except ValidationError:
        return False
    return True


def first_valid_url(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        if is_valid_url(candidate):
            return candidate.strip()
    return None


__all__ = [
    "get_logger",
    "truncate_text",
    "stock_tier",
    "stock_badge",
    "is_valid_url",
    "first_valid_url",
    "CARD_TITLE_LIMIT",
    "TABLE_TITLE_LIMIT",
]
