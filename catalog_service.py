# catalog_service.py
import asyncio
import socket
from decimal import InvalidOperation
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import requests
from pydantic import ValidationError

from config import settings
from normalizer import MalformedRecord, coerce_id, normalize, normalize_many
from results import Err, Ok, Result, malformed, network, offline, server_status
from schemas import DeleteAck, Product, ProductDraft, ProductId, ProductListPage
from utils import get_logger

logger = get_logger("catalog.client")


class CatalogService:
    """
    Transport wrapper for the remote products API (DummyJSON-shaped REST).

    Every public operation performs exactly one round trip and returns a
    Result instead of raising; nothing is retried here.
    """
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        placeholder_image: Optional[str] = None,
        connectivity_probe: Optional[Callable[[], bool]] = None,
    ):
        if not base_url:
            raise ValueError("base_url is required.")
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json"}
        self.placeholder_image = placeholder_image or settings.placeholder_image
        self.is_online = connectivity_probe or self._resolve_host

    # -------------------- internal helpers --------------------
    def _resolve_host(self) -> bool:
        host = urlparse(self.base_url).hostname
        if not host:
            return False
        try:
            socket.getaddrinfo(host, None)
        except OSError:
            return False
        return True

    def _execute(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                 body: Optional[Dict[str, Any]] = None, expect_status: Optional[int] = None) -> Result[Any]:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s params=%s", method, url, params)
        try:
            resp = self.session.request(method, url, params=params, json=body, headers=self.headers)
        except requests.exceptions.ConnectionError as e:
            if not self.is_online():
                logger.warning("%s %s failed while offline: %s", method, url, e)
                return offline(str(e))
            logger.warning("%s %s could not reach the server: %s", method, url, e)
            return network(str(e))
        except requests.exceptions.RequestException as e:
            logger.warning("%s %s transport error: %s", method, url, e)
            return network(str(e))

        status = resp.status_code
        if expect_status is not None and status != expect_status:
            logger.warning("%s %s returned %s, expected %s", method, url, status, expect_status)
            return server_status(status, f"Request failed with status: {status}")
        if not 200 <= status < 300:
            logger.warning("%s %s returned %s", method, url, status)
            return server_status(status, f"HTTP error! status: {status}")

        try:
            data = resp.json()
        except ValueError as e:
            logger.warning("%s %s returned a body that is not JSON: %s", method, url, e)
            return malformed(f"Response body is not valid JSON: {e}")
        return Ok(data)

    def _to_product(self, data: Any) -> Result[Product]:
        try:
            return Ok(normalize(data, self.placeholder_image))
        except (MalformedRecord, ValidationError, InvalidOperation) as e:
            logger.warning("Unusable product record %r: %s", data, e)
            return malformed(str(e))

    async def _call(self, method: str, path: str, **kwargs) -> Result[Any]:
        # requests blocks; keep the event loop free while the round trip runs.
        return await asyncio.to_thread(self._execute, method, path, **kwargs)

    # -------------------- catalog operations --------------------
    async def list(self, page_size: int) -> Result[List[Product]]:
        result = await self._call("GET", "/products", params={"limit": page_size})
        if isinstance(result, Err):
            return result
        try:
            page = ProductListPage.model_validate(result.value)
            products = normalize_many(page.products, self.placeholder_image)
        except (MalformedRecord, ValidationError, InvalidOperation) as e:
            logger.warning("Product list payload is malformed: %s", e)
            return malformed(str(e))
        logger.debug("Listed %d products", len(products))
        return Ok(products)

    async def get(self, product_id: ProductId) -> Result[Product]:
        result = await self._call("GET", f"/products/{product_id}")
        if isinstance(result, Err):
            return result
        return self._to_product(result.value)

    async def create(self, draft: ProductDraft) -> Result[Product]:
        body = draft.api_payload(self.placeholder_image)
        result = await self._call("POST", "/products/add", body=body)
        if isinstance(result, Err):
            return result
        return self._to_product(result.value)

    async def update(self, product_id: ProductId, draft: ProductDraft) -> Result[Product]:
        body = draft.api_payload(self.placeholder_image)
        result = await self._call("PUT", f"/products/{product_id}", body=body)
        if isinstance(result, Err):
            return result
        data = result.value
        if isinstance(data, dict) and data.get("id") is None:
            data = {**data, "id": product_id}
        converted = self._to_product(data)
        if isinstance(converted, Ok) and converted.value.id != coerce_id(product_id):
            return malformed(f"Update for product {product_id} returned product {converted.value.id}")
        return converted

    async def delete(self, product_id: ProductId) -> Result[ProductId]:
        result = await self._call("DELETE", f"/products/{product_id}", expect_status=200)
        if isinstance(result, Err):
            return result
        try:
            ack = DeleteAck.model_validate(result.value)
        except ValidationError as e:
            return malformed(str(e))
        if not ack.acknowledged:
            logger.warning("Delete of %s returned 200 without acknowledgment: %r", product_id, result.value)
            return malformed(f"Delete of product {product_id} was not acknowledged")
        return Ok(product_id)
