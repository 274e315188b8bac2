# services/catalog_store.py
from __future__ import annotations

from typing import Iterable, Iterator, List, Optional

from schemas import Product, ProductId
from utils import get_logger

logger = get_logger("catalog.store")


class CatalogStore:
    """
    Ordered in-memory collection of canonical products, newest first after
    inserts. Holds exactly one Product per id and no view state.
    """
    def __init__(self, products: Optional[Iterable[Product]] = None):
        self._items: List[Product] = []
        if products:
            self.replace_all(products)

    def _index_of(self, product_id: ProductId) -> Optional[int]:
        for i, p in enumerate(self._items):
            if p.id == product_id:
                return i
        return None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Product]:
        return iter(list(self._items))

    def __contains__(self, product_id: object) -> bool:
        return any(p.id == product_id for p in self._items)

    def get(self, product_id: ProductId) -> Optional[Product]:
        i = self._index_of(product_id)
        return self._items[i] if i is not None else None

    def snapshot(self) -> List[Product]:
        return list(self._items)

    def replace_all(self, products: Iterable[Product]) -> None:
        # Later duplicates of an id are dropped; first occurrence keeps its slot.
        seen = set()
        items: List[Product] = []
        for p in products:
            if p.id in seen:
                logger.warning("Dropping duplicate product id=%s from bulk replace", p.id)
                continue
            seen.add(p.id)
            items.append(p)
        self._items = items

    def insert_front(self, product: Product) -> None:
        if self._index_of(product.id) is not None:
            raise ValueError(f"Product {product.id} is already in the store.")
        self._items.insert(0, product)

    def replace_by_id(self, product: Product) -> bool:
        i = self._index_of(product.id)
        if i is None:
            logger.warning("replace_by_id: product id=%s not found", product.id)
            return False
        self._items[i] = product
        return True

    def remove_by_id(self, product_id: ProductId) -> bool:
        i = self._index_of(product_id)
        if i is None:
            logger.warning("remove_by_id: product id=%s not found", product_id)
            return False
        del self._items[i]
        return True
