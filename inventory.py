"""
Stock bookkeeping for products.

Every stock change is a compare-and-swap on the product document: the new
stock and its derived status are written together, conditioned on the stock
value that was read. A writer that loses the race re-reads and tries again,
so concurrent reservations cannot oversell and ``status`` always matches
``stock`` in the stored document.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Tuple

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from database import now, parse_object_id
from errors import ConflictError, InsufficientStockError, ProductNotFoundError

logger = logging.getLogger(__name__)

IN_STOCK = "In Stock"
LOW_STOCK = "Low Stock"
OUT_OF_STOCK = "Out of Stock"

LOW_STOCK_THRESHOLD = 10
MAX_ATTEMPTS = 25

Line = Tuple[Any, int]


def stock_status(stock: int) -> str:
    if stock <= 0:
        return OUT_OF_STOCK
    if stock <= LOW_STOCK_THRESHOLD:
        return LOW_STOCK
    return IN_STOCK


class Inventory:
    def __init__(self, products: Collection):
        self.products = products

    def _adjust(self, product_id: Any, delta: int) -> Dict[str, Any]:
        oid = parse_object_id(product_id)
        if oid is None:
            raise ProductNotFoundError(str(product_id))
        for _ in range(MAX_ATTEMPTS):
            doc = self.products.find_one({"_id": oid}, {"stock": 1, "name": 1})
            if doc is None:
                raise ProductNotFoundError(str(product_id))
            current = doc.get("stock", 0)
            new_stock = current + delta
            if new_stock < 0:
                raise InsufficientStockError(doc.get("name", str(oid)), -delta, current)
            updated = self.products.find_one_and_update(
                {"_id": oid, "stock": current},
                {"$set": {"stock": new_stock, "status": stock_status(new_stock), "updated_at": now()}},
                return_document=ReturnDocument.AFTER,
            )
            if updated is not None:
                return updated
            logger.debug("stock of %s changed during update, retrying", oid)
        raise ConflictError(f"Stock for product {oid} is changing too quickly, try again")

    def reserve(self, product_id: Any, quantity: int) -> Dict[str, Any]:
        """Take ``quantity`` units out of stock for a new order line."""
        return self._adjust(product_id, -quantity)

    def release(self, product_id: Any, quantity: int) -> Dict[str, Any]:
        """Put ``quantity`` units back, e.g. when an order is cancelled."""
        return self._adjust(product_id, quantity)

    def consume(self, product_id: Any, quantity: int) -> Dict[str, Any]:
        """Take ``quantity`` units again when a cancelled order is reopened."""
        return self._adjust(product_id, -quantity)

    # --------------------- Multi-line ---------------------

    def check_available(self, lines: Iterable[Line]) -> Dict[ObjectId, Dict[str, Any]]:
        lines = list(lines)
        wanted: Dict[ObjectId, int] = {}
        for product_id, quantity in lines:
            oid = parse_object_id(product_id)
            if oid is None:
                raise ProductNotFoundError(str(product_id))
            wanted[oid] = wanted.get(oid, 0) + quantity

        docs = {d["_id"]: d for d in self.products.find({"_id": {"$in": list(wanted)}})}
        for product_id, _ in lines:
            oid = parse_object_id(product_id)
            doc = docs.get(oid)
            if doc is None:
                raise ProductNotFoundError(str(product_id))
            if doc.get("stock", 0) < wanted[oid]:
                raise InsufficientStockError(doc.get("name", str(oid)), wanted[oid], doc.get("stock", 0))
        return docs

    def reserve_all(self, lines: Iterable[Line]) -> List[Dict[str, Any]]:
        """Reserve every line or none of them; returns the updated products in line order."""
        lines = list(lines)
        self.check_available(lines)
        return self._apply_all(lines, self.reserve, self.release)

    def release_all(self, lines: Iterable[Line]) -> List[Dict[str, Any]]:
        return self._apply_all(list(lines), self.release, self.consume, skip_missing=True)

    def restore(self, lines: Iterable[Line]) -> None:
        """Put back stock reserved for an order that was never saved.

        Every line is released even when another one fails; failures are logged
        so the caller can re-raise its own error.
        """
        self._compensate(list(lines), self.release)

    def consume_all(self, lines: Iterable[Line]) -> List[Dict[str, Any]]:
        return self._apply_all(list(lines), self.consume, self.release, skip_missing=True)

    def _apply_all(
        self,
        lines: List[Line],
        apply: Callable[[Any, int], Dict[str, Any]],
        undo: Callable[[Any, int], Dict[str, Any]],
        skip_missing: bool = False,
    ) -> List[Dict[str, Any]]:
        applied: List[Line] = []
        results = []
        try:
            for product_id, quantity in lines:
                try:
                    results.append(apply(product_id, quantity))
                except ProductNotFoundError:
                    if not skip_missing:
                        raise
                    logger.warning("product %s no longer exists, skipping stock adjustment", product_id)
                    continue
                applied.append((product_id, quantity))
        except Exception:
            self._compensate(applied, undo)
            raise
        return results

    def _compensate(self, applied: List[Line], undo: Callable[[Any, int], Dict[str, Any]]) -> None:
        for product_id, quantity in reversed(applied):
            try:
                undo(product_id, quantity)
            except (ProductNotFoundError, InsufficientStockError, ConflictError) as e:
                logger.error("could not roll back stock for %s (%s units): %s", product_id, quantity, e)
