"""
Order creation and status transitions.

Creating an order reserves stock for every line as one unit. Moving an order
into "Cancelled" puts its stock back; moving it out of "Cancelled" takes the
stock again. Other transitions, and payment status changes, leave stock alone.
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, now, parse_object_id, regex_search
from errors import ConflictError, NotFoundError, ValidationError
from inventory import Inventory
from schemas import OrderCreate
from sequences import SequenceGenerator

logger = logging.getLogger(__name__)

PROCESSING = "Processing"
COMPLETED = "Completed"
CANCELLED = "Cancelled"
ON_HOLD = "On Hold"
ORDER_STATUSES = (PROCESSING, COMPLETED, CANCELLED, ON_HOLD)
PAYMENT_STATUSES = ("Pending", "Paid", "Failed")


def _lines(items: List[Dict[str, Any]]):
    return [(item["product"], item["quantity"]) for item in items]


def create_order(db: Database, body: OrderCreate) -> Dict[str, Any]:
    if not body.items:
        raise ValidationError("Missing required fields")

    inventory = Inventory(db["products"])
    lines = [(item.product, item.quantity) for item in body.items]
    reserved = inventory.reserve_all(lines)

    items = []
    total = 0.0
    for line, product in zip(body.items, reserved):
        price = float(product.get("price", 0))
        items.append({
            "product": product["_id"],
            "name": product.get("name"),
            "price": price,
            "quantity": line.quantity,
        })
        total += price * line.quantity

    doc = {
        "customer": body.customer.model_dump(),
        "items": items,
        "total_amount": round(total, 2),
        "status": PROCESSING,
        "payment_status": "Pending",
        "shipping_address": body.shipping_address.model_dump() if body.shipping_address else None,
        "payment_method": body.payment_method or "Cash on Delivery",
        "notes": body.notes,
    }
    try:
        doc["order_number"] = SequenceGenerator(db).next_order_number()
        order_id = create_document(db, "orders", doc)
    except Exception:
        inventory.restore(lines)
        raise

    logger.info("created order %s (%d items, total %.2f)", doc["order_number"], len(items), doc["total_amount"])
    return db["orders"].find_one({"_id": parse_object_id(order_id)})


def get_order(db: Database, order_id: str) -> Dict[str, Any]:
    oid = parse_object_id(order_id)
    order = db["orders"].find_one({"_id": oid}) if oid else None
    if not order:
        raise NotFoundError("Order")
    return order


def list_orders(db: Database, status: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if search:
        query.update(regex_search(["order_number", "customer.name", "customer.email"], search))
    return get_documents(db, "orders", query, sort=[("created_at", DESCENDING)])


def update_order_status(
    db: Database,
    order_id: str,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> Dict[str, Any]:
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status: {status}")
    if payment_status is not None and payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment status: {payment_status}")

    order = get_order(db, order_id)
    orders = db["orders"]
    previous = order["status"]

    if status and status != previous:
        claimed = orders.find_one_and_update(
            {"_id": order["_id"], "status": previous},
            {"$set": {"status": status, "updated_at": now()}},
            return_document=ReturnDocument.AFTER,
        )
        if claimed is None:
            raise ConflictError(f"Order {order['order_number']} was updated by another request, try again")

        inventory = Inventory(db["products"])
        try:
            if status == CANCELLED:
                inventory.release_all(_lines(order["items"]))
            elif previous == CANCELLED:
                inventory.consume_all(_lines(order["items"]))
        except Exception:
            orders.update_one({"_id": order["_id"], "status": status}, {"$set": {"status": previous}})
            raise
        logger.info("order %s: %s -> %s", order["order_number"], previous, status)

    if payment_status:
        orders.update_one(
            {"_id": order["_id"]},
            {"$set": {"payment_status": payment_status, "updated_at": now()}},
        )

    return orders.find_one({"_id": order["_id"]})
