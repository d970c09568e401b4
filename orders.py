"""
Order lifecycle: placement with inventory reservation, history, detail,
cancellation with inventory restoration, and external status updates.

Inventory changes are a sequence of single-document updates, one per
line. There is no multi-document transaction: if a later line of an
order fails, the lines before it stay decremented.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from pymongo import DESCENDING, ReturnDocument

import catalog
from database import create_document, get_documents, to_object_id, utcnow
from errors import CannotCancel, Forbidden, InvalidInput, OrderNotFound, OutOfStock, ProductNotFound
from schemas import CANCELLABLE_STATUSES, MAX_PAGE_SIZE, Order, OrderItem, OrderLine, ShippingAddress

logger = logging.getLogger(__name__)

COLLECTION = "order"
SUMMARY_FIELDS = {"_id": 1, "total": 1, "status": 1, "created_at": 1}


def create_order(db, user_id: str, items: List[OrderLine], shipping_address: Optional[ShippingAddress],
                 payment_method: Optional[str] = None) -> Dict[str, Any]:
    if not items:
        raise InvalidInput("Order must contain at least one item")
    if shipping_address is None:
        raise InvalidInput("Shipping address is required")

    total = 0.0
    snapshots: List[OrderItem] = []
    for position, line in enumerate(items):
        try:
            product = catalog.find_by_id(db, line.product_id)
            if product is None:
                raise ProductNotFound(f"Product {line.product_id} not found")
            if product["quantity"] < line.quantity:
                raise OutOfStock(f"Product {product['name']} is out of stock")
            if catalog.adjust_quantity(db, product["_id"], -line.quantity) is None:
                # stock was taken between the check and the update
                raise OutOfStock(f"Product {product['name']} is out of stock")
        except (ProductNotFound, OutOfStock):
            if position:
                logger.warning(
                    "Order for user %s failed at line %d; %d earlier line(s) remain decremented",
                    user_id, position + 1, position,
                )
            raise

        snapshots.append(OrderItem(
            product_id=product["_id"],
            product_name=product["name"],
            quantity=line.quantity,
            price=product["price"],
        ))
        total += product["price"] * line.quantity

    order = Order(
        user_id=to_object_id(user_id),
        items=snapshots,
        total=total,
        shipping_address=shipping_address,
        payment_method=payment_method,
    )
    created = create_document(db, COLLECTION, order)
    logger.info("Created order %s for user %s total=%.2f", created["_id"], user_id, total)
    return created


def list_orders(db, user_id: str, page: int = 1, limit: int = 20) -> Tuple[List[Dict[str, Any]], int, int]:
    limit = min(limit, MAX_PAGE_SIZE)
    query = {"user_id": to_object_id(user_id)}
    summaries = get_documents(
        db, COLLECTION, query,
        sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
        skip=(page - 1) * limit, limit=limit,
        projection=SUMMARY_FIELDS,
    )
    return summaries, db[COLLECTION].count_documents(query), limit


def _find_order(db, order_id) -> Dict[str, Any]:
    oid = to_object_id(order_id)
    order = db[COLLECTION].find_one({"_id": oid}) if oid is not None else None
    if order is None:
        raise OrderNotFound()
    return order


def get_order(db, user_id: str, order_id: str, action: str = "view") -> Dict[str, Any]:
    order = _find_order(db, order_id)
    if str(order["user_id"]) != str(user_id):
        raise Forbidden(f"Cannot {action} other user's orders")
    return order


def cancel_order(db, user_id: str, order_id: str) -> Dict[str, Any]:
    order = get_order(db, user_id, order_id, action="cancel")
    now = utcnow()
    # the status transition is the claim; only the caller that wins it restocks
    claimed = db[COLLECTION].find_one_and_update(
        {"_id": order["_id"], "status": {"$in": list(CANCELLABLE_STATUSES)}},
        {"$set": {"status": "cancelled", "cancelled_at": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if claimed is None:
        raise CannotCancel()

    for item in order["items"]:
        if catalog.adjust_quantity(db, item["product_id"], item["quantity"]) is None:
            logger.info("Product %s no longer exists; skipping restock for order %s",
                        item["product_id"], order["_id"])

    logger.info("Cancelled order %s for user %s", order["_id"], user_id)
    return {"id": claimed["_id"], "status": claimed["status"], "cancelled_at": claimed["cancelled_at"]}


def update_status(db, order_id: str, status: str, tracking_number: Optional[str] = None) -> Dict[str, Any]:
    """Overwrite an order's status. No transition rules apply here."""
    order = _find_order(db, order_id)
    now = utcnow()
    changes: Dict[str, Any] = {"status": status, "updated_at": now}
    if status == "cancelled" and not order.get("cancelled_at"):
        changes["cancelled_at"] = now
    if tracking_number:
        changes["tracking_number"] = tracking_number

    updated = db[COLLECTION].find_one_and_update(
        {"_id": order["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER,
    )
    logger.info("Order %s status %s -> %s via webhook", order["_id"], order["status"], status)
    return updated
