"""
Product catalog: lookup, search, creation and inventory adjustment.

The in_stock flag is derived state. Every write in this module recomputes
it from quantity so that in_stock == (quantity > 0) always holds.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from database import create_document, get_documents, to_object_id, utcnow
from schemas import MAX_PAGE_SIZE, Product, ProductCreate, ProductSearch

logger = logging.getLogger(__name__)

COLLECTION = "product"
RECOMMENDATION_LIMIT = 5


def find_by_id(db, product_id) -> Optional[Dict[str, Any]]:
    oid = to_object_id(product_id)
    if oid is None:
        return None
    return db[COLLECTION].find_one({"_id": oid})


def build_search_filter(criteria: ProductSearch) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if criteria.query:
        pattern = re.escape(criteria.query)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if criteria.category:
        query["category"] = criteria.category
    filters = criteria.filters
    price: Dict[str, float] = {}
    if filters.min_price is not None:
        price["$gte"] = filters.min_price
    if filters.max_price is not None:
        price["$lte"] = filters.max_price
    if price:
        query["price"] = price
    if filters.in_stock is not None:
        query["in_stock"] = filters.in_stock
    return query


def search(db, criteria: ProductSearch) -> Tuple[List[Dict[str, Any]], int, int]:
    """Return (page of products, total matching, effective page size)."""
    limit = min(criteria.limit, MAX_PAGE_SIZE)
    skip = (criteria.page - 1) * limit
    direction = ASCENDING if criteria.order == "asc" else DESCENDING
    query = build_search_filter(criteria)

    items = get_documents(
        db, COLLECTION, query,
        sort=[(criteria.sort, direction), ("_id", direction)],
        skip=skip, limit=limit,
    )
    total = db[COLLECTION].count_documents(query)
    return items, total, limit


def create_product(db, attrs: ProductCreate) -> Dict[str, Any]:
    data = attrs.model_dump()
    product = Product(**data, in_stock=data["quantity"] > 0)
    created = create_document(db, COLLECTION, product)
    logger.info("Created product %s (%s) qty=%s", created["_id"], created["name"], created["quantity"])
    return created


def adjust_quantity(db, product_id, delta: int) -> Optional[Dict[str, Any]]:
    """
    Apply delta to a product's quantity and recompute in_stock.

    The $inc is guarded so quantity can never drop below zero; if the
    product is missing or holds fewer than -delta units, None is returned
    and nothing is written.
    """
    oid = to_object_id(product_id)
    if oid is None:
        return None
    guard: Dict[str, Any] = {"_id": oid}
    if delta < 0:
        guard["quantity"] = {"$gte": -delta}
    updated = db[COLLECTION].find_one_and_update(
        guard,
        {"$inc": {"quantity": delta}, "$set": {"updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        return None
    return _sync_in_stock(db, updated)


def _sync_in_stock(db, product: Dict[str, Any]) -> Dict[str, Any]:
    in_stock = product["quantity"] > 0
    if product.get("in_stock") == in_stock:
        return product
    # no-op if another writer has changed quantity since our $inc
    db[COLLECTION].update_one(
        {"_id": product["_id"], "quantity": product["quantity"]},
        {"$set": {"in_stock": in_stock}},
    )
    product["in_stock"] = in_stock
    return product


def recommend(db, product: Dict[str, Any], limit: int = RECOMMENDATION_LIMIT) -> List[Dict[str, Any]]:
    return get_documents(
        db, COLLECTION,
        {"category": product["category"], "_id": {"$ne": product["_id"]}, "in_stock": True},
        sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
        limit=limit,
    )
