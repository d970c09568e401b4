"""
MongoDB access.

Each entity lives in a collection named after it in lowercase
("user", "product", "order").
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

from config import DATABASE_NAME, DATABASE_URL
from errors import ServerError

logger = logging.getLogger(__name__)

db = None
if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def get_db():
    if db is None:
        raise ServerError("Database not configured")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id from a path or body; None when it cannot be an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> Dict[str, Any]:
    """Insert a document with fresh timestamps and return it as stored."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    inserted_id = database[collection_name].insert_one(doc).inserted_id
    return database[collection_name].find_one({"_id": inserted_id})


def get_documents(database, collection_name: str, filter_dict: Optional[dict] = None,
                  sort: Optional[list] = None, skip: int = 0, limit: int = 0,
                  projection: Optional[dict] = None) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Any) -> Any:
    """Make a stored document JSON-friendly: `_id` -> `id`, ObjectIds -> str, datetimes -> ISO."""
    if isinstance(doc, list):
        return [serialize(v) for v in doc]
    if isinstance(doc, dict):
        out = {}
        for k, v in doc.items():
            if k == "_id":
                out["id"] = str(v)
            else:
                out[k] = serialize(v)
        return out
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        if doc.tzinfo is None:
            doc = doc.replace(tzinfo=timezone.utc)
        return doc.isoformat()
    return doc


def ensure_indexes(database) -> None:
    database["user"].create_index([("username", ASCENDING)], unique=True)
    database["user"].create_index([("email", ASCENDING)], unique=True, sparse=True)
    database["user"].create_index([("created_at", DESCENDING)])

    database["product"].create_index([("category", ASCENDING), ("price", ASCENDING)])
    database["product"].create_index([("in_stock", ASCENDING), ("category", ASCENDING)])
    database["product"].create_index([("created_at", DESCENDING)])
    database["product"].create_index([("price", ASCENDING)])

    database["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["order"].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    database["order"].create_index([("created_at", DESCENDING)])
    logger.info("Indexes ensured on database %s", database.name)
