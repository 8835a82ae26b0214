"""
Database helpers

The MongoDB client is created by the application lifespan in main.py and kept
on ``app.state``; route handlers receive the database through the ``get_db``
dependency. Collections used by the service:

- products, categories, orders, transactions, notifications, users, settings
- counters (sequence numbers, see sequences.py)
"""

import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from errors import DatabaseUnavailableError

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "adminhub")


def connect(url: Optional[str] = None, name: Optional[str] = None) -> Database:
    client = MongoClient(url or DATABASE_URL)
    return client[name or DATABASE_NAME]


def ensure_indexes(db: Database) -> None:
    db["products"].create_index("sku", unique=True)
    db["products"].create_index("category")
    db["categories"].create_index("slug", unique=True)
    db["orders"].create_index("order_number", unique=True)
    db["orders"].create_index([("created_at", DESCENDING)])
    db["transactions"].create_index("transaction_id", unique=True)
    db["users"].create_index("email", unique=True)
    db["notifications"].create_index([("user", ASCENDING), ("created_at", DESCENDING)])


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise DatabaseUnavailableError()
    return db


# --------------------- Documents ---------------------

def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, collection_name: str, data: Any) -> str:
    """Insert a pydantic model or dict with timestamps and return the new id."""
    if hasattr(data, "model_dump"):
        doc = data.model_dump()
    else:
        doc = dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    skip: int = 0,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    cursor = cursor.sort(sort or [("created_at", DESCENDING)])
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def parse_object_id(id_str: Any) -> Optional[ObjectId]:
    """Return an ObjectId, or None when the value is not a valid id."""
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def serialize(value: Any) -> Any:
    """Convert a stored document to a JSON-ready structure (``_id`` becomes ``id``)."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if k == "_id":
                out["id"] = serialize(v)
            elif k == "password_hash":
                continue
            else:
                out[k] = serialize(v)
        return out
    return value


def regex_search(fields: List[str], text: str) -> Dict[str, Any]:
    return {"$or": [{f: {"$regex": re.escape(text), "$options": "i"}} for f in fields]}
