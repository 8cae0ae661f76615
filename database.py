"""
Database helpers

Thin wrappers around the MongoDB client. Collection names are given
explicitly by the caller: "products", "users", "conversations", "messages",
plus the "authuser", "session" and "storageobject" collections backing auth
and object storage.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import PyMongoError

import config

logger = logging.getLogger(__name__)

db = None
try:
    _client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = _client[config.DATABASE_NAME]
except PyMongoError as e:
    logger.error("Could not configure database client: %s", e)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """MongoDB hands back naive datetimes; they are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_db():
    """FastAPI dependency returning the live database handle."""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def object_id(value: str, what: str = "id") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"Invalid {what}")
    return ObjectId(value)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    if doc.get("created_at") is None:
        doc["created_at"] = now
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[dict]:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            d[k] = as_utc(v).isoformat()
    return d
