from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument

from learnhub.config import MONGO_URL, DB_NAME

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(MONGO_URL)
        _db = _client[DB_NAME]
    return _db


def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None


def utcnow() -> datetime:
    """Naive UTC now, the form BSON dates come back in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _stringify(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc["_id"] = str(doc["_id"])  # stringify ObjectId
    return doc


async def create_document(db: AsyncIOMotorDatabase, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    now = utcnow().isoformat()
    payload = {**data, "created_at": now, "updated_at": now}
    res = await db[collection_name].insert_one(payload)
    payload["_id"] = str(res.inserted_id)
    return payload


async def get_documents(db: AsyncIOMotorDatabase, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: int = 50) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {}).limit(limit)
    docs = []
    async for d in cursor:
        docs.append(_stringify(d))
    return docs


async def get_document(db: AsyncIOMotorDatabase, collection_name: str, doc_id: Any) -> Optional[Dict[str, Any]]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    doc = await db[collection_name].find_one({"_id": oid})
    return _stringify(doc) if doc else None


async def update_document(db: AsyncIOMotorDatabase, collection_name: str, doc_id: Any, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    doc = await db[collection_name].find_one_and_update(
        {"_id": oid},
        {"$set": {**changes, "updated_at": utcnow().isoformat()}},
        return_document=ReturnDocument.AFTER,
    )
    return _stringify(doc) if doc else None


async def delete_document(db: AsyncIOMotorDatabase, collection_name: str, doc_id: Any) -> bool:
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    res = await db[collection_name].delete_one({"_id": oid})
    return res.deleted_count == 1
