import logging
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pymongo import MongoClient
from pymongo.collection import Collection

import config

logger = logging.getLogger(__name__)

RECORD_COLLECTION = "academic_record"

_client: Optional[MongoClient] = None
_db = None

try:
    _client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=3000)
    # Trigger server selection so an unreachable server is detected at startup
    _client.server_info()
    _db = _client[config.DATABASE_NAME]
except Exception as e:
    logger.warning("MongoDB not reachable, record persistence disabled: %s", e)
    _client = None
    _db = None

# Expose db for other modules
db = _db


def _get_collection(name: str) -> Optional[Collection]:
    if db is None:
        return None
    return db[name]


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: int = 100) -> List[Dict[str, Any]]:
    col = _get_collection(collection_name)
    if col is None:
        raise RuntimeError("Database not connected")

    cursor = col.find(filter_dict or {}).limit(limit)
    items: List[Dict[str, Any]] = []
    for d in cursor:
        d["_id"] = str(d.get("_id"))
        items.append(d)
    return items


def upsert_document(collection_name: str, filter_dict: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    col = _get_collection(collection_name)
    if col is None:
        raise RuntimeError("Database not connected")
    now = datetime.now(timezone.utc)
    update = {"$set": {**data, "updated_at": now}, "$setOnInsert": {"created_at": now}}
    res = col.update_one(filter_dict, update, upsert=True)
    if res.upserted_id:
        doc = col.find_one({"_id": res.upserted_id})
    else:
        doc = col.find_one(filter_dict)
    if doc:
        doc["_id"] = str(doc.get("_id"))
    return doc or {}


def save_record(user_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
    return upsert_document(RECORD_COLLECTION, {"user_id": user_id}, {"user_id": user_id, "record": record})


def load_record(user_id: str) -> Optional[Dict[str, Any]]:
    items = get_documents(RECORD_COLLECTION, {"user_id": user_id}, limit=1)
    if not items:
        return None
    return items[0].get("record")
