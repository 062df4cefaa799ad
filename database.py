"""
MongoDB access for the HTTP facade.

`db` is None when DATABASE_URL / DATABASE_NAME are not configured; callers
check for that before touching collections.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from bson.errors import InvalidId
from bson.objectid import ObjectId
from pydantic import BaseModel
from pymongo import DESCENDING, MongoClient, ReturnDocument

from config import settings

db = None
if settings.database_url and settings.database_name:
    _client = MongoClient(settings.database_url)
    db = _client[settings.database_name]


class DatabaseUnavailable(Exception):
    pass


def _collection(collection_name: str):
    if db is None:
        raise DatabaseUnavailable("Database not available")
    return db[collection_name]


def _as_dict(data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return dict(data)


def object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def to_str_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = doc.copy()
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            d[k] = v.isoformat()
    return d


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    doc = _as_dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = _collection(collection_name).insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[Tuple[str, int]] = None,
) -> List[Dict[str, Any]]:
    cursor = _collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(*sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def find_document(collection_name: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return _collection(collection_name).find_one(filter_dict)


def get_document(collection_name: str, document_id: str) -> Optional[Dict[str, Any]]:
    oid = object_id(document_id)
    if oid is None:
        return None
    return _collection(collection_name).find_one({"_id": oid})


def update_document(
    collection_name: str, document_id: str, data: Union[BaseModel, Dict[str, Any]]
) -> Optional[Dict[str, Any]]:
    oid = object_id(document_id)
    if oid is None:
        return None
    changes = _as_dict(data)
    changes.pop("id", None)
    changes.pop("_id", None)
    changes["updated_at"] = datetime.now(timezone.utc)
    return _collection(collection_name).find_one_and_update(
        {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )


def delete_document(collection_name: str, document_id: str) -> bool:
    oid = object_id(document_id)
    if oid is None:
        return False
    return _collection(collection_name).delete_one({"_id": oid}).deleted_count > 0


NEWEST_FIRST = ("created_at", DESCENDING)
