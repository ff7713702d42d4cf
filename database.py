"""
MongoDB access for the Game Catalog API.

The connection is configured from DATABASE_URL / DATABASE_NAME. When either
is missing, ``db`` stays None and every route that needs the store answers
500 "Database not configured".
"""
import logging
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import get_settings
from errors import InvalidArgument

logger = logging.getLogger(__name__)

_settings = get_settings()

client: Optional[MongoClient] = None
db: Optional[Database] = None

if _settings.database_url and _settings.database_name:
    # MongoClient connects lazily, so import never blocks on the server.
    client = MongoClient(_settings.database_url)
    db = client[_settings.database_name]
else:
    logger.warning("DATABASE_URL/DATABASE_NAME not set; store is not configured")


def get_db() -> Database:
    """FastAPI dependency returning the configured database."""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def ensure_indexes(database: Database) -> None:
    database["user"].create_index([("username", ASCENDING)], unique=True)
    database["user"].create_index([("email", ASCENDING)], unique=True)


def parse_object_id(value: Any, what: str = "object") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise InvalidArgument(f"Invalid {what} id")
    return ObjectId(value)


def create_document(database: Database, collection_name: str,
                    data: Union[BaseModel, Dict[str, Any]]) -> ObjectId:
    """Insert one document and return its id.

    Pydantic models are stored under their serialisation aliases, so the
    documents carry the same field names as the JSON API.
    """
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    return database[collection_name].insert_one(doc).inserted_id


def get_documents(database: Database, collection_name: str,
                  filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_public(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a stored document fit for a JSON response.

    ``_id`` becomes ``id`` and ObjectId values (including those nested in
    lists and sub-documents) become strings.
    """
    out: Dict[str, Any] = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        else:
            out[key] = _stringify_ids(value)
    return out


def _stringify_ids(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [_stringify_ids(v) for v in value]
    if isinstance(value, dict):
        return {k: _stringify_ids(v) for k, v in value.items()}
    return value
