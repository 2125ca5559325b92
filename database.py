"""
MongoDB access

Collections are named after the lowercase schema class (Bootcamp -> "bootcamp").
Documents keep their `_id` as an ObjectId; references between documents
(`bootcamp_id`, `user_id`) are stored as id strings.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pymongo
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.database import Database
from pymongo import errors as mongo_errors

from config import get_settings
from errors import DuplicateKeyError, ValidationError

logger = logging.getLogger(__name__)

# Fields never sent back to a client
PRIVATE_FIELDS = ("password_hash", "reset_password_token", "reset_password_expire")

_client: Optional[MongoClient] = None


def get_db() -> Database:
    """ FastAPI dependency: the application database """
    global _client
    settings = get_settings()
    if _client is None:
        _client = MongoClient(settings.mongodb_url)
        logger.info("MongoDB client created for %s", settings.database_name)
    return _client[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db["bootcamp"].create_index("name", unique=True)
    db["bootcamp"].create_index([("location", pymongo.GEOSPHERE)])
    db["user"].create_index("email", unique=True)
    db["review"].create_index([("bootcamp_id", 1), ("user_id", 1)], unique=True)


def utcnow() -> datetime:
    # naive UTC, the way pymongo hands datetimes back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_obj_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError(f"Oops, {id_str} is not a valid id")


def sanitize(doc: Optional[Dict]) -> Optional[Dict]:
    """ Make a stored document presentable: `_id` becomes `id`, secrets are dropped """
    if not doc:
        return doc
    d = {k: v for k, v in doc.items() if k not in PRIVATE_FIELDS}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def _duplicate_key_message(exc: mongo_errors.DuplicateKeyError) -> str:
    details = getattr(exc, "details", None) or {}
    key_value = details.get("keyValue") or {}
    if key_value:
        fields = ", ".join(f"{k} '{v}'" for k, v in key_value.items())
        return f"Duplicate value for {fields}"
    return "Duplicate field value entered"


def insert_document(db: Database, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
    """ Insert and return the stored document (with `_id`) """
    try:
        res = db[collection].insert_one(doc)
    except mongo_errors.DuplicateKeyError as e:
        raise DuplicateKeyError(_duplicate_key_message(e))
    doc["_id"] = res.inserted_id
    return doc


def update_document(db: Database, collection: str, _id: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """ Apply `$set` changes and return the updated document """
    if not changes:
        return db[collection].find_one({"_id": _id})
    try:
        return db[collection].find_one_and_update(
            {"_id": _id},
            {"$set": changes},
            return_document=pymongo.ReturnDocument.AFTER,
        )
    except mongo_errors.DuplicateKeyError as e:
        raise DuplicateKeyError(_duplicate_key_message(e))
