import logging
from datetime import datetime
from typing import Any

from bson import ObjectId
from fastapi.responses import JSONResponse
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from database import create_document
from errors import BadRequest, Forbidden, NotFound

logger = logging.getLogger(__name__)


def to_str_id(value: Any) -> Any:
    """Make a Mongo document JSON friendly: _id -> id, ObjectId -> str, datetime -> isoformat."""
    if isinstance(value, dict):
        d = {}
        for k, v in value.items():
            if k == "_id":
                k = "id"
            d[k] = to_str_id(v)
        return d
    if isinstance(value, (list, tuple)):
        return [to_str_id(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def objid(id_str: str, label: str = "id") -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not id_str or not ObjectId.is_valid(id_str):
        raise BadRequest(f"Invalid {label} format")
    return ObjectId(id_str)


def api_response(data: Any = None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "data": to_str_id(data),
            "message": message,
            "success": status_code < 400,
        },
    )


def is_owner(doc: dict, user_id, field: str = "owner") -> bool:
    return str(doc.get(field)) == str(user_id)


def find_owned(collection: Collection, doc_id: ObjectId, user_id, label: str, action: str = "modify") -> dict:
    """Load a document the acting user must own, raising NotFound/Forbidden otherwise."""
    doc = collection.find_one({"_id": doc_id})
    if doc is None:
        raise NotFound(f"{label} not found")
    if not is_owner(doc, user_id):
        raise Forbidden(f"You don't have permission to {action} this {label.lower()}")
    return doc


def toggle_document(collection: Collection, key: dict) -> bool:
    """Flip presence of the document matching ``key``. Returns True when it now exists.

    A unique index on the key fields backs this up: if a concurrent call
    inserted first, this call behaves as the second of the two and deletes.
    """
    existing = collection.find_one(key)
    if existing is None:
        try:
            create_document(collection.database, collection.name, key)
            return True
        except DuplicateKeyError:
            logger.info("Concurrent toggle on %s for %s", collection.name, key)
            existing = collection.find_one(key)
            if existing is None:
                return False
    collection.delete_one({"_id": existing["_id"]})
    return False
