"""
MongoDB access helpers.

The database handle is created once by ``create_app`` and passed explicitly to
every helper; nothing here keeps a global connection.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)


def now() -> datetime:
    # Mongo stores naive UTC datetimes
    return datetime.now(timezone.utc).replace(tzinfo=None)


def connect(database_url: str, database_name: str) -> Database:
    client = MongoClient(database_url)
    logger.info("Using MongoDB database %s", database_name)
    return client[database_name]


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at; returns the new id as str."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    timestamp = now()
    data_dict.setdefault("created_at", timestamp)
    data_dict.setdefault("updated_at", timestamp)
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None):
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(db: Database) -> None:
    """Create the unique indexes the toggle and account invariants rely on."""
    db["user"].create_index([("username", ASCENDING)], unique=True)
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["subscription"].create_index(
        [("subscriber", ASCENDING), ("channel", ASCENDING)], unique=True
    )
    # video/comment/tweet are always present (null when unused)
    db["like"].create_index(
        [("liked_by", ASCENDING), ("video", ASCENDING), ("comment", ASCENDING), ("tweet", ASCENDING)],
        unique=True,
    )
    db["video"].create_index([("owner", ASCENDING)])
    db["comment"].create_index([("video", ASCENDING)])
    db["tweet"].create_index([("owner", ASCENDING)])
    db["playlist"].create_index([("owner", ASCENDING)])
    logger.info("Database indexes ensured")
