"""
MongoDB access

The ``Database`` adapter owns the client. It connects lazily on first use,
caches the handle, and is torn down explicitly on shutdown. Route handlers
receive it through the ``get_database`` / ``get_db`` dependencies.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Union

from bson import ObjectId
from fastapi import Depends, Request
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import OperationFailure, PyMongoError

from config import Settings

logger = logging.getLogger(__name__)


class Database:
    def __init__(
        self,
        url: str,
        name: str,
        timeout_ms: int = 5000,
        client_factory: Callable[..., Any] = MongoClient,
    ):
        self.url = url
        self.name = name
        self.timeout_ms = timeout_ms
        self._client_factory = client_factory
        self._client = None
        self._db = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, settings.database_name, settings.database_timeout_ms)

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    def connect(self):
        """Return the cached database handle, connecting on the first call.

        The server is pinged before the handle is cached so an unreachable
        store fails here instead of on the first query. Errors are logged and
        re-raised; nothing is retried.
        """
        if self._db is not None:
            return self._db
        with self._lock:
            if self._db is None:
                client = self._client_factory(self.url, serverSelectionTimeoutMS=self.timeout_ms)
                try:
                    client.admin.command("ping")
                except PyMongoError as e:
                    client.close()
                    logger.error("MongoDB connection error: %s", e)
                    raise
                db = client[self.name]
                try:
                    db["user"].create_index("email", unique=True)
                except OperationFailure as e:
                    # Existing duplicate emails; registration still checks before inserting.
                    logger.warning("Could not create unique index on user.email: %s", e)
                self._client = client
                self._db = db
                logger.info("Connected to MongoDB database %r", self.name)
        return self._db

    def ping(self) -> bool:
        try:
            self.connect().command("ping")
        except PyMongoError as e:
            logger.warning("MongoDB ping failed: %s", e)
            return False
        return True

    def close(self):
        with self._lock:
            if self._client is not None:
                self._client.close()
                logger.info("MongoDB connection closed")
            self._client = None
            self._db = None

    def __getitem__(self, collection_name: str):
        return self.connect()[collection_name]


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(database: Database = Depends(get_database)):
    return database.connect()


def create_document(db, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with createdAt/updatedAt stamps and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    now = datetime.now(timezone.utc)
    data_dict["createdAt"] = now
    data_dict["updatedAt"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    db,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def _serialize_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = doc.pop("_id")
    return {k: _serialize_value(v) for k, v in doc.items()}
