"""
MongoDB access for the storefront.

The connector is owned by the application and handed to request handlers
through a FastAPI dependency; the handle is opened on first use and reused
for the lifetime of the process.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings
from errors import DatabaseConnectionError

logger = logging.getLogger(__name__)


class MongoConnector:
    def __init__(
        self,
        url: Optional[str],
        name: str = "ecommerce",
        client_factory: Callable[..., Any] = MongoClient,
    ):
        self.url = url
        self.name = name
        self._client_factory = client_factory
        self._client = None
        self._db: Optional[Database] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoConnector":
        return cls(settings.database_url, settings.database_name)

    @property
    def connected(self) -> bool:
        return self._db is not None

    def connect(self) -> Database:
        if self._db is not None:
            return self._db
        with self._lock:
            if self._db is not None:
                return self._db
            if not self.url:
                raise DatabaseConnectionError("DATABASE_URL not defined in environment variables")
            try:
                client = self._client_factory(self.url, serverSelectionTimeoutMS=5000)
                client.admin.command("ping")
            except PyMongoError as e:
                logger.error("MongoDB connection error: %s", e)
                raise DatabaseConnectionError(f"Could not connect to database: {e}") from e
            self._client = client
            self._db = client[self.name]
            logger.info("Connected to MongoDB database %s", self.name)
            return self._db

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
            self._client = None
            self._db = None


def get_database(request: Request) -> Database:
    return request.app.state.connector.connect()


# ----------------------- Helpers -----------------------
def parse_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    try:
        return ObjectId(value)
    except InvalidId:
        return None


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("createdAt", now)
    doc.setdefault("updatedAt", now)
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes that are already UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, datetime):
            doc[k] = to_utc(v).isoformat()
    return doc
