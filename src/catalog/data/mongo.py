"""
MongoDB access helpers for the catalog: connection with bounded retry,
collection names, indexes, identifier parsing, document serialization and
offset pagination.
"""

from __future__ import annotations

import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from src.catalog.config import MongoConfig
from src.catalog.errors import InvalidIdentifierError
from src.catalog.logging_utils import configure_logger

logger = configure_logger(__name__)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

USERS = "users"
ENTITIES = "entities"
PEOPLE = "people"
CHARACTERS = "characters"
REVIEWS = "reviews"
ARTICLES = "articles"
AWARDS = "awards"

SortSpec = Sequence[Tuple[str, int]]

NEWEST_FIRST: SortSpec = (("createdAt", DESCENDING),)

_OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


def connect_with_retry(
    uri: str,
    max_retries: int = 3,
    base_delay_seconds: float = 0.5,
    timeout_ms: int = 5000,
) -> MongoClient:
    """
    Create a MongoClient and confirm the server answers ``ping``.

    We perform (max_retries + 1) attempts in total and sleep once for
    ``base_delay_seconds`` after each failed attempt except the last one.
    The caller owns the returned client and must close it.
    """
    max_attempts = max_retries + 1

    for attempt in range(1, max_attempts + 1):
        logger.info(
            "mongo_connect_attempt",
            extra={"event": "mongo_connect_attempt", "attempt": attempt},
        )

        client: Optional[MongoClient] = None
        try:
            client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
            client.admin.command("ping")

            logger.info(
                "mongo_connect_success",
                extra={"event": "mongo_connect_success", "attempt": attempt},
            )
            return client

        except (ServerSelectionTimeoutError, PyMongoError) as exc:
            logger.error(
                "mongo_connect_failure",
                extra={
                    "event": "mongo_connect_failure",
                    "attempt": attempt,
                    "error_type": type(exc).__name__,
                },
            )
            if client is not None:
                client.close()

            if attempt == max_attempts:
                logger.error(
                    "mongo_connect_give_up",
                    extra={"event": "mongo_connect_give_up", "max_retries": max_retries},
                )
                raise RuntimeError("MongoDB connection failed after retries.") from exc

            time.sleep(base_delay_seconds)

    # Unreachable: the loop either returns or raises.
    raise RuntimeError("MongoDB connection loop exited without a client.")


def connect(config: MongoConfig) -> MongoClient:
    return connect_with_retry(
        config.uri,
        max_retries=config.connect_retries,
        base_delay_seconds=config.retry_delay_seconds,
        timeout_ms=config.timeout_ms,
    )


def get_database(client: MongoClient, config: MongoConfig) -> Database:
    return client[config.db_name]


def get_collection(db: Database, name: str) -> Collection:
    return db[name]


def ensure_indexes(db: Database) -> None:
    """
    Create the indexes the catalog relies on. Safe to call on every startup.

    The compound unique index on reviews backs the application-level
    duplicate-review pre-check.
    """
    db[USERS].create_index([("username", ASCENDING)], unique=True)
    db[USERS].create_index([("email", ASCENDING)], unique=True)
    db[USERS].create_index([("verified", ASCENDING), ("createdAt", ASCENDING)])

    db[REVIEWS].create_index([("user", ASCENDING), ("entity", ASCENDING)], unique=True)
    db[REVIEWS].create_index([("entity", ASCENDING)])

    db[ENTITIES].create_index([("rating", DESCENDING), ("createdAt", DESCENDING)])
    db[ENTITIES].create_index([("type", ASCENDING)])
    db[ENTITIES].create_index([("genres.name", ASCENDING)])

    db[CHARACTERS].create_index([("actor", ASCENDING), ("entity", ASCENDING)], unique=True)

    logger.info("indexes_ensured", extra={"event": "indexes_ensured", "db_name": db.name})


# ---------------------------------------------------------------------------
# Identifiers and documents
# ---------------------------------------------------------------------------


def is_object_id(value: Any) -> bool:
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def parse_object_id(value: Any, label: str = "resource") -> ObjectId:
    """Parse a 24-char hex identifier or raise ``InvalidIdentifierError``."""
    if isinstance(value, ObjectId):
        return value
    if not is_object_id(value):
        raise InvalidIdentifierError(f"Invalid {label} ID format")
    return ObjectId(value)


def parse_optional_object_id(value: Any, label: str = "resource") -> Optional[ObjectId]:
    if value is None or value == "":
        return None
    return parse_object_id(value, label)


def utc_now() -> datetime:
    """Current time as naive UTC, which is what pymongo hands back on reads."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    if isinstance(value, dict):
        return serialize_document(value)
    return value


def serialize_document(document: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Turn a MongoDB document into a JSON-friendly dict.

    ``_id`` becomes ``id``, ObjectIds become strings (recursively) and the
    password hash never leaves this function.
    """
    if not document:
        return {}
    payload: Dict[str, Any] = {}
    for key, value in document.items():
        if key == "password":
            continue
        if key == "_id":
            payload["id"] = _serialize_value(value)
            continue
        payload[key] = _serialize_value(value)
    return payload


def populate(
    db: Database,
    documents: List[Dict[str, Any]],
    field: str,
    collection: str,
    projection: Iterable[str],
) -> List[Dict[str, Any]]:
    """
    Replace ObjectId references stored under ``field`` by the referenced
    documents (restricted to ``projection``) using a single ``$in`` query.

    ``field`` may hold a single id or a list of ids. Dangling references are
    replaced by ``None`` (single) or dropped (list).
    """
    ids: set = set()
    for doc in documents:
        value = doc.get(field)
        if isinstance(value, list):
            ids.update(v for v in value if isinstance(v, ObjectId))
        elif isinstance(value, ObjectId):
            ids.add(value)

    if not ids:
        return documents

    fields = {name: 1 for name in projection}
    found = {d["_id"]: d for d in db[collection].find({"_id": {"$in": list(ids)}}, fields)}

    for doc in documents:
        value = doc.get(field)
        if isinstance(value, list):
            doc[field] = [found[v] for v in value if v in found]
        elif isinstance(value, ObjectId):
            doc[field] = found.get(value)
    return documents


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pagination:
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def as_dict(self) -> Dict[str, int]:
        return {"total": self.total, "page": self.page, "limit": self.limit, "pages": self.pages}


@dataclass(frozen=True)
class Page:
    items: List[Dict[str, Any]]
    pagination: Pagination


def paginate(
    collection: Collection,
    query: Mapping[str, Any],
    page: int = 1,
    limit: int = 10,
    sort: SortSpec = NEWEST_FIRST,
    projection: Optional[Mapping[str, Any]] = None,
) -> Page:
    skip = (page - 1) * limit
    cursor = collection.find(dict(query), projection)
    if sort:
        cursor = cursor.sort(list(sort))
    items = list(cursor.skip(skip).limit(limit))
    total = collection.count_documents(dict(query))
    return Page(items=items, pagination=Pagination(total=total, page=page, limit=limit))
