from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from bson import ObjectId
from pymongo.database import Database

from src.catalog.data.mongo import Page, Pagination, serialize_document, utc_now
from src.catalog.errors import NotFoundError

# Projections used when a reference is expanded into a small "card".
ENTITY_CARD = ("title", "type", "posterUrl")
USER_CARD = ("username", "avatar")
PERSON_CARD = ("name", "photoUrl", "roles")


@dataclass(frozen=True)
class PageResult:
    items: List[Dict[str, Any]]
    pagination: Pagination


def to_page_result(page: Page) -> PageResult:
    return PageResult(items=[serialize_document(d) for d in page.items], pagination=page.pagination)


def require_document(
    db: Database,
    collection: str,
    oid: ObjectId,
    label: str,
    projection: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    document = db[collection].find_one({"_id": oid}, projection)
    if document is None:
        raise NotFoundError(f"{label} not found")
    return document


def rating_range(min_rating: Optional[float], max_rating: Optional[float]) -> Optional[Dict[str, float]]:
    if min_rating is None and max_rating is None:
        return None
    bounds: Dict[str, float] = {}
    if min_rating is not None:
        bounds["$gte"] = min_rating
    if max_rating is not None:
        bounds["$lte"] = max_rating
    return bounds


def regex(term: str) -> Dict[str, str]:
    return {"$regex": re.escape(term), "$options": "i"}


def stamp_new(document: Dict[str, Any]) -> Dict[str, Any]:
    now = utc_now()
    document["createdAt"] = now
    document["updatedAt"] = now
    return document


def stamp_update(changes: Dict[str, Any]) -> Dict[str, Any]:
    changes["updatedAt"] = utc_now()
    return changes


def pick(data: Mapping[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """Keep only the provided ``fields`` that are present in ``data``."""
    return {k: data[k] for k in fields if k in data}
