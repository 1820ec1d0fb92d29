from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from src.catalog.data.mongo import (
    ENTITIES,
    PEOPLE,
    REVIEWS,
    paginate,
    parse_object_id,
    populate,
    serialize_document,
)
from src.catalog.domain.rating import RatingAggregator
from src.catalog.errors import NotFoundError
from src.catalog.logging_utils import configure_logger
from src.catalog.service.base import PageResult, rating_range, require_document, stamp_new, stamp_update, to_page_result

logger = configure_logger(__name__)

ENTITY_FIELDS = (
    "type",
    "title",
    "description",
    "releaseDate",
    "endDate",
    "genres",
    "directors",
    "cast",
    "seasons",
    "posterUrl",
    "coverUrl",
)


def year_range(start_year: Optional[int], end_year: Optional[int]) -> Optional[Dict[str, datetime]]:
    if start_year is None and end_year is None:
        return None
    bounds: Dict[str, datetime] = {}
    if start_year is not None:
        bounds["$gte"] = datetime(start_year, 1, 1)
    if end_year is not None:
        bounds["$lte"] = datetime(end_year, 12, 31, 23, 59, 59)
    return bounds


class EntityService:
    def __init__(self, db: Database, aggregator: Optional[RatingAggregator] = None) -> None:
        self._db = db
        self._aggregator = aggregator or RatingAggregator(db)

    def _normalize(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        document = {k: data[k] for k in ENTITY_FIELDS if k in data and data[k] is not None}
        for key in ("directors", "cast"):
            if key in document:
                document[key] = [parse_object_id(v, "person") for v in document[key]]
        return document

    def _populate_people(self, documents: List[Dict[str, Any]], fields=("name",)) -> List[Dict[str, Any]]:
        populate(self._db, documents, "directors", PEOPLE, fields)
        populate(self._db, documents, "cast", PEOPLE, fields)
        return documents

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_entities(self, entity_type: Optional[str] = None, page: int = 1, limit: int = 10) -> PageResult:
        query = {"type": entity_type} if entity_type else {}
        result = paginate(self._db[ENTITIES], query, page=page, limit=limit)
        self._populate_people(result.items)
        return to_page_result(result)

    def filter_entities(
        self,
        entity_type: Optional[str] = None,
        genre: Optional[str] = None,
        start_year: Optional[int] = None,
        end_year: Optional[int] = None,
        min_rating: Optional[float] = None,
        max_rating: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if entity_type:
            query["type"] = entity_type
        if genre:
            query["genres.name"] = genre
        released = year_range(start_year, end_year)
        if released:
            query["releaseDate"] = released
        rating = rating_range(min_rating, max_rating)
        if rating:
            query["rating"] = rating

        documents = list(self._db[ENTITIES].find(query).sort("createdAt", -1))
        self._populate_people(documents)
        return [serialize_document(d) for d in documents]

    def get_entity(self, entity_id) -> Dict[str, Any]:
        oid = parse_object_id(entity_id, "entity")
        entity = require_document(self._db, ENTITIES, oid, "Entity")
        self._populate_people([entity], fields=("name", "bio", "photoUrl"))
        return serialize_document(entity)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_entity(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        document = stamp_new(self._normalize(data))
        document.setdefault("genres", [])
        document.setdefault("directors", [])
        document.setdefault("cast", [])
        document.setdefault("seasons", [])
        document["rating"] = 0

        inserted = self._db[ENTITIES].insert_one(document)
        logger.info(
            "Entity created",
            extra={"event": "entity.created", "entity_id": str(inserted.inserted_id)},
        )
        return self.get_entity(inserted.inserted_id)

    def update_entity(self, entity_id, data: Mapping[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(entity_id, "entity")
        changes = self._normalize(data)
        updated = self._db[ENTITIES].find_one_and_update(
            {"_id": oid},
            {"$set": stamp_update(changes)},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFoundError("Entity not found")
        self._populate_people([updated])
        return serialize_document(updated)

    def set_images(self, entity_id, poster_url: Optional[str] = None, cover_url: Optional[str] = None) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        if poster_url:
            changes["posterUrl"] = poster_url
        if cover_url:
            changes["coverUrl"] = cover_url
        return self.update_entity(entity_id, changes)

    def delete_entity(self, entity_id) -> Dict[str, Any]:
        """Delete the entity and every review that points at it."""
        oid = parse_object_id(entity_id, "entity")
        deleted = self._db[ENTITIES].find_one_and_delete({"_id": oid})
        if deleted is None:
            raise NotFoundError("Entity not found")

        reviews = self._db[REVIEWS].delete_many({"entity": oid})
        logger.info(
            "Entity deleted",
            extra={"event": "entity.deleted", "entity_id": str(oid), "review_count": reviews.deleted_count},
        )
        return {
            "id": str(deleted["_id"]),
            "title": deleted.get("title"),
            "type": deleted.get("type"),
            "deletedReviews": reviews.deleted_count,
        }

    # ------------------------------------------------------------------
    # Rating
    # ------------------------------------------------------------------

    def get_rating(self, entity_id) -> Dict[str, Any]:
        """Recompute the entity rating on demand and return it."""
        oid = parse_object_id(entity_id, "entity")
        entity = require_document(self._db, ENTITIES, oid, "Entity", {"title": 1})
        outcome = self._aggregator.refresh(oid)
        return {"rating": outcome.rating, "entityId": str(oid), "entityTitle": entity.get("title")}
