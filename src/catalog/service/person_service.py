from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from src.catalog.data.mongo import ENTITIES, PEOPLE, paginate, parse_object_id, serialize_document
from src.catalog.domain.rating import round_rating
from src.catalog.errors import NotFoundError
from src.catalog.logging_utils import configure_logger
from src.catalog.service.base import PageResult, regex, require_document, stamp_new, stamp_update, to_page_result

logger = configure_logger(__name__)

PERSON_FIELDS = ("name", "bio", "dateOfBirth", "photoUrl", "roles")
FILMOGRAPHY_FIELDS = {"title": 1, "type": 1, "posterUrl": 1, "releaseDate": 1, "rating": 1}
BY_NAME = (("name", ASCENDING),)


class PersonService:
    def __init__(self, db: Database) -> None:
        self._db = db

    def list_people(
        self,
        role: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PageResult:
        query: Dict[str, Any] = {}
        if role:
            query["roles"] = role
        if search:
            query["$or"] = [{"name": regex(search)}, {"bio": regex(search)}]
        return to_page_result(paginate(self._db[PEOPLE], query, page=page, limit=limit, sort=BY_NAME))

    def people_by_role(self, role: str, page: int = 1, limit: int = 10) -> PageResult:
        return self.list_people(role=role, page=page, limit=limit)

    def get_person(self, person_id) -> Dict[str, Any]:
        oid = parse_object_id(person_id, "person")
        return serialize_document(require_document(self._db, PEOPLE, oid, "Person"))

    def filmography(self, person_id, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """Entities the person directed and entities the person appears in."""
        oid = parse_object_id(person_id, "person")
        person = require_document(self._db, PEOPLE, oid, "Person", {"name": 1, "photoUrl": 1})
        skip = (page - 1) * limit

        def credits(field: str) -> Dict[str, Any]:
            cursor = (
                self._db[ENTITIES]
                .find({field: oid}, FILMOGRAPHY_FIELDS)
                .sort("releaseDate", DESCENDING)
                .skip(skip)
                .limit(limit)
            )
            return {
                "items": [serialize_document(d) for d in cursor],
                "total": self._db[ENTITIES].count_documents({field: oid}),
            }

        return {
            "person": serialize_document(person),
            "asDirector": credits("directors"),
            "asCast": credits("cast"),
            "page": page,
            "limit": limit,
        }

    def stats(self, person_id) -> Dict[str, Any]:
        oid = parse_object_id(person_id, "person")
        person = require_document(self._db, PEOPLE, oid, "Person", {"name": 1, "roles": 1})

        def summarize(field: str) -> Dict[str, Any]:
            entities = list(self._db[ENTITIES].find({field: oid}, {"rating": 1, "genres": 1}))
            if not entities:
                return {"totalEntities": 0, "avgRating": 0, "genres": []}
            genres: List[str] = []
            for entity in entities:
                for genre in entity.get("genres") or []:
                    name = genre.get("name")
                    if name and name not in genres:
                        genres.append(name)
            ratings = [float(e.get("rating") or 0) for e in entities]
            return {
                "totalEntities": len(entities),
                "avgRating": round_rating(sum(ratings) / len(ratings)),
                "genres": genres,
            }

        return {
            "person": serialize_document(person),
            "stats": {"asDirector": summarize("directors"), "asCast": summarize("cast")},
        }

    def create_person(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        document = stamp_new({k: data[k] for k in PERSON_FIELDS if data.get(k) is not None})
        document.setdefault("roles", [])
        inserted = self._db[PEOPLE].insert_one(document)
        logger.info("Person created", extra={"event": "person.created"})
        return self.get_person(inserted.inserted_id)

    def update_person(self, person_id, data: Mapping[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(person_id, "person")
        changes = {k: data[k] for k in PERSON_FIELDS if data.get(k) is not None}
        updated = self._db[PEOPLE].find_one_and_update(
            {"_id": oid},
            {"$set": stamp_update(changes)},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFoundError("Person not found")
        return serialize_document(updated)

    def set_photo(self, person_id, photo_url: str) -> Dict[str, Any]:
        return self.update_person(person_id, {"photoUrl": photo_url})

    def delete_person(self, person_id) -> Dict[str, Any]:
        """Delete the person and pull every reference to them from entities."""
        oid = parse_object_id(person_id, "person")
        deleted = self._db[PEOPLE].find_one_and_delete({"_id": oid})
        if deleted is None:
            raise NotFoundError("Person not found")

        self._db[ENTITIES].update_many(
            {"$or": [{"directors": oid}, {"cast": oid}]},
            {"$pull": {"directors": oid, "cast": oid}},
        )
        return {"id": str(oid), "name": deleted.get("name"), "roles": deleted.get("roles", [])}

