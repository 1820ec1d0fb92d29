from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from src.catalog.data.mongo import (
    AWARDS,
    ENTITIES,
    PEOPLE,
    paginate,
    parse_object_id,
    parse_optional_object_id,
    populate,
    serialize_document,
)
from src.catalog.errors import NotFoundError, ValidationFailedError
from src.catalog.service.base import (
    ENTITY_CARD,
    PERSON_CARD,
    PageResult,
    regex,
    require_document,
    stamp_new,
    stamp_update,
    to_page_result,
)

NEWEST_YEAR_FIRST = (("year", DESCENDING), ("createdAt", DESCENDING))
MIN_AWARD_YEAR = 1900


class AwardService:
    def __init__(self, db: Database) -> None:
        self._db = db

    def _expand(self, awards: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        populate(self._db, awards, "entity", ENTITIES, ENTITY_CARD)
        populate(self._db, awards, "person", PEOPLE, PERSON_CARD)
        return awards

    def _page(self, query: Dict[str, Any], page: int, limit: int, sort=NEWEST_YEAR_FIRST) -> PageResult:
        result = paginate(self._db[AWARDS], query, page=page, limit=limit, sort=sort)
        self._expand(result.items)
        return to_page_result(result)

    def _reference(self, value: Any, collection: str, label: str) -> Optional[ObjectId]:
        oid = parse_optional_object_id(value, label.lower())
        if oid is not None and self._db[collection].find_one({"_id": oid}, {"_id": 1}) is None:
            raise NotFoundError(f"{label} not found")
        return oid

    def _prepare(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        entity = self._reference(data.get("entity"), ENTITIES, "Entity")
        person = self._reference(data.get("person"), PEOPLE, "Person")
        if entity is None and person is None:
            raise ValidationFailedError("Either entity or person must be provided")
        return stamp_new(
            {
                "name": data["name"],
                "category": data["category"],
                "year": data.get("year"),
                "entity": entity,
                "person": person,
            }
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_awards(
        self,
        year: Optional[int] = None,
        category: Optional[str] = None,
        entity: Optional[str] = None,
        person: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PageResult:
        query: Dict[str, Any] = {}
        if year is not None:
            query["year"] = year
        if category:
            query["category"] = regex(category)
        if entity:
            query["entity"] = parse_object_id(entity, "entity")
        if person:
            query["person"] = parse_object_id(person, "person")
        if search:
            query["$or"] = [{"name": regex(search)}, {"category": regex(search)}]
        return self._page(query, page, limit)

    def get_award(self, award_id) -> Dict[str, Any]:
        oid = parse_object_id(award_id, "award")
        award = require_document(self._db, AWARDS, oid, "Award")
        return serialize_document(self._expand([award])[0])

    def awards_for_entity(self, entity_id, page: int = 1, limit: int = 10) -> PageResult:
        oid = parse_object_id(entity_id, "entity")
        require_document(self._db, ENTITIES, oid, "Entity", {"_id": 1})
        return self._page({"entity": oid}, page, limit)

    def awards_for_person(self, person_id, page: int = 1, limit: int = 10) -> PageResult:
        oid = parse_object_id(person_id, "person")
        require_document(self._db, PEOPLE, oid, "Person", {"_id": 1})
        return self._page({"person": oid}, page, limit)

    def awards_by_year(self, year: int, category: Optional[str] = None, page: int = 1, limit: int = 10) -> PageResult:
        if year < MIN_AWARD_YEAR or year > date.today().year + 1:
            raise ValidationFailedError("Invalid year")
        query: Dict[str, Any] = {"year": year}
        if category:
            query["category"] = regex(category)
        return self._page(query, page, limit, sort=(("category", ASCENDING), ("name", ASCENDING)))

    def categories(self) -> List[Dict[str, Any]]:
        rows = self._db[AWARDS].aggregate(
            [{"$group": {"_id": "$category", "count": {"$sum": 1}}}, {"$sort": {"_id": 1}}]
        )
        return [{"name": row["_id"], "count": row["count"]} for row in rows]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_award(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        inserted = self._db[AWARDS].insert_one(self._prepare(data))
        return self.get_award(inserted.inserted_id)

    def create_awards(self, items: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        if not items:
            raise ValidationFailedError("Awards array is required")
        documents = [self._prepare(item) for item in items]
        inserted = self._db[AWARDS].insert_many(documents)
        return [self.get_award(oid) for oid in inserted.inserted_ids]

    def update_award(self, award_id, data: Mapping[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(award_id, "award")
        current = require_document(self._db, AWARDS, oid, "Award")

        changes: Dict[str, Any] = {k: data[k] for k in ("name", "category", "year") if k in data}
        if "entity" in data:
            changes["entity"] = self._reference(data["entity"], ENTITIES, "Entity")
        if "person" in data:
            changes["person"] = self._reference(data["person"], PEOPLE, "Person")

        entity_id = changes["entity"] if "entity" in changes else current.get("entity")
        person_id = changes["person"] if "person" in changes else current.get("person")
        if entity_id is None and person_id is None:
            raise ValidationFailedError("Award must be associated with either an entity or person")

        self._db[AWARDS].find_one_and_update(
            {"_id": oid},
            {"$set": stamp_update(changes)},
            return_document=ReturnDocument.AFTER,
        )
        return self.get_award(oid)

    def delete_award(self, award_id) -> Dict[str, Any]:
        oid = parse_object_id(award_id, "award")
        deleted = self._db[AWARDS].find_one_and_delete({"_id": oid})
        if deleted is None:
            raise NotFoundError("Award not found")
        return {
            "id": str(oid),
            "name": deleted.get("name"),
            "category": deleted.get("category"),
            "year": deleted.get("year"),
        }

    def delete_awards_by_entity(self, entity_id) -> int:
        oid = parse_object_id(entity_id, "entity")
        return self._db[AWARDS].delete_many({"entity": oid}).deleted_count

    def delete_awards_by_person(self, person_id) -> int:
        oid = parse_object_id(person_id, "person")
        return self._db[AWARDS].delete_many({"person": oid}).deleted_count
