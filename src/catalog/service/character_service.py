from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from src.catalog.data.mongo import CHARACTERS, ENTITIES, PEOPLE, paginate, parse_object_id, populate, serialize_document
from src.catalog.errors import ConflictError, NotFoundError, ValidationFailedError
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

DUPLICATE_CHARACTER_MESSAGE = "Character already exists for this actor in this entity"


class CharacterService:
    def __init__(self, db: Database) -> None:
        self._db = db

    def _expand(self, characters: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        populate(self._db, characters, "actor", PEOPLE, PERSON_CARD)
        populate(self._db, characters, "entity", ENTITIES, ENTITY_CARD)
        return characters

    def _page(self, query: Dict[str, Any], page: int, limit: int) -> PageResult:
        result = paginate(self._db[CHARACTERS], query, page=page, limit=limit, sort=(("name", ASCENDING),))
        self._expand(result.items)
        return to_page_result(result)

    def _require_actor(self, actor_id: ObjectId) -> None:
        actor = self._db[PEOPLE].find_one({"_id": actor_id}, {"roles": 1})
        if actor is None:
            raise NotFoundError("Actor not found")
        if "actor" not in (actor.get("roles") or []):
            raise ValidationFailedError("Person is not listed as an actor")

    def list_characters(
        self,
        entity: Optional[str] = None,
        actor: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PageResult:
        query: Dict[str, Any] = {}
        if entity:
            query["entity"] = parse_object_id(entity, "entity")
        if actor:
            query["actor"] = parse_object_id(actor, "actor")
        if search:
            query["$or"] = [{"name": regex(search)}, {"description": regex(search)}]
        return self._page(query, page, limit)

    def get_character(self, character_id) -> Dict[str, Any]:
        oid = parse_object_id(character_id, "character")
        character = require_document(self._db, CHARACTERS, oid, "Character")
        return serialize_document(self._expand([character])[0])

    def characters_for_entity(self, entity_id, page: int = 1, limit: int = 10) -> PageResult:
        oid = parse_object_id(entity_id, "entity")
        require_document(self._db, ENTITIES, oid, "Entity", {"_id": 1})
        return self._page({"entity": oid}, page, limit)

    def characters_for_actor(self, actor_id, page: int = 1, limit: int = 10) -> PageResult:
        oid = parse_object_id(actor_id, "actor")
        require_document(self._db, PEOPLE, oid, "Actor", {"_id": 1})
        return self._page({"actor": oid}, page, limit)

    def _prepare(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        actor_id = parse_object_id(data.get("actor"), "actor")
        entity_id = parse_object_id(data.get("entity"), "entity")
        self._require_actor(actor_id)
        require_document(self._db, ENTITIES, entity_id, "Entity", {"_id": 1})
        if self._db[CHARACTERS].find_one({"actor": actor_id, "entity": entity_id}, {"_id": 1}):
            raise ConflictError(DUPLICATE_CHARACTER_MESSAGE)
        return stamp_new(
            {"name": data["name"], "description": data.get("description"), "actor": actor_id, "entity": entity_id}
        )

    def create_character(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        document = self._prepare(data)
        try:
            inserted = self._db[CHARACTERS].insert_one(document)
        except DuplicateKeyError as exc:
            raise ConflictError(DUPLICATE_CHARACTER_MESSAGE) from exc
        return self.get_character(inserted.inserted_id)

    def create_characters(self, items: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Validate every item first, then insert them all."""
        if not items:
            raise ValidationFailedError("Characters array is required")
        documents = [self._prepare(item) for item in items]
        pairs = {(d["actor"], d["entity"]) for d in documents}
        if len(pairs) != len(documents):
            raise ConflictError(DUPLICATE_CHARACTER_MESSAGE)
        try:
            inserted = self._db[CHARACTERS].insert_many(documents)
        except DuplicateKeyError as exc:
            raise ConflictError(DUPLICATE_CHARACTER_MESSAGE) from exc
        return [self.get_character(oid) for oid in inserted.inserted_ids]

    def update_character(self, character_id, data: Mapping[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(character_id, "character")
        current = require_document(self._db, CHARACTERS, oid, "Character")

        changes: Dict[str, Any] = {k: data[k] for k in ("name", "description") if k in data}
        if data.get("actor") is not None:
            changes["actor"] = parse_object_id(data["actor"], "actor")
            self._require_actor(changes["actor"])
        if data.get("entity") is not None:
            changes["entity"] = parse_object_id(data["entity"], "entity")
            require_document(self._db, ENTITIES, changes["entity"], "Entity", {"_id": 1})

        actor_id = changes.get("actor", current["actor"])
        entity_id = changes.get("entity", current["entity"])
        clash = self._db[CHARACTERS].find_one({"actor": actor_id, "entity": entity_id, "_id": {"$ne": oid}}, {"_id": 1})
        if clash:
            raise ConflictError(DUPLICATE_CHARACTER_MESSAGE)

        self._db[CHARACTERS].find_one_and_update(
            {"_id": oid},
            {"$set": stamp_update(changes)},
            return_document=ReturnDocument.AFTER,
        )
        return self.get_character(oid)

    def delete_character(self, character_id) -> Dict[str, Any]:
        oid = parse_object_id(character_id, "character")
        deleted = self._db[CHARACTERS].find_one_and_delete({"_id": oid})
        if deleted is None:
            raise NotFoundError("Character not found")
        return {"id": str(oid), "name": deleted.get("name")}

    def delete_characters_by_entity(self, entity_id) -> int:
        oid = parse_object_id(entity_id, "entity")
        return self._db[CHARACTERS].delete_many({"entity": oid}).deleted_count
