from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from src.catalog.data.mongo import (
    ARTICLES,
    ENTITIES,
    USERS,
    paginate,
    parse_object_id,
    parse_optional_object_id,
    populate,
    serialize_document,
)
from src.catalog.errors import NotFoundError, PermissionDeniedError
from src.catalog.service.base import ENTITY_CARD, PageResult, regex, require_document, stamp_new, stamp_update, to_page_result

AUTHOR_CARD = ("username", "avatar", "verified")


class ArticleService:
    def __init__(self, db: Database) -> None:
        self._db = db

    def _expand(self, articles: List[Dict[str, Any]], author: bool = True) -> List[Dict[str, Any]]:
        if author:
            populate(self._db, articles, "author", USERS, AUTHOR_CARD)
        populate(self._db, articles, "relatedEntity", ENTITIES, ENTITY_CARD)
        return articles

    def _page(self, query: Dict[str, Any], page: int, limit: int, author: bool = True) -> PageResult:
        result = paginate(self._db[ARTICLES], query, page=page, limit=limit)
        self._expand(result.items, author=author)
        return to_page_result(result)

    def _related_entity(self, value: Any) -> Optional[ObjectId]:
        oid = parse_optional_object_id(value, "entity")
        if oid is not None and self._db[ENTITIES].find_one({"_id": oid}, {"_id": 1}) is None:
            raise NotFoundError("Related entity not found")
        return oid

    def list_articles(
        self,
        author: Optional[str] = None,
        entity: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PageResult:
        query: Dict[str, Any] = {}
        if author:
            query["author"] = parse_object_id(author, "author")
        if entity:
            query["relatedEntity"] = parse_object_id(entity, "entity")
        if search:
            query["$or"] = [{"title": regex(search)}, {"content": regex(search)}]
        return self._page(query, page, limit)

    def get_article(self, article_id) -> Dict[str, Any]:
        oid = parse_object_id(article_id, "article")
        article = require_document(self._db, ARTICLES, oid, "Article")
        return serialize_document(self._expand([article])[0])

    def articles_by_author(self, author_id, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        oid = parse_object_id(author_id, "author")
        author = require_document(self._db, USERS, oid, "Author", {"username": 1, "avatar": 1, "verified": 1})
        return {"author": serialize_document(author), "page": self._page({"author": oid}, page, limit, author=False)}

    def articles_for_entity(self, entity_id, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        oid = parse_object_id(entity_id, "entity")
        entity = require_document(self._db, ENTITIES, oid, "Entity", {"title": 1, "type": 1, "posterUrl": 1})
        return {"entity": serialize_document(entity), "page": self._page({"relatedEntity": oid}, page, limit)}

    def own_articles(self, user_id: ObjectId, page: int = 1, limit: int = 10) -> PageResult:
        return self._page({"author": user_id}, page, limit, author=False)

    def create_article(self, author: Mapping[str, Any], data: Mapping[str, Any]) -> Dict[str, Any]:
        """Only verified users may publish articles."""
        if not author.get("verified"):
            raise PermissionDeniedError("Only verified users can create articles")

        document = stamp_new(
            {
                "title": data["title"],
                "content": data.get("content"),
                "author": author["_id"],
                "relatedEntity": self._related_entity(data.get("relatedEntity")),
            }
        )
        inserted = self._db[ARTICLES].insert_one(document)
        return self.get_article(inserted.inserted_id)

    def update_article(self, article_id, user_id: ObjectId, data: Mapping[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(article_id, "article")
        article = require_document(self._db, ARTICLES, oid, "Article")
        if article.get("author") != user_id:
            raise PermissionDeniedError("Not authorized to update this article")

        changes: Dict[str, Any] = {k: data[k] for k in ("title", "content") if k in data}
        if "relatedEntity" in data:
            changes["relatedEntity"] = self._related_entity(data["relatedEntity"])

        self._db[ARTICLES].find_one_and_update(
            {"_id": oid},
            {"$set": stamp_update(changes)},
            return_document=ReturnDocument.AFTER,
        )
        return self.get_article(oid)

    def delete_article(self, article_id, user_id: ObjectId, role: str) -> Dict[str, Any]:
        oid = parse_object_id(article_id, "article")
        article = require_document(self._db, ARTICLES, oid, "Article")
        if article.get("author") != user_id and role != "admin":
            raise PermissionDeniedError("Not authorized to delete this article")
        self._db[ARTICLES].delete_one({"_id": oid})
        return {"id": str(oid), "title": article.get("title"), "author": str(article.get("author"))}

    def delete_articles_by_author(self, author_id) -> int:
        oid = parse_object_id(author_id, "author")
        return self._db[ARTICLES].delete_many({"author": oid}).deleted_count

    def delete_articles_by_entity(self, entity_id) -> int:
        oid = parse_object_id(entity_id, "entity")
        return self._db[ARTICLES].delete_many({"relatedEntity": oid}).deleted_count
