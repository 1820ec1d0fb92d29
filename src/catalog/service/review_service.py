"""
Reviews: one per (user, entity). Every mutation that can move an entity's
average triggers the rating aggregator; the aggregator is best effort, so a
failed refresh never fails the review operation itself.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from src.catalog.data.mongo import (
    ENTITIES,
    REVIEWS,
    USERS,
    paginate,
    parse_object_id,
    populate,
    serialize_document,
)
from src.catalog.domain.rating import RatingAggregator, RatingOutcome, round_rating
from src.catalog.errors import ConflictError, NotFoundError, PermissionDeniedError
from src.catalog.logging_utils import configure_logger
from src.catalog.service.base import (
    ENTITY_CARD,
    USER_CARD,
    PageResult,
    rating_range,
    regex,
    require_document,
    stamp_new,
    stamp_update,
    to_page_result,
)

logger = configure_logger(__name__)

DUPLICATE_REVIEW_MESSAGE = "You have already reviewed this entity"


class ReviewService:
    def __init__(self, db: Database, aggregator: Optional[RatingAggregator] = None) -> None:
        self._db = db
        self.aggregator = aggregator or RatingAggregator(db)
        self.last_rating_outcomes: List[RatingOutcome] = []

    def _expand(self, reviews: List[Dict[str, Any]], user: bool = True, entity: bool = True) -> List[Dict[str, Any]]:
        if user:
            populate(self._db, reviews, "user", USERS, USER_CARD)
        if entity:
            populate(self._db, reviews, "entity", ENTITIES, ENTITY_CARD)
        return reviews

    def _page(self, query: Dict[str, Any], page: int, limit: int, user: bool = True, entity: bool = True) -> PageResult:
        result = paginate(self._db[REVIEWS], query, page=page, limit=limit)
        self._expand(result.items, user=user, entity=entity)
        return to_page_result(result)

    def _rating_stats(self, entity_id: ObjectId) -> Dict[str, Any]:
        ratings = [r["rating"] for r in self._db[REVIEWS].find({"entity": entity_id}, {"rating": 1})]
        if not ratings:
            return {"averageRating": 0, "totalReviews": 0, "ratingDistribution": {}}
        distribution = Counter(ratings)
        return {
            "averageRating": round_rating(sum(ratings) / len(ratings)),
            "totalReviews": len(ratings),
            "ratingDistribution": {str(k): distribution[k] for k in sorted(distribution)},
        }

    def _refresh(self, *entity_ids: ObjectId) -> List[RatingOutcome]:
        self.last_rating_outcomes = self.aggregator.refresh_many(entity_ids)
        return self.last_rating_outcomes

    # ------------------------------------------------------------------
    # Public reads
    # ------------------------------------------------------------------

    def list_reviews(
        self,
        entity: Optional[str] = None,
        user: Optional[str] = None,
        min_rating: Optional[int] = None,
        max_rating: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PageResult:
        query: Dict[str, Any] = {}
        if entity:
            query["entity"] = parse_object_id(entity, "entity")
        if user:
            query["user"] = parse_object_id(user, "user")
        rating = rating_range(min_rating, max_rating)
        if rating:
            query["rating"] = rating
        if search:
            query["comment"] = regex(search)
        return self._page(query, page, limit)

    def get_review(self, review_id) -> Dict[str, Any]:
        oid = parse_object_id(review_id, "review")
        review = require_document(self._db, REVIEWS, oid, "Review")
        populate(self._db, [review], "user", USERS, ("username", "avatar", "bio"))
        populate(self._db, [review], "entity", ENTITIES, ("title", "type", "description", "posterUrl", "coverUrl", "rating"))
        return serialize_document(review)

    def reviews_for_entity(
        self,
        entity_id,
        min_rating: Optional[int] = None,
        max_rating: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        oid = parse_object_id(entity_id, "entity")
        entity = require_document(self._db, ENTITIES, oid, "Entity", {"title": 1, "type": 1, "posterUrl": 1})

        query: Dict[str, Any] = {"entity": oid}
        rating = rating_range(min_rating, max_rating)
        if rating:
            query["rating"] = rating

        stats = self._rating_stats(oid)
        return {
            "entity": serialize_document(entity),
            "page": self._page(query, page, limit, entity=False),
            "stats": {"averageRating": stats["averageRating"], "totalReviews": stats["totalReviews"]},
        }

    def reviews_by_user(self, user_id, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        oid = parse_object_id(user_id, "user")
        user = require_document(self._db, USERS, oid, "User", {"username": 1, "avatar": 1})
        return {"user": serialize_document(user), "page": self._page({"user": oid}, page, limit, user=False)}

    def review_stats(self, entity_id) -> Dict[str, Any]:
        oid = parse_object_id(entity_id, "entity")
        entity = require_document(self._db, ENTITIES, oid, "Entity", {"title": 1, "type": 1})
        return {"entity": serialize_document(entity), "stats": self._rating_stats(oid)}

    # ------------------------------------------------------------------
    # Caller-specific reads
    # ------------------------------------------------------------------

    def own_reviews(self, user_id: ObjectId, page: int = 1, limit: int = 10) -> PageResult:
        return self._page({"user": user_id}, page, limit, user=False)

    def own_review_for_entity(self, user_id: ObjectId, entity_id) -> Optional[Dict[str, Any]]:
        oid = parse_object_id(entity_id, "entity")
        review = self._db[REVIEWS].find_one({"user": user_id, "entity": oid})
        if review is None:
            return None
        populate(self._db, [review], "entity", ENTITIES, ENTITY_CARD)
        return serialize_document(review)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_review(self, user_id: ObjectId, data: Mapping[str, Any]) -> Dict[str, Any]:
        entity_id = parse_object_id(data.get("entity"), "entity")
        require_document(self._db, ENTITIES, entity_id, "Entity", {"_id": 1})

        if self._db[REVIEWS].find_one({"user": user_id, "entity": entity_id}, {"_id": 1}):
            raise ConflictError(DUPLICATE_REVIEW_MESSAGE)

        document = stamp_new(
            {"user": user_id, "entity": entity_id, "rating": int(data["rating"]), "comment": data.get("comment")}
        )
        try:
            inserted = self._db[REVIEWS].insert_one(document)
        except DuplicateKeyError as exc:
            # Lost the race between the pre-check and the insert.
            raise ConflictError(DUPLICATE_REVIEW_MESSAGE) from exc

        logger.info(
            "Review created",
            extra={"event": "review.created", "review_id": str(inserted.inserted_id), "entity_id": str(entity_id)},
        )
        self._refresh(entity_id)
        return self.get_review(inserted.inserted_id)

    def update_review(self, review_id, user_id: ObjectId, data: Mapping[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(review_id, "review")
        review = require_document(self._db, REVIEWS, oid, "Review")
        if review["user"] != user_id:
            raise PermissionDeniedError("You can only update your own reviews")

        changes: Dict[str, Any] = {}
        if data.get("rating") is not None:
            changes["rating"] = int(data["rating"])
        if "comment" in data:
            changes["comment"] = data["comment"]

        updated = self._db[REVIEWS].find_one_and_update(
            {"_id": oid},
            {"$set": stamp_update(changes)},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFoundError("Review not found")

        if "rating" in changes:
            self._refresh(review["entity"])

        self._expand([updated])
        return serialize_document(updated)

    def delete_review(self, review_id, user_id: ObjectId, role: str) -> Dict[str, Any]:
        oid = parse_object_id(review_id, "review")
        review = require_document(self._db, REVIEWS, oid, "Review")
        if review["user"] != user_id and role != "admin":
            raise PermissionDeniedError("You can only delete your own reviews")

        self._db[REVIEWS].delete_one({"_id": oid})
        logger.info(
            "Review deleted",
            extra={"event": "review.deleted", "review_id": str(oid), "entity_id": str(review["entity"])},
        )
        self._refresh(review["entity"])
        return {"id": str(oid), "rating": review["rating"], "entity": str(review["entity"])}

    def delete_reviews_by_user(self, user_id) -> int:
        oid = parse_object_id(user_id, "user")
        affected = self._db[REVIEWS].distinct("entity", {"user": oid})
        result = self._db[REVIEWS].delete_many({"user": oid})
        self._refresh(*affected)
        return result.deleted_count

    def delete_reviews_by_entity(self, entity_id) -> int:
        oid = parse_object_id(entity_id, "entity")
        result = self._db[REVIEWS].delete_many({"entity": oid})
        self.last_rating_outcomes = [self.aggregator.reset(oid)]
        return result.deleted_count
