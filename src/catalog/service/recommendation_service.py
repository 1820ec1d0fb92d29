"""
Service layer for personalised recommendations.

The service infers a preference profile from the caller's review history,
stores it on the user as a snapshot, and turns it into a short list of
entities the user has not reviewed yet. When the profile yields nothing it
falls back to the best-rated catalog entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database

from src.catalog.data.mongo import ENTITIES, REVIEWS, USERS, parse_object_id, utc_now
from src.catalog.domain.preferences import (
    PreferenceProfile,
    build_preference_profile,
    genre_names,
    rank_candidates,
)
from src.catalog.errors import NotFoundError
from src.catalog.logging_utils import configure_logger

logger = configure_logger(__name__)

_ENTITY_CARD_FIELDS = {"title": 1, "type": 1, "posterUrl": 1, "genres": 1, "rating": 1, "createdAt": 1}


# ---------------------------------------------------------------------
# Typed Return Models
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class Recommendation:
    """
    A recommended entity.

    Attributes
    ----------
    entity_id:
        Identifier of the recommended movie or TV show.
    score:
        Affinity of the entity to the user's profile. 0 for fallback picks.
    """

    entity_id: str
    title: str
    type: str
    poster_url: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    score: float = 0.0


def _to_recommendation(entity: Mapping[str, Any], score: float = 0.0) -> Recommendation:
    return Recommendation(
        entity_id=str(entity["_id"]),
        title=entity.get("title", ""),
        type=entity.get("type", ""),
        poster_url=entity.get("posterUrl"),
        genres=genre_names(entity),
        score=round(float(score), 4),
    )


# ---------------------------------------------------------------------
# Service Layer
# ---------------------------------------------------------------------


class RecommendationService:
    def __init__(self, db: Database, limit: int = 5, candidate_pool_size: int = 50) -> None:
        self._db = db
        self._limit = limit
        self._candidate_pool_size = max(limit, candidate_pool_size)

    def load_review_history(self, user_id: ObjectId) -> List[Dict[str, Any]]:
        """The user's reviews, each joined with its entity's ``type`` and ``genres``."""
        reviews = list(self._db[REVIEWS].find({"user": user_id}, {"entity": 1, "rating": 1}))
        entity_ids = [r["entity"] for r in reviews if r.get("entity") is not None]
        entities = {
            e["_id"]: e
            for e in self._db[ENTITIES].find({"_id": {"$in": entity_ids}}, {"type": 1, "genres": 1})
        }
        for review in reviews:
            review["entity_id"] = review.get("entity")
            review["entity"] = entities.get(review.get("entity"))
        return reviews

    def build_profile(self, user_id) -> PreferenceProfile:
        oid = parse_object_id(user_id, "user")
        return build_preference_profile(self.load_review_history(oid))

    def recommend_for_user(self, user_id) -> List[Recommendation]:
        """
        Return at most ``limit`` entities the user has not reviewed, ranked by
        inferred preference.

        Raises
        ------
        NotFoundError
            If the user does not exist.
        """
        oid = parse_object_id(user_id, "user")
        user = self._db[USERS].find_one({"_id": oid}, {"_id": 1})
        if user is None:
            raise NotFoundError("User not found")

        history = self.load_review_history(oid)
        reviewed_ids = [r["entity_id"] for r in history if r.get("entity_id") is not None]

        profile = build_preference_profile(history)
        self._db[USERS].update_one(
            {"_id": oid},
            {"$set": {"preferences": profile.to_document(), "preferencesUpdatedAt": utc_now()}},
        )

        recommendations = self._match_profile(profile, reviewed_ids)
        source = "profile"
        if not recommendations:
            recommendations = self._popular(reviewed_ids)
            source = "popular"

        logger.info(
            "Recommendations computed",
            extra={
                "event": f"recommendations.{source}",
                "user_id": str(oid),
                "review_count": len(history),
                "recommendations": len(recommendations),
            },
        )
        return recommendations

    def _match_profile(self, profile: PreferenceProfile, reviewed_ids: List[ObjectId]) -> List[Recommendation]:
        clauses: List[Dict[str, Any]] = []
        if profile.top_type is not None:
            clauses.append({"type": profile.top_type})
        if profile.top_genre is not None:
            clauses.append({"genres.name": profile.top_genre})
        if not clauses:
            return []

        query = {"$or": clauses, "_id": {"$nin": reviewed_ids}}
        candidates = list(
            self._db[ENTITIES]
            .find(query, _ENTITY_CARD_FIELDS)
            .sort([("rating", DESCENDING), ("createdAt", DESCENDING)])
            .limit(self._candidate_pool_size)
        )

        ranked = rank_candidates(candidates, profile, self._limit)
        return [
            _to_recommendation(candidates[int(pos)], score)
            for pos, score in zip(ranked["position"], ranked["score"])
        ]

    def _popular(self, reviewed_ids: List[ObjectId]) -> List[Recommendation]:
        cursor = (
            self._db[ENTITIES]
            .find({"_id": {"$nin": reviewed_ids}}, _ENTITY_CARD_FIELDS)
            .sort([("rating", DESCENDING), ("createdAt", DESCENDING)])
            .limit(self._limit)
        )
        return [_to_recommendation(entity) for entity in cursor]
