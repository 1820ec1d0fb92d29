"""
Entity rating aggregation.

An entity's ``rating`` is a cached value derived from the reviews that point
at it. It is refreshed after every review write and can be recomputed on
demand. Refreshing is best effort: failures are logged and reported in the
returned outcome, never raised, so the review write that triggered the
refresh still succeeds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database

from src.catalog.data.mongo import ENTITIES, REVIEWS, parse_object_id
from src.catalog.logging_utils import configure_logger

logger = configure_logger(__name__)


def round_rating(value: float) -> float:
    """Round half-up to one decimal place (7.25 -> 7.3)."""
    return math.floor(value * 10 + 0.5) / 10


@dataclass(frozen=True)
class RatingOutcome:
    entity_id: ObjectId
    rating: float
    review_count: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RatingAggregator:
    def __init__(self, db: Database) -> None:
        self._db = db

    def refresh(self, entity_id) -> RatingOutcome:
        """
        Recompute the mean review rating for ``entity_id`` and store it on the
        entity. Returns 0 when the entity has no reviews or when the refresh
        failed.
        """
        oid = parse_object_id(entity_id, "entity")
        try:
            result = list(
                self._db[REVIEWS].aggregate(
                    [
                        {"$match": {"entity": oid}},
                        {
                            "$group": {
                                "_id": "$entity",
                                "avgRating": {"$avg": "$rating"},
                                "count": {"$sum": 1},
                            }
                        },
                    ]
                )
            )

            if result:
                rating = round_rating(float(result[0]["avgRating"]))
                count = int(result[0]["count"])
            else:
                rating, count = 0, 0

            self._db[ENTITIES].update_one({"_id": oid}, {"$set": {"rating": rating}})

        except Exception as exc:
            logger.exception(
                "Entity rating refresh failed",
                extra={
                    "event": "rating.refresh_failed",
                    "entity_id": str(oid),
                    "error_type": type(exc).__name__,
                },
            )
            return RatingOutcome(entity_id=oid, rating=0, error=str(exc) or type(exc).__name__)

        logger.info(
            "Entity rating refreshed",
            extra={
                "event": "rating.refreshed",
                "entity_id": str(oid),
                "rating": rating,
                "review_count": count,
            },
        )
        return RatingOutcome(entity_id=oid, rating=rating, review_count=count)

    def refresh_many(self, entity_ids: Iterable) -> List[RatingOutcome]:
        return [self.refresh(entity_id) for entity_id in entity_ids]

    def reset(self, entity_id) -> RatingOutcome:
        """Force the rating to 0, used once every review of an entity is gone."""
        oid = parse_object_id(entity_id, "entity")
        try:
            self._db[ENTITIES].update_one({"_id": oid}, {"$set": {"rating": 0}})
        except Exception as exc:
            logger.exception(
                "Entity rating reset failed",
                extra={
                    "event": "rating.reset_failed",
                    "entity_id": str(oid),
                    "error_type": type(exc).__name__,
                },
            )
            return RatingOutcome(entity_id=oid, rating=0, error=str(exc) or type(exc).__name__)

        logger.info(
            "Entity rating reset",
            extra={"event": "rating.reset", "entity_id": str(oid)},
        )
        return RatingOutcome(entity_id=oid, rating=0)
