from __future__ import annotations

import logging

import pytest
from bson import ObjectId

import src.catalog.service.review_service as mod
from src.catalog.data.mongo import ENTITIES, REVIEWS
from src.catalog.domain.rating import RatingOutcome
from src.catalog.errors import ConflictError, InvalidIdentifierError, NotFoundError, PermissionDeniedError
from src.catalog.service.review_service import ReviewService


def _attach_caplog_to_logger(caplog, logger: logging.Logger) -> None:
    logger.addHandler(caplog.handler)


def _detach_caplog_from_logger(caplog, logger: logging.Logger) -> None:
    logger.removeHandler(caplog.handler)


def _has_event(caplog, event_name: str) -> bool:
    return any(getattr(rec, "event", None) == event_name for rec in caplog.records)


def _entity_rating(db, entity_id):
    return db[ENTITIES].find_one({"_id": entity_id})["rating"]


class BrokenAggregator:
    """Aggregator double whose refreshes always fail."""

    def refresh_many(self, entity_ids):
        return [RatingOutcome(entity_id=e, rating=0, error="unavailable") for e in entity_ids]

    def reset(self, entity_id):
        return RatingOutcome(entity_id=entity_id, rating=0, error="unavailable")


# ---------------------------------------------------------------------------
# create_review
# ---------------------------------------------------------------------------

def test_create_review_refreshes_entity_rating(db, make_user, make_entity, caplog):
    service = ReviewService(db)
    entity = make_entity()
    author = make_user()

    _attach_caplog_to_logger(caplog, mod.logger)
    try:
        review = service.create_review(author["_id"], {"entity": str(entity["_id"]), "rating": 7, "comment": "Solid"})
    finally:
        _detach_caplog_from_logger(caplog, mod.logger)

    assert review["rating"] == 7
    assert review["user"]["username"] == author["username"]
    assert review["entity"]["title"] == entity["title"]
    assert _entity_rating(db, entity["_id"]) == 7.0
    assert _has_event(caplog, "review.created")


def test_duplicate_review_conflicts_and_leaves_rating_alone(db, make_user, make_entity):
    service = ReviewService(db)
    entity = make_entity()
    author = make_user()
    service.create_review(author["_id"], {"entity": str(entity["_id"]), "rating": 9})

    with pytest.raises(ConflictError, match="already reviewed"):
        service.create_review(author["_id"], {"entity": str(entity["_id"]), "rating": 1})

    assert db[REVIEWS].count_documents({"entity": entity["_id"]}) == 1
    assert _entity_rating(db, entity["_id"]) == 9.0


def test_create_review_for_missing_entity(db, make_user):
    with pytest.raises(NotFoundError):
        ReviewService(db).create_review(make_user()["_id"], {"entity": str(ObjectId()), "rating": 5})


def test_create_review_rejects_malformed_entity_id(db, make_user):
    with pytest.raises(InvalidIdentifierError):
        ReviewService(db).create_review(make_user()["_id"], {"entity": "abc", "rating": 5})


def test_failed_rating_refresh_does_not_fail_the_write(db, make_user, make_entity):
    service = ReviewService(db, aggregator=BrokenAggregator())
    entity = make_entity(rating=3.0)

    review = service.create_review(make_user()["_id"], {"entity": str(entity["_id"]), "rating": 10})

    assert review["rating"] == 10
    assert not service.last_rating_outcomes[0].ok
    assert _entity_rating(db, entity["_id"]) == 3.0


# ---------------------------------------------------------------------------
# update_review / delete_review
# ---------------------------------------------------------------------------

def test_only_the_author_can_update(db, make_user, make_entity, make_review):
    entity = make_entity()
    author, stranger = make_user(), make_user()
    review = make_review(author["_id"], entity["_id"], 5)

    with pytest.raises(PermissionDeniedError):
        ReviewService(db).update_review(str(review["_id"]), stranger["_id"], {"rating": 1})


def test_update_rating_refreshes_entity(db, make_user, make_entity, make_review):
    entity = make_entity()
    author = make_user()
    review = make_review(author["_id"], entity["_id"], 5)
    make_review(make_user()["_id"], entity["_id"], 7)

    updated = ReviewService(db).update_review(str(review["_id"]), author["_id"], {"rating": 9})

    assert updated["rating"] == 9
    assert _entity_rating(db, entity["_id"]) == 8.0


def test_comment_only_update_keeps_rating_untouched(db, make_user, make_entity, make_review):
    service = ReviewService(db)
    entity = make_entity(rating=5.0)
    author = make_user()
    review = make_review(author["_id"], entity["_id"], 5)

    updated = service.update_review(str(review["_id"]), author["_id"], {"comment": "Changed my mind"})

    assert updated["comment"] == "Changed my mind"
    assert service.last_rating_outcomes == []


def test_admin_can_delete_any_review(db, make_user, make_entity, make_review):
    entity = make_entity()
    author, admin = make_user(), make_user(role="admin")
    make_review(make_user()["_id"], entity["_id"], 4)
    review = make_review(author["_id"], entity["_id"], 10)

    deleted = ReviewService(db).delete_review(str(review["_id"]), admin["_id"], "admin")

    assert deleted["id"] == str(review["_id"])
    assert db[REVIEWS].count_documents({}) == 1
    assert _entity_rating(db, entity["_id"]) == 4.0


def test_non_owner_cannot_delete(db, make_user, make_entity, make_review):
    review = make_review(make_user()["_id"], make_entity()["_id"], 4)

    with pytest.raises(PermissionDeniedError):
        ReviewService(db).delete_review(str(review["_id"]), make_user()["_id"], "user")


# ---------------------------------------------------------------------------
# Bulk deletes and reads
# ---------------------------------------------------------------------------

def test_delete_reviews_by_user_refreshes_each_affected_entity(db, make_user, make_entity, make_review):
    first, second = make_entity(), make_entity()
    spammer, regular = make_user(), make_user()
    make_review(spammer["_id"], first["_id"], 1)
    make_review(spammer["_id"], second["_id"], 1)
    make_review(regular["_id"], first["_id"], 9)

    service = ReviewService(db)
    deleted = service.delete_reviews_by_user(str(spammer["_id"]))

    assert deleted == 2
    assert len(service.last_rating_outcomes) == 2
    assert _entity_rating(db, first["_id"]) == 9.0
    assert _entity_rating(db, second["_id"]) == 0


def test_delete_reviews_by_entity_resets_rating(db, make_user, make_entity, make_review):
    entity = make_entity(rating=6.0)
    make_review(make_user()["_id"], entity["_id"], 6)

    deleted = ReviewService(db).delete_reviews_by_entity(str(entity["_id"]))

    assert deleted == 1
    assert _entity_rating(db, entity["_id"]) == 0


def test_reviews_for_entity_includes_stats(db, make_user, make_entity, make_review):
    entity = make_entity()
    for rating in (6, 8, 8):
        make_review(make_user()["_id"], entity["_id"], rating)

    result = ReviewService(db).reviews_for_entity(str(entity["_id"]), limit=2)

    assert result["entity"]["title"] == entity["title"]
    assert result["stats"] == {"averageRating": 7.3, "totalReviews": 3}
    assert len(result["page"].items) == 2
    assert result["page"].pagination.pages == 2


def test_review_stats_distribution(db, make_user, make_entity, make_review):
    entity = make_entity()
    for rating in (8, 8, 3):
        make_review(make_user()["_id"], entity["_id"], rating)

    stats = ReviewService(db).review_stats(str(entity["_id"]))["stats"]

    assert stats["ratingDistribution"] == {"3": 1, "8": 2}


def test_list_reviews_filters_by_rating_range(db, make_user, make_entity, make_review):
    entity = make_entity()
    for rating in (2, 5, 9):
        make_review(make_user()["_id"], entity["_id"], rating)

    page = ReviewService(db).list_reviews(min_rating=4, max_rating=8)

    assert [r["rating"] for r in page.items] == [5]
