from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

import src.catalog.domain.rating as mod
from src.catalog.data.mongo import ENTITIES, REVIEWS
from src.catalog.domain.rating import RatingAggregator, round_rating
from src.catalog.errors import InvalidIdentifierError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _attach_caplog_to_logger(caplog, logger: logging.Logger) -> None:
    logger.addHandler(caplog.handler)


def _detach_caplog_from_logger(caplog, logger: logging.Logger) -> None:
    logger.removeHandler(caplog.handler)


def _has_event(caplog, event_name: str) -> bool:
    return any(getattr(rec, "event", None) == event_name for rec in caplog.records)


# ---------------------------------------------------------------------------
# round_rating
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "value, expected",
    [
        (8.0, 8.0),
        (7.25, 7.3),
        (7.24, 7.2),
        (22 / 3, 7.3),
        (0, 0),
    ],
)
def test_round_rating_rounds_half_up_to_one_decimal(value, expected):
    assert round_rating(value) == expected


# ---------------------------------------------------------------------------
# RatingAggregator.refresh
# ---------------------------------------------------------------------------

def test_refresh_stores_mean_of_reviews(db, make_user, make_entity, make_review):
    entity = make_entity()
    for rating in (6, 8, 10):
        make_review(make_user()["_id"], entity["_id"], rating)

    outcome = RatingAggregator(db).refresh(entity["_id"])

    assert outcome.ok
    assert outcome.rating == 8.0
    assert outcome.review_count == 3
    assert db[ENTITIES].find_one({"_id": entity["_id"]})["rating"] == 8.0


def test_refresh_after_review_removed_recomputes(db, make_user, make_entity, make_review):
    entity = make_entity()
    make_review(make_user()["_id"], entity["_id"], 6)
    make_review(make_user()["_id"], entity["_id"], 8)
    highest = make_review(make_user()["_id"], entity["_id"], 10)

    aggregator = RatingAggregator(db)
    aggregator.refresh(entity["_id"])
    db[REVIEWS].delete_one({"_id": highest["_id"]})
    outcome = aggregator.refresh(entity["_id"])

    assert outcome.rating == 7.0
    assert db[ENTITIES].find_one({"_id": entity["_id"]})["rating"] == 7.0


def test_refresh_without_reviews_sets_zero(db, make_entity):
    entity = make_entity(rating=9.1)

    outcome = RatingAggregator(db).refresh(str(entity["_id"]))

    assert outcome.rating == 0
    assert outcome.review_count == 0
    assert db[ENTITIES].find_one({"_id": entity["_id"]})["rating"] == 0


def test_refresh_only_touches_the_given_entity(db, make_user, make_entity, make_review):
    target = make_entity()
    other = make_entity(rating=4.5)
    make_review(make_user()["_id"], target["_id"], 9)

    RatingAggregator(db).refresh(target["_id"])

    assert db[ENTITIES].find_one({"_id": other["_id"]})["rating"] == 4.5


def test_refresh_rejects_malformed_identifier(db):
    with pytest.raises(InvalidIdentifierError):
        RatingAggregator(db).refresh("not-an-id")


def test_refresh_failure_is_reported_not_raised(caplog):
    fake_db = MagicMock()
    fake_db.__getitem__.return_value.aggregate.side_effect = PyMongoError("boom")

    _attach_caplog_to_logger(caplog, mod.logger)
    try:
        outcome = RatingAggregator(fake_db).refresh(ObjectId())
    finally:
        _detach_caplog_from_logger(caplog, mod.logger)

    assert not outcome.ok
    assert outcome.rating == 0
    assert "boom" in outcome.error
    assert _has_event(caplog, "rating.refresh_failed")


def test_refresh_many_keeps_going_after_a_failure(db, make_user, make_entity, make_review):
    good = make_entity()
    make_review(make_user()["_id"], good["_id"], 7)
    aggregator = RatingAggregator(db)

    real_refresh = aggregator.refresh
    broken_id = ObjectId()

    def flaky_refresh(entity_id):
        if entity_id == broken_id:
            return mod.RatingOutcome(entity_id=broken_id, rating=0, error="unavailable")
        return real_refresh(entity_id)

    aggregator.refresh = flaky_refresh
    outcomes = aggregator.refresh_many([broken_id, good["_id"]])

    assert [o.ok for o in outcomes] == [False, True]
    assert outcomes[1].rating == 7.0


# ---------------------------------------------------------------------------
# RatingAggregator.reset
# ---------------------------------------------------------------------------

def test_reset_forces_zero(db, make_entity, caplog):
    entity = make_entity(rating=6.4)

    _attach_caplog_to_logger(caplog, mod.logger)
    try:
        outcome = RatingAggregator(db).reset(entity["_id"])
    finally:
        _detach_caplog_from_logger(caplog, mod.logger)

    assert outcome.ok
    assert db[ENTITIES].find_one({"_id": entity["_id"]})["rating"] == 0
    assert _has_event(caplog, "rating.reset")
