from __future__ import annotations

import logging
from datetime import datetime

import pytest
from bson import ObjectId

import src.catalog.service.recommendation_service as mod
from src.catalog.data.mongo import USERS
from src.catalog.errors import InvalidIdentifierError, NotFoundError
from src.catalog.service.recommendation_service import Recommendation, RecommendationService


def _attach_caplog_to_logger(caplog, logger: logging.Logger) -> None:
    logger.addHandler(caplog.handler)


def _detach_caplog_from_logger(caplog, logger: logging.Logger) -> None:
    logger.removeHandler(caplog.handler)


def _has_event(caplog, event_name: str) -> bool:
    return any(getattr(rec, "event", None) == event_name for rec in caplog.records)


# ---------------------------------------------------------------------------
# Profile-based recommendations
# ---------------------------------------------------------------------------

def test_recommendations_follow_the_profile_and_skip_reviewed(db, make_user, make_entity, make_review):
    user = make_user()
    seen_drama = make_entity(title="Seen Drama", genres=["Drama"])
    seen_crime = make_entity(title="Seen Crime", genres=["Drama", "Crime"])
    make_review(user["_id"], seen_drama["_id"], 10)
    make_review(user["_id"], seen_crime["_id"], 8)

    drama_movie = make_entity(title="Unseen Drama Movie", genres=["Drama"], rating=6.0)
    plain_movie = make_entity(title="Plain Movie", rating=9.0)
    drama_show = make_entity(title="Drama Show", type="tv", genres=["Drama"], rating=9.5)
    make_entity(title="Comedy Show", type="tv", genres=["Comedy"], rating=10.0)

    recommendations = RecommendationService(db).recommend_for_user(str(user["_id"]))

    titles = [r.title for r in recommendations]
    assert titles == [drama_movie["title"], plain_movie["title"], drama_show["title"]]
    assert all(isinstance(r, Recommendation) for r in recommendations)
    assert recommendations[0].score == pytest.approx(1.8 + 0.9)
    assert recommendations[0].genres == ["Drama"]


def test_recommendations_are_capped_at_limit(db, make_user, make_entity, make_review):
    user = make_user()
    make_review(user["_id"], make_entity(genres=["Action"])["_id"], 9)
    for _ in range(8):
        make_entity(genres=["Action"], rating=7.0)

    recommendations = RecommendationService(db, limit=5).recommend_for_user(user["_id"])

    assert len(recommendations) == 5


def test_profile_snapshot_is_persisted(db, make_user, make_entity, make_review):
    user = make_user()
    make_review(user["_id"], make_entity(genres=["Drama"])["_id"], 10)
    make_review(user["_id"], make_entity(genres=["Drama", "Crime"])["_id"], 8)

    RecommendationService(db).recommend_for_user(str(user["_id"]))

    stored = db[USERS].find_one({"_id": user["_id"]})
    assert stored["preferences"]["type:movie"] == pytest.approx(1.8)
    assert stored["preferences"]["genre:Drama"] == pytest.approx(0.9)
    assert stored["preferences"]["genre:Crime"] == pytest.approx(0.4)
    assert "preferencesUpdatedAt" in stored


def test_reviewed_entities_never_come_back(db, make_user, make_entity, make_review):
    user = make_user()
    reviewed = [make_entity(genres=["Drama"], rating=9.0) for _ in range(3)]
    for entity in reviewed:
        make_review(user["_id"], entity["_id"], 9)

    recommendations = RecommendationService(db).recommend_for_user(str(user["_id"]))

    assert recommendations == []


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

def test_user_without_reviews_gets_top_rated(db, make_user, make_entity, caplog):
    user = make_user()
    older = make_entity(title="Older", rating=8.0, created_at=datetime(2023, 1, 1))
    newer = make_entity(title="Newer", rating=8.0, created_at=datetime(2024, 1, 1))
    best = make_entity(title="Best", rating=9.5)
    for rating in (1.0, 2.0, 3.0, 4.0):
        make_entity(rating=rating)

    _attach_caplog_to_logger(caplog, mod.logger)
    try:
        recommendations = RecommendationService(db).recommend_for_user(str(user["_id"]))
    finally:
        _detach_caplog_from_logger(caplog, mod.logger)

    assert [r.title for r in recommendations][:3] == [best["title"], newer["title"], older["title"]]
    assert len(recommendations) == 5
    assert all(r.score == 0 for r in recommendations)
    assert _has_event(caplog, "recommendations.popular")


def test_fallback_excludes_reviewed_entities(db, make_user, make_entity, make_review):
    user = make_user()
    reviewed = make_entity(genres=["Drama"], rating=10.0)
    make_review(user["_id"], reviewed["_id"], 6)
    other = make_entity(type="tv", genres=["Comedy"], rating=5.0)

    recommendations = RecommendationService(db).recommend_for_user(str(user["_id"]))

    assert [r.entity_id for r in recommendations] == [str(other["_id"])]


def test_empty_catalog_yields_empty_list(db, make_user):
    assert RecommendationService(db).recommend_for_user(str(make_user()["_id"])) == []


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_unknown_user_raises_not_found(db):
    with pytest.raises(NotFoundError):
        RecommendationService(db).recommend_for_user(str(ObjectId()))


def test_malformed_user_id_raises(db):
    with pytest.raises(InvalidIdentifierError):
        RecommendationService(db).recommend_for_user("42")
