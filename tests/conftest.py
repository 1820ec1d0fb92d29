from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from apps.api.app.main import create_app
from src.catalog.config import AppConfig, AuthConfig
from src.catalog.data.mongo import ENTITIES, PEOPLE, REVIEWS, USERS, ensure_indexes, utc_now
from src.catalog.notifications.email import NotificationError
from src.catalog.security import create_access_token


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class RecordingNotifier:
    """Keeps every message instead of sending it; can fail for chosen recipients."""

    def __init__(self, fail_for=()):
        self.sent: List[Dict[str, Any]] = []
        self.fail_for = set(fail_for)

    def send(self, to, subject, template, data):
        if to in self.fail_for:
            raise NotificationError(f"SMTP unavailable for {to}")
        self.sent.append({"to": to, "subject": subject, "template": template, "data": dict(data)})


class FakeImageStore:
    def __init__(self):
        self.uploads: List[Dict[str, Any]] = []

    def upload(self, data, filename, content_type):
        self.uploads.append({"size": len(data), "filename": filename, "content_type": content_type})
        return f"https://images.test/{filename}"


# ---------------------------------------------------------------------------
# Database fixtures and factories
# ---------------------------------------------------------------------------


@pytest.fixture
def db():
    database = mongomock.MongoClient()["screen_catalog_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(
        username: Optional[str] = None,
        role: str = "user",
        verified: bool = False,
        age_days: int = 0,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        created = utc_now() - timedelta(days=age_days)
        doc = {
            "username": username,
            "email": email or f"{username}@example.com",
            "password": "not-a-real-hash",
            "role": role,
            "verified": verified,
            "preferences": {},
            "createdAt": created,
            "updatedAt": created,
        }
        doc["_id"] = db[USERS].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def make_entity(db):
    counter = {"n": 0}

    def _make(
        title: Optional[str] = None,
        type: str = "movie",
        genres: Optional[List[str]] = None,
        rating: float = 0,
        created_at: Optional[datetime] = None,
        release_date: Optional[datetime] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        counter["n"] += 1
        created = created_at or (datetime(2024, 1, 1) + timedelta(minutes=counter["n"]))
        doc = {
            "title": title or f"Entity {counter['n']}",
            "type": type,
            "genres": [{"name": g, "description": ""} for g in (genres or [])],
            "directors": [],
            "cast": [],
            "seasons": [],
            "rating": rating,
            "releaseDate": release_date,
            "createdAt": created,
            "updatedAt": created,
        }
        doc.update(extra)
        doc["_id"] = db[ENTITIES].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def make_person(db):
    def _make(name: str = "Jane Doe", roles=("actor",)) -> Dict[str, Any]:
        doc = {"name": name, "roles": list(roles), "createdAt": utc_now(), "updatedAt": utc_now()}
        doc["_id"] = db[PEOPLE].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def make_review(db):
    def _make(user_id: ObjectId, entity_id: ObjectId, rating: int, comment: Optional[str] = None) -> Dict[str, Any]:
        doc = {
            "user": user_id,
            "entity": entity_id,
            "rating": rating,
            "comment": comment,
            "createdAt": utc_now(),
            "updatedAt": utc_now(),
        }
        doc["_id"] = db[REVIEWS].insert_one(doc).inserted_id
        return doc

    return _make


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(auth=AuthConfig(secret_key="test-signing-key"))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def image_store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def api_app(config, db, notifier, image_store):
    return create_app(config=config, database=db, notifier=notifier, image_store=image_store)


@pytest.fixture
def client(api_app):
    with TestClient(api_app) as test_client:
        yield test_client


@pytest.fixture
def login(client, config):
    """Put a session cookie for ``user`` on the shared test client."""

    def _login(user: Dict[str, Any]) -> TestClient:
        token = create_access_token(config.auth, str(user["_id"]), user.get("role", "user"))
        client.cookies.set(config.auth.cookie_name, token)
        return client

    return _login
