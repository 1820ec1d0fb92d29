from __future__ import annotations

from src.catalog.data.mongo import USERS


def test_recommendations_require_session(client):
    resp = client.get("/v1/recommendations")

    assert resp.status_code == 401


def test_admins_do_not_get_recommendations(login, make_user):
    client = login(make_user(role="admin"))

    resp = client.get("/v1/recommendations")

    assert resp.status_code == 403


def test_recommendations_match_taste_and_skip_reviewed(login, make_user, make_entity, make_review, db):
    user = make_user()
    seen = make_entity(title="Seen", genres=["Drama"])
    make_review(user["_id"], seen["_id"], 10)
    match = make_entity(title="Match", genres=["Drama"], rating=7.0, posterUrl="https://images.test/m.png")
    make_entity(title="Unrelated", type="tv", genres=["Comedy"], rating=9.0)
    client = login(user)

    resp = client.get("/v1/recommendations")

    assert resp.status_code == 200
    recommendations = resp.json()["recommendations"]
    assert recommendations == [
        {
            "id": str(match["_id"]),
            "title": "Match",
            "type": "movie",
            "posterUrl": "https://images.test/m.png",
            "genres": ["Drama"],
        }
    ]
    preferences = db[USERS].find_one({"_id": user["_id"]})["preferences"]
    assert preferences == {"type:movie": 1.0, "genre:Drama": 0.5}


def test_new_user_gets_top_rated(login, make_user, make_entity):
    for rating in (2.0, 9.0, 5.0, 7.0, 8.0, 1.0):
        make_entity(title=f"Rated {rating}", rating=rating)
    client = login(make_user())

    resp = client.get("/v1/recommendations")

    titles = [r["title"] for r in resp.json()["recommendations"]]
    assert titles == ["Rated 9.0", "Rated 8.0", "Rated 7.0", "Rated 5.0", "Rated 2.0"]
