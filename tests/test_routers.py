"""HTTP-level tests. The app lifespan is not entered, so no database connects;
the pool, cipher, Twitch client and reconciler are injected via overrides."""

import pytest
from fakes import stream
from fastapi.testclient import TestClient

from followdeck.app import create_app
from followdeck.core.dependencies import (
    get_db_pool,
    get_reconciler,
    get_token_cipher,
    get_twitch_api,
)
from followdeck.services.twitch_api import TwitchAPIError
from presence.repositories.credential import SINGLETON_ID


@pytest.fixture
def app(pool, cipher, twitch, reconciler):
    app = create_app()
    app.dependency_overrides[get_db_pool] = lambda: pool
    app.dependency_overrides[get_token_cipher] = lambda: cipher
    app.dependency_overrides[get_twitch_api] = lambda: twitch
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def authenticated(db, cipher):
    db.credentials[SINGLETON_ID] = {
        "access_token": cipher.encrypt("access-1"),
        "refresh_token": cipher.encrypt("refresh-1"),
        "user_id": "1000",
        "expires_at": None,
    }


@pytest.fixture
def followed(db):
    db.add_channel("1", "Alpha", profile_image_url="https://img/1.png")
    db.add_channel("2", "Bravo", profile_image_url="https://img/2.png")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_database_not_ready_is_503(app):
    del app.dependency_overrides[get_db_pool]
    response = TestClient(app).get("/api/auth/status")
    assert response.status_code == 503


class TestAuth:
    def test_status_signed_out(self, client):
        assert client.get("/api/auth/status").json() == {"authenticated": False, "user_id": None}

    def test_status_signed_in(self, client, authenticated):
        assert client.get("/api/auth/status").json() == {"authenticated": True, "user_id": "1000"}

    def test_oauth_flow_stores_credentials(self, client, db, cipher):
        state = client.get("/api/auth/url").json()["state"]

        response = client.get(
            "/api/auth/callback",
            params={"code": "good-code", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 302
        stored = db.credentials[SINGLETON_ID]
        assert stored["user_id"] == "2000"
        assert cipher.decrypt(stored["access_token"]) == "access-new"

    def test_callback_rejects_bad_state(self, client, db):
        response = client.get(
            "/api/auth/callback",
            params={"code": "good-code", "state": "forged"},
            follow_redirects=False,
        )
        assert response.status_code == 400
        assert SINGLETON_ID not in db.credentials

    def test_callback_reports_provider_error(self, client):
        response = client.get("/api/auth/callback", params={"error": "access_denied"})
        assert response.status_code == 400

    def test_callback_failed_exchange_is_502(self, client):
        state = client.get("/api/auth/url").json()["state"]
        response = client.get(
            "/api/auth/callback",
            params={"code": "bad-code", "state": state},
            follow_redirects=False,
        )
        assert response.status_code == 502

    def test_logout(self, client, authenticated, twitch):
        assert client.post("/api/auth/logout").json() == {"success": True}
        assert client.get("/api/auth/status").json()["authenticated"] is False
        assert ("revoke_token", "access-1") in twitch.calls

    def test_logout_forgets_live_snapshot(self, client, reconciler, authenticated, followed):
        assert client.get("/api/channels/followed").status_code == 200
        assert reconciler.has_baseline

        client.post("/api/auth/logout")
        assert not reconciler.has_baseline


class TestChannels:
    def test_followed_requires_auth(self, client, followed):
        assert client.get("/api/channels/followed").status_code == 401

    def test_followed_list(self, client, twitch, authenticated, followed):
        twitch.streams = [stream("2", viewers=12, game="Chess", title="blitz")]

        body = client.get("/api/channels/followed").json()

        assert [c["id"] for c in body] == ["1", "2"]
        bravo = body[1]
        assert bravo == {
            "id": "2",
            "channel_name": "Bravo",
            "profile_image": "https://img/2.png",
            "is_live": True,
            "is_favorite": False,
            "viewer_count": 12,
            "game_name": "Chess",
            "stream_title": "blitz",
            "last_seen_at": None,
        }

    def test_provider_outage_is_502(self, client, twitch, authenticated, followed):
        twitch.outage = TwitchAPIError("Twitch API error: 503", 503)
        assert client.get("/api/channels/followed").status_code == 502

    def test_sync(self, client, db, twitch, authenticated):
        twitch.follows = [{"broadcaster_id": "7", "broadcaster_name": "golf"}]
        assert client.post("/api/channels/sync").json() == {"followed": 1}
        assert "7" in db.channels


class TestFavorites:
    def test_requires_auth(self, client, followed):
        assert client.post("/api/favorites/toggle/1").status_code == 401
        assert client.put("/api/favorites/reorder", json={"ordered_ids": []}).status_code == 401

    def test_toggle_and_list(self, client, authenticated, followed):
        assert client.post("/api/favorites/toggle/2").json() == {"is_favorite": True}
        assert client.post("/api/favorites/toggle/1").json() == {"is_favorite": True}

        favorites = client.get("/api/favorites").json()
        assert [f["id"] for f in favorites] == ["2", "1"]

        assert client.post("/api/favorites/toggle/2").json() == {"is_favorite": False}
        assert [f["id"] for f in client.get("/api/favorites").json()] == ["1"]

    def test_toggle_unknown_channel_is_404(self, client, authenticated, followed):
        assert client.post("/api/favorites/toggle/999").status_code == 404

    def test_add_favorite(self, client, db, authenticated):
        response = client.post(
            "/api/favorites",
            json={"id": "9", "channel_name": "India", "profile_image": "https://img/9.png"},
        )
        assert response.status_code == 201
        assert db.channels["9"]["is_favorite"] is True

    def test_add_favorite_validates_lengths(self, client, authenticated):
        response = client.post(
            "/api/favorites",
            json={"id": "x" * 51, "channel_name": "India", "profile_image": "https://img/9.png"},
        )
        assert response.status_code == 422

    def test_reorder(self, client, authenticated, followed):
        client.post("/api/favorites/toggle/1")
        client.post("/api/favorites/toggle/2")

        response = client.put("/api/favorites/reorder", json={"ordered_ids": ["2", "1"]})

        assert response.json() == {"success": True, "ordered_ids": ["2", "1"]}
        assert [f["id"] for f in client.get("/api/favorites").json()] == ["2", "1"]

    def test_reorder_rejects_non_favorite(self, client, db, authenticated, followed):
        client.post("/api/favorites/toggle/1")

        response = client.put("/api/favorites/reorder", json={"ordered_ids": ["2", "1"]})

        assert response.status_code == 400
        assert db.favorite_orders() == {"1": 0}

    def test_reorder_rejects_oversized_request(self, client, authenticated):
        response = client.put(
            "/api/favorites/reorder", json={"ordered_ids": [str(i) for i in range(1001)]}
        )
        assert response.status_code == 422
