"""app モジュール（Webhook / callable RPC）のテスト."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from launchfeed.app import app, get_store
from launchfeed.db import StoreError


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _insert(table: str, record: dict) -> dict:
    return {"type": "INSERT", "table": table, "schema": "public", "record": record, "old_record": None}


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "service": "launchfeed"}


class TestWebhooks:
    """/webhooks/{table} のテスト."""

    def test_comment_insert(self, client, store):
        store.set("products", "p1", {"createdBy": "owner"})

        response = client.post("/webhooks/comments", json=_insert("comments", {
            "id": "c1", "productId": "p1", "userId": "u2",
            "userInfo": {"displayName": "Bob", "profilePicture": ""},
        }))

        assert response.status_code == 200
        assert response.json()["dispatched"] == 1
        docs = store.query("notifications")
        assert len(docs) == 1
        assert docs[0].data["message"] == "Bob commented on your product."

    def test_self_upvote_not_notified(self, client, store):
        store.set("products", "p1", {"createdBy": "owner"})

        response = client.post("/webhooks/upvotes", json=_insert("upvotes", {
            "productId": "p1", "userId": "owner",
        }))

        assert response.status_code == 200
        assert store.query("notifications") == []

    def test_update_ignored(self, client, store):
        store.set("products", "p1", {"createdBy": "owner"})
        payload = _insert("comments", {"productId": "p1", "userId": "u2"})
        payload["type"] = "UPDATE"

        response = client.post("/webhooks/comments", json=payload)

        assert response.status_code == 200
        assert response.json()["dispatched"] == 0
        assert store.query("notifications") == []

    def test_unknown_table(self, client):
        response = client.post("/webhooks/likes", json=_insert("likes", {"id": "l1"}))
        assert response.status_code == 404

    def test_table_mismatch(self, client):
        response = client.post("/webhooks/comments", json=_insert("upvotes", {"id": "u1"}))
        assert response.status_code == 400

    @patch("launchfeed.config.WEBHOOK_SECRET", "s3cret")
    def test_secret_required(self, client):
        response = client.post("/webhooks/comments", json=_insert("comments", {"productId": "p1"}))
        assert response.status_code == 401

    @patch("launchfeed.config.WEBHOOK_SECRET", "s3cret")
    def test_secret_accepted(self, client):
        response = client.post(
            "/webhooks/comments",
            json=_insert("comments", {"productId": "p1", "userId": "u2"}),
            headers={"X-Webhook-Secret": "s3cret"},
        )
        assert response.status_code == 200

    def test_store_failure_returns_500(self):
        """ストア障害時は 500 を返し、ディスパッチャ側の再試行に任せること."""
        broken = MagicMock()
        broken.get.side_effect = StoreError("timeout")
        app.dependency_overrides[get_store] = lambda: broken
        try:
            response = TestClient(app).post(
                "/webhooks/comments",
                json=_insert("comments", {"productId": "p1", "userId": "u2"}),
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"]["status"] == "INTERNAL"


class TestRpc:
    """/rpc/{name} のテスト."""

    def test_unauthenticated(self, client):
        response = client.post("/rpc/generateDailyTrendingNow", json={"data": None})

        assert response.status_code == 401
        assert response.json() == {
            "error": {"status": "UNAUTHENTICATED", "message": "Login required"},
        }

    def test_invalid_token(self, client):
        response = client.post(
            "/rpc/generateDailyTrendingNow",
            headers={"Authorization": "Bearer unknown"},
        )
        assert response.status_code == 401

    def test_permission_denied(self, client, store):
        store.tokens["t1"] = "u1"
        store.set("users", "u1", {"role": "member"})

        response = client.post(
            "/rpc/generateDailyTrendingNow",
            headers={"Authorization": "Bearer t1"},
        )

        assert response.status_code == 403
        assert response.json()["error"]["status"] == "PERMISSION_DENIED"

    def test_admin(self, client, store):
        store.tokens["t1"] = "admin1"
        store.set("users", "admin1", {"role": "admin"})

        response = client.post(
            "/rpc/generateDailyTrendingNow",
            json={"data": {}},
            headers={"Authorization": "Bearer t1"},
        )

        assert response.status_code == 200
        date_id = response.json()["result"]["dateId"]
        assert store.get("dailyRankings", date_id) is not None

    def test_unknown_function(self, client):
        response = client.post("/rpc/nope")
        assert response.status_code == 404
