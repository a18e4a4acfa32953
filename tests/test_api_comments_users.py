"""
tests/test_api_comments_users.py -- Integration tests for comment routes and
the user directory.

Coverage:
  - POST /api/issues/{id}/comments: any authenticated user, 201, trimmed
    content, 400 on empty content, 404 on missing issue (before validation)
  - GET /api/issues/{id}/comments: oldest first, 404 on missing issue
  - Deleting an issue removes its comments
  - GET /api/users: every account, never a password hash
"""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com", role="admin")


@pytest.fixture
def issue_id(client: TestClient, login_as, alice) -> str:
    login_as(alice)
    resp = client.post("/api/issues", json={"title": "Flaky test", "description": "Fails on CI"})
    assert resp.status_code == 201
    return resp.json()["id"]


class TestComments:
    def test_other_user_can_comment(self, client: TestClient, login_as, bob, issue_id: str) -> None:
        login_as(bob)
        resp = client.post(f"/api/issues/{issue_id}/comments", json={"content": "  Seen it too  "})
        assert resp.status_code == 201
        body = resp.json()
        assert body["content"] == "Seen it too"
        assert body["issue_id"] == issue_id
        assert body["user_id"] == bob.id
        assert body["author"] == {"id": bob.id, "email": "bob@example.com"}
        assert body["created_at"]

    def test_list_oldest_first(self, client: TestClient, login_as, alice, bob, issue_id: str) -> None:
        client.post(f"/api/issues/{issue_id}/comments", json={"content": "first"})
        login_as(bob)
        client.post(f"/api/issues/{issue_id}/comments", json={"content": "second"})
        resp = client.get(f"/api/issues/{issue_id}/comments")
        assert resp.status_code == 200
        assert [c["content"] for c in resp.json()] == ["first", "second"]
        assert [c["author"]["email"] for c in resp.json()] == ["alice@example.com", "bob@example.com"]

    @pytest.mark.parametrize("body", [{"content": ""}, {"content": "   "}, {}, None, {"content": 42}])
    def test_invalid_comment(self, client: TestClient, issue_id: str, body) -> None:
        resp = client.post(f"/api/issues/{issue_id}/comments", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid input"

    def test_comment_on_missing_issue(self, client: TestClient, issue_id: str) -> None:
        resp = client.post(f"/api/issues/{uuid.uuid4()}/comments", json={"content": ""})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Issue not found"}

    def test_malformed_json_on_missing_issue(self, client: TestClient, issue_id: str) -> None:
        resp = client.post(
            f"/api/issues/{uuid.uuid4()}/comments",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "Issue not found"}

    def test_malformed_json_comment(self, client: TestClient, issue_id: str) -> None:
        resp = client.post(
            f"/api/issues/{issue_id}/comments",
            content=b'{"content": ',
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] is None

    def test_list_on_missing_issue(self, client: TestClient, issue_id: str) -> None:
        assert client.get(f"/api/issues/{uuid.uuid4()}/comments").status_code == 404

    def test_comments_removed_with_issue(self, client: TestClient, issue_store, issue_id: str) -> None:
        client.post(f"/api/issues/{issue_id}/comments", json={"content": "bye"})
        assert client.delete(f"/api/issues/{issue_id}").status_code == 200
        assert issue_store.list_comments(issue_id) == []


class TestUsers:
    def test_list_users(self, client: TestClient, login_as, alice, bob) -> None:
        login_as(alice)
        resp = client.get("/api/users")
        assert resp.status_code == 200
        assert resp.json() == [
            {"id": alice.id, "email": "alice@example.com", "role": "user"},
            {"id": bob.id, "email": "bob@example.com", "role": "admin"},
        ]

    def test_list_users_requires_session(self, client: TestClient, alice) -> None:
        resp = client.get("/api/users")
        assert resp.status_code == 401
