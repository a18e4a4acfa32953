"""
tests/test_rate_limits.py -- Per-IP rate limits on the public auth routes.

conftest.py disables the shared limiter for every other test. The fixture
here turns it back on with empty counters and restores the disabled state
afterwards, so no counts leak between tests.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter


@pytest.fixture
def rate_limited() -> Generator[None, None, None]:
    limiter.reset()
    limiter.enabled = True
    yield
    limiter.enabled = False
    limiter.reset()


def test_signup_limited_after_five(client: TestClient, rate_limited) -> None:
    statuses = [
        client.post("/api/auth/signup", json={"email": f"user{i}@example.com", "password": "secret1"}).status_code
        for i in range(5)
    ]
    assert statuses == [201] * 5

    resp = client.post("/api/auth/signup", json={"email": "user5@example.com", "password": "secret1"})
    assert resp.status_code == 429
    assert resp.json() == {"error": "Too many requests"}
    assert "retry-after" in resp.headers


def test_login_limited_after_ten(client: TestClient, make_user, rate_limited) -> None:
    make_user("ratelimit@example.com", password="secret1")
    creds = {"email": "ratelimit@example.com", "password": "wrong-password"}
    statuses = [client.post("/api/auth/login", json=creds).status_code for _ in range(10)]
    assert statuses == [401] * 10

    resp = client.post("/api/auth/login", json=creds)
    assert resp.status_code == 429
    assert "retry-after" in resp.headers


def test_limits_are_per_route(client: TestClient, rate_limited) -> None:
    for i in range(5):
        client.post("/api/auth/signup", json={"email": f"user{i}@example.com", "password": "secret1"})
    resp = client.post("/api/auth/login", json={"email": "user0@example.com", "password": "secret1"})
    assert resp.status_code == 200
