"""
tests/test_sessions.py -- Unit tests for the session token codec.

Coverage:
  - issue() -> verify() returns the same user id
  - Tampered signature, wrong key, "none" algorithm, other HMAC algorithms,
    expired tokens, and garbage strings all raise InvalidToken
  - Tokens carry no role claim
  - Cookie helpers set httpOnly/SameSite and clear the cookie
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.responses import JSONResponse
from jose import jwt

from auth.sessions import ALGORITHM, SESSION_COOKIE, SessionCodec, clear_session_cookie, set_session_cookie
from core.errors import InvalidToken

SECRET = "unit-test-secret-key-0123456789abcdef"


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class TestSessionCodec:
    def test_round_trip_returns_user_id(self) -> None:
        codec = SessionCodec(SECRET)
        token = codec.issue("user-123")
        assert codec.verify(token) == "user-123"

    def test_claims_are_sub_iat_exp_only(self) -> None:
        """Role must never be baked into the token; the gate reads it from the DB."""
        codec = SessionCodec(SECRET, ttl_seconds=60)
        claims = jwt.get_unverified_claims(codec.issue("u1"))
        assert set(claims) == {"sub", "iat", "exp"}
        assert claims["exp"] - claims["iat"] == 60

    def test_default_lifetime_is_24_hours(self) -> None:
        codec = SessionCodec(SECRET)
        claims = jwt.get_unverified_claims(codec.issue("u1"))
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60

    def test_tampered_signature_rejected(self) -> None:
        codec = SessionCodec(SECRET)
        token = codec.issue("u1")
        head, body, sig = token.split(".")
        flipped = ("A" if sig[0] != "A" else "B") + sig[1:]
        with pytest.raises(InvalidToken):
            codec.verify(f"{head}.{body}.{flipped}")

    def test_tampered_payload_rejected(self) -> None:
        codec = SessionCodec(SECRET)
        head, _body, sig = codec.issue("u1").split(".")
        now = int(datetime.now(timezone.utc).timestamp())
        forged = _b64({"sub": "admin-id", "iat": now, "exp": now + 3600})
        with pytest.raises(InvalidToken):
            codec.verify(f"{head}.{forged}.{sig}")

    def test_token_from_other_key_rejected(self) -> None:
        token = SessionCodec("another-secret-key-0123456789abcdef").issue("u1")
        with pytest.raises(InvalidToken):
            SessionCodec(SECRET).verify(token)

    def test_none_algorithm_rejected(self) -> None:
        now = int(datetime.now(timezone.utc).timestamp())
        header = _b64({"alg": "none", "typ": "JWT"})
        payload = _b64({"sub": "u1", "iat": now, "exp": now + 3600})
        with pytest.raises(InvalidToken):
            SessionCodec(SECRET).verify(f"{header}.{payload}.")

    def test_other_hmac_algorithm_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "u1", "iat": now, "exp": now + timedelta(hours=1)},
            SECRET,
            algorithm="HS512",
        )
        with pytest.raises(InvalidToken):
            SessionCodec(SECRET).verify(token)

    def test_expired_token_rejected(self) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "u1", "iat": past, "exp": past + timedelta(hours=1)},
            SECRET,
            algorithm=ALGORITHM,
        )
        with pytest.raises(InvalidToken):
            SessionCodec(SECRET).verify(token)

    def test_missing_subject_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode({"iat": now, "exp": now + timedelta(hours=1)}, SECRET, algorithm=ALGORITHM)
        with pytest.raises(InvalidToken):
            SessionCodec(SECRET).verify(token)

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "...."])
    def test_garbage_rejected(self, garbage: str) -> None:
        with pytest.raises(InvalidToken):
            SessionCodec(SECRET).verify(garbage)

    def test_empty_secret_refused(self) -> None:
        with pytest.raises(ValueError):
            SessionCodec("")


class TestSessionCookie:
    def test_set_cookie_flags(self) -> None:
        resp = JSONResponse({})
        set_session_cookie(resp, "tok", max_age=3600, secure=True)
        header = resp.headers["set-cookie"].lower()
        assert header.startswith(f"{SESSION_COOKIE}=tok")
        assert "httponly" in header
        assert "samesite=lax" in header
        assert "secure" in header
        assert "max-age=3600" in header

    def test_insecure_cookie_for_dev(self) -> None:
        resp = JSONResponse({})
        set_session_cookie(resp, "tok", max_age=60, secure=False)
        assert "secure" not in resp.headers["set-cookie"].lower()

    def test_clear_cookie_expires_it(self) -> None:
        resp = JSONResponse({})
        clear_session_cookie(resp)
        header = resp.headers["set-cookie"].lower()
        assert header.startswith(f"{SESSION_COOKIE}=")
        assert "max-age=0" in header
