"""
tests/test_user_store.py -- Unit tests for password hashing, credential checks,
and UserStore persistence.

All tests run against the per-test in-memory database from conftest.py.
"""

from __future__ import annotations

import uuid

import pytest

from auth.passwords import authenticate, hash_password, verify_password
from auth.store import UserStore
from core.errors import DuplicateEmail


class TestPasswords:
    def test_hash_is_not_plaintext_and_verifies(self) -> None:
        hashed = hash_password("s3cret!")
        assert hashed != "s3cret!"
        assert hashed.startswith("$2")
        assert verify_password("s3cret!", hashed)

    def test_wrong_password_fails(self) -> None:
        assert not verify_password("nope", hash_password("s3cret!"))

    def test_hashes_are_salted(self) -> None:
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestUserStore:
    def test_create_assigns_uuid_and_timestamp(self, user_store: UserStore) -> None:
        user = user_store.create_user("alice@example.com", hash_password("pw1234"))
        assert str(uuid.UUID(user.id)) == user.id
        assert user.role == "user"
        assert user.created_at

    def test_get_by_email_and_id(self, user_store: UserStore) -> None:
        created = user_store.create_user("bob@example.com", hash_password("pw1234"), role="admin")
        by_email = user_store.get_by_email("bob@example.com")
        by_id = user_store.get_by_id(created.id)
        assert by_email is not None and by_id is not None
        assert by_email.id == by_id.id == created.id
        assert by_id.role == "admin"

    def test_missing_user_returns_none(self, user_store: UserStore) -> None:
        assert user_store.get_by_email("ghost@example.com") is None
        assert user_store.get_by_id(str(uuid.uuid4())) is None

    def test_duplicate_email_raises(self, user_store: UserStore) -> None:
        user_store.create_user("dup@example.com", hash_password("pw1234"))
        with pytest.raises(DuplicateEmail) as exc_info:
            user_store.create_user("dup@example.com", hash_password("other1"))
        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "User already exists"

    def test_list_users_ordered_by_email(self, user_store: UserStore) -> None:
        for email in ("carol@example.com", "alice@example.com", "bob@example.com"):
            user_store.create_user(email, hash_password("pw1234"))
        assert [u.email for u in user_store.list_users()] == [
            "alice@example.com",
            "bob@example.com",
            "carol@example.com",
        ]


class TestAuthenticate:
    def test_correct_credentials_return_user(self, user_store: UserStore) -> None:
        created = user_store.create_user("dave@example.com", hash_password("letmein"))
        user = authenticate(user_store, "dave@example.com", "letmein")
        assert user is not None
        assert user.id == created.id

    def test_wrong_password_returns_none(self, user_store: UserStore) -> None:
        user_store.create_user("erin@example.com", hash_password("letmein"))
        assert authenticate(user_store, "erin@example.com", "wrong") is None

    def test_unknown_email_returns_none(self, user_store: UserStore) -> None:
        assert authenticate(user_store, "nobody@example.com", "letmein") is None
