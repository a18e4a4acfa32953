"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as tracker/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Only the bcrypt hash is ever written; callers hash before create_user().

Email uniqueness is enforced by the UNIQUE index on users.email. create_user()
turns the IntegrityError into DuplicateEmail so a concurrent signup with the
same address fails the same way as a sequential one.

Layer rule: no imports from api/, web/, or tracker/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from core.db import users
from core.errors import DuplicateEmail


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(create_db_engine("sqlite:///./issuetracker.db"))
        user = store.create_user("a@x.com", hash_password("secret1"))
        user = store.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_user(self, email: str, hashed_password: str, role: str = "user") -> User:
        """Insert a new user and return it.

        Raises DuplicateEmail if the email is already registered.
        """
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            role=role,
            hashed_password=hashed_password,
            created_at=_now_iso(),
        )
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    users.insert().values(
                        id=user.id,
                        email=user.email,
                        hashed_password=user.hashed_password,
                        role=user.role,
                        created_at=user.created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        return user

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by email."""
        with self.engine.connect() as conn:
            rows = conn.execute(users.select().order_by(users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        role=row.role,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )
