"""
core/db.py -- SQLAlchemy Core schema and engine factory.

One schema, one engine, one implementation. Which database backs the app is a
deployment concern: DATABASE_URL picks SQLite for local use and tests, or any
other SQLAlchemy-supported engine in production. The stores in auth/store.py
and tracker/store.py share the engine so issues and comments can join against
users.

Uses SQLAlchemy Core (not ORM) so the dataclasses in auth/models.py and
tracker/models.py remain the authoritative domain representation.

Security: all queries built on these tables use bound parameters.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, or tracker/.
"""

from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),  # UUID4 string
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
)

issues = Table(
    "issues",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False),
    Column("status", String(10), nullable=False, server_default="open"),
    Column("priority", String(10), nullable=False, server_default="medium"),
    Column("created_by", String(36), ForeignKey("users.id"), nullable=False),
    Column("assigned_to", String(36), ForeignKey("users.id")),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    CheckConstraint("status IN ('open', 'closed')", name="ck_issues_status"),
    CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_issues_priority"),
)

comments = Table(
    "comments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("issue_id", String(36), ForeignKey("issues.id", ondelete="CASCADE"), nullable=False),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

Index("ix_issues_created_at", issues.c.created_at)
Index("ix_issues_status", issues.c.status)
Index("ix_issues_priority", issues.c.priority)
Index("ix_comments_issue_id", comments.c.issue_id)


# ---------------------------------------------------------------------------
# SQLite pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON is what makes comment rows
    disappear with their issue (ON DELETE CASCADE) and rejects dangling
    creator/assignee references.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# Engine factory
# ---------------------------------------------------------------------------


def create_db_engine(db_url: str) -> Engine:
    """Create an engine for db_url and make sure every table exists.

    Usage:
        engine = create_db_engine("sqlite:///./issuetracker.db")
        engine = create_db_engine("postgresql+psycopg://app@db/issues")
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # SQLite requires check_same_thread=False when used from FastAPI's
        # threadpool, where one pooled connection may serve several threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    return engine
