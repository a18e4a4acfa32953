"""
tracker/store.py -- SQLAlchemy-backed persistence for issues and comments.

Pattern: Repository + Data Mapper. IssueStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers (they translate
raw DB rows into domain dataclasses). Route handlers never touch SQL directly.

Reads join the users table twice (aliased as author and assignee) so every
materialized Issue carries nested {id, email} objects without a second query.

Security: all queries use bound parameters. Search terms are LIKE-escaped so
a user-supplied "%" or "_" matches literally.

Usage:
    store = IssueStore(create_db_engine("sqlite:///./issuetracker.db"))
    issue_id = store.create_issue(Issue(title="Crash", description="...", created_by=uid))
    page = store.list_issues(IssueFilter(status="open"), page=1, page_size=10)
    store.create_comment(Comment(issue_id=issue_id, user_id=uid, content="Repro'd"))
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.engine import Engine

from core.db import comments, issues, users
from tracker.models import Comment, Issue, IssueFilter, IssuePage, UserRef

_author = users.alias("author")
_assignee = users.alias("assignee")
_comment_author = users.alias("comment_author")

# Columns IssueStore.update_issue() may touch. created_by is immutable.
_MUTABLE_ISSUE_FIELDS = {"title", "description", "status", "priority", "assigned_to"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    # Fixed-width timestamps sort correctly as strings.
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filter_clauses(filters: IssueFilter) -> list:
    clauses = []
    if filters.status:
        clauses.append(issues.c.status == filters.status)
    if filters.priority:
        clauses.append(issues.c.priority == filters.priority)
    if filters.search:
        pattern = f"%{_escape_like(filters.search)}%"
        clauses.append(
            or_(
                issues.c.title.ilike(pattern, escape="\\"),
                issues.c.description.ilike(pattern, escape="\\"),
            )
        )
    return clauses


def _issue_select():
    return select(
        issues,
        _author.c.email.label("author_email"),
        _assignee.c.email.label("assignee_email"),
    ).select_from(
        issues.join(_author, issues.c.created_by == _author.c.id).outerjoin(
            _assignee, issues.c.assigned_to == _assignee.c.id
        )
    )


def _comment_select():
    return select(
        comments,
        _comment_author.c.email.label("author_email"),
    ).select_from(comments.join(_comment_author, comments.c.user_id == _comment_author.c.id))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IssueStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def create_issue(self, issue: Issue) -> str:
        """Insert a new issue and return its assigned id.

        Raises sqlalchemy.exc.IntegrityError if created_by or assigned_to
        does not reference an existing user.
        """
        issue_id = str(uuid.uuid4())
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                issues.insert().values(
                    id=issue_id,
                    title=issue.title,
                    description=issue.description,
                    status=issue.status,
                    priority=issue.priority,
                    created_by=issue.created_by,
                    assigned_to=issue.assigned_to,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return issue_id

    def get_issue(self, issue_id: str) -> Optional[Issue]:
        """Return the issue with author/assignee resolved, or None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_issue_select().where(issues.c.id == issue_id)).fetchone()
        return _row_to_issue(row) if row is not None else None

    def update_issue(self, issue_id: str, **fields) -> bool:
        """Update mutable fields and bump updated_at.

        Accepted fields: title, description, status, priority, assigned_to.
        Unknown keys raise ValueError rather than being silently ignored.

        Returns True if a row was updated, False if issue_id was not found.
        """
        unknown = set(fields) - _MUTABLE_ISSUE_FIELDS
        if unknown:
            raise ValueError(f"Unknown issue fields: {sorted(unknown)!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                issues.update().where(issues.c.id == issue_id).values(**fields, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_issue(self, issue_id: str) -> bool:
        """Delete an issue and its comments. Returns False if not found.

        Comments are removed explicitly in the same transaction so the result
        does not depend on the engine honouring ON DELETE CASCADE.
        """
        with self.engine.connect() as conn:
            conn.execute(comments.delete().where(comments.c.issue_id == issue_id))
            result = conn.execute(issues.delete().where(issues.c.id == issue_id))
            conn.commit()
        return result.rowcount > 0

    def list_issues(self, filters: IssueFilter, page: int = 1, page_size: int = 10) -> IssuePage:
        """Return one page of matching issues, newest first.

        total counts every matching row, independent of page and page_size.
        Ties on created_at are broken by id so paging is stable.
        """
        clauses = _filter_clauses(filters)
        offset = (page - 1) * page_size
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(issues).where(*clauses)).scalar() or 0
            rows = conn.execute(
                _issue_select()
                .where(*clauses)
                .order_by(issues.c.created_at.desc(), issues.c.id.desc())
                .limit(page_size)
                .offset(offset)
            ).fetchall()
        return IssuePage(
            page=page,
            page_size=page_size,
            total=total,
            issues=[_row_to_issue(r) for r in rows],
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def create_comment(self, comment: Comment) -> str:
        """Insert a comment and return its id.

        Raises sqlalchemy.exc.IntegrityError if issue_id or user_id is dangling.
        Callers check the issue exists first so the client sees 404, not 500.
        """
        comment_id = str(uuid.uuid4())
        with self.engine.connect() as conn:
            conn.execute(
                comments.insert().values(
                    id=comment_id,
                    issue_id=comment.issue_id,
                    user_id=comment.user_id,
                    content=comment.content,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return comment_id

    def get_comment(self, comment_id: str) -> Optional[Comment]:
        with self.engine.connect() as conn:
            row = conn.execute(_comment_select().where(comments.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(self, issue_id: str) -> list[Comment]:
        """Return all comments on an issue, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _comment_select()
                .where(comments.c.issue_id == issue_id)
                .order_by(comments.c.created_at.asc(), comments.c.id.asc())
            ).fetchall()
        return [_row_to_comment(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_issue(row) -> Issue:
    assignee = None
    if row.assigned_to is not None and row.assignee_email is not None:
        assignee = UserRef(id=row.assigned_to, email=row.assignee_email)
    return Issue(
        id=row.id,
        title=row.title,
        description=row.description,
        status=row.status,
        priority=row.priority,
        created_by=row.created_by,
        assigned_to=row.assigned_to,
        created_at=row.created_at,
        updated_at=row.updated_at,
        author=UserRef(id=row.created_by, email=row.author_email),
        assignee=assignee,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        issue_id=row.issue_id,
        user_id=row.user_id,
        content=row.content,
        created_at=row.created_at,
        author=UserRef(id=row.user_id, email=row.author_email),
    )
