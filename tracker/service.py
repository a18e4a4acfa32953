"""
tracker/service.py -- Resource handlers shared by the REST API and the web UI.

Every mutating operation follows the same fixed order so that clients learn
nothing they are not entitled to:

  1. Resolve the target issue           -> NotFound (404)
  2. Authorize (update/delete only)     -> Forbidden (403)
  3. Validate the payload               -> ValidationError (400)
  4. Apply the data operation           -> SQLAlchemyError bubbles up (500)
  5. Return the re-read, materialized entity

Validation happens after authorization: a user who may not edit
an issue gets 403 whatever they send.

Authorization rule: admins may modify any issue; everyone else only the
issues they created. Comments may be added by any authenticated user.
"""

from __future__ import annotations

import logging
from typing import Any

from auth.models import Identity
from auth.store import UserStore
from core.errors import Forbidden, Internal, NotFound, ValidationError
from core.validation import parse_payload
from tracker.models import Comment, Issue, IssueFilter, IssuePage
from tracker.schemas import CommentCreate, IssueCreate, IssueQuery, IssueUpdate
from tracker.store import IssueStore

logger = logging.getLogger("issuetracker.tracker")


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def can_modify(identity: Identity, issue: Issue) -> bool:
    """Return True if identity may update or delete issue."""
    return identity.is_admin or identity.id == issue.created_by


def get_issue_or_404(store: IssueStore, issue_id: str) -> Issue:
    issue = store.get_issue(issue_id)
    if issue is None:
        raise NotFound("Issue not found")
    return issue


def authorize_modify(store: IssueStore, identity: Identity, issue_id: str, action: str) -> Issue:
    """Resolve the issue and check identity may modify it. 404 before 403."""
    issue = get_issue_or_404(store, issue_id)
    if not can_modify(identity, issue):
        logger.warning("User %s denied %s on issue %s", identity.id, action, issue.id)
        raise Forbidden()
    return issue


def _check_assignee(user_store: UserStore, assignee_id: str | None) -> None:
    if assignee_id is not None and user_store.get_by_id(assignee_id) is None:
        raise ValidationError(details=[{"field": "assigned_to", "message": "Assignee does not exist"}])


def _reread(store: IssueStore, issue_id: str) -> Issue:
    issue = store.get_issue(issue_id)
    if issue is None:
        # The row was written in this request; losing it means the store is inconsistent.
        raise Internal()
    return issue


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------


def list_issues(store: IssueStore, query: IssueQuery) -> IssuePage:
    filters = IssueFilter(
        status=query.status.value if query.status else None,
        priority=query.priority.value if query.priority else None,
        search=query.search,
    )
    return store.list_issues(filters, page=query.page, page_size=query.page_size)


def create_issue(store: IssueStore, user_store: UserStore, identity: Identity, data: IssueCreate) -> Issue:
    """Create an issue owned by the acting user."""
    assignee_id = str(data.assigned_to) if data.assigned_to else None
    _check_assignee(user_store, assignee_id)
    issue_id = store.create_issue(
        Issue(
            title=data.title,
            description=data.description,
            status=data.status.value,
            priority=data.priority.value,
            created_by=identity.id,
            assigned_to=assignee_id,
        )
    )
    logger.info("User %s created issue %s", identity.id, issue_id)
    return _reread(store, issue_id)


def update_issue(
    store: IssueStore,
    user_store: UserStore,
    identity: Identity,
    issue_id: str,
    payload: Any,
) -> Issue:
    """Apply a partial update.

    payload is the body as received: raw JSON bytes from the API or a dict
    from the web form. It is not decoded until the issue is found and the
    caller is authorized.
    """
    issue = authorize_modify(store, identity, issue_id, "update")

    changes = parse_payload(IssueUpdate, payload).changes()
    if not changes:
        raise ValidationError("No fields to update")
    if "assigned_to" in changes:
        _check_assignee(user_store, changes["assigned_to"])

    store.update_issue(issue.id, **changes)
    logger.info("User %s updated issue %s (%s)", identity.id, issue.id, ", ".join(sorted(changes)))
    return _reread(store, issue.id)


def delete_issue(store: IssueStore, identity: Identity, issue_id: str) -> None:
    issue = authorize_modify(store, identity, issue_id, "delete")
    store.delete_issue(issue.id)
    logger.info("User %s deleted issue %s", identity.id, issue.id)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def list_comments(store: IssueStore, issue_id: str) -> list[Comment]:
    issue = get_issue_or_404(store, issue_id)
    return store.list_comments(issue.id)


def add_comment(store: IssueStore, identity: Identity, issue_id: str, payload: Any) -> Comment:
    """Add a comment to an existing issue. payload is decoded only after the lookup."""
    issue = get_issue_or_404(store, issue_id)
    data = parse_payload(CommentCreate, payload)
    comment_id = store.create_comment(Comment(issue_id=issue.id, user_id=identity.id, content=data.content))
    comment = store.get_comment(comment_id)
    if comment is None:
        raise Internal()
    return comment
