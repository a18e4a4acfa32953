"""
api/routes/issues.py -- Issue and comment routes for the REST API.

Routes (mounted under /api):
  GET    /issues                 -- list with filters + pagination
  POST   /issues                 -- create (creator = acting user)
  GET    /issues/{issue_id}      -- detail
  PUT    /issues/{issue_id}      -- update (creator or admin)
  DELETE /issues/{issue_id}      -- delete (creator or admin)
  GET    /issues/{issue_id}/comments
  POST   /issues/{issue_id}/comments

All business rules live in tracker/service.py. The update and comment routes
take the body as raw bytes rather than a Pydantic model: FastAPI would
otherwise decode and validate it before the handler runs, and the service
must answer 404 and 403 before it looks at the payload, even a malformed one.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import CommentResponse, IssueListResponse, IssueResponse, MessageResponse
from auth.dependencies import current_identity
from auth.models import Identity
from core.validation import parse_payload
from tracker import service
from tracker.schemas import IssueCreate, IssueQuery

router = APIRouter()


async def raw_body(request: Request) -> bytes:
    """Read the request body without decoding it."""
    return await request.body()


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------


@router.get("/issues", response_model=IssueListResponse)
def list_issues(request: Request, identity: Identity = Depends(current_identity)) -> IssueListResponse:
    """List issues newest first.

    Query params: page, page_size (1-100), status, priority, search
    (case-insensitive substring of title or description).
    """
    query = parse_payload(IssueQuery, dict(request.query_params))
    page = service.list_issues(request.app.state.issue_store, query)
    return IssueListResponse.from_page(page)


@router.post("/issues", response_model=IssueResponse, status_code=201)
def create_issue(
    request: Request,
    body: IssueCreate,
    identity: Identity = Depends(current_identity),
) -> IssueResponse:
    issue = service.create_issue(request.app.state.issue_store, request.app.state.user_store, identity, body)
    return IssueResponse.from_issue(issue)


@router.get("/issues/{issue_id}", response_model=IssueResponse)
def get_issue(request: Request, issue_id: str, identity: Identity = Depends(current_identity)) -> IssueResponse:
    issue = service.get_issue_or_404(request.app.state.issue_store, issue_id)
    return IssueResponse.from_issue(issue)


@router.put("/issues/{issue_id}", response_model=IssueResponse)
def update_issue(
    request: Request,
    issue_id: str,
    payload: bytes = Depends(raw_body),
    identity: Identity = Depends(current_identity),
) -> IssueResponse:
    """Update title, description, status, priority, or assignee.

    Only the creator or an admin may update. Fields not sent are unchanged;
    "assigned_to": null unassigns.
    """
    issue = service.update_issue(
        request.app.state.issue_store,
        request.app.state.user_store,
        identity,
        issue_id,
        payload,
    )
    return IssueResponse.from_issue(issue)


@router.delete("/issues/{issue_id}", response_model=MessageResponse)
def delete_issue(
    request: Request,
    issue_id: str,
    identity: Identity = Depends(current_identity),
) -> MessageResponse:
    """Delete an issue and its comments. Only the creator or an admin may delete."""
    service.delete_issue(request.app.state.issue_store, identity, issue_id)
    return MessageResponse(message="Issue deleted successfully")


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.get("/issues/{issue_id}/comments", response_model=list[CommentResponse])
def list_comments(
    request: Request,
    issue_id: str,
    identity: Identity = Depends(current_identity),
) -> list[CommentResponse]:
    """Return the issue's comments, oldest first."""
    comments = service.list_comments(request.app.state.issue_store, issue_id)
    return [CommentResponse.from_comment(c) for c in comments]


@router.post("/issues/{issue_id}/comments", response_model=CommentResponse, status_code=201)
def add_comment(
    request: Request,
    issue_id: str,
    payload: bytes = Depends(raw_body),
    identity: Identity = Depends(current_identity),
) -> CommentResponse:
    """Comment on an existing issue. Any authenticated user may comment."""
    comment = service.add_comment(request.app.state.issue_store, identity, issue_id, payload)
    return CommentResponse.from_comment(comment)
