"""
web/routes.py -- Jinja2 template routes for the issue tracker web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same stores, same session codec) and call the same tracker/service.py
handlers, so authorization and validation rules are identical; only the
response shape differs. Failures re-render the form or show an error page
instead of returning the JSON envelope.

Route registration order matters. GET /issues/new must be registered before
GET /issues/{issue_id} or FastAPI captures "new" as a path parameter.

Routes:
  GET  /login                      -- login form (public)
  POST /login                      -- handle password login (public)
  GET  /signup                     -- signup form (public)
  POST /signup                     -- create account and log in (public)
  POST /logout                     -- clear cookie, redirect /login
  GET  /                           -- issue list with filters + pagination
  GET  /issues/new                 -- issue creation form
  POST /issues                     -- handle creation, 303 to /issues/{id}
  GET  /issues/{issue_id}          -- issue detail with comments
  GET  /issues/{issue_id}/edit     -- edit form (creator or admin)
  POST /issues/{issue_id}/edit     -- handle edit, 303 to /issues/{id}
  POST /issues/{issue_id}/comments -- add comment, 303 back to detail
  POST /issues/{issue_id}/delete   -- delete (creator or admin), 303 to /
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import resolve_identity
from auth.models import Identity, User
from auth.passwords import authenticate, hash_password
from auth.schemas import LoginRequest, SignupRequest
from auth.sessions import SessionCodec, clear_session_cookie, set_session_cookie
from auth.store import UserStore
from core.errors import DuplicateEmail, TrackerError, ValidationError
from core.validation import parse_payload
from tracker import service
from tracker.models import PRIORITIES, STATUSES
from tracker.schemas import IssueCreate, IssueQuery
from tracker.store import IssueStore

logger = logging.getLogger("issuetracker.web")


def _request_identity(request: Request) -> Optional[Identity]:
    return getattr(request.state, "identity", None)


templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# layout.html shows the logged-in user and the logout button. Public pages
# (login, signup) have no identity attached, so this returns None there.
templates.env.globals["current_identity"] = _request_identity
router = APIRouter()

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params on /login.
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid email or password.",
    "logged_out": "You have been logged out.",
}


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Prevents open redirect attacks where an attacker crafts a URL like:
      /login?next=https://attacker.com  or  /login?next=//attacker.com

    Both would redirect off-site after login. We only allow paths that:
    - Start with "/" (relative, server-local)
    - Do NOT start with "//" or "/\\" (browsers treat both as off-site)
    """
    if next_url and next_url.startswith("/") and not next_url.startswith(("//", "/\\")):
        return next_url
    return "/"


def _login_redirect(request: Request, user: User, next_url: str) -> RedirectResponse:
    """Redirect to next_url carrying a fresh session cookie."""
    codec: SessionCodec = request.app.state.sessions
    resp = RedirectResponse(next_url, status_code=302)
    set_session_cookie(
        resp,
        codec.issue(user.id),
        max_age=codec.ttl_seconds,
        secure=request.app.state.settings.secure_cookies,
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _error_page(request: Request, exc: TrackerError) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "error.html",
        {"status_code": exc.status_code, "message": exc.message},
        status_code=exc.status_code,
    )


def _field_errors(exc: ValidationError) -> dict[str, str]:
    """Collapse error details into {field: first message} for inline display."""
    errors: dict[str, str] = {}
    for detail in exc.details or []:
        errors.setdefault(detail.get("field") or "form", detail["message"])
    if not errors:
        errors["form"] = exc.message
    return errors


# ---------------------------------------------------------------------------
# Login / signup / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page."""
    # Public path: the gate attached nothing, so check the cookie directly.
    if resolve_identity(request) is not None:
        return RedirectResponse("/", status_code=302)

    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""), None)
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "error_msg": error_msg,
            "next_url": _safe_next(request.query_params.get("next")),
        },
    )


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
    next_param: Optional[str] = Form(default=None, alias="next"),
) -> RedirectResponse:
    """Handle the login form. Any failure sends the user back with one generic message."""
    next_url = _safe_next(next_param or request.query_params.get("next"))
    try:
        creds = parse_payload(LoginRequest, {"email": email, "password": password})
    except ValidationError:
        return RedirectResponse("/login?error=bad_credentials", status_code=302)

    user_store: UserStore = request.app.state.user_store
    user = authenticate(user_store, creds.email, creds.password)
    if user is None:
        return RedirectResponse("/login?error=bad_credentials", status_code=302)
    return _login_redirect(request, user, next_url)


@router.get("/signup", response_class=HTMLResponse)
def signup_form(request: Request) -> HTMLResponse:
    if resolve_identity(request) is not None:
        return RedirectResponse("/", status_code=302)
    return templates.TemplateResponse(request, "signup.html", {"errors": {}, "form_data": {}})


@router.post("/signup", response_class=HTMLResponse)
def signup_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
    role: str = Form(default="user"),
) -> HTMLResponse:
    """Create an account from the signup form and log it in."""
    form_data = {"email": email, "role": role}
    try:
        body = parse_payload(SignupRequest, {"email": email, "password": password, "role": role or "user"})
        user_store: UserStore = request.app.state.user_store
        user = user_store.create_user(
            email=body.email,
            hashed_password=hash_password(body.password),
            role=body.role.value,
        )
    except ValidationError as exc:
        return templates.TemplateResponse(
            request,
            "signup.html",
            {"errors": _field_errors(exc), "form_data": form_data},
            status_code=400,
        )
    except DuplicateEmail as exc:
        return templates.TemplateResponse(
            request,
            "signup.html",
            {"errors": {"email": exc.message}, "form_data": form_data},
            status_code=400,
        )

    logger.info("Signup: user %s created with role %s", user.id, user.role)
    return _login_redirect(request, user, "/")


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Clear the session cookie and redirect to the login page."""
    resp = RedirectResponse("/login?error=logged_out", status_code=302)
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# GET / -- issue list
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def issue_list(request: Request) -> HTMLResponse:
    # Empty select values arrive as "", which IssueQuery treats as "no filter".
    error_msg = None
    try:
        query = parse_payload(IssueQuery, dict(request.query_params))
    except ValidationError:
        error_msg = "Invalid filter values were ignored."
        query = IssueQuery()

    store: IssueStore = request.app.state.issue_store
    page = service.list_issues(store, query)
    return templates.TemplateResponse(
        request,
        "issues.html",
        {
            "page": page,
            "query": query,
            "statuses": STATUSES,
            "priorities": PRIORITIES,
            "error_msg": error_msg,
        },
    )


# ---------------------------------------------------------------------------
# Issue creation (GET /issues/new registered BEFORE /issues/{issue_id})
# ---------------------------------------------------------------------------


def _issue_form(
    request: Request,
    errors: dict[str, str],
    form_data: dict[str, str],
    status_code: int = 200,
    issue_id: Optional[str] = None,
) -> HTMLResponse:
    """Render the issue form: creation when issue_id is None, otherwise edit."""
    user_store: UserStore = request.app.state.user_store
    if issue_id is None:
        labels = {"heading": "New issue", "form_action": "/issues", "submit_label": "Create issue", "cancel_url": None}
    else:
        labels = {
            "heading": "Edit issue",
            "form_action": f"/issues/{issue_id}/edit",
            "submit_label": "Save changes",
            "cancel_url": f"/issues/{issue_id}",
        }
    return templates.TemplateResponse(
        request,
        "issue_form.html",
        {
            "errors": errors,
            "form_data": form_data,
            "statuses": STATUSES,
            "priorities": PRIORITIES,
            "users": user_store.list_users(),
            **labels,
        },
        status_code=status_code,
    )


@router.get("/issues/new", response_class=HTMLResponse)
def issue_create_form(request: Request) -> HTMLResponse:
    """Render the issue creation form."""
    return _issue_form(request, {}, {"status": "open", "priority": "medium"})


@router.post("/issues", response_class=HTMLResponse)
def issue_create(
    request: Request,
    title: str = Form(default=""),
    description: str = Form(default=""),
    status: str = Form(default="open"),
    priority: str = Form(default="medium"),
    assigned_to: str = Form(default=""),
) -> HTMLResponse:
    """Handle the creation form. Redirects to the new issue on success."""
    form_data = {
        "title": title,
        "description": description,
        "status": status,
        "priority": priority,
        "assigned_to": assigned_to,
    }
    identity: Identity = request.state.identity
    try:
        data = parse_payload(
            IssueCreate,
            {
                "title": title,
                "description": description,
                "status": status,
                "priority": priority,
                "assigned_to": assigned_to or None,
            },
        )
        issue = service.create_issue(
            request.app.state.issue_store,
            request.app.state.user_store,
            identity,
            data,
        )
    except ValidationError as exc:
        return _issue_form(request, _field_errors(exc), form_data, status_code=400)

    return RedirectResponse(f"/issues/{issue.id}", status_code=303)


# ---------------------------------------------------------------------------
# GET /issues/{issue_id} -- detail
# ---------------------------------------------------------------------------


def _issue_detail(
    request: Request,
    issue_id: str,
    comment_error: Optional[str] = None,
    status_code: int = 200,
) -> HTMLResponse:
    store: IssueStore = request.app.state.issue_store
    identity: Identity = request.state.identity
    try:
        issue = service.get_issue_or_404(store, issue_id)
    except TrackerError as exc:
        return _error_page(request, exc)
    return templates.TemplateResponse(
        request,
        "issue_detail.html",
        {
            "issue": issue,
            "comments": store.list_comments(issue.id),
            "can_modify": service.can_modify(identity, issue),
            "comment_error": comment_error,
        },
        status_code=status_code,
    )


@router.get("/issues/{issue_id}", response_class=HTMLResponse)
def issue_detail(request: Request, issue_id: str) -> HTMLResponse:
    return _issue_detail(request, issue_id)


@router.post("/issues/{issue_id}/comments", response_class=HTMLResponse)
def issue_comment(request: Request, issue_id: str, content: str = Form(default="")) -> HTMLResponse:
    identity: Identity = request.state.identity
    try:
        service.add_comment(request.app.state.issue_store, identity, issue_id, {"content": content})
    except ValidationError:
        return _issue_detail(request, issue_id, comment_error="Comment cannot be empty.", status_code=400)
    except TrackerError as exc:
        return _error_page(request, exc)
    return RedirectResponse(f"/issues/{issue_id}", status_code=303)


# ---------------------------------------------------------------------------
# Issue editing (creator or admin)
# ---------------------------------------------------------------------------


@router.get("/issues/{issue_id}/edit", response_class=HTMLResponse)
def issue_edit_form(request: Request, issue_id: str) -> HTMLResponse:
    """Render the edit form pre-filled with the issue's current values."""
    identity: Identity = request.state.identity
    try:
        issue = service.authorize_modify(request.app.state.issue_store, identity, issue_id, "edit")
    except TrackerError as exc:
        return _error_page(request, exc)
    form_data = {
        "title": issue.title,
        "description": issue.description,
        "status": issue.status,
        "priority": issue.priority,
        "assigned_to": issue.assigned_to or "",
    }
    return _issue_form(request, {}, form_data, issue_id=issue.id)


@router.post("/issues/{issue_id}/edit", response_class=HTMLResponse)
def issue_edit(
    request: Request,
    issue_id: str,
    title: str = Form(default=""),
    description: str = Form(default=""),
    status: str = Form(default="open"),
    priority: str = Form(default="medium"),
    assigned_to: str = Form(default=""),
) -> HTMLResponse:
    """Handle the edit form. An empty assignee unassigns the issue."""
    form_data = {
        "title": title,
        "description": description,
        "status": status,
        "priority": priority,
        "assigned_to": assigned_to,
    }
    identity: Identity = request.state.identity
    try:
        service.update_issue(
            request.app.state.issue_store,
            request.app.state.user_store,
            identity,
            issue_id,
            {**form_data, "assigned_to": assigned_to or None},
        )
    except ValidationError as exc:
        return _issue_form(request, _field_errors(exc), form_data, status_code=400, issue_id=issue_id)
    except TrackerError as exc:
        return _error_page(request, exc)
    return RedirectResponse(f"/issues/{issue_id}", status_code=303)


@router.post("/issues/{issue_id}/delete", response_class=HTMLResponse)
def issue_delete(request: Request, issue_id: str) -> HTMLResponse:
    """Delete the issue. Only the creator or an admin may delete."""
    identity: Identity = request.state.identity
    try:
        service.delete_issue(request.app.state.issue_store, identity, issue_id)
    except TrackerError as exc:
        return _error_page(request, exc)
    return RedirectResponse("/", status_code=303)
