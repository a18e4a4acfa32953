"""
api/routes/users.py -- User directory for assignee pickers.

Routes (mounted under /api):
  GET /users  -- every account as {id, email, role}; any authenticated user

Password hashes never leave auth/store.py: UserResponse has no hash field.
"""

from fastapi import APIRouter, Depends, Request

from api.models import UserResponse
from auth.dependencies import current_identity
from auth.models import Identity
from auth.store import UserStore

router = APIRouter()


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, identity: Identity = Depends(current_identity)) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]
