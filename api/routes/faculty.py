"""
api/routes/faculty.py -- Routes for teaching staff.

Routes:
  GET /api/faculty/profile   -- the faculty member's own account
  GET /api/faculty/students  -- active student accounts (faculty or admin)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import UserResponse
from auth.dependencies import require_faculty, require_roles
from auth.models import User
from auth.store import UserStore

router = APIRouter(prefix="/faculty")


@router.get("/profile", response_model=UserResponse)
def profile(current_user: User = Depends(require_faculty)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.get("/students", response_model=list[UserResponse])
def list_students(
    request: Request,
    current_user: User = Depends(require_roles("faculty", "admin")),
) -> list[UserResponse]:
    """Active students ordered by username. Deactivated accounts are hidden."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users(role="student", active_only=True)]
