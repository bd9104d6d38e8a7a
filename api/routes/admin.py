"""
api/routes/admin.py -- Account management. Every route requires the admin role.

Routes:
  GET    /api/admin/users             -- list accounts (?role=student|faculty|admin)
  POST   /api/admin/users             -- create an account
  GET    /api/admin/users/{user_id}   -- one account
  PATCH  /api/admin/users/{user_id}   -- change role, active flag, profile or password
  DELETE /api/admin/users/{user_id}   -- delete an account

Guards:
  An admin cannot deactivate, demote or delete their own account.
  The last active admin cannot be deactivated, demoted or deleted.
  Deactivating, deleting, re-roling or resetting the password of an account
  destroys all of its sessions so the change takes effect immediately.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import RoleEnum, UserCreate, UserPatch, UserResponse
from auth.dependencies import require_admin
from auth.models import User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import hash_password
from core.errors import AppError, ErrorKind

logger = logging.getLogger("studyshala.api.admin")

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, role: Optional[RoleEnum] = None) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    users = user_store.list_users(role=role.value if role else None)
    return [UserResponse.from_user(u) for u in users]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    """Create an account with a local password."""
    user_store: UserStore = request.app.state.user_store
    new_user = User(
        username=body.username,
        role=body.role.value,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
        email=body.email,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise AppError(ErrorKind.CONFLICT, "A user with that username already exists.") from exc

    logger.info("Created %s account %s", new_user.role, new_user.username)
    return UserResponse.from_user(_get_or_404(user_store, user_id))


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    return UserResponse.from_user(_get_or_404(user_store, user_id))


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    session_store: SessionStore = request.app.state.session_store
    target = _get_or_404(user_store, user_id)

    updates: dict = {}
    revoke_sessions = False

    if body.role is not None and body.role.value != target.role:
        if target.role == "admin":
            _guard_admin_removal(user_store, target, current_user, "change the role of")
        updates["role"] = body.role.value
        revoke_sessions = True

    if body.is_active is not None and body.is_active != target.is_active:
        if not body.is_active and target.role == "admin":
            _guard_admin_removal(user_store, target, current_user, "deactivate")
        updates["is_active"] = body.is_active
        revoke_sessions = revoke_sessions or not body.is_active

    if body.full_name is not None:
        updates["full_name"] = body.full_name
    if body.email is not None:
        updates["email"] = body.email
    if body.password is not None:
        updates["hashed_password"] = hash_password(body.password)
        revoke_sessions = True

    if not updates:
        raise AppError(ErrorKind.BAD_REQUEST, "No fields to update.")

    user_store.update_user(user_id, **updates)
    if revoke_sessions:
        session_store.destroy_for_user(user_id)
    logger.info("Admin %s updated user %s (%s)", current_user.username, target.username, ", ".join(sorted(updates)))
    return UserResponse.from_user(_get_or_404(user_store, user_id))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_admin),
) -> Response:
    user_store: UserStore = request.app.state.user_store
    session_store: SessionStore = request.app.state.session_store
    target = _get_or_404(user_store, user_id)

    if target.role == "admin":
        _guard_admin_removal(user_store, target, current_user, "delete")

    user_store.delete_user(user_id)
    session_store.destroy_for_user(user_id)
    logger.info("Admin %s deleted user %s", current_user.username, target.username)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_or_404(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise AppError(ErrorKind.NOT_FOUND, "User not found.")
    return user


def _guard_admin_removal(user_store: UserStore, target: User, current_user: User, action: str) -> None:
    """Refuse to take admin rights away from the caller or from the last active admin."""
    if target.id == current_user.id:
        raise AppError(ErrorKind.BAD_REQUEST, f"You cannot {action} your own account.")
    if target.is_active and user_store.count_active_admins() <= 1:
        raise AppError(ErrorKind.BAD_REQUEST, f"Cannot {action} the last active admin account.")
