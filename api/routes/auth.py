"""
api/routes/auth.py -- Login, logout and the current principal.

Routes:
  POST /api/auth/login            -- password login; opens a session, sets cookie, returns bearer token
  POST /api/auth/logout           -- destroys the session (cookie and bearer alike)
  GET  /api/auth/me               -- current principal (requires auth)
  POST /api/auth/change-password  -- requires auth and the current password

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  authenticate_user() provides timing equalization -- use it, never inline.
  Any session already attached to the browser is destroyed before a new one
  is opened, so a planted cookie cannot be upgraded by a victim's login.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MessageResponse, PasswordChange, UserResponse
from auth.dependencies import get_current_user, presented_session_ids
from auth.models import User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token, hash_password, verify_password
from core.config import get_settings
from core.errors import AppError, ErrorKind

logger = logging.getLogger("studyshala.api.auth")

router = APIRouter(prefix="/auth")


@limiter.limit(get_settings().login_rate_limit)
@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password.

    Returns the same message for unknown username, wrong password and
    deactivated account to avoid leaking which usernames exist.
    """
    user_store: UserStore = request.app.state.user_store
    session_store: SessionStore = request.app.state.session_store

    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        logger.info("Failed login for %r", body.username)
        raise AppError(ErrorKind.UNAUTHENTICATED, "Invalid username or password.")

    for previous_sid in presented_session_ids(request):
        session_store.destroy(previous_sid)

    session = session_store.create(user)
    request.session.clear()
    request.session["sid"] = session.sid
    user_store.update_last_login(user.id)
    logger.info("User %s (%s) logged in", user.username, user.role)

    refreshed = user_store.get_by_id(user.id) or user
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=create_access_token(session, user.username, request.app.state.settings.session_secret),
            expires_in=int((session.expires_at - session.created_at).total_seconds()),
            user=UserResponse.from_user(refreshed),
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request) -> MessageResponse:
    """End the current session. Public: logging out twice is not an error."""
    session_store: SessionStore = request.app.state.session_store
    for sid in presented_session_ids(request):
        session_store.destroy(sid)
    request.session.clear()
    return MessageResponse(message="Logged out.")


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: PasswordChange,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Replace the caller's password and sign out every other session."""
    if not current_user.hashed_password or not verify_password(body.current_password, current_user.hashed_password):
        raise AppError(ErrorKind.BAD_REQUEST, "Current password is incorrect.")

    user_store: UserStore = request.app.state.user_store
    session_store: SessionStore = request.app.state.session_store

    user_store.update_user(current_user.id, hashed_password=hash_password(body.new_password))
    session_store.destroy_for_user(current_user.id, keep=request.state.session.sid)
    return MessageResponse(message="Password updated.")
