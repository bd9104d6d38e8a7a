"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Every authenticated request resolves to a server-side session. The session
id arrives in one of two ways, tried in this order:
  1. Session cookie ("studyshala.sid") -- browser clients.
  2. Authorization: Bearer <token> header -- the API client; the JWT carries
     the same sid.
  If the cookie names a dead session the bearer token is still tried.

Both converge on SessionStore.get(sid) and then UserStore.get_by_id(). A
missing session, an expired session or a principal that no longer exists (or
was deactivated) all degrade to "unauthenticated" -- never an exception.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() raises AppError(UNAUTHENTICATED) -> 401.
require_roles(...) additionally raises AppError(FORBIDDEN) -> 403.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request

from auth.models import User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import decode_access_token
from core.errors import AppError, ErrorKind

logger = logging.getLogger("studyshala.auth")


def presented_session_ids(request: Request) -> list[str]:
    """Session ids carried by the request, cookie first, then bearer token."""
    sids: list[str] = []

    # 1. Cookie (browser)
    cookie_sid = request.session.get("sid")
    if isinstance(cookie_sid, str) and cookie_sid:
        sids.append(cookie_sid)

    # 2. Authorization: Bearer header (API client)
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        payload = decode_access_token(auth_header[7:], request.app.state.settings.session_secret)
        if payload and payload["sid"] not in sids:
            sids.append(payload["sid"])
    return sids


def _forget_cookie(request: Request, sid: str) -> None:
    # Stale cookie: drop it so the browser stops sending it.
    if request.session.get("sid") == sid:
        request.session.clear()


def try_get_current_user(request: Request) -> User | None:
    """Restore the principal for this request, or return None.

    Each presented sid is tried in order, so a dead cookie does not hide a
    valid bearer token. On success the live Session is stored on
    request.state.session so handlers (logout, change-password) can refer
    to it.
    """
    session_store: SessionStore = request.app.state.session_store
    user_store: UserStore = request.app.state.user_store

    for sid in presented_session_ids(request):
        session = session_store.get(sid)
        if session is None:
            _forget_cookie(request, sid)
            continue

        user = user_store.get_by_id(session.user_id)
        if user is None or not user.is_active:
            logger.info("Session %s… refers to missing or inactive user %s", sid[:8], session.user_id)
            session_store.destroy(sid)
            _forget_cookie(request, sid)
            continue

        request.state.session = session
        return user
    return None


def get_current_user(request: Request) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise AppError(ErrorKind.UNAUTHENTICATED)
    return user


def require_roles(*roles: str) -> Callable[[Request], User]:
    """Build a dependency that admits only principals whose role is in roles.

    Use as a FastAPI dependency:
        @router.get("/students")
        def route(user: User = Depends(require_roles("faculty", "admin"))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        if user.role not in allowed:
            raise AppError(ErrorKind.FORBIDDEN)
        return user

    dependency.__name__ = f"require_{'_or_'.join(sorted(allowed))}"
    return dependency


require_admin = require_roles("admin")
require_faculty = require_roles("faculty")
require_student = require_roles("student")
