"""
auth/tokens.py -- Password hashing, credential checks and bearer tokens.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether a username exists.

  Bearer tokens: python-jose with HS256, signed with the running app's
       SESSION_SECRET (the same key that signs the session cookie). A token
       is only a second transport for a server-side session: it carries the
       session id (sid claim) and expires with it. Validating a token never
       authenticates on its own -- the sid must still resolve to a live
       session in SessionStore, so logout revokes cookie and token together.

Layer rule: no imports from api/ or client/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

if TYPE_CHECKING:
    from auth.models import Session, User
    from auth.store import UserStore

logger = logging.getLogger("studyshala.auth")

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes; the API caps passwords at 128
    characters and the request models reject anything longer.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the DB
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("studyshala_timing_dummy")


# ---------------------------------------------------------------------------
# Local credential strategy
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Check a username/password pair with timing equalization.

    bcrypt runs whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any failure. Callers must show the
    same message for every failure.
    """
    user = store.get_by_username(username)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


# ---------------------------------------------------------------------------
# Bearer token encode / decode
# ---------------------------------------------------------------------------


def create_access_token(session: Session, username: str, secret: str) -> str:
    """Encode a JWT naming session.sid, signed with secret and expiring with the session."""
    payload = {
        "sub": username,
        "sid": session.sid,
        "user_id": session.user_id,
        "role": session.role,
        "iat": session.created_at,
        "exp": session.expires_at,
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Any invalid token is treated as unauthenticated; the dependency layer
    turns that into a 401.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("sid"), str):
        return None
    return payload
