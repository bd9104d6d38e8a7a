"""
auth/models.py -- Domain dataclasses for authentication entities.

Pure data containers. Stores and routes do the work.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ROLES: tuple[str, ...] = ("student", "faculty", "admin")


@dataclass
class User:
    """A principal: an account that can log in with a role.

    username is the unique login identifier (roll number, staff id or email).
    hashed_password is a bcrypt hash; it never leaves the auth layer.
    """

    username: str
    role: str  # "student", "faculty", "admin"
    id: int | None = None
    hashed_password: str | None = None
    full_name: str | None = None
    email: str | None = None
    created_at: str | None = None
    last_login: str | None = None
    is_active: bool = True


@dataclass
class Session:
    """Server-side login state referenced by the studyshala.sid cookie.

    The cookie only carries sid. Lifetime is absolute: expires_at is fixed at
    creation and never extended by activity.
    """

    sid: str
    user_id: int
    role: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
