"""
auth/sessions.py -- Server-side session records.

The browser holds a signed cookie (Starlette SessionMiddleware) whose only
content is {"sid": "<opaque id>"}. Everything else lives here:

    sid -> (user_id, role, created_at, expires_at)

Lifetime is absolute. expires_at = created_at + ttl and is never extended;
a session is valid while now < expires_at. Expired rows are treated as absent
on read and removed by purge_expired(), which api/main.py runs periodically.

Timestamps are stored as UTC epoch seconds (REAL) so expiry comparisons and
the purge DELETE are plain numeric comparisons.

The clock is injectable so expiry boundaries can be tested without sleeping.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Float, Integer, MetaData, String, Table
from sqlalchemy.engine import Engine

from auth.models import Session, User

logger = logging.getLogger("studyshala.auth.sessions")

DEFAULT_TTL_SECONDS = 24 * 60 * 60

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("sid", String(64), primary_key=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("role", String(30), nullable=False),
    Column("created_at", Float, nullable=False),
    Column("expires_at", Float, nullable=False, index=True),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Repository for Session entities.

    Usage:
        sessions = SessionStore(engine)
        session = sessions.create(user)
        sessions.get(session.sid)      # Session, or None once expired
        sessions.destroy(session.sid)
    """

    def __init__(
        self,
        engine: Engine,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.engine = engine
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        _metadata.create_all(self.engine)

    def create(self, user: User) -> Session:
        """Open a new session for user. The sid has 256 bits of entropy."""
        now = self._clock()
        session = Session(
            sid=secrets.token_urlsafe(32),
            user_id=user.id,
            role=user.role,
            created_at=now,
            expires_at=now + self.ttl,
        )
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    sid=session.sid,
                    user_id=session.user_id,
                    role=session.role,
                    created_at=session.created_at.timestamp(),
                    expires_at=session.expires_at.timestamp(),
                )
            )
            conn.commit()
        return session

    def get(self, sid: str) -> Session | None:
        """Return the live session for sid, or None if unknown or expired.

        An expired row found here is deleted on the spot.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.sid == sid)).fetchone()
        if row is None:
            return None
        session = _row_to_session(row)
        if session.is_expired(self._clock()):
            self.destroy(sid)
            return None
        return session

    def destroy(self, sid: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.sid == sid))
            conn.commit()
        return result.rowcount > 0

    def destroy_for_user(self, user_id: int, keep: str | None = None) -> int:
        """Delete every session belonging to user_id except `keep`. Returns rows removed."""
        query = _sessions.delete().where(_sessions.c.user_id == user_id)
        if keep is not None:
            query = query.where(_sessions.c.sid != keep)
        with self.engine.connect() as conn:
            result = conn.execute(query)
            conn.commit()
        return result.rowcount

    def purge_expired(self) -> int:
        """Delete all expired sessions. Returns number of rows removed."""
        cutoff = self._clock().timestamp()
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= cutoff))
            conn.commit()
        if result.rowcount:
            logger.info("Purged %d expired sessions", result.rowcount)
        return result.rowcount


def _row_to_session(row) -> Session:
    return Session(
        sid=row.sid,
        user_id=row.user_id,
        role=row.role,
        created_at=datetime.fromtimestamp(row.created_at, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(row.expires_at, tz=timezone.utc),
    )
