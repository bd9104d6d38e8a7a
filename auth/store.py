"""
auth/store.py -- Principal accounts in SQL.

UserStore is the only code that reads or writes the users table; routes,
dependencies and the CLI go through it. Rows are mapped to auth.models.User
by _row_to_user.

Writes run inside engine.begin() so each call is its own transaction. Every
statement is built with SQLAlchemy Core, so values are always bound
parameters.

The engine belongs to the caller (core/database.py), which disposes it.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import User

_metadata = MetaData()

users_table = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),
    Column("role", String(30), nullable=False, server_default="student"),
    Column("full_name", String(255)),
    Column("email", String(255)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

# Columns update_user() may touch. id, username and timestamps are fixed.
EDITABLE_COLUMNS = frozenset({"role", "is_active", "hashed_password", "full_name", "email"})


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserStore:
    """Repository for User entities.

    Usage:
        users = UserStore(engine)
        new_id = users.create_user(User(username="roll-042", role="student", hashed_password=h))
        users.get_by_username("roll-042")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(engine)

    # -- reads -----------------------------------------------------------

    def _one(self, *criteria) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(users_table).where(*criteria)).first()
        return None if row is None else _row_to_user(row)

    def get_by_id(self, user_id: int) -> User | None:
        return self._one(users_table.c.id == user_id)

    def get_by_username(self, username: str) -> User | None:
        """Exact, case-sensitive match."""
        return self._one(users_table.c.username == username)

    def list_users(self, role: str | None = None, active_only: bool = False) -> list[User]:
        """Users sorted by username, optionally narrowed to one role and/or active accounts."""
        stmt = select(users_table).order_by(users_table.c.username)
        if role is not None:
            stmt = stmt.where(users_table.c.role == role)
        if active_only:
            stmt = stmt.where(users_table.c.is_active == 1)
        with self.engine.connect() as conn:
            return [_row_to_user(row) for row in conn.execute(stmt)]

    def _count(self, *criteria) -> int:
        stmt = select(func.count()).select_from(users_table)
        if criteria:
            stmt = stmt.where(*criteria)
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    def has_users(self) -> bool:
        return self._count() > 0

    def count_active_admins(self) -> int:
        return self._count(users_table.c.role == "admin", users_table.c.is_active == 1)

    # -- writes ----------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert user and return the new id.

        A taken username raises sqlalchemy.exc.IntegrityError.
        """
        values = {
            "username": user.username,
            "hashed_password": user.hashed_password,
            "role": user.role,
            "full_name": user.full_name,
            "email": user.email,
            "is_active": int(user.is_active),
            "created_at": _timestamp(),
        }
        with self.engine.begin() as conn:
            result = conn.execute(users_table.insert().values(**values))
        return result.inserted_primary_key[0]

    def update_user(self, user_id: int, **changes) -> bool:
        """Apply changes (a subset of EDITABLE_COLUMNS). False if user_id does not exist."""
        rejected = changes.keys() - EDITABLE_COLUMNS
        if rejected:
            raise ValueError(f"Cannot update user columns: {sorted(rejected)}")
        if not changes:
            return False
        if "is_active" in changes:
            changes["is_active"] = int(bool(changes["is_active"]))
        return self._write(users_table.update().where(users_table.c.id == user_id).values(**changes))

    def update_last_login(self, user_id: int) -> None:
        self._write(users_table.update().where(users_table.c.id == user_id).values(last_login=_timestamp()))

    def delete_user(self, user_id: int) -> bool:
        """Remove the row. Session cleanup and the last-admin rule are the caller's job."""
        return self._write(users_table.delete().where(users_table.c.id == user_id))

    def _write(self, stmt) -> bool:
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount > 0


def _row_to_user(row) -> User:
    data = dict(row._mapping)
    data["is_active"] = bool(data["is_active"])
    return User(**data)
