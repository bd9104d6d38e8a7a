"""
core/database.py -- The process-wide SQLAlchemy engine.

One Engine is created at startup (api/main.py lifespan, or main.py for CLI
commands) and handed to every store. Stores never create engines of their
own, so there is exactly one connection pool per process and one place that
disposes it on shutdown.

Usage:
    engine = connect("sqlite:///studyshala.db")
    users = UserStore(engine)
    sessions = SessionStore(engine)
    ...
    engine.dispose()
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def connect(db_url: str) -> Engine:
    """Create the shared engine for db_url."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # TestClient and the threadpool call stores from worker threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine

