#!/usr/bin/env python3
"""
StudyShala backend -- command line entry point.

Usage:
  python main.py                                   # same as "serve"
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py create-user admin --role admin --name "Site Admin"
  python main.py create-user roll-042 --role student --email s42@example.edu

Environment variables (see core/config.py for the full list):
  PORT            Listen port for "serve" (default 5000).
  APP_ENV         "production" enables secure cookies and strict secrets. NODE_ENV is also accepted.
  SESSION_SECRET  Cookie/token signing secret, at least 32 characters. Required in production.
  FRONTEND_URL    Production browser origin added to the CORS allow-list.
  DATABASE_URL    SQLAlchemy URL (default: sqlite file next to this script).
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from core.config import get_settings
from core.logs import configure_logging

logger = logging.getLogger("studyshala.cli")

_ROLES = ("student", "faculty", "admin")


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    port = args.port or settings.port
    logger.info("Server running on port %d", port)
    logger.info("Health check -> /api/health")
    # proxy_headers: the app runs behind a TLS-terminating proxy in production,
    # so the client scheme/IP must come from X-Forwarded-* for secure cookies
    # and per-IP rate limits to work.
    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=port,
        reload=args.reload,
        proxy_headers=True,
        forwarded_allow_ips=args.forwarded_allow_ips,
        log_config=None,
    )
    return 0


def _read_password() -> Optional[str]:
    password = getpass.getpass("Password: ")
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return None
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return None
    return password


def _create_user(args: argparse.Namespace) -> int:
    from sqlalchemy.exc import IntegrityError

    from auth.models import User
    from auth.store import UserStore
    from auth.tokens import hash_password
    from core.database import connect

    password = _read_password()
    if password is None:
        return 1

    engine = connect(get_settings().database_url)
    try:
        store = UserStore(engine)
        user = User(
            username=args.username.strip(),
            role=args.role,
            hashed_password=hash_password(password),
            full_name=args.name,
            email=args.email,
        )
        try:
            user_id = store.create_user(user)
        except IntegrityError:
            print(f"  [!] A user named '{user.username}' already exists.")
            return 1
    finally:
        engine.dispose()

    print(f"  Created {args.role} '{user.username}' (id {user_id}).")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="StudyShala backend: session-authenticated REST API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP server (default).")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default 0.0.0.0).")
    serve.add_argument("--port", type=int, default=None, help="Listen port (default: $PORT or 5000).")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only).")
    serve.add_argument(
        "--forwarded-allow-ips",
        default="*",
        help="Proxies trusted for X-Forwarded-* headers (default: any).",
    )
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create an account (prompts for the password).")
    create.add_argument("username", help="Unique login name.")
    create.add_argument("--role", choices=_ROLES, default="student", help="Account role (default student).")
    create.add_argument("--name", default=None, help="Full name.")
    create.add_argument("--email", default=None, help="Email address.")
    create.set_defaults(func=_create_user)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["serve", *(argv or [])])

    configure_logging(get_settings().log_dir)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
