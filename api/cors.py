"""
api/cors.py -- Origin allow-list gate.

Starlette's CORSMiddleware only decides which response headers to add; a
request from a foreign origin still reaches the route handler. This gate runs
outside it and refuses such requests outright:

  no Origin header         -> allowed (same-origin navigation, curl, scripts)
  Origin in allow-list     -> allowed; CORSMiddleware adds the headers
  any other Origin         -> 403 {"message": "Not allowed by CORS"}

Written as a plain ASGI middleware, like Starlette's own CORSMiddleware, so
the rejection happens before the body is read or the session is decoded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from api.boundary import error_response
from core.errors import AppError, ErrorKind

logger = logging.getLogger("studyshala.api.cors")


class OriginPolicy:
    """Exact-match allow-list of browser origins, fixed at construction."""

    def __init__(self, allowed_origins: Iterable[str]) -> None:
        self.allowed_origins: tuple[str, ...] = tuple(o for o in allowed_origins if o)

    def is_allowed(self, origin: str | None) -> bool:
        if not origin:
            return True
        return origin in self.allowed_origins


class OriginGateMiddleware:
    def __init__(self, app: ASGIApp, policy: OriginPolicy) -> None:
        self.app = app
        self.policy = policy

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        if self.policy.is_allowed(origin):
            await self.app(scope, receive, send)
            return

        logger.warning("Rejected %s %s from origin %s", scope["method"], scope["path"], origin)
        response = error_response(AppError(ErrorKind.CORS_REJECTED))
        await response(scope, receive, send)
