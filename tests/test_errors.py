"""
tests/test_errors.py -- The terminal error boundary.

Coverage:
  - Unmatched routes -> 404 {"message": "Route not found"} exactly
  - Known path with the wrong method -> the same 404 (a route is method + path)
  - Both are logged with outcome=not_found; a 404 raised by a route is handled
  - Validation errors -> 422 {"message": ...} naming fields, not values
  - AppError raised in a handler -> its status and message
  - Unexpected exceptions (sync and async handlers) -> 500 with a generic
    message; the traceback is logged, never returned, and allowed origins
    still get their CORS headers on the 500

The boom routes are added to the per-test app only, so they never leak into
other tests. A second TestClient with raise_server_exceptions=False is used
for the 500 cases: the default client re-raises server errors into the test.
"""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN, AppEnv
from core.errors import AppError, ErrorKind, kind_for_status

SECRET_DETAIL = "db password is hunter2 at /srv/app/secrets.py"


def _boom_sync():
    raise RuntimeError(SECRET_DETAIL)


async def _boom_async():
    raise ValueError(SECRET_DETAIL)


def _conflict():
    raise AppError(ErrorKind.CONFLICT, "Already enrolled.")


class TestNotFound:
    @pytest.mark.parametrize("path", ["/nope", "/api/nope", "/api/auth/unknown", "/api/student/../../etc"])
    def test_unmatched_route(self, env: AppEnv, path: str) -> None:
        resp = env.client.get(path)
        assert resp.status_code == 404
        assert resp.json() == {"message": "Route not found"}

    def test_unmatched_route_post(self, env: AppEnv) -> None:
        resp = env.client.post("/api/faculty/nothing-here", json={})
        assert resp.status_code == 404
        assert resp.json() == {"message": "Route not found"}

    @pytest.mark.parametrize(
        "method,path",
        [("DELETE", "/api/health"), ("GET", "/api/auth/login"), ("PUT", "/api/auth/me")],
    )
    def test_wrong_method_is_unmatched(self, env: AppEnv, method: str, path: str) -> None:
        resp = env.client.request(method, path)
        assert resp.status_code == 404
        assert resp.json() == {"message": "Route not found"}
        assert "allow" not in resp.headers


class TestValidation:
    def test_missing_fields(self, env: AppEnv) -> None:
        resp = env.client.post("/api/auth/login", json={"username": "someone"})
        assert resp.status_code == 422
        body = resp.json()
        assert set(body) == {"message"}
        assert "password" in body["message"]

    def test_submitted_values_not_echoed(self, env: AppEnv) -> None:
        resp = env.client.post("/api/auth/login", json={"username": "x" * 300, "password": "p"})
        assert resp.status_code == 422
        assert "xxxxxxxx" not in resp.text


class TestAppError:
    def test_app_error_status_and_message(self, env: AppEnv) -> None:
        env.app.add_api_route("/api/test/conflict", _conflict)
        resp = env.client.get("/api/test/conflict")
        assert resp.status_code == 409
        assert resp.json() == {"message": "Already enrolled."}

    def test_default_messages(self) -> None:
        assert AppError(ErrorKind.UNAUTHENTICATED).status_code == 401
        assert AppError(ErrorKind.FORBIDDEN).message == "Access denied."
        assert AppError(ErrorKind.INTERNAL).status_code == 500

    def test_kind_for_status(self) -> None:
        assert kind_for_status(401) is ErrorKind.UNAUTHENTICATED
        assert kind_for_status(403) is ErrorKind.FORBIDDEN
        assert kind_for_status(405) is ErrorKind.BAD_REQUEST
        assert kind_for_status(503) is ErrorKind.INTERNAL


class TestUnhandledException:
    @pytest.mark.parametrize("handler", [_boom_sync, _boom_async], ids=["sync", "async"])
    def test_no_detail_leaks(self, env: AppEnv, caplog: pytest.LogCaptureFixture, handler) -> None:
        env.app.add_api_route("/api/test/boom", handler)
        client = TestClient(env.app, raise_server_exceptions=False)

        with caplog.at_level(logging.ERROR, logger="studyshala.api"):
            resp = client.get("/api/test/boom")

        assert resp.status_code == 500
        assert resp.json() == {"message": "Internal server error"}
        assert "hunter2" not in resp.text
        assert "Traceback" not in resp.text

        records = [r for r in caplog.records if r.name == "studyshala.api" and r.levelno >= logging.ERROR]
        assert records, "unhandled exception was not logged"
        assert records[0].exc_info is not None
        assert SECRET_DETAIL in str(records[0].exc_info[1])
        assert "/api/test/boom" in records[0].getMessage()

    def test_cors_headers_survive_500(self, env: AppEnv) -> None:
        """A browser on an allowed origin must be able to read the error body."""
        env.app.add_api_route("/api/test/boom", _boom_sync)
        client = TestClient(env.app, raise_server_exceptions=False)

        resp = client.get("/api/test/boom", headers={"Origin": "http://localhost:5173"})

        assert resp.status_code == 500
        assert resp.json() == {"message": "Internal server error"}
        assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert resp.headers["access-control-allow-credentials"] == "true"


class TestOutcomeTags:
    def _outcome(self, caplog: pytest.LogCaptureFixture, path: str) -> str:
        line = next(r.getMessage() for r in caplog.records if r.name == "studyshala.api" and f" {path} " in r.getMessage())
        return line.split("outcome=")[1].split()[0]

    def test_unmatched_paths_and_methods(self, env: AppEnv, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="studyshala.api"):
            env.client.get("/api/nope")
            env.client.get("/api/auth/login")
        assert self._outcome(caplog, "/api/nope") == "not_found"
        assert self._outcome(caplog, "/api/auth/login") == "not_found"

    def test_route_404_is_handled(self, env: AppEnv, caplog: pytest.LogCaptureFixture) -> None:
        headers = env.bearer(ADMIN)
        with caplog.at_level(logging.INFO, logger="studyshala.api"):
            resp = env.client.get("/api/admin/users/99999", headers=headers)
        assert resp.status_code == 404
        assert self._outcome(caplog, "/api/admin/users/99999") == "handled"
