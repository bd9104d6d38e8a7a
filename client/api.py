"""
client/api.py -- HTTP client for the StudyShala API.

A thin wrapper around requests.Session with two interceptors:

  request  -- StoredTokenAuth attaches "Authorization: Bearer <token>" to
              every outgoing request when storage holds a token. It reads the
              token at send time, so a login or logout elsewhere is picked up
              by the next call.

  response -- a session response hook. A 401 means the server no longer
              accepts our credentials: "token" and "user" are removed from
              storage and the navigator is sent to /login, unless it is
              already on a login page (otherwise a failing call made by the
              login page itself would loop).

Every non-2xx response raises requests.HTTPError from ApiClient.request();
connection errors and timeouts propagate unchanged. There are no retries.

An explicit base_url argument is the complete API base (for example
"http://localhost:5000/api") and is used as given. Without one, the server
root is resolved (first match wins) and "/api" is appended:
  1. API_URL / VITE_API_URL from the environment
  2. http://localhost:5000 when the page the client serves is on localhost
  3. the production API
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlsplit

import requests
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from client.storage import MemoryStorage, TokenStorage

logger = logging.getLogger("studyshala.client")

DEFAULT_TIMEOUT = 10  # seconds
LOCAL_API_URL = "http://localhost:5000"
PRODUCTION_API_URL = "https://studyshala-backend.onrender.com"
LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})

LOGIN_PATH = "/login"
# Pages on which a 401 must not trigger navigation.
LOGIN_PAGES = frozenset({"/login", "/admin/login"})


class ClientSettings(BaseSettings):
    """Client-side configuration. Independent of the server's Settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    api_url: str = Field(default="", validation_alias=AliasChoices("API_URL", "VITE_API_URL"))


def resolve_base_url(configured: Optional[str] = None, page_host: Optional[str] = None) -> str:
    """Return the API base URL ending in /api."""
    if configured:
        root = configured.rstrip("/")
    elif page_host in LOCAL_HOSTS:
        root = LOCAL_API_URL
    else:
        root = PRODUCTION_API_URL
    return f"{root}/api"


class Navigator:
    """Tracks which page the client is on; the stand-in for window.location.

    origin is the page's scheme://host[:port]; current_path is its path.
    Subclass and override go() to hook real navigation (a GUI router, a
    prompt that asks for credentials again, ...).
    """

    def __init__(self, origin: Optional[str] = None, current_path: str = "/") -> None:
        self.origin = origin
        self.current_path = current_path

    @property
    def host(self) -> Optional[str]:
        return urlsplit(self.origin).hostname if self.origin else None

    def go(self, path: str) -> None:
        logger.info("Navigating from %s to %s", self.current_path, path)
        self.current_path = path


class StoredTokenAuth(requests.auth.AuthBase):
    """Request interceptor: attach the stored bearer token, if any."""

    def __init__(self, storage: TokenStorage) -> None:
        self.storage = storage

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        token = self.storage.get("token")
        if token:
            r.headers["Authorization"] = f"Bearer {token}"
        return r


class ApiClient:
    """Session-aware client for /api.

    Usage:
        api = ApiClient(storage=FileStorage(Path.home() / ".studyshala" / "credentials.json"))
        api.login("roll-042", "secret")
        profile = api.get("/student/profile").json()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        storage: Optional[TokenStorage] = None,
        navigator: Optional[Navigator] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.navigator = navigator if navigator is not None else Navigator()
        self.timeout = timeout
        self.base_url = (
            base_url.rstrip("/")
            if base_url
            else resolve_base_url(ClientSettings().api_url, self.navigator.host)
        )

        self.session = session or requests.Session()
        self.session.headers["Content-Type"] = "application/json"
        self.session.auth = StoredTokenAuth(self.storage)
        self.session.hooks["response"].append(self._handle_response)

    # ------------------------------------------------------------------
    # Interceptors
    # ------------------------------------------------------------------

    def _handle_response(self, response: requests.Response, *args, **kwargs) -> requests.Response:
        if response.status_code == 401:
            self.storage.remove("token")
            self.storage.remove("user")
            if self.navigator.current_path not in LOGIN_PAGES:
                self.navigator.go(LOGIN_PATH)
        return response

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send a request relative to base_url. Raises requests.HTTPError on non-2xx."""
        kwargs.setdefault("timeout", self.timeout)
        response = self.session.request(method, self.url(path), **kwargs)
        response.raise_for_status()
        return response

    def get(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("DELETE", path, **kwargs)

    # ------------------------------------------------------------------
    # Session helpers
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> dict:
        """Log in, persist token and user, and return the user dict."""
        data = self.post("/auth/login", json={"username": username, "password": password}).json()
        self.storage.set("token", data["token"])
        self.storage.set("user", data["user"])
        return data["user"]

    def logout(self) -> None:
        """End the server session and forget local credentials, even if the call fails."""
        try:
            self.post("/auth/logout")
        finally:
            self.storage.remove("token")
            self.storage.remove("user")

    @property
    def current_user(self) -> Optional[dict]:
        return self.storage.get("user")

    def close(self) -> None:
        self.session.close()
