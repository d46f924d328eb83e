"""
HTTP client for the TaskHub API.

Keeps the access token in memory and the refresh token in the session's
cookie jar. When a request comes back 401 the client refreshes the access
token once and retries that request exactly once. Refreshes are
single-flight: concurrent callers that hit a 401 together wait for the one
refresh already in progress instead of starting their own.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional

import requests

from ..utils.logger import get_logger

logger = get_logger(__name__)


class ApiError(Exception):
    """Non-success response from the API"""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class _Call:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None


class SingleFlight:
    """Run at most one call at a time; concurrent callers share its outcome."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._inflight: Optional[_Call] = None

    def do(self, fn: Callable[[], Any]) -> Any:
        with self._lock:
            call = self._inflight
            leader = call is None
            if leader:
                call = self._inflight = _Call()

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result

        try:
            call.result = fn()
        except BaseException as e:
            call.error = e
            raise
        finally:
            with self._lock:
                self._inflight = None
            call.done.set()
        return call.result


class TaskHubClient:
    def __init__(self, base_url: str = "http://localhost:5000/api/v1", session: Optional[Any] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self._refresh_flight = SingleFlight()
        self._token_lock = threading.Lock()

    # Transport

    def _send(self, method: str, path: str, authenticated: bool, **kwargs: Any):
        headers: Dict[str, str] = dict(kwargs.pop("headers", None) or {})
        if authenticated and self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return self.session.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)

    @staticmethod
    def _unwrap(response) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400 or not body.get("success", False):
            raise ApiError(response.status_code, body.get("message") or "Request failed")
        return body.get("data")

    def _request(self, method: str, path: str, authenticated: bool = True, **kwargs: Any) -> Any:
        sent_with = self.access_token
        response = self._send(method, path, authenticated, **kwargs)
        if response.status_code == 401 and authenticated:
            try:
                self._fresh_access_token(stale=sent_with)
            except ApiError:
                self.clear_tokens()
                raise ApiError(401, "Session expired")
            response = self._send(method, path, authenticated, **kwargs)
        return self._unwrap(response)

    def _fresh_access_token(self, stale: Optional[str]) -> str:
        # Another caller may have refreshed while our request was in flight.
        with self._token_lock:
            if self.access_token and self.access_token != stale:
                return self.access_token
        return self._refresh_flight.do(self._do_refresh)

    def _do_refresh(self) -> str:
        logger.debug("Refreshing access token")
        data = self._unwrap(self._send("POST", "/auth/refresh-token", authenticated=False))
        with self._token_lock:
            self.access_token = data["accessToken"]
        return self.access_token

    def clear_tokens(self) -> None:
        with self._token_lock:
            self.access_token = None
            self.refresh_token = None

    def _store_tokens(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._token_lock:
            self.access_token = data["accessToken"]
            self.refresh_token = data.get("refreshToken")
        return data

    # Auth

    def signup(self, name: str, email: str, password: str) -> Dict[str, Any]:
        data = self._request(
            "POST", "/auth/signup", authenticated=False,
            json={"name": name, "email": email, "password": password},
        )
        return self._store_tokens(data)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request(
            "POST", "/auth/login", authenticated=False, json={"email": email, "password": password}
        )
        return self._store_tokens(data)

    def refresh(self) -> str:
        return self._refresh_flight.do(self._do_refresh)

    def logout(self) -> None:
        self._request("POST", "/auth/logout", authenticated=False)
        self.clear_tokens()

    def profile(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/profile")

    # Tasks

    def list_tasks(self, **query: Any) -> Dict[str, Any]:
        return self._request("GET", "/tasks", params=query or None)

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/tasks/{task_id}")

    def create_task(self, **fields: Any) -> Dict[str, Any]:
        return self._request("POST", "/tasks", json=fields)

    def update_task(self, task_id: str, **fields: Any) -> Dict[str, Any]:
        return self._request("PUT", f"/tasks/{task_id}", json=fields)

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/tasks/{task_id}")

    # Users

    def list_users(self, **query: Any) -> Dict[str, Any]:
        return self._request("GET", "/users", params=query or None)

    def get_user(self, user_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/users/{user_id}")

    def update_user(self, user_id: str, **fields: Any) -> Dict[str, Any]:
        return self._request("PUT", f"/users/{user_id}", json=fields)

    def delete_user(self, user_id: str) -> None:
        self._request("DELETE", f"/users/{user_id}")
