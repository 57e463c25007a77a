"""HTTP gateway to the external clinic backend.

Every backend call goes through :class:`ApiClient`. The client replays the
browser's backend session cookies, decodes JSON bodies and turns failures into
:class:`ApiError` subclasses after applying the cross-cutting response policy:

* 401 outside ``/auth/me`` and ``/auth/logout`` drops the cached user and
  sends :data:`~nutriweb.app.signals.session_invalidated`;
* 400 validation responses (field ``errors``, or any ``/auth/`` 400 carrying a
  message) are expected and not logged;
* 5xx responses are logged as unexpected server errors.

Nothing is retried.
"""
from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import urljoin

import requests
from flask import current_app, g, session

from nutriweb.app.signals import session_invalidated
from nutriweb.app.state.keys import USER_KEY

LOGGER = logging.getLogger(__name__)

BACKEND_COOKIES_SESSION_KEY = "backend_cookies"

_COOLDOWN_PATTERN = re.compile(r"(\d+)\s+seconds")


class ApiError(RuntimeError):
    """Raised when the backend answers with an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        payload: Any = None,
        url: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload
        self.url = url

    @property
    def field_errors(self) -> dict[str, str]:
        """Return field-level messages carried by a validation payload."""

        if not isinstance(self.payload, dict):
            return {}
        raw = self.payload.get("errors")
        if isinstance(raw, dict):
            return {str(key): _first_message(value) for key, value in raw.items()}
        if isinstance(raw, list):
            errors: dict[str, str] = {}
            for item in raw:
                if isinstance(item, dict) and item.get("field"):
                    errors[str(item["field"])] = str(item.get("message") or "")
            return errors
        return {}


class ValidationError(ApiError):
    """HTTP 400 with field-level messages."""


class AuthenticationError(ApiError):
    """HTTP 401: the backend session is missing or invalid."""


class NotFoundError(ApiError):
    """HTTP 404."""


class RateLimitError(ApiError):
    """HTTP 429. ``retry_after`` is parsed from the backend message."""

    @property
    def retry_after(self) -> int | None:
        return parse_cooldown_seconds(self.message)


class ServerError(ApiError):
    """HTTP 5xx."""


class NetworkError(ApiError):
    """The request was sent but no response was received."""


def parse_cooldown_seconds(message: str | None) -> int | None:
    """Extract ``N`` from messages such as ``"Please wait 42 seconds"``."""

    if not message:
        return None
    match = _COOLDOWN_PATTERN.search(message)
    if not match:
        return None
    return int(match.group(1))


def _first_message(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return str(value[0]) if value else ""
    return str(value)


def _decode_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _message_from(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    elif isinstance(payload, str) and payload.strip():
        return payload.strip()
    return fallback


def error_for_response(status: int, payload: Any, url: str) -> ApiError:
    """Build the :class:`ApiError` subclass matching ``status``."""

    message = _message_from(payload, f"Request failed with status {status}")
    if status == 400:
        cls: type[ApiError] = ValidationError
    elif status == 401:
        cls = AuthenticationError
    elif status == 404:
        cls = NotFoundError
    elif status == 429:
        cls = RateLimitError
    elif status >= 500:
        cls = ServerError
    else:
        cls = ApiError
    return cls(message, status=status, payload=payload, url=url)


class ApiClient:
    """Session-cookie aware JSON client for the clinic backend."""

    def __init__(
        self,
        base_url: str,
        *,
        cookies: dict[str, str] | None = None,
        timeout: float = 15.0,
        storage: Any = None,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.storage = storage
        self.http = http or requests.Session()
        self.http.headers.setdefault("Accept", "application/json")
        if cookies:
            self.http.cookies.update(cookies)

    def url_for(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    # ------------------------------------------------------------------
    # Verbs
    # ------------------------------------------------------------------
    def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", path, json=payload, **kwargs)

    def put(self, path: str, payload: Any = None, **kwargs: Any) -> Any:
        return self.request("PUT", path, json=payload, **kwargs)

    def patch(self, path: str, payload: Any = None, **kwargs: Any) -> Any:
        return self.request("PATCH", path, json=payload, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)

    def get_bytes(self, path: str, *, params: dict[str, Any] | None = None) -> bytes:
        return self.request("GET", path, params=params, raw=True)

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: Any = None,
        raw: bool = False,
    ) -> Any:
        """Send a request and return the decoded body (or bytes when ``raw``)."""

        url = self.url_for(path)
        if files is not None or data is not None:
            # multipart: requests sets the boundary header itself
            json = None
        if params:
            params = {key: value for key, value in params.items() if value not in (None, "")}

        try:
            response = self.http.request(
                method,
                url,
                json=json,
                params=params or None,
                data=data,
                files=files,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            LOGGER.warning("Network error calling %s %s: %s", method, url, exc)
            raise NetworkError(
                "Unable to reach the clinic backend.", status=None, url=path
            ) from exc

        if response.status_code >= 400:
            raise self._intercept(method, path, response)

        if raw:
            return response.content
        if not response.content:
            return {}
        return _decode_body(response)

    def export_cookies(self) -> dict[str, str]:
        """Return the backend cookies so they can be stored in the Flask session."""

        return requests.utils.dict_from_cookiejar(self.http.cookies)

    def clear_cookies(self) -> None:
        self.http.cookies.clear()

    # ------------------------------------------------------------------
    # Response policy
    # ------------------------------------------------------------------
    def _intercept(self, method: str, path: str, response: requests.Response) -> ApiError:
        status = response.status_code
        payload = _decode_body(response)
        error = error_for_response(status, payload, path)
        normalized = "/" + path.lstrip("/")

        if status == 401:
            if "/auth/me" not in normalized and "/auth/logout" not in normalized:
                if self.storage is not None:
                    self.storage.remove(USER_KEY)
                session_invalidated.send(self, url=normalized)
            return error

        if status == 400 and isinstance(payload, dict):
            if "/auth/" in normalized and (payload.get("errors") or payload.get("message")):
                return error
            if payload.get("errors"):
                return error

        if status >= 500:
            LOGGER.error("Server error: %s %s -> %s %s", method, normalized, status, error.message)

        return error


def get_api_client() -> ApiClient:
    """Return the request-scoped client bound to the browser's backend cookies."""

    client = g.get("api_client")
    if client is None:
        from nutriweb.app.state.context import current_storage

        client = ApiClient(
            current_app.config["BACKEND_API_URL"],
            cookies=session.get(BACKEND_COOKIES_SESSION_KEY) or {},
            timeout=current_app.config.get("BACKEND_TIMEOUT", 15.0),
            storage=current_storage(),
        )
        g.api_client = client
    return client
