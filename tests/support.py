"""Shared helpers for the nutriweb test-suite."""
from __future__ import annotations

import json
import unittest
from dataclasses import dataclass, field
from typing import Any, Callable
from unittest.mock import patch

import requests

from nutriweb.app import create_app
from nutriweb.app.state.doctor_notes_store import drafts
from nutriweb.app.state.storage import ClientStorage
from nutriweb.extensions import db

BACKEND_URL = "http://backend.test/api/"

PATIENT = {
    "id": "user-1",
    "name": "Asha Patel",
    "phone": "9876543210",
    "email": "asha@example.com",
    "role": "USER",
}
ADMIN = {
    "id": "admin-1",
    "name": "Dr. Anubha",
    "phone": "9713885582",
    "email": "admin@example.com",
    "role": "ADMIN",
}


@dataclass
class Call:
    method: str
    path: str
    kwargs: dict[str, Any] = field(default_factory=dict)

    @property
    def json(self) -> Any:
        return self.kwargs.get("json")


def make_response(status: int, body: Any, url: str) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.url = url
    if isinstance(body, bytes):
        response._content = body
    elif body is None:
        response._content = b""
    else:
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    return response


class FakeHttp(requests.Session):
    """``requests.Session`` whose requests are answered by a :class:`FakeBackend`."""

    def __init__(self, backend: "FakeBackend") -> None:
        super().__init__()
        self.backend = backend

    def request(self, method, url, **kwargs):  # type: ignore[override]
        return self.backend.handle(self, method, url, **kwargs)


class FakeBackend:
    """In-memory stand-in for the clinic backend API."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[Call] = []

    def route(
        self,
        method: str,
        path: str,
        status: int = 200,
        body: Any = None,
        *,
        cookies: dict[str, str] | None = None,
    ) -> None:
        self.routes[(method.upper(), path)] = (status, body, cookies)

    def route_callable(self, method: str, path: str, handler: Callable[..., Any]) -> None:
        self.routes[(method.upper(), path)] = handler

    def fail(self, method: str, path: str, exc: Exception) -> None:
        self.routes[(method.upper(), path)] = exc

    def session(self, *_args: Any, **_kwargs: Any) -> FakeHttp:
        return FakeHttp(self)

    def handle(self, http: FakeHttp, method: str, url: str, **kwargs: Any) -> requests.Response:
        path = url[len(BACKEND_URL):] if url.startswith(BACKEND_URL) else url
        self.calls.append(Call(method.upper(), path, kwargs))
        handler = self.routes.get((method.upper(), path))
        if handler is None:
            return make_response(404, {"message": "Not found"}, url)
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            handler = handler(**kwargs)
        status, body, cookies = handler
        for name, value in (cookies or {}).items():
            http.cookies.set(name, value)
        return make_response(status, body, url)

    def requests_to(self, method: str, path: str) -> list[Call]:
        return [call for call in self.calls if call.method == method.upper() and call.path == path]

    def sign_in(self, user: dict[str, Any]) -> None:
        self.route("GET", "auth/me", 200, {"success": True, "user": user})

    def sign_out(self) -> None:
        self.route("GET", "auth/me", 401, {"message": "Not authenticated"})


class FakeTimer:
    """Manually fired replacement for :class:`threading.Timer`."""

    def __init__(self, delay: float, function: Callable[[], None]) -> None:
        self.delay = delay
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function()


class TimerRecorder:
    """Timer factory that remembers every timer it creates."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, delay: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, function)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if timer.started and not timer.cancelled]


class AppTestCase(unittest.TestCase):
    """Full Flask stack wired to a fake backend.

    No application context is held between requests so each request gets its
    own ``g``; use :meth:`storage` to inspect the browser's client storage.
    """

    def setUp(self) -> None:
        self.backend = FakeBackend()
        self.backend.sign_out()
        session_patch = patch("requests.Session", side_effect=self.backend.session)
        session_patch.start()
        self.addCleanup(session_patch.stop)

        self.timers = TimerRecorder()
        timer_patch = patch.object(drafts, "timer_factory", self.timers)
        timer_patch.start()
        self.addCleanup(timer_patch.stop)
        drafts._drafts.clear()

        self.app = create_app("testing")
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        drafts._drafts.clear()
        with self.app.app_context():
            db.session.remove()
            db.drop_all()

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def client_id(self) -> str:
        with self.client.session_transaction() as sess:
            client_id = sess.get("client_id")
        self.assertTrue(client_id, "no client storage id has been issued yet")
        return client_id

    def storage_get(self, key: str, default: Any = None) -> Any:
        with self.app.app_context():
            return ClientStorage(self.client_id()).get(key, default)

    def storage_set(self, key: str, value: Any) -> None:
        with self.app.app_context():
            ClientStorage(self.client_id()).set(key, value)

    def sign_in(self, user: dict[str, Any] = PATIENT) -> None:
        """Authenticate the browser and make one request to issue its storage id."""

        self.backend.sign_in(user)
        self.backend.route("GET", "testimonials", 200, {"success": True, "testimonials": []})
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200, response.get_data(as_text=True))
