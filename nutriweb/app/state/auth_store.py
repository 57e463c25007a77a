"""Authentication session for one browser request.

The source of truth is the backend session cookie. The ``user`` entry in client
storage is only a UI cache used when the backend is unavailable.
"""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from flask import flash, g, redirect, request, url_for

from nutriweb.app.services import auth as auth_api
from nutriweb.app.services.api_client import (
    ApiClient,
    ApiError,
    AuthenticationError,
    ValidationError,
)
from nutriweb.app.signals import session_invalidated
from nutriweb.app.state.keys import BOOKING_FORM_KEY, LOGIN_OTP_EXPIRY_KEY, USER_KEY

LOGGER = logging.getLogger(__name__)

ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"

_KNOWN_FIELDS = ("id", "name", "phone", "email", "role")


@dataclass
class User:
    """Identity returned by the backend's auth endpoints."""

    id: str
    name: str
    phone: str = ""
    email: str | None = None
    role: str | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "User":
        if not isinstance(payload, dict) or not payload.get("id"):
            raise ValueError("User payload requires an id")
        extra = {key: value for key, value in payload.items() if key not in _KNOWN_FIELDS}
        return cls(
            id=str(payload["id"]),
            name=payload.get("name") or "",
            phone=payload.get("phone") or "",
            email=payload.get("email"),
            role=payload.get("role"),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            id=self.id, name=self.name, phone=self.phone, email=self.email, role=self.role
        )
        return data

    @property
    def is_admin(self) -> bool:
        return (self.role or "").upper() == ROLE_ADMIN


def _database_shaped(message: str | None) -> bool:
    return bool(message) and ("database" in message or "Can't reach" in message)


class AuthSession:
    """Current user, loading flag and login/logout operations."""

    def __init__(self, api: ApiClient, storage: Any) -> None:
        self.api = api
        self.storage = storage
        self.user: User | None = None
        self.loading = True
        self.logging_out = False
        self.stale = False
        #: Set when the backend rejects a signed-in user's session mid-request.
        self.expired = False
        session_invalidated.connect(self._on_session_invalidated, sender=api)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def login(self, user: User | dict[str, Any]) -> User:
        """Adopt ``user`` and cache it for UI fallbacks."""

        if isinstance(user, dict):
            payload = dict(user)
            user = User.from_payload(payload)
        else:
            payload = user.to_dict()
        self.user = user
        self.stale = False
        self.storage.set(USER_KEY, payload)
        return user

    def logout(self) -> None:
        """End the session locally even when the backend call fails."""

        self.logging_out = True
        try:
            auth_api.logout(self.api)
        except ApiError as exc:
            LOGGER.info("Backend logout failed (%s); clearing local session", exc.message)
        self.storage.remove(USER_KEY, LOGIN_OTP_EXPIRY_KEY, BOOKING_FORM_KEY)
        self.user = None
        self.stale = False
        self.logging_out = False

    def hydrate(self) -> User | None:
        """Resolve the current user from ``/auth/me``.

        401 and genuine 400 responses clear the session. Failures that say
        nothing about the credentials (5xx, database-shaped errors, network
        failures, other statuses) fall back to the cached user, flagged as
        ``stale``.
        """

        try:
            response = auth_api.get_me(self.api)
        except AuthenticationError:
            self._clear()
        except ValidationError as exc:
            if _database_shaped(exc.message):
                self._restore_cached()
            else:
                self._clear()
        except ApiError as exc:
            LOGGER.info("Falling back to cached user after /auth/me failed: %s", exc.message)
            self._restore_cached()
        else:
            if isinstance(response, dict) and response.get("success") and response.get("user"):
                self.login(response["user"])
            else:
                self._clear()
        finally:
            self.loading = False
        return self.user

    def _clear(self) -> None:
        self.user = None
        self.stale = False
        self.storage.remove(USER_KEY)

    def _restore_cached(self) -> None:
        cached = self.storage.get(USER_KEY)
        if cached is None:
            self.user = None
            return
        try:
            self.user = User.from_payload(cached)
        except ValueError:
            self._clear()
            return
        self.stale = True

    def _on_session_invalidated(self, _sender: Any, **_extra: Any) -> None:
        if self.user is not None:
            self.expired = True
        self.user = None
        self.stale = False


def current_auth() -> AuthSession:
    return g.auth


def expired_session_redirect():
    """Send a visitor whose backend session ended back to the login page."""

    flash("Your session has expired. Please log in again.", "info")
    target = request.path if request.method == "GET" else None
    return redirect(url_for("auth.login", next=target))


def login_required(view: Callable) -> Callable:
    """Redirect anonymous visitors to the login page."""

    @functools.wraps(view)
    def wrapped(*args: Any, **kwargs: Any):
        if current_auth().user is None:
            return redirect(url_for("auth.login", next=request.path))
        return view(*args, **kwargs)

    return wrapped


def admin_required(view: Callable) -> Callable:
    """Allow only administrators confirmed by the backend on this request."""

    @functools.wraps(view)
    def wrapped(*args: Any, **kwargs: Any):
        auth = current_auth()
        if auth.user is None:
            return redirect(url_for("auth.login", next=request.path))
        if not auth.user.is_admin:
            return redirect(url_for("pages.home"))
        if auth.stale:
            flash("We could not confirm your admin session. Please try again shortly.", "error")
            return redirect(url_for("pages.home"))
        return view(*args, **kwargs)

    return wrapped
