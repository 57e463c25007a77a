"""Request middleware that builds the per-request session context."""
from __future__ import annotations

from typing import Any

from flask import Flask, current_app, g, request, session

from nutriweb.app.services.api_client import BACKEND_COOKIES_SESSION_KEY, get_api_client
from nutriweb.app.state.auth_store import AuthSession, expired_session_redirect
from nutriweb.app.state.context import current_storage

#: Endpoints served without resolving the visitor's identity.
ANONYMOUS_ENDPOINTS = frozenset({"static", "pages.robots", "pages.sitemap"})


def register_session_middleware(app: Flask) -> None:
    """Resolve the current user before each request and persist backend cookies after."""

    @app.before_request
    def _load_auth_session() -> None:
        if request.endpoint in ANONYMOUS_ENDPOINTS or request.endpoint is None:
            g.auth = None
            return
        auth = AuthSession(get_api_client(), current_storage())
        auth.hydrate()
        g.auth = auth

    @app.after_request
    def _store_backend_cookies(response):
        client = g.get("api_client")
        if client is None:
            return response
        cookies = client.export_cookies()
        if cookies != (session.get(BACKEND_COOKIES_SESSION_KEY) or {}):
            session[BACKEND_COOKIES_SESSION_KEY] = cookies
        return response

    @app.after_request
    def _redirect_expired_session(response):
        auth = g.get("auth")
        if auth is None or not auth.expired:
            return response
        current_app.logger.info("Backend session expired during %s %s", request.method, request.path)
        return expired_session_redirect()

    @app.context_processor
    def _inject_user() -> dict[str, Any]:
        auth = g.get("auth")
        return {
            "current_user": auth.user if auth else None,
            "auth": auth,
            "logout_delay_ms": int(current_app.config.get("LOGOUT_TRANSITION_DELAY", 0.0) * 1000),
        }
