"""User-facing error messages and Flask error handlers."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import Flask, current_app, render_template
from werkzeug.exceptions import HTTPException

from nutriweb.app.services.api_client import ApiError, AuthenticationError, NetworkError
from nutriweb.app.state.auth_store import expired_session_redirect

RELOAD_MESSAGE = "Something went wrong. Please reload the page."
GENERIC_MESSAGE = "Something went wrong. Please try again."


def get_user_friendly_error(error: Any) -> str:
    """Translate a backend failure into a message safe to show to patients."""

    if error is None or isinstance(error, NetworkError):
        return RELOAD_MESSAGE
    if not isinstance(error, ApiError):
        message = str(error)
        return message if message and len(message) < 100 else GENERIC_MESSAGE

    backend_message = error.message or ""
    lowered = backend_message.lower()

    if "invalid otp" in lowered:
        return "Invalid OTP. Please check and try again."
    if "otp expired" in lowered:
        return "OTP has expired. Please request a new one."
    if "otp not found" in lowered:
        return "OTP not found. Please request a new one."

    if "invalid credentials" in lowered:
        return "Invalid email/phone or password. Please try again."
    if "account not found" in lowered or "register" in lowered:
        return "No account found. Please sign up first."
    if "already exists" in lowered or "already registered" in lowered:
        return "An account with this email or phone already exists. Please login instead."

    if "expired" in lowered and "token" in lowered:
        return "Reset link is invalid or expired. Please request a new one."
    if "invalid" in lowered and "token" in lowered:
        return "Reset link is invalid. Please request a new one."

    if "wait" in lowered or "rate limit" in lowered:
        return backend_message

    if backend_message and len(backend_message) < 100 and "status" not in backend_message:
        return backend_message

    return GENERIC_MESSAGE


def error_message(error: Exception, fallback: str) -> str:
    """Return the backend's own message for ``error`` or ``fallback``."""

    if isinstance(error, ApiError) and error.status is not None:
        return error.message or fallback
    if isinstance(error, ValueError):
        return str(error) or fallback
    return fallback


def field_errors(error: Any) -> dict[str, str]:
    """Return the field-level validation messages carried by ``error``."""

    if isinstance(error, ApiError):
        return error.field_errors
    return {}


def register_error_handlers(app: Flask) -> None:
    """Render friendly pages for 404s, expired sessions and unexpected failures."""

    @app.errorhandler(HTTPStatus.NOT_FOUND)
    def _not_found(_exc):
        return render_template("errors/not_found.html"), HTTPStatus.NOT_FOUND

    @app.errorhandler(AuthenticationError)
    def _session_expired(_exc: AuthenticationError):
        return expired_session_redirect()

    @app.errorhandler(Exception)
    def _unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        current_app.logger.exception("Unhandled error while rendering page")
        return (
            render_template("errors/generic.html", message=GENERIC_MESSAGE),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )
