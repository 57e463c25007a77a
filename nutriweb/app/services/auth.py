"""Authentication endpoints of the clinic backend."""
from __future__ import annotations

import logging
from typing import Any

from nutriweb.app.services.api_client import ApiClient, ApiError

LOGGER = logging.getLogger(__name__)


def _log_failure(operation: str, exc: ApiError) -> None:
    LOGGER.debug("[API] %s error: %s", operation, exc.payload or exc.message)


def login(api: ApiClient, identifier: str, password: str) -> dict[str, Any]:
    """Password login; ``identifier`` is an email address."""

    try:
        return api.post("auth/login", {"identifier": identifier, "password": password})
    except ApiError as exc:
        _log_failure("Login", exc)
        raise


def signup(
    api: ApiClient, *, name: str, email: str, password: str, phone: str | None = None
) -> dict[str, Any]:
    try:
        return api.post(
            "auth/signup",
            {"name": name, "phone": phone, "email": email, "password": password},
        )
    except ApiError as exc:
        _log_failure("Signup", exc)
        raise


def logout(api: ApiClient) -> dict[str, Any]:
    return api.post("auth/logout")


def get_me(api: ApiClient) -> dict[str, Any]:
    try:
        return api.get("auth/me")
    except ApiError as exc:
        _log_failure("Get me", exc)
        raise


def forgot_password(api: ApiClient, email: str) -> dict[str, Any]:
    return api.post("auth/forgot-password", {"email": email})


def send_register_otp(api: ApiClient, *, name: str, phone: str) -> dict[str, Any]:
    if not name or not phone:
        raise ValueError("Name and phone are required")
    try:
        return api.post("auth/register/send-otp", {"name": name, "phone": phone})
    except ApiError as exc:
        _log_failure("Send register OTP", exc)
        raise


def verify_register_otp(api: ApiClient, *, name: str, phone: str, otp: str) -> dict[str, Any]:
    if not name or not phone or not otp:
        raise ValueError("Name, phone, and OTP are required")
    try:
        return api.post(
            "auth/register/verify-otp", {"name": name, "phone": phone, "otp": otp}
        )
    except ApiError as exc:
        _log_failure("Verify register OTP", exc)
        raise


def send_login_otp(api: ApiClient, *, phone: str) -> dict[str, Any]:
    if not phone:
        raise ValueError("Phone number is required")
    try:
        return api.post("auth/login/send-otp", {"phone": phone})
    except ApiError as exc:
        _log_failure("Send login OTP", exc)
        raise


def verify_login_otp(api: ApiClient, *, phone: str, otp: str) -> dict[str, Any]:
    """Verify a login OTP.

    Some backend versions return the account under ``owner``; it is copied to
    ``user`` so callers only look at one key.
    """

    if not phone or not otp:
        raise ValueError("Phone and OTP are required")
    try:
        response = api.post("auth/login/verify-otp", {"phone": phone, "otp": otp})
    except ApiError as exc:
        _log_failure("Verify login OTP", exc)
        raise

    if isinstance(response, dict) and not response.get("user") and response.get("owner"):
        response["user"] = response["owner"]
    return response


def send_link_phone_email_otp(api: ApiClient, *, email: str, phone: str) -> dict[str, Any]:
    if not email or not phone:
        raise ValueError("Email and phone are required")
    try:
        return api.post("auth/link-phone/send-email-otp", {"email": email, "phone": phone})
    except ApiError as exc:
        _log_failure("Send link phone email OTP", exc)
        raise


def verify_link_phone_email_otp(
    api: ApiClient, *, email: str, phone: str, otp: str
) -> dict[str, Any]:
    if not email or not phone or not otp:
        raise ValueError("Email, phone, and OTP are required")
    try:
        return api.post(
            "auth/link-phone/verify-email-otp",
            {"email": email, "phone": phone, "otp": otp},
        )
    except ApiError as exc:
        _log_failure("Verify link phone email OTP", exc)
        raise


def send_add_email_otp(api: ApiClient, *, email: str) -> dict[str, Any]:
    if not email:
        raise ValueError("Email is required")
    try:
        return api.post("auth/add-email/send-otp", {"email": email})
    except ApiError as exc:
        _log_failure("Send add email OTP", exc)
        raise


def verify_add_email_otp(api: ApiClient, *, email: str, otp: str) -> dict[str, Any]:
    if not email or not otp:
        raise ValueError("Email and OTP are required")
    try:
        return api.post("auth/add-email/verify-otp", {"email": email, "otp": otp})
    except ApiError as exc:
        _log_failure("Verify add email OTP", exc)
        raise
