"""Email/password login, signup with automatic login, and password reset requests."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from nutriweb.app.errors import error_message, field_errors
from nutriweb.app.flows.registration import validate_signup
from nutriweb.app.services import auth as auth_api
from nutriweb.app.services.api_client import ApiClient, ApiError
from nutriweb.app.validation import validate_email

LOGGER = logging.getLogger(__name__)

SIGNUP_FIELDS = ("name", "email", "password", "confirmPassword")

FORGOT_PASSWORD_CONFIRMATION = (
    "If an account exists with this email, we've sent a password reset link. Check your email"
)


@dataclass
class FlowResult:
    """Outcome of a one-shot form submission."""

    user: dict[str, Any] | None = None
    errors: dict[str, str] = field(default_factory=dict)
    message: str | None = None
    created: bool = False


def password_login(api: ApiClient, identifier: str, password: str) -> FlowResult:
    identifier = (identifier or "").strip()
    if not identifier:
        return FlowResult(errors={"identifier": "Email is required"})
    if not password:
        return FlowResult(errors={"password": "Password is required"})

    try:
        response = auth_api.login(api, identifier, password)
    except ApiError as exc:
        message = error_message(exc, "Failed to login")
        field_name = "identifier" if exc.status == 404 else "password"
        return FlowResult(errors={field_name: message})

    if response.get("success") and response.get("user"):
        return FlowResult(user=response["user"])
    return FlowResult(errors={"password": response.get("message") or "Failed to login"})


def signup_and_login(api: ApiClient, form: Mapping[str, Any]) -> FlowResult:
    """Create an email account, then log straight in with the same credentials."""

    errors = validate_signup(form)
    if errors:
        return FlowResult(errors=errors)

    email = str(form["email"]).strip()
    password = str(form["password"])
    try:
        response = auth_api.signup(
            api, name=str(form["name"]).strip(), email=email, password=password
        )
    except ApiError as exc:
        errors = {key: value for key, value in field_errors(exc).items() if key in SIGNUP_FIELDS}
        return FlowResult(errors=errors or {"email": error_message(exc, "Failed to create account")})

    if not response.get("success"):
        return FlowResult(errors={"email": response.get("message") or "Failed to create account"})

    result = password_login(api, email, password)
    if result.user is None:
        LOGGER.warning("Auto-login after signup failed for %s: %s", email, result.errors)
        return FlowResult(created=True, message="Account created. Please login manually.")
    result.created = True
    return result


def request_password_reset(api: ApiClient, email: str) -> FlowResult:
    """Ask the backend to email a reset link.

    Apart from validation errors the visitor always sees the same confirmation,
    whether or not the address belongs to an account.
    """

    email = (email or "").strip()
    email_error = validate_email(email)
    if email_error:
        return FlowResult(errors={"forgotEmail": email_error})

    try:
        auth_api.forgot_password(api, email)
    except ApiError as exc:
        if exc.status == 400:
            return FlowResult(errors={"forgotEmail": error_message(exc, "Failed to process request")})
        LOGGER.info("Forgot-password request failed: %s", exc.message)
    return FlowResult(message=FORGOT_PASSWORD_CONFIRMATION)
