"""Phone OTP login as an explicit state machine.

::

    ENTER_PHONE --send_otp--> VERIFY_OTP --verify_otp--> (logged in)
                                   |
                                   +--userNotFound--> PHONE_VERIFIED_NO_ACCOUNT
                                                          |  ^
                                     choose_link_existing v  | back_to_choice
                                                    LINK_EXISTING_ACCOUNT --verify--> (logged in)

``change_number`` returns to ``ENTER_PHONE`` from any step. A failed call keeps
the flow on its current step and records the message under the field name.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from nutriweb.app.errors import error_message
from nutriweb.app.flows import IllegalTransition
from nutriweb.app.flows.cooldown import ResendCooldown
from nutriweb.app.services import auth as auth_api
from nutriweb.app.services.api_client import ApiClient, ApiError
from nutriweb.app.validation import (
    MOBILE_LENGTH,
    clean_digits,
    validate_email,
    validate_otp,
)

RESEND_COOLDOWN_SECONDS = 60


class OtpLoginStep(str, Enum):
    ENTER_PHONE = "ENTER_PHONE"
    VERIFY_OTP = "VERIFY_OTP"
    PHONE_VERIFIED_NO_ACCOUNT = "PHONE_VERIFIED_NO_ACCOUNT"
    LINK_EXISTING_ACCOUNT = "LINK_EXISTING_ACCOUNT"


@dataclass
class OtpLoginFlow:
    step: OtpLoginStep = OtpLoginStep.ENTER_PHONE
    phone: str = ""
    link_email: str = ""
    link_email_otp_sent: bool = False
    errors: dict[str, str] = field(default_factory=dict)
    resend: ResendCooldown = field(default_factory=ResendCooldown)
    link_resend: ResendCooldown = field(default_factory=ResendCooldown)
    cooldown_seconds: int = RESEND_COOLDOWN_SECONDS

    # ------------------------------------------------------------------
    # Persistence between requests
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "phone": self.phone,
            "link_email": self.link_email,
            "link_email_otp_sent": self.link_email_otp_sent,
            "errors": dict(self.errors),
            "resend_deadline": self.resend.deadline,
            "link_resend_deadline": self.link_resend.deadline,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any] | None,
        *,
        clock: Callable[[], float] = time.time,
        cooldown_seconds: int = RESEND_COOLDOWN_SECONDS,
    ) -> "OtpLoginFlow":
        data = data or {}
        try:
            step = OtpLoginStep(data.get("step") or OtpLoginStep.ENTER_PHONE.value)
        except ValueError:
            step = OtpLoginStep.ENTER_PHONE
        return cls(
            step=step,
            phone=data.get("phone") or "",
            link_email=data.get("link_email") or "",
            link_email_otp_sent=bool(data.get("link_email_otp_sent")),
            errors=dict(data.get("errors") or {}),
            resend=ResendCooldown(data.get("resend_deadline"), clock=clock),
            link_resend=ResendCooldown(data.get("link_resend_deadline"), clock=clock),
            cooldown_seconds=cooldown_seconds,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _require(self, *allowed: OtpLoginStep) -> None:
        if self.step not in allowed:
            raise IllegalTransition(f"Not allowed from {self.step.value}")

    def send_otp(self, api: ApiClient, phone: str | None = None) -> bool:
        """Request an SMS code for ``phone`` (or the remembered number)."""

        self._require(OtpLoginStep.ENTER_PHONE, OtpLoginStep.VERIFY_OTP)
        self.errors = {}
        raw = self.phone if phone is None else phone
        if not (raw or "").strip():
            self.errors["phone"] = "Phone number is required"
            return False
        digits = clean_digits(raw)
        if len(digits) != MOBILE_LENGTH:
            self.errors["phone"] = "Phone must be 10 digits"
            return False

        self.phone = digits
        try:
            auth_api.send_login_otp(api, phone=digits)
        except ApiError as exc:
            self.errors["phone"] = error_message(exc, "Failed to send OTP")
            self.resend.start_from_error(exc)
            return False

        self.step = OtpLoginStep.VERIFY_OTP
        self.resend.start(self.cooldown_seconds)
        return True

    def resend_otp(self, api: ApiClient) -> bool:
        self._require(OtpLoginStep.VERIFY_OTP)
        if self.resend.active:
            return False
        return self.send_otp(api)

    def verify_otp(self, api: ApiClient, otp: str) -> dict[str, Any] | None:
        """Return the user payload on login, ``None`` otherwise."""

        self._require(OtpLoginStep.VERIFY_OTP)
        self.errors = {}
        otp = (otp or "").strip()
        otp_error = validate_otp(otp)
        if otp_error:
            self.errors["otp"] = otp_error
            return None

        try:
            response = auth_api.verify_login_otp(api, phone=self.phone, otp=otp)
        except ApiError as exc:
            self.errors["otp"] = error_message(exc, "Invalid OTP")
            return None

        if response.get("success") and response.get("userNotFound"):
            self.step = OtpLoginStep.PHONE_VERIFIED_NO_ACCOUNT
            self.resend.reset()
            return None
        if response.get("success") and response.get("user"):
            return response["user"]

        self.errors["otp"] = response.get("message") or "Invalid OTP"
        return None

    def choose_link_existing(self) -> None:
        self._require(OtpLoginStep.PHONE_VERIFIED_NO_ACCOUNT)
        self.errors = {}
        self.step = OtpLoginStep.LINK_EXISTING_ACCOUNT

    def back_to_choice(self) -> None:
        self._require(OtpLoginStep.LINK_EXISTING_ACCOUNT)
        self.errors = {}
        self.link_email = ""
        self.link_email_otp_sent = False
        self.link_resend.reset()
        self.step = OtpLoginStep.PHONE_VERIFIED_NO_ACCOUNT

    def change_number(self) -> None:
        self.step = OtpLoginStep.ENTER_PHONE
        self.phone = ""
        self.errors = {}
        self.link_email = ""
        self.link_email_otp_sent = False
        self.resend.reset()
        self.link_resend.reset()

    def send_link_email_otp(self, api: ApiClient, email: str | None = None) -> bool:
        self._require(OtpLoginStep.LINK_EXISTING_ACCOUNT)
        self.errors = {}
        email = (self.link_email if email is None else email).strip()
        email_error = validate_email(email)
        if email_error:
            self.errors["linkEmail"] = email_error
            return False

        self.link_email = email
        try:
            auth_api.send_link_phone_email_otp(api, email=email, phone=self.phone)
        except ApiError as exc:
            self.errors["linkEmail"] = error_message(exc, "Failed to send verification code")
            return False

        self.link_email_otp_sent = True
        self.link_resend.start(self.cooldown_seconds)
        return True

    def resend_link_email_otp(self, api: ApiClient) -> bool:
        self._require(OtpLoginStep.LINK_EXISTING_ACCOUNT)
        if self.link_resend.active or not self.link_email_otp_sent:
            return False
        try:
            auth_api.send_link_phone_email_otp(api, email=self.link_email, phone=self.phone)
        except ApiError as exc:
            self.errors["linkEmail"] = error_message(exc, "Failed to resend verification code")
            return False
        self.link_resend.start(self.cooldown_seconds)
        return True

    def verify_link_email_otp(self, api: ApiClient, otp: str) -> dict[str, Any] | None:
        self._require(OtpLoginStep.LINK_EXISTING_ACCOUNT)
        self.errors = {}
        otp = (otp or "").strip()
        otp_error = validate_otp(otp)
        if otp_error:
            self.errors["linkEmailOtp"] = otp_error
            return None

        try:
            response = auth_api.verify_link_phone_email_otp(
                api, email=self.link_email, phone=self.phone, otp=otp
            )
        except ApiError as exc:
            self.errors["linkEmailOtp"] = error_message(exc, "Invalid verification code")
            return None

        if response.get("success") and response.get("user"):
            user = dict(response["user"])
            if not user.get("email"):
                user["email"] = self.link_email
            return user

        self.errors["linkEmailOtp"] = response.get("message") or "Invalid verification code"
        return None
