"""Account creation: phone OTP signup and email/password signup."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from nutriweb.app.errors import error_message
from nutriweb.app.flows import IllegalTransition
from nutriweb.app.flows.cooldown import ResendCooldown
from nutriweb.app.flows.otp_login import RESEND_COOLDOWN_SECONDS
from nutriweb.app.services import auth as auth_api
from nutriweb.app.services.api_client import ApiClient, ApiError
from nutriweb.app.validation import MOBILE_LENGTH, clean_digits, is_valid_email, validate_otp

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 6


class RegistrationStep(str, Enum):
    ENTER_DETAILS = "ENTER_DETAILS"
    VERIFY_OTP = "VERIFY_OTP"


@dataclass
class RegistrationFlow:
    step: RegistrationStep = RegistrationStep.ENTER_DETAILS
    name: str = ""
    phone: str = ""
    errors: dict[str, str] = field(default_factory=dict)
    resend: ResendCooldown = field(default_factory=ResendCooldown)
    cooldown_seconds: int = RESEND_COOLDOWN_SECONDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.value,
            "name": self.name,
            "phone": self.phone,
            "errors": dict(self.errors),
            "resend_deadline": self.resend.deadline,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any] | None,
        *,
        clock: Callable[[], float] = time.time,
        cooldown_seconds: int = RESEND_COOLDOWN_SECONDS,
    ) -> "RegistrationFlow":
        data = data or {}
        try:
            step = RegistrationStep(data.get("step") or RegistrationStep.ENTER_DETAILS.value)
        except ValueError:
            step = RegistrationStep.ENTER_DETAILS
        return cls(
            step=step,
            name=data.get("name") or "",
            phone=data.get("phone") or "",
            errors=dict(data.get("errors") or {}),
            resend=ResendCooldown(data.get("resend_deadline"), clock=clock),
            cooldown_seconds=cooldown_seconds,
        )

    def send_otp(self, api: ApiClient, name: str | None = None, phone: str | None = None) -> bool:
        if self.step not in (RegistrationStep.ENTER_DETAILS, RegistrationStep.VERIFY_OTP):
            raise IllegalTransition(f"Not allowed from {self.step.value}")
        self.errors = {}
        name = (self.name if name is None else name).strip()
        raw_phone = self.phone if phone is None else phone
        if not name:
            self.errors["otpName"] = "Full name is required"
            return False
        if not (raw_phone or "").strip():
            self.errors["phone"] = "Phone number is required"
            return False
        digits = clean_digits(raw_phone)
        if len(digits) != MOBILE_LENGTH:
            self.errors["phone"] = "Phone must be 10 digits"
            return False

        self.name, self.phone = name, digits
        try:
            auth_api.send_register_otp(api, name=name, phone=digits)
        except ApiError as exc:
            self.errors["phone"] = error_message(exc, "Failed to send OTP")
            self.resend.start_from_error(exc)
            return False

        self.step = RegistrationStep.VERIFY_OTP
        self.resend.start(self.cooldown_seconds)
        return True

    def resend_otp(self, api: ApiClient) -> bool:
        if self.step is not RegistrationStep.VERIFY_OTP:
            raise IllegalTransition(f"Not allowed from {self.step.value}")
        if self.resend.active:
            return False
        return self.send_otp(api)

    def verify_otp(self, api: ApiClient, otp: str) -> dict[str, Any] | None:
        if self.step is not RegistrationStep.VERIFY_OTP:
            raise IllegalTransition(f"Not allowed from {self.step.value}")
        self.errors = {}
        otp = (otp or "").strip()
        otp_error = validate_otp(otp)
        if otp_error:
            self.errors["otp"] = otp_error
            return None
        try:
            response = auth_api.verify_register_otp(api, name=self.name, phone=self.phone, otp=otp)
        except ApiError as exc:
            self.errors["otp"] = error_message(exc, "Invalid OTP")
            return None
        if response.get("success") and response.get("user"):
            return response["user"]
        self.errors["otp"] = response.get("message") or "Invalid OTP"
        return None

    def change_details(self) -> None:
        self.step = RegistrationStep.ENTER_DETAILS
        self.name = ""
        self.phone = ""
        self.errors = {}
        self.resend.reset()


def validate_signup(form: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    name = str(form.get("name") or "").strip()
    email = str(form.get("email") or "").strip()
    password = str(form.get("password") or "")

    if not name:
        errors["name"] = "Full name is required"
    elif len(name) < MIN_NAME_LENGTH:
        errors["name"] = "Name must be at least 2 characters"

    if not email:
        errors["email"] = "Email is required"
    elif not is_valid_email(email):
        errors["email"] = "Invalid email address"

    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = "Password must be at least 6 characters"

    if password != str(form.get("confirmPassword") or ""):
        errors["confirmPassword"] = "Passwords do not match"
    return errors
