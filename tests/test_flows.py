"""Tests for the login and registration state machines."""
from __future__ import annotations

import unittest

from nutriweb.app.flows import IllegalTransition
from nutriweb.app.flows.cooldown import ResendCooldown
from nutriweb.app.flows.otp_login import OtpLoginFlow, OtpLoginStep
from nutriweb.app.flows.password import (
    FORGOT_PASSWORD_CONFIRMATION,
    password_login,
    request_password_reset,
    signup_and_login,
)
from nutriweb.app.flows.registration import RegistrationFlow, RegistrationStep, validate_signup
from nutriweb.app.services.api_client import ApiClient
from nutriweb.app.state.storage import MemoryStorage
from tests.support import BACKEND_URL, PATIENT, FakeBackend


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FlowTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = FakeBackend()
        self.api = ApiClient(BACKEND_URL, storage=MemoryStorage(), http=self.backend.session())
        self.clock = FakeClock()


class ResendCooldownTests(FlowTestCase):
    def test_counts_down_to_zero(self) -> None:
        cooldown = ResendCooldown(clock=self.clock)
        cooldown.start(60)

        self.assertEqual(cooldown.remaining(), 60)
        self.clock.now += 59.5
        self.assertEqual(cooldown.remaining(), 1)
        self.clock.now += 0.5
        self.assertEqual(cooldown.remaining(), 0)
        self.assertFalse(cooldown.active)

    def test_seeds_from_backend_message(self) -> None:
        cooldown = ResendCooldown(clock=self.clock)
        self.assertTrue(cooldown.start_from_message("Please wait 42 seconds before requesting again"))
        self.assertEqual(cooldown.remaining(), 42)
        self.assertFalse(cooldown.start_from_message("Slow down"))


class OtpLoginFlowTests(FlowTestCase):
    def _flow(self) -> OtpLoginFlow:
        return OtpLoginFlow.from_dict(None, clock=self.clock)

    def _verified_flow(self) -> OtpLoginFlow:
        self.backend.route("POST", "auth/login/send-otp", 200, {"success": True})
        flow = self._flow()
        self.assertTrue(flow.send_otp(self.api, "98765 43210"))
        return flow

    def test_send_otp_moves_to_verification_and_starts_cooldown(self) -> None:
        flow = self._verified_flow()

        self.assertEqual(flow.step, OtpLoginStep.VERIFY_OTP)
        self.assertEqual(flow.phone, "9876543210")
        self.assertEqual(flow.resend.remaining(), 60)
        self.assertEqual(
            self.backend.requests_to("POST", "auth/login/send-otp")[0].json, {"phone": "9876543210"}
        )

    def test_send_otp_validates_phone_locally(self) -> None:
        flow = self._flow()

        self.assertFalse(flow.send_otp(self.api, ""))
        self.assertEqual(flow.errors, {"phone": "Phone number is required"})
        self.assertFalse(flow.send_otp(self.api, "12345"))
        self.assertEqual(flow.errors, {"phone": "Phone must be 10 digits"})
        self.assertEqual(self.backend.calls, [])

    def test_rate_limited_send_seeds_cooldown_from_message(self) -> None:
        self.backend.route("POST", "auth/login/send-otp", 429, {"message": "Please wait 42 seconds"})
        flow = self._flow()

        self.assertFalse(flow.send_otp(self.api, "9876543210"))

        self.assertEqual(flow.step, OtpLoginStep.ENTER_PHONE)
        self.assertEqual(flow.errors["phone"], "Please wait 42 seconds")
        self.assertEqual(flow.resend.remaining(), 42)
        self.clock.now += 42
        self.assertEqual(flow.resend.remaining(), 0)

    def test_resend_is_blocked_during_cooldown(self) -> None:
        flow = self._verified_flow()

        self.assertFalse(flow.resend_otp(self.api))
        self.clock.now += 60
        self.assertTrue(flow.resend_otp(self.api))
        self.assertEqual(len(self.backend.requests_to("POST", "auth/login/send-otp")), 2)

    def test_verify_returns_user(self) -> None:
        flow = self._verified_flow()
        self.backend.route("POST", "auth/login/verify-otp", 200, {"success": True, "owner": PATIENT})

        user = flow.verify_otp(self.api, "1234")

        self.assertEqual(user, PATIENT)

    def test_verify_with_unknown_phone_offers_account_choices(self) -> None:
        flow = self._verified_flow()
        self.backend.route(
            "POST", "auth/login/verify-otp", 200, {"success": True, "userNotFound": True}
        )

        self.assertIsNone(flow.verify_otp(self.api, "1234"))

        self.assertEqual(flow.step, OtpLoginStep.PHONE_VERIFIED_NO_ACCOUNT)
        self.assertEqual(flow.resend.remaining(), 0)

    def test_invalid_otp_keeps_step_and_records_error(self) -> None:
        flow = self._verified_flow()
        self.backend.route("POST", "auth/login/verify-otp", 400, {"message": "Invalid OTP"})

        self.assertIsNone(flow.verify_otp(self.api, "9999"))
        self.assertEqual(flow.step, OtpLoginStep.VERIFY_OTP)
        self.assertEqual(flow.errors, {"otp": "Invalid OTP"})

        self.assertIsNone(flow.verify_otp(self.api, "12"))
        self.assertEqual(flow.errors, {"otp": "OTP must be 4 digits"})

    def test_link_existing_account_by_email(self) -> None:
        flow = self._verified_flow()
        self.backend.route("POST", "auth/login/verify-otp", 200, {"success": True, "userNotFound": True})
        flow.verify_otp(self.api, "1234")
        flow.choose_link_existing()
        self.backend.route("POST", "auth/link-phone/send-email-otp", 200, {"success": True})
        self.backend.route(
            "POST",
            "auth/link-phone/verify-email-otp",
            200,
            {"success": True, "user": dict(PATIENT, email=None)},
        )

        self.assertFalse(flow.send_link_email_otp(self.api, "not-an-email"))
        self.assertEqual(flow.errors, {"linkEmail": "Invalid email format"})
        self.assertTrue(flow.send_link_email_otp(self.api, "asha@example.com"))
        self.assertTrue(flow.link_email_otp_sent)
        user = flow.verify_link_email_otp(self.api, "4321")

        self.assertEqual(user["email"], "asha@example.com")
        self.assertEqual(
            self.backend.requests_to("POST", "auth/link-phone/verify-email-otp")[0].json,
            {"email": "asha@example.com", "phone": "9876543210", "otp": "4321"},
        )

    def test_back_and_change_number(self) -> None:
        flow = self._verified_flow()
        self.backend.route("POST", "auth/login/verify-otp", 200, {"success": True, "userNotFound": True})
        flow.verify_otp(self.api, "1234")
        flow.choose_link_existing()

        flow.back_to_choice()
        self.assertEqual(flow.step, OtpLoginStep.PHONE_VERIFIED_NO_ACCOUNT)

        flow.change_number()
        self.assertEqual(flow.step, OtpLoginStep.ENTER_PHONE)
        self.assertEqual(flow.phone, "")

    def test_illegal_transitions_raise(self) -> None:
        flow = self._flow()
        with self.assertRaises(IllegalTransition):
            flow.verify_otp(self.api, "1234")
        with self.assertRaises(IllegalTransition):
            flow.choose_link_existing()
        with self.assertRaises(IllegalTransition):
            flow.send_link_email_otp(self.api, "asha@example.com")

    def test_round_trips_through_session_data(self) -> None:
        flow = self._verified_flow()

        restored = OtpLoginFlow.from_dict(flow.to_dict(), clock=self.clock)

        self.assertEqual(restored.step, OtpLoginStep.VERIFY_OTP)
        self.assertEqual(restored.phone, "9876543210")
        self.assertEqual(restored.resend.remaining(), 60)

    def test_unknown_step_in_session_data_restarts(self) -> None:
        flow = OtpLoginFlow.from_dict({"step": "BOGUS"}, clock=self.clock)
        self.assertEqual(flow.step, OtpLoginStep.ENTER_PHONE)


class RegistrationFlowTests(FlowTestCase):
    def test_register_with_phone_otp(self) -> None:
        self.backend.route("POST", "auth/register/send-otp", 200, {"success": True})
        self.backend.route("POST", "auth/register/verify-otp", 200, {"success": True, "user": PATIENT})
        flow = RegistrationFlow.from_dict(None, clock=self.clock)

        self.assertFalse(flow.send_otp(self.api, "", "9876543210"))
        self.assertEqual(flow.errors, {"otpName": "Full name is required"})
        self.assertTrue(flow.send_otp(self.api, "Asha Patel", "9876543210"))
        self.assertEqual(flow.step, RegistrationStep.VERIFY_OTP)

        self.assertEqual(flow.verify_otp(self.api, "1234"), PATIENT)
        self.assertEqual(
            self.backend.requests_to("POST", "auth/register/verify-otp")[0].json,
            {"name": "Asha Patel", "phone": "9876543210", "otp": "1234"},
        )

    def test_change_details_resets_flow(self) -> None:
        self.backend.route("POST", "auth/register/send-otp", 200, {"success": True})
        flow = RegistrationFlow.from_dict(None, clock=self.clock)
        flow.send_otp(self.api, "Asha Patel", "9876543210")

        flow.change_details()

        self.assertEqual(flow.step, RegistrationStep.ENTER_DETAILS)
        self.assertEqual(flow.resend.remaining(), 0)
        with self.assertRaises(IllegalTransition):
            flow.verify_otp(self.api, "1234")

    def test_validate_signup(self) -> None:
        errors = validate_signup(
            {"name": "A", "email": "bad", "password": "123", "confirmPassword": "321"}
        )
        self.assertEqual(set(errors), {"name", "email", "password", "confirmPassword"})


class PasswordFlowTests(FlowTestCase):
    def test_password_login(self) -> None:
        self.backend.route("POST", "auth/login", 200, {"success": True, "user": PATIENT})
        self.assertEqual(password_login(self.api, "asha@example.com", "secret1").user, PATIENT)

    def test_password_login_errors_target_the_right_field(self) -> None:
        self.backend.route("POST", "auth/login", 404, {"message": "Account not found"})
        self.assertEqual(
            password_login(self.api, "nobody@example.com", "secret1").errors,
            {"identifier": "Account not found"},
        )

        self.backend.route("POST", "auth/login", 401, {"message": "Invalid credentials"})
        self.assertEqual(
            password_login(self.api, "asha@example.com", "wrong").errors,
            {"password": "Invalid credentials"},
        )

    def test_signup_logs_in_automatically(self) -> None:
        self.backend.route("POST", "auth/signup", 201, {"success": True})
        self.backend.route("POST", "auth/login", 200, {"success": True, "user": PATIENT})

        result = signup_and_login(
            self.api,
            {"name": "Asha Patel", "email": "asha@example.com", "password": "secret1", "confirmPassword": "secret1"},
        )

        self.assertTrue(result.created)
        self.assertEqual(result.user, PATIENT)

    def test_signup_falls_back_to_manual_login(self) -> None:
        self.backend.route("POST", "auth/signup", 201, {"success": True})
        self.backend.route("POST", "auth/login", 500, {"message": "Internal error"})

        result = signup_and_login(
            self.api,
            {"name": "Asha Patel", "email": "asha@example.com", "password": "secret1", "confirmPassword": "secret1"},
        )

        self.assertTrue(result.created)
        self.assertIsNone(result.user)
        self.assertEqual(result.message, "Account created. Please login manually.")

    def test_signup_surfaces_backend_field_errors(self) -> None:
        self.backend.route(
            "POST",
            "auth/signup",
            400,
            {"message": "Validation failed", "errors": [{"field": "email", "message": "Email already registered"}]},
        )

        result = signup_and_login(
            self.api,
            {"name": "Asha Patel", "email": "asha@example.com", "password": "secret1", "confirmPassword": "secret1"},
        )

        self.assertFalse(result.created)
        self.assertEqual(result.errors, {"email": "Email already registered"})
        self.assertEqual(self.backend.requests_to("POST", "auth/login"), [])

    def test_forgot_password_hides_account_existence(self) -> None:
        self.backend.route("POST", "auth/forgot-password", 404, {"message": "User not found"})
        result = request_password_reset(self.api, "nobody@example.com")
        self.assertEqual(result.message, FORGOT_PASSWORD_CONFIRMATION)
        self.assertEqual(result.errors, {})

        self.backend.route("POST", "auth/forgot-password", 400, {"message": "Email is invalid"})
        result = request_password_reset(self.api, "odd@example.com")
        self.assertEqual(result.errors, {"forgotEmail": "Email is invalid"})


if __name__ == "__main__":
    unittest.main()
