"""Login, registration, logout and profile pages."""
from __future__ import annotations

import re
from http import HTTPStatus
from typing import Any

from flask import (
    Blueprint,
    Response,
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from nutriweb.app.errors import get_user_friendly_error
from nutriweb.app.flows import IllegalTransition
from nutriweb.app.flows.otp_login import OtpLoginFlow, OtpLoginStep
from nutriweb.app.flows.password import password_login, request_password_reset, signup_and_login
from nutriweb.app.flows.registration import RegistrationFlow
from nutriweb.app.services import appointments as appointments_api
from nutriweb.app.services import invoices as invoices_api
from nutriweb.app.services.api_client import BACKEND_COOKIES_SESSION_KEY, ApiError, get_api_client
from nutriweb.app.state.auth_store import current_auth, login_required
from nutriweb.app.state.context import current_storage
from nutriweb.app.state.keys import LOGIN_OTP_EXPIRY_KEY

auth_bp = Blueprint("auth", __name__)

OTP_LOGIN_SESSION_KEY = "otp_login"
REGISTRATION_SESSION_KEY = "registration"

_INVOICE_NUMBER = re.compile(r"^[A-Za-z0-9_-]+$")
INVOICED_STATUSES = ("CONFIRMED", "COMPLETED")


def _safe_next(default: str = "/") -> str:
    target = request.values.get("next") or default
    if not target.startswith("/") or target.startswith("//"):
        return default
    return target


def _complete_login(user: dict[str, Any], message: str):
    current_auth().login(user)
    session.pop(OTP_LOGIN_SESSION_KEY, None)
    session.pop(REGISTRATION_SESSION_KEY, None)
    current_storage().remove(LOGIN_OTP_EXPIRY_KEY)
    flash(message, "success")
    return redirect(_safe_next())


def _load_otp_flow() -> OtpLoginFlow:
    return OtpLoginFlow.from_dict(
        session.get(OTP_LOGIN_SESSION_KEY),
        cooldown_seconds=current_app.config["OTP_RESEND_COOLDOWN"],
    )


def _save_otp_flow(flow: OtpLoginFlow) -> None:
    session[OTP_LOGIN_SESSION_KEY] = flow.to_dict()
    if flow.resend.deadline is not None:
        current_storage().set(LOGIN_OTP_EXPIRY_KEY, flow.resend.deadline)


def _load_registration() -> RegistrationFlow:
    return RegistrationFlow.from_dict(
        session.get(REGISTRATION_SESSION_KEY),
        cooldown_seconds=current_app.config["OTP_RESEND_COOLDOWN"],
    )


def _render_login(**context: Any):
    context.setdefault("flow", _load_otp_flow())
    context.setdefault("method", request.values.get("method", "otp"))
    context.setdefault("errors", {})
    return render_template("auth/login.html", steps=OtpLoginStep, **context)


@auth_bp.get("/login")
def login():
    if current_auth().user is not None:
        return redirect(_safe_next())
    return _render_login()


@auth_bp.post("/login/password")
def login_password():
    result = password_login(
        get_api_client(), request.form.get("identifier", ""), request.form.get("password", "")
    )
    if result.user:
        return _complete_login(result.user, "Logged in successfully!")
    return _render_login(
        method="password", errors=result.errors, identifier=request.form.get("identifier", "")
    ), HTTPStatus.BAD_REQUEST


@auth_bp.post("/login/otp")
def login_otp():
    """Advance the phone OTP login state machine by one action."""

    flow = _load_otp_flow()
    api = get_api_client()
    action = request.form.get("action", "")
    try:
        if action == "send":
            flow.send_otp(api, request.form.get("phone", ""))
        elif action == "resend":
            flow.resend_otp(api)
        elif action == "verify":
            user = flow.verify_otp(api, request.form.get("otp", ""))
            if user:
                return _complete_login(user, "Logged in successfully!")
        elif action == "link-existing":
            flow.choose_link_existing()
        elif action == "back":
            flow.back_to_choice()
        elif action == "change-number":
            flow.change_number()
        elif action == "create-account":
            phone = flow.phone
            session.pop(OTP_LOGIN_SESSION_KEY, None)
            return redirect(url_for("auth.register", method="otp", phone=phone))
        elif action == "send-link-email":
            flow.send_link_email_otp(api, request.form.get("linkEmail", ""))
        elif action == "resend-link-email":
            flow.resend_link_email_otp(api)
        elif action == "verify-link-email":
            user = flow.verify_link_email_otp(api, request.form.get("linkEmailOtp", ""))
            if user:
                return _complete_login(user, "Phone number linked successfully!")
        else:
            abort(HTTPStatus.BAD_REQUEST)
    except IllegalTransition:
        flow.change_number()

    _save_otp_flow(flow)
    status = HTTPStatus.BAD_REQUEST if flow.errors else HTTPStatus.OK
    return _render_login(flow=flow, method="otp", errors=flow.errors), status


@auth_bp.post("/login/forgot-password")
def forgot_password():
    result = request_password_reset(get_api_client(), request.form.get("email", ""))
    status = HTTPStatus.BAD_REQUEST if result.errors else HTTPStatus.OK
    return _render_login(
        method="forgot", errors=result.errors, forgot_message=result.message
    ), status


@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    if current_auth().user is not None:
        return redirect(url_for("pages.home"))

    flow = _load_registration()
    method = request.values.get("method", "signup")
    errors: dict[str, str] = {}
    form: dict[str, str] = {}

    if request.method == "GET":
        if request.args.get("phone") and flow.step.value == "ENTER_DETAILS":
            flow.phone = request.args["phone"]
        return render_template("auth/register.html", flow=flow, method=method, errors=errors, form=form)

    api = get_api_client()
    action = request.form.get("action", "signup")

    if action == "signup":
        form = {key: request.form.get(key, "") for key in ("name", "email", "password", "confirmPassword")}
        result = signup_and_login(api, form)
        if result.user:
            return _complete_login(result.user, "Account created successfully!")
        if result.created:
            flash(result.message or "Account created. Please login manually.", "info")
            return redirect(url_for("auth.login", method="password"))
        errors = result.errors
    else:
        method = "otp"
        try:
            if action == "send-otp":
                flow.send_otp(api, request.form.get("otpName", ""), request.form.get("phone", ""))
            elif action == "resend-otp":
                flow.resend_otp(api)
            elif action == "verify-otp":
                user = flow.verify_otp(api, request.form.get("otp", ""))
                if user:
                    return _complete_login(user, "Account created and logged in successfully!")
            elif action == "change-details":
                flow.change_details()
            else:
                abort(HTTPStatus.BAD_REQUEST)
        except IllegalTransition:
            flow.change_details()
        session[REGISTRATION_SESSION_KEY] = flow.to_dict()
        errors = flow.errors

    status = HTTPStatus.BAD_REQUEST if errors else HTTPStatus.OK
    return render_template(
        "auth/register.html", flow=flow, method=method, errors=errors, form=form
    ), status


@auth_bp.post("/logout")
def logout():
    current_auth().logout()
    get_api_client().clear_cookies()
    session.pop(BACKEND_COOKIES_SESSION_KEY, None)
    session.pop(OTP_LOGIN_SESSION_KEY, None)
    flash("Logged out successfully", "success")
    return redirect(url_for("pages.home"))


def format_phone(phone: str | None) -> str:
    digits = re.sub(r"\D", "", phone or "")
    return f"{digits[:5]} {digits[5:10]}".strip()


@auth_bp.get("/profile")
@login_required
def profile():
    user = current_auth().user
    api = get_api_client()
    pending: list[dict[str, Any]] = []
    completed: list[dict[str, Any]] = []
    load_error = None
    try:
        pending = list(appointments_api.get_pending_appointments(api).get("appointments") or [])
        mine = appointments_api.get_my_appointments(api).get("appointments") or []
        completed = [item for item in mine if item.get("status") in INVOICED_STATUSES]
    except ApiError as exc:
        load_error = get_user_friendly_error(exc)

    for appointment in pending:
        appointment["stepLabel"] = appointments_api.get_step_label(appointment.get("bookingProgress"))

    return render_template(
        "auth/profile.html",
        user=user,
        phone=format_phone(user.phone),
        pending=pending,
        completed=completed,
        load_error=load_error,
    )


@auth_bp.get("/appointments/<appointment_id>/invoice")
@login_required
def appointment_invoice(appointment_id: str):
    result = invoices_api.get_invoice_by_appointment_id(get_api_client(), appointment_id)
    if not result.get("success") or not result.get("invoice"):
        flash(result.get("error") or "Invoice not found", "error")
        return redirect(url_for("auth.profile"))
    number = result["invoice"]["invoiceNumber"]
    return redirect(url_for("auth.download_invoice", invoice_number=number))


@auth_bp.get("/invoice/<invoice_number>.pdf")
@login_required
def download_invoice(invoice_number: str):
    if not _INVOICE_NUMBER.match(invoice_number):
        abort(HTTPStatus.NOT_FOUND)
    try:
        pdf = invoices_api.download_invoice(get_api_client(), invoice_number)
    except ApiError as exc:
        flash(exc.message, "error")
        return redirect(url_for("auth.profile"))
    return Response(
        pdf,
        mimetype="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice_number}.pdf"'},
    )
