"""Multi-step appointment booking: plan, patient, details, recall, slot, payment."""
from __future__ import annotations

from datetime import date
from http import HTTPStatus
from typing import Any

from flask import Blueprint, flash, redirect, render_template, request, url_for

from nutriweb.app.catalog import resolve_booking_plan
from nutriweb.app.errors import error_message, get_user_friendly_error
from nutriweb.app.services import appointments as appointments_api
from nutriweb.app.services import patients as patients_api
from nutriweb.app.services import payments as payments_api
from nutriweb.app.services import slots as slots_api
from nutriweb.app.services import uploads as uploads_api
from nutriweb.app.services.api_client import ApiError, get_api_client
from nutriweb.app.services.appointments import APPOINTMENT_MODES, BookingProgress
from nutriweb.app.services.patients import RECALL_ENTRY_FIELDS
from nutriweb.app.state.auth_store import current_auth, login_required
from nutriweb.app.state.booking_store import (
    BookingForm,
    GENDERS,
    numeric_fields,
    validate_measurements,
    validate_personal,
    validate_recall,
    validate_slot,
)
from nutriweb.app.state.context import current_storage

booking_bp = Blueprint("booking", __name__)

PERSONAL_FIELDS = ("fullName", "mobile", "email", "dob", "age", "gender", "address")
DISCLAIMER_REQUIRED = "Please agree to the disclaimer to continue"


def _form() -> BookingForm:
    return BookingForm(current_storage())


def _admin_blocked():
    user = current_auth().user
    if user is not None and user.is_admin:
        return render_template("booking/admin_blocked.html"), HTTPStatus.FORBIDDEN
    return None


def _require(form: BookingForm, *keys: str):
    """Redirect to the start of the flow when an earlier step is incomplete."""

    if all(form.get(key) for key in keys):
        return None
    flash("Please complete the previous booking steps first.", "info")
    return redirect(url_for("booking.start"))


def _plan_fields(slug: str | None) -> dict[str, Any] | None:
    resolved = resolve_booking_plan(slug)
    if resolved is None:
        return None
    plan, package = resolved
    if package is not None:
        return {
            "planSlug": plan.slug,
            "planName": plan.name,
            "planPackageName": package.name,
            "planPrice": package.price,
            "planDuration": package.duration,
        }
    return {
        "planSlug": plan.slug,
        "planName": plan.name,
        "planPackageName": None,
        "planPrice": plan.price,
        "planDuration": plan.duration,
    }


def _awaiting_payment(api) -> list[dict[str, Any]]:
    try:
        response = appointments_api.get_my_appointments(api)
    except ApiError as exc:
        flash(get_user_friendly_error(exc), "error")
        return []
    return [item for item in response.get("appointments") or [] if appointments_api.payment_pending(item)]


@booking_bp.route("", methods=["GET", "POST"])
@login_required
def start():
    blocked = _admin_blocked()
    if blocked:
        return blocked

    form = _form()
    api = get_api_client()

    if request.method == "POST":
        patient_id = request.form.get("patientId") or ""
        if patient_id == "new":
            form.set_form(patientId=None, appointmentId=None)
        else:
            form.set_form(patientId=patient_id or None, appointmentId=None)
        return redirect(url_for("booking.user_details"))

    slug = request.args.get("plan")
    if slug:
        fields = _plan_fields(slug)
        if fields is None:
            flash("Plan not found", "error")
            return redirect(url_for("pages.services"))
        if fields["planPrice"] is None:
            flash("Please choose a package for this plan", "info")
            return redirect(url_for("pages.explore_plan", slug=fields["planSlug"]))
        form.set_form(fields)

    patients: list[dict[str, Any]] = []
    try:
        patients = patients_api.get_my_patients(api)
    except ApiError as exc:
        flash(error_message(exc, "Failed to load patients"), "error")

    return render_template(
        "booking/start.html",
        form=form,
        patients=patients,
        pending=_awaiting_payment(api),
    )


@booking_bp.route("/user-details", methods=["GET", "POST"])
@login_required
def user_details():
    blocked = _admin_blocked()
    if blocked:
        return blocked
    form = _form()
    redirect_back = _require(form, "planSlug")
    if redirect_back:
        return redirect_back

    errors: dict[str, str] = {}
    if request.method == "POST":
        fields = {name: request.form.get(name, "").strip() for name in PERSONAL_FIELDS}
        fields.update(numeric_fields(request.form, ("weight", "height", *form.measurement_fields())))
        fields["mobile"] = fields["mobile"].replace(" ", "")
        form.set_form(fields)

        errors = {**validate_personal(form.form), **validate_measurements(form.form)}
        if not errors:
            try:
                appointment_id = _create_booking(form)
            except (ApiError, ValueError) as exc:
                errors["form"] = error_message(exc, "Failed to save your details")
            else:
                form.set_form(appointmentId=appointment_id)
                return redirect(url_for("booking.recall"))

    status = HTTPStatus.BAD_REQUEST if errors else HTTPStatus.OK
    return render_template(
        "booking/user_details.html", form=form, errors=errors, genders=GENDERS
    ), status


def _create_booking(form: BookingForm) -> str:
    """Create or reuse the patient, attach reports, and open a pending appointment."""

    api = get_api_client()
    patient_id = form.get("patientId")
    if not patient_id:
        payload = {
            "name": form["fullName"],
            "phone": form["mobile"],
            "email": form["email"],
            "dateOfBirth": form.get("dob") or None,
            "age": int(form["age"]),
            "gender": form["gender"],
            "address": form["address"],
            "weight": form.get("weight"),
            "height": form.get("height"),
            "measurements": {name: form.get(name) for name in form.measurement_fields() if form.get(name)},
        }
        response = patients_api.create_patient(api, payload)
        patient_id = (response.get("patient") or {}).get("id")
        if not patient_id:
            raise ValueError("Failed to create patient")
        form.set_form(patientId=patient_id)

    reports = [item for item in request.files.getlist("reports") if item and item.filename]
    if reports:
        uploaded = uploads_api.upload_files(api, reports)
        file_ids = [item["id"] for item in uploaded if item.get("id")]
        if file_ids:
            uploads_api.link_files_to_patient(api, patient_id, file_ids)

    response = appointments_api.create_appointment(
        api,
        patient_id=patient_id,
        plan_slug=form["planSlug"],
        plan_name=form["planName"],
        plan_price=form["planPrice"],
        plan_duration=form.get("planDuration") or appointments_api.DEFAULT_PLAN_DURATION,
        plan_package_name=form.get("planPackageName"),
        appointment_mode=form.get("mode") or "IN_PERSON",
        booking_progress=BookingProgress.USER_DETAILS,
    )
    appointment_id = (response.get("data") or {}).get("id")
    if not appointment_id:
        raise ValueError("Failed to create appointment")
    return appointment_id


def _recall_entries() -> list[dict[str, str]]:
    columns = {name: request.form.getlist(f"{name}[]") for name in RECALL_ENTRY_FIELDS}
    rows = max((len(values) for values in columns.values()), default=0)
    entries = []
    for index in range(rows):
        entry = {
            name: (values[index] if index < len(values) else "").strip()
            for name, values in columns.items()
        }
        if any(entry.values()):
            entries.append(entry)
    return entries


@booking_bp.route("/recall", methods=["GET", "POST"])
@login_required
def recall():
    form = _form()
    redirect_back = _require(form, "patientId", "appointmentId")
    if redirect_back:
        return redirect_back

    errors: dict[str, str] = {}
    entries = form.get("recallEntries") or []
    if request.method == "POST":
        entries = _recall_entries()
        notes = request.form.get("notes", "").strip()
        form.set_form(recallEntries=entries, recallNotes=notes)
        errors = validate_recall(entries)
        if not errors:
            api = get_api_client()
            try:
                patients_api.create_recall(
                    api,
                    patient_id=form["patientId"],
                    entries=entries,
                    notes=notes,
                    appointment_id=form["appointmentId"],
                )
                appointments_api.update_booking_progress(
                    api, form["appointmentId"], BookingProgress.RECALL
                )
            except (ApiError, ValueError) as exc:
                errors["form"] = error_message(exc, "Failed to save food recall")
            else:
                return redirect(url_for("booking.slot"))

    status = HTTPStatus.BAD_REQUEST if errors else HTTPStatus.OK
    return render_template(
        "booking/recall.html", form=form, entries=entries or [{}], errors=errors
    ), status


@booking_bp.route("/slot", methods=["GET", "POST"])
@login_required
def slot():
    form = _form()
    redirect_back = _require(form, "appointmentId")
    if redirect_back:
        return redirect_back

    errors: dict[str, str] = {}
    if request.method == "POST":
        choice = {
            "mode": request.form.get("mode", ""),
            "slotId": request.form.get("slotId", ""),
            "date": request.form.get("date", ""),
        }
        form.set_form(choice)
        errors = validate_slot(choice)
        if not errors:
            try:
                appointments_api.update_appointment_slot(
                    get_api_client(),
                    form["appointmentId"],
                    slot_id=choice["slotId"],
                    booking_progress=BookingProgress.SLOT,
                )
            except (ApiError, ValueError) as exc:
                errors["slotId"] = error_message(exc, "Failed to reserve the slot")
            else:
                return redirect(url_for("booking.payment"))

    selected_date = request.values.get("date") or form.get("date") or date.today().isoformat()
    mode = request.values.get("mode") or form.get("mode") or "IN_PERSON"
    slots: list[dict[str, Any]] = []
    if mode in APPOINTMENT_MODES:
        try:
            slots = slots_api.get_available_slots(get_api_client(), selected_date, mode)
        except ApiError as exc:
            errors.setdefault("slotId", get_user_friendly_error(exc))

    status = HTTPStatus.BAD_REQUEST if errors and request.method == "POST" else HTTPStatus.OK
    return render_template(
        "booking/slot.html",
        form=form,
        slots=slots,
        selected_date=selected_date,
        mode=mode,
        modes=APPOINTMENT_MODES,
        errors=errors,
    ), status


@booking_bp.route("/payment", methods=["GET", "POST"])
@login_required
def payment():
    form = _form()
    redirect_back = _require(form, "appointmentId", "slotId")
    if redirect_back:
        return redirect_back

    errors: dict[str, str] = {}
    if request.method == "POST":
        if request.form.get("agree") != "on":
            errors["agree"] = DISCLAIMER_REQUIRED
        else:
            api = get_api_client()
            appointment_id = form["appointmentId"]
            try:
                appointments_api.update_booking_progress(api, appointment_id, BookingProgress.PAYMENT)
            except ApiError as exc:
                errors["form"] = get_user_friendly_error(exc)
            else:
                return _checkout(appointment_id, form)

    status = HTTPStatus.BAD_REQUEST if errors else HTTPStatus.OK
    return render_template("booking/payment.html", form=form, errors=errors), status


def _checkout(appointment_id: str, form: BookingForm | None = None):
    order = payments_api.get_existing_order(get_api_client(), appointment_id)
    if not order.get("success") or not order.get("order"):
        flash(order.get("error") or "No payment order found. Please start a new booking.", "error")
        return redirect(url_for("auth.profile"))
    if form is not None:
        form.reset()
    return render_template(
        "booking/checkout.html", appointment_id=appointment_id, order=order["order"]
    )


@booking_bp.post("/pending/<appointment_id>/pay")
@login_required
def resume_payment(appointment_id: str):
    return _checkout(appointment_id)


@booking_bp.get("/resume/<appointment_id>")
@login_required
def resume(appointment_id: str):
    """Reload a pending appointment into the draft and jump to its next step."""

    api = get_api_client()
    try:
        response = appointments_api.get_pending_appointments(api)
    except ApiError as exc:
        flash(get_user_friendly_error(exc), "error")
        return redirect(url_for("auth.profile"))

    appointment = next(
        (item for item in response.get("appointments") or [] if item.get("id") == appointment_id),
        None,
    )
    if appointment is None:
        flash("Appointment not found", "error")
        return redirect(url_for("auth.profile"))

    form = _form()
    form.reset()
    form.set_form(
        {
            key: appointment.get(key)
            for key in ("patientId", "planSlug", "planName", "planPrice", "planDuration", "planPackageName", "slotId")
        },
        appointmentId=appointment_id,
        mode=appointment.get("appointmentMode"),
    )
    return redirect(appointments_api.get_next_step_url(appointment.get("bookingProgress")))


@booking_bp.post("/pending/<appointment_id>/delete")
@login_required
def delete_pending(appointment_id: str):
    try:
        appointments_api.delete_pending_appointment(get_api_client(), appointment_id)
    except ApiError as exc:
        flash(get_user_friendly_error(exc), "error")
    else:
        form = _form()
        if form.get("appointmentId") == appointment_id:
            form.reset()
        flash("Pending appointment removed", "success")
    return redirect(request.referrer or url_for("auth.profile"))
