"""Administrator pages: appointments, doctor notes and testimonials."""
from __future__ import annotations

import os
from http import HTTPStatus
from typing import Any

from flask import (
    Blueprint,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    url_for,
)

from nutriweb.app.errors import error_message, get_user_friendly_error
from nutriweb.app.services import admin_appointments as admin_api
from nutriweb.app.services import doctor_notes as doctor_notes_api
from nutriweb.app.services import testimonials as testimonials_api
from nutriweb.app.services.api_client import ApiError, get_api_client
from nutriweb.app.services.appointments import APPOINTMENT_MODES
from nutriweb.app.state.auth_store import admin_required
from nutriweb.app.state.context import current_client_id
from nutriweb.app.state.doctor_notes_store import SECTIONS, drafts, validate_path

admin_bp = Blueprint("admin", __name__)

PAGE_SIZE = 20
ALLOWED_IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/jpg"})


@admin_bp.before_request
@admin_required
def require_admin():
    return None


def _page_arg() -> int:
    try:
        return max(int(request.args.get("page", 1)), 1)
    except ValueError:
        return 1


@admin_bp.get("")
def dashboard():
    filters = {key: request.args.get(key) or None for key in ("status", "mode", "date", "q")}
    page = _page_arg()
    appointments: list[dict[str, Any]] = []
    total = 0
    load_error = None
    try:
        response = admin_api.get_admin_appointments(
            get_api_client(), page=page, limit=PAGE_SIZE, **filters
        )
        appointments = list(response.get("appointments") or [])
        total = int(response.get("total") or 0)
    except ApiError as exc:
        load_error = get_user_friendly_error(exc)

    pages = max((total + PAGE_SIZE - 1) // PAGE_SIZE, 1)
    return render_template(
        "admin/dashboard.html",
        appointments=appointments,
        filters=filters,
        page=page,
        pages=pages,
        total=total,
        statuses=admin_api.APPOINTMENT_STATUSES,
        modes=APPOINTMENT_MODES,
        load_error=load_error,
    )


@admin_bp.get("/appointments/<appointment_id>")
def appointment_detail(appointment_id: str):
    try:
        response = admin_api.get_appointment_details(get_api_client(), appointment_id)
    except ApiError as exc:
        if exc.status == HTTPStatus.NOT_FOUND:
            return render_template("errors/not_found.html"), HTTPStatus.NOT_FOUND
        flash(get_user_friendly_error(exc), "error")
        return redirect(url_for("admin.dashboard"))
    return render_template(
        "admin/appointment.html",
        appointment=response.get("appointment") or {},
        statuses=admin_api.APPOINTMENT_STATUSES,
        scopes=admin_api.DELETE_SCOPES,
    )


@admin_bp.post("/appointments/<appointment_id>/status")
def update_status(appointment_id: str):
    try:
        admin_api.update_appointment_status(
            get_api_client(), appointment_id, request.form.get("status", "")
        )
    except (ApiError, ValueError) as exc:
        flash(error_message(exc, "Failed to update status"), "error")
    else:
        flash("Appointment status updated", "success")
    return redirect(url_for("admin.appointment_detail", appointment_id=appointment_id))


@admin_bp.post("/appointments/<appointment_id>/delete")
def delete_appointment(appointment_id: str):
    reason = request.form.get("reason", "").strip() or None
    scope = request.form.get("scope") or None
    try:
        admin_api.delete_appointment(get_api_client(), appointment_id, reason=reason, scope=scope)
    except (ApiError, ValueError) as exc:
        flash(error_message(exc, "Failed to delete appointment"), "error")
        return redirect(url_for("admin.appointment_detail", appointment_id=appointment_id))
    flash("Appointment deleted", "success")
    return redirect(url_for("admin.dashboard"))


# ----------------------------------------------------------------------
# Doctor notes
# ----------------------------------------------------------------------
@admin_bp.get("/appointments/<appointment_id>/doctor-notes")
def doctor_notes(appointment_id: str):
    server_data = None
    try:
        response = doctor_notes_api.get_doctor_notes(get_api_client(), appointment_id)
        server_data = (response.get("doctorNotes") or {}).get("formData")
    except ApiError as exc:
        if exc.status != HTTPStatus.NOT_FOUND:
            flash(get_user_friendly_error(exc), "error")

    draft = drafts.load(current_client_id(), appointment_id, server_data)
    return render_template(
        "admin/doctor_notes.html",
        appointment_id=appointment_id,
        draft=draft,
        sections=SECTIONS,
    )


def _parse_path(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = raw.split(".")
    if not isinstance(raw, list):
        raise ValueError("A non-empty field path is required")
    return validate_path(raw)


def _draft_status(draft) -> dict[str, Any]:
    return {
        "hasUnsavedChanges": draft.has_unsaved_changes,
        "isAutoSaving": draft.is_auto_saving,
        "lastSaved": draft.last_saved.isoformat() if draft.last_saved else None,
    }


@admin_bp.post("/appointments/<appointment_id>/doctor-notes/draft")
def autosave_doctor_notes(appointment_id: str):
    """Apply one field change to the live draft; persistence is debounced."""

    payload = request.get_json(silent=True) or {}
    try:
        path = _parse_path(payload.get("path"))
    except ValueError as exc:
        return jsonify(success=False, error=str(exc)), HTTPStatus.BAD_REQUEST

    draft = drafts.get(current_client_id(), appointment_id)
    draft.update_form_data(path, payload.get("value"))
    return jsonify(success=True, **_draft_status(draft))


@admin_bp.post("/appointments/<appointment_id>/doctor-notes/flush")
def flush_doctor_notes(appointment_id: str):
    draft = drafts.get(current_client_id(), appointment_id)
    draft.flush()
    return jsonify(success=True, **_draft_status(draft))


@admin_bp.post("/appointments/<appointment_id>/doctor-notes")
def submit_doctor_notes(appointment_id: str):
    client_id = current_client_id()
    draft = drafts.get(client_id, appointment_id)
    draft.flush()
    diet_chart = request.files.get("dietChart")
    if diet_chart is not None and not diet_chart.filename:
        diet_chart = None
    is_draft = request.form.get("isDraft") == "true"

    try:
        doctor_notes_api.save_doctor_notes(
            get_api_client(),
            appointment_id=appointment_id,
            form_data=draft.form_data,
            is_draft=is_draft,
            diet_chart=diet_chart,
        )
    except ApiError as exc:
        flash(error_message(exc, "Failed to save doctor notes"), "error")
        return redirect(url_for("admin.doctor_notes", appointment_id=appointment_id))

    if is_draft:
        flash("Draft saved", "success")
        return redirect(url_for("admin.doctor_notes", appointment_id=appointment_id))
    drafts.discard(client_id, appointment_id)
    flash("Doctor notes saved successfully", "success")
    return redirect(url_for("admin.appointment_detail", appointment_id=appointment_id))


# ----------------------------------------------------------------------
# Testimonials
# ----------------------------------------------------------------------
def _image_size(image) -> int:
    stream = image.stream
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


def validate_testimonial_image(image) -> str | None:
    if image.mimetype not in ALLOWED_IMAGE_TYPES:
        return "Only PNG, JPG, and JPEG images are allowed"
    if _image_size(image) > current_app.config["MAX_TESTIMONIAL_IMAGE_BYTES"]:
        return "Image size must be less than 10MB"
    return None


def _testimonial_submission(require_image: bool) -> tuple[dict[str, Any], str | None]:
    name = request.form.get("name", "").strip()
    text = request.form.get("text", "").strip()
    image = request.files.get("image")
    if image is not None and not image.filename:
        image = None

    fields = {"name": name, "text": text, "is_active": request.form.get("isActive") == "on", "image": image}
    if not name or not text:
        return fields, "Name and text are required"
    if image is None:
        return fields, "Image is required" if require_image else None
    return fields, validate_testimonial_image(image)


@admin_bp.get("/testimonials")
def testimonials():
    items: list[dict[str, Any]] = []
    try:
        items = testimonials_api.get_testimonials(get_api_client())
    except ApiError as exc:
        flash(error_message(exc, "Failed to load testimonials"), "error")
    editing = next((item for item in items if item.get("id") == request.args.get("edit")), None)
    return render_template("admin/testimonials.html", testimonials=items, editing=editing)


@admin_bp.post("/testimonials")
def create_testimonial():
    fields, problem = _testimonial_submission(require_image=True)
    if problem:
        flash(problem, "error")
        return redirect(url_for("admin.testimonials"))
    try:
        testimonials_api.create_testimonial(get_api_client(), **fields)
    except ApiError as exc:
        flash(error_message(exc, "Failed to save testimonial"), "error")
    else:
        flash("Testimonial created successfully", "success")
    return redirect(url_for("admin.testimonials"))


@admin_bp.post("/testimonials/<testimonial_id>")
def update_testimonial(testimonial_id: str):
    fields, problem = _testimonial_submission(require_image=False)
    if problem:
        flash(problem, "error")
        return redirect(url_for("admin.testimonials", edit=testimonial_id))
    try:
        testimonials_api.update_testimonial(get_api_client(), testimonial_id, **fields)
    except ApiError as exc:
        flash(error_message(exc, "Failed to save testimonial"), "error")
    else:
        flash("Testimonial updated successfully", "success")
    return redirect(url_for("admin.testimonials"))


@admin_bp.post("/testimonials/<testimonial_id>/delete")
def delete_testimonial(testimonial_id: str):
    try:
        testimonials_api.delete_testimonial(get_api_client(), testimonial_id)
    except ApiError as exc:
        flash(error_message(exc, "Failed to delete testimonial"), "error")
    else:
        flash("Testimonial deleted successfully", "success")
    return redirect(url_for("admin.testimonials"))
