"""Patient-facing appointment endpoints and booking progress helpers."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from nutriweb.app.services.api_client import ApiClient, ApiError

LOGGER = logging.getLogger(__name__)

APPOINTMENT_MODES = ("IN_PERSON", "ONLINE")
DEFAULT_PLAN_DURATION = "40 min"


class BookingProgress(str, Enum):
    """Last completed step of a pending booking."""

    USER_DETAILS = "USER_DETAILS"
    RECALL = "RECALL"
    SLOT = "SLOT"
    PAYMENT = "PAYMENT"


_NEXT_STEP_URLS = {
    BookingProgress.USER_DETAILS: "/book/recall",
    BookingProgress.RECALL: "/book/slot",
    BookingProgress.SLOT: "/book/payment",
    BookingProgress.PAYMENT: "/book/payment",
}

_STEP_LABELS = {
    BookingProgress.USER_DETAILS: "User Details",
    BookingProgress.RECALL: "Recall",
    BookingProgress.SLOT: "Slot Selection",
    BookingProgress.PAYMENT: "Payment",
}


def _coerce_progress(progress: BookingProgress | str | None) -> BookingProgress | None:
    if progress is None or isinstance(progress, BookingProgress):
        return progress
    try:
        return BookingProgress(progress)
    except ValueError:
        return None


def get_next_step_url(progress: BookingProgress | str | None) -> str:
    """Return the URL of the step after ``progress``.

    An appointment without tracked progress already has user details, so it
    resumes at the recall step.
    """

    return _NEXT_STEP_URLS.get(_coerce_progress(progress), "/book/recall")


def get_step_label(progress: BookingProgress | str | None) -> str:
    return _STEP_LABELS.get(_coerce_progress(progress), "Start Booking")


def create_appointment(
    api: ApiClient,
    *,
    patient_id: str,
    plan_slug: str,
    plan_name: str,
    plan_price: float,
    appointment_mode: str,
    plan_duration: str = DEFAULT_PLAN_DURATION,
    plan_package_name: str | None = None,
    slot_id: str | None = None,
    start_at: str | None = None,
    end_at: str | None = None,
    booking_progress: BookingProgress | None = None,
) -> dict[str, Any]:
    """Create a pending appointment (``POST appointments/create``)."""

    if not patient_id:
        raise ValueError("patientId is required")
    if not plan_slug or not plan_name or not plan_price:
        raise ValueError("Plan details (planSlug, planName, planPrice) are required")
    if not plan_duration:
        raise ValueError(
            f"planDuration is required. Use '{DEFAULT_PLAN_DURATION}' for general consultation if not provided."
        )
    if appointment_mode not in APPOINTMENT_MODES:
        raise ValueError("appointmentMode must be 'IN_PERSON' or 'ONLINE'")

    payload: dict[str, Any] = {
        "patientId": patient_id,
        "planSlug": plan_slug,
        "planName": plan_name,
        "planPrice": plan_price,
        "planDuration": plan_duration,
        "appointmentMode": appointment_mode,
    }
    optional = {
        "planPackageName": plan_package_name,
        "slotId": slot_id,
        "startAt": start_at,
        "endAt": end_at,
        "bookingProgress": booking_progress.value if booking_progress else None,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})
    return api.post("appointments/create", payload)


def update_appointment_slot(
    api: ApiClient,
    appointment_id: str,
    *,
    slot_id: str,
    booking_progress: BookingProgress | None = None,
) -> dict[str, Any]:
    if not appointment_id:
        raise ValueError("Appointment ID is required")
    if not slot_id:
        raise ValueError("Slot ID is required")
    payload: dict[str, Any] = {"slotId": slot_id}
    if booking_progress:
        payload["bookingProgress"] = booking_progress.value
    return api.patch(f"appointments/{appointment_id}/slot", payload)


def get_pending_appointments(api: ApiClient, patient_id: str | None = None) -> dict[str, Any]:
    """List the current user's pending appointments, optionally for one patient."""

    try:
        response = api.get("appointments/pending", params={"patientId": patient_id})
    except ApiError as exc:
        LOGGER.warning(
            "[API] Error fetching pending appointments: status=%s message=%s",
            exc.status,
            exc.message,
        )
        raise
    LOGGER.debug(
        "[API] Pending appointments: count=%s patient=%s",
        len(response.get("appointments") or []),
        patient_id or "all",
    )
    return response


def update_booking_progress(
    api: ApiClient, appointment_id: str, booking_progress: BookingProgress | str
) -> dict[str, Any]:
    if not appointment_id:
        raise ValueError("Appointment ID is required")
    progress = _coerce_progress(booking_progress)
    if progress is None:
        raise ValueError("Booking progress is required")
    try:
        return api.patch(
            f"appointments/{appointment_id}/progress", {"bookingProgress": progress.value}
        )
    except ApiError as exc:
        LOGGER.warning("[API] Update booking progress error: %s", exc.message)
        raise


def delete_pending_appointment(api: ApiClient, appointment_id: str) -> dict[str, Any]:
    try:
        return api.delete(f"appointments/{appointment_id}")
    except ApiError as exc:
        LOGGER.warning("Failed to delete appointment %s: %s", appointment_id, exc.message)
        raise


def get_my_appointments(api: ApiClient) -> dict[str, Any]:
    return api.get("appointments/my")


def payment_pending(appointment: dict[str, Any]) -> bool:
    """True when a pending appointment still awaits a successful payment."""

    return appointment.get("status") == "PENDING" and appointment.get("paymentStatus") in {
        "PENDING",
        "FAILED",
        "INITIATED",
    }
