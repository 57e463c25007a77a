"""Admin appointment management endpoints."""
from __future__ import annotations

import logging
from typing import Any

from nutriweb.app.services.api_client import ApiClient, ApiError

LOGGER = logging.getLogger(__name__)

APPOINTMENT_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED")
DELETE_SCOPES = ("admin", "global")


def get_admin_appointments(
    api: ApiClient,
    *,
    page: int | None = None,
    limit: int | None = None,
    status: str | None = None,
    mode: str | None = None,
    date: str | None = None,
    q: str | None = None,
) -> dict[str, Any]:
    params = {"page": page, "limit": limit, "status": status, "mode": mode, "date": date, "q": q}
    try:
        return api.get("admin/appointments", params=params)
    except ApiError as exc:
        LOGGER.error("Failed to fetch appointments: %s", exc.message)
        raise


def get_appointment_details(api: ApiClient, appointment_id: str) -> dict[str, Any]:
    try:
        return api.get(f"admin/appointments/{appointment_id}")
    except ApiError as exc:
        LOGGER.error("Failed to fetch appointment details: %s", exc.message)
        raise


def update_appointment_status(api: ApiClient, appointment_id: str, status: str) -> dict[str, Any]:
    if status not in APPOINTMENT_STATUSES:
        raise ValueError(f"status must be one of {', '.join(APPOINTMENT_STATUSES)}")
    try:
        return api.patch(f"admin/appointments/{appointment_id}/status", {"status": status})
    except ApiError as exc:
        LOGGER.error("Failed to update appointment status: %s", exc.message)
        raise


def delete_appointment(
    api: ApiClient,
    appointment_id: str,
    *,
    reason: str | None = None,
    scope: str | None = None,
) -> dict[str, Any]:
    """Remove an appointment from the admin view.

    Without a reason or scope this is the admin-only soft delete. ``scope="global"``
    archives the appointment for the patient as well.
    """

    if scope is not None and scope not in DELETE_SCOPES:
        raise ValueError("scope must be 'admin' or 'global'")
    try:
        if reason or scope:
            body = {key: value for key, value in {"reason": reason, "scope": scope}.items() if value}
            return api.patch(f"admin/appointments/{appointment_id}/admin-delete", body)
        return api.delete(f"admin/appointments/{appointment_id}")
    except ApiError as exc:
        LOGGER.error("Failed to delete appointment: %s", exc.message)
        raise
