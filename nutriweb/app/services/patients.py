"""Patient and food-recall endpoints."""
from __future__ import annotations

from typing import Any, Iterable

from nutriweb.app.services.api_client import ApiClient

RECALL_ENTRY_FIELDS = ("mealType", "time", "foodItem", "quantity")


def get_my_patients(api: ApiClient) -> list[dict[str, Any]]:
    response = api.get("patients/me")
    return list(response.get("patients") or [])


def create_patient(api: ApiClient, data: dict[str, Any]) -> dict[str, Any]:
    return api.post("patients/", data)


def create_recall(
    api: ApiClient,
    *,
    patient_id: str,
    entries: Iterable[dict[str, Any]],
    notes: str | None = None,
    appointment_id: str | None = None,
) -> dict[str, Any]:
    """Record a 24-hour food recall for ``patient_id``."""

    if not patient_id:
        raise ValueError("patientId is required")
    payload: dict[str, Any] = {"patientId": patient_id, "entries": list(entries)}
    if notes:
        payload["notes"] = notes
    if appointment_id:
        payload["appointmentId"] = appointment_id
    return api.post("patients/recall", payload)
