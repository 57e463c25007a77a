"""Doctor-notes endpoints (admin only)."""
from __future__ import annotations

import json
from typing import Any

from nutriweb.app.services.api_client import ApiClient


def save_doctor_notes(
    api: ApiClient,
    *,
    appointment_id: str,
    form_data: dict[str, Any],
    is_draft: bool = False,
    diet_chart: Any = None,
) -> dict[str, Any]:
    """Submit the intake form as multipart, attaching the diet chart when present."""

    data = {
        "appointmentId": appointment_id,
        "formData": json.dumps(form_data),
        "isDraft": "true" if is_draft else "false",
    }
    files = None
    if diet_chart is not None:
        part = diet_chart if isinstance(diet_chart, tuple) else (
            diet_chart.filename,
            diet_chart.stream,
            diet_chart.mimetype,
        )
        files = [("dietChart", part)]
    return api.post("admin/doctor-notes", data=data, files=files)


def get_doctor_notes(api: ApiClient, appointment_id: str) -> dict[str, Any]:
    return api.get(f"admin/doctor-notes/{appointment_id}")
