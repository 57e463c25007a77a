"""Slot availability endpoint."""
from __future__ import annotations

from datetime import date as date_type
from typing import Any

from nutriweb.app.services.api_client import ApiClient
from nutriweb.app.services.appointments import APPOINTMENT_MODES


def get_available_slots(api: ApiClient, date: str | date_type, mode: str) -> list[dict[str, Any]]:
    """Return the open slots for ``date`` (``YYYY-MM-DD``) and ``mode``."""

    if mode not in APPOINTMENT_MODES:
        raise ValueError("mode must be 'IN_PERSON' or 'ONLINE'")
    if isinstance(date, date_type):
        date = date.isoformat()
    response = api.get("slots/available", params={"date": date, "mode": mode})
    return list(response.get("data") or [])
