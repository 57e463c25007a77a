"""Payment order lookup used to resume an interrupted payment."""
from __future__ import annotations

import logging
from typing import Any

from nutriweb.app.services.api_client import ApiClient, ApiError

LOGGER = logging.getLogger(__name__)


def get_existing_order(api: ApiClient, appointment_id: str) -> dict[str, Any]:
    """Return ``{"success": bool, "order"?: {...}, "error"?: str}`` for an appointment."""

    if not appointment_id:
        raise ValueError("Appointment ID is required")
    try:
        return api.get(f"payment/order/{appointment_id}")
    except ApiError as exc:
        LOGGER.warning("Failed to resume payment for %s: %s", appointment_id, exc.message)
        error = exc.payload.get("error") if isinstance(exc.payload, dict) else None
        return {
            "success": False,
            "error": error or exc.message or "No payment order found. Please start a new booking.",
        }
