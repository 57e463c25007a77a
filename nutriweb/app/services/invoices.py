"""Invoice lookup and PDF download."""
from __future__ import annotations

import logging
from typing import Any

from nutriweb.app.services.api_client import ApiClient, ApiError

LOGGER = logging.getLogger(__name__)


def get_invoice_by_appointment_id(api: ApiClient, appointment_id: str) -> dict[str, Any]:
    """Return ``{"success": bool, "invoice"?: ..., "error"?: str}``; never raises."""

    try:
        return api.get(f"invoice/appointment/{appointment_id}")
    except ApiError as exc:
        if exc.status == 404:
            # not generated yet
            return {"success": False, "error": "Invoice not found"}
        LOGGER.error("[INVOICE] Error fetching invoice: %s", exc.message)
        error = exc.payload.get("error") if isinstance(exc.payload, dict) else None
        return {"success": False, "error": error or "Failed to fetch invoice"}


def download_invoice(api: ApiClient, invoice_number: str) -> bytes:
    try:
        return api.get_bytes(f"invoice/{invoice_number}")
    except ApiError as exc:
        LOGGER.error("[INVOICE] Error downloading invoice: %s", exc.message)
        error = exc.payload.get("error") if isinstance(exc.payload, dict) else None
        raise ApiError(
            error or "Failed to download invoice", status=exc.status, payload=exc.payload, url=exc.url
        ) from exc
