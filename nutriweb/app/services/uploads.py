"""File upload endpoints used for patient reports."""
from __future__ import annotations

import logging
from typing import Any, Sequence

from nutriweb.app.services.api_client import ApiClient, ApiError

LOGGER = logging.getLogger(__name__)


def upload_files(api: ApiClient, files: Sequence[Any]) -> list[dict[str, Any]]:
    """Upload files (werkzeug ``FileStorage`` or ``(name, stream, mimetype)`` tuples)."""

    if not files:
        raise ValueError("At least one file is required")
    multipart = [("files", _as_part(item)) for item in files]
    try:
        response = api.post("upload/image", files=multipart)
    except ApiError as exc:
        LOGGER.error("[API] Upload files error: status=%s message=%s", exc.status, exc.message)
        raise
    return list(response.get("files") or [])


def delete_file(api: ApiClient, file_id: str) -> None:
    if not file_id:
        raise ValueError("File ID is required")
    try:
        api.delete(f"patients/file/{file_id}")
    except ApiError as exc:
        LOGGER.error("[API] Delete file error: status=%s message=%s", exc.status, exc.message)
        raise


def link_files_to_patient(api: ApiClient, patient_id: str, file_ids: Sequence[str]) -> None:
    if not patient_id:
        raise ValueError("Patient ID is required")
    if not file_ids:
        raise ValueError("At least one file ID is required")
    try:
        api.patch(f"patients/{patient_id}/files", {"fileIds": list(file_ids)})
    except ApiError as exc:
        LOGGER.error(
            "[API] Link files to patient error: status=%s message=%s", exc.status, exc.message
        )
        raise


def _as_part(item: Any) -> Any:
    if isinstance(item, tuple):
        return item
    return (item.filename, item.stream, item.mimetype)
