"""Public and admin testimonial endpoints."""
from __future__ import annotations

import logging
from typing import Any

from nutriweb.app.services.api_client import ApiClient, ApiError

LOGGER = logging.getLogger(__name__)


def get_public_testimonials(api: ApiClient) -> list[dict[str, Any]]:
    """Return active testimonials for the home page; empty on any failure."""

    try:
        response = api.get("testimonials")
    except ApiError as exc:
        LOGGER.warning("Failed to fetch testimonials: %s", exc.message)
        return []
    if response.get("success") and response.get("testimonials"):
        return list(response["testimonials"])
    return []


def get_testimonials(api: ApiClient) -> list[dict[str, Any]]:
    try:
        response = api.get("testimonials/admin")
    except ApiError as exc:
        LOGGER.error("[API] Get testimonials error: %s", exc.payload or exc.message)
        raise
    if response.get("success") and response.get("testimonials"):
        return list(response["testimonials"])
    return []


def _form_fields(name: str, text: str, is_active: bool) -> dict[str, str]:
    return {"name": name, "text": text, "isActive": "true" if is_active else "false"}


def _image_part(image: Any) -> list[tuple[str, Any]] | None:
    if image is None:
        return None
    if isinstance(image, tuple):
        return [("image", image)]
    return [("image", (image.filename, image.stream, image.mimetype))]


def create_testimonial(
    api: ApiClient, *, name: str, text: str, is_active: bool, image: Any
) -> dict[str, Any]:
    try:
        return api.post(
            "testimonials/admin",
            data=_form_fields(name, text, is_active),
            files=_image_part(image),
        )
    except ApiError as exc:
        LOGGER.error("[API] Create testimonial error: %s", exc.payload or exc.message)
        raise


def update_testimonial(
    api: ApiClient,
    testimonial_id: str,
    *,
    name: str,
    text: str,
    is_active: bool,
    image: Any = None,
) -> dict[str, Any]:
    try:
        return api.put(
            f"testimonials/admin/{testimonial_id}",
            data=_form_fields(name, text, is_active),
            files=_image_part(image),
        )
    except ApiError as exc:
        LOGGER.error("[API] Update testimonial error: %s", exc.payload or exc.message)
        raise


def delete_testimonial(api: ApiClient, testimonial_id: str) -> dict[str, Any]:
    try:
        return api.delete(f"testimonials/admin/{testimonial_id}")
    except ApiError as exc:
        LOGGER.error("[API] Delete testimonial error: %s", exc.payload or exc.message)
        raise
