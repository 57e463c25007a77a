"""Multi-step booking form draft.

Each booking page reads and writes a subset of the fields. The store accepts
any field; required-field checks belong to the step validators below and run
before the visitor may move on.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping

from nutriweb.app.state.keys import BOOKING_FORM_KEY
from nutriweb.app.validation import (
    calc_age_from_dob,
    clean_digits,
    validate_email,
    validate_mobile,
)

WEIGHT_LOSS_SLUG = "weight-loss"

BASIC_MEASUREMENTS = ("neck", "waist", "hip")
UPPER_BODY_MEASUREMENTS = (
    "neck",
    "chest",
    "chestFemale",
    "normalChestLung",
    "expandedChestLungs",
    "arms",
    "forearms",
    "wrist",
)
LOWER_BODY_MEASUREMENTS = (
    "abdomenUpper",
    "abdomenLower",
    "waist",
    "hip",
    "thighUpper",
    "thighLower",
    "calf",
    "ankle",
)
GENDERS = ("Male", "Female", "Other")


class BookingForm:
    """Accumulated booking fields persisted as a draft in client storage."""

    def __init__(self, storage: Any) -> None:
        self.storage = storage
        stored = storage.get(BOOKING_FORM_KEY)
        self.form: dict[str, Any] = dict(stored) if isinstance(stored, dict) else {}

    def __getitem__(self, key: str) -> Any:
        return self.form[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.form.get(key, default)

    def set_form(self, fields: Mapping[str, Any] | None = None, **extra: Any) -> dict[str, Any]:
        """Merge ``fields`` into the form and persist the draft."""

        merged = dict(self.form)
        merged.update(fields or {})
        merged.update(extra)
        if merged.get("dob") and merged.get("dob") != self.form.get("dob"):
            age = calc_age_from_dob(merged["dob"])
            if age is not None:
                merged["age"] = age
        self.form = merged
        self.storage.set(BOOKING_FORM_KEY, self.form)
        return self.form

    def reset(self) -> None:
        self.form = {}
        self.storage.remove(BOOKING_FORM_KEY)

    @property
    def plan_slug(self) -> str | None:
        return self.form.get("planSlug")

    @property
    def is_weight_loss_plan(self) -> bool:
        return self.plan_slug == WEIGHT_LOSS_SLUG

    def measurement_fields(self) -> tuple[str, ...]:
        """Optional measurement fields shown for the selected plan."""

        if self.is_weight_loss_plan:
            return UPPER_BODY_MEASUREMENTS + tuple(
                name for name in LOWER_BODY_MEASUREMENTS if name not in UPPER_BODY_MEASUREMENTS
            )
        return BASIC_MEASUREMENTS


def numeric_fields(raw: Mapping[str, Any], names: Iterable[str]) -> dict[str, str]:
    """Keep only the digits of each named field present in ``raw``."""

    return {name: clean_digits(str(raw.get(name) or "")) for name in names if name in raw}


def validate_personal(form: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not str(form.get("fullName") or "").strip():
        errors["fullName"] = "Full name is required"
    mobile_error = validate_mobile(form.get("mobile"))
    if mobile_error:
        errors["mobile"] = mobile_error
    email_error = validate_email(form.get("email"))
    if email_error:
        errors["email"] = email_error
    age = form.get("age")
    try:
        age_value = int(age) if age not in (None, "") else None
    except (TypeError, ValueError):
        age_value = -1
    if age_value is None:
        errors["age"] = "Age is required"
    elif not 1 <= age_value <= 120:
        errors["age"] = "Age must be between 1 and 120"
    if form.get("gender") not in GENDERS:
        errors["gender"] = "Please select a gender"
    if not str(form.get("address") or "").strip():
        errors["address"] = "Address is required"
    return errors


def validate_measurements(form: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not clean_digits(str(form.get("weight") or "")):
        errors["weight"] = "Weight is required"
    if not clean_digits(str(form.get("height") or "")):
        errors["height"] = "Height is required"
    return errors


def validate_recall(entries: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    errors: dict[str, str] = {}
    rows = list(entries)
    if not rows:
        errors["entries"] = "Add at least one meal to your food recall"
    for index, entry in enumerate(rows):
        for name in ("mealType", "time", "foodItem", "quantity"):
            if not str(entry.get(name) or "").strip():
                errors[f"entries.{index}.{name}"] = "This field is required"
    return errors


def validate_slot(form: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if form.get("mode") not in ("IN_PERSON", "ONLINE"):
        errors["mode"] = "Choose in-person or online"
    if not form.get("slotId"):
        errors["slotId"] = "Please select a time slot"
    return errors
