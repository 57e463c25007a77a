"""Doctor-notes intake form draft with debounced autosave.

The form is a nested mapping mirroring the clinical questionnaire. Edits are
applied immutably by path and written to client storage ``delay`` seconds
after the last edit. A draft found in storage is reconciled with the server's
copy by :func:`merge_drafts`.
"""
from __future__ import annotations

import copy
import functools
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from nutriweb.app.state.keys import DOCTOR_NOTES_PREFIX

LOGGER = logging.getLogger(__name__)

AUTO_SAVE_DELAY = 2.0
LAST_SAVED_KEY = "_lastSaved"

PERSONAL_FIELDS = frozenset(
    {
        "personalHistory",
        "reasonForJoiningProgram",
        "ethnicity",
        "joiningDate",
        "expiryDate",
        "dietPrescriptionDate",
        "durationOfDiet",
        "previousDietTaken",
        "previousDietDetails",
        "typeOfDietTaken",
        "maritalStatus",
        "numberOfChildren",
        "dietPreference",
        "wakeupTime",
        "bedTime",
        "dayNap",
        "workoutTiming",
        "workoutType",
    }
)

#: Top-level sections of the questionnaire, in form order.
SECTIONS = (
    "morningIntake",
    "breakfast",
    "midMorning",
    "lunch",
    "midDay",
    "eveningSnack",
    "dinner",
    "weekendDiet",
    "questionnaire",
    "foodFrequency",
    "healthProfile",
    "dietPrescribed",
)

ROOT_KEYS = PERSONAL_FIELDS | frozenset(SECTIONS) | {"notes"}


def storage_key(appointment_id: str) -> str:
    return f"{DOCTOR_NOTES_PREFIX}{appointment_id}"


def validate_path(path: Sequence[str]) -> list[str]:
    """Return ``path`` as a list of keys, rejecting unknown roots."""

    keys = [str(part) for part in path]
    if not keys or any(not key for key in keys):
        raise ValueError("A non-empty field path is required")
    if keys[0] not in ROOT_KEYS:
        raise ValueError(f"Unknown doctor-notes field: {keys[0]}")
    if keys[0] in PERSONAL_FIELDS and len(keys) > 1:
        raise ValueError(f"{keys[0]} does not have nested fields")
    return keys


def set_in(data: Mapping[str, Any], path: Sequence[str], value: Any) -> dict[str, Any]:
    """Return a copy of ``data`` with ``value`` stored at ``path``.

    Dictionaries along the path are copied; missing or non-dict intermediates
    are replaced with new dictionaries. ``data`` itself is left untouched.
    """

    if not path:
        raise ValueError("A non-empty field path is required")
    root = dict(data)
    current = root
    for key in path[:-1]:
        child = current.get(key)
        current[key] = dict(child) if isinstance(child, Mapping) else {}
        current = current[key]
    current[path[-1]] = value
    return root


def get_in(data: Mapping[str, Any], path: Sequence[str]) -> Any:
    current: Any = data
    for key in path:
        if isinstance(current, Mapping):
            current = current.get(key)
        else:
            return None
    return current


def merge_drafts(
    local: Mapping[str, Any] | None, server: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Reconcile a local draft with server data: the server wins per top-level key."""

    merged = dict(local or {})
    merged.pop(LAST_SAVED_KEY, None)
    merged.update(server or {})
    return merged


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DoctorNotesDraft:
    """Live draft of one appointment's doctor notes."""

    def __init__(
        self,
        storage: Any,
        appointment_id: str,
        initial_data: Mapping[str, Any] | None = None,
        *,
        delay: float = AUTO_SAVE_DELAY,
        timer_factory: Callable[..., Any] = threading.Timer,
        clock: Callable[[], datetime] = _utcnow,
        on_edited: Callable[["DoctorNotesDraft"], None] | None = None,
        on_saved: Callable[["DoctorNotesDraft"], None] | None = None,
    ) -> None:
        if not appointment_id:
            raise ValueError("Appointment ID is required")
        self.storage = storage
        self.appointment_id = str(appointment_id)
        self.storage_key = storage_key(self.appointment_id)
        self.delay = delay
        self._timer_factory = timer_factory
        self._clock = clock
        self._on_edited = on_edited
        self._on_saved = on_saved
        self._timer: Any = None
        self._lock = threading.RLock()

        self.form_data: dict[str, Any] = {}
        self.has_unsaved_changes = False
        self.is_auto_saving = False
        self.last_saved: datetime | None = None
        self._restore(initial_data)

    def _restore(self, initial_data: Mapping[str, Any] | None) -> None:
        try:
            stored = self.storage.get(self.storage_key)
        except ValueError:
            LOGGER.warning("Discarding unreadable doctor-notes draft %s", self.storage_key)
            stored = None

        if isinstance(stored, dict):
            saved_at = stored.get(LAST_SAVED_KEY)
            self.form_data = merge_drafts(stored, initial_data)
            self.last_saved = _parse_timestamp(saved_at)
        elif initial_data:
            self.form_data = copy.deepcopy(dict(initial_data))

    def update_form_data(self, path: Sequence[str], value: Any) -> None:
        with self._lock:
            self.form_data = set_in(self.form_data, list(path), value)
            self.has_unsaved_changes = True
            self._schedule()
            if self._on_edited is not None:
                self._on_edited(self)

    def get_form_value(self, path: Sequence[str]) -> Any:
        return get_in(self.form_data, list(path))

    def flush(self) -> None:
        """Persist immediately, as when the tab is closing."""

        with self._lock:
            self._cancel()
            if self.has_unsaved_changes:
                self._persist()

    def clear_form_data(self) -> None:
        """Drop the stored draft after a successful submission."""

        with self._lock:
            self._cancel()
            self.storage.remove(self.storage_key)
            self.form_data = {}
            self.has_unsaved_changes = False
            self.is_auto_saving = False
            self.last_saved = None

    def _schedule(self) -> None:
        self._cancel()
        self.is_auto_saving = True
        timer = self._timer_factory(self.delay, self._autosave)
        if hasattr(timer, "daemon"):
            timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _autosave(self) -> None:
        with self._lock:
            self._timer = None
            if self.has_unsaved_changes:
                self._persist()

    def _persist(self) -> None:
        now = self._clock()
        payload = dict(self.form_data)
        payload[LAST_SAVED_KEY] = now.isoformat()
        try:
            self.storage.set(self.storage_key, payload)
        except Exception:
            LOGGER.exception("Failed to autosave doctor notes for %s", self.appointment_id)
            self.is_auto_saving = False
            return
        self.last_saved = now
        self.has_unsaved_changes = False
        self.is_auto_saving = False
        if self._on_saved is not None:
            self._on_saved(self)


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class _AppContextStorage:
    """Client storage usable from autosave timer threads."""

    def __init__(self, app: Any, client_id: str) -> None:
        self.app = app
        self.client_id = client_id

    def _run(self, method: str, *args: Any) -> Any:
        from nutriweb.app.state.storage import ClientStorage

        with self.app.app_context():
            return getattr(ClientStorage(self.client_id), method)(*args)

    def get(self, key: str, default: Any = None) -> Any:
        return self._run("get", key, default)

    def set(self, key: str, value: Any) -> None:
        self._run("set", key, value)

    def remove(self, *keys: str) -> None:
        self._run("remove", *keys)


class DraftRegistry:
    """Keeps live drafts between requests so the debounce spans them.

    A draft stays registered while it has edits that are not yet in client
    storage, or until its form is reopened. A saved draft is dropped and
    rebuilt from storage on the next edit.
    """

    def __init__(self, app: Any = None, *, timer_factory: Callable[..., Any] = threading.Timer) -> None:
        self.app = None
        self.timer_factory = timer_factory
        self._drafts: dict[tuple[str, str], DoctorNotesDraft] = {}
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Any) -> None:
        self.app = app
        app.extensions["doctor_notes_drafts"] = self

    def _new_draft(
        self, client_id: str, appointment_id: str, initial_data: Mapping[str, Any] | None
    ) -> DoctorNotesDraft:
        key = (client_id, str(appointment_id))
        return DoctorNotesDraft(
            _AppContextStorage(self.app, client_id),
            appointment_id,
            initial_data,
            delay=self.app.config.get("DOCTOR_NOTES_AUTOSAVE_DELAY", AUTO_SAVE_DELAY),
            timer_factory=self.timer_factory,
            on_edited=functools.partial(self._adopt, key),
            on_saved=functools.partial(self._release, key),
        )

    def _adopt(self, key: tuple[str, str], draft: DoctorNotesDraft) -> None:
        # an edit can land on a draft released while a request still held it
        with self._lock:
            self._drafts.setdefault(key, draft)

    def _release(self, key: tuple[str, str], draft: DoctorNotesDraft) -> None:
        """Forget ``draft`` once everything it holds is in client storage."""

        with self._lock:
            if self._drafts.get(key) is draft and not draft.has_unsaved_changes:
                del self._drafts[key]

    def load(
        self, client_id: str, appointment_id: str, initial_data: Mapping[str, Any] | None = None
    ) -> DoctorNotesDraft:
        """Open the form: flush any live draft, then reconcile with ``initial_data``."""

        key = (client_id, str(appointment_id))
        with self._lock:
            live = self._drafts.pop(key, None)
        if live is not None:
            live.flush()
        draft = self._new_draft(client_id, appointment_id, initial_data)
        with self._lock:
            self._drafts[key] = draft
        return draft

    def get(self, client_id: str, appointment_id: str) -> DoctorNotesDraft:
        key = (client_id, str(appointment_id))
        with self._lock:
            draft = self._drafts.get(key)
            if draft is None:
                draft = self._new_draft(client_id, appointment_id, None)
                self._drafts[key] = draft
        return draft

    def discard(self, client_id: str, appointment_id: str) -> None:
        key = (client_id, str(appointment_id))
        with self._lock:
            draft = self._drafts.pop(key, None)
        if draft is None:
            draft = self._new_draft(client_id, appointment_id, None)
        draft.clear_form_data()


drafts = DraftRegistry()
