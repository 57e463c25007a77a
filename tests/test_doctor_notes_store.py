"""Tests for the doctor-notes draft: nested updates, reconciliation and autosave."""
from __future__ import annotations

import unittest
from datetime import datetime, timezone

from nutriweb.app.state.doctor_notes_store import (
    LAST_SAVED_KEY,
    DoctorNotesDraft,
    get_in,
    merge_drafts,
    set_in,
    storage_key,
    validate_path,
)
from nutriweb.app.state.storage import MemoryStorage
from tests.support import TimerRecorder

SAVED_AT = datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)


class PathHelperTests(unittest.TestCase):
    def test_set_in_creates_intermediate_levels_without_mutating(self) -> None:
        original = {"lunch": {"rice": {"bowls": "1"}}, "ethnicity": "Indian"}

        updated = set_in(original, ["lunch", "dal", "type", "name"], "Moong")

        self.assertEqual(updated["lunch"]["dal"], {"type": {"name": "Moong"}})
        self.assertEqual(updated["lunch"]["rice"], {"bowls": "1"})
        self.assertNotIn("dal", original["lunch"])

    def test_set_in_replaces_scalar_intermediate(self) -> None:
        updated = set_in({"breakfast": "none"}, ["breakfast", "time"], "08:00")
        self.assertEqual(updated, {"breakfast": {"time": "08:00"}})

    def test_get_in(self) -> None:
        data = {"lunch": {"chicken": {"checked": True}}}
        self.assertTrue(get_in(data, ["lunch", "chicken", "checked"]))
        self.assertIsNone(get_in(data, ["lunch", "fish", "checked"]))
        self.assertIsNone(get_in(data, ["lunch", "chicken", "checked", "deeper"]))

    def test_validate_path(self) -> None:
        self.assertEqual(validate_path(["lunch", "rice", "bowls"]), ["lunch", "rice", "bowls"])
        self.assertEqual(validate_path(["ethnicity"]), ["ethnicity"])
        for bad in ([], ["unknownSection"], ["ethnicity", "nested"], ["lunch", ""]):
            with self.subTest(path=bad):
                with self.assertRaises(ValueError):
                    validate_path(bad)

    def test_merge_prefers_server_per_top_level_key(self) -> None:
        local = {"lunch": {"rice": {"bowls": "2"}}, "dinner": {"time": "20:00"}, LAST_SAVED_KEY: "x"}
        server = {"lunch": {"roti": {"count": "3"}}}

        merged = merge_drafts(local, server)

        self.assertEqual(merged, {"lunch": {"roti": {"count": "3"}}, "dinner": {"time": "20:00"}})


class DoctorNotesDraftTests(unittest.TestCase):
    def setUp(self) -> None:
        self.storage = MemoryStorage()
        self.timers = TimerRecorder()

    def _draft(self, initial=None) -> DoctorNotesDraft:
        return DoctorNotesDraft(
            self.storage,
            "appt-1",
            initial,
            delay=2,
            timer_factory=self.timers,
            clock=lambda: SAVED_AT,
        )

    def test_requires_appointment_id(self) -> None:
        with self.assertRaises(ValueError):
            DoctorNotesDraft(self.storage, "")

    def test_updates_are_debounced(self) -> None:
        draft = self._draft()

        draft.update_form_data(["lunch", "rice", "bowls"], "2")
        draft.update_form_data(["lunch", "rice", "type"], "Brown")

        self.assertEqual(len(self.timers.timers), 2)
        self.assertTrue(self.timers.timers[0].cancelled)
        self.assertEqual(len(self.timers.pending), 1)
        self.assertEqual(self.timers.pending[0].delay, 2)
        self.assertTrue(draft.has_unsaved_changes)
        self.assertTrue(draft.is_auto_saving)
        self.assertIsNone(self.storage.get(storage_key("appt-1")))

        self.timers.pending[0].fire()

        stored = self.storage.get(storage_key("appt-1"))
        self.assertEqual(stored["lunch"]["rice"], {"bowls": "2", "type": "Brown"})
        self.assertEqual(stored[LAST_SAVED_KEY], SAVED_AT.isoformat())
        self.assertFalse(draft.has_unsaved_changes)
        self.assertFalse(draft.is_auto_saving)
        self.assertEqual(draft.last_saved, SAVED_AT)

    def test_flush_persists_immediately(self) -> None:
        draft = self._draft()
        draft.update_form_data(["notes"], "Follow up in 2 weeks")

        draft.flush()

        self.assertTrue(self.timers.timers[0].cancelled)
        self.assertEqual(self.storage.get(storage_key("appt-1"))["notes"], "Follow up in 2 weeks")

    def test_hooks_report_edits_and_successful_saves(self) -> None:
        events: list[tuple[str, bool]] = []
        draft = DoctorNotesDraft(
            self.storage,
            "appt-1",
            timer_factory=self.timers,
            clock=lambda: SAVED_AT,
            on_edited=lambda d: events.append(("edited", d.has_unsaved_changes)),
            on_saved=lambda d: events.append(("saved", d.has_unsaved_changes)),
        )

        draft.flush()
        draft.update_form_data(["notes"], "Low sodium")
        self.timers.pending[0].fire()

        self.assertEqual(events, [("edited", True), ("saved", False)])

    def test_restores_local_draft_and_reconciles_with_server(self) -> None:
        self.storage.set(
            storage_key("appt-1"),
            {"dinner": {"time": "21:00"}, "lunch": {"rice": {"bowls": "1"}}, LAST_SAVED_KEY: SAVED_AT.isoformat()},
        )

        draft = self._draft({"lunch": {"roti": {"count": "2"}}})

        self.assertEqual(draft.get_form_value(["dinner", "time"]), "21:00")
        self.assertEqual(draft.get_form_value(["lunch"]), {"roti": {"count": "2"}})
        self.assertNotIn(LAST_SAVED_KEY, draft.form_data)
        self.assertEqual(draft.last_saved, SAVED_AT)

    def test_clear_form_data_removes_stored_draft(self) -> None:
        draft = self._draft()
        draft.update_form_data(["ethnicity"], "Indian")
        draft.flush()

        draft.clear_form_data()

        self.assertEqual(draft.form_data, {})
        self.assertIsNone(draft.last_saved)
        self.assertIsNone(self.storage.get(storage_key("appt-1")))


if __name__ == "__main__":
    unittest.main()
