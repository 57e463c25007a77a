"""Admin dashboard, doctor notes autosave and testimonial management."""
from __future__ import annotations

import io
import json
from http import HTTPStatus
import unittest

from nutriweb.app.state.doctor_notes_store import drafts
from nutriweb.app.state.keys import USER_KEY
from tests.support import ADMIN, PATIENT, AppTestCase

NOTES_KEY = "doctor_notes_draft_appt-1"


class AdminAccessTestCase(AppTestCase):
    def test_anonymous_visitor_is_sent_to_login(self) -> None:
        response = self.client.get("/admin")

        self.assertEqual(response.status_code, HTTPStatus.FOUND)
        self.assertTrue(response.headers["Location"].startswith("/login"))

    def test_patient_is_sent_home(self) -> None:
        self.sign_in(PATIENT)

        response = self.client.get("/admin")

        self.assertEqual(response.headers["Location"], "/")

    def test_unconfirmed_admin_is_refused(self) -> None:
        self.sign_in(ADMIN)
        self.backend.route("GET", "auth/me", 500, {"message": "Internal error"})

        response = self.client.get("/admin")

        self.assertEqual(response.status_code, HTTPStatus.FOUND)
        self.assertEqual(response.headers["Location"], "/")
        self.assertEqual(self.storage_get(USER_KEY)["id"], ADMIN["id"])

    def test_dashboard_lists_appointments(self) -> None:
        self.sign_in(ADMIN)
        self.backend.route(
            "GET",
            "admin/appointments",
            200,
            {
                "success": True,
                "total": 45,
                "appointments": [{"id": "appt-1", "planName": "Kids Nutrition", "status": "PENDING"}],
            },
        )

        response = self.client.get("/admin?status=PENDING&page=2")

        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertIn("Kids Nutrition", response.get_data(as_text=True))
        params = self.backend.requests_to("GET", "admin/appointments")[0].kwargs["params"]
        self.assertEqual(params["status"], "PENDING")
        self.assertEqual(params["page"], 2)

    def test_unknown_appointment_renders_not_found(self) -> None:
        self.sign_in(ADMIN)

        response = self.client.get("/admin/appointments/missing")

        self.assertEqual(response.status_code, HTTPStatus.NOT_FOUND)

    def test_status_update_is_validated(self) -> None:
        self.sign_in(ADMIN)

        response = self.client.post("/admin/appointments/appt-1/status", data={"status": "LOST"})

        self.assertEqual(response.headers["Location"], "/admin/appointments/appt-1")
        self.assertEqual(self.backend.requests_to("PATCH", "admin/appointments/appt-1/status"), [])


class DoctorNotesViewsTestCase(AppTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.sign_in(ADMIN)

    def autosave(self, path, value):
        return self.client.post(
            "/admin/appointments/appt-1/doctor-notes/draft", json={"path": path, "value": value}
        )

    def test_form_starts_from_server_notes(self) -> None:
        self.backend.route(
            "GET",
            "admin/doctor-notes/appt-1",
            200,
            {"success": True, "doctorNotes": {"formData": {"ethnicity": "Gujarati"}}},
        )

        response = self.client.get("/admin/appointments/appt-1/doctor-notes")

        self.assertEqual(response.status_code, HTTPStatus.OK)
        self.assertIn('value="Gujarati"', response.get_data(as_text=True))

    def test_unknown_field_is_rejected(self) -> None:
        response = self.autosave("favouriteColour", "blue")

        self.assertEqual(response.status_code, HTTPStatus.BAD_REQUEST)
        self.assertFalse(response.get_json()["success"])

    def test_edits_are_persisted_after_the_debounce(self) -> None:
        response = self.autosave("breakfast.time", "08:30")
        self.assertTrue(response.get_json()["hasUnsavedChanges"])
        self.autosave(["breakfast", "items"], "Poha")

        self.assertIsNone(self.storage_get(NOTES_KEY))
        self.assertEqual(len(self.timers.pending), 1)

        self.timers.pending[0].fire()

        stored = self.storage_get(NOTES_KEY)
        self.assertEqual(stored["breakfast"], {"time": "08:30", "items": "Poha"})
        self.assertIn("_lastSaved", stored)

    def test_flush_persists_without_waiting(self) -> None:
        self.autosave("notes", "Prefers home food")

        response = self.client.post("/admin/appointments/appt-1/doctor-notes/flush")

        self.assertFalse(response.get_json()["hasUnsavedChanges"])
        self.assertIsNotNone(response.get_json()["lastSaved"])
        self.assertEqual(self.storage_get(NOTES_KEY)["notes"], "Prefers home food")
        self.assertEqual(self.timers.pending, [])

    def test_saved_drafts_are_released(self) -> None:
        for index in range(5):
            self.client.post(
                f"/admin/appointments/appt-{index}/doctor-notes/draft", json={"path": "notes", "value": "Seen"}
            )
            self.client.post(f"/admin/appointments/appt-{index}/doctor-notes/flush")

        self.assertEqual(drafts._drafts, {})

    def test_debounced_save_releases_draft_without_losing_edits(self) -> None:
        self.autosave("notes", "Prefers home food")
        self.assertEqual(len(drafts._drafts), 1)

        self.timers.pending[0].fire()
        self.assertEqual(drafts._drafts, {})

        self.autosave("dietPreference", "Vegetarian")
        self.client.post("/admin/appointments/appt-1/doctor-notes/flush")

        stored = self.storage_get(NOTES_KEY)
        self.assertEqual(stored["notes"], "Prefers home food")
        self.assertEqual(stored["dietPreference"], "Vegetarian")
        self.assertEqual(drafts._drafts, {})

    def test_submit_sends_notes_and_clears_draft(self) -> None:
        self.autosave("dietPreference", "Vegetarian")
        self.backend.route("POST", "admin/doctor-notes", 201, {"success": True})

        response = self.client.post("/admin/appointments/appt-1/doctor-notes", data={"isDraft": "false"})

        self.assertEqual(response.headers["Location"], "/admin/appointments/appt-1")
        sent = self.backend.requests_to("POST", "admin/doctor-notes")[0].kwargs["data"]
        self.assertEqual(sent["appointmentId"], "appt-1")
        self.assertEqual(json.loads(sent["formData"]), {"dietPreference": "Vegetarian"})
        self.assertIsNone(self.storage_get(NOTES_KEY))

    def test_saving_a_draft_keeps_local_copy(self) -> None:
        self.autosave("dietPreference", "Vegan")
        self.backend.route("POST", "admin/doctor-notes", 201, {"success": True})

        response = self.client.post("/admin/appointments/appt-1/doctor-notes", data={"isDraft": "true"})

        self.assertEqual(response.headers["Location"], "/admin/appointments/appt-1/doctor-notes")
        self.assertEqual(self.storage_get(NOTES_KEY)["dietPreference"], "Vegan")


class TestimonialAdminTestCase(AppTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.sign_in(ADMIN)

    def flashes(self):
        with self.client.session_transaction() as sess:
            return sess.get("_flashes", [])

    def test_image_is_required_for_new_testimonials(self) -> None:
        self.client.post("/admin/testimonials", data={"name": "Riya", "text": "Lost 8 kg"})

        self.assertIn(("error", "Image is required"), self.flashes())
        self.assertEqual(self.backend.requests_to("POST", "testimonials/admin"), [])

    def test_only_png_and_jpeg_are_accepted(self) -> None:
        self.client.post(
            "/admin/testimonials",
            data={"name": "Riya", "text": "Lost 8 kg", "image": (io.BytesIO(b"GIF89a"), "riya.gif", "image/gif")},
            content_type="multipart/form-data",
        )

        self.assertIn(("error", "Only PNG, JPG, and JPEG images are allowed"), self.flashes())

    def test_create_uploads_multipart(self) -> None:
        self.backend.route("POST", "testimonials/admin", 201, {"success": True})

        response = self.client.post(
            "/admin/testimonials",
            data={
                "name": "Riya",
                "text": "Lost 8 kg",
                "isActive": "on",
                "image": (io.BytesIO(b"\x89PNG"), "riya.png", "image/png"),
            },
            content_type="multipart/form-data",
        )

        self.assertEqual(response.headers["Location"], "/admin/testimonials")
        call = self.backend.requests_to("POST", "testimonials/admin")[0]
        self.assertEqual(call.kwargs["data"], {"name": "Riya", "text": "Lost 8 kg", "isActive": "true"})
        self.assertEqual(call.kwargs["files"][0][0], "image")
        self.assertIn(("success", "Testimonial created successfully"), self.flashes())

    def test_update_without_image_keeps_existing(self) -> None:
        self.backend.route("PUT", "testimonials/admin/t1", 200, {"success": True})

        self.client.post("/admin/testimonials/t1", data={"name": "Riya", "text": "Updated"})

        call = self.backend.requests_to("PUT", "testimonials/admin/t1")[0]
        self.assertIsNone(call.kwargs["files"])
        self.assertIn(("success", "Testimonial updated successfully"), self.flashes())


if __name__ == "__main__":
    unittest.main()
