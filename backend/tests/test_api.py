"""
HTTP-level tests: routers, error mapping and the slot endpoints.
"""

import unittest

from fastapi.testclient import TestClient

from agenda.database import get_db
from agenda.main import app
from agenda.redis_client import get_redis

from factories import MONDAY, add_professional, add_schedule, make_sessionmaker


class TestAgendaAPI(unittest.TestCase):

    def setUp(self):
        self.Session = make_sessionmaker()
        with self.Session() as db:
            self.pid = add_professional(db).professional_id

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_redis] = lambda: None
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def _schedule(self, **kwargs):
        payload = {
            "professional_id": self.pid,
            "day_of_week": "monday",
            "start_time": "09:00",
            "end_time": "12:00",
        }
        payload.update(kwargs)
        return self.client.post("/schedules/", json=payload)

    def test_create_schedule(self):
        response = self._schedule()
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["day_of_week"], "monday")
        self.assertEqual(body["start_time"], "09:00")

        listed = self.client.get(f"/schedules/professional/{self.pid}")
        self.assertEqual(len(listed.json()), 1)

    def test_schedule_errors_map_to_status(self):
        self._schedule()

        overlap = self._schedule(start_time="11:00", end_time="13:00")
        self.assertEqual(overlap.status_code, 409)
        self.assertIn("09:00-12:00", overlap.json()["detail"])

        bad_time = self._schedule(day_of_week="tuesday", start_time="25:00")
        self.assertEqual(bad_time.status_code, 400)

        unknown = self._schedule(professional_id=999)
        self.assertEqual(unknown.status_code, 404)

        self.assertEqual(self.client.get("/schedules/999").status_code, 404)

    def test_toggle_and_delete_schedule(self):
        schedule_id = self._schedule().json()["schedule_id"]

        toggled = self.client.patch(f"/schedules/{schedule_id}/toggle")
        self.assertFalse(toggled.json()["is_active"])

        self.assertEqual(self.client.delete(f"/schedules/{schedule_id}").status_code, 204)
        self.assertEqual(self.client.delete(f"/schedules/{schedule_id}").status_code, 404)

    def test_exception_bulk_reports_failures(self):
        response = self.client.post("/availability_exceptions/bulk", json={
            "professional_id": self.pid,
            "exceptions": [
                {"exception_date": MONDAY, "type": "vacation"},
                {"exception_date": MONDAY, "type": "unavailable"},
            ],
        })
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["succeeded"]), 1)
        self.assertEqual(body["failed"][0]["index"], 1)

    def test_available_slots_generated(self):
        with self.Session() as db:
            add_schedule(db, self.pid, "monday", "09:00", "12:00")

        response = self.client.get(
            "/slots/available",
            params={"professional_id": self.pid, "start_date": MONDAY, "max_virtual_slots": 4},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["is_generated"])
        self.assertEqual(body["total_count"], 4)
        self.assertEqual(body["end_date"], MONDAY)
        self.assertEqual(body["slots"][0]["slot_id"], 1_000_000)
        self.assertEqual(body["slots"][0]["start_time"], "09:00")

    def test_available_slots_bad_duration(self):
        response = self.client.get(
            "/slots/available",
            params={"professional_id": self.pid, "start_date": MONDAY, "duration": 5},
        )
        self.assertEqual(response.status_code, 400)

    def test_day_availability(self):
        response = self.client.get(
            "/slots/day", params={"professional_id": self.pid, "date": MONDAY}
        )
        body = response.json()
        self.assertFalse(body["is_available"])
        self.assertEqual(body["date"], MONDAY)

    def test_bulk_time_slots_then_persisted_wins(self):
        response = self.client.post("/time_slots/bulk", json={
            "professional_id": self.pid,
            "start_date": MONDAY,
            "end_date": MONDAY,
            "start_time": "14:00",
            "end_time": "15:00",
            "duration_minutes": 30,
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["succeeded"]), 2)

        available = self.client.get(
            "/slots/available", params={"professional_id": self.pid, "start_date": MONDAY}
        ).json()
        self.assertFalse(available["is_generated"])
        self.assertEqual([s["start_time"] for s in available["slots"]], ["14:00", "14:30"])

    def test_invalidate_without_cache(self):
        response = self.client.post("/slots/invalidate", params={"professional_id": self.pid})
        self.assertEqual(response.json(), {"professional_id": self.pid, "deleted_keys": 0})

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")


if __name__ == "__main__":
    unittest.main()
