"""
Tests for the scheduling HTTP endpoints.

The booking service dependency is overridden with in-memory repositories,
so no database is needed.
"""

import unittest

from fastapi.testclient import TestClient

from agenda.api import get_booking_service
from agenda.main import app
from agenda.models.schemas import ScheduleConfigurationError
from agenda.services.booking import BookingService
from tests.factories import (
    FakeAppointmentRepository,
    FakeScheduleRepository,
    make_appointment,
    make_schedule,
    utc,
)


class TestSchedulingApi(unittest.TestCase):
    """Tests for /schedules endpoints."""

    def setUp(self):
        self.schedule_repo = FakeScheduleRepository({"sched-1": make_schedule(lunch_start=720, lunch_end=780)})
        self.appointment_repo = FakeAppointmentRepository(self.schedule_repo, [make_appointment(540)])
        now = utc(2025, 1, 5, 12)

        app.dependency_overrides[get_booking_service] = lambda: BookingService(
            self.schedule_repo, self.appointment_repo, clock=lambda: now
        )
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def test_available_slots(self):
        response = self.client.get("/schedules/sched-1/available-slots", params={"date": "2025-01-06"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        times = [slot["time"] for slot in body["slots"]]
        self.assertEqual(len(times), 17)
        self.assertNotIn("09:00", times)
        self.assertNotIn("12:00", times)
        self.assertEqual(body["slots"][0], {"time": "08:00", "end_time": "08:30", "label": "08:00"})

    def test_available_slots_requires_date(self):
        response = self.client.get("/schedules/sched-1/available-slots")

        self.assertEqual(response.status_code, 422)

    def test_unknown_schedule_is_404(self):
        response = self.client.get("/schedules/nope/available-slots", params={"date": "2025-01-06"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "schedule_not_found")

    def test_misconfigured_schedule_is_500(self):
        self.schedule_repo.error = ScheduleConfigurationError("sched-1", [{"loc": ("start_time",), "msg": "bad"}])

        response = self.client.get("/schedules/sched-1/available-slots", params={"date": "2025-01-06"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "schedule_misconfigured")

    def test_validate_available(self):
        response = self.client.post("/schedules/sched-1/validate", json={"date": "2025-01-06", "time": "10:00"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["available"], True)

    def test_validate_double_booked_is_409(self):
        response = self.client.post("/schedules/sched-1/validate", json={"date": "2025-01-06", "time": "09:00"})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["reason"], "DOUBLE_BOOKED")

    def test_validate_lunch_is_422(self):
        response = self.client.post("/schedules/sched-1/validate", json={"date": "2025-01-06", "time": "12:30"})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["reason"], "LUNCH_CONFLICT")

    def test_create_appointment(self):
        payload = {"date": "2025-01-06", "time": "15:00", "client_name": "Ana", "client_phone": "+5511999999999"}

        created = self.client.post("/schedules/sched-1/appointments", json=payload)
        repeated = self.client.post("/schedules/sched-1/appointments", json=payload)

        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["appointment_id"], "appt-1")
        self.assertEqual(repeated.status_code, 409)
        self.assertEqual(repeated.json()["reason"], "DOUBLE_BOOKED")

    def test_create_rejects_malformed_time(self):
        response = self.client.post("/schedules/sched-1/appointments", json={"date": "2025-01-06", "time": "3pm"})

        self.assertEqual(response.status_code, 422)

    def test_out_of_range_time_is_422(self):
        client = TestClient(app, raise_server_exceptions=False)

        for path in ("/schedules/sched-1/validate", "/schedules/sched-1/appointments"):
            for value in ("24:30", "99:99", "10:75"):
                with self.subTest(path=path, time=value):
                    response = client.post(path, json={"date": "2025-01-06", "time": value})
                    self.assertEqual(response.status_code, 422)

        self.assertEqual(self.appointment_repo.commits, 0)


if __name__ == "__main__":
    unittest.main()
