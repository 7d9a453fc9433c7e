"""
Tests for services/booking.py

Runs the booking service over in-memory repositories with a fixed clock.
"""

import unittest

from agenda.db.repository import ScheduleNotFoundError
from agenda.models.schemas import BookingRequest, RejectionReason
from agenda.services.booking import BookingService
from tests.factories import (
    MONDAY,
    SUNDAY,
    FakeAppointmentRepository,
    FakeScheduleRepository,
    make_appointment,
    make_schedule,
    utc,
)


class TestBookingService(unittest.IsolatedAsyncioTestCase):
    """Tests for BookingService."""

    def setUp(self):
        self.schedule_repo = FakeScheduleRepository({"sched-1": make_schedule(min_notice_hours=2)})
        self.appointment_repo = FakeAppointmentRepository(self.schedule_repo, [make_appointment(540)])
        self.now = utc(2025, 1, 6, 8, 15)
        self.service = BookingService(self.schedule_repo, self.appointment_repo, clock=lambda: self.now)

    async def test_list_available_slots(self):
        response = await self.service.list_available_slots("sched-1", MONDAY)

        times = [slot.time for slot in response.slots]
        self.assertEqual(times[0], "10:30")
        self.assertEqual(times[-1], "17:30")
        self.assertEqual(len(times), 15)
        self.assertEqual(response.slot_duration, 30)
        self.assertIsNone(response.message)

    async def test_list_slots_on_closed_day(self):
        response = await self.service.list_available_slots("sched-1", SUNDAY)

        self.assertEqual(response.slots, [])
        self.assertEqual(response.message, "This day is not available on the schedule.")

    async def test_list_slots_with_service_duration(self):
        response = await self.service.list_available_slots("sched-1", MONDAY, duration_minutes=60)

        self.assertEqual(response.slot_duration, 60)
        self.assertTrue(all(slot.time in ("10:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00", "17:00")
                            for slot in response.slots))

    async def test_unknown_schedule(self):
        with self.assertRaises(ScheduleNotFoundError):
            await self.service.list_available_slots("missing", MONDAY)

    async def test_check_booking(self):
        free = await self.service.check_booking("sched-1", BookingRequest(date=MONDAY, time="11:00"))
        soon = await self.service.check_booking("sched-1", BookingRequest(date=MONDAY, time="09:30"))

        self.assertTrue(free.accepted)
        self.assertEqual(soon.reason, RejectionReason.TOO_SOON)

    async def test_book_then_double_book(self):
        request = BookingRequest(date=MONDAY, time="11:00", client_name="Ana", client_phone="+5511999999999")

        first = await self.service.book("sched-1", request)
        second = await self.service.book("sched-1", request)

        self.assertTrue(first.success)
        self.assertEqual(first.appointment_id, "appt-1")
        self.assertFalse(second.success)
        self.assertEqual(second.reason, RejectionReason.DOUBLE_BOOKED)
        self.assertEqual(self.appointment_repo.commits, 1)

    async def test_booked_slot_disappears_from_listing(self):
        await self.service.book("sched-1", BookingRequest(date=MONDAY, time="11:00"))

        response = await self.service.list_available_slots("sched-1", MONDAY)

        self.assertNotIn("11:00", [slot.time for slot in response.slots])

    async def test_rejected_booking_is_not_committed(self):
        result = await self.service.book("sched-1", BookingRequest(date=MONDAY, time="12:00", duration_minutes=600))

        self.assertFalse(result.success)
        self.assertEqual(result.reason, RejectionReason.OUTSIDE_HOURS)
        self.assertEqual(self.appointment_repo.commits, 0)

    async def test_commit_revalidates_with_fresh_ledger(self):
        """A booking that lands between the pre-check and the commit wins."""
        request = BookingRequest(date=MONDAY, time="14:00")

        class RacingRepository(FakeAppointmentRepository):
            async def commit_appointment(inner, schedule_id, candidate, now, **details):
                inner.appointments.append(make_appointment(840))
                return await super().commit_appointment(schedule_id, candidate, now, **details)

        repo = RacingRepository(self.schedule_repo)
        service = BookingService(self.schedule_repo, repo, clock=lambda: self.now)

        result = await service.book("sched-1", request)

        self.assertFalse(result.success)
        self.assertEqual(result.reason, RejectionReason.DOUBLE_BOOKED)


if __name__ == "__main__":
    unittest.main()
