"""
Tests for scheduling/slots.py

Tests candidate slot generation for a single date.
"""

import unittest

from agenda.models.schemas import DayConfig, TimeRange
from agenda.scheduling.slots import generate_slots
from tests.factories import MONDAY, SUNDAY, make_schedule


class TestGenerateSlots(unittest.TestCase):
    """Tests for generate_slots."""

    def test_full_day_without_lunch(self):
        """08:00-18:00 in 30 minute steps gives 20 slots."""
        slots = generate_slots(make_schedule(), MONDAY)

        self.assertEqual(len(slots), 20)
        self.assertEqual(slots[0].label, "08:00")
        self.assertEqual((slots[0].start_time, slots[0].end_time), (480, 510))
        self.assertEqual((slots[-1].start_time, slots[-1].end_time), (1050, 1080))

    def test_lunch_slots_are_skipped(self):
        schedule = make_schedule(lunch_start=720, lunch_end=780)

        slots = generate_slots(schedule, MONDAY)
        starts = [s.start_time for s in slots]

        self.assertEqual(len(slots), 18)
        self.assertNotIn(720, starts)
        self.assertNotIn(750, starts)
        self.assertIn(690, starts)
        self.assertIn(780, starts)

    def test_lunch_does_not_shift_the_grid(self):
        """Slots after lunch stay on the same step grid."""
        schedule = make_schedule(slot_duration=50, buffer_time=10, lunch_start=720, lunch_end=780)

        starts = [s.start_time for s in generate_slots(schedule, MONDAY)]

        self.assertEqual(starts, [480, 540, 600, 660, 780, 840, 900, 960, 1020])

    def test_buffer_spaces_slots(self):
        schedule = make_schedule(start_time=480, end_time=600, buffer_time=10)

        slots = generate_slots(schedule, MONDAY)

        self.assertEqual([(s.start_time, s.end_time) for s in slots], [(480, 510), (520, 550), (560, 590)])

    def test_last_slot_must_fit_before_end(self):
        schedule = make_schedule(start_time=480, end_time=600, slot_duration=45)

        slots = generate_slots(schedule, MONDAY)

        self.assertEqual([s.start_time for s in slots], [480, 525])
        self.assertTrue(all(s.end_time <= 600 for s in slots))

    def test_non_working_day_is_empty(self):
        self.assertEqual(generate_slots(make_schedule(), SUNDAY), [])

    def test_inactive_schedule_is_empty(self):
        self.assertEqual(generate_slots(make_schedule(is_active=False), MONDAY), [])

    def test_service_duration_override(self):
        slots = generate_slots(make_schedule(), MONDAY, duration_minutes=60)

        self.assertEqual(len(slots), 10)
        self.assertTrue(all(s.duration == 60 for s in slots))

    def test_zero_duration_is_rejected(self):
        """An explicit zero is not replaced by the schedule default."""
        with self.assertRaises(ValueError):
            generate_slots(make_schedule(), MONDAY, duration_minutes=0)

    def test_custom_day_config_ranges(self):
        """Custom ranges replace the default window and ignore lunch."""
        schedule = make_schedule(
            lunch_start=720,
            lunch_end=780,
            use_custom_day_config=True,
            day_configs=[
                DayConfig(
                    day_of_week=1,
                    time_slots=[TimeRange(start="14:00", end="15:00"), TimeRange(start="09:00", end="10:00")],
                ),
                DayConfig(day_of_week=2, is_active=False),
            ],
        )

        monday = [s.label for s in generate_slots(schedule, MONDAY)]

        self.assertEqual(monday, ["09:00", "09:30", "14:00", "14:30"])
        # Tuesday config is inactive, Wednesday has none
        self.assertEqual(generate_slots(schedule, MONDAY.replace(day=7)), [])
        self.assertEqual(generate_slots(schedule, MONDAY.replace(day=8)), [])

    def test_generated_slot_properties(self):
        """Duration, ordering, bounds and lunch hold across configurations."""
        configs = [
            {"slot_duration": 30},
            {"slot_duration": 25, "buffer_time": 5, "lunch_start": 700, "lunch_end": 760},
            {"slot_duration": 40, "buffer_time": 15, "start_time": 510, "end_time": 1000},
            {"slot_duration": 90, "lunch_start": 690, "lunch_end": 810},
        ]

        for overrides in configs:
            with self.subTest(**overrides):
                schedule = make_schedule(**overrides)
                slots = generate_slots(schedule, MONDAY)

                self.assertTrue(slots)
                for slot in slots:
                    self.assertEqual(slot.duration, schedule.slot_duration)
                    self.assertGreaterEqual(slot.start_time, schedule.start_time)
                    self.assertLessEqual(slot.end_time, schedule.end_time)
                    if schedule.has_lunch:
                        self.assertTrue(
                            slot.end_time <= schedule.lunch_start or slot.start_time >= schedule.lunch_end
                        )
                for previous, current in zip(slots, slots[1:]):
                    self.assertLessEqual(previous.end_time, current.start_time)

    def test_generation_is_repeatable(self):
        schedule = make_schedule(buffer_time=5, lunch_start=720, lunch_end=780)

        self.assertEqual(generate_slots(schedule, MONDAY), generate_slots(schedule, MONDAY))


if __name__ == "__main__":
    unittest.main()
