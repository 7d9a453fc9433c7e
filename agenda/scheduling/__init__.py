"""
Scheduling Core

Pure availability logic, no I/O:
- Slot generation (slots.py)
- Availability filtering (availability.py)
- Booking validation (validator.py)
"""
