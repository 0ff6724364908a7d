"""Booking engine constants."""

BRAND_NAME = "GymBook"

# maxCapacity of 0 or unset means "no real cap"
UNLIMITED_CAPACITY = 999

DEFAULT_CANCEL_WINDOW_HOURS = 2
DEFAULT_BOOKING_WINDOW_DAYS = 7

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

SYSTEM_ACTOR = "system"

MEMBER_HISTORY_LIMIT = 20
