"""Application constants and configuration values."""

import re

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_NOTES_LENGTH = 1000
MAX_REASON_LENGTH = 500

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# Appointment statuses
STATUS_SCHEDULED = "scheduled"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_NO_SHOW = "no_show"

APPOINTMENT_STATUSES = (
    STATUS_SCHEDULED,
    STATUS_CONFIRMED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
)

# Statuses that occupy a practitioner's time
ACTIVE_STATUSES = (STATUS_SCHEDULED, STATUS_CONFIRMED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW)

VALID_STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    STATUS_SCHEDULED: (STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_NO_SHOW),
    STATUS_CONFIRMED: (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW),
    STATUS_COMPLETED: (),
    STATUS_CANCELLED: (),
    STATUS_NO_SHOW: (),
}

# Conflict types
CONFLICT_OUTSIDE_WORKING_HOURS = "outside_working_hours"
CONFLICT_TIME_OVERLAP = "time_overlap"
CONFLICT_DAILY_LIMIT_REACHED = "daily_limit_reached"

CONFLICT_MESSAGES = {
    CONFLICT_OUTSIDE_WORKING_HOURS: "Appointment is outside of working hours",
    CONFLICT_TIME_OVERLAP: "Appointment overlaps with an existing appointment",
    CONFLICT_DAILY_LIMIT_REACHED: "Practitioner has reached the maximum number of appointments for this day",
}

# Reminder channels and statuses
REMINDER_CHANNELS = ("email", "sms")
REMINDER_PENDING = "pending"
REMINDER_SENT = "sent"
REMINDER_FAILED = "failed"
REMINDER_CANCELLED = "cancelled"
REMINDER_STATUSES = (REMINDER_PENDING, REMINDER_SENT, REMINDER_FAILED, REMINDER_CANCELLED)

# Weekday names indexed by date.weekday() (0=Monday, 6=Sunday)
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Wire formats (validated before any parsing)
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{6,14}$")

# Validation ranges
MIN_DURATION_MINUTES = 5
MAX_DURATION_MINUTES = 480
MIN_BUFFER_MINUTES = 0
MAX_BUFFER_MINUTES = 120
MIN_ADVANCE_BOOKING_DAYS = 1
MAX_ADVANCE_BOOKING_DAYS = 365
MIN_CANCELLATION_DEADLINE_HOURS = 0
MAX_CANCELLATION_DEADLINE_HOURS = 168
MAX_APPOINTMENTS_PER_DAY = 200
MIN_TIME_BETWEEN_APPOINTMENTS = 0
MAX_TIME_BETWEEN_APPOINTMENTS = 240
MIN_REMINDER_HOURS = 1
MAX_REMINDER_HOURS = 168
MAX_REMINDERS = 5
MAX_REMINDER_RETRIES = 10
MAX_RETRY_INTERVAL_MINUTES = 1440

# Defaults applied on organization onboarding
DEFAULT_APPOINTMENT_DURATION = 30
DEFAULT_BUFFER_MINUTES = 15
DEFAULT_ADVANCE_BOOKING_DAYS = 30
DEFAULT_CANCELLATION_DEADLINE_HOURS = 24
DEFAULT_MAX_APPOINTMENTS_PER_DAY = 20
DEFAULT_REMINDER_TIMINGS_HOURS = [24, 2]
DEFAULT_MAX_REMINDER_RETRIES = 3
DEFAULT_RETRY_INTERVAL_MINUTES = 30

# Actor identifiers used by the public booking flow
PUBLIC_BOOKING_ACTOR = "public_booking"
CLIENT_MODIFICATION_ACTOR = "client_modification"
CLIENT_CANCELLATION_ACTOR = "client_cancellation"
CLIENT_CONFIRMATION_ACTOR = "client_confirmation"
