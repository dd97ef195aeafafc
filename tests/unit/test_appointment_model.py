"""
Unit tests for the Appointment model.

Covers the status state machine, the time-conflict predicate, the
cancellation deadline, field updates with audit entries and reminder
management.
"""

import itertools
from datetime import date, datetime, time, timedelta, timezone

import pytest

from core.constants import APPOINTMENT_STATUSES, VALID_STATUS_TRANSITIONS
from core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from models import Appointment
from models.appointment import validate_status_transition
from tests.conftest import PARIS


def build_appointment(
    appointment_id=None,
    practitioner_id="prac-1",
    day=date(2025, 6, 3),
    start=time(10, 0),
    duration=30,
    status="scheduled",
):
    return Appointment(
        id=appointment_id,
        organization_id="org-1",
        client_id="client-1",
        practitioner_id=practitioner_id,
        service_id="service-1",
        date=day,
        start_time=start,
        duration=duration,
        status=status,
    )


class TestStatusTransitions:
    """Test the appointment status state machine."""

    @pytest.mark.parametrize(
        "current,new",
        list(itertools.product(APPOINTMENT_STATUSES, APPOINTMENT_STATUSES)),
    )
    def test_transition_table_is_enforced(self, current, new):
        """Every pair is either allowed by the table or rejected."""
        if new in VALID_STATUS_TRANSITIONS[current]:
            validate_status_transition(current, new)
        else:
            with pytest.raises(InvalidTransitionError) as exc_info:
                validate_status_transition(current, new)
            assert exc_info.value.current_status == current
            assert exc_info.value.requested_status == new

    def test_terminal_statuses_have_no_exits(self):
        for status in ("completed", "cancelled", "no_show"):
            assert VALID_STATUS_TRANSITIONS[status] == ()

    def test_scheduled_cannot_complete_directly(self):
        appointment = build_appointment(status="scheduled")

        with pytest.raises(InvalidTransitionError):
            appointment.update_status("completed", "staff-1")

        assert appointment.status == "scheduled"
        assert appointment.audit_entries == []

    def test_update_status_records_audit_entry(self):
        appointment = build_appointment(status="scheduled")

        appointment.update_status("confirmed", "staff-1", reason="Called the client")

        assert appointment.status == "confirmed"
        entry = appointment.audit_entries[-1]
        assert entry.action == "status_changed"
        assert entry.performed_by == "staff-1"
        assert entry.old_value == {"status": "scheduled"}
        assert entry.new_value == {"status": "confirmed"}
        assert entry.reason == "Called the client"

    def test_is_active_and_can_be_modified(self):
        assert build_appointment(status="scheduled").is_active
        assert build_appointment(status="confirmed").can_be_modified()
        assert not build_appointment(status="cancelled").is_active
        assert not build_appointment(status="completed").can_be_modified()


class TestTimeConflict:
    """Test Appointment.has_time_conflict."""

    def test_overlap_is_symmetric(self):
        a = build_appointment(appointment_id=1, start=time(10, 0), duration=30)
        b = build_appointment(appointment_id=2, start=time(10, 15), duration=30)

        assert a.has_time_conflict(b)
        assert b.has_time_conflict(a)

    def test_back_to_back_does_not_conflict(self):
        a = build_appointment(appointment_id=1, start=time(10, 0), duration=30)
        b = build_appointment(appointment_id=2, start=time(10, 30), duration=30)

        assert not a.has_time_conflict(b)
        assert not b.has_time_conflict(a)

    def test_never_conflicts_with_itself(self):
        a = build_appointment(appointment_id=7)
        same = build_appointment(appointment_id=7)

        assert not a.has_time_conflict(same)

    def test_different_practitioner_or_date(self):
        a = build_appointment(appointment_id=1)

        assert not a.has_time_conflict(build_appointment(appointment_id=2, practitioner_id="prac-2"))
        assert not a.has_time_conflict(build_appointment(appointment_id=3, day=date(2025, 6, 4)))

    def test_containment_conflicts(self):
        long_one = build_appointment(appointment_id=1, start=time(9, 0), duration=180)
        inside = build_appointment(appointment_id=2, start=time(10, 0), duration=15)

        assert long_one.has_time_conflict(inside)
        assert inside.has_time_conflict(long_one)


class TestCancellationDeadline:
    """Test Appointment.can_be_cancelled around the deadline boundary."""

    START = datetime(2025, 6, 3, 10, 0, tzinfo=PARIS)

    def test_one_minute_before_deadline(self):
        appointment = build_appointment()
        now = self.START - timedelta(hours=24, minutes=1)

        assert appointment.can_be_cancelled(24, now=now, tz_name="Europe/Paris")

    def test_inside_deadline(self):
        appointment = build_appointment()
        now = self.START - timedelta(hours=23, minutes=59)

        assert not appointment.can_be_cancelled(24, now=now, tz_name="Europe/Paris")

    def test_exactly_at_deadline(self):
        appointment = build_appointment()

        assert not appointment.can_be_cancelled(24, now=self.START - timedelta(hours=24), tz_name="Europe/Paris")

    def test_zero_hour_deadline(self):
        appointment = build_appointment()

        assert appointment.can_be_cancelled(0, now=self.START - timedelta(minutes=1), tz_name="Europe/Paris")
        assert not appointment.can_be_cancelled(0, now=self.START, tz_name="Europe/Paris")

    def test_now_in_another_zone_is_compared_as_instant(self):
        appointment = build_appointment()
        # 07:59 UTC is 09:59 in Paris (CEST)
        now = datetime(2025, 6, 2, 7, 59, tzinfo=timezone.utc)

        assert appointment.can_be_cancelled(24, now=now, tz_name="Europe/Paris")

    @pytest.mark.parametrize("status", ["completed", "cancelled", "no_show"])
    def test_terminal_status_never_cancellable(self, status):
        appointment = build_appointment(status=status)

        assert not appointment.can_be_cancelled(0, now=self.START - timedelta(days=30), tz_name="Europe/Paris")


class TestDerivedTiming:
    def test_end_time(self):
        appointment = build_appointment(start=time(9, 45), duration=30)

        assert appointment.end_time == "10:15"
        assert appointment.start_time_str == "09:45"
        assert appointment.date_str == "2025-06-03"

    def test_end_time_at_midnight(self):
        appointment = build_appointment(start=time(23, 30), duration=30)

        assert appointment.end_time == "24:00"

    def test_to_dict_uses_wire_formats(self):
        data = build_appointment(appointment_id=5, start=time(8, 5)).to_dict()

        assert data["id"] == 5
        assert data["date"] == "2025-06-03"
        assert data["start_time"] == "08:05"
        assert data["end_time"] == "08:35"


class TestApplyUpdates:
    def test_only_changed_fields_are_audited(self):
        appointment = build_appointment()

        changed = appointment.apply_updates(
            {"start_time": time(11, 0), "duration": 30, "notes": "Bring results"},
            "staff-1",
            reason="Client asked",
        )

        assert set(changed) == {"start_time", "notes"}
        assert appointment.start_time == time(11, 0)
        entry = appointment.audit_entries[-1]
        assert entry.action == "updated"
        assert entry.old_value == {"start_time": "10:00", "notes": None}
        assert entry.new_value == {"start_time": "11:00", "notes": "Bring results"}
        assert entry.reason == "Client asked"

    def test_no_changes_writes_no_audit_entry(self):
        appointment = build_appointment()

        changed = appointment.apply_updates({"duration": 30}, "staff-1")

        assert changed == {}
        assert appointment.audit_entries == []

    def test_date_values_are_serialized(self):
        appointment = build_appointment()

        appointment.apply_updates({"date": date(2025, 6, 5)}, "staff-1")

        assert appointment.audit_entries[-1].new_value == {"date": "2025-06-05"}


class TestReminders:
    """Reminder management needs persisted ids."""

    @pytest.fixture
    def appointment(self, db_session, make_client, make_service, make_appointment):
        return make_appointment(make_client(), make_service())

    def test_failed_delivery_increments_retry_count(self, db_session, appointment):
        reminder = appointment.add_reminder("email", datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc))
        db_session.commit()

        appointment.update_reminder_status(reminder.id, "failed", error_message="SMTP timeout")
        appointment.update_reminder_status(reminder.id, "failed", error_message="SMTP timeout")

        assert reminder.status == "failed"
        assert reminder.retry_count == 2
        assert reminder.error_message == "SMTP timeout"

    def test_sent_records_delivery_time(self, db_session, appointment):
        reminder = appointment.add_reminder("sms", datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc))
        db_session.commit()
        sent_at = datetime(2025, 6, 2, 10, 1, tzinfo=timezone.utc)

        appointment.update_reminder_status(reminder.id, "sent", sent_at=sent_at)

        assert reminder.status == "sent"
        assert reminder.sent_at == sent_at

    def test_invalid_channel(self, appointment):
        with pytest.raises(ValidationError):
            appointment.add_reminder("carrier_pigeon", datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc))

        assert appointment.reminders == []

    def test_invalid_status(self, db_session, appointment):
        reminder = appointment.add_reminder("email", datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc))
        db_session.commit()

        with pytest.raises(ValidationError):
            appointment.update_reminder_status(reminder.id, "bounced")

    def test_unknown_reminder(self, appointment):
        with pytest.raises(NotFoundError):
            appointment.update_reminder_status(999, "sent")

    def test_pending_reminders_due_by(self, db_session, appointment):
        early = appointment.add_reminder("email", datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc))
        appointment.add_reminder("sms", datetime(2025, 6, 3, 8, 0, tzinfo=timezone.utc))
        db_session.commit()

        due = appointment.get_pending_reminders(now=datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc))

        assert due == [early]
        assert len(appointment.get_pending_reminders()) == 2

    def test_cancel_pending_reminders(self, db_session, appointment):
        first = appointment.add_reminder("email", datetime(2025, 6, 2, 10, 0, tzinfo=timezone.utc))
        second = appointment.add_reminder("sms", datetime(2025, 6, 3, 8, 0, tzinfo=timezone.utc))
        db_session.commit()
        appointment.update_reminder_status(first.id, "sent")

        cancelled = appointment.cancel_pending_reminders()

        assert cancelled == 1
        assert first.status == "sent"
        assert second.status == "cancelled"
