"""Tests for appointment scheduling."""

from datetime import datetime

import pytest

from leadcaller.appointments import AppointmentService, parse_datetime
from leadcaller.errors import NotFoundError


@pytest.fixture
def appointments(persistence):
    return AppointmentService(persistence)


def test_parse_datetime():
    assert parse_datetime("2030-01-05T11:00:00") == datetime(2030, 1, 5, 11, 0)
    assert parse_datetime("2030-01-05T11:00:00Z") == datetime(2030, 1, 5, 11, 0)
    assert parse_datetime("2030-01-05T16:30:00+05:30") == datetime(2030, 1, 5, 11, 0)
    assert parse_datetime("2030-01-05") == datetime(2030, 1, 5)
    assert parse_datetime("next saturday") is None
    assert parse_datetime(None) is None


def test_create_appointment_snapshots_lead(appointments, lead):
    appointment = appointments.create_appointment({
        "lead_id": lead.id,
        "appointment_date": datetime(2030, 1, 5, 11, 0),
        "appointment_time": "11:00",
    })

    assert appointment.lead_name == "Rajesh Kumar"
    assert appointment.lead_phone == "+919876543210"
    assert appointment.lead_email == "rajesh@example.com"
    assert appointment.status == "Scheduled"
    assert appointment.property_name == "Shilp City Residency"
    assert appointment.property_address == "Bhubaneswar, Odisha"


def test_create_appointment_for_unknown_lead(appointments):
    with pytest.raises(NotFoundError):
        appointments.create_appointment({
            "lead_id": "missing",
            "appointment_date": datetime(2030, 1, 5, 11, 0),
            "appointment_time": "11:00",
        })


def test_list_appointments_soonest_first(appointments, lead):
    later = appointments.create_appointment({
        "lead_id": lead.id, "appointment_date": datetime(2030, 2, 1), "appointment_time": "10:00",
    })
    sooner = appointments.create_appointment({
        "lead_id": lead.id, "appointment_date": datetime(2030, 1, 1), "appointment_time": "10:00",
    })

    assert [a.id for a in appointments.list_appointments()] == [sooner.id, later.id]
    assert len(appointments.list_appointments(lead_id=lead.id)) == 2
    assert appointments.list_appointments(lead_id="someone-else") == []


def test_update_stamps_status_timestamps(appointments, lead):
    appointment = appointments.create_appointment({
        "lead_id": lead.id, "appointment_date": datetime(2030, 1, 5), "appointment_time": "11:00",
    })

    confirmed = appointments.update_appointment(appointment.id, {"status": "Confirmed", "reminder_sent": True})
    assert confirmed.confirmed_at is not None
    assert confirmed.reminder_sent_at is not None
    assert confirmed.cancelled_at is None

    cancelled = appointments.update_appointment(
        appointment.id, {"status": "Cancelled", "cancellation_reason": "Out of town"}
    )
    assert cancelled.cancelled_at is not None
    assert cancelled.confirmed_at == confirmed.confirmed_at
    assert cancelled.cancellation_reason == "Out of town"


def test_update_unknown_appointment(appointments):
    with pytest.raises(NotFoundError):
        appointments.update_appointment("missing", {"status": "Confirmed"})


def test_stats(appointments, lead):
    appointments.create_appointment({
        "lead_id": lead.id, "appointment_date": datetime(2030, 1, 5), "appointment_time": "11:00",
    })

    assert appointments.stats() == {"total": 1, "by_status": {"Scheduled": 1}}
