"""Appointment scheduling: direct bookings and bookings made during a call."""

from datetime import datetime, timezone
from typing import Any, Optional

from leadcaller.config import config
from leadcaller.errors import NotFoundError
from leadcaller.logging_config import get_logger
from leadcaller.models import Appointment, AppointmentStatus, Call, utcnow
from leadcaller.persistence import Persistence

logger = get_logger(__name__)

# Status -> timestamp stamped the first time an appointment enters it.
STATUS_TIMESTAMPS = {
    AppointmentStatus.CONFIRMED.value: "confirmed_at",
    AppointmentStatus.CANCELLED.value: "cancelled_at",
}


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO date or datetime into naive UTC. None if it can't be parsed."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, persistence: Persistence):
        self.persistence = persistence

    @property
    def _appointments(self):
        return self.persistence.store.appointments

    def list_appointments(self, lead_id: Optional[str] = None, status: Optional[str] = None,
                          call_id: Optional[str] = None) -> list[Appointment]:
        """Appointments in date order, soonest first."""
        return self._appointments.find_all(
            {"lead_id": lead_id, "status": status, "call_id": call_id},
            sort=("appointment_date", "asc"),
        )

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._appointments.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    def create_appointment(self, fields: dict[str, Any]) -> Appointment:
        """Book an appointment for an existing lead, snapshotting its contact details."""
        lead = self.persistence.store.leads.find_by_id(fields["lead_id"])
        if lead is None:
            raise NotFoundError(f"Lead {fields['lead_id']} not found")

        appointment = self._appointments.create({
            **fields,
            "lead_name": lead.name,
            "lead_phone": lead.phone,
            "lead_email": lead.email,
            "property_name": fields.get("property_name") or config.COMPANY_PROJECT,
            "property_address": fields.get("property_address") or config.PROPERTY_ADDRESS,
        })
        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            lead_id=lead.id,
            call_id=appointment.call_id,
            appointment_date=appointment.appointment_date.isoformat(),
        )
        return appointment

    def create_from_call(self, call: Call, appointment_data: dict[str, Any]) -> Optional[Appointment]:
        """Book the appointment a caller agreed to. Returns None when the data is unusable."""
        appointment_date = parse_datetime(appointment_data.get("date"))
        if appointment_date is None:
            logger.warning("appointment_data_unparseable", call_id=call.id, data=appointment_data)
            return None

        appointment_time = appointment_data.get("time") or appointment_date.strftime("%H:%M")
        try:
            return self.create_appointment({
                "lead_id": call.lead_id,
                "call_id": call.id,
                "appointment_date": appointment_date,
                "appointment_time": str(appointment_time),
                "notes": appointment_data.get("notes"),
            })
        except NotFoundError:
            logger.warning("appointment_lead_missing", call_id=call.id, lead_id=call.lead_id)
            return None

    def update_appointment(self, appointment_id: str, fields: dict[str, Any]) -> Appointment:
        """Apply a partial update, stamping status and reminder timestamps."""
        appointment = self.get_appointment(appointment_id)
        fields = dict(fields)

        status = fields.get("status")
        timestamp_field = STATUS_TIMESTAMPS.get(getattr(status, "value", status))
        if timestamp_field and getattr(appointment, timestamp_field) is None:
            fields[timestamp_field] = utcnow()
        if fields.get("reminder_sent") and not appointment.reminder_sent:
            fields["reminder_sent_at"] = utcnow()

        updated = self._appointments.update(appointment_id, fields)
        if updated is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")

        logger.info("appointment_updated", appointment_id=appointment_id, status=updated.status)
        return updated

    def stats(self) -> dict[str, Any]:
        return {
            "total": self._appointments.count(),
            "by_status": self._appointments.aggregate_counts("status"),
        }
