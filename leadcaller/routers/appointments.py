from typing import Optional

from fastapi import APIRouter, Depends

from leadcaller.appointments import AppointmentService
from leadcaller.dependencies import get_appointment_service
from leadcaller.models import AppointmentCreate, AppointmentStatus, AppointmentUpdate
from leadcaller.security import verify_api_key

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])


# GET /api/appointments?lead_id=...&status=Scheduled
# Gets: optional query filters lead_id, call_id, status
# Returns: {success, count, data: [Appointment]} soonest first
# Example:
#   curl http://localhost:8000/api/appointments
@router.get("")
def list_appointments(
    lead_id: Optional[str] = None,
    call_id: Optional[str] = None,
    status: Optional[AppointmentStatus] = None,
    appointments: AppointmentService = Depends(get_appointment_service),
):
    """List appointments."""
    data = appointments.list_appointments(lead_id=lead_id, status=status, call_id=call_id)
    return {"success": True, "count": len(data), "data": data}


# GET /api/appointments/stats
# Gets: nothing
# Returns: {success, data: {total, by_status}}
# Example:
#   curl http://localhost:8000/api/appointments/stats
@router.get("/stats")
def appointment_stats(appointments: AppointmentService = Depends(get_appointment_service)):
    """Appointment counts by status."""
    return {"success": True, "data": appointments.stats()}


# POST /api/appointments
# Gets: JSON body {lead_id, appointment_date, appointment_time, call_id?, notes?, ...}
# Returns: 201 {success, data: Appointment}; 404 for an unknown lead
# Example:
#   curl -X POST http://localhost:8000/api/appointments \
#     -H 'Content-Type: application/json' \
#     -d '{"lead_id": "3f2a...", "appointment_date": "2030-01-05T11:00:00", "appointment_time": "11:00"}'
@router.post("", status_code=201, dependencies=[Depends(verify_api_key)])
def create_appointment(body: AppointmentCreate,
                       appointments: AppointmentService = Depends(get_appointment_service)):
    """Book an appointment for a lead."""
    appointment = appointments.create_appointment(body.model_dump())
    return {"success": True, "message": "Appointment created successfully", "data": appointment}


# PUT /api/appointments/{appointment_id}
# Gets: JSON body with any of {appointment_date, appointment_time, status, notes, reminder_sent, ...}
# Returns: {success, data: Appointment}; 404 if unknown
# Example:
#   curl -X PUT http://localhost:8000/api/appointments/3f2a... \
#     -H 'Content-Type: application/json' -d '{"status": "Confirmed"}'
@router.put("/{appointment_id}", dependencies=[Depends(verify_api_key)])
def update_appointment(appointment_id: str, body: AppointmentUpdate,
                       appointments: AppointmentService = Depends(get_appointment_service)):
    """Update an appointment's schedule or status."""
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    appointment = appointments.update_appointment(appointment_id, fields)
    return {"success": True, "message": "Appointment updated successfully", "data": appointment}
