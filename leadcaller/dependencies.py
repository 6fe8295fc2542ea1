"""FastAPI dependencies that hand route handlers their services.

Long-lived objects (persistence, lifecycle manager) are built once in the
application lifespan and kept on `app.state`; tests override these getters.
"""

from fastapi import Depends, Request

from leadcaller.appointments import AppointmentService
from leadcaller.calls import CallLifecycleManager
from leadcaller.leads import LeadService
from leadcaller.persistence import Persistence
from leadcaller.webhooks import WebhookReconciler


def get_persistence(request: Request) -> Persistence:
    return request.app.state.persistence


def get_lifecycle(request: Request) -> CallLifecycleManager:
    return request.app.state.lifecycle


def get_lead_service(persistence: Persistence = Depends(get_persistence)) -> LeadService:
    return LeadService(persistence)


def get_appointment_service(persistence: Persistence = Depends(get_persistence)) -> AppointmentService:
    return AppointmentService(persistence)


def get_reconciler(lifecycle: CallLifecycleManager = Depends(get_lifecycle)) -> WebhookReconciler:
    return WebhookReconciler(lifecycle)
