"""Call lifecycle: creation, provider initiation and webhook-driven transitions.

    Queued -> Ringing -> In Progress -> Completed | Failed | No Answer | Busy

A call only moves forward. Once it is terminal, later provider events may
fill fields that are still empty (a late recording URL, a report that
arrives after the "ended" status) but never change the status again.
"""

import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from leadcaller.appointments import AppointmentService, parse_datetime
from leadcaller.errors import NotFoundError, TransportError, ValidationError
from leadcaller.leads import LeadService
from leadcaller.logging_config import get_logger
from leadcaller.models import (
    TERMINAL_CALL_STATUSES,
    Call,
    CallOutcome,
    CallStatus,
    LeadStatus,
    WebhookEvent,
    utcnow,
)
from leadcaller.payloads import normalize_provider_call
from leadcaller.persistence import Persistence
from leadcaller.transcript import analyze_sentiment, determine_outcome
from leadcaller.vapi_client import CallTransport

logger = get_logger(__name__)

STATUS_UPDATE = "status-update"
END_OF_CALL_REPORT = "end-of-call-report"

# Provider status vocabulary -> local status. Anything else is In Progress.
PROVIDER_STATUS_MAP = {
    "queued": CallStatus.QUEUED.value,
    "ringing": CallStatus.RINGING.value,
    "in-progress": CallStatus.IN_PROGRESS.value,
    "forwarding": CallStatus.IN_PROGRESS.value,
    "ended": CallStatus.COMPLETED.value,
}

_STATUS_RANK = {
    CallStatus.QUEUED.value: 0,
    CallStatus.RINGING.value: 1,
    CallStatus.IN_PROGRESS.value: 2,
    **{status: 3 for status in TERMINAL_CALL_STATUSES},
}

# Outcomes that move the lead; every other outcome leaves Lead.status alone.
OUTCOME_TO_LEAD_STATUS = {
    CallOutcome.APPOINTMENT_BOOKED.value: LeadStatus.APPOINTMENT_BOOKED.value,
    CallOutcome.INTERESTED.value: LeadStatus.INTERESTED.value,
    CallOutcome.NOT_INTERESTED.value: LeadStatus.NOT_INTERESTED.value,
}


def map_provider_status(provider_status: Optional[str]) -> str:
    return PROVIDER_STATUS_MAP.get((provider_status or "").strip().lower(), CallStatus.IN_PROGRESS.value)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == 0 or value is False


class CallLifecycleManager:
    """Owns every write to a call's status and outcome."""

    def __init__(self, persistence: Persistence, transport: CallTransport,
                 lead_service: Optional[LeadService] = None,
                 appointment_service: Optional[AppointmentService] = None):
        self.persistence = persistence
        self.transport = transport
        self.lead_service = lead_service or LeadService(persistence)
        self.appointment_service = appointment_service or AppointmentService(persistence)
        # call id -> [lock, holders]; an entry lives only while someone holds or waits on it.
        self._locks: dict[str, list] = {}
        self._locks_guard = threading.Lock()

    @property
    def _calls(self):
        return self.persistence.store.calls

    # --- queries -------------------------------------------------------------

    def list_calls(self, lead_id: Optional[str] = None, status: Optional[str] = None,
                   outcome: Optional[str] = None) -> list[Call]:
        return self._calls.find_all({"lead_id": lead_id, "status": status, "outcome": outcome})

    def get_call(self, call_id: str) -> Call:
        call = self._calls.find_by_id(call_id)
        if call is None:
            raise NotFoundError(f"Call {call_id} not found")
        return call

    def stats(self) -> dict[str, Any]:
        return {
            "total": self._calls.count(),
            "by_status": self._calls.aggregate_counts("status"),
            "by_outcome": self._calls.aggregate_counts("outcome"),
            "avg_duration": self._calls.average("duration"),
        }

    # --- commands ------------------------------------------------------------

    def start_call(self, lead_id: Optional[str], custom_message: Optional[str] = None) -> Call:
        """Create a Queued call for the lead and hand it to the provider.

        On success the call is Ringing and the lead's call counter goes up. On
        any initiation failure the call is recorded as Failed and the error is
        re-raised as TransportError; the counter is left alone.
        """
        if not lead_id:
            raise ValidationError("Lead ID is required")
        lead = self.lead_service.get_lead(lead_id)

        call = self._calls.create({
            "lead_id": lead.id,
            "lead_name": lead.name,
            "lead_phone": lead.phone,
            "status": CallStatus.QUEUED.value,
            "start_time": utcnow(),
        })
        logger.info("call_queued", call_id=call.id, lead_id=lead.id)

        try:
            provider_call_id = self.transport.initiate_call(
                lead.phone, lead.name, lead.email, custom_message
            )
        except Exception as e:
            message = e.message if isinstance(e, TransportError) else str(e)
            self._calls.update(call.id, {
                "status": CallStatus.FAILED.value,
                "end_time": utcnow(),
                "metadata": {**call.metadata, "error": message},
            })
            logger.error("call_initiation_failed", call_id=call.id, lead_id=lead.id, error=message)
            if isinstance(e, TransportError):
                raise
            raise TransportError(message) from e

        call = self._calls.update(call.id, {
            "provider_call_id": provider_call_id,
            "status": CallStatus.RINGING.value,
        })

        try:
            self.lead_service.record_contact(lead.id)
        except Exception:
            logger.exception("lead_contact_update_failed", call_id=call.id, lead_id=lead.id)

        logger.info("call_started", call_id=call.id, lead_id=lead.id, provider_call_id=provider_call_id)
        return call

    def update_call(self, call_id: str, fields: dict[str, Any]) -> Call:
        """Manual corrections (outcome, summary, metadata). Status is not editable."""
        self.get_call(call_id)
        updated = self._calls.update(call_id, fields)
        if updated is None:
            raise NotFoundError(f"Call {call_id} not found")
        logger.info("call_updated", call_id=call_id, fields=sorted(fields))
        return updated
    def reconcile(self, event: WebhookEvent) -> Optional[Call]:
        """Apply a normalised provider event to the call it refers to.

        Unknown provider ids are dropped: they are test pings, duplicates or
        events that raced ahead of `start_call`. Returns the resulting call,
        or None when the event was dropped.
        """
        if not event.call_id:
            logger.warning("webhook_missing_call_id", type=event.type)
            return None

        # Resolved before locking so unknown ids never reach the lock table.
        known = self._calls.find_by_unique_key(event.call_id)
        if known is None:
            logger.warning("webhook_call_not_found", provider_call_id=event.call_id, type=event.type)
            return None

        with self._locked(known.id):
            call = self.get_call(known.id)

            if event.type == STATUS_UPDATE:
                updates = self._status_updates(call, event)
            elif event.type == END_OF_CALL_REPORT:
                updates = self._report_updates(call, event)
            else:
                logger.info("webhook_event_ignored", provider_call_id=event.call_id, type=event.type)
                return call

            return self._apply(call, updates, event.type, event.appointment_data)

    def refresh_call(self, call_id: str) -> Call:
        """Pull the provider's view of a call and fill in what the webhooks missed.

        Follows the same rules as `reconcile`: status only moves forward and a
        terminal call only gains fields that are still empty.
        """
        call = self.get_call(call_id)
        if not call.provider_call_id:
            raise ValidationError("Call was never accepted by the provider")

        event = normalize_provider_call(self.transport.get_call(call.provider_call_id))

        with self._locked(call.id):
            call = self.get_call(call_id)
            updates = self._status_updates(call, event) if event.status else {}
            for field in ("duration", "transcript", "summary", "recording_url", "cost", "ended_reason"):
                value = getattr(event, field)
                if value not in (None, ""):
                    updates[field] = value

            if not call.recording_url and not updates.get("recording_url"):
                try:
                    recording_url = self.transport.get_recording(call.provider_call_id)
                except TransportError as e:
                    logger.warning("recording_fetch_failed", call_id=call.id, error=e.message)
                    recording_url = None
                if recording_url:
                    updates["recording_url"] = recording_url

            if updates.get("transcript"):
                updates["sentiment"] = analyze_sentiment(updates["transcript"])
                updates["outcome"] = determine_outcome(updates["transcript"])

            return self._apply(call, updates, "refresh")

    # --- internals -----------------------------------------------------------

    @contextmanager
    def _locked(self, call_id: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.setdefault(call_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[call_id]

    def _apply(self, call: Call, updates: dict[str, Any], source: Optional[str],
               appointment_data: Optional[dict[str, Any]] = None) -> Call:
        changes = self._allowed_changes(call, updates)
        if not changes:
            logger.info("call_no_changes", call_id=call.id, source=source)
            return call

        updated = self._calls.update(call.id, changes)
        logger.info(
            "call_reconciled",
            call_id=call.id,
            source=source,
            status=updated.status,
            fields=sorted(changes),
        )

        if "outcome" in changes:
            self._cascade_lead_status(updated)
        if changes.get("appointment_scheduled") and appointment_data:
            self._book_appointment(updated, appointment_data)
        return updated

    def _status_updates(self, call: Call, event: WebhookEvent) -> dict[str, Any]:
        status = map_provider_status(event.status)
        updates: dict[str, Any] = {"status": status}
        if status in TERMINAL_CALL_STATUSES:
            updates["end_time"] = call.end_time or utcnow()
        return updates

    def _report_updates(self, call: Call, event: WebhookEvent) -> dict[str, Any]:
        transcript = event.transcript or ""
        updates: dict[str, Any] = {
            "status": CallStatus.COMPLETED.value,
            "end_time": call.end_time or utcnow(),
            "duration": event.duration or 0,
            "transcript": transcript,
            "summary": event.summary or "",
            "recording_url": event.recording_url or "",
            "cost": event.cost,
            "ended_reason": event.ended_reason,
            "sentiment": analyze_sentiment(transcript),
            "outcome": determine_outcome(transcript),
        }
        if event.appointment_data:
            updates["appointment_scheduled"] = True
            updates["appointment_date"] = parse_datetime(event.appointment_data.get("date"))
        return updates

    def _allowed_changes(self, call: Call, updates: dict[str, Any]) -> dict[str, Any]:
        if call.is_terminal:
            # Terminal calls only accept fields that are still empty.
            updates = {
                field: value for field, value in updates.items()
                if field != "status" and _is_empty(getattr(call, field))
            }
        elif _STATUS_RANK[updates.get("status", call.status)] < _STATUS_RANK[call.status]:
            # Out-of-order delivery, e.g. "ringing" after "in-progress".
            updates = {field: value for field, value in updates.items() if field != "status"}

        return {field: value for field, value in updates.items() if getattr(call, field) != value}

    def _cascade_lead_status(self, call: Call) -> None:
        lead_status = OUTCOME_TO_LEAD_STATUS.get(call.outcome)
        if lead_status is None:
            return
        # Independent write: a failure here leaves the call completed and is not rolled back.
        try:
            self.persistence.store.leads.update(call.lead_id, {"status": lead_status})
            logger.info("lead_status_cascaded", lead_id=call.lead_id, call_id=call.id, status=lead_status)
        except Exception:
            logger.exception("lead_status_cascade_failed", lead_id=call.lead_id, call_id=call.id)

    def _book_appointment(self, call: Call, appointment_data: dict[str, Any]) -> None:
        try:
            self.appointment_service.create_from_call(call, appointment_data)
        except Exception:
            logger.exception("appointment_from_call_failed", call_id=call.id)
