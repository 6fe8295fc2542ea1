"""Tests for provider webhook intake."""

import json

import pytest

from leadcaller.payloads import normalize_payload, normalize_provider_call
from leadcaller.webhooks import ACKNOWLEDGED, WebhookReconciler


@pytest.fixture
def reconciler(lifecycle):
    return WebhookReconciler(lifecycle)


@pytest.fixture
def started(lifecycle, lead):
    return lifecycle.start_call(lead.id)


def test_normalize_flat_payload():
    event = normalize_payload({
        "type": "end-of-call-report",
        "call": {
            "id": "vapi-1",
            "status": "ended",
            "duration": "95.5",
            "transcript": "yes",
            "summary": "Keen buyer",
            "recordingUrl": "https://storage.vapi.ai/1.wav",
            "cost": 0.3,
            "endedReason": "assistant-ended-call",
        },
    })

    assert event.type == "end-of-call-report"
    assert event.call_id == "vapi-1"
    assert event.status == "ended"
    assert event.duration == 95.5
    assert event.transcript == "yes"
    assert event.summary == "Keen buyer"
    assert event.recording_url == "https://storage.vapi.ai/1.wav"
    assert event.cost == 0.3
    assert event.ended_reason == "assistant-ended-call"
    assert event.appointment_data is None


def test_normalize_message_envelope():
    event = normalize_payload({
        "message": {
            "type": "end-of-call-report",
            "call": {"id": "vapi-2"},
            "durationSeconds": 42,
            "endedReason": "customer-ended-call",
            "artifact": {"transcript": "tell me more", "recordingUrl": "https://r/2.wav"},
            "analysis": {"summary": "Wants brochure"},
        }
    })

    assert event.call_id == "vapi-2"
    assert event.duration == 42
    assert event.transcript == "tell me more"
    assert event.recording_url == "https://r/2.wav"
    assert event.summary == "Wants brochure"
    assert event.ended_reason == "customer-ended-call"


def test_normalize_appointment_function_call():
    event = normalize_payload({
        "type": "end-of-call-report",
        "call": {"id": "vapi-3"},
        "functionCall": {"name": "scheduleAppointment", "parameters": {"date": "2030-01-05", "time": "11:00"}},
    })
    assert event.appointment_data == {"date": "2030-01-05", "time": "11:00"}

    as_string = normalize_payload({
        "call": {"id": "vapi-3"},
        "functionCall": {"name": "scheduleAppointment", "parameters": '{"date": "2030-01-05"}'},
    })
    assert as_string.appointment_data == {"date": "2030-01-05"}

    other_function = normalize_payload({
        "call": {"id": "vapi-3"},
        "functionCall": {"name": "transferCall", "parameters": {"date": "2030-01-05"}},
    })
    assert other_function.appointment_data is None


def test_normalize_tolerates_garbage_fields():
    event = normalize_payload({"type": 7, "call": "not-a-dict", "functionCall": ["x"], "cost": "free"})

    assert event.type == "7"
    assert event.call_id is None
    assert event.cost is None
    assert event.appointment_data is None


@pytest.mark.parametrize("body", [
    b"",
    b"{not json",
    b"[1, 2, 3]",
    b"null",
    "\"just a string\"",
    {"type": "status-update"},
    {"type": "status-update", "call": {"id": "unknown", "status": "ringing"}},
    None,
])
def test_handle_always_acknowledges(reconciler, body):
    assert reconciler.handle(body) == ACKNOWLEDGED


def test_handle_applies_status_update(reconciler, lifecycle, started):
    body = json.dumps({"type": "status-update", "call": {"id": started.provider_call_id, "status": "in-progress"}})

    assert reconciler.handle(body.encode()) == {"received": True}
    assert lifecycle.get_call(started.id).status == "In Progress"


def test_handle_applies_report_from_envelope(reconciler, lifecycle, started, lead, persistence):
    reconciler.handle({
        "message": {
            "type": "end-of-call-report",
            "call": {"id": started.provider_call_id},
            "artifact": {"transcript": "Can we schedule a site visit this weekend?"},
            "functionCall": {"name": "scheduleAppointment", "parameters": {"date": "2030-01-05T11:00:00"}},
        }
    })

    call = lifecycle.get_call(started.id)
    assert call.status == "Completed"
    assert call.outcome == "Appointment Booked"
    assert persistence.store.leads.find_by_id(lead.id).status == "Appointment Booked"
    assert persistence.store.appointments.count() == 1


def test_handle_swallows_processing_errors(reconciler, lifecycle, monkeypatch):
    def _boom(event):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(lifecycle, "reconcile", _boom)

    assert reconciler.handle({"type": "status-update", "call": {"id": "vapi-1"}}) == ACKNOWLEDGED


def test_handle_returns_fresh_acknowledgement(reconciler):
    response = reconciler.handle(b"{}")
    response["received"] = False

    assert ACKNOWLEDGED == {"received": True}


def test_normalize_provider_call_record():
    event = normalize_provider_call({
        "id": "vapi-9",
        "status": "ended",
        "endedReason": "silence-timed-out",
        "cost": 0.2,
        "artifact": {"transcript": "call back later", "recordingUrl": "https://r/9.wav"},
        "analysis": {"summary": "Asked for callback"},
    })

    assert event.call_id == "vapi-9"
    assert event.status == "ended"
    assert event.ended_reason == "silence-timed-out"
    assert event.transcript == "call back later"
    assert event.recording_url == "https://r/9.wav"
    assert event.summary == "Asked for callback"
    assert normalize_provider_call(None).call_id is None
