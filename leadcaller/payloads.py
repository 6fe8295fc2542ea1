"""Normalisation of provider call payloads.

Webhook deliveries and provider call lookups describe the same call in
slightly different shapes; both end up as a `WebhookEvent`.
"""

import json
from typing import Any, Optional

from leadcaller.models import WebhookEvent

SCHEDULE_APPOINTMENT_FUNCTION = "scheduleAppointment"


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _appointment_data(payload: dict[str, Any]) -> Optional[dict[str, Any]]:
    function_call = _dict(payload.get("functionCall"))
    if function_call.get("name") != SCHEDULE_APPOINTMENT_FUNCTION:
        return None

    parameters = function_call.get("parameters")
    if isinstance(parameters, str):
        try:
            parameters = json.loads(parameters)
        except ValueError:
            return None
    return parameters if isinstance(parameters, dict) and parameters else None


def normalize_payload(payload: Any) -> WebhookEvent:
    """Flatten a provider payload into a WebhookEvent.

    Accepts the flat `{type, call, functionCall}` shape and the same fields
    wrapped in a `{"message": {...}}` envelope. Call-level values win over
    message-level ones. Missing or malformed fields come back as None.
    """
    payload = _dict(payload)
    if isinstance(payload.get("message"), dict):
        payload = payload["message"]

    call = _dict(payload.get("call"))
    artifact = _dict(payload.get("artifact"))
    analysis = _dict(payload.get("analysis"))

    return WebhookEvent(
        type=_as_text(payload.get("type")),
        call_id=_as_text(call.get("id")),
        status=_as_text(_first(call.get("status"), payload.get("status"))),
        duration=_as_float(_first(call.get("duration"), payload.get("durationSeconds"), payload.get("duration"))),
        ended_reason=_as_text(_first(call.get("endedReason"), payload.get("endedReason"))),
        transcript=_as_text(_first(call.get("transcript"), payload.get("transcript"), artifact.get("transcript"))),
        summary=_as_text(_first(call.get("summary"), payload.get("summary"), analysis.get("summary"))),
        recording_url=_as_text(_first(
            call.get("recordingUrl"), payload.get("recordingUrl"), artifact.get("recordingUrl")
        )),
        cost=_as_float(_first(call.get("cost"), payload.get("cost"))),
        appointment_data=_appointment_data(payload),
    )


def normalize_provider_call(data: Any) -> WebhookEvent:
    """Flatten the call object returned by `GET /call/{id}`."""
    data = _dict(data)
    return normalize_payload({
        "call": data,
        "artifact": data.get("artifact"),
        "analysis": data.get("analysis"),
    })
