from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from leadcaller.calls import CallLifecycleManager
from leadcaller.dependencies import get_lifecycle, get_reconciler
from leadcaller.errors import TransportError
from leadcaller.metrics import calls_failed, calls_initiated, webhooks_received
from leadcaller.models import CallOutcome, CallStartRequest, CallStatus, CallUpdate
from leadcaller.security import verify_api_key
from leadcaller.webhooks import WebhookReconciler

router = APIRouter(prefix="/api/calls", tags=["Calls"])


# POST /api/calls/start
# Gets: JSON body {lead_id: str, custom_message?: str}
# Returns: the new call, status "Ringing"; 404 for an unknown lead, 502 if the provider refused
# Example:
#   curl -X POST http://localhost:8000/api/calls/start \
#     -H 'Content-Type: application/json' -d '{"lead_id": "3f2a..."}'
@router.post("/start", dependencies=[Depends(verify_api_key)])
def start_call(body: CallStartRequest, lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    """Place an outbound call to a lead through the provider."""
    try:
        call = lifecycle.start_call(body.lead_id, body.custom_message)
    except TransportError:
        calls_failed.inc()
        raise

    calls_initiated.inc()
    return {"success": True, "message": "Call initiated successfully", "data": call}


# GET /api/calls?lead_id=...&status=Completed&outcome=Interested
# Gets: optional query filters
# Returns: {success, count, data: [Call]} newest first
# Example:
#   curl 'http://localhost:8000/api/calls?status=Completed'
@router.get("")
def list_calls(
    lead_id: Optional[str] = None,
    status: Optional[CallStatus] = None,
    outcome: Optional[CallOutcome] = None,
    lifecycle: CallLifecycleManager = Depends(get_lifecycle),
):
    """List calls."""
    calls = lifecycle.list_calls(lead_id=lead_id, status=status, outcome=outcome)
    return {"success": True, "count": len(calls), "data": calls}


# GET /api/calls/stats
# Gets: nothing
# Returns: {success, data: {total, by_status, by_outcome, avg_duration}}
# Example:
#   curl http://localhost:8000/api/calls/stats
@router.get("/stats")
def call_stats(lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    """Call counts by status and outcome plus the average duration of answered calls."""
    return {"success": True, "data": lifecycle.stats()}


# POST /api/calls/webhook
# Gets: provider payload {type, call: {id, status?, duration?, transcript?, ...}, functionCall?}
# Returns: always {"received": true}
# Example:
#   curl -X POST http://localhost:8000/api/calls/webhook \
#     -H 'Content-Type: application/json' \
#     -d '{"type": "status-update", "call": {"id": "vapi-123", "status": "in-progress"}}'
@router.post("/webhook")
async def receive_webhook(request: Request, reconciler: WebhookReconciler = Depends(get_reconciler)):
    """Provider callback. Acknowledged no matter what it contains."""
    webhooks_received.inc()
    body = await request.body()
    return await run_in_threadpool(reconciler.handle, body)


# GET /api/calls/{call_id}
# Gets: path param call_id
# Returns: {success, data: Call}; 404 if unknown
# Example:
#   curl http://localhost:8000/api/calls/3f2a...
@router.get("/{call_id}")
def get_call(call_id: str, lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    """Get one call."""
    return {"success": True, "data": lifecycle.get_call(call_id)}


# POST /api/calls/{call_id}/refresh
# Gets: path param call_id
# Returns: {success, data: Call} with fields the provider knows and the record lacked; 502 if the provider fails
# Example:
#   curl -X POST http://localhost:8000/api/calls/3f2a.../refresh
@router.post("/{call_id}/refresh", dependencies=[Depends(verify_api_key)])
def refresh_call(call_id: str, lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    """Backfill a call from the provider when webhooks were lost."""
    call = lifecycle.refresh_call(call_id)
    return {"success": True, "message": "Call refreshed from provider", "data": call}


# PUT /api/calls/{call_id}
# Gets: JSON body with any of {outcome, summary, metadata}
# Returns: {success, data: Call}
# Example:
#   curl -X PUT http://localhost:8000/api/calls/3f2a... \
#     -H 'Content-Type: application/json' -d '{"outcome": "Callback"}'
@router.put("/{call_id}", dependencies=[Depends(verify_api_key)])
def update_call(call_id: str, body: CallUpdate, lifecycle: CallLifecycleManager = Depends(get_lifecycle)):
    """Correct a call's outcome, summary or metadata."""
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    call = lifecycle.update_call(call_id, fields)
    return {"success": True, "message": "Call updated successfully", "data": call}
