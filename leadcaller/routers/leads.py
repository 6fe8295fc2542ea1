from typing import Optional

from fastapi import APIRouter, Depends

from leadcaller.dependencies import get_lead_service
from leadcaller.leads import LeadService
from leadcaller.models import LeadCreate, LeadImportRequest, LeadPriority, LeadStatus, LeadUpdate
from leadcaller.security import verify_api_key

router = APIRouter(prefix="/api/leads", tags=["Leads"])


# GET /api/leads?status=New&priority=High
# Gets: optional query filters status, priority, source
# Returns: {success, count, data: [Lead]} newest first
# Example:
#   curl 'http://localhost:8000/api/leads?status=Interested'
@router.get("")
def list_leads(
    status: Optional[LeadStatus] = None,
    priority: Optional[LeadPriority] = None,
    source: Optional[str] = None,
    leads: LeadService = Depends(get_lead_service),
):
    """List leads."""
    data = leads.list_leads(status=status, priority=priority, source=source)
    return {"success": True, "count": len(data), "data": data}


# GET /api/leads/stats
# Gets: nothing
# Returns: {success, data: {total, by_status}}
# Example:
#   curl http://localhost:8000/api/leads/stats
@router.get("/stats")
def lead_stats(leads: LeadService = Depends(get_lead_service)):
    """Lead counts by status."""
    return {"success": True, "data": leads.stats()}


# POST /api/leads
# Gets: JSON body {name, phone, email?, location?, budget?, status?, priority?, notes?}
# Returns: 201 {success, data: Lead}; 400 when the phone is invalid or taken
# Example:
#   curl -X POST http://localhost:8000/api/leads \
#     -H 'Content-Type: application/json' -d '{"name": "Rajesh Kumar", "phone": "9876543210"}'
@router.post("", status_code=201, dependencies=[Depends(verify_api_key)])
def create_lead(body: LeadCreate, leads: LeadService = Depends(get_lead_service)):
    """Create a lead."""
    lead = leads.create_lead(body.model_dump())
    return {"success": True, "message": "Lead created successfully", "data": lead}


# POST /api/leads/import
# Gets: JSON body {rows: [{Name, Phone, Email?, Location?, Status?, Budget?, Priority?, Notes?}]}
# Returns: 201 {success, data: {total, imported, duplicates, errors, leads, duplicate_list, error_list}}
# Example:
#   curl -X POST http://localhost:8000/api/leads/import \
#     -H 'Content-Type: application/json' -d '{"rows": [{"Name": "Priya", "Phone": "9876543211"}]}'
@router.post("/import", status_code=201, dependencies=[Depends(verify_api_key)])
def import_leads(body: LeadImportRequest, leads: LeadService = Depends(get_lead_service)):
    """Bulk import rows already read from a spreadsheet."""
    result = leads.import_leads(body.rows)
    return {"success": True, "message": "Leads imported successfully", "data": result}


# GET /api/leads/{lead_id}
# Gets: path param lead_id
# Returns: {success, data: Lead}; 404 if unknown
# Example:
#   curl http://localhost:8000/api/leads/3f2a...
@router.get("/{lead_id}")
def get_lead(lead_id: str, leads: LeadService = Depends(get_lead_service)):
    """Get one lead."""
    return {"success": True, "data": leads.get_lead(lead_id)}


# PUT /api/leads/{lead_id}
# Gets: JSON body with any lead fields
# Returns: {success, data: Lead}
# Example:
#   curl -X PUT http://localhost:8000/api/leads/3f2a... \
#     -H 'Content-Type: application/json' -d '{"priority": "High"}'
@router.put("/{lead_id}", dependencies=[Depends(verify_api_key)])
def update_lead(lead_id: str, body: LeadUpdate, leads: LeadService = Depends(get_lead_service)):
    """Update a lead."""
    lead = leads.update_lead(lead_id, body.model_dump(exclude_unset=True, exclude_none=True))
    return {"success": True, "message": "Lead updated successfully", "data": lead}


# DELETE /api/leads/{lead_id}
# Gets: path param lead_id
# Returns: {success, message}; 404 if unknown
# Example:
#   curl -X DELETE http://localhost:8000/api/leads/3f2a...
@router.delete("/{lead_id}", dependencies=[Depends(verify_api_key)])
def delete_lead(lead_id: str, leads: LeadService = Depends(get_lead_service)):
    """Permanently delete a lead."""
    leads.delete_lead(lead_id)
    return {"success": True, "message": "Lead deleted successfully"}
