"""Tests for lead management."""

import pytest

from leadcaller.errors import DuplicateKeyError, NotFoundError, ValidationError
from leadcaller.leads import LeadService


@pytest.fixture
def leads(persistence):
    return LeadService(persistence)


def test_create_lead_normalises_phone_and_email(leads):
    lead = leads.create_lead({"name": "  Anita Das ", "phone": "98765 43210", "email": " Anita@Mail.com "})

    assert lead.name == "Anita Das"
    assert lead.phone == "+919876543210"
    assert lead.email == "anita@mail.com"
    assert lead.status == "New"
    assert lead.source == "Manual Entry"


def test_create_lead_requires_name_and_phone(leads):
    with pytest.raises(ValidationError):
        leads.create_lead({"name": "Anita"})
    with pytest.raises(ValidationError):
        leads.create_lead({"name": " ", "phone": "9876543210"})


def test_duplicate_phone_rejected(leads, lead):
    with pytest.raises(DuplicateKeyError) as excinfo:
        leads.create_lead({"name": "Someone Else", "phone": "+91 98765 43210"})

    assert excinfo.value.existing_id == lead.id
    assert excinfo.value.status_code == 400


def test_get_unknown_lead(leads):
    with pytest.raises(NotFoundError):
        leads.get_lead("missing")


def test_update_lead(leads, lead):
    updated = leads.update_lead(lead.id, {"priority": "High", "notes": "Wants 3BHK"})

    assert updated.priority == "High"
    assert updated.notes == "Wants 3BHK"
    assert updated.phone == lead.phone


def test_update_lead_phone_must_stay_unique(leads, lead):
    other = leads.create_lead({"name": "Priya", "phone": "9876543211"})

    with pytest.raises(DuplicateKeyError):
        leads.update_lead(other.id, {"phone": "9876543210"})

    # Re-sending its own phone is not a conflict.
    assert leads.update_lead(lead.id, {"phone": "9876543210"}).phone == "+919876543210"


def test_delete_lead(leads, lead):
    leads.delete_lead(lead.id)

    with pytest.raises(NotFoundError):
        leads.get_lead(lead.id)
    with pytest.raises(NotFoundError):
        leads.delete_lead(lead.id)


def test_list_leads_filters(leads):
    leads.create_lead({"name": "A", "phone": "9000000001", "priority": "High"})
    leads.create_lead({"name": "B", "phone": "9000000002", "status": "Interested"})

    assert [item.name for item in leads.list_leads(priority="High")] == ["A"]
    assert [item.name for item in leads.list_leads(status="Interested")] == ["B"]
    assert [item.name for item in leads.list_leads()] == ["B", "A"]


def test_record_contact_increments_counter(leads, lead):
    leads.record_contact(lead.id)
    updated = leads.record_contact(lead.id)

    assert updated.call_count == 2
    assert updated.last_contacted_at is not None


def test_import_leads_reports_duplicates_and_errors(leads, lead):
    result = leads.import_leads([
        {"Name": "Existing", "Phone": "9876543210"},
        {"Name": "New One", "Phone": "9876543220"},
        {"Name": "New One Again", "Phone": "+91 98765 43220"},
        {"Name": "Broken", "Phone": "12"},
    ])

    assert result["total"] == 3
    assert result["imported"] == 1
    assert result["duplicates"] == 2
    assert result["errors"] == 1
    assert result["leads"][0].phone == "+919876543220"
    assert result["leads"][0].source == "Excel Import"
    assert result["duplicate_list"][0]["existing_id"] == lead.id
    assert result["duplicate_list"][1]["existing_id"] is None
    assert result["error_list"][0]["row"] == 5


def test_import_with_no_valid_rows(leads):
    with pytest.raises(ValidationError):
        leads.import_leads([{"Name": "", "Phone": ""}])


def test_stats(leads, lead):
    leads.create_lead({"name": "B", "phone": "9000000002", "status": "Interested"})

    assert leads.stats() == {"total": 2, "by_status": {"New": 1, "Interested": 1}}


@pytest.mark.parametrize("fields", [{"phone": ""}, {"name": ""}, {"name": "   "}, {"phone": "   "}])
def test_update_lead_rejects_blank_name_or_phone(leads, lead, fields):
    with pytest.raises(ValidationError):
        leads.update_lead(lead.id, fields)

    stored = leads.get_lead(lead.id)
    assert stored.phone == "+919876543210"
    assert stored.name == "Rajesh Kumar"


def test_update_lead_normalises_new_phone(leads, lead):
    updated = leads.update_lead(lead.id, {"phone": "98765 43299"})

    assert updated.phone == "+919876543299"


def test_update_lead_rejects_malformed_phone(leads, lead):
    with pytest.raises(ValidationError):
        leads.update_lead(lead.id, {"phone": "12"})
