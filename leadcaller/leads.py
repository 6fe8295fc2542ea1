"""Lead management: CRUD, bulk import and stats."""

from typing import Any, Optional

from leadcaller import importer
from leadcaller.errors import DuplicateKeyError, NotFoundError, ValidationError
from leadcaller.logging_config import get_logger
from leadcaller.models import Lead, utcnow
from leadcaller.persistence import Persistence

logger = get_logger(__name__)


class LeadService:
    """Service for managing leads."""

    def __init__(self, persistence: Persistence):
        self.persistence = persistence

    @property
    def _leads(self):
        return self.persistence.store.leads

    def list_leads(self, status: Optional[str] = None, priority: Optional[str] = None,
                   source: Optional[str] = None) -> list[Lead]:
        """List leads, newest first, with optional exact-match filters."""
        return self._leads.find_all({"status": status, "priority": priority, "source": source})

    def get_lead(self, lead_id: str) -> Lead:
        lead = self._leads.find_by_id(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {lead_id} not found")
        return lead

    def create_lead(self, fields: dict[str, Any]) -> Lead:
        """Create a lead. The phone is normalised and must not belong to another lead."""
        name = importer.clean_string(fields.get("name"))
        if not name or not fields.get("phone"):
            raise ValidationError("Name and phone are required")

        fields = {**fields, "name": name, "phone": importer.clean_phone(fields["phone"])}
        if fields.get("email"):
            fields["email"] = fields["email"].strip().lower()

        existing = self._leads.find_by_unique_key(fields["phone"])
        if existing is not None:
            raise DuplicateKeyError("Lead with this phone number already exists", existing_id=existing.id)

        lead = self._leads.create(fields)
        logger.info("lead_created", lead_id=lead.id, phone=lead.phone)
        return lead

    def update_lead(self, lead_id: str, fields: dict[str, Any]) -> Lead:
        """Apply a partial update. Changing the phone re-checks uniqueness."""
        lead = self.get_lead(lead_id)
        fields = dict(fields)

        if "name" in fields:
            fields["name"] = importer.clean_string(fields["name"])
            if not fields["name"]:
                raise ValidationError("Name cannot be empty")

        if "phone" in fields:
            fields["phone"] = importer.clean_phone(fields["phone"])
            if not fields["phone"]:
                raise ValidationError("Phone cannot be empty")
            if fields["phone"] != lead.phone:
                existing = self._leads.find_by_unique_key(fields["phone"])
                if existing is not None and existing.id != lead_id:
                    raise DuplicateKeyError(
                        "Another lead with this phone number already exists", existing_id=existing.id
                    )
        if fields.get("email"):
            fields["email"] = fields["email"].strip().lower()

        updated = self._leads.update(lead_id, fields)
        if updated is None:
            raise NotFoundError(f"Lead {lead_id} not found")

        logger.info("lead_updated", lead_id=lead_id, fields=sorted(fields))
        return updated

    def delete_lead(self, lead_id: str) -> Lead:
        """Permanently remove a lead. Its calls and appointments are kept."""
        deleted = self._leads.delete(lead_id)
        if deleted is None:
            raise NotFoundError(f"Lead {lead_id} not found")
        logger.info("lead_deleted", lead_id=lead_id)
        return deleted

    def record_contact(self, lead_id: str) -> Optional[Lead]:
        """Count one more call placed to the lead."""
        return self._leads.increment(lead_id, "call_count", last_contacted_at=utcnow())

    def import_leads(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        """Clean spreadsheet rows and store the ones whose phone is new.

        Rows that fail cleaning and rows whose phone already exists (in the
        store or earlier in the same batch) are reported, not imported.
        """
        valid, invalid = importer.clean_lead_rows(rows)
        if not valid:
            raise ValidationError("No valid leads found in import")

        new_leads = []
        duplicates = []
        seen = set()
        for fields in valid:
            existing = self._leads.find_by_unique_key(fields["phone"])
            if existing is not None or fields["phone"] in seen:
                duplicates.append({
                    **fields,
                    "existing_id": existing.id if existing else None,
                    "reason": "Phone number already exists",
                })
                continue
            seen.add(fields["phone"])
            new_leads.append(fields)

        saved = self._leads.create_many(new_leads) if new_leads else []
        logger.info(
            "leads_imported",
            total=len(valid),
            imported=len(saved),
            duplicates=len(duplicates),
            errors=len(invalid),
        )
        return {
            "total": len(valid),
            "imported": len(saved),
            "duplicates": len(duplicates),
            "errors": len(invalid),
            "leads": saved,
            "duplicate_list": duplicates,
            "error_list": invalid,
        }

    def stats(self) -> dict[str, Any]:
        return {
            "total": self._leads.count(),
            "by_status": self._leads.aggregate_counts("status"),
        }
