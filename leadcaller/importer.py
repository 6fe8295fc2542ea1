"""Row-level cleaning for bulk lead imports.

Takes rows that have already been read out of a spreadsheet (dicts keyed by
column header) and turns them into lead fields plus a list of row errors.
"""

import re
from typing import Any, Optional

from leadcaller.config import config
from leadcaller.errors import ValidationError
from leadcaller.models import LeadPriority, LeadStatus

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

STATUS_ALIASES = {status.value.lower(): status.value for status in LeadStatus}

PRIORITY_ALIASES = {
    "high": LeadPriority.HIGH.value,
    "medium": LeadPriority.MEDIUM.value,
    "low": LeadPriority.LOW.value,
    "h": LeadPriority.HIGH.value,
    "m": LeadPriority.MEDIUM.value,
    "l": LeadPriority.LOW.value,
}

IMPORT_SOURCE = "Excel Import"


def clean_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def clean_phone(value: Any, country_code: Optional[str] = None) -> Optional[str]:
    """Normalise a phone number to +<country code><number>.

    Bare 10 digit numbers get the default country code. Raises ValidationError
    when the result has fewer than 10 or more than 15 digits.

        >>> clean_phone("9876543210")
        '+919876543210'
        >>> clean_phone("91 98765 43210")
        '+919876543210'
    """
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet cells often hold numbers as floats.
        value = int(value)

    country_code = country_code or config.DEFAULT_COUNTRY_CODE
    digits = re.sub(r"\D", "", str(value))

    if len(digits) == 10:
        digits = country_code + digits

    if len(digits) < 10 or len(digits) > 15:
        raise ValidationError(f"Invalid phone number length: {value}")
    return "+" + digits


def clean_email(value: Any) -> str:
    """Lower-cased email, or "" when missing or malformed."""
    email = clean_string(value).lower()
    if email and not EMAIL_RE.match(email):
        return ""
    return email


def normalize_status(value: Any) -> str:
    return STATUS_ALIASES.get(clean_string(value).lower(), LeadStatus.NEW.value)


def normalize_priority(value: Any) -> str:
    return PRIORITY_ALIASES.get(clean_string(value).lower(), LeadPriority.MEDIUM.value)


def _column(row: dict[str, Any], name: str) -> Any:
    for key in (name.capitalize(), name, name.upper()):
        if row.get(key) not in (None, ""):
            return row[key]
    return None


def clean_lead_rows(rows: list[dict[str, Any]]) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Split raw rows into cleaned lead fields and row errors.

    Row numbers in errors are spreadsheet rows (1-indexed, after the header).
    """
    valid = []
    invalid = []

    for index, row in enumerate(rows):
        row_number = index + 2
        try:
            name = clean_string(_column(row, "name"))
            phone = clean_phone(_column(row, "phone"))
        except ValidationError as e:
            invalid.append({"row": row_number, "data": row, "error": e.message})
            continue

        if not name or not phone:
            invalid.append({
                "row": row_number,
                "data": row,
                "error": "Missing required fields: Name or Phone",
            })
            continue

        valid.append({
            "name": name,
            "phone": phone,
            "email": clean_email(_column(row, "email")) or None,
            "location": clean_string(_column(row, "location")) or None,
            "status": normalize_status(_column(row, "status")),
            "budget": clean_string(_column(row, "budget")) or None,
            "priority": normalize_priority(_column(row, "priority")),
            "source": IMPORT_SOURCE,
            "notes": clean_string(_column(row, "notes")) or None,
        })

    return valid, invalid
