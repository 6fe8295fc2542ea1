"""Domain errors raised by the service layer.

Route handlers never build HTTP errors themselves; the exception handlers
registered in `leadcaller.main` translate these into responses.
"""


class LeadCallerError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LeadCallerError):
    """A lead, call or appointment lookup missed."""

    status_code = 404


class AuthenticationError(LeadCallerError):
    """The X-API-Key header is missing or wrong."""

    status_code = 403


class ValidationError(LeadCallerError):
    """Input failed validation (missing field, malformed phone, ...)."""

    status_code = 400


class DuplicateKeyError(ValidationError):
    """A unique business key (lead phone, provider call id) is already taken."""

    def __init__(self, message: str, existing_id: str | None = None):
        super().__init__(message)
        self.existing_id = existing_id


class TransportError(LeadCallerError):
    """The calling provider rejected the request, timed out, or is not configured."""

    status_code = 502
