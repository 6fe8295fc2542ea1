"""Data models for the Lead Caller application."""

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Naive UTC timestamp, the same shape both stores hand back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class LeadStatus(str, enum.Enum):
    """Lead status enum."""
    NEW = "New"
    CONTACTED = "Contacted"
    INTERESTED = "Interested"
    NOT_INTERESTED = "Not Interested"
    CALLBACK = "Callback"
    APPOINTMENT_BOOKED = "Appointment Booked"
    CLOSED = "Closed"


class LeadPriority(str, enum.Enum):
    """Lead priority enum."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class CallStatus(str, enum.Enum):
    """Call lifecycle status."""
    QUEUED = "Queued"
    RINGING = "Ringing"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    NO_ANSWER = "No Answer"
    BUSY = "Busy"


TERMINAL_CALL_STATUSES = frozenset({
    CallStatus.COMPLETED.value,
    CallStatus.FAILED.value,
    CallStatus.NO_ANSWER.value,
    CallStatus.BUSY.value,
})


class CallOutcome(str, enum.Enum):
    """Call outcome classification."""
    INTERESTED = "Interested"
    NOT_INTERESTED = "Not Interested"
    CALLBACK = "Callback"
    APPOINTMENT_BOOKED = "Appointment Booked"
    NO_ANSWER = "No Answer"
    WRONG_NUMBER = "Wrong Number"
    OTHER = "Other"


class Sentiment(str, enum.Enum):
    """Transcript sentiment."""
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class AppointmentStatus(str, enum.Enum):
    """Appointment status enum."""
    SCHEDULED = "Scheduled"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RESCHEDULED = "Rescheduled"
    NO_SHOW = "No Show"


class Entity(BaseModel):
    """Fields every stored record carries."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class Lead(Entity):
    """Lead model representing a potential customer."""
    name: str
    phone: str
    email: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[str] = None
    status: LeadStatus = LeadStatus.NEW
    priority: LeadPriority = LeadPriority.MEDIUM
    source: str = "Manual Entry"
    notes: Optional[str] = None
    call_count: int = 0
    last_contacted_at: Optional[datetime] = None


class Call(Entity):
    """One outbound call attempt and its tracked outcome."""
    lead_id: str
    lead_name: str
    lead_phone: str
    provider_call_id: Optional[str] = None
    status: CallStatus = CallStatus.QUEUED
    outcome: Optional[CallOutcome] = None
    duration: float = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    transcript: str = ""
    summary: str = ""
    sentiment: Optional[Sentiment] = None
    cost: Optional[float] = None
    ended_reason: Optional[str] = None
    appointment_scheduled: bool = False
    appointment_date: Optional[datetime] = None
    recording_url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_CALL_STATUSES


class Appointment(Entity):
    """A scheduled site visit for a lead."""
    lead_id: str
    call_id: Optional[str] = None
    lead_name: str
    lead_phone: str
    lead_email: Optional[str] = None
    appointment_date: datetime
    appointment_time: str
    property_name: Optional[str] = None
    property_address: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None
    reminder_sent: bool = False
    reminder_sent_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


# --- Request bodies ---------------------------------------------------------


class LeadCreate(BaseModel):
    """Request body for POST /api/leads."""
    model_config = ConfigDict(use_enum_values=True)

    name: str
    phone: str
    email: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[str] = None
    status: LeadStatus = LeadStatus.NEW
    priority: LeadPriority = LeadPriority.MEDIUM
    source: str = "Manual Entry"
    notes: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class LeadUpdate(BaseModel):
    """Request body for PUT /api/leads/{id}; only sent fields are applied."""
    model_config = ConfigDict(use_enum_values=True)

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[str] = None
    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    notes: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class LeadImportRequest(BaseModel):
    """Already-parsed spreadsheet rows for POST /api/leads/import."""
    rows: list[dict[str, Any]]


class CallStartRequest(BaseModel):
    """Request body for POST /api/calls/start."""
    lead_id: Optional[str] = None
    custom_message: Optional[str] = None


class CallUpdate(BaseModel):
    """Manual corrections an operator may make to a call."""
    model_config = ConfigDict(use_enum_values=True)

    outcome: Optional[CallOutcome] = None
    summary: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class AppointmentCreate(BaseModel):
    """Request body for POST /api/appointments."""
    lead_id: str
    call_id: Optional[str] = None
    appointment_date: datetime
    appointment_time: str
    property_name: Optional[str] = None
    property_address: Optional[str] = None
    notes: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AppointmentUpdate(BaseModel):
    """Request body for PUT /api/appointments/{id}."""
    model_config = ConfigDict(use_enum_values=True)

    appointment_date: Optional[datetime] = None
    appointment_time: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None
    reminder_sent: Optional[bool] = None
    cancellation_reason: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


# --- Provider webhooks ------------------------------------------------------


class WebhookEvent(BaseModel):
    """A provider callback normalised to the fields reconciliation uses."""
    type: Optional[str] = None
    call_id: Optional[str] = None
    status: Optional[str] = None
    duration: Optional[float] = None
    ended_reason: Optional[str] = None
    transcript: Optional[str] = None
    summary: Optional[str] = None
    recording_url: Optional[str] = None
    cost: Optional[float] = None
    appointment_data: Optional[dict[str, Any]] = None
