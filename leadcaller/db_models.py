"""
SQLAlchemy database models for the durable store.
Column names mirror the pydantic models in `leadcaller.models`.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text

from leadcaller.database import Base


class RecordMixin:
    """Columns shared by every table.

    `pk` only orders rows that share a `created_at`; `id` is the public identity.
    """
    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, index=True)
    # `metadata` is reserved on declarative classes, so the attribute is `extra`.
    extra = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)


class DBLead(RecordMixin, Base):
    """Lead database model."""
    __tablename__ = "leads"

    name = Column(String(255), nullable=False)
    phone = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255))
    location = Column(String(255))
    budget = Column(String(100))
    status = Column(String(50), nullable=False, index=True)
    priority = Column(String(20), nullable=False)
    source = Column(String(100), nullable=False)
    notes = Column(Text)
    call_count = Column(Integer, nullable=False, default=0)
    last_contacted_at = Column(DateTime)


class DBCall(RecordMixin, Base):
    """
    Call model - one outbound call and everything learnt about it.
    `provider_call_id` is null until the provider accepts the call.
    """
    __tablename__ = "calls"

    lead_id = Column(String(36), nullable=False, index=True)
    lead_name = Column(String(255), nullable=False)
    lead_phone = Column(String(50), nullable=False)
    provider_call_id = Column(String(100), unique=True, nullable=True, index=True)
    status = Column(String(30), nullable=False, index=True)
    outcome = Column(String(30))
    duration = Column(Float, nullable=False, default=0)
    start_time = Column(DateTime)
    end_time = Column(DateTime)
    transcript = Column(Text, nullable=False, default="")
    summary = Column(Text, nullable=False, default="")
    sentiment = Column(String(20))
    cost = Column(Float)
    ended_reason = Column(String(100))
    appointment_scheduled = Column(Boolean, nullable=False, default=False)
    appointment_date = Column(DateTime)
    recording_url = Column(String(1000))


class DBAppointment(RecordMixin, Base):
    """Appointment database model."""
    __tablename__ = "appointments"

    lead_id = Column(String(36), nullable=False, index=True)
    call_id = Column(String(36), index=True)
    lead_name = Column(String(255), nullable=False)
    lead_phone = Column(String(50), nullable=False)
    lead_email = Column(String(255))
    appointment_date = Column(DateTime, nullable=False, index=True)
    appointment_time = Column(String(50), nullable=False)
    property_name = Column(String(255))
    property_address = Column(String(500))
    status = Column(String(20), nullable=False, index=True)
    notes = Column(Text)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    reminder_sent_at = Column(DateTime)
    confirmed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(Text)
