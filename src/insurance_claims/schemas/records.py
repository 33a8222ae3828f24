"""Records read from the scheduling, patient, user and invoice collaborators."""

from datetime import datetime, timezone
from typing import Any

from pydantic import Field, field_validator

from .common import ApiModel


class CustomField(ApiModel):
    """Free-form patient custom field as stored by the CRM."""

    id: str | None = None
    key: str | None = None
    field_key: str | None = None
    value: Any = None
    field_value: Any = None

    def resolved_value(self) -> str:
        for candidate in (self.value, self.field_value):
            if candidate not in (None, ""):
                return str(candidate)
        return ""


class Contact(ApiModel):
    """Contact summary embedded in an appointment."""

    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None


class Appointment(ApiModel):
    """Calendar appointment."""

    id: str
    contact_id: str | None = None
    title: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    appointment_status: str | None = None
    calendar_id: str | None = None
    assigned_user_id: str | None = None
    contact: Contact | None = None
    contact_name: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Times sent without an offset are UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Patient(ApiModel):
    """Patient (CRM contact) record."""

    id: str
    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    address1: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    custom_fields: list[CustomField] = []


class StaffUser(ApiModel):
    """Clinician or staff member from the user registry."""

    id: str
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    role: str | None = None
    type: str | None = None

    def display_name(self) -> str:
        if self.name:
            return self.name
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or self.email or ""


class Invoice(ApiModel):
    """Patient invoice."""

    id: str | None = None
    mongo_id: str | None = Field(default=None, alias="_id")
    invoice_number: str | None = None
    status: str | None = None
    total: float | None = None
    amount_paid: float | None = None
    amount_due: float | None = None
    issue_date: str | None = None
    created_at: str | None = None

    @property
    def invoice_id(self) -> str:
        return self.id or self.mongo_id or ""

    @property
    def balance(self) -> float:
        return (self.total or 0) - (self.amount_paid or 0)
