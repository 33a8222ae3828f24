"""Persisted claims, drafts, billing candidates and collaborator requests."""

from datetime import datetime

from pydantic import Field

from .claim_form import MAX_DIAGNOSIS_CODES, ClaimFormData
from .cms1500 import CMS1500Submission
from .common import ApiModel, ClaimStatus
from .records import Appointment, Invoice, Patient


class ClaimPatientInfo(ApiModel):
    """Flat patient summary stored on the claim record."""

    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    dob: str | None = None
    gender: str | None = None
    member_id: str | None = None
    group_number: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None

    def display_name(self) -> str:
        if self.name and self.name.strip():
            return self.name.strip()
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class Claim(ApiModel):
    """A payer claim as stored by the claims backend."""

    id: str
    patient_id: str = ""
    patient_control_number: str = ""
    claim_number: str = ""
    appointment_id: str | None = None
    invoice_id: str | None = None
    payer_id: str = ""
    payer_name: str = ""
    cpt_code: str = ""
    diagnosis_codes: list[str] = Field(default_factory=list, max_length=MAX_DIAGNOSIS_CODES)
    charge_amount: float = 0.0
    session_date: str = ""
    clinician_name: str = ""
    status: ClaimStatus = ClaimStatus.READY
    created_at: datetime | None = None
    submitted_at: datetime | None = None
    paid_at: datetime | None = None
    paid_amount: float | None = None
    notes: str = ""
    patient_info: ClaimPatientInfo = ClaimPatientInfo()
    cms1500_data: CMS1500Submission | None = None
    resubmission_of: str | None = None

    def patient_name(self) -> str:
        return self.patient_info.display_name() or "Unknown"


class UnbilledSession(ApiModel):
    """A completed appointment that has not been converted into a claim."""

    appointment: Appointment
    patient: Patient | None = None
    payer_name: str = ""
    payer_id: str = ""
    charge_amount: float
    clinician_name: str
    clinician_id: str = ""


class Draft(ApiModel):
    """Locally persisted snapshot of an in-progress claim form."""

    form_data: ClaimFormData
    saved_at: datetime
    appointment_id: str
    patient_id: str = ""
    patient_name: str = ""


class DraftSaveResult(ApiModel):
    """Outcome of a draft save; only the local write decides ``saved``."""

    saved: bool
    saved_at: datetime
    appointment_id: str


class ClaimRequest(ApiModel):
    """Create/update request for the claims backend."""

    location_id: str = ""
    appointment_id: str | None = None
    patient_id: str
    patient_control_number: str
    editing_claim_id: str | None = None
    resubmission_of: str | None = None
    status: ClaimStatus = ClaimStatus.READY
    payer_id: str = ""
    payer_name: str = ""
    cpt_code: str = ""
    charge_amount: float = 0.0
    session_date: str = ""
    clinician_name: str = ""
    diagnosis_codes: list[str] = []
    patient_info: ClaimPatientInfo = ClaimPatientInfo()
    cms1500_data: CMS1500Submission


class StatusPatch(ApiModel):
    """Body of a claim status change."""

    status: ClaimStatus
    submitted_at: datetime | None = None
    paid_at: datetime | None = None
    paid_amount: float | None = None
    notes: str | None = None


class TransitionExtra(ApiModel):
    """Caller-supplied payload accompanying a status transition."""

    paid_amount: float | None = None
    notes: str | None = None


class FromInvoiceRequest(ApiModel):
    """Request to open a claim against an unpaid invoice."""

    contact_id: str
    appointment_id: str
    appointment_date: datetime | None = None
    charge_amount: float
    invoice_data: Invoice
