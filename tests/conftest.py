"""Shared collaborator fakes for the claims workflow tests."""

from datetime import datetime, timezone

import pytest

from insurance_claims.audit import AuditEntry
from insurance_claims.config import CptRate, OrganizationConfig, PayerConfig
from insurance_claims.draft_store import InMemoryStore
from insurance_claims.errors import CollaboratorError
from insurance_claims.schemas import (
    Appointment,
    Claim,
    ClaimFormData,
    ClaimRequest,
    ClaimStatus,
    FromInvoiceRequest,
    Invoice,
    Patient,
    StaffUser,
    StatusPatch,
)

NOW = datetime(2024, 3, 1, 18, 0, tzinfo=timezone.utc)


class FakeAppointmentsApi:
    def __init__(self, appointments: list[Appointment] | None = None):
        self.appointments = appointments or []
        self.fail = False
        self.crash: Exception | None = None

    async def list_appointments(self, location_id: str, user_id: str = "") -> list[Appointment]:
        if self.crash is not None:
            raise self.crash
        if self.fail:
            raise CollaboratorError("Failed to fetch appointments", status_code=500)
        return list(self.appointments)


class FakePatientsApi:
    def __init__(self, patients: dict[str, Patient] | None = None):
        self.patients = patients or {}
        self.failing: set[str] = set()
        self.crashing: dict[str, Exception] = {}
        self.calls: list[str] = []

    async def get_patient(self, patient_id: str, location_id: str) -> Patient:
        self.calls.append(patient_id)
        if patient_id in self.crashing:
            raise self.crashing[patient_id]
        if patient_id in self.failing or patient_id not in self.patients:
            raise CollaboratorError(f"GET /api/patients/{patient_id} returned HTTP 404", status_code=404)
        return self.patients[patient_id]


class FakeUsersApi:
    def __init__(self, users: list[StaffUser] | None = None):
        self.users = users or []
        self.fail = False
        self.crash: Exception | None = None

    async def list_users(self, location_id: str) -> list[StaffUser]:
        if self.crash is not None:
            raise self.crash
        if self.fail:
            raise CollaboratorError("GET /api/users timed out")
        return list(self.users)


class FakeInvoicesApi:
    def __init__(self, invoices: dict[str, list[Invoice]] | None = None):
        self.invoices = invoices or {}
        self.failing: dict[str, str] = {}
        self.calls: list[str] = []
        self.crashing: dict[str, Exception] = {}

    async def list_invoices(self, patient_id: str) -> list[Invoice]:
        self.calls.append(patient_id)
        if patient_id in self.crashing:
            raise self.crashing[patient_id]
        if patient_id in self.failing:
            raise CollaboratorError(self.failing[patient_id])
        return list(self.invoices.get(patient_id, []))


class FakeClaimsApi:
    """In-memory claims backend recording every call."""

    def __init__(self, claims: list[Claim] | None = None):
        self.claims: dict[str, Claim] = {claim.id: claim for claim in claims or []}
        self.calls: list[tuple[str, object]] = []
        self.fail_list = False
        self.fail_create = False
        self.fail_drafts = False
        self.failing_invoices: dict[str, str] = {}
        self.crash_list: Exception | None = None
        self.saved_drafts: list[tuple[str, str, ClaimFormData]] = []
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"claim-{self._counter}"

    async def list_claims(self, location_id: str) -> list[Claim]:
        if self.crash_list is not None:
            raise self.crash_list
        if self.fail_list:
            raise CollaboratorError("GET /api/claims/all returned HTTP 500", status_code=500)
        return list(self.claims.values())

    def _claim_fields(self, request: ClaimRequest) -> dict:
        return {
            "patient_id": request.patient_id,
            "appointment_id": request.appointment_id,
            "payer_id": request.payer_id,
            "payer_name": request.payer_name,
            "cpt_code": request.cpt_code,
            "diagnosis_codes": request.diagnosis_codes,
            "charge_amount": request.charge_amount,
            "session_date": request.session_date,
            "clinician_name": request.clinician_name,
            "status": request.status,
            "patient_info": request.patient_info,
            "cms1500_data": request.cms1500_data,
            "resubmission_of": request.resubmission_of,
        }

    async def create(self, request: ClaimRequest) -> Claim:
        self.calls.append(("create", request))
        if self.fail_create:
            raise CollaboratorError("Failed to submit claim", status_code=500)
        claim_id = self._next_id()
        claim = Claim(
            id=claim_id,
            patient_control_number=request.patient_control_number,
            claim_number=f"CLM-{self._counter:04d}",
            **self._claim_fields(request),
        )
        self.claims[claim_id] = claim
        return claim

    async def update(self, claim_id: str, request: ClaimRequest) -> Claim:
        self.calls.append(("update", request))
        claim = self.claims[claim_id].model_copy(update=self._claim_fields(request))
        self.claims[claim_id] = claim
        return claim

    async def patch_status(self, claim_id: str, patch: StatusPatch) -> Claim:
        self.calls.append(("patch_status", patch))
        changes = {"status": patch.status}
        for name in ("submitted_at", "paid_at", "paid_amount", "notes"):
            value = getattr(patch, name)
            if value is not None:
                changes[name] = value
        claim = self.claims[claim_id].model_copy(update=changes)
        self.claims[claim_id] = claim
        return claim

    async def create_from_invoice(self, invoice_id: str, request: FromInvoiceRequest) -> Claim:
        self.calls.append(("create_from_invoice", request))
        if invoice_id in self.failing_invoices:
            raise CollaboratorError(self.failing_invoices[invoice_id], status_code=400)
        claim_id = self._next_id()
        claim = Claim(
            id=claim_id,
            patient_id=request.contact_id,
            appointment_id=request.appointment_id,
            invoice_id=invoice_id,
            claim_number=f"CLM-{self._counter:04d}",
            charge_amount=request.charge_amount,
            status=ClaimStatus.READY,
        )
        self.claims[claim_id] = claim
        return claim

    async def save_draft(self, appointment_id: str, patient_id: str, form_data: ClaimFormData) -> None:
        if self.fail_drafts:
            raise CollaboratorError("POST /api/claims/draft timed out")
        self.saved_drafts.append((appointment_id, patient_id, form_data))


class RecordingAuditSink:
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)


class FailingStore(InMemoryStore):
    """Key-value store whose writes always fail."""

    def set(self, key: str, value) -> None:
        raise OSError("disk full")


@pytest.fixture
def org() -> OrganizationConfig:
    return OrganizationConfig(
        payers=[
            PayerConfig(id="HCHHP", name="Healthcare Highways Health Plan", address1="P.O. Box 2476", city="Grapevine", state="TX", zip="76099"),
            PayerConfig(id="60054", name="Aetna", address1="P.O. Box 981106", city="El Paso", state="TX", zip="79998"),
        ],
        cpt_rates=[
            CptRate(code="90837", description="Psychotherapy, 60 min", default_rate=175.0),
            CptRate(code="90834", description="Psychotherapy, 45 min", default_rate=140.0),
        ],
    )


@pytest.fixture
def claims_api() -> FakeClaimsApi:
    return FakeClaimsApi()


@pytest.fixture
def invoices_api() -> FakeInvoicesApi:
    return FakeInvoicesApi()


@pytest.fixture
def patients_api() -> FakePatientsApi:
    return FakePatientsApi()


@pytest.fixture
def appointments_api() -> FakeAppointmentsApi:
    return FakeAppointmentsApi()


@pytest.fixture
def users_api() -> FakeUsersApi:
    return FakeUsersApi()


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def fixed_clock():
    return lambda: NOW
