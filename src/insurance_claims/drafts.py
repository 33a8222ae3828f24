"""Single-focus CMS-1500 claim editor with local-first draft autosave."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from .aggregator import session_patient_name
from .audit import AuditSink, LoggingAuditSink, claim_view_entry
from .clients import BackendClient, BackgroundCalls, ClaimsApi
from .config import OrganizationConfig, Settings, get_settings, load_organization_config
from .custom_fields import DIAGNOSIS_KEYS, GROUP_NUMBER_KEYS, MEMBER_ID_KEYS, patient_field
from .draft_store import JsonFileStore, KeyValueStore
from .errors import ClaimValidationError, DraftStorageError
from .schemas import (
    Claim,
    ClaimFormData,
    CMS1500Submission,
    Draft,
    DraftMode,
    DraftSaveResult,
    ServiceLine,
    ServiceLineEntry,
    UnbilledSession,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _first(*values: Any, default: Any = "") -> Any:
    """First truthy value, else ``default``."""
    for value in values:
        if value:
            return value
    return default


def draft_key(appointment_id: str) -> str:
    return f"claim_{appointment_id}"


# --- Form initialization ---


def initialize_from_session(session: UnbilledSession, org: OrganizationConfig) -> ClaimFormData:
    """Build a fresh claim form for an unbilled session.

    Each box resolves through session values, then patient custom fields, then
    the organization constants.
    """
    patient = session.patient
    appointment = session.appointment
    service_date = appointment.start_time.date().isoformat() if appointment.start_time else ""

    def field(*keys: str) -> str:
        return patient_field(patient, *keys)

    payer = org.find_payer(session.payer_name, session.payer_id) or org.default_payer
    first_name = (patient.first_name if patient else None) or ""
    last_name = (patient.last_name if patient else None) or ""
    dob = _first(patient.date_of_birth if patient else None, field("date_of_birth"))
    address1 = _first(patient.address1 if patient else None, field("address"))
    city = _first(patient.city if patient else None, field("city"), org.default_patient_city)
    state = _first(patient.state if patient else None, field("state"), org.default_patient_state)
    zip_code = _first(patient.postal_code if patient else None, field("zip"))
    phone = _first(patient.phone if patient else None, field("phone"))
    sex = _first(field("gender"), patient.gender if patient else None, org.default_patient_sex)
    referring_name = field("referring_provider_name")
    cpt_code = org.default_cpt_code
    charge = session.charge_amount or org.rate_for(cpt_code)

    line = ServiceLine(
        date_from=service_date,
        date_to=service_date,
        place_of_service=org.default_place_of_service,
        cpt_code=cpt_code,
        modifier_1=org.default_modifier,
        diagnosis_pointer=org.default_diagnosis_pointer,
        charges=charge,
        units=1,
        rendering_provider_npi=org.rendering_provider_npi,
        rendering_provider_name=session.clinician_name or "Unknown Provider",
    )

    form = ClaimFormData(
        payer_id=_first(session.payer_id, payer.id),
        payer_name=_first(session.payer_name, payer.name),
        payer_address1=_first(field("payer_address"), payer.address1),
        payer_city=_first(field("payer_city"), payer.city),
        payer_state=_first(field("payer_state"), payer.state),
        payer_zip=_first(field("payer_zip"), payer.zip),
        member_id=field(*MEMBER_ID_KEYS),
        patient_last_name=last_name,
        patient_first_name=first_name,
        patient_dob=dob,
        patient_sex=sex,
        patient_address1=address1,
        patient_city=city,
        patient_state=state,
        patient_zip=zip_code,
        patient_phone=phone,
        insured_last_name=last_name,
        insured_first_name=first_name,
        insured_address1=address1,
        insured_city=city,
        insured_state=state,
        insured_zip=zip_code,
        insured_phone=phone,
        insured_dob=_first(field("insured_dob"), dob),
        insured_sex=_first(field("insured_sex"), sex),
        insured_policy_group_id=field(*GROUP_NUMBER_KEYS),
        employer_name=field("employer_name"),
        patient_relationship=_first(field("patient_relationship"), org.default_relationship),
        insurance_plan_name=session.payer_name,
        signature_on_file=True,
        accept_assignment=True,
        other_date=service_date,
        referring_provider_name=referring_name,
        referring_provider_npi=field("referring_provider_npi"),
        referring_provider_type=org.default_referring_qualifier if referring_name else "",
        diagnosis_codes=[_first(field(*DIAGNOSIS_KEYS), org.default_diagnosis_code)],
        icd_indicator="10",
        resubmission_code="1",
        prior_auth_number=field("prior_auth_number"),
        service_lines=[line],
        federal_tax_id=org.federal_tax_id,
        federal_tax_id_type=org.federal_tax_id_type,
        patient_account_number=(appointment.contact_id or "")[-8:],
        amount_paid=0.0,
        billing_provider_name=org.billing_provider.name,
        billing_provider_address1=org.billing_provider.address1,
        billing_provider_address2=org.billing_provider.address2,
        billing_provider_city=org.billing_provider.city,
        billing_provider_state=org.billing_provider.state,
        billing_provider_zip=org.billing_provider.zip,
        billing_provider_phone=org.billing_provider.phone,
        billing_provider_npi=org.billing_provider.npi,
        billing_provider_taxonomy=org.billing_provider.taxonomy_code,
    )
    return form.with_recomputed_total()


def _trim_blank_tail(codes: list[str]) -> list[str]:
    trimmed = list(codes)
    while trimmed and not trimmed[-1]:
        trimmed.pop()
    return trimmed


def _rehydrate_line(entry: ServiceLineEntry) -> ServiceLine:
    return ServiceLine(
        date_from=entry.date_from,
        date_to=entry.date_to,
        place_of_service=entry.place_of_service,
        emg=entry.emg,
        cpt_code=entry.cpt_code,
        modifier_1=entry.modifier_1,
        modifier_2=entry.modifier_2,
        modifier_3=entry.modifier_3,
        modifier_4=entry.modifier_4,
        diagnosis_pointer=entry.diagnosis_pointer,
        charges=entry.charges,
        units=entry.units,
        rendering_provider_npi=entry.rendering_provider_npi,
        rendering_provider_name=entry.rendering_provider_name,
    )


def _rehydrated_form(src: CMS1500Submission) -> ClaimFormData:
    """Form holding exactly the boxes of a stored submission."""
    return ClaimFormData(
        payer_id=src.payer.payer_id,
        payer_name=src.payer.payer_name,
        payer_address1=src.payer.address1,
        payer_address2=src.payer.address2,
        payer_city=src.payer.city,
        payer_state=src.payer.state,
        payer_zip=src.payer.zip,
        member_id=src.payer.member_id,
        patient_last_name=src.patient.last_name,
        patient_first_name=src.patient.first_name,
        patient_middle_name=src.patient.middle_name,
        patient_dob=src.patient.dob,
        patient_sex=src.patient.sex,
        patient_address1=src.patient.address1,
        patient_address2=src.patient.address2,
        patient_city=src.patient.city,
        patient_state=src.patient.state,
        patient_zip=src.patient.zip,
        patient_phone=src.patient.phone,
        insured_last_name=src.insured.last_name,
        insured_first_name=src.insured.first_name,
        insured_middle_name=src.insured.middle_name,
        insured_address1=src.insured.address1,
        insured_address2=src.insured.address2,
        insured_city=src.insured.city,
        insured_state=src.insured.state,
        insured_zip=src.insured.zip,
        insured_phone=src.insured.phone,
        insured_dob=src.insured.dob,
        insured_sex=src.insured.sex,
        insured_policy_group_id=src.insured.policy_group_id,
        employer_name=src.insured.employer_name,
        patient_relationship=src.patient_relationship,
        other_insured_name=src.other_insured.name,
        other_insured_policy_id=src.other_insured.policy_id,
        other_insured_group_number=src.other_insured.group_number,
        insurance_plan_name=src.insurance_plan_name,
        has_other_health_plan=src.has_other_health_plan,
        condition_employment=src.condition_related_to.employment,
        condition_auto_accident=src.condition_related_to.auto_accident,
        condition_auto_accident_state=src.condition_related_to.auto_accident_state,
        condition_other_accident=src.condition_related_to.other_accident,
        claim_codes=src.claim_codes,
        signature_on_file=src.signature_on_file,
        date_of_illness=src.date_of_illness,
        other_date=src.other_date,
        unable_to_work_from=src.unable_to_work.from_,
        unable_to_work_to=src.unable_to_work.to,
        hospitalization_from=src.hospitalization.from_,
        hospitalization_to=src.hospitalization.to,
        referring_provider_name=src.referring_provider.name,
        referring_provider_npi=src.referring_provider.npi,
        referring_provider_type=src.referring_provider.qualifier,
        additional_claim_info=src.additional_claim_info,
        outside_lab=src.outside_lab,
        outside_lab_charges=src.outside_lab_charges,
        diagnosis_codes=_trim_blank_tail(src.diagnosis_codes),
        icd_indicator=src.icd_indicator,
        resubmission_code=_first(src.resubmission.code, "1"),
        original_ref_number=src.resubmission.original_ref_number,
        prior_auth_number=src.prior_auth_number,
        service_lines=[_rehydrate_line(entry) for entry in src.service_lines],
        federal_tax_id=src.federal_tax_id,
        federal_tax_id_type=src.federal_tax_id_type,
        patient_account_number=src.patient_account_number,
        accept_assignment=src.accept_assignment,
        amount_paid=src.amount_paid,
        facility_name=src.service_facility.name,
        facility_address1=src.service_facility.address1,
        facility_address2=src.service_facility.address2,
        facility_city=src.service_facility.city,
        facility_state=src.service_facility.state,
        facility_zip=src.service_facility.zip,
        facility_npi=src.service_facility.npi,
        facility_other_id=src.service_facility.other_id,
        billing_provider_name=src.billing_provider.name,
        billing_provider_address1=src.billing_provider.address1,
        billing_provider_address2=src.billing_provider.address2,
        billing_provider_city=src.billing_provider.city,
        billing_provider_state=src.billing_provider.state,
        billing_provider_zip=src.billing_provider.zip,
        billing_provider_phone=src.billing_provider.phone,
        billing_provider_npi=src.billing_provider.npi,
        billing_provider_taxonomy=src.billing_provider.taxonomy_code,
    )


def _legacy_line(claim: Claim, org: OrganizationConfig) -> ServiceLine:
    cpt_code = _first(claim.cpt_code, org.default_cpt_code)
    return ServiceLine(
        date_from=claim.session_date,
        date_to=claim.session_date,
        place_of_service=org.default_place_of_service,
        cpt_code=cpt_code,
        modifier_1=org.default_modifier,
        diagnosis_pointer=org.default_diagnosis_pointer,
        charges=_first(claim.charge_amount, default=org.rate_for(cpt_code)),
        units=1,
        rendering_provider_npi=org.rendering_provider_npi,
        rendering_provider_name=claim.clinician_name,
    )


def _legacy_form(claim: Claim, org: OrganizationConfig) -> ClaimFormData:
    """Form for a claim stored without a submission snapshot."""
    info = claim.patient_info
    billing = org.billing_provider
    return ClaimFormData(
        payer_id=claim.payer_id,
        payer_name=claim.payer_name,
        member_id=_first(info.member_id),
        patient_last_name=_first(info.last_name),
        patient_first_name=_first(info.first_name),
        patient_dob=_first(info.dob),
        patient_sex=_first(info.gender),
        patient_address1=_first(info.address),
        patient_city=_first(info.city),
        patient_state=_first(info.state),
        patient_zip=_first(info.zip),
        insured_last_name=_first(info.last_name),
        insured_first_name=_first(info.first_name),
        insured_policy_group_id=_first(info.group_number),
        patient_relationship=org.default_relationship,
        diagnosis_codes=_trim_blank_tail(claim.diagnosis_codes) or [org.default_diagnosis_code],
        service_lines=[_legacy_line(claim, org)],
        federal_tax_id=org.federal_tax_id,
        federal_tax_id_type=org.federal_tax_id_type,
        patient_account_number=claim.patient_control_number,
        billing_provider_name=billing.name,
        billing_provider_address1=billing.address1,
        billing_provider_address2=billing.address2,
        billing_provider_city=billing.city,
        billing_provider_state=billing.state,
        billing_provider_zip=billing.zip,
        billing_provider_phone=billing.phone,
        billing_provider_npi=billing.npi,
        billing_provider_taxonomy=billing.taxonomy_code,
    )


def initialize_from_existing_claim(claim: Claim, org: OrganizationConfig) -> ClaimFormData:
    """Materialize a working form copy of a stored claim.

    Claims carrying ``cms1500_data`` are rehydrated box by box exactly as
    stored, so reopening and remapping reproduces the submission. Legacy
    claims without it degrade per field to the flat claim record and then to
    the organization constants. The claim itself is never modified.
    """
    if claim.cms1500_data is not None:
        form = _rehydrated_form(claim.cms1500_data)
    else:
        form = _legacy_form(claim, org)
    return form.with_recomputed_total()


# --- Draft manager ---


class ClaimDraftManager:
    """Owns the one claim form open for editing and its locally saved drafts."""

    def __init__(
        self,
        store: KeyValueStore,
        org: OrganizationConfig | None = None,
        remote: ClaimsApi | None = None,
        audit: AuditSink | None = None,
        background: BackgroundCalls | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.org = org or OrganizationConfig()
        self.remote = remote
        self.audit = audit
        self.background = background or BackgroundCalls()
        self._clock = clock

        self.current: ClaimFormData | None = None
        self.current_session: UnbilledSession | None = None
        self.editing_claim: Claim | None = None
        self.mode = DraftMode.NEW
        self.last_saved: datetime | None = None

    # Initialization

    def initialize_from_session(self, session: UnbilledSession) -> ClaimFormData:
        return initialize_from_session(session, self.org)

    def initialize_from_existing_claim(self, claim: Claim) -> ClaimFormData:
        return initialize_from_existing_claim(claim, self.org)

    # Focus

    def open_session(self, session: UnbilledSession) -> ClaimFormData:
        """Open the form for a session, resuming its saved draft when one exists."""
        draft = self.get_draft(session.appointment.id)
        if draft is not None:
            self.current = draft.form_data
            self.mode = DraftMode.DRAFT
            self.last_saved = draft.saved_at
            logger.info("Resumed claim draft for appointment %s", session.appointment.id)
        else:
            self.current = self.initialize_from_session(session)
            self.mode = DraftMode.PREPARED
            self.last_saved = None
        self.current_session = session
        self.editing_claim = None
        return self.current

    async def open_claim(self, claim: Claim) -> ClaimFormData:
        """Open a working copy of an existing claim for editing."""
        self.current = self.initialize_from_existing_claim(claim)
        self.current_session = None
        self.editing_claim = claim
        self.mode = DraftMode.DRAFT
        self.last_saved = None
        if self.audit is not None:
            self.audit.record(claim_view_entry(claim))
        return self.current

    def close(self) -> None:
        self.current = None
        self.current_session = None
        self.editing_claim = None
        self.mode = DraftMode.NEW
        self.last_saved = None

    def _require_open(self) -> ClaimFormData:
        if self.current is None:
            raise ClaimValidationError("No claim form is open")
        return self.current

    # Editing

    def update_field(self, name: str, value: Any) -> ClaimFormData:
        form = self._require_open()
        if name not in ClaimFormData.model_fields:
            raise ClaimValidationError(f"Unknown claim form field: {name}")
        updated = ClaimFormData.model_validate({**form.model_dump(), name: value})
        if name == "service_lines":
            updated = updated.with_recomputed_total()
        self.current = updated
        return updated

    def update_service_line(self, index: int, **changes: Any) -> ClaimFormData:
        """Edit one service line and recompute the total charge."""
        form = self._require_open()
        if not 0 <= index < len(form.service_lines):
            raise ClaimValidationError(f"No service line at position {index + 1}")
        lines = list(form.service_lines)
        lines[index] = ServiceLine.model_validate({**lines[index].model_dump(), **changes})
        self.current = form.model_copy(update={"service_lines": lines}).with_recomputed_total()
        return self.current

    def add_service_line(self) -> ClaimFormData:
        form = self._require_open()
        template = form.service_lines[0] if form.service_lines else ServiceLine()
        line = ServiceLine(
            date_from=template.date_from,
            date_to=template.date_to,
            place_of_service=template.place_of_service or self.org.default_place_of_service,
            cpt_code=self.org.default_cpt_code,
            modifier_1=self.org.default_modifier,
            diagnosis_pointer=self.org.default_diagnosis_pointer,
            charges=self.org.rate_for(self.org.default_cpt_code),
            units=1,
            rendering_provider_npi=template.rendering_provider_npi,
            rendering_provider_name=template.rendering_provider_name,
        )
        lines = [*form.service_lines, line]
        self.current = form.model_copy(update={"service_lines": lines}).with_recomputed_total()
        return self.current

    def remove_service_line(self, index: int) -> ClaimFormData:
        form = self._require_open()
        if not 0 <= index < len(form.service_lines):
            raise ClaimValidationError(f"No service line at position {index + 1}")
        lines = [line for i, line in enumerate(form.service_lines) if i != index]
        self.current = form.model_copy(update={"service_lines": lines}).with_recomputed_total()
        return self.current

    # Drafts

    async def save_draft(
        self,
        form_data: ClaimFormData,
        appointment_id: str,
        *,
        patient_id: str = "",
        patient_name: str = "",
    ) -> DraftSaveResult:
        """Persist a draft locally, then mirror it to the backend in the background.

        The local write alone decides success. The remote write is best
        effort: its failure is logged and never raised.
        """
        saved_at = self._clock()
        draft = Draft(
            form_data=form_data,
            saved_at=saved_at,
            appointment_id=appointment_id,
            patient_id=patient_id,
            patient_name=patient_name,
        )
        try:
            self.store.set(draft_key(appointment_id), draft.model_dump(mode="json"))
        except (OSError, TypeError, ValueError) as exc:
            raise DraftStorageError(f"Failed to save claim progress: {exc}") from exc

        self.last_saved = saved_at
        if self.current_session is not None and self.current_session.appointment.id == appointment_id:
            self.mode = DraftMode.DRAFT

        if self.remote is not None:
            self.background.spawn(
                self.remote.save_draft(appointment_id, patient_id, form_data),
                f"Remote draft save for appointment {appointment_id}",
            )
        return DraftSaveResult(saved=True, saved_at=saved_at, appointment_id=appointment_id)

    async def save_current(self) -> DraftSaveResult:
        """Save the open session form as a draft."""
        form = self._require_open()
        session = self.current_session
        if session is None:
            raise ClaimValidationError("Only claims opened from a session can be saved as drafts")
        return await self.save_draft(
            form,
            session.appointment.id,
            patient_id=session.appointment.contact_id or "",
            patient_name=session_patient_name(session),
        )

    def get_draft(self, appointment_id: str) -> Draft | None:
        raw = self.store.get(draft_key(appointment_id))
        if raw is None:
            return None
        try:
            return Draft.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable draft for appointment %s: %s", appointment_id, exc)
            return None

    def load_draft(self, appointment_id: str) -> ClaimFormData | None:
        """Most recent locally saved form for the appointment, or None."""
        draft = self.get_draft(appointment_id)
        return draft.form_data if draft is not None else None

    def delete_draft(self, appointment_id: str) -> None:
        self.store.delete(draft_key(appointment_id))

    async def drain(self) -> None:
        """Wait for background remote draft writes to settle."""
        await self.background.drain()


def get_draft_manager(
    client: BackendClient | None = None,
    audit: AuditSink | None = None,
    settings: Settings | None = None,
) -> ClaimDraftManager:
    """Draft manager backed by the JSON draft file named in settings."""
    settings = settings or get_settings()
    return ClaimDraftManager(
        JsonFileStore(settings.draft_store_path),
        load_organization_config(settings.config_file),
        remote=client,
        audit=audit or LoggingAuditSink(),
    )
