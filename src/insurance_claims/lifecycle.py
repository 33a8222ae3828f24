"""Claim status state machine and resubmission of corrected claims."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from .audit import AuditSink, claim_update_entry, status_change_entry
from .clients import ClaimsApi
from .errors import StatusTransitionError
from .field_mapper import map_claim_form
from .schemas import (
    Claim,
    ClaimFormData,
    ClaimPatientInfo,
    ClaimRequest,
    ClaimStatus,
    ResubmissionCode,
    StatusPatch,
    TransitionExtra,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.READY: frozenset({ClaimStatus.SUBMITTED}),
    ClaimStatus.SUBMITTED: frozenset(
        {ClaimStatus.ACCEPTED, ClaimStatus.DENIED, ClaimStatus.REJECTED, ClaimStatus.PAID}
    ),
    ClaimStatus.ACCEPTED: frozenset({ClaimStatus.PAID}),
    # Only reachable through resubmit()
    ClaimStatus.DENIED: frozenset({ClaimStatus.READY}),
    ClaimStatus.REJECTED: frozenset({ClaimStatus.READY}),
    ClaimStatus.PAID: frozenset(),
}

NEEDS_CORRECTION = frozenset({ClaimStatus.DENIED, ClaimStatus.REJECTED})
RESUBMISSION_CODES = frozenset({ResubmissionCode.REPLACEMENT, ResubmissionCode.VOID})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def can_transition(current: ClaimStatus, new_status: ClaimStatus, *, resubmission: bool = False) -> bool:
    """Whether ``current`` may move to ``new_status``.

    Denied and rejected claims reach ``ready`` only as a resubmission.
    """
    if current in NEEDS_CORRECTION and new_status == ClaimStatus.READY and not resubmission:
        return False
    return new_status in ALLOWED_TRANSITIONS.get(current, frozenset())


def claim_request_from_form(
    form: ClaimFormData,
    *,
    patient_id: str,
    patient_control_number: str,
    signed_at: datetime,
    location_id: str = "",
    appointment_id: str | None = None,
    clinician_name: str = "",
) -> ClaimRequest:
    """Create/update request carrying the mapped form and its flat summary."""
    submission = map_claim_form(form, signed_at=signed_at)
    return ClaimRequest(
        location_id=location_id,
        appointment_id=appointment_id,
        patient_id=patient_id,
        patient_control_number=patient_control_number,
        status=ClaimStatus.READY,
        payer_id=form.payer_id,
        payer_name=form.payer_name,
        cpt_code=submission.cpt_code,
        charge_amount=submission.total_charge,
        session_date=submission.service_date,
        clinician_name=clinician_name
        or (form.service_lines[0].rendering_provider_name if form.service_lines else ""),
        diagnosis_codes=[code for code in form.diagnosis_codes if code.strip()],
        patient_info=ClaimPatientInfo(
            first_name=form.patient_first_name,
            last_name=form.patient_last_name,
            dob=form.patient_dob,
            gender=form.patient_sex,
            member_id=form.member_id,
            group_number=form.insured_policy_group_id,
            address=form.patient_address1,
            city=form.patient_city,
            state=form.patient_state,
            zip=form.patient_zip,
        ),
        cms1500_data=submission,
    )


class ClaimLifecycle:
    """Applies status transitions through the claims backend and audits each one."""

    def __init__(
        self,
        claims_api: ClaimsApi,
        audit: AuditSink,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.claims_api = claims_api
        self.audit = audit
        self._clock = clock

    async def transition(
        self, claim: Claim, new_status: ClaimStatus, extra: TransitionExtra | None = None
    ) -> Claim:
        """Move ``claim`` to ``new_status``.

        Raises ``StatusTransitionError`` before any backend call when the move
        is not allowed or the paid amount is missing or unexpected. A repeat of
        the current status with an identical payload returns the claim as is.
        """
        extra = extra or TransitionExtra()
        new_status = ClaimStatus(new_status)
        current = claim.status

        if new_status == current:
            if extra.paid_amount == claim.paid_amount and extra.notes in (None, claim.notes):
                return claim
            raise StatusTransitionError(f"Claim is already {current.value}")

        if new_status == ClaimStatus.PAID and extra.paid_amount is None:
            raise StatusTransitionError("Paid amount is required when marking a claim as paid")
        if new_status != ClaimStatus.PAID and extra.paid_amount is not None:
            raise StatusTransitionError("Paid amount is only accepted when marking a claim as paid")
        if current in NEEDS_CORRECTION and new_status == ClaimStatus.READY:
            raise StatusTransitionError("Denied and rejected claims re-enter ready only by resubmission")
        if not can_transition(current, new_status):
            raise StatusTransitionError(
                f"Cannot change claim status from {current.value} to {new_status.value}"
            )

        now = self._clock()
        patch = StatusPatch(
            status=new_status,
            submitted_at=now if new_status == ClaimStatus.SUBMITTED else None,
            paid_at=now if new_status == ClaimStatus.PAID else None,
            paid_amount=extra.paid_amount,
            notes=extra.notes,
        )
        updated = await self.claims_api.patch_status(claim.id, patch)
        logger.info("Claim %s: %s -> %s", claim.id, current.value, new_status.value)

        self.audit.record(
            status_change_entry(
                claim, current, new_status, paid_amount=extra.paid_amount, notes=extra.notes
            )
        )
        return updated

    async def resubmit(
        self,
        claim: Claim,
        form: ClaimFormData,
        resubmission_code: ResubmissionCode | str = ResubmissionCode.REPLACEMENT,
        now: datetime | None = None,
    ) -> Claim:
        """Send a corrected or voiding copy of a denied or rejected claim.

        The claim keeps its id and patient control number and re-enters
        ``ready`` with ``resubmission_of`` pointing at itself.
        """
        if not can_transition(claim.status, ClaimStatus.READY, resubmission=True):
            raise StatusTransitionError(
                f"Only denied or rejected claims can be resubmitted (claim is {claim.status.value})"
            )
        try:
            code = ResubmissionCode(resubmission_code)
        except ValueError:
            raise StatusTransitionError(f"Invalid resubmission code: {resubmission_code}") from None
        if code not in RESUBMISSION_CODES:
            raise StatusTransitionError("Resubmission code must be 7 (replacement) or 8 (void)")

        corrected = form.model_copy(
            update={
                "resubmission_code": code.value,
                "original_ref_number": form.original_ref_number or claim.patient_control_number,
            }
        )
        request = claim_request_from_form(
            corrected,
            patient_id=claim.patient_id,
            patient_control_number=claim.patient_control_number,
            signed_at=now or self._clock(),
            appointment_id=claim.appointment_id,
            clinician_name=claim.clinician_name,
        ).model_copy(update={"resubmission_of": claim.id})

        updated = await self.claims_api.update(claim.id, request)
        logger.info("Claim %s resubmitted with code %s", claim.id, code.value)

        self.audit.record(claim_update_entry(updated, claim.status, resubmission_code=code.value))
        return updated
