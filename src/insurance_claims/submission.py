"""Promotion of claim forms into persisted claims."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from .aggregator import session_patient_name
from .audit import AuditSink, claim_submit_entry, claim_update_entry
from .clients import ClaimsApi
from .drafts import ClaimDraftManager
from .errors import ClaimValidationError, StatusTransitionError
from .lifecycle import claim_request_from_form
from .schemas import Claim, ClaimFormData, ClaimStatus, UnbilledSession, ValidationSeverity
from .validators import blocking_failures, run_form_checks

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def patient_control_number(patient_id: str, now: datetime) -> str:
    """``<last 6 of patient id>-<last 6 digits of epoch millis>``."""
    millis = int(now.timestamp() * 1000)
    return f"{patient_id[-6:] or '000000'}-{str(millis)[-6:]}"


def check_form(form: ClaimFormData) -> None:
    """Raise ``ClaimValidationError`` for the first blocking finding."""
    results = run_form_checks(form)
    for result in results:
        if result.severity != ValidationSeverity.HIGH:
            logger.info("Claim form check %s: %s", result.check_name, result.detail)
    blocking = blocking_failures(results)
    if blocking:
        raise ClaimValidationError(blocking[0].detail)


class ClaimSubmitter:
    """Creates new claims from sessions and updates ready claims in place."""

    def __init__(
        self,
        claims_api: ClaimsApi,
        drafts: ClaimDraftManager,
        audit: AuditSink,
        location_id: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.claims_api = claims_api
        self.drafts = drafts
        self.audit = audit
        self.location_id = location_id
        self._clock = clock

    async def submit_new(
        self, session: UnbilledSession, form: ClaimFormData, now: datetime | None = None
    ) -> Claim:
        """Validate, map and create a claim for an unbilled session.

        The session's local draft is removed once the backend accepts the claim.
        """
        check_form(form)
        now = now or self._clock()
        appointment = session.appointment
        patient_id = appointment.contact_id or ""
        patient_name = session_patient_name(session)

        request = claim_request_from_form(
            form,
            patient_id=patient_id,
            patient_control_number=patient_control_number(patient_id, now),
            signed_at=now,
            location_id=self.location_id,
            appointment_id=appointment.id,
            clinician_name=session.clinician_name,
        )
        claim = await self.claims_api.create(request)
        logger.info("Created claim %s for appointment %s", claim.id, appointment.id)

        self.drafts.delete_draft(appointment.id)
        if (
            self.drafts.current_session is not None
            and self.drafts.current_session.appointment.id == appointment.id
        ):
            self.drafts.close()

        self.audit.record(
            claim_submit_entry(
                claim, patient_name, request.cms1500_data.total_charge, payer_name=form.payer_name
            )
        )
        return claim

    async def update_ready(
        self, claim: Claim, form: ClaimFormData, now: datetime | None = None
    ) -> Claim:
        """Replace the form data of a claim that has not been submitted yet."""
        if claim.status != ClaimStatus.READY:
            raise StatusTransitionError(
                f"Only ready claims can be edited in place (claim is {claim.status.value})"
            )
        check_form(form)

        request = claim_request_from_form(
            form,
            patient_id=claim.patient_id,
            patient_control_number=claim.patient_control_number,
            signed_at=now or self._clock(),
            location_id=self.location_id,
            appointment_id=claim.appointment_id,
            clinician_name=claim.clinician_name,
        )
        updated = await self.claims_api.update(claim.id, request)
        logger.info("Updated ready claim %s", claim.id)

        self.audit.record(claim_update_entry(updated, claim.status))
        return updated
