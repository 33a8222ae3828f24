"""Bulk selection of completed appointments and batch claim filing from invoices.

The filing workflow runs three steps:
1. Pre-check that every selected appointment has a patient record
2. File one claim per appointment from its first unpaid invoice
3. Summarize the per-appointment outcomes
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ValidationError
from workflows import Context, Workflow, step
from workflows.events import Event, StartEvent, StopEvent

from .aggregator import appointment_phase, patient_display_name
from .clients import ClaimsApi, InvoicesApi
from .errors import ClaimValidationError, ClaimWorkflowError
from .schemas import (
    Appointment,
    AppointmentPhase,
    BatchFilingResult,
    BatchItemResult,
    FromInvoiceRequest,
)

logger = logging.getLogger(__name__)

NO_INVOICES = "No invoices found for patient"
NO_UNPAID_INVOICES = "No unpaid invoices found"
FILE_FAILED = "Failed to file claim"
EMPTY_SELECTION = "Please select at least one appointment to file claims"


def missing_patient_message(count: int) -> str:
    return (
        f"Cannot file claims: {count} selected appointment(s) do not have "
        "associated patient records."
    )


# --- Selection ---


def is_selectable(appointment: Appointment, now: datetime | None = None) -> bool:
    """Completed and linked to a patient."""
    return bool(appointment.contact_id) and appointment_phase(appointment, now) == AppointmentPhase.COMPLETED


class SessionSelection:
    """Insertion-ordered set of appointment ids picked for batch filing."""

    def __init__(self) -> None:
        self._ids: dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, appointment_id: object) -> bool:
        return appointment_id in self._ids

    @property
    def ids(self) -> list[str]:
        return list(self._ids)

    def select(self, appointment: Appointment, now: datetime | None = None) -> bool:
        """Add an eligible appointment; ineligible ones are ignored."""
        if not is_selectable(appointment, now):
            return False
        self._ids[appointment.id] = None
        return True

    def deselect(self, appointment_id: str) -> None:
        self._ids.pop(appointment_id, None)

    def toggle(self, appointment: Appointment, now: datetime | None = None) -> bool:
        """Flip membership; returns whether the appointment is now selected."""
        if appointment.id in self._ids:
            self.deselect(appointment.id)
            return False
        return self.select(appointment, now)

    def select_all(self, appointments: Iterable[Appointment], now: datetime | None = None) -> int:
        """Select every eligible appointment; returns how many are selected."""
        for appointment in appointments:
            self.select(appointment, now)
        return len(self)

    def clear(self) -> None:
        self._ids.clear()


# --- Events ---


class BatchStartEvent(StartEvent):
    """Start event with the selected appointments, in selection order."""

    appointments: list[Appointment]


class StatusEvent(Event):
    """Progress status update for the client."""

    message: str
    level: Literal["info", "warning", "error"] = "info"


class PrecheckPassedEvent(Event):
    """Emitted when every selected appointment has a patient."""

    pass


class ClaimsFiledEvent(Event):
    """Emitted after one filing attempt per appointment."""

    pass


# --- Workflow State ---


class BatchState(BaseModel):
    """State persisted across workflow steps."""

    appointments: list[Appointment] = []
    items: list[BatchItemResult] = []


# --- Workflow ---


class BatchClaimWorkflow(Workflow):
    """File insurance claims from unpaid invoices, one appointment at a time."""

    def __init__(self, invoices_api: InvoicesApi, claims_api: ClaimsApi, **kwargs):
        super().__init__(**kwargs)
        self.invoices_api = invoices_api
        self.claims_api = claims_api

    @step()
    async def precheck(
        self, event: BatchStartEvent, ctx: Context[BatchState]
    ) -> PrecheckPassedEvent | StopEvent:
        """Abort before filing anything when a selection has no patient."""
        missing = [apt for apt in event.appointments if not apt.contact_id]
        if missing:
            message = missing_patient_message(len(missing))
            ctx.write_event_to_stream(StatusEvent(message=message, level="error"))
            return StopEvent(
                result=BatchFilingResult(
                    requested=len(event.appointments),
                    precheck_failure=message,
                    disqualified_count=len(missing),
                )
            )

        async with ctx.store.edit_state() as state:
            state.appointments = event.appointments

        return PrecheckPassedEvent()

    @step()
    async def file_claims(self, event: PrecheckPassedEvent, ctx: Context[BatchState]) -> ClaimsFiledEvent:
        """Create a claim from each appointment's first unpaid invoice."""
        state = await ctx.store.get_state()
        appointments = state.appointments

        ctx.write_event_to_stream(StatusEvent(message=f"Filing claims for {len(appointments)} appointment(s)..."))

        items: list[BatchItemResult] = []
        for appointment in appointments:
            patient_name = patient_display_name(appointment, None)
            ctx.write_event_to_stream(StatusEvent(message=f"Filing claim for {patient_name}..."))
            try:
                item = await self._file_one(appointment, patient_name)
            except ClaimWorkflowError as exc:
                logger.error("Error filing claim for appointment %s: %s", appointment.id, exc.reason)
                item = BatchItemResult(
                    appointment_id=appointment.id,
                    patient_name=patient_name,
                    success=False,
                    error=exc.reason,
                )
            except ValidationError as exc:
                logger.error("Malformed data filing claim for appointment %s: %s", appointment.id, exc)
                item = BatchItemResult(
                    appointment_id=appointment.id,
                    patient_name=patient_name,
                    success=False,
                    error="Malformed invoice data",
                )
            except Exception as exc:
                logger.exception("Unexpected error filing claim for appointment %s", appointment.id)
                item = BatchItemResult(
                    appointment_id=appointment.id,
                    patient_name=patient_name,
                    success=False,
                    error=str(exc) or FILE_FAILED,
                )

            if not item.success:
                ctx.write_event_to_stream(
                    StatusEvent(message=f"{patient_name}: {item.error}", level="warning")
                )
            items.append(item)

        async with ctx.store.edit_state() as state:
            state.items = items

        return ClaimsFiledEvent()

    async def _file_one(self, appointment: Appointment, patient_name: str) -> BatchItemResult:
        patient_id = appointment.contact_id or ""
        invoices = await self.invoices_api.list_invoices(patient_id)
        if not invoices:
            return BatchItemResult(
                appointment_id=appointment.id, patient_name=patient_name, success=False, error=NO_INVOICES
            )

        invoice = next((inv for inv in invoices if inv.balance > 0), None)
        if invoice is None:
            return BatchItemResult(
                appointment_id=appointment.id,
                patient_name=patient_name,
                success=False,
                error=NO_UNPAID_INVOICES,
            )

        charge = round(invoice.balance, 2)
        claim = await self.claims_api.create_from_invoice(
            invoice.invoice_id,
            FromInvoiceRequest(
                contact_id=patient_id,
                appointment_id=appointment.id,
                appointment_date=appointment.start_time,
                charge_amount=charge,
                invoice_data=invoice,
            ),
        )
        logger.info("Filed claim %s for appointment %s from invoice %s", claim.id, appointment.id, invoice.invoice_id)
        return BatchItemResult(
            appointment_id=appointment.id,
            patient_name=patient_name,
            success=True,
            claim_id=claim.id,
            claim_number=claim.claim_number or claim.patient_control_number,
            invoice_id=invoice.invoice_id,
            charge_amount=charge,
        )

    @step()
    async def summarize(self, event: ClaimsFiledEvent, ctx: Context[BatchState]) -> StopEvent:
        """Collect per-appointment outcomes into one result."""
        state = await ctx.store.get_state()
        result = BatchFilingResult(requested=len(state.appointments), items=state.items)

        level = "info" if not result.failed else "warning"
        ctx.write_event_to_stream(StatusEvent(message=result.summary_message(), level=level))

        return StopEvent(result=result)


# --- Initiator ---


class BatchClaimInitiator:
    """Runs batch filing for the current selection."""

    def __init__(self, invoices_api: InvoicesApi, claims_api: ClaimsApi, timeout: float | None = 300):
        self.invoices_api = invoices_api
        self.claims_api = claims_api
        self.timeout = timeout

    def build_workflow(self) -> BatchClaimWorkflow:
        return BatchClaimWorkflow(self.invoices_api, self.claims_api, timeout=self.timeout)

    async def file_selected(
        self,
        selection: SessionSelection,
        appointments: Iterable[Appointment],
        on_complete: Callable[[BatchFilingResult], None] | None = None,
    ) -> BatchFilingResult:
        """File claims for the selected appointments.

        The selection is cleared after a filing pass; an aborted pre-check
        leaves it intact. ``on_complete`` runs only when a claim was filed.
        """
        if not len(selection):
            raise ClaimValidationError(EMPTY_SELECTION)

        by_id = {appointment.id: appointment for appointment in appointments}
        chosen = [by_id[appointment_id] for appointment_id in selection.ids if appointment_id in by_id]
        if not chosen:
            raise ClaimValidationError(EMPTY_SELECTION)

        result = await self.build_workflow().run(start_event=BatchStartEvent(appointments=chosen))
        if result.aborted:
            return result

        selection.clear()
        logger.info("Batch filing finished: %d filed, %d failed", len(result.succeeded), len(result.failed))
        if result.succeeded and on_complete is not None:
            on_complete(result)
        return result
