"""Tests for bulk appointment selection and the batch claim filing workflow."""

from datetime import datetime, timedelta, timezone

import pytest

from insurance_claims.batch_filing import (
    BatchClaimInitiator,
    BatchClaimWorkflow,
    BatchStartEvent,
    SessionSelection,
)
from insurance_claims.errors import ClaimValidationError
from insurance_claims.schemas import Appointment, Contact, Invoice

PAST = datetime.now(timezone.utc) - timedelta(days=2)


def _make_appointment(
    appointment_id: str,
    contact_id: str | None = "contact-1",
    status: str = "showed",
    first_name: str = "Maya",
) -> Appointment:
    """Helper to create a completed appointment two days ago."""
    return Appointment(
        id=appointment_id,
        contact_id=contact_id,
        start_time=PAST,
        end_time=PAST + timedelta(hours=1),
        appointment_status=status,
        contact=Contact(first_name=first_name, last_name="Rivera"),
    )


def _make_invoice(invoice_id: str, total: float, amount_paid: float = 0.0) -> Invoice:
    return Invoice.model_validate(
        {"_id": invoice_id, "invoiceNumber": f"INV-{invoice_id}", "total": total, "amountPaid": amount_paid}
    )


async def _run_workflow(invoices_api, claims_api, appointments):
    workflow = BatchClaimWorkflow(invoices_api, claims_api, timeout=30)
    return await workflow.run(start_event=BatchStartEvent(appointments=appointments))


# ============================================================================
# SELECTION
# ============================================================================


class TestSessionSelection:
    """Eligibility-gated, insertion-ordered selection."""

    def test_select_keeps_insertion_order(self):
        selection = SessionSelection()
        for apt_id in ("apt-3", "apt-1", "apt-2"):
            assert selection.select(_make_appointment(apt_id))
        assert selection.ids == ["apt-3", "apt-1", "apt-2"]
        assert len(selection) == 3

    def test_ineligible_select_is_a_noop(self):
        selection = SessionSelection()
        assert selection.select(_make_appointment("apt-1", contact_id=None)) is False
        assert selection.select(_make_appointment("apt-2", status="cancelled")) is False
        assert len(selection) == 0

    def test_toggle(self):
        selection = SessionSelection()
        apt = _make_appointment("apt-1")
        assert selection.toggle(apt) is True
        assert "apt-1" in selection
        assert selection.toggle(apt) is False
        assert "apt-1" not in selection

    def test_select_all_takes_only_eligible(self):
        selection = SessionSelection()
        count = selection.select_all(
            [
                _make_appointment("apt-1"),
                _make_appointment("apt-2", contact_id=None),
                _make_appointment("apt-3", contact_id="contact-3"),
            ]
        )
        assert count == 2
        assert selection.ids == ["apt-1", "apt-3"]

    def test_clear(self):
        selection = SessionSelection()
        selection.select(_make_appointment("apt-1"))
        selection.clear()
        assert selection.ids == []


# ============================================================================
# WORKFLOW
# ============================================================================


class TestBatchClaimWorkflow:
    """Pre-check, sequential filing and summary."""

    @pytest.mark.asyncio
    async def test_partial_payment_invoice_files_balance(self, invoices_api, claims_api):
        """One invoice of 200 with 50 paid files a single claim for 150."""
        invoices_api.invoices = {"contact-1": [_make_invoice("inv-1", total=200.0, amount_paid=50.0)]}

        result = await _run_workflow(invoices_api, claims_api, [_make_appointment("apt-1")])
        assert not result.aborted
        assert len(result.succeeded) == 1
        assert result.failed == []
        item = result.succeeded[0]
        assert item.charge_amount == 150.0
        assert item.invoice_id == "inv-1"
        assert item.claim_number == "CLM-0001"

        kind, request = claims_api.calls[0]
        assert kind == "create_from_invoice"
        assert request.charge_amount == 150.0
        assert request.contact_id == "contact-1"
        assert request.appointment_id == "apt-1"

    @pytest.mark.asyncio
    async def test_missing_patient_aborts_whole_batch(self, invoices_api, claims_api):
        """One appointment without a patient stops the batch before any filing."""
        appointments = [_make_appointment("apt-1"), _make_appointment("apt-2", contact_id=None)]

        result = await _run_workflow(invoices_api, claims_api, appointments)
        assert result.aborted
        assert result.disqualified_count == 1
        assert result.precheck_failure == (
            "Cannot file claims: 1 selected appointment(s) do not have associated patient records."
        )
        assert result.items == []
        assert claims_api.calls == []
        assert invoices_api.calls == []

    @pytest.mark.asyncio
    async def test_per_item_failures_do_not_stop_the_batch(self, invoices_api, claims_api):
        invoices_api.invoices = {
            "contact-1": [],
            "contact-2": [_make_invoice("inv-2", total=100.0, amount_paid=100.0)],
            "contact-4": [_make_invoice("inv-4", total=90.0)],
            "contact-5": [
                _make_invoice("inv-5a", total=80.0, amount_paid=80.0),
                _make_invoice("inv-5b", total=120.0, amount_paid=20.0),
            ],
        }
        invoices_api.failing = {"contact-3": "GET /api/invoices/contact-3 timed out"}
        claims_api.failing_invoices = {"inv-4": "Claim already exists for invoice"}
        appointments = [
            _make_appointment(f"apt-{n}", contact_id=f"contact-{n}", first_name=f"P{n}") for n in range(1, 6)
        ]

        result = await _run_workflow(invoices_api, claims_api, appointments)
        assert [item.appointment_id for item in result.items] == [f"apt-{n}" for n in range(1, 6)]
        errors = {item.appointment_id: item.error for item in result.failed}
        assert errors == {
            "apt-1": "No invoices found for patient",
            "apt-2": "No unpaid invoices found",
            "apt-3": "GET /api/invoices/contact-3 timed out",
            "apt-4": "Claim already exists for invoice",
        }
        assert [item.appointment_id for item in result.succeeded] == ["apt-5"]
        assert result.succeeded[0].invoice_id == "inv-5b"
        assert result.succeeded[0].charge_amount == 100.0
        assert "Failed to file 4 claim(s):" in result.summary_message()
        assert "P1 Rivera: No invoices found for patient" in result.summary_message()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded_and_batch_continues(self, invoices_api, claims_api):
        """A non-backend error on the first item still lets the second file."""
        invoices_api.crashing = {"contact-1": ConnectionResetError("connection reset by peer")}
        invoices_api.invoices = {"contact-2": [_make_invoice("inv-2", total=175.0)]}
        appointments = [
            _make_appointment("apt-1", contact_id="contact-1", first_name="P1"),
            _make_appointment("apt-2", contact_id="contact-2", first_name="P2"),
        ]

        result = await _run_workflow(invoices_api, claims_api, appointments)
        assert [item.appointment_id for item in result.items] == ["apt-1", "apt-2"]
        assert result.failed[0].appointment_id == "apt-1"
        assert result.failed[0].error == "connection reset by peer"
        assert [item.appointment_id for item in result.succeeded] == ["apt-2"]

    @pytest.mark.asyncio
    async def test_unexpected_error_without_message(self, invoices_api, claims_api):
        invoices_api.crashing = {"contact-1": RuntimeError()}

        result = await _run_workflow(invoices_api, claims_api, [_make_appointment("apt-1")])
        assert result.failed[0].error == "Failed to file claim"

    @pytest.mark.asyncio
    async def test_filing_follows_selection_order(self, invoices_api, claims_api):
        invoices_api.invoices = {
            "contact-a": [_make_invoice("inv-a", total=50.0)],
            "contact-b": [_make_invoice("inv-b", total=60.0)],
        }
        appointments = [
            _make_appointment("apt-b", contact_id="contact-b"),
            _make_appointment("apt-a", contact_id="contact-a"),
        ]
        await _run_workflow(invoices_api, claims_api, appointments)
        assert invoices_api.calls == ["contact-b", "contact-a"]


# ============================================================================
# INITIATOR
# ============================================================================


class TestBatchClaimInitiator:
    """Selection hand-off, clearing and completion callback."""

    @pytest.mark.asyncio
    async def test_empty_selection_rejected(self, invoices_api, claims_api):
        with pytest.raises(ClaimValidationError) as exc_info:
            await BatchClaimInitiator(invoices_api, claims_api).file_selected(SessionSelection(), [])
        assert exc_info.value.reason == "Please select at least one appointment to file claims"

    @pytest.mark.asyncio
    async def test_success_clears_selection_and_completes(self, invoices_api, claims_api):
        invoices_api.invoices = {"contact-1": [_make_invoice("inv-1", total=175.0)]}
        appointment = _make_appointment("apt-1")
        selection = SessionSelection()
        selection.select(appointment)
        completed = []

        result = await BatchClaimInitiator(invoices_api, claims_api).file_selected(
            selection, [appointment], on_complete=completed.append
        )
        assert len(result.succeeded) == 1
        assert completed == [result]
        assert len(selection) == 0

    @pytest.mark.asyncio
    async def test_no_success_skips_completion(self, invoices_api, claims_api):
        appointment = _make_appointment("apt-1")
        selection = SessionSelection()
        selection.select(appointment)
        completed = []

        result = await BatchClaimInitiator(invoices_api, claims_api).file_selected(
            selection, [appointment], on_complete=completed.append
        )
        assert result.failed[0].error == "No invoices found for patient"
        assert completed == []
        assert len(selection) == 0

    @pytest.mark.asyncio
    async def test_precheck_abort_keeps_selection(self, invoices_api, claims_api):
        """Appointment data refreshed without a patient aborts and keeps the selection."""
        selection = SessionSelection()
        selection.select(_make_appointment("apt-1"))
        refreshed = [_make_appointment("apt-1", contact_id=None)]

        result = await BatchClaimInitiator(invoices_api, claims_api).file_selected(selection, refreshed)
        assert result.aborted
        assert selection.ids == ["apt-1"]
        assert claims_api.calls == []
