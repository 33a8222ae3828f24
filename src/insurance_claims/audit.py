"""Audit records written by the claims workflow."""

import logging
from typing import Any, Protocol

from pydantic import BaseModel

from .clients import BackendClient, BackgroundCalls
from .schemas import AuditAction, Claim, ClaimStatus

logger = logging.getLogger(__name__)

RESOURCE_CLAIM = "claim"


class AuditEntry(BaseModel):
    """One audit-log write."""

    action: AuditAction
    resource_type: str = RESOURCE_CLAIM
    resource_id: str
    patient_id: str = ""
    patient_name: str = ""
    description: str
    metadata: dict[str, Any] = {}

    def to_wire(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "patientId": self.patient_id,
            "patientName": self.patient_name,
            "description": self.description,
            "metadata": self.metadata,
        }


class AuditSink(Protocol):
    """Fire-and-forget audit writer."""

    def record(self, entry: AuditEntry) -> None: ...


class HttpAuditSink:
    """Posts audit entries to the backend in the background."""

    def __init__(self, client: BackendClient, background: BackgroundCalls | None = None):
        self._client = client
        self.background = background or BackgroundCalls()

    def record(self, entry: AuditEntry) -> None:
        self.background.spawn(
            self._client.post_audit_log(entry.to_wire()),
            f"Audit {entry.action.value} {entry.resource_type}/{entry.resource_id}",
        )


class LoggingAuditSink:
    """Writes audit entries to the module logger only."""

    def record(self, entry: AuditEntry) -> None:
        logger.info(
            "AUDIT %s %s/%s: %s", entry.action.value, entry.resource_type, entry.resource_id, entry.description
        )


# --- Entry builders ---


def _money(amount: float | None) -> str:
    return f"${amount:.2f}" if amount is not None else "$0.00"


def claim_view_entry(claim: Claim) -> AuditEntry:
    return AuditEntry(
        action=AuditAction.VIEW,
        resource_id=claim.id,
        patient_id=claim.patient_id,
        patient_name=claim.patient_name(),
        description=f"Opened claim for editing: {claim.patient_control_number or claim.id}",
        metadata={"claimStatus": claim.status.value, "payerName": claim.payer_name},
    )


def claim_submit_entry(
    claim: Claim, patient_name: str, amount: float, payer_name: str = ""
) -> AuditEntry:
    description = f"Submitted insurance claim for {patient_name} - {_money(amount)}"
    if payer_name:
        description += f" to {payer_name}"
    return AuditEntry(
        action=AuditAction.SUBMIT,
        resource_id=claim.id,
        patient_id=claim.patient_id,
        patient_name=patient_name,
        description=description,
        metadata={"amount": amount, "payerName": payer_name},
    )


def claim_update_entry(
    claim: Claim,
    previous_status: ClaimStatus,
    *,
    resubmission_code: str | None = None,
) -> AuditEntry:
    patient_name = claim.patient_name()
    description = (
        f"Updated claim {claim.patient_control_number or claim.id} for {patient_name} - "
        f"{_money(claim.charge_amount)}"
    )
    metadata: dict[str, Any] = {
        "previousStatus": previous_status.value,
        "newStatus": claim.status.value,
        "payerId": claim.payer_id,
        "payerName": claim.payer_name,
        "chargeAmount": claim.charge_amount,
        "cptCode": claim.cpt_code,
    }
    if resubmission_code is not None:
        metadata["resubmissionCode"] = resubmission_code
        metadata["resubmissionOf"] = claim.resubmission_of
    return AuditEntry(
        action=AuditAction.UPDATE,
        resource_id=claim.id,
        patient_id=claim.patient_id,
        patient_name=patient_name,
        description=description,
        metadata=metadata,
    )


def status_change_entry(
    claim: Claim,
    previous_status: ClaimStatus,
    new_status: ClaimStatus,
    *,
    paid_amount: float | None = None,
    notes: str | None = None,
) -> AuditEntry:
    patient_name = claim.patient_name()
    description = f"Claim status changed to {new_status.value} for {patient_name}"
    metadata: dict[str, Any] = {
        "previousStatus": previous_status.value,
        "newStatus": new_status.value,
    }
    if notes is not None:
        metadata["notes"] = notes
    if new_status == ClaimStatus.PAID and paid_amount is not None:
        description += f" - Paid {_money(paid_amount)}"
        metadata["chargeAmount"] = claim.charge_amount
        metadata["paidAmount"] = paid_amount
        metadata["adjustment"] = round(claim.charge_amount - paid_amount, 2)
    return AuditEntry(
        action=AuditAction.UPDATE,
        resource_id=claim.id,
        patient_id=claim.patient_id,
        patient_name=patient_name,
        description=description,
        metadata=metadata,
    )
