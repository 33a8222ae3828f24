"""Schemas for the insurance claims workflow."""

from .batch_output import BatchFilingResult, BatchItemResult
from .claim import (
    Claim,
    ClaimPatientInfo,
    ClaimRequest,
    Draft,
    DraftSaveResult,
    FromInvoiceRequest,
    StatusPatch,
    TransitionExtra,
    UnbilledSession,
)
from .claim_form import (
    DIAGNOSIS_POINTERS,
    MAX_DIAGNOSIS_CODES,
    ClaimFormData,
    ServiceLine,
)
from .cms1500 import (
    BillingProviderBox,
    CMS1500Submission,
    ConditionBox,
    DateSpan,
    InsuredBox,
    OtherInsuredBox,
    PatientBox,
    PayerBox,
    ReferringProviderBox,
    RenderingProvider,
    ResubmissionBox,
    ServiceFacilityBox,
    ServiceLineEntry,
)
from .common import (
    ApiModel,
    AppointmentPhase,
    AuditAction,
    ClaimStatus,
    DraftMode,
    ResubmissionCode,
    ValidationResult,
    ValidationSeverity,
    ValidationStatus,
)
from .records import Appointment, Contact, CustomField, Invoice, Patient, StaffUser

__all__ = [
    # Common
    "ApiModel",
    "AppointmentPhase",
    "AuditAction",
    "ClaimStatus",
    "DraftMode",
    "ResubmissionCode",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
    # Collaborator records
    "Appointment",
    "Contact",
    "CustomField",
    "Invoice",
    "Patient",
    "StaffUser",
    # Claim form
    "DIAGNOSIS_POINTERS",
    "MAX_DIAGNOSIS_CODES",
    "ClaimFormData",
    "ServiceLine",
    # CMS-1500 submission
    "BillingProviderBox",
    "CMS1500Submission",
    "ConditionBox",
    "DateSpan",
    "InsuredBox",
    "OtherInsuredBox",
    "PatientBox",
    "PayerBox",
    "ReferringProviderBox",
    "RenderingProvider",
    "ResubmissionBox",
    "ServiceFacilityBox",
    "ServiceLineEntry",
    # Claims and drafts
    "Claim",
    "ClaimPatientInfo",
    "ClaimRequest",
    "Draft",
    "DraftSaveResult",
    "FromInvoiceRequest",
    "StatusPatch",
    "TransitionExtra",
    "UnbilledSession",
    # Output
    "BatchItemResult",
    "BatchFilingResult",
]
