"""Shared types for the insurance claims workflow schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for records exchanged with the dashboard backend (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClaimStatus(str, Enum):
    """Lifecycle status of a persisted claim."""

    READY = "ready"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    DENIED = "denied"
    REJECTED = "rejected"
    PAID = "paid"


class ResubmissionCode(str, Enum):
    """CMS-1500 Box 22 resubmission codes."""

    ORIGINAL = "1"
    REPLACEMENT = "7"
    VOID = "8"


class AppointmentPhase(str, Enum):
    """Computed display status of an appointment."""

    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    IN_PROGRESS = "in_progress"
    SCHEDULED = "scheduled"


class DraftMode(str, Enum):
    """How the open claim form came to be."""

    NEW = "new"
    PREPARED = "prepared"
    DRAFT = "draft"


class AuditAction(str, Enum):
    """Audit actions written by the claims workflow."""

    VIEW = "VIEW"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    SUBMIT = "SUBMIT"


class ValidationSeverity(str, Enum):
    """Severity level for validation findings."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"


class ValidationStatus(str, Enum):
    """Status outcome of a validation check."""

    PASS = "PASS"
    MISMATCH = "MISMATCH"
    WARNING = "WARNING"
    ERROR = "ERROR"
    INFO = "INFO"


class ValidationResult(BaseModel):
    """Result of a single validation check."""

    check_name: str
    status: ValidationStatus
    severity: ValidationSeverity
    detail: str
    recommendation: str | None = None
