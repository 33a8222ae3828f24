"""Pre-submission checks for CMS-1500 claim forms."""

from ..schemas.claim_form import ClaimFormData
from ..schemas.common import ValidationResult, ValidationSeverity
from .form_checks import run_line_checks, run_required_box_checks

__all__ = [
    "blocking_failures",
    "run_form_checks",
    "run_line_checks",
    "run_required_box_checks",
]

SEVERITY_ORDER = {
    ValidationSeverity.HIGH: 0,
    ValidationSeverity.MEDIUM: 1,
    ValidationSeverity.LOW: 2,
    ValidationSeverity.INFO: 3,
}


def run_form_checks(form: ClaimFormData) -> list[ValidationResult]:
    """Run every form check and return the findings sorted by severity.

    Only failed checks are reported; an empty list means the form is ready to
    submit. Results are sorted HIGH first, then MEDIUM, LOW, INFO.
    """
    results: list[ValidationResult] = []
    results.extend(run_required_box_checks(form))
    results.extend(run_line_checks(form))
    results.sort(key=lambda r: SEVERITY_ORDER.get(r.severity, 4))
    return results


def blocking_failures(results: list[ValidationResult]) -> list[ValidationResult]:
    """Findings that must stop a submission."""
    return [r for r in results if r.severity == ValidationSeverity.HIGH]
