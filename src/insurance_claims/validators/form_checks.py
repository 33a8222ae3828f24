"""Required-box and service-line checks for claim forms."""

from ..schemas.claim_form import DIAGNOSIS_POINTERS, ClaimFormData
from ..schemas.common import ValidationResult, ValidationSeverity, ValidationStatus

TOLERANCE = 0.01


def run_required_box_checks(form: ClaimFormData) -> list[ValidationResult]:
    """Check the boxes a payer rejects a claim without.

    Checks:
    - payer_id_present: Box 1 payer id
    - member_id_present: Box 1a insured id
    - diagnosis_code_present: at least one Box 21 code
    """
    results: list[ValidationResult] = []

    if not form.payer_id.strip():
        results.append(
            ValidationResult(
                check_name="payer_id_present",
                status=ValidationStatus.ERROR,
                severity=ValidationSeverity.HIGH,
                detail="Payer ID is required",
                recommendation="Select the patient's insurance payer",
            )
        )

    if not form.member_id.strip():
        results.append(
            ValidationResult(
                check_name="member_id_present",
                status=ValidationStatus.WARNING,
                severity=ValidationSeverity.MEDIUM,
                detail="Insured's ID number (Box 1a) is empty",
                recommendation="Add the member ID from the patient's insurance card",
            )
        )

    if not any(code.strip() for code in form.diagnosis_codes):
        results.append(
            ValidationResult(
                check_name="diagnosis_code_present",
                status=ValidationStatus.ERROR,
                severity=ValidationSeverity.HIGH,
                detail="At least one diagnosis code is required",
                recommendation="Enter an ICD-10 code in Box 21A",
            )
        )

    return results


def run_line_checks(form: ClaimFormData) -> list[ValidationResult]:
    """Check Box 24 service lines and the Box 28 total.

    Checks:
    - service_line_present: at least one line
    - date_of_service_present: first line has a from date
    - diagnosis_pointer_valid: every pointer letter references a filled code
    - service_date_range: no line ends before it starts
    - total_charge_consistent: cached total vs sum of charges x units
    """
    results: list[ValidationResult] = []

    if not form.service_lines:
        results.append(
            ValidationResult(
                check_name="service_line_present",
                status=ValidationStatus.ERROR,
                severity=ValidationSeverity.HIGH,
                detail="At least one service line is required",
                recommendation="Add the service rendered in Box 24",
            )
        )
        return results

    if not form.service_lines[0].date_from:
        results.append(
            ValidationResult(
                check_name="date_of_service_present",
                status=ValidationStatus.ERROR,
                severity=ValidationSeverity.HIGH,
                detail="Date of service is required on the first service line",
                recommendation="Enter the session date in Box 24A",
            )
        )

    for number, line in enumerate(form.service_lines, start=1):
        for letter in line.diagnosis_pointer.strip().upper():
            index = DIAGNOSIS_POINTERS.find(letter)
            if index < 0 or index >= len(form.diagnosis_codes) or not form.diagnosis_codes[index].strip():
                results.append(
                    ValidationResult(
                        check_name="diagnosis_pointer_valid",
                        status=ValidationStatus.ERROR,
                        severity=ValidationSeverity.HIGH,
                        detail=f"Line {number}: diagnosis pointer {letter} does not reference a diagnosis code",
                        recommendation="Point Box 24E at a filled Box 21 code",
                    )
                )

        # ISO dates compare correctly as strings
        if line.date_from and line.date_to and line.date_to < line.date_from:
            results.append(
                ValidationResult(
                    check_name="service_date_range",
                    status=ValidationStatus.MISMATCH,
                    severity=ValidationSeverity.MEDIUM,
                    detail=f"Line {number}: service end date {line.date_to} is before start date {line.date_from}",
                    recommendation="Correct the Box 24A date range",
                )
            )

    computed = form.computed_total()
    if abs(computed - form.total_charge) > TOLERANCE:
        results.append(
            ValidationResult(
                check_name="total_charge_consistent",
                status=ValidationStatus.MISMATCH,
                severity=ValidationSeverity.LOW,
                detail=f"Total charge ${form.total_charge:.2f} differs from line sum ${computed:.2f}",
                recommendation="The submitted total will use the line sum",
            )
        )

    return results
