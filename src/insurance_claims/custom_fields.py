"""Ordered lookup of values in free-form patient custom fields."""

from collections.abc import Sequence

from .schemas.records import CustomField, Patient

PAYER_NAME_KEYS = ("insurance_carrier", "insurance_company", "carrier")
PAYER_ID_KEYS = ("insurance_payer_id", "payer_id")
CLINICIAN_NAME_KEYS = ("referring_provider_name", "provider_name")
MEMBER_ID_KEYS = ("insurance_member_id", "member_id")
GROUP_NUMBER_KEYS = ("insurance_group_number", "group_number")
DIAGNOSIS_KEYS = ("primary_diagnosis_code", "diagnosis")


def _exact_match(field: CustomField, key: str) -> bool:
    return key in (field.key, field.id, field.field_key)


def _substring_match(field: CustomField, key: str) -> bool:
    return any(candidate and key in candidate for candidate in (field.key, field.field_key))


def resolve_custom_field(fields: Sequence[CustomField], candidates: Sequence[str]) -> str:
    """Return the first non-empty value for the candidate keys, in order.

    For each candidate key an exact match on key, id or field key is tried
    before a substring match on key or field key. Missing values resolve to "".
    """
    for key in candidates:
        for matcher in (_exact_match, _substring_match):
            for field in fields:
                if matcher(field, key):
                    value = field.resolved_value()
                    if value:
                        return value
    return ""


def patient_field(patient: Patient | None, *candidates: str) -> str:
    """Shorthand for resolving candidates against a possibly missing patient."""
    if patient is None:
        return ""
    return resolve_custom_field(patient.custom_fields, candidates)
