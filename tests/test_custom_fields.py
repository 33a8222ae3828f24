"""Tests for ordered custom-field resolution."""

from insurance_claims.custom_fields import PAYER_NAME_KEYS, patient_field, resolve_custom_field
from insurance_claims.schemas import CustomField, Patient


class TestResolveCustomField:
    """Exact matches beat substring matches, and candidate order wins."""

    def test_exact_match_on_key_id_or_field_key(self):
        assert resolve_custom_field([CustomField(key="carrier", value="Aetna")], ["carrier"]) == "Aetna"
        assert resolve_custom_field([CustomField(id="carrier", value="Cigna")], ["carrier"]) == "Cigna"
        assert resolve_custom_field([CustomField(field_key="carrier", field_value="BCBS")], ["carrier"]) == "BCBS"

    def test_substring_match(self):
        fields = [CustomField(key="contact.insurance_carrier", value="Aetna")]
        assert resolve_custom_field(fields, PAYER_NAME_KEYS) == "Aetna"

    def test_exact_beats_substring_for_same_candidate(self):
        fields = [
            CustomField(key="contact.carrier_notes", value="call first"),
            CustomField(key="carrier", value="Humana"),
        ]
        assert resolve_custom_field(fields, ["carrier"]) == "Humana"

    def test_candidate_order_wins(self):
        fields = [
            CustomField(key="carrier", value="Humana"),
            CustomField(key="insurance_company", value="Aetna"),
        ]
        assert resolve_custom_field(fields, PAYER_NAME_KEYS) == "Aetna"

    def test_empty_values_skipped(self):
        fields = [
            CustomField(key="insurance_carrier", value=""),
            CustomField(key="carrier", value="Cigna"),
        ]
        assert resolve_custom_field(fields, PAYER_NAME_KEYS) == "Cigna"

    def test_non_string_values(self):
        assert resolve_custom_field([CustomField(key="copay", value=25)], ["copay"]) == "25"

    def test_missing_resolves_to_empty(self):
        assert resolve_custom_field([], PAYER_NAME_KEYS) == ""
        assert patient_field(None, "carrier") == ""
        assert patient_field(Patient(id="p-1"), "carrier") == ""
