"""Unit tests for the CMS-1500 field mapper."""

from datetime import date, datetime, timezone

from insurance_claims.field_mapper import compact_date, map_claim_form
from insurance_claims.schemas import ClaimFormData, CMS1500Submission, ServiceLine


def _make_line(**overrides) -> ServiceLine:
    """Helper to create a telehealth psychotherapy service line."""
    values = {
        "date_from": "2024-02-20",
        "date_to": "2024-02-20",
        "place_of_service": "02",
        "cpt_code": "90837",
        "modifier_1": "95",
        "diagnosis_pointer": "A",
        "charges": 175.0,
        "units": 1,
        "rendering_provider_npi": "1740590264",
        "rendering_provider_name": "Dana Whitfield",
    }
    values.update(overrides)
    return ServiceLine(**values)


def _make_form(**overrides) -> ClaimFormData:
    """Helper to create a filled-in claim form."""
    values = {
        "payer_id": "60054",
        "payer_name": "Aetna",
        "member_id": "W123456789",
        "patient_last_name": "Rivera",
        "patient_first_name": "Maya",
        "patient_dob": "1988-07-04",
        "patient_sex": "F",
        "diagnosis_codes": ["F41.1", "F32.1"],
        "service_lines": [_make_line()],
        "federal_tax_id": "47-5528305",
        "patient_account_number": "ct00ab12",
        "billing_provider_name": "Legacy Family Services, Inc",
        "billing_provider_npi": "1902270267",
        "billing_provider_taxonomy": "101YM0800X",
        "unable_to_work_from": "2024-02-01",
        "unable_to_work_to": "2024-02-15",
    }
    values.update(overrides)
    return ClaimFormData(**values).with_recomputed_total()


# ============================================================================
# TOTALITY
# ============================================================================


class TestTotality:
    """Every box group is present, whatever the input."""

    def test_default_form_has_every_group(self):
        """A blank form still maps to a payload with no None values."""
        payload = map_claim_form(ClaimFormData())
        for name in CMS1500Submission.model_fields:
            assert getattr(payload, name) is not None, name

    def test_filled_form_has_every_group(self):
        payload = map_claim_form(_make_form(), signed_at=date(2024, 3, 1))
        for name in CMS1500Submission.model_fields:
            assert getattr(payload, name) is not None, name

    def test_wire_shape_uses_camel_case(self):
        """Date spans serialize their start under the literal key ``from``."""
        wire = map_claim_form(_make_form()).model_dump(mode="json", by_alias=True)
        assert wire["unableToWork"]["from"] == "2024-02-01"
        assert wire["unableToWork"]["fromFormatted"] == "20240201"
        assert wire["payer"]["memberId"] == "W123456789"
        assert "serviceLines" in wire
        assert "billingProvider" in wire


# ============================================================================
# FORMATTING
# ============================================================================


class TestFormatting:
    """Dates and tax ids are emitted in ISO and compact forms."""

    def test_compact_date(self):
        assert compact_date("2024-01-15") == "20240115"
        assert compact_date("") == ""

    def test_patient_dob_formatted(self):
        payload = map_claim_form(_make_form())
        assert payload.patient.dob == "1988-07-04"
        assert payload.patient.dob_formatted == "19880704"

    def test_federal_tax_id_stripped(self):
        payload = map_claim_form(_make_form())
        assert payload.federal_tax_id == "47-5528305"
        assert payload.federal_tax_id_formatted == "475528305"

    def test_service_line_dates_formatted(self):
        payload = map_claim_form(_make_form())
        line = payload.service_lines[0]
        assert line.date_from_formatted == "20240220"
        assert line.date_to_formatted == "20240220"

    def test_diagnosis_codes_padded_to_twelve(self):
        payload = map_claim_form(_make_form())
        assert len(payload.diagnosis_codes) == 12
        assert payload.diagnosis_codes[:3] == ["F41.1", "F32.1", ""]


# ============================================================================
# TOTALS AND SUMMARY
# ============================================================================


class TestTotals:
    """The total charge is always recomputed from the service lines."""

    def test_cached_total_is_ignored(self):
        """A stale cached total does not leak into the payload."""
        form = _make_form(
            service_lines=[_make_line(), _make_line(cpt_code="90834", charges=140.0, units=2)]
        ).model_copy(update={"total_charge": 1.0})
        payload = map_claim_form(form)
        assert payload.total_charge == 455.0
        assert payload.charge_amount == 455.0

    def test_total_rounded_to_cents(self):
        form = _make_form(service_lines=[_make_line(charges=33.333, units=3)])
        assert map_claim_form(form).total_charge == 100.0

    def test_summary_mirrors_first_line(self):
        form = _make_form(
            service_lines=[
                _make_line(modifier_1="95", modifier_3="GT"),
                _make_line(cpt_code="90834", date_from="2024-02-27"),
            ]
        )
        payload = map_claim_form(form)
        assert payload.service_date == "2024-02-20"
        assert payload.service_date_formatted == "20240220"
        assert payload.cpt_code == "90837"
        assert payload.place_of_service == "02"
        assert payload.modifiers == ["95", "GT"]


# ============================================================================
# PROVIDERS AND SIGNATURE
# ============================================================================


class TestProviders:
    """Rendering provider derivation and signature date handling."""

    def test_rendering_provider_from_first_line(self):
        form = _make_form(service_lines=[_make_line(rendering_provider_name="Dana J Whitfield")])
        rendering = map_claim_form(form).rendering_provider
        assert rendering.first_name == "Dana"
        assert rendering.last_name == "J Whitfield"
        assert rendering.npi == "1740590264"
        assert rendering.taxonomy_code == "101YM0800X"

    def test_no_lines_yields_empty_rendering_provider(self):
        payload = map_claim_form(_make_form(service_lines=[]))
        assert payload.rendering_provider.first_name == ""
        assert payload.rendering_provider.npi == ""
        assert payload.service_date == ""
        assert payload.cpt_code == ""
        assert payload.total_charge == 0.0

    def test_signature_date_absent_without_signed_at(self):
        payload = map_claim_form(_make_form())
        assert payload.signature_date == ""
        assert payload.signature_date_formatted == ""

    def test_signature_date_from_datetime(self):
        signed = datetime(2024, 3, 1, 18, 30, tzinfo=timezone.utc)
        payload = map_claim_form(_make_form(), signed_at=signed)
        assert payload.signature_date == "2024-03-01"
        assert payload.signature_date_formatted == "20240301"

    def test_mapping_is_deterministic(self):
        form = _make_form()
        assert map_claim_form(form, signed_at=date(2024, 3, 1)) == map_claim_form(
            form, signed_at=date(2024, 3, 1)
        )
