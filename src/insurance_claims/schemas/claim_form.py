"""Editable CMS-1500 claim form state."""

from pydantic import Field

from .common import ApiModel

MAX_DIAGNOSIS_CODES = 12
DIAGNOSIS_POINTERS = "ABCDEFGHIJKL"


class ServiceLine(ApiModel):
    """Service line from CMS-1500 Box 24."""

    date_from: str = ""
    date_to: str = ""
    place_of_service: str = ""
    emg: str = ""
    cpt_code: str = ""
    modifier_1: str = ""
    modifier_2: str = ""
    modifier_3: str = ""
    modifier_4: str = ""
    diagnosis_pointer: str = ""
    charges: float = 0.0
    units: int = 1
    rendering_provider_npi: str = ""
    rendering_provider_name: str = ""

    @property
    def line_total(self) -> float:
        return self.charges * self.units

    def modifiers(self) -> list[str]:
        return [
            m
            for m in (self.modifier_1, self.modifier_2, self.modifier_3, self.modifier_4)
            if m
        ]


class ClaimFormData(ApiModel):
    """The full editable CMS-1500 form.

    Every field carries a concrete default; empty strings, False and 0 are
    valid values, None is not.
    """

    # Box 1, 1a
    payer_id: str = ""
    payer_name: str = ""
    payer_address1: str = ""
    payer_address2: str = ""
    payer_city: str = ""
    payer_state: str = ""
    payer_zip: str = ""
    member_id: str = ""

    # Box 2, 3, 5
    patient_last_name: str = ""
    patient_first_name: str = ""
    patient_middle_name: str = ""
    patient_dob: str = ""
    patient_sex: str = ""
    patient_address1: str = ""
    patient_address2: str = ""
    patient_city: str = ""
    patient_state: str = ""
    patient_zip: str = ""
    patient_phone: str = ""

    # Box 4, 7, 11
    insured_last_name: str = ""
    insured_first_name: str = ""
    insured_middle_name: str = ""
    insured_address1: str = ""
    insured_address2: str = ""
    insured_city: str = ""
    insured_state: str = ""
    insured_zip: str = ""
    insured_phone: str = ""
    insured_dob: str = ""
    insured_sex: str = ""
    insured_policy_group_id: str = ""
    employer_name: str = ""

    # Box 6, 9, 11c, 11d
    patient_relationship: str = ""
    other_insured_name: str = ""
    other_insured_policy_id: str = ""
    other_insured_group_number: str = ""
    insurance_plan_name: str = ""
    has_other_health_plan: bool = False

    # Box 10, 10d
    condition_employment: bool = False
    condition_auto_accident: bool = False
    condition_auto_accident_state: str = ""
    condition_other_accident: bool = False
    claim_codes: str = ""

    # Box 12, 13
    signature_on_file: bool = True

    # Box 14, 15, 16, 18
    date_of_illness: str = ""
    other_date: str = ""
    unable_to_work_from: str = ""
    unable_to_work_to: str = ""
    hospitalization_from: str = ""
    hospitalization_to: str = ""

    # Box 17
    referring_provider_name: str = ""
    referring_provider_npi: str = ""
    referring_provider_type: str = ""

    # Box 19, 20
    additional_claim_info: str = ""
    outside_lab: bool = False
    outside_lab_charges: float = 0.0

    # Box 21
    diagnosis_codes: list[str] = Field(default_factory=list, max_length=MAX_DIAGNOSIS_CODES)
    icd_indicator: str = "10"

    # Box 22, 23
    resubmission_code: str = "1"
    original_ref_number: str = ""
    prior_auth_number: str = ""

    # Box 24
    service_lines: list[ServiceLine] = []

    # Box 25, 26, 27
    federal_tax_id: str = ""
    federal_tax_id_type: str = "EIN"
    patient_account_number: str = ""
    accept_assignment: bool = True

    # Box 28, 29
    total_charge: float = 0.0
    amount_paid: float = 0.0

    # Box 32
    facility_name: str = ""
    facility_address1: str = ""
    facility_address2: str = ""
    facility_city: str = ""
    facility_state: str = ""
    facility_zip: str = ""
    facility_npi: str = ""
    facility_other_id: str = ""

    # Box 33
    billing_provider_name: str = ""
    billing_provider_address1: str = ""
    billing_provider_address2: str = ""
    billing_provider_city: str = ""
    billing_provider_state: str = ""
    billing_provider_zip: str = ""
    billing_provider_phone: str = ""
    billing_provider_npi: str = ""
    billing_provider_taxonomy: str = ""

    def computed_total(self) -> float:
        """Sum of charges x units across all service lines, rounded to cents."""
        return round(sum(line.line_total for line in self.service_lines), 2)

    def with_recomputed_total(self) -> "ClaimFormData":
        return self.model_copy(update={"total_charge": self.computed_total()})

    def patient_display_name(self) -> str:
        return f"{self.patient_first_name} {self.patient_last_name}".strip()
