"""Canonical CMS-1500 submission payload (the persisted claim snapshot)."""

from pydantic import Field

from .common import ApiModel


class PayerBox(ApiModel):
    """Box 1, 1a."""

    payer_id: str = ""
    payer_name: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    member_id: str = ""


class PatientBox(ApiModel):
    """Box 2, 3, 5."""

    last_name: str = ""
    first_name: str = ""
    middle_name: str = ""
    dob: str = ""
    dob_formatted: str = ""
    sex: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: str = ""


class InsuredBox(PatientBox):
    """Box 4, 7, 11."""

    policy_group_id: str = ""
    employer_name: str = ""


class OtherInsuredBox(ApiModel):
    """Box 9."""

    name: str = ""
    policy_id: str = ""
    group_number: str = ""


class ConditionBox(ApiModel):
    """Box 10."""

    employment: bool = False
    auto_accident: bool = False
    auto_accident_state: str = ""
    other_accident: bool = False


class DateSpan(ApiModel):
    """A from/to date pair, each emitted in ISO and compact form."""

    from_: str = Field(default="", alias="from")
    from_formatted: str = ""
    to: str = ""
    to_formatted: str = ""


class ReferringProviderBox(ApiModel):
    """Box 17, 17a, 17b."""

    name: str = ""
    npi: str = ""
    qualifier: str = ""


class ResubmissionBox(ApiModel):
    """Box 22."""

    code: str = "1"
    original_ref_number: str = ""


class ServiceLineEntry(ApiModel):
    """Box 24 line as submitted."""

    date_from: str = ""
    date_from_formatted: str = ""
    date_to: str = ""
    date_to_formatted: str = ""
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


class ServiceFacilityBox(ApiModel):
    """Box 32."""

    name: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    npi: str = ""
    other_id: str = ""


class BillingProviderBox(ApiModel):
    """Box 33."""

    name: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: str = ""
    npi: str = ""
    taxonomy_code: str = ""


class RenderingProvider(ApiModel):
    """Rendering provider, taken from the first service line."""

    first_name: str = ""
    last_name: str = ""
    npi: str = ""
    taxonomy_code: str = ""


class CMS1500Submission(ApiModel):
    """CMS-1500 professional claim as handed to the claims backend."""

    payer: PayerBox = PayerBox()
    patient: PatientBox = PatientBox()
    insured: InsuredBox = InsuredBox()
    patient_relationship: str = ""
    other_insured: OtherInsuredBox = OtherInsuredBox()
    condition_related_to: ConditionBox = ConditionBox()
    claim_codes: str = ""
    insurance_plan_name: str = ""
    has_other_health_plan: bool = False
    signature_on_file: bool = True
    signature_date: str = ""
    signature_date_formatted: str = ""
    date_of_illness: str = ""
    date_of_illness_formatted: str = ""
    other_date: str = ""
    other_date_formatted: str = ""
    unable_to_work: DateSpan = DateSpan()
    referring_provider: ReferringProviderBox = ReferringProviderBox()
    hospitalization: DateSpan = DateSpan()
    additional_claim_info: str = ""
    outside_lab: bool = False
    outside_lab_charges: float = 0.0
    diagnosis_codes: list[str] = []
    icd_indicator: str = "10"
    resubmission: ResubmissionBox = ResubmissionBox()
    prior_auth_number: str = ""
    service_lines: list[ServiceLineEntry] = []
    federal_tax_id: str = ""
    federal_tax_id_formatted: str = ""
    federal_tax_id_type: str = ""
    patient_account_number: str = ""
    accept_assignment: bool = True
    total_charge: float = 0.0
    amount_paid: float = 0.0
    service_facility: ServiceFacilityBox = ServiceFacilityBox()
    billing_provider: BillingProviderBox = BillingProviderBox()
    rendering_provider: RenderingProvider = RenderingProvider()

    # Summary mirrors of the first service line
    service_date: str = ""
    service_date_formatted: str = ""
    cpt_code: str = ""
    charge_amount: float = 0.0
    units: int = 1
    place_of_service: str = ""
    modifiers: list[str] = []
