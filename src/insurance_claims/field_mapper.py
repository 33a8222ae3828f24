"""Deterministic mapping from the editable claim form to the CMS-1500 submission payload.

The mapper is total: every box group is present in the output even when the
form left it at its defaults. The total charge is always recomputed from the
service lines. No clock or network is consulted; the signature date comes only
from the explicit ``signed_at`` argument.
"""

from datetime import date, datetime

from .schemas import (
    MAX_DIAGNOSIS_CODES,
    BillingProviderBox,
    ClaimFormData,
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
    ServiceLine,
    ServiceLineEntry,
)


def compact_date(value: str) -> str:
    """ISO date with the separators stripped (``2024-01-15`` -> ``20240115``)."""
    return value.replace("-", "") if value else ""


def _date_span(start: str, end: str) -> DateSpan:
    return DateSpan(
        from_=start,
        from_formatted=compact_date(start),
        to=end,
        to_formatted=compact_date(end),
    )


def _padded_diagnosis_codes(codes: list[str]) -> list[str]:
    trimmed = [code.strip() for code in codes[:MAX_DIAGNOSIS_CODES]]
    return trimmed + [""] * (MAX_DIAGNOSIS_CODES - len(trimmed))


def _split_name(full_name: str) -> tuple[str, str]:
    parts = full_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _map_service_line(line: ServiceLine) -> ServiceLineEntry:
    return ServiceLineEntry(
        date_from=line.date_from,
        date_from_formatted=compact_date(line.date_from),
        date_to=line.date_to,
        date_to_formatted=compact_date(line.date_to),
        place_of_service=line.place_of_service,
        emg=line.emg,
        cpt_code=line.cpt_code,
        modifier_1=line.modifier_1,
        modifier_2=line.modifier_2,
        modifier_3=line.modifier_3,
        modifier_4=line.modifier_4,
        diagnosis_pointer=line.diagnosis_pointer,
        charges=line.charges,
        units=line.units,
        rendering_provider_npi=line.rendering_provider_npi,
        rendering_provider_name=line.rendering_provider_name,
    )


def _signature_date(signed_at: date | datetime | None) -> str:
    if signed_at is None:
        return ""
    if isinstance(signed_at, datetime):
        signed_at = signed_at.date()
    return signed_at.isoformat()


def map_claim_form(
    form: ClaimFormData, *, signed_at: date | datetime | None = None
) -> CMS1500Submission:
    """Build the canonical CMS-1500 submission payload for a claim form."""
    first_line = form.service_lines[0] if form.service_lines else None
    total_charge = form.computed_total()
    signature_date = _signature_date(signed_at)
    rendering_first, rendering_last = _split_name(
        first_line.rendering_provider_name if first_line else ""
    )

    return CMS1500Submission(
        payer=PayerBox(
            payer_id=form.payer_id,
            payer_name=form.payer_name,
            address1=form.payer_address1,
            address2=form.payer_address2,
            city=form.payer_city,
            state=form.payer_state,
            zip=form.payer_zip,
            member_id=form.member_id,
        ),
        patient=PatientBox(
            last_name=form.patient_last_name,
            first_name=form.patient_first_name,
            middle_name=form.patient_middle_name,
            dob=form.patient_dob,
            dob_formatted=compact_date(form.patient_dob),
            sex=form.patient_sex,
            address1=form.patient_address1,
            address2=form.patient_address2,
            city=form.patient_city,
            state=form.patient_state,
            zip=form.patient_zip,
            phone=form.patient_phone,
        ),
        insured=InsuredBox(
            last_name=form.insured_last_name,
            first_name=form.insured_first_name,
            middle_name=form.insured_middle_name,
            dob=form.insured_dob,
            dob_formatted=compact_date(form.insured_dob),
            sex=form.insured_sex,
            address1=form.insured_address1,
            address2=form.insured_address2,
            city=form.insured_city,
            state=form.insured_state,
            zip=form.insured_zip,
            phone=form.insured_phone,
            policy_group_id=form.insured_policy_group_id,
            employer_name=form.employer_name,
        ),
        patient_relationship=form.patient_relationship,
        other_insured=OtherInsuredBox(
            name=form.other_insured_name,
            policy_id=form.other_insured_policy_id,
            group_number=form.other_insured_group_number,
        ),
        condition_related_to=ConditionBox(
            employment=form.condition_employment,
            auto_accident=form.condition_auto_accident,
            auto_accident_state=form.condition_auto_accident_state,
            other_accident=form.condition_other_accident,
        ),
        claim_codes=form.claim_codes,
        insurance_plan_name=form.insurance_plan_name,
        has_other_health_plan=form.has_other_health_plan,
        signature_on_file=form.signature_on_file,
        signature_date=signature_date,
        signature_date_formatted=compact_date(signature_date),
        date_of_illness=form.date_of_illness,
        date_of_illness_formatted=compact_date(form.date_of_illness),
        other_date=form.other_date,
        other_date_formatted=compact_date(form.other_date),
        unable_to_work=_date_span(form.unable_to_work_from, form.unable_to_work_to),
        referring_provider=ReferringProviderBox(
            name=form.referring_provider_name,
            npi=form.referring_provider_npi,
            qualifier=form.referring_provider_type,
        ),
        hospitalization=_date_span(form.hospitalization_from, form.hospitalization_to),
        additional_claim_info=form.additional_claim_info,
        outside_lab=form.outside_lab,
        outside_lab_charges=form.outside_lab_charges,
        diagnosis_codes=_padded_diagnosis_codes(form.diagnosis_codes),
        icd_indicator=form.icd_indicator,
        resubmission=ResubmissionBox(
            code=form.resubmission_code,
            original_ref_number=form.original_ref_number,
        ),
        prior_auth_number=form.prior_auth_number,
        service_lines=[_map_service_line(line) for line in form.service_lines],
        federal_tax_id=form.federal_tax_id,
        federal_tax_id_formatted=form.federal_tax_id.replace("-", ""),
        federal_tax_id_type=form.federal_tax_id_type,
        patient_account_number=form.patient_account_number,
        accept_assignment=form.accept_assignment,
        total_charge=total_charge,
        amount_paid=form.amount_paid,
        service_facility=ServiceFacilityBox(
            name=form.facility_name,
            address1=form.facility_address1,
            address2=form.facility_address2,
            city=form.facility_city,
            state=form.facility_state,
            zip=form.facility_zip,
            npi=form.facility_npi,
            other_id=form.facility_other_id,
        ),
        billing_provider=BillingProviderBox(
            name=form.billing_provider_name,
            address1=form.billing_provider_address1,
            address2=form.billing_provider_address2,
            city=form.billing_provider_city,
            state=form.billing_provider_state,
            zip=form.billing_provider_zip,
            phone=form.billing_provider_phone,
            npi=form.billing_provider_npi,
            taxonomy_code=form.billing_provider_taxonomy,
        ),
        rendering_provider=RenderingProvider(
            first_name=rendering_first,
            last_name=rendering_last,
            npi=first_line.rendering_provider_npi if first_line else "",
            taxonomy_code=form.billing_provider_taxonomy,
        ),
        service_date=first_line.date_from if first_line else "",
        service_date_formatted=compact_date(first_line.date_from) if first_line else "",
        cpt_code=first_line.cpt_code if first_line else "",
        charge_amount=total_charge,
        units=first_line.units if first_line else 1,
        place_of_service=first_line.place_of_service if first_line else "",
        modifiers=first_line.modifiers() if first_line else [],
    )
