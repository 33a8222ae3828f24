"""Organization constants and runtime settings for the claims workflow."""

import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "configs/config.json"


class BillingProviderConfig(BaseModel):
    """Box 33 identity of the billing organization."""

    name: str = "Legacy Family Services, Inc"
    address1: str = "11901 N MacArthur"
    address2: str = ""
    city: str = "Oklahoma City"
    state: str = "OK"
    zip: str = "73162-1852"
    phone: str = "(405) 370-4594"
    npi: str = "1902270267"
    taxonomy_code: str = "101YM0800X"


class PayerConfig(BaseModel):
    """Payer directory entry, with the claims mailing address when known."""

    id: str
    name: str
    address1: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""


class CptRate(BaseModel):
    """Procedure code with its default charge."""

    code: str
    description: str = ""
    default_rate: float


class OrganizationConfig(BaseModel):
    """Deployment-specific constants used to fill claim defaults."""

    billing_provider: BillingProviderConfig = BillingProviderConfig()
    federal_tax_id: str = "47-5528305"
    federal_tax_id_type: str = "EIN"
    rendering_provider_npi: str = "1740590264"
    default_cpt_code: str = "90837"
    default_charge: float = 175.0
    default_place_of_service: str = "02"
    default_modifier: str = "95"
    default_diagnosis_code: str = "F41.1"
    default_diagnosis_pointer: str = "A"
    default_patient_sex: str = "M"
    default_patient_city: str = "Oklahoma City"
    default_patient_state: str = "OK"
    default_relationship: str = "Self"
    default_referring_qualifier: str = "DN"
    default_payer: PayerConfig = PayerConfig(
        id="HCHHP",
        name="Healthcare Highways Health Plan",
        address1="P.O. Box 2476",
        city="Grapevine",
        state="TX",
        zip="76099",
    )
    payers: list[PayerConfig] = []
    cpt_rates: list[CptRate] = []

    def find_payer(self, payer_name: str = "", payer_id: str = "") -> PayerConfig | None:
        """Match a payer by id, then by case-insensitive name containment."""
        if payer_id:
            for payer in self.payers:
                if payer.id == payer_id:
                    return payer
        needle = payer_name.strip().lower()
        if needle:
            for payer in self.payers:
                name = payer.name.lower()
                if needle in name or name in needle:
                    return payer
        return None

    def rate_for(self, cpt_code: str) -> float:
        for rate in self.cpt_rates:
            if rate.code == cpt_code:
                return rate.default_rate
        return self.default_charge


class Settings(BaseSettings):
    """Runtime settings, read from ``CLAIMS_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(env_prefix="CLAIMS_", env_file=".env", extra="ignore")

    api_url: str = "http://localhost:4000"
    location_id: str = ""
    user_id: str = ""
    request_timeout: float = 10.0
    draft_store_path: Path = Path.home() / ".insurance-claims" / "saved_claims.json"
    refresh_interval: float = 30.0
    config_file: Path = Path(DEFAULT_CONFIG_FILE)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_organization_config(
    config_file: str | Path = DEFAULT_CONFIG_FILE,
    path_selector: str = "organization",
) -> OrganizationConfig:
    """Load the organization section of the config file.

    Falls back to built-in defaults when the file or section is missing or
    malformed.
    """
    config_path = Path(config_file)
    if not config_path.exists():
        logger.info("Config file not found: %s, using defaults", config_path)
        return OrganizationConfig()

    try:
        section = json.loads(config_path.read_text()).get(path_selector)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in config file %s: %s", config_path, e)
        return OrganizationConfig()

    if section is None:
        logger.warning("No '%s' section in %s, using defaults", path_selector, config_path)
        return OrganizationConfig()

    try:
        return OrganizationConfig.model_validate(section)
    except ValidationError as e:
        logger.error("Invalid '%s' section in %s: %s", path_selector, config_path, e)
        return OrganizationConfig()
