"""Output schemas for batch claim filing."""

from pydantic import BaseModel


class BatchItemResult(BaseModel):
    """Outcome of filing a claim for one selected appointment."""

    appointment_id: str
    patient_name: str
    success: bool
    claim_id: str | None = None
    claim_number: str | None = None
    invoice_id: str | None = None
    charge_amount: float | None = None
    error: str | None = None


class BatchFilingResult(BaseModel):
    """Aggregated result of one batch filing run."""

    requested: int = 0
    precheck_failure: str | None = None
    disqualified_count: int = 0
    items: list[BatchItemResult] = []

    @property
    def aborted(self) -> bool:
        return self.precheck_failure is not None

    @property
    def succeeded(self) -> list[BatchItemResult]:
        return [item for item in self.items if item.success]

    @property
    def failed(self) -> list[BatchItemResult]:
        return [item for item in self.items if not item.success]

    def summary_message(self) -> str:
        if self.precheck_failure:
            return self.precheck_failure
        lines = [f"Successfully filed {len(self.succeeded)} claim(s)"]
        if self.failed:
            lines.append(f"Failed to file {len(self.failed)} claim(s):")
            lines.extend(f"  - {item.patient_name}: {item.error}" for item in self.failed)
        return "\n".join(lines)
