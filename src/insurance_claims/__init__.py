"""Insurance claims workflow: unbilled sessions, CMS-1500 drafts, claim lifecycle and batch filing."""

from .aggregator import CandidatePool, UnbilledSessionAggregator, appointment_phase
from .batch_filing import BatchClaimInitiator, BatchClaimWorkflow, SessionSelection
from .drafts import ClaimDraftManager
from .field_mapper import map_claim_form
from .lifecycle import ALLOWED_TRANSITIONS, ClaimLifecycle
from .submission import ClaimSubmitter

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BatchClaimInitiator",
    "BatchClaimWorkflow",
    "CandidatePool",
    "ClaimDraftManager",
    "ClaimLifecycle",
    "ClaimSubmitter",
    "SessionSelection",
    "UnbilledSessionAggregator",
    "appointment_phase",
    "map_claim_form",
]
