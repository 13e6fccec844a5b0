"""
ClaimGuard Data Schemas
========================

Pydantic v2 models implementing the data contracts of the guardrail
pipeline:

1. ClaimRequest      - The caller's claim
2. PolicyClause      - Retrieved policy evidence
3. RawDecision       - Generative model output
4. ValidationResult  - Screener / citation validator output
5. Contradiction     - Cross-field conflict finding
6. ClaimDecision     - Final routed decision (the only returned type)
7. AuditRecord       - Sealed audit trail entry
"""

from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.evidence import PolicyClause
from claimguard.schemas.validation import (
    Contradiction,
    Severity,
    ValidationResult,
)
from claimguard.schemas.decision import (
    ClaimDecision,
    DecisionStatus,
    RawDecision,
)
from claimguard.schemas.audit import AuditRecord

__all__ = [
    # Claim
    "ClaimRequest",
    # Evidence
    "PolicyClause",
    # Validation
    "Contradiction",
    "Severity",
    "ValidationResult",
    # Decision
    "ClaimDecision",
    "DecisionStatus",
    "RawDecision",
    # Audit
    "AuditRecord",
]
