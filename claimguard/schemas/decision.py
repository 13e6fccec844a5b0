"""
Decision Schemas
=================

Two stages of the same decision:

1. RawDecision   - what the generative model proposed. Produced once per
                   call by the generation step; never mutated.
2. ClaimDecision - the only type returned across the pipeline boundary.
                   Built by layering guardrail findings onto a RawDecision.

Design Decisions:
    - Both models are frozen; every stage derives a new value with
      ``model_copy`` instead of mutating in place
    - ClaimDecision is append-only: lists only grow (de-duplicated) and
      the rationale only gains notes
    - Status may be escalated to Manual Review by any stage, but a
      Manual Review decision can never be moved back to an automated
      status (``with_status`` raises StatusDowngradeError)

Data Flow:
    Generator → RawDecision → ClaimDecision.from_raw → validators
              → rule engine → redaction → caller
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from claimguard.exceptions import StatusDowngradeError
from claimguard.schemas.validation import Contradiction

_STATUS_ALIASES = {
    "covered": "Covered",
    "approved": "Covered",
    "not covered": "Not Covered",
    "not_covered": "Not Covered",
    "denied": "Not Covered",
    "manual review": "Manual Review",
    "manual_review": "Manual Review",
    "needs manual review": "Manual Review",
}


class DecisionStatus(str, Enum):
    """
    Coverage decision status.

    - COVERED:       automated approval
    - NOT_COVERED:   automated denial
    - MANUAL_REVIEW: escalated to a human decision-maker (terminal for automation)
    """
    COVERED = "Covered"
    NOT_COVERED = "Not Covered"
    MANUAL_REVIEW = "Manual Review"

    @classmethod
    def coerce(cls, value: Any) -> "DecisionStatus":
        """Map free-form model output ('denied', 'covered', ...) to a status."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key not in _STATUS_ALIASES:
            raise ValueError(f"Unknown decision status: {value!r}")
        return cls(_STATUS_ALIASES[key])

    @property
    def is_definitive(self) -> bool:
        return self is not DecisionStatus.MANUAL_REVIEW


class RawDecision(BaseModel):
    """
    The generative model's proposed decision.

    Accepts both snake_case and the camelCase keys the generation prompt
    asks for.

    Schema:
        {
          "status": "Covered",
          "explanation": "Covered under clause [C-1] ...",
          "clauseReferences": ["C-1"],
          "requiredDocuments": ["Itemised receipt"],
          "confidenceScore": 0.92
        }
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    status: DecisionStatus = Field(description="Proposed status")
    explanation: str = Field(default="", description="Model explanation")
    clause_references: list[str] = Field(default_factory=list, description="Cited clause IDs")
    required_documents: list[str] = Field(default_factory=list, description="Requested follow-up documents")
    confidence_score: float = Field(ge=0.0, le=1.0, description="Model confidence in [0, 1]")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> DecisionStatus:
        return DecisionStatus.coerce(v)

    @field_validator("clause_references", "required_documents", mode="before")
    @classmethod
    def drop_blank_entries(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(item).strip() for item in v if str(item).strip()]
        return v


def _append_unique(existing: list, items: Iterable) -> list:
    merged = list(existing)
    for item in items:
        if item not in merged:
            merged.append(item)
    return merged


class ClaimDecision(BaseModel):
    """
    Final, explainable claim decision.

    Everything in RawDecision plus the guardrail findings. This is the
    only type returned by the pipeline.

    Schema:
        {
          "status": "Manual Review",
          "explanation": "...",
          "clause_references": ["C-1"],
          "required_documents": [],
          "confidence_score": 0.95,
          "contradictions": [...],
          "missing_evidence": [],
          "validation_warnings": [],
          "confidence_rationale": "Amount $7000 exceeds ...",
          "routing_rule": "high_value_review"
        }
    """
    model_config = ConfigDict(frozen=True)

    status: DecisionStatus
    explanation: str = ""
    clause_references: list[str] = Field(default_factory=list)
    required_documents: list[str] = Field(default_factory=list)
    confidence_score: float = Field(ge=0.0, le=1.0)
    contradictions: list[Contradiction] = Field(default_factory=list)
    missing_evidence: list[str] = Field(default_factory=list, description="Hints for what would make the decision automatable")
    validation_warnings: list[str] = Field(default_factory=list)
    confidence_rationale: str = Field(default="", description="Why the final status was reached")
    routing_rule: Optional[str] = Field(default=None, description="Business rule that routed this decision")

    @classmethod
    def from_raw(cls, raw: RawDecision) -> "ClaimDecision":
        """Wrap a model decision without changing any of its fields."""
        return cls(
            status=raw.status,
            explanation=raw.explanation,
            clause_references=list(raw.clause_references),
            required_documents=list(raw.required_documents),
            confidence_score=raw.confidence_score,
        )

    @property
    def is_manual_review(self) -> bool:
        return self.status == DecisionStatus.MANUAL_REVIEW

    @property
    def has_critical_contradiction(self) -> bool:
        return any(c.is_critical for c in self.contradictions)

    # ── Functional updates ─────────────────────────────────────────

    def with_status(self, status: DecisionStatus, note: Optional[str] = None) -> "ClaimDecision":
        """
        Return a copy with a new status.

        Raises:
            StatusDowngradeError: if this decision is already Manual Review
                and ``status`` is an automated outcome.
        """
        if self.is_manual_review and status != DecisionStatus.MANUAL_REVIEW:
            raise StatusDowngradeError(
                f"Cannot change a Manual Review decision to {status.value}"
            )
        updated = self.model_copy(update={"status": status})
        return updated.with_rationale(note) if note else updated

    def escalate(self, note: Optional[str] = None) -> "ClaimDecision":
        """Route to Manual Review, recording why."""
        return self.with_status(DecisionStatus.MANUAL_REVIEW, note)

    def with_rationale(self, note: str) -> "ClaimDecision":
        """Append a note to the rationale unless it is already recorded."""
        note = note.strip()
        if not note or note in self.confidence_rationale:
            return self
        rationale = f"{self.confidence_rationale} {note}".strip()
        return self.model_copy(update={"confidence_rationale": rationale})

    def with_contradictions(self, findings: Iterable[Contradiction]) -> "ClaimDecision":
        return self.model_copy(
            update={"contradictions": _append_unique(self.contradictions, findings)}
        )

    def with_warnings(self, warnings: Iterable[str]) -> "ClaimDecision":
        return self.model_copy(
            update={"validation_warnings": _append_unique(self.validation_warnings, warnings)}
        )

    def with_missing_evidence(self, hints: Iterable[str]) -> "ClaimDecision":
        return self.model_copy(
            update={"missing_evidence": _append_unique(self.missing_evidence, hints)}
        )
