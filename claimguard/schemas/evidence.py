"""
Policy Clause Schema
=====================

Defines the evidence unit returned by retrieval: one policy clause with
its identifier, text, coverage category and relevance score.

Design Decisions:
    - Clauses are immutable for the lifetime of one validation call
    - Clause language is classified (exclusion vs coverage-granting)
      with plain keyword checks; the classification is shared by the
      citation, contradiction and audit stages so they never disagree
    - Retrieval scores are preserved for the audit trail only; no
      routing decision depends on them

Data Flow:
    Retriever → PolicyClause → Generator / Validators → Audit
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

EXCLUSION_TERMS = (
    "exclusion",
    "excluded",
    "not covered",
    "does not cover",
    "no coverage",
    "not eligible",
)

COVERAGE_TERMS = (
    "covered",
    "covers",
    "coverage",
    "eligible",
    "benefit",
    "reimburs",
    "payable",
)


class PolicyClause(BaseModel):
    """
    A retrieved policy clause.

    Schema:
        {
          "clause_id": "CLAUSE-3.2.1",
          "text": "Collision damage is covered up to a limit of $10,000.",
          "coverage_type": "Collision",
          "score": 0.87
        }
    """
    model_config = ConfigDict(frozen=True)

    clause_id: str = Field(description="Unique clause identifier")
    text: str = Field(description="Full clause text")
    coverage_type: str = Field(default="", description="Coverage category of the clause")
    score: float = Field(default=0.0, description="Relevance score from retrieval")

    @property
    def is_exclusion(self) -> bool:
        """True if the clause removes coverage."""
        lowered = self.text.lower()
        return any(term in lowered for term in EXCLUSION_TERMS)

    @property
    def grants_coverage(self) -> bool:
        """True if the clause grants coverage and carries no exclusion language."""
        if self.is_exclusion:
            return False
        lowered = self.text.lower()
        return any(term in lowered for term in COVERAGE_TERMS)
