"""
Citation Validator
===================

Rejects decisions that are not grounded in the clauses retrieved for
the call. This is the core anti-hallucination check: a model cannot
invent a clause identifier that collides with a retrieved one unless
it copies it correctly.

Blocking errors:
    - Covered decision with no citations
    - any citation naming a clause that was never retrieved

Non-blocking warnings:
    - hedged explanation combined with an unusually high citation count
    - low confidence combined with many citations
    - hallucination indicators (uncertainty language, personal-knowledge
      claims, vague policy references with no specific clause)
    - explanation that never refers to a clause
    - Not Covered decision with no citations
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence

from claimguard.config import CitationConfig
from claimguard.schemas.decision import DecisionStatus, RawDecision
from claimguard.schemas.evidence import PolicyClause
from claimguard.schemas.validation import ValidationResult

logger = logging.getLogger("claimguard.validate.citations")

UNCERTAINTY_PHRASES = (
    "i think", "i believe", "probably", "maybe", "possibly",
    "it seems", "appears to be", "likely", "might be", "could be",
    "generally", "typically", "usually", "in most cases",
)

PERSONAL_KNOWLEDGE_PHRASES = (
    "i know that", "i understand", "in my experience",
    "i recall", "i remember", "based on my knowledge",
)

VAGUE_REFERENCES = (
    "according to the policy", "the policy states",
    "policy guidelines", "standard practice",
    "insurance regulations", "common practice",
)

SPECIFIC_CITATION_MARKERS = ("clause", "section", "[", "policy_")

CITATION_REFERENCE = re.compile(
    r"\[[^\]]+\]|clause[:\s]|section[:\s]\d+|\b\w*policy_\w+",
    re.IGNORECASE,
)


def _mentions(text: str, phrase: str) -> bool:
    return re.search(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)", text) is not None


class CitationValidator:
    """
    Checks a RawDecision's citations against the retrieved clauses.

    Usage:
        validator = CitationValidator()
        result = validator.validate(raw_decision, clauses)
        if not result.is_valid:
            ...  # force Manual Review

    Args:
        config: Citation-count and confidence heuristics.
    """

    def __init__(self, config: Optional[CitationConfig] = None):
        self.config = config or CitationConfig()

    def validate(
        self,
        decision: RawDecision,
        available_clauses: Sequence[PolicyClause],
    ) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        citations = decision.clause_references

        if decision.status == DecisionStatus.COVERED and not citations:
            errors.append(
                "'Covered' decisions must cite at least one policy clause supporting coverage."
            )

        for citation in self.missing_citations(citations, available_clauses):
            errors.append(
                f"Cited clause '{citation}' not found in retrieved policy clauses. "
                f"This may indicate hallucination."
            )

        indicators = self.detect_hallucination_indicators(decision.explanation)
        hedged = any(i.startswith("Uncertainty phrase") for i in indicators)
        many = len(citations) > self.config.max_citations

        if hedged and many:
            warnings.append(
                f"Hedged explanation with an unusually high citation count "
                f"({len(citations)}) may indicate hallucination."
            )
        if decision.confidence_score < self.config.low_confidence and many:
            warnings.append(
                f"Low confidence ({decision.confidence_score:.2f}) with many citations "
                f"({len(citations)}) may indicate over-fitting or hallucination."
            )
        warnings.extend(f"Potential hallucination indicator: {i}" for i in indicators)

        if citations and not CITATION_REFERENCE.search(decision.explanation or ""):
            warnings.append(
                "Explanation does not reference the cited policy clauses."
            )
        if decision.status == DecisionStatus.NOT_COVERED and not citations:
            warnings.append(
                "'Not Covered' decisions should cite policy exclusions or limitations for transparency."
            )

        result = ValidationResult.from_findings(
            errors=errors,
            warnings=warnings,
            warning_message="Citation quality issues detected" if warnings else None,
        )
        if not result.is_valid:
            logger.warning(f"Citation validation failed: {len(errors)} error(s)")
        elif warnings:
            logger.info(f"Citation validation passed with {len(warnings)} warning(s)")
        return result

    # ── Helpers ────────────────────────────────────────────────────

    @staticmethod
    def missing_citations(
        citations: Iterable[str],
        available_clauses: Sequence[PolicyClause],
    ) -> list[str]:
        """Citations that name no retrieved clause, in citation order."""
        available = {c.clause_id for c in available_clauses}
        return [c for c in citations if c not in available]

    def are_citations_valid(
        self,
        citations: Sequence[str],
        available_clauses: Sequence[PolicyClause],
    ) -> bool:
        """True when there is at least one citation and all of them were retrieved."""
        return bool(citations) and not self.missing_citations(citations, available_clauses)

    @staticmethod
    def detect_hallucination_indicators(explanation: Optional[str]) -> list[str]:
        """
        Language in an explanation suggesting the model reasoned beyond
        the supplied policy text.
        """
        if not explanation:
            return []

        normalized = explanation.lower()
        indicators = [
            f"Uncertainty phrase: '{p}'" for p in UNCERTAINTY_PHRASES if _mentions(normalized, p)
        ]
        indicators.extend(
            f"Personal knowledge claim: '{p}'"
            for p in PERSONAL_KNOWLEDGE_PHRASES
            if _mentions(normalized, p)
        )

        vague = any(v in normalized for v in VAGUE_REFERENCES)
        specific = any(m in normalized for m in SPECIFIC_CITATION_MARKERS)
        if vague and not specific:
            indicators.append("Vague policy reference without specific clause citation")
        return indicators
