"""
Business Rule Engine
=====================

The DETERMINISTIC routing layer. Maps a validated decision, the claim
amount and the presence of supporting documents to the final status.

Rule table (first match wins):
    1. confidence < τ_conf                               → Manual Review
    2. amount < fast_path AND confidence ≥ τ_fast
       AND Covered AND documents supplied                → Covered (fast path)
    3. amount < moderate AND confidence ≥ τ_conf
       AND Covered                                       → Covered
    4. amount > high_value AND Covered                   → Manual Review
    5. any citation carries an exclusion marker          → Covered becomes
                                                           Manual Review,
                                                           other statuses kept
    6. otherwise                                         → unchanged

INVARIANTS:
    - The engine never moves a Manual Review decision to an automated status
    - The fired rule is recorded on the decision (``routing_rule``)
    - A decision that already carries a routing rule is returned as-is,
      so apply(apply(d)) == apply(d)

This module contains NO model calls, NO I/O, NO randomness.

Data Flow:
    ClaimDecision + ClaimRequest + has_supporting_documents → ClaimDecision
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional, Sequence

from claimguard.config import ClaimGuardConfig, RuleConfig
from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import ClaimDecision, DecisionStatus

logger = logging.getLogger("claimguard.rules.engine")

RULE_LOW_CONFIDENCE = "low_confidence_review"
RULE_FAST_PATH = "low_value_fast_path"
RULE_MODERATE_VALUE = "moderate_value_approval"
RULE_HIGH_VALUE = "high_value_review"
RULE_EXCLUSION_CITATION = "exclusion_citation_review"
RULE_DEFAULT = "default"


class BusinessRuleEngine:
    """
    Deterministic claim routing.

    Usage:
        engine = BusinessRuleEngine.from_config(cfg)
        final = engine.apply(decision, request, has_supporting_documents=False)

    Args:
        confidence_threshold: Decisions below this go to manual review.
        fast_path_max_amount: Exclusive upper bound for the fast path.
        fast_path_min_confidence: Minimum confidence for the fast path.
        moderate_max_amount: Exclusive upper bound for moderate approval.
        high_value_amount: Covered claims above this always need review.
        exclusion_markers: Case-insensitive citation markers for exclusions.
        policy_version: Version string for the audit trail.
    """

    def __init__(
        self,
        confidence_threshold: float = 0.85,
        fast_path_max_amount: Decimal = Decimal("500"),
        fast_path_min_confidence: float = 0.90,
        moderate_max_amount: Decimal = Decimal("1000"),
        high_value_amount: Decimal = Decimal("5000"),
        exclusion_markers: Sequence[str] = ("exclusion", "excluded"),
        policy_version: str = "v1.0",
    ):
        if not 0.0 <= confidence_threshold <= 1.0:
            raise ValueError(f"confidence_threshold must be in [0,1], got {confidence_threshold}")
        if not 0.0 <= fast_path_min_confidence <= 1.0:
            raise ValueError(f"fast_path_min_confidence must be in [0,1], got {fast_path_min_confidence}")

        self.confidence_threshold = confidence_threshold
        self.fast_path_max_amount = Decimal(fast_path_max_amount)
        self.fast_path_min_confidence = fast_path_min_confidence
        self.moderate_max_amount = Decimal(moderate_max_amount)
        self.high_value_amount = Decimal(high_value_amount)
        self.exclusion_markers = tuple(m.lower() for m in exclusion_markers)
        self.policy_version = policy_version

    @classmethod
    def from_rule_config(cls, rules: RuleConfig) -> "BusinessRuleEngine":
        return cls(
            confidence_threshold=rules.confidence_threshold,
            fast_path_max_amount=rules.fast_path_max_amount,
            fast_path_min_confidence=rules.fast_path_min_confidence,
            moderate_max_amount=rules.moderate_max_amount,
            high_value_amount=rules.high_value_amount,
            exclusion_markers=rules.exclusion_markers,
            policy_version=rules.policy_version,
        )

    @classmethod
    def from_config(cls, config: ClaimGuardConfig) -> "BusinessRuleEngine":
        """Create an engine from ClaimGuard config."""
        return cls.from_rule_config(config.rules)

    @property
    def policy_snapshot(self) -> dict[str, Any]:
        """Thresholds in force, for the audit trail."""
        return {
            "confidence_threshold": self.confidence_threshold,
            "fast_path_max_amount": str(self.fast_path_max_amount),
            "fast_path_min_confidence": self.fast_path_min_confidence,
            "moderate_max_amount": str(self.moderate_max_amount),
            "high_value_amount": str(self.high_value_amount),
            "exclusion_markers": list(self.exclusion_markers),
            "policy_version": self.policy_version,
        }

    def cites_exclusion(self, decision: ClaimDecision) -> bool:
        return any(
            marker in ref.lower()
            for ref in decision.clause_references
            for marker in self.exclusion_markers
        )

    def apply(
        self,
        decision: ClaimDecision,
        request: ClaimRequest,
        has_supporting_documents: bool = False,
    ) -> ClaimDecision:
        """
        Route one decision.

        Args:
            decision: Decision after citation and contradiction checks.
            request: The claim (for its amount).
            has_supporting_documents: Whether document text was supplied.

        Returns:
            Decision with final status, rationale and ``routing_rule``.
        """
        if decision.routing_rule is not None:
            return decision

        routed = self._route(decision, request, has_supporting_documents)
        logger.info(
            f"Routing rule '{routed.routing_rule}' → {routed.status.value} "
            f"(amount={request.claim_amount}, confidence={decision.confidence_score:.2f})"
        )
        return routed

    def _route(
        self,
        decision: ClaimDecision,
        request: ClaimRequest,
        has_documents: bool,
    ) -> ClaimDecision:
        amount = request.claim_amount
        confidence = decision.confidence_score
        covered = decision.status == DecisionStatus.COVERED

        # Rule 1: below the automation threshold
        if confidence < self.confidence_threshold:
            hints = []
            if not has_documents:
                hints.append("Additional supporting documents (receipts, reports, records)")
            if len(decision.clause_references) < 2:
                hints.append("More specific policy clause citations")
            hints.append("Clearer claim description with incident details")
            routed = decision.escalate(
                f"Confidence {confidence:.2f} is below the automation threshold "
                f"of {self.confidence_threshold:.2f}."
            ).with_missing_evidence(hints)
            return routed.model_copy(update={"routing_rule": RULE_LOW_CONFIDENCE})

        # Rule 2: low-value fast path
        if (
            amount < self.fast_path_max_amount
            and confidence >= self.fast_path_min_confidence
            and covered
            and has_documents
        ):
            routed = decision.with_rationale(
                f"Low-value claim under ${self.fast_path_max_amount} with high confidence "
                f"and supporting documents: fast-path approval."
            )
            return routed.model_copy(update={"routing_rule": RULE_FAST_PATH})

        # Rule 3: moderate-value approval
        if amount < self.moderate_max_amount and covered:
            routed = decision.with_rationale(
                f"Claim under ${self.moderate_max_amount} with confidence "
                f"{confidence:.2f}: approved."
            )
            return routed.model_copy(update={"routing_rule": RULE_MODERATE_VALUE})

        # Rule 4: high-value mandatory review
        if amount > self.high_value_amount and covered:
            routed = decision.escalate(
                f"Amount ${amount} exceeds ${self.high_value_amount}: "
                f"high-value claims require manual review."
            )
            return routed.model_copy(update={"routing_rule": RULE_HIGH_VALUE})

        # Rule 5: exclusion cited
        if self.cites_exclusion(decision):
            if covered:
                routed = decision.escalate(
                    "Exclusion clause cited on a covered decision: ambiguous policy "
                    "application requires manual review."
                )
            else:
                routed = decision.with_rationale("Exclusion clause cited.")
            return routed.model_copy(update={"routing_rule": RULE_EXCLUSION_CITATION})

        # Rule 6: default
        return decision.model_copy(update={"routing_rule": RULE_DEFAULT})

    def explain(self, decision: ClaimDecision) -> Optional[str]:
        """Human-readable name of the rule that routed ``decision``."""
        names = {
            RULE_LOW_CONFIDENCE: "Below confidence threshold",
            RULE_FAST_PATH: "Low-value fast path",
            RULE_MODERATE_VALUE: "Moderate-value approval",
            RULE_HIGH_VALUE: "High-value mandatory review",
            RULE_EXCLUSION_CITATION: "Exclusion clause cited",
            RULE_DEFAULT: "No rule applied",
        }
        return names.get(decision.routing_rule) if decision.routing_rule else None
