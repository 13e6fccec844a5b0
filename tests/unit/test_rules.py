"""
Business Rule Engine Tests
===========================

Tests the routing table:
    - each rule fires on its own band
    - first match wins
    - Manual Review is never downgraded
    - applying the engine twice changes nothing
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from claimguard.config import ClaimGuardConfig, RuleConfig
from claimguard.rules.engine import (
    RULE_DEFAULT,
    RULE_EXCLUSION_CITATION,
    RULE_FAST_PATH,
    RULE_HIGH_VALUE,
    RULE_LOW_CONFIDENCE,
    RULE_MODERATE_VALUE,
    BusinessRuleEngine,
)
from claimguard.schemas.decision import DecisionStatus

from tests.conftest import make_decision, make_request


@pytest.fixture
def engine() -> BusinessRuleEngine:
    return BusinessRuleEngine()


COVERED = DecisionStatus.COVERED
NOT_COVERED = DecisionStatus.NOT_COVERED
REVIEW = DecisionStatus.MANUAL_REVIEW


class TestRuleTable:

    @pytest.mark.parametrize("status,confidence,amount,docs,citations,expected_status,expected_rule", [
        # Rule 1: low confidence
        (COVERED, 0.80, "100", True, ["C-1"], REVIEW, RULE_LOW_CONFIDENCE),
        (NOT_COVERED, 0.50, "2000", False, ["C-1"], REVIEW, RULE_LOW_CONFIDENCE),
        # Rule 2: fast path needs documents and confidence >= 0.90
        (COVERED, 0.95, "300", True, ["C-1"], COVERED, RULE_FAST_PATH),
        (COVERED, 0.90, "499.99", True, ["C-1"], COVERED, RULE_FAST_PATH),
        # Without documents, or below 0.90, falls to rule 3
        (COVERED, 0.95, "300", False, ["C-1"], COVERED, RULE_MODERATE_VALUE),
        (COVERED, 0.87, "300", True, ["C-1"], COVERED, RULE_MODERATE_VALUE),
        # Rule 3 band is exclusive at 1000
        (COVERED, 0.86, "999", False, ["C-1"], COVERED, RULE_MODERATE_VALUE),
        (COVERED, 0.86, "1000", False, ["C-1"], COVERED, RULE_DEFAULT),
        # Rule 4: high value, exclusive at 5000
        (COVERED, 0.95, "7000", False, ["C-1"], REVIEW, RULE_HIGH_VALUE),
        (COVERED, 0.95, "5000", False, ["C-1"], COVERED, RULE_DEFAULT),
        (NOT_COVERED, 0.95, "7000", False, ["C-1"], NOT_COVERED, RULE_DEFAULT),
        # Rule 5: exclusion markers in citation identifiers
        (COVERED, 0.92, "2000", False, ["EXCLUSION-4.1"], REVIEW, RULE_EXCLUSION_CITATION),
        (NOT_COVERED, 0.92, "2000", False, ["C-9-excluded"], NOT_COVERED, RULE_EXCLUSION_CITATION),
        # Rule 6: nothing fires
        (COVERED, 0.92, "2000", False, ["C-1"], COVERED, RULE_DEFAULT),
        (REVIEW, 0.92, "2000", False, ["C-1"], REVIEW, RULE_DEFAULT),
    ])
    def test_routing(self, engine, status, confidence, amount, docs, citations,
                     expected_status, expected_rule):
        decision = make_decision(status=status, confidence=confidence, citations=citations)
        routed = engine.apply(decision, make_request(amount=amount), has_supporting_documents=docs)
        assert routed.status == expected_status
        assert routed.routing_rule == expected_rule

    def test_low_confidence_rationale_and_hints(self, engine):
        decision = make_decision(confidence=0.62)
        routed = engine.apply(decision, make_request(amount="2000"))
        assert "0.62" in routed.confidence_rationale
        assert routed.missing_evidence == [
            "Additional supporting documents (receipts, reports, records)",
            "More specific policy clause citations",
            "Clearer claim description with incident details",
        ]

    def test_low_confidence_hints_with_documents_and_citations(self, engine):
        decision = make_decision(confidence=0.62, citations=["C-1", "C-2"])
        routed = engine.apply(decision, make_request(), has_supporting_documents=True)
        assert routed.missing_evidence == ["Clearer claim description with incident details"]

    def test_high_value_rationale_mentions_amount(self, engine):
        routed = engine.apply(make_decision(confidence=0.95), make_request(amount="7000"))
        assert "$7000" in routed.confidence_rationale
        assert "$5000" in routed.confidence_rationale


class TestInvariants:

    @pytest.mark.parametrize("amount", ["50", "400", "999", "1000", "2500", "5000", "5000.01", "20000"])
    @pytest.mark.parametrize("confidence", [0.0, 0.5, 0.84, 0.85, 0.9, 1.0])
    @pytest.mark.parametrize("docs", [True, False])
    def test_manual_review_never_downgraded(self, engine, amount, confidence, docs):
        decision = make_decision(status=REVIEW, confidence=confidence, citations=["EXCLUSION-1"])
        routed = engine.apply(decision, make_request(amount=amount), has_supporting_documents=docs)
        assert routed.status == REVIEW

    @pytest.mark.parametrize("amount", ["100", "999", "2000", "7000"])
    @pytest.mark.parametrize("status", [COVERED, NOT_COVERED, REVIEW])
    @pytest.mark.parametrize("confidence", [0.5, 0.88, 0.95])
    def test_idempotent(self, engine, amount, status, confidence):
        decision = make_decision(status=status, confidence=confidence)
        request = make_request(amount=amount)
        once = engine.apply(decision, request, has_supporting_documents=True)
        twice = engine.apply(once, request, has_supporting_documents=True)
        assert twice == once

    def test_high_value_covered_always_reviewed(self, engine):
        for confidence in (0.85, 0.9, 0.99, 1.0):
            routed = engine.apply(make_decision(confidence=confidence), make_request(amount="5000.01"))
            assert routed.status == REVIEW

    def test_input_decision_not_mutated(self, engine):
        decision = make_decision(confidence=0.5)
        engine.apply(decision, make_request())
        assert decision.status == COVERED
        assert decision.routing_rule is None


class TestConfiguration:

    def test_from_config(self):
        config = ClaimGuardConfig(rules=RuleConfig(high_value_amount=Decimal("7500")))
        engine = BusinessRuleEngine.from_config(config)
        routed = engine.apply(make_decision(confidence=0.95), make_request(amount="7000"))
        assert routed.status == COVERED

    def test_custom_markers(self):
        engine = BusinessRuleEngine(exclusion_markers=("EXC",))
        routed = engine.apply(make_decision(citations=["exc-2"]), make_request(amount="2000"))
        assert routed.routing_rule == RULE_EXCLUSION_CITATION

    @pytest.mark.parametrize("kwargs", [
        {"confidence_threshold": 1.5},
        {"confidence_threshold": -0.1},
        {"fast_path_min_confidence": 2.0},
    ])
    def test_invalid_thresholds(self, kwargs):
        with pytest.raises(ValueError):
            BusinessRuleEngine(**kwargs)

    def test_policy_snapshot(self, engine):
        snapshot = engine.policy_snapshot
        assert snapshot["confidence_threshold"] == 0.85
        assert snapshot["high_value_amount"] == "5000"
        assert snapshot["exclusion_markers"] == ["exclusion", "excluded"]
        assert snapshot["policy_version"] == "v1.0"

    def test_explain(self, engine):
        assert engine.explain(make_decision()) is None
        routed = engine.apply(make_decision(confidence=0.95), make_request(amount="7000"))
        assert engine.explain(routed) == "High-value mandatory review"
