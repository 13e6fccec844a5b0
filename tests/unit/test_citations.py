"""
Citation Validator Tests
=========================

Citations must name retrieved clauses; Covered decisions must cite
something; explanation language that signals reasoning beyond the
policy text is flagged without blocking.
"""

from __future__ import annotations

import pytest

from claimguard.config import CitationConfig
from claimguard.schemas.decision import DecisionStatus
from claimguard.validate.citations import CitationValidator

from tests.conftest import make_clause, make_raw_decision, standard_clauses


@pytest.fixture
def validator() -> CitationValidator:
    return CitationValidator()


class TestBlockingErrors:

    def test_grounded_decision_passes_cleanly(self, validator):
        result = validator.validate(make_raw_decision(), standard_clauses())
        assert result.is_valid
        assert result.warnings == []
        assert result.warning_message is None

    def test_covered_without_citations(self, validator):
        raw = make_raw_decision(citations=[], explanation="Collision damage is covered.")
        result = validator.validate(raw, standard_clauses())
        assert not result.is_valid
        assert result.errors == [
            "'Covered' decisions must cite at least one policy clause supporting coverage."
        ]

    def test_hallucinated_citation(self, validator):
        raw = make_raw_decision(citations=["C-1", "C-99"], explanation="Covered per [C-1] and [C-99].")
        result = validator.validate(raw, standard_clauses())
        assert not result.is_valid
        assert result.errors == [
            "Cited clause 'C-99' not found in retrieved policy clauses. "
            "This may indicate hallucination."
        ]

    def test_citation_against_empty_retrieval(self, validator):
        result = validator.validate(make_raw_decision(), [])
        assert not result.is_valid

    def test_manual_review_without_citations_is_valid(self, validator):
        raw = make_raw_decision(status=DecisionStatus.MANUAL_REVIEW, citations=[], explanation="Unclear.")
        assert validator.validate(raw, standard_clauses()).is_valid


class TestWarnings:

    def test_not_covered_without_citations_warns(self, validator):
        raw = make_raw_decision(status="Not Covered", citations=[], explanation="Outside policy scope.")
        result = validator.validate(raw, standard_clauses())
        assert result.is_valid
        assert any(w.startswith("'Not Covered' decisions should cite") for w in result.warnings)
        assert result.warning_message == "Citation quality issues detected"

    def test_explanation_without_clause_reference(self, validator):
        raw = make_raw_decision(explanation="Damage to the vehicle is covered.")
        result = validator.validate(raw, standard_clauses())
        assert "Explanation does not reference the cited policy clauses." in result.warnings

    @pytest.mark.parametrize("explanation", [
        "Covered under clause C-1.",
        "See section 4 of the wording.",
        "Covered per [C-1].",
        "Matches policy_motor_12 wording.",
    ])
    def test_clause_reference_forms(self, validator, explanation):
        result = validator.validate(make_raw_decision(explanation=explanation), standard_clauses())
        assert "Explanation does not reference the cited policy clauses." not in result.warnings

    def test_many_citations_with_hedging_and_low_confidence(self, validator):
        clauses = [make_clause(f"C-{i}") for i in range(1, 8)]
        raw = make_raw_decision(
            citations=[c.clause_id for c in clauses],
            confidence=0.4,
            explanation="This is possibly covered under [C-1].",
        )
        result = validator.validate(raw, clauses)
        assert result.is_valid
        assert any(w.startswith("Hedged explanation with an unusually high citation count (7)") for w in result.warnings)
        assert any(w.startswith("Low confidence (0.40) with many citations (7)") for w in result.warnings)
        assert "Potential hallucination indicator: Uncertainty phrase: 'possibly'" in result.warnings

    def test_citation_limit_configurable(self):
        validator = CitationValidator(CitationConfig(max_citations=1))
        clauses = standard_clauses()
        raw = make_raw_decision(citations=["C-1", "C-2"], confidence=0.3, explanation="Per [C-1] and [C-2].")
        result = validator.validate(raw, clauses)
        assert any(w.startswith("Low confidence (0.30)") for w in result.warnings)


class TestHallucinationIndicators:

    def test_uncertainty_and_personal_knowledge(self):
        indicators = CitationValidator.detect_hallucination_indicators(
            "I believe this is covered; in my experience such repairs are paid."
        )
        assert "Uncertainty phrase: 'i believe'" in indicators
        assert "Personal knowledge claim: 'in my experience'" in indicators

    def test_whole_word_matching(self):
        assert CitationValidator.detect_hallucination_indicators(
            "Coverage is unlikely to be disputed under [C-1]."
        ) == []

    def test_vague_reference_without_specific_citation(self):
        assert CitationValidator.detect_hallucination_indicators(
            "According to the policy this is payable."
        ) == ["Vague policy reference without specific clause citation"]

    def test_vague_reference_with_specific_citation(self):
        assert CitationValidator.detect_hallucination_indicators(
            "According to the policy, clause C-1 makes this payable."
        ) == []

    def test_empty_explanation(self):
        assert CitationValidator.detect_hallucination_indicators("") == []
        assert CitationValidator.detect_hallucination_indicators(None) == []


class TestHelpers:

    def test_missing_citations_preserves_order(self):
        assert CitationValidator.missing_citations(["X", "C-1", "Y"], standard_clauses()) == ["X", "Y"]

    def test_are_citations_valid(self, validator):
        clauses = standard_clauses()
        assert validator.are_citations_valid(["C-1", "C-2"], clauses)
        assert not validator.are_citations_valid([], clauses)
        assert not validator.are_citations_valid(["C-1", "C-9"], clauses)
