"""
ClaimGuard Test Configuration
==============================

Shared fixtures, factories, and recording fake collaborators for the
entire test suite.
"""

from __future__ import annotations

import asyncio
import os
from decimal import Decimal
from typing import Any, Optional, Sequence

import pytest

# ── Ensure test mode ────────────────────────────────────────────
os.environ.setdefault("CLAIMGUARD_OPENAI_API_KEY", "sk-test-key-for-testing")
os.environ.setdefault("CLAIMGUARD_LOG_FORMAT", "text")

from claimguard.config import ClaimGuardConfig, get_config
from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import ClaimDecision, DecisionStatus, RawDecision
from claimguard.schemas.evidence import PolicyClause
from claimguard.services.base import (
    AuditSink,
    ClauseRetriever,
    DecisionGenerator,
    DocumentExtractor,
    Embedder,
)


# ── Markers ─────────────────────────────────────────────────────

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line("markers", "integration: multi-component tests")
    config.addinivalue_line("markers", "adversarial: adversarial robustness tests")


# ── Factories ───────────────────────────────────────────────────

def make_request(
    amount: str | int | Decimal = "2000",
    description: str = "Rear-end collision at a traffic light; bumper and tail lamp replaced.",
    policy_number: str = "POL-2024-0001",
    policy_type: str = "Motor",
) -> ClaimRequest:
    """Create a ClaimRequest with sensible defaults."""
    return ClaimRequest(
        policy_number=policy_number,
        policy_type=policy_type,
        claim_amount=Decimal(str(amount)),
        claim_description=description,
    )


def make_clause(
    clause_id: str = "C-1",
    text: str = "Collision damage to the insured vehicle is covered.",
    coverage_type: str = "Collision",
    score: float = 0.9,
) -> PolicyClause:
    """Create a PolicyClause with sensible defaults."""
    return PolicyClause(clause_id=clause_id, text=text, coverage_type=coverage_type, score=score)


def make_raw_decision(
    status: DecisionStatus | str = DecisionStatus.COVERED,
    citations: Optional[list[str]] = None,
    confidence: float = 0.92,
    explanation: str = "Collision damage is covered under clause [C-1].",
    required_documents: Optional[list[str]] = None,
) -> RawDecision:
    """Create a RawDecision with sensible defaults."""
    return RawDecision(
        status=status,
        explanation=explanation,
        clause_references=["C-1"] if citations is None else citations,
        required_documents=required_documents or [],
        confidence_score=confidence,
    )


def make_decision(**kwargs: Any) -> ClaimDecision:
    """Create a ClaimDecision by wrapping ``make_raw_decision(**kwargs)``."""
    return ClaimDecision.from_raw(make_raw_decision(**kwargs))


def standard_clauses() -> list[PolicyClause]:
    """The two clauses most scenarios retrieve."""
    return [
        make_clause("C-1", "Collision damage to the insured vehicle is covered."),
        make_clause(
            "C-2",
            "Wear and tear is an exclusion and is not covered.",
            coverage_type="Exclusions",
            score=0.7,
        ),
    ]


# ── Fake collaborators ──────────────────────────────────────────

class FakeEmbedder(Embedder):
    def __init__(self, delay_s: float = 0.0, error: Optional[Exception] = None):
        self.delay_s = delay_s
        self.error = error
        self.calls: list[str] = []
        self.timeouts: list[Optional[float]] = []

    async def embed(self, text: str, *, timeout: Optional[float] = None) -> list[float]:
        self.calls.append(text)
        self.timeouts.append(timeout)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error:
            raise self.error
        return [0.1, 0.2, 0.3]


class FakeRetriever(ClauseRetriever):
    def __init__(
        self,
        clauses: Optional[Sequence[PolicyClause]] = None,
        delay_s: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.clauses = list(standard_clauses() if clauses is None else clauses)
        self.delay_s = delay_s
        self.error = error
        self.calls: list[str] = []
        self.timeouts: list[Optional[float]] = []

    async def retrieve(self, vector, policy_type, *, timeout=None) -> list[PolicyClause]:
        self.calls.append(policy_type)
        self.timeouts.append(timeout)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error:
            raise self.error
        return list(self.clauses)


class FakeGenerator(DecisionGenerator):
    def __init__(
        self,
        decision: Optional[RawDecision] = None,
        delay_s: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.decision = decision or make_raw_decision()
        self.delay_s = delay_s
        self.error = error
        self.calls = 0
        self.evidence_calls: list[list[str]] = []
        self.timeouts: list[Optional[float]] = []

    async def generate_decision(self, request, clauses, *, timeout=None) -> RawDecision:
        self.calls += 1
        self.timeouts.append(timeout)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error:
            raise self.error
        return self.decision

    async def generate_decision_with_evidence(
        self, request, clauses, supporting_texts, *, timeout=None
    ) -> RawDecision:
        self.evidence_calls.append(list(supporting_texts))
        return await self.generate_decision(request, clauses, timeout=timeout)


class FakeExtractor(DocumentExtractor):
    def __init__(self, documents: Optional[dict[str, str]] = None, error: Optional[Exception] = None):
        self.documents = dict(documents or {})
        self.error = error
        self.calls: list[str] = []

    async def extract_text(self, document_id: str, *, timeout=None) -> str:
        self.calls.append(document_id)
        if self.error:
            raise self.error
        return self.documents[document_id]


class RecordingAuditSink(AuditSink):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.persisted: list[dict[str, Any]] = []

    async def persist(self, request, decision, clauses, *, timeout=None, context=None) -> None:
        if self.error:
            raise self.error
        self.persisted.append({
            "request": request,
            "decision": decision,
            "clauses": list(clauses),
            "context": dict(context or {}),
        })


# ── Fixtures ────────────────────────────────────────────────────

@pytest.fixture
def config() -> ClaimGuardConfig:
    """Default test config."""
    return get_config()


@pytest.fixture
def clauses() -> list[PolicyClause]:
    return standard_clauses()


@pytest.fixture
def request_2000() -> ClaimRequest:
    return make_request(amount="2000")
