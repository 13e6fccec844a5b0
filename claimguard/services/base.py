"""
Collaborator Interfaces
========================

Abstract base classes for every external system the pipeline talks to.
The pipeline depends only on these contracts; concrete adapters (OpenAI,
in-memory index, JSONL audit file, ...) are swappable.

Every method is a coroutine and accepts a ``timeout`` keyword carrying
the remaining call budget in seconds (None when the caller set no
deadline). Adapters may use it to bound their own network calls; the
pipeline enforces it independently with ``asyncio.wait_for``.

Data Flow:
    narrative → Embedder → vector → ClauseRetriever → [PolicyClause]
    request + clauses (+ document text) → DecisionGenerator → RawDecision
    document_id → DocumentExtractor → text
    request + decision + clauses → AuditSink
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import ClaimDecision, RawDecision
from claimguard.schemas.evidence import PolicyClause


class Embedder(ABC):
    """Turns text into a dense vector."""

    @abstractmethod
    async def embed(self, text: str, *, timeout: Optional[float] = None) -> list[float]:
        ...


class ClauseRetriever(ABC):
    """
    Returns the policy clauses most relevant to a claim vector.

    Results are scoped to ``policy_type`` and ordered by descending
    relevance. An empty list means no evidence was found.
    """

    @abstractmethod
    async def retrieve(
        self,
        vector: Sequence[float],
        policy_type: str,
        *,
        timeout: Optional[float] = None,
    ) -> list[PolicyClause]:
        ...


class DecisionGenerator(ABC):
    """
    Proposes a coverage decision for a claim given retrieved clauses.

    Implementations must only cite identifiers of the supplied clauses;
    the citation validator rejects anything else.
    """

    @abstractmethod
    async def generate_decision(
        self,
        request: ClaimRequest,
        clauses: Sequence[PolicyClause],
        *,
        timeout: Optional[float] = None,
    ) -> RawDecision:
        ...

    async def generate_decision_with_evidence(
        self,
        request: ClaimRequest,
        clauses: Sequence[PolicyClause],
        supporting_texts: Sequence[str],
        *,
        timeout: Optional[float] = None,
    ) -> RawDecision:
        """
        Variant that also sees supporting-document text.

        Defaults to ignoring the documents; adapters that can use them
        override this.
        """
        return await self.generate_decision(request, clauses, timeout=timeout)


class DocumentExtractor(ABC):
    """Fetches the plain text of an uploaded supporting document."""

    @abstractmethod
    async def extract_text(self, document_id: str, *, timeout: Optional[float] = None) -> str:
        ...


class AuditSink(ABC):
    """
    Durable store for the audit trail.

    ``context`` carries call metadata the record builder needs (call id,
    detected sensitive-data counts, document ids, config hash, policy
    snapshot).
    """

    @abstractmethod
    async def persist(
        self,
        request: ClaimRequest,
        decision: ClaimDecision,
        clauses: Sequence[PolicyClause],
        *,
        timeout: Optional[float] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ...
