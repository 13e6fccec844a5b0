"""
Local Reference Adapters
=========================

Offline implementations of the collaborator contracts, used by the CLI
and the test suite. They need no network access and no API key.

Components:
    - HashingEmbedder:         Feature-hashing bag-of-words vectors
    - InMemoryClauseIndex:     numpy brute-force cosine similarity
    - StaticDocumentExtractor: Document text from a dict
    - FixedDecisionGenerator:  Always proposes the same RawDecision

All vectors are L2-normalized such that cosine similarity = dot product.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from pathlib import Path
from typing import Mapping, Optional, Sequence

import numpy as np

from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import RawDecision
from claimguard.schemas.evidence import PolicyClause
from claimguard.services.base import (
    ClauseRetriever,
    DecisionGenerator,
    DocumentExtractor,
    Embedder,
)
from claimguard.utils import load_jsonl

logger = logging.getLogger("claimguard.services.local")

_TOKEN = re.compile(r"[a-z0-9]+")


class HashingEmbedder(Embedder):
    """
    Deterministic bag-of-words embedder.

    Each lower-cased token is hashed (SHA-1, stable across processes)
    into one of ``dimension`` buckets with a sign bit. Texts sharing
    vocabulary get a positive cosine similarity.

    Args:
        dimension: Vector size.
    """

    def __init__(self, dimension: int = 256):
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self.dimension = dimension

    def embed_sync(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for token in _TOKEN.findall((text or "").lower()):
            digest = hashlib.sha1(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimension
            vector[bucket] += 1.0 if digest[4] & 1 else -1.0

        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0 else vector

    async def embed(self, text: str, *, timeout: Optional[float] = None) -> list[float]:
        return self.embed_sync(text).tolist()


class InMemoryClauseIndex(ClauseRetriever):
    """
    Dense clause index with brute-force cosine search.

    Usage:
        index = InMemoryClauseIndex(top_k=5)
        index.add(clause, vector, policy_type="Health")
        clauses = await index.retrieve(query_vector, "Health")

    Args:
        top_k: Maximum clauses returned per query.
        min_score: Clauses scoring below this are dropped.
    """

    def __init__(self, top_k: int = 5, min_score: float = 0.0):
        self.top_k = top_k
        self.min_score = min_score
        self._clauses: list[PolicyClause] = []
        self._policy_types: list[str] = []
        self._vectors: list[np.ndarray] = []

    def __len__(self) -> int:
        return len(self._clauses)

    def add(self, clause: PolicyClause, vector: Sequence[float], policy_type: str) -> None:
        v = np.asarray(vector, dtype=np.float32)
        norm = np.linalg.norm(v)
        self._clauses.append(clause)
        self._policy_types.append(policy_type.strip().lower())
        self._vectors.append(v / norm if norm > 0 else v)

    @classmethod
    def from_records(
        cls,
        records: Sequence[Mapping],
        embedder: HashingEmbedder,
        top_k: int = 5,
        min_score: float = 0.0,
    ) -> "InMemoryClauseIndex":
        """
        Build an index from dicts with ``clause_id``, ``text``,
        ``policy_type`` and optional ``coverage_type``.
        """
        index = cls(top_k=top_k, min_score=min_score)
        for record in records:
            clause = PolicyClause(
                clause_id=record["clause_id"],
                text=record["text"],
                coverage_type=record.get("coverage_type", ""),
            )
            index.add(clause, embedder.embed_sync(clause.text), record.get("policy_type", "Motor"))
        logger.info(f"Built in-memory clause index: {len(index)} clauses")
        return index

    @classmethod
    def from_jsonl(
        cls,
        path: str | Path,
        embedder: HashingEmbedder,
        top_k: int = 5,
        min_score: float = 0.0,
    ) -> "InMemoryClauseIndex":
        return cls.from_records(load_jsonl(path), embedder, top_k=top_k, min_score=min_score)

    def query(self, vector: Sequence[float], policy_type: str) -> list[PolicyClause]:
        wanted = policy_type.strip().lower()
        rows = [i for i, pt in enumerate(self._policy_types) if pt == wanted]
        if not rows:
            return []

        q = np.asarray(vector, dtype=np.float32)
        norm = np.linalg.norm(q)
        if norm == 0:
            return []
        q = q / norm

        matrix = np.stack([self._vectors[i] for i in rows])
        scores = matrix @ q
        order = np.argsort(scores)[::-1][: self.top_k]

        return [
            self._clauses[rows[i]].model_copy(update={"score": float(scores[i])})
            for i in order
            if scores[i] >= self.min_score
        ]

    async def retrieve(
        self,
        vector: Sequence[float],
        policy_type: str,
        *,
        timeout: Optional[float] = None,
    ) -> list[PolicyClause]:
        return self.query(vector, policy_type)


class StaticDocumentExtractor(DocumentExtractor):
    """Serves document text from a mapping of document ID → text."""

    def __init__(self, documents: Optional[Mapping[str, str]] = None):
        self.documents = dict(documents or {})

    async def extract_text(self, document_id: str, *, timeout: Optional[float] = None) -> str:
        if document_id not in self.documents:
            raise KeyError(f"Unknown document: {document_id}")
        return self.documents[document_id]


class FixedDecisionGenerator(DecisionGenerator):
    """
    Proposes a preconfigured decision regardless of input.

    Args:
        decision: The RawDecision to return.
        delay_s: Optional artificial latency (for deadline testing).
    """

    def __init__(self, decision: RawDecision, delay_s: float = 0.0):
        self.decision = decision
        self.delay_s = delay_s
        self.calls = 0

    async def generate_decision(
        self,
        request: ClaimRequest,
        clauses: Sequence[PolicyClause],
        *,
        timeout: Optional[float] = None,
    ) -> RawDecision:
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        return self.decision
