"""
ClaimGuard Collaborator Services
=================================

Contracts for the external systems the pipeline consumes, plus
reference adapters.

Components:
    - base.py:           Abstract interfaces (Embedder, ClauseRetriever, ...)
    - local.py:          Offline adapters (hashing embedder, numpy index)
    - openai_backend.py: OpenAI embedding and decision generation
"""

from claimguard.services.base import (
    AuditSink,
    ClauseRetriever,
    DecisionGenerator,
    DocumentExtractor,
    Embedder,
)

__all__ = [
    "AuditSink",
    "ClauseRetriever",
    "DecisionGenerator",
    "DocumentExtractor",
    "Embedder",
]
