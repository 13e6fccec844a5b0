"""
Audit Sinks
============

Durable AuditSink implementations.

JsonlAuditSink appends one sealed record per line. The blocking file
write runs in a worker thread so it never stalls the event loop; each
call issues a single write of one complete line.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from claimguard.audit.builder import AuditRecordBuilder
from claimguard.schemas.audit import AuditRecord
from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import ClaimDecision
from claimguard.schemas.evidence import PolicyClause
from claimguard.services.base import AuditSink

logger = logging.getLogger("claimguard.audit.sinks")


class JsonlAuditSink(AuditSink):
    """
    Append-only JSON Lines audit file.

    Args:
        path: Audit file; parent directories are created on first write.
        builder: Record builder (masks and seals).
    """

    def __init__(self, path: str | Path, builder: Optional[AuditRecordBuilder] = None):
        self.path = Path(path)
        self.builder = builder or AuditRecordBuilder()

    def _append(self, record: AuditRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = record.model_dump_json() + "\n"
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)

    async def persist(
        self,
        request: ClaimRequest,
        decision: ClaimDecision,
        clauses: Sequence[PolicyClause],
        *,
        timeout: Optional[float] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        record = self.builder.build(request, decision, clauses, context=context)
        await asyncio.to_thread(self._append, record)
        logger.info(f"Audit record written: {record.claim_id} → {self.path}")


class MemoryAuditSink(AuditSink):
    """Keeps sealed records in a list (for embedding and tests)."""

    def __init__(self, builder: Optional[AuditRecordBuilder] = None):
        self.builder = builder or AuditRecordBuilder()
        self.records: list[AuditRecord] = []

    async def persist(
        self,
        request: ClaimRequest,
        decision: ClaimDecision,
        clauses: Sequence[PolicyClause],
        *,
        timeout: Optional[float] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        self.records.append(self.builder.build(request, decision, clauses, context=context))
