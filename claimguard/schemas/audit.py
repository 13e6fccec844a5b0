"""
Audit Record Schema
====================

The AuditRecord is the complete, compliance-grade trail for a single
validation call. It is handed to an audit sink and never retained by
the pipeline afterwards.

Design Philosophy:
    The record must let an auditor answer "why was this claim routed
    this way?" without access to the live system:
    - What was claimed (masked policy number, redacted narrative)
    - What evidence was retrieved (clause IDs + scores)
    - What the model proposed and what the guardrails changed
    - Which policy configuration was in force (config hash)

    The record carries an integrity hash computed over its content
    (excluding the hash field itself), enabling tamper detection.

Data Flow:
    ClaimRequest + ClaimDecision + PolicyClauses → AuditRecord → AuditSink
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field

from claimguard.utils import compute_content_hash


class AuditRecord(BaseModel):
    """
    Durable audit entry for one validation call.

    Schema:
        {
          "claim_id": "claim-20250209-143022-a1b2c3d4",
          "timestamp": "2025-02-09T14:30:22Z",
          "policy_number": "****0001",
          "claim_amount": "2000.00",
          "decision_status": "Covered",
          "retrieved_clauses": [{"clause_id": "C-1", "score": 0.91}],
          "integrity_hash": "..."
        }
    """
    # ── Claim ──────────────────────────────────────────────────────
    claim_id: str = Field(description="Call ID of the validation run")
    timestamp: str = Field(
        default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        description="ISO 8601 timestamp"
    )
    policy_number: str = Field(description="Masked policy number")
    policy_type: str = Field(default="")
    claim_amount: str = Field(description="Claimed amount as a decimal string")
    claim_description: str = Field(description="Redacted claim narrative")
    sensitive_data_detected: dict[str, int] = Field(
        default_factory=dict,
        description="Sensitive-data category → count found in the inbound narrative"
    )
    document_ids: list[str] = Field(default_factory=list, description="Supporting documents used")

    # ── Decision ───────────────────────────────────────────────────
    decision_status: str
    explanation: str = ""
    confidence_score: float = 0.0
    confidence_rationale: str = ""
    routing_rule: str | None = None
    clause_references: list[str] = Field(default_factory=list)
    required_documents: list[str] = Field(default_factory=list)
    missing_evidence: list[str] = Field(default_factory=list)
    validation_warnings: list[str] = Field(default_factory=list)
    contradictions: list[str] = Field(default_factory=list, description="Contradiction summaries")

    # ── Evidence ───────────────────────────────────────────────────
    retrieved_clauses: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Retrieved clause IDs with relevance scores"
    )

    # ── Provenance ─────────────────────────────────────────────────
    config_hash: str = Field(default="", description="Hash of the configuration in force")
    policy: dict[str, Any] = Field(default_factory=dict, description="Rule table snapshot")

    # ── Integrity ──────────────────────────────────────────────────
    integrity_hash: str = Field(default="", description="SHA-256 of record content (tamper detection)")

    def compute_integrity_hash(self) -> str:
        """SHA-256 over all record content except the hash field itself."""
        content = self.model_dump(mode="json", exclude={"integrity_hash"})
        return compute_content_hash(content)

    def seal(self) -> "AuditRecord":
        """
        Compute and store the integrity hash.

        Call this after all fields are populated.
        """
        self.integrity_hash = self.compute_integrity_hash()
        return self

    def verify_integrity(self) -> bool:
        """True if the stored hash matches the content."""
        if not self.integrity_hash:
            return False
        return self.integrity_hash == self.compute_integrity_hash()
