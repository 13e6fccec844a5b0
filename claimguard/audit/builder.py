"""
Audit Record Builder
=====================

Creates AuditRecords: the compliance trail proving which evidence,
model proposal and routing rule produced a claim decision.

A record contains:
    - The claim with its policy number masked and narrative redacted
    - Counts of sensitive data detected in the inbound narrative
    - Retrieved clause IDs and scores (not the clause text)
    - The final decision with rationale, routing rule and findings
    - Configuration hash and rule snapshot for reproducibility
    - Integrity hash for tamper detection

Usage:
    builder = AuditRecordBuilder()
    record = builder.build(request, decision, clauses, context={"call_id": ...})
    result = verify_audit_file("audit/claims.jsonl")
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from claimguard.schemas.audit import AuditRecord
from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import ClaimDecision
from claimguard.schemas.evidence import PolicyClause
from claimguard.security.redactor import SensitiveDataRedactor
from claimguard.utils import current_call_id
from claimguard.validate.contradictions import ContradictionDetector

logger = logging.getLogger("claimguard.audit.builder")


class AuditRecordBuilder:
    """
    Builds sealed AuditRecords from one call's inputs and outputs.

    Args:
        redactor: Masks the policy number and redacts the narrative.
    """

    def __init__(self, redactor: Optional[SensitiveDataRedactor] = None):
        self.redactor = redactor or SensitiveDataRedactor()

    def build(
        self,
        request: ClaimRequest,
        decision: ClaimDecision,
        clauses: Sequence[PolicyClause],
        context: Optional[dict[str, Any]] = None,
    ) -> AuditRecord:
        """
        Build and seal a record.

        Recognised ``context`` keys: ``call_id``, ``sensitive_data_detected``,
        ``document_ids``, ``config_hash``, ``policy``,
        ``contradiction_summary``.
        """
        context = context or {}
        detected = {
            getattr(k, "value", str(k)): int(v)
            for k, v in (context.get("sensitive_data_detected") or {}).items()
        }

        record = AuditRecord(
            claim_id=context.get("call_id") or current_call_id(),
            policy_number=self.redactor.mask_identifier(request.policy_number),
            policy_type=request.policy_type,
            claim_amount=str(request.claim_amount),
            claim_description=self.redactor.redact_for_output(request.claim_description),
            sensitive_data_detected=detected,
            document_ids=list(context.get("document_ids") or []),
            decision_status=decision.status.value,
            explanation=self.redactor.redact_for_output(decision.explanation),
            confidence_score=decision.confidence_score,
            confidence_rationale=decision.confidence_rationale,
            routing_rule=decision.routing_rule,
            clause_references=list(decision.clause_references),
            required_documents=list(decision.required_documents),
            missing_evidence=list(decision.missing_evidence),
            validation_warnings=list(decision.validation_warnings),
            contradictions=list(
                context.get("contradiction_summary")
                or ContradictionDetector.summarize(decision.contradictions)
            ),
            retrieved_clauses=[
                {"clause_id": c.clause_id, "coverage_type": c.coverage_type, "score": round(c.score, 4)}
                for c in clauses
            ],
            config_hash=context.get("config_hash", ""),
            policy=dict(context.get("policy") or {}),
        )
        record.seal()

        logger.debug(f"Audit record built: {record.claim_id} → {record.decision_status}")
        return record


def verify_audit_file(path: str | Path) -> dict[str, Any]:
    """
    Check every record in a JSONL audit file.

    Returns:
        Dict with 'valid' (bool), 'records' (count) and 'errors'
        (one message per bad line).
    """
    errors: list[str] = []
    count = 0
    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            count += 1
            try:
                record = AuditRecord.model_validate(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as e:
                errors.append(f"line {line_no}: unreadable record ({e.__class__.__name__})")
                continue
            if not record.verify_integrity():
                errors.append(
                    f"line {line_no}: integrity hash mismatch for {record.claim_id} "
                    f"(record may have been tampered with)"
                )
            if not record.config_hash:
                errors.append(f"line {line_no}: missing config hash")

    return {"valid": not errors, "records": count, "errors": errors}
