"""
ClaimGuard: Guardrails for Model-Assisted Claim Decisions
==========================================================

ClaimGuard sits between a generative model's coverage decision and the
caller. No decision is routed automatically unless it is grounded in
retrieved policy clauses, free of critical contradictions and allowed
by the deterministic business rules; everything else goes to a human.

Architecture Overview:
    Claim → Screen → Retrieve → Generate → Validate → Route → Redact → Audit

Modules:
    - security:  Adversarial input screening, sensitive-data redaction
    - validate:  Citation grounding, contradiction detection
    - rules:     Deterministic business routing rules
    - services:  Collaborator contracts and reference adapters
    - audit:     Sealed audit records and sinks
    - pipeline:  End-to-end orchestrator
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
