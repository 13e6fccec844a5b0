"""
ClaimGuard Audit Trail
=======================

Components:
    - builder.py: Masked, sealed AuditRecord construction and file verification
    - sinks.py:   JSONL and in-memory AuditSink implementations
"""
