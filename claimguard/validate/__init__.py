"""
ClaimGuard Decision Validation
===============================

Post-generation checks on a model decision.

Components:
    - citations.py:      Citation grounding against retrieved clauses
    - contradictions.py: Cross-field contradiction detection
"""
