"""
ClaimGuard Security Layer
==========================

Guards on both sides of the model call.

Components:
    - screener.py: Adversarial input screening (blocks before any external call)
    - redactor.py: PII / PHI detection and masking (applied to outbound text)
"""
