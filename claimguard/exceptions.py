"""
ClaimGuard Exceptions
======================

Only ``SecurityRejection`` ever crosses the pipeline boundary. Every
other failure mode is resolved inside the pipeline to a Manual Review
decision; the remaining types exist so collaborators and stages can
signal what went wrong before that resolution happens.
"""

from __future__ import annotations


class ClaimGuardError(Exception):
    """Base class for all ClaimGuard errors."""


class SecurityRejection(ClaimGuardError):
    """
    Input screening blocked the claim narrative.

    Raised before any external call is made. Maps to an HTTP 400 at the
    API layer; ``threats`` lists what the screener detected.
    """

    def __init__(self, threats: list[str]):
        self.threats = list(threats)
        super().__init__(
            f"Claim rejected by input screening ({len(self.threats)} threat(s)): "
            + "; ".join(self.threats)
        )


class ExternalServiceError(ClaimGuardError):
    """An embedding, retrieval, extraction or generation call failed or timed out."""

    def __init__(self, stage: str, message: str, timed_out: bool = False):
        self.stage = stage
        self.timed_out = timed_out
        super().__init__(f"{stage} failed: {message}")


class StatusDowngradeError(ClaimGuardError):
    """A stage tried to move a Manual Review decision back to an automated status."""
