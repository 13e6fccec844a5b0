"""
Claim Request Schema
=====================

The caller-supplied claim: which policy, which category, how much,
and what happened. Immutable once created.

Data Flow:
    Caller → ClaimRequest → Screener → Pipeline → Audit
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ClaimRequest(BaseModel):
    """
    A claim submitted for validation.

    Schema:
        {
          "policy_number": "POL-2024-001",
          "policy_type": "Health",
          "claim_amount": "2000.00",
          "claim_description": "Emergency room visit after a fall ..."
        }
    """
    model_config = ConfigDict(frozen=True)

    policy_number: str = Field(description="Policy or member identifier")
    policy_type: str = Field(default="Motor", description="Policy category used to scope retrieval")
    claim_amount: Decimal = Field(gt=0, description="Claimed amount in dollars")
    claim_description: str = Field(description="Free-text claim narrative")

    @field_validator("policy_number", "policy_type")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be blank")
        return v.strip()
