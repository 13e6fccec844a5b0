"""
Validation Result & Contradiction Schemas
==========================================

Outputs of the guardrail stages:

- ValidationResult - produced by the input screener and the citation
  validator. Errors are blocking, warnings are not.
- Contradiction    - produced by the contradiction detector. Any
  Critical finding forces Manual Review.

Both are consumed immediately within one call; contradictions are also
attached to the returned ClaimDecision and summarised in the audit record.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationResult(BaseModel):
    """
    Outcome of a blocking validation stage.

    Schema:
        {
          "is_valid": false,
          "errors": ["Cited clause 'C-99' not found in retrieved policy clauses."],
          "warnings": [],
          "warning_message": null
        }
    """
    is_valid: bool = Field(description="False if any blocking error was found")
    errors: list[str] = Field(default_factory=list, description="Blocking errors")
    warnings: list[str] = Field(default_factory=list, description="Non-blocking warnings")
    warning_message: Optional[str] = Field(default=None, description="Headline for the warnings")

    @classmethod
    def from_findings(
        cls,
        errors: list[str],
        warnings: Optional[list[str]] = None,
        warning_message: Optional[str] = None,
    ) -> "ValidationResult":
        """Build a result whose validity follows from the error list."""
        return cls(
            is_valid=not errors,
            errors=list(errors),
            warnings=list(warnings or []),
            warning_message=warning_message,
        )

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings) or bool(self.warning_message)

    def summary(self) -> str:
        """One-line status, e.g. 'Validation passed with 2 warning(s)'."""
        if self.is_valid and not self.has_warnings:
            return "Validation passed"
        if self.is_valid:
            return f"Validation passed with {len(self.warnings)} warning(s)"
        return f"Validation failed with {len(self.errors)} error(s)"

    def all_issues(self) -> list[str]:
        """Errors and warnings as prefixed strings, errors first."""
        issues = [f"ERROR: {e}" for e in self.errors]
        issues.extend(f"WARNING: {w}" for w in self.warnings)
        if self.warning_message:
            issues.append(f"WARNING: {self.warning_message}")
        return issues


class Severity(str, Enum):
    """
    Contradiction severity.

    - CRITICAL: forces Manual Review regardless of the upstream decision
    - WARNING:  attached to the result without changing status
    """
    CRITICAL = "Critical"
    WARNING = "Warning"

    @property
    def rank(self) -> int:
        return 2 if self is Severity.CRITICAL else 1


class Contradiction(BaseModel):
    """
    A conflict between two sources of information about one claim.

    Schema:
        {
          "source_a": "Decision Status (Covered)",
          "source_b": "Cited Policy Clauses",
          "description": "Claim marked as covered but every cited clause is an exclusion",
          "severity": "Critical",
          "impact": "May result in incorrect approval"
        }
    """
    model_config = ConfigDict(frozen=True)

    source_a: str = Field(description="First conflicting source")
    source_b: str = Field(description="Second conflicting source")
    description: str = Field(description="Human-readable description of the conflict")
    severity: Severity = Field(default=Severity.WARNING)
    impact: str = Field(default="", description="What the conflict means for the claim")

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def summary(self) -> str:
        return f"[{self.severity.value}] {self.description}: {self.source_a} vs {self.source_b}"
