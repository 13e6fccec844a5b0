"""
ClaimGuard Configuration System
================================

Central configuration using Pydantic Settings. Supports:
- Environment variables (CLAIMGUARD_ prefix, ``__`` for nested fields)
- .env file loading
- YAML config file overrides

Everything that encodes claim-routing policy (confidence thresholds,
value bands, exclusion markers, contradiction severities) lives here
so product owners can tune it without touching pipeline code.

The config produces a deterministic hash that is stamped on every
audit record, so a routed decision can always be traced back to the
exact policy that produced it.

Usage:
    from claimguard.config import get_config
    cfg = get_config()                       # loads from env / .env
    cfg = get_config("configs/strict.yaml")  # loads with YAML overrides
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ── Sub-configs ────────────────────────────────────────────────────
class ScreeningConfig(BaseModel):
    """Limits for the adversarial input screener."""
    max_input_length: int = Field(default=10_000, description="Hard safety limit on any scanned input")
    max_description_length: int = Field(default=5_000, description="Max claim narrative length")
    min_description_length: int = Field(default=10, description="Narratives shorter than this get a warning")
    max_repeat_run: int = Field(default=20, description="Longest allowed run of one repeated character")
    max_special_char_ratio: float = Field(
        default=0.30, ge=0.0, le=1.0,
        description="Max share of non-alphanumeric, non-space characters"
    )
    base64_min_length: int = Field(default=100, description="Min length before base64 blobs are flagged")


class RedactionConfig(BaseModel):
    """Configuration for sensitive-data masking."""
    identifier_visible_suffix: int = Field(
        default=4, ge=0,
        description="Trailing characters left visible by mask_identifier"
    )
    postal_code_visible_prefix: int = Field(
        default=3, ge=0, le=5,
        description="Leading postal-code digits kept for regional analysis"
    )
    placeholder: str = Field(default="[REDACTED]", description="Replacement for narrative PHI values")


class CitationConfig(BaseModel):
    """Heuristics for the citation validator."""
    max_citations: int = Field(
        default=5,
        description="Citation counts above this are 'unusually high'"
    )
    low_confidence: float = Field(
        default=0.5, ge=0.0, le=1.0,
        description="Confidence below this combined with many citations is suspicious"
    )


class ContradictionConfig(BaseModel):
    """
    Severity thresholds for the contradiction detector.

    These were fixed constants in the first release; they are kept
    configurable until product owners confirm the values.
    """
    high_confidence: float = Field(
        default=0.85, ge=0.0, le=1.0,
        description="Confidence above this paired with Manual Review is a warning"
    )
    low_confidence: float = Field(
        default=0.70, ge=0.0, le=1.0,
        description="Confidence below this paired with a definitive status is a warning"
    )
    amount_tolerance: float = Field(
        default=0.10, ge=0.0,
        description="Relative tolerance when matching document amounts to the claim"
    )


class RuleConfig(BaseModel):
    """Business routing rules (first match wins)."""
    confidence_threshold: float = Field(
        default=0.85, ge=0.0, le=1.0,
        description="Decisions below this confidence go to manual review"
    )
    fast_path_max_amount: Decimal = Field(default=Decimal("500"), description="Upper bound (exclusive) for the low-value fast path")
    fast_path_min_confidence: float = Field(default=0.90, ge=0.0, le=1.0)
    moderate_max_amount: Decimal = Field(default=Decimal("1000"), description="Upper bound (exclusive) for moderate-value approval")
    high_value_amount: Decimal = Field(
        default=Decimal("5000"),
        description="Covered claims above this always require manual review"
    )
    exclusion_markers: list[str] = Field(
        default_factory=lambda: ["exclusion", "excluded"],
        description="Case-insensitive markers identifying exclusion citations"
    )
    policy_version: str = Field(default="v1.0", description="Rule table version for audit trail")


class ServiceConfig(BaseModel):
    """External collaborator settings."""
    default_timeout_s: Optional[float] = Field(
        default=30.0,
        description="Deadline applied when the caller passes none (None disables)"
    )
    top_k: int = Field(default=5, description="Clauses requested from retrieval")
    min_score: float = Field(default=0.0, description="Clauses below this relevance are dropped")
    llm_temperature: float = Field(default=0.0, description="Temperature for decision generation")
    max_output_tokens: int = Field(default=1024)


class AuditConfig(BaseModel):
    """Audit trail settings."""
    enabled: bool = Field(default=True, description="Write an audit record for every call")
    path: Path = Field(default=Path("./audit/claims.jsonl"), description="JSONL audit file")


# ── Main Config ────────────────────────────────────────────────────
class ClaimGuardConfig(BaseSettings):
    """
    Root configuration for ClaimGuard.

    Loads from environment variables (CLAIMGUARD_ prefix) and .env file.
    Can be extended with YAML overrides via `get_config(yaml_path)`.

    Example:
        export CLAIMGUARD_LOG_LEVEL=DEBUG
        export CLAIMGUARD_RULES__HIGH_VALUE_AMOUNT=7500
    """
    model_config = SettingsConfigDict(
        env_prefix="CLAIMGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # ── Top-level settings ─────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: 'json' or 'text'")

    # ── OpenAI API (reference adapters) ────────────────────────────
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini", description="Model for decision generation")
    embedding_model: str = Field(default="text-embedding-3-small", description="Model for claim embeddings")

    # ── Sub-configs ────────────────────────────────────────────────
    screening: ScreeningConfig = Field(default_factory=ScreeningConfig)
    redaction: RedactionConfig = Field(default_factory=RedactionConfig)
    citation: CitationConfig = Field(default_factory=CitationConfig)
    contradiction: ContradictionConfig = Field(default_factory=ContradictionConfig)
    rules: RuleConfig = Field(default_factory=RuleConfig)
    services: ServiceConfig = Field(default_factory=ServiceConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    def config_hash(self) -> str:
        """
        Produce a deterministic SHA-256 hash of the configuration.

        Stamped on every audit record. Two calls with the same config
        hash were routed under the same thresholds and markers.
        """
        config_dict = self.model_dump(mode="json", exclude={"openai_api_key"})
        canonical = json.dumps(config_dict, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


# ── Config Loading ─────────────────────────────────────────────────
def get_config(yaml_path: Optional[str] = None) -> ClaimGuardConfig:
    """
    Load ClaimGuard configuration.

    Priority (highest to lowest):
        1. Explicit YAML values (if a file is provided)
        2. Environment variables (CLAIMGUARD_ prefix)
        3. .env file
        4. Default values

    Args:
        yaml_path: Optional path to a YAML config file for overrides.

    Returns:
        Fully resolved ClaimGuardConfig instance.
    """
    if yaml_path:
        import yaml
        with open(yaml_path) as f:
            overrides = yaml.safe_load(f) or {}
        return ClaimGuardConfig(**overrides)
    return ClaimGuardConfig()
