"""
OpenAI Reference Adapters
==========================

Embedding and decision generation through the OpenAI async client.

The generator asks for a JSON decision in a fixed shape, strips
markdown fences from the reply and validates it into a RawDecision.
Output that cannot be parsed becomes a Manual Review decision with
confidence 0; API errors propagate so the pipeline can record the
failed stage.

Data Flow:
    ClaimRequest + [PolicyClause] → prompt → chat completion → RawDecision
"""

from __future__ import annotations

import json
import logging
import re
from decimal import Decimal
from typing import Any, Optional, Sequence

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from claimguard.config import ClaimGuardConfig
from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import DecisionStatus, RawDecision
from claimguard.schemas.evidence import PolicyClause
from claimguard.security.redactor import SensitiveDataRedactor
from claimguard.services.base import DecisionGenerator, Embedder

logger = logging.getLogger("claimguard.services.openai_backend")

SYSTEM_PROMPT = """You are an insurance claims adjuster making strictly evidence-based decisions.

Rules:
1. Use ONLY the provided policy clauses. Never invent or assume policy language.
2. Every statement must cite a clause ID in square brackets, e.g. [CLAUSE-3.2].
3. Surface contradictions, missing data and ambiguities.
4. If confidence is not high or required evidence is missing, use "Manual Review".

Return ONLY valid JSON:
{
  "status": "Covered" | "Not Covered" | "Manual Review",
  "explanation": "explanation citing clauses [clause-id]",
  "clauseReferences": ["clause-id-1"],
  "requiredDocuments": ["document-1"],
  "confidenceScore": 0.0-1.0
}"""

EVIDENCE_INSTRUCTIONS = """Validate the claim against the supporting documents:
- the claimed amount should match document amounts (within 10%)
- dates and treatments should be consistent across the claim and documents
If the documents are missing, contradictory or insufficient, use "Manual Review"."""

_FENCE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


def document_guidance(amount: Decimal) -> str:
    """Documentation expectations by claim value band."""
    if amount < 500:
        return "Low-value claim: a claim form or receipt is sufficient."
    if amount < 1000:
        return "Moderate claim: require a claim form, receipts and basic incident documentation."
    if amount < 5000:
        return "Significant claim: require itemised bills and incident or medical reports."
    return "High-value claim: require official reports and multiple forms of evidence."


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text or "").strip()


def parse_decision(content: str) -> RawDecision:
    """
    Parse a model reply into a RawDecision.

    Keys are accepted in any casing ("ClauseReferences",
    "clauseReferences", "clause_references"). Unparseable replies yield
    a Manual Review decision with confidence 0.
    """
    try:
        payload = json.loads(strip_code_fences(content))
        if not isinstance(payload, dict):
            raise ValueError("Model reply is not a JSON object")
        normalized = {to_snake(str(k)): v for k, v in payload.items()}
        return RawDecision.model_validate(normalized)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Could not parse model decision: {e}")
        return RawDecision(
            status=DecisionStatus.MANUAL_REVIEW,
            explanation="Unable to parse the model response; the claim requires manual review.",
            confidence_score=0.0,
        )


class OpenAIEmbedder(Embedder):
    """
    Claim embeddings via the OpenAI embeddings API.

    Args:
        model: Embedding model name.
        api_key: OpenAI API key (falls back to OPENAI_API_KEY).
        client: Pre-built AsyncOpenAI client (tests inject a fake).
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        client: Any = None,
    ):
        self.model = model
        if client is None:
            from openai import AsyncOpenAI
            client = AsyncOpenAI(api_key=api_key)
        self._client = client

    async def embed(self, text: str, *, timeout: Optional[float] = None) -> list[float]:
        response = await self._client.embeddings.create(
            model=self.model,
            input=text,
            timeout=timeout,
        )
        return list(response.data[0].embedding)


class OpenAIDecisionGenerator(DecisionGenerator):
    """
    Decision generation via OpenAI chat completions.

    Usage:
        generator = OpenAIDecisionGenerator.from_config(cfg)
        raw = await generator.generate_decision(request, clauses, timeout=10)

    Args:
        model: Chat model name.
        api_key: OpenAI API key (falls back to OPENAI_API_KEY).
        temperature: Sampling temperature.
        max_tokens: Completion token cap.
        client: Pre-built AsyncOpenAI client (tests inject a fake).
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        client: Any = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._redactor = SensitiveDataRedactor()
        if client is None:
            from openai import AsyncOpenAI
            client = AsyncOpenAI(api_key=api_key)
        self._client = client

    @classmethod
    def from_config(cls, config: ClaimGuardConfig) -> "OpenAIDecisionGenerator":
        return cls(
            model=config.openai_model,
            api_key=config.openai_api_key,
            temperature=config.services.llm_temperature,
            max_tokens=config.services.max_output_tokens,
        )

    def build_prompt(
        self,
        request: ClaimRequest,
        clauses: Sequence[PolicyClause],
        supporting_texts: Optional[Sequence[str]] = None,
    ) -> str:
        clauses_text = "\n\n".join(f"[{c.clause_id}] {c.text}" for c in clauses)
        sections = [
            "CLAIM DETAILS:\n"
            f"Policy Number: {self._redactor.mask_identifier(request.policy_number)}\n"
            f"Policy Type: {request.policy_type}\n"
            f"Claim Amount: ${request.claim_amount:,.2f}\n"
            f"Description: {request.claim_description}",
            f"RELEVANT POLICY CLAUSES:\n{clauses_text}",
        ]
        if supporting_texts:
            documents = "\n\n---\n\n".join(
                f"SUPPORTING DOCUMENT {i}:\n{text}" for i, text in enumerate(supporting_texts, start=1)
            )
            sections.append(f"SUPPORTING DOCUMENTS:\n{documents}")
            sections.append(EVIDENCE_INSTRUCTIONS)
        else:
            sections.append(f"DOCUMENT REQUIREMENTS: {document_guidance(request.claim_amount)}")
        sections.append("Analyze this claim and return your decision as JSON.")
        return "\n\n".join(sections)

    async def _complete(self, prompt: str, timeout: Optional[float]) -> RawDecision:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
            timeout=timeout,
        )
        content = response.choices[0].message.content
        return parse_decision(content or "")

    async def generate_decision(
        self,
        request: ClaimRequest,
        clauses: Sequence[PolicyClause],
        *,
        timeout: Optional[float] = None,
    ) -> RawDecision:
        return await self._complete(self.build_prompt(request, clauses), timeout)

    async def generate_decision_with_evidence(
        self,
        request: ClaimRequest,
        clauses: Sequence[PolicyClause],
        supporting_texts: Sequence[str],
        *,
        timeout: Optional[float] = None,
    ) -> RawDecision:
        return await self._complete(self.build_prompt(request, clauses, supporting_texts), timeout)
