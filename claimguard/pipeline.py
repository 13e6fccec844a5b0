"""
ClaimGuard End-to-End Pipeline
===============================

Orchestrates one claim validation call:
    Screen → Retrieve → (Extract) → Generate → Citation check
           → Contradiction check → Business rules → Redact → Audit

This is the single entry point for validating a claim. It owns stage
ordering, timing, deadline propagation and failure resolution.

Failure model:
    - Screening failure raises SecurityRejection before any external call
    - Embedding, retrieval, extraction or generation failure (or timeout)
      resolves to Manual Review with a rationale naming the stage
    - No retrieved clauses resolves to Manual Review without calling
      the generator
    - Audit write failure is logged; the decision is unchanged
    - Task cancellation is never caught

Usage:
    from claimguard.pipeline import ClaimValidationPipeline

    pipeline = ClaimValidationPipeline(embedder, retriever, generator, audit_sink=sink)
    decision = await pipeline.validate_claim(request)
    result = await pipeline.run(request, timeout=20)   # full trace
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from claimguard.config import ClaimGuardConfig
from claimguard.exceptions import ExternalServiceError, SecurityRejection
from claimguard.rules.engine import BusinessRuleEngine
from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import ClaimDecision, DecisionStatus, RawDecision
from claimguard.schemas.evidence import PolicyClause
from claimguard.schemas.validation import ValidationResult
from claimguard.security.redactor import SensitiveDataRedactor
from claimguard.security.screener import InputScreener
from claimguard.services.base import (
    AuditSink,
    ClauseRetriever,
    DecisionGenerator,
    DocumentExtractor,
    Embedder,
)
from claimguard.utils import call_context, generate_call_id
from claimguard.validate.citations import CitationValidator
from claimguard.validate.contradictions import ContradictionDetector

logger = logging.getLogger("claimguard.pipeline")

T = TypeVar("T")

NO_EVIDENCE_DOCUMENTS = ["Policy Document", "Claim Evidence"]


class PipelineStage(str, Enum):
    SCREENING = "screening"
    RETRIEVING = "retrieving"
    EXTRACTING = "extracting"
    GENERATING = "generating"
    CITATION_CHECK = "citation_check"
    CONTRADICTION_CHECK = "contradiction_check"
    RULE_APPLICATION = "rule_application"
    REDACTING = "redacting"
    AUDITING = "auditing"
    DONE = "done"
    REJECTED = "rejected"


@dataclass
class PipelineResult:
    """
    Complete output of one validation call.

    Contains everything needed for display, debugging, and auditing.
    """
    decision: ClaimDecision
    clauses: list[PolicyClause]
    stages: list[PipelineStage]
    call_id: str
    citation_result: Optional[ValidationResult] = None
    supporting_texts: list[str] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def status(self) -> DecisionStatus:
        return self.decision.status

    @property
    def generation_called(self) -> bool:
        return PipelineStage.GENERATING in self.stages


@dataclass
class _CallTrace:
    """What one call collected on its way to a decision."""
    stages: list[PipelineStage]
    timings: dict[str, float]
    clauses: list[PolicyClause] = field(default_factory=list)
    citation_result: Optional[ValidationResult] = None
    supporting_texts: list[str] = field(default_factory=list)


class _Deadline:
    """Absolute deadline on the running loop's clock."""

    def __init__(self, timeout: Optional[float]):
        loop = asyncio.get_running_loop()
        self._clock = loop.time
        self.expires_at = None if timeout is None else loop.time() + timeout

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return self.expires_at - self._clock()


class ClaimValidationPipeline:
    """
    Claim validation orchestrator.

    Collaborators are injected; guardrail components are built from
    config unless supplied.

    Args:
        embedder: Narrative embedding service.
        retriever: Policy clause retrieval service.
        generator: Decision generation service.
        audit_sink: Durable audit store (None disables auditing).
        extractor: Supporting-document text service (evidence variant).
        config: ClaimGuard configuration.
    """

    def __init__(
        self,
        embedder: Embedder,
        retriever: ClauseRetriever,
        generator: DecisionGenerator,
        audit_sink: Optional[AuditSink] = None,
        extractor: Optional[DocumentExtractor] = None,
        config: Optional[ClaimGuardConfig] = None,
        screener: Optional[InputScreener] = None,
        redactor: Optional[SensitiveDataRedactor] = None,
        citation_validator: Optional[CitationValidator] = None,
        contradiction_detector: Optional[ContradictionDetector] = None,
        rule_engine: Optional[BusinessRuleEngine] = None,
    ):
        self.config = config or ClaimGuardConfig()
        self.embedder = embedder
        self.retriever = retriever
        self.generator = generator
        self.audit_sink = audit_sink
        self.extractor = extractor

        self.screener = screener or InputScreener(self.config.screening)
        self.redactor = redactor or SensitiveDataRedactor(self.config.redaction)
        self.citation_validator = citation_validator or CitationValidator(self.config.citation)
        self.contradiction_detector = contradiction_detector or ContradictionDetector(
            self.config.contradiction
        )
        self.rule_engine = rule_engine or BusinessRuleEngine.from_config(self.config)
        self._config_hash = self.config.config_hash()

    # ── Public API ─────────────────────────────────────────────────

    async def validate_claim(
        self, request: ClaimRequest, timeout: Optional[float] = None
    ) -> ClaimDecision:
        """
        Validate a claim and return the routed decision.

        Raises:
            SecurityRejection: the narrative failed input screening.
        """
        result = await self.run(request, timeout=timeout)
        return result.decision

    async def validate_claim_with_evidence(
        self,
        request: ClaimRequest,
        document_ids: Sequence[str],
        timeout: Optional[float] = None,
    ) -> ClaimDecision:
        """Validate a claim together with its supporting documents."""
        result = await self.run(request, document_ids=document_ids, timeout=timeout)
        return result.decision

    async def run(
        self,
        request: ClaimRequest,
        document_ids: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        call_id: Optional[str] = None,
    ) -> PipelineResult:
        """
        Run the full pipeline on one claim.

        Args:
            request: The claim.
            document_ids: Supporting documents; enables the evidence variant.
            timeout: Overall deadline in seconds (defaults to config).
            call_id: Correlation ID (generated if omitted).

        Returns:
            PipelineResult with decision, clauses, stage trail and timings.

        Raises:
            SecurityRejection: the narrative failed input screening.
            ValueError: document IDs were given but no extractor is configured.
        """
        if document_ids is not None and self.extractor is None:
            raise ValueError("document_ids supplied but no DocumentExtractor is configured")

        call_id = call_id or generate_call_id()
        with call_context(call_id):
            return await self._run(request, document_ids, timeout, call_id)

    # ── Orchestration ──────────────────────────────────────────────

    async def _run(
        self,
        request: ClaimRequest,
        document_ids: Optional[Sequence[str]],
        timeout: Optional[float],
        call_id: str,
    ) -> PipelineResult:
        timings: dict[str, float] = {}
        stages: list[PipelineStage] = []
        total_start = time.time()

        # ── Step 1: Screen ─────────────────────────────────────────
        stages.append(PipelineStage.SCREENING)
        t0 = time.time()
        screening = self.screener.screen(request.claim_description)
        detected = self.redactor.detect_types(request.claim_description)
        timings["screening_ms"] = (time.time() - t0) * 1000

        if not screening.is_valid:
            stages.append(PipelineStage.REJECTED)
            logger.warning(f"Claim rejected at screening: {len(screening.errors)} issue(s)")
            raise SecurityRejection(screening.errors)

        if detected:
            categories = ", ".join(f"{k.value}={v}" for k, v in detected.items())
            logger.warning(f"Sensitive data detected in claim narrative: {categories}")

        if timeout is None:
            timeout = self.config.services.default_timeout_s
        deadline = _Deadline(timeout)
        trace = _CallTrace(stages=stages, timings=timings)
        decision = await self._decide(request, document_ids, deadline, screening, trace)

        # ── Redact ─────────────────────────────────────────────────
        stages.append(PipelineStage.REDACTING)
        t0 = time.time()
        decision = decision.model_copy(
            update={"explanation": self.redactor.redact_for_output(decision.explanation)}
        )
        timings["redacting_ms"] = (time.time() - t0) * 1000

        # ── Audit ──────────────────────────────────────────────────
        if self.audit_sink is not None and self.config.audit.enabled:
            stages.append(PipelineStage.AUDITING)
            t0 = time.time()
            await self._audit(request, decision, trace.clauses, {
                "call_id": call_id,
                "sensitive_data_detected": detected,
                "document_ids": list(document_ids or []),
                "config_hash": self._config_hash,
                "policy": self.rule_engine.policy_snapshot,
                "contradiction_summary": self.contradiction_detector.summarize(
                    decision.contradictions
                ),
            })
            timings["auditing_ms"] = (time.time() - t0) * 1000

        stages.append(PipelineStage.DONE)
        timings["total_ms"] = (time.time() - total_start) * 1000
        logger.info(
            f"Claim validated: {decision.status.value} "
            f"(rule={decision.routing_rule}, confidence={decision.confidence_score:.2f}) | "
            f"Total: {timings['total_ms']:.0f}ms"
        )
        return PipelineResult(
            decision=decision,
            clauses=trace.clauses,
            stages=stages,
            call_id=call_id,
            citation_result=trace.citation_result,
            supporting_texts=trace.supporting_texts,
            timings=timings,
        )

    async def _decide(
        self,
        request: ClaimRequest,
        document_ids: Optional[Sequence[str]],
        deadline: _Deadline,
        screening: ValidationResult,
        trace: _CallTrace,
    ) -> ClaimDecision:
        stages, timings = trace.stages, trace.timings

        # ── Step 2: Retrieve ───────────────────────────────────────
        stages.append(PipelineStage.RETRIEVING)
        t0 = time.time()
        try:
            vector = await self._call(
                "embedding", deadline,
                lambda t: self.embedder.embed(request.claim_description, timeout=t),
            )
            clauses = await self._call(
                "retrieval", deadline,
                lambda t: self.retriever.retrieve(vector, request.policy_type, timeout=t),
            )
        except ExternalServiceError as e:
            return self._service_failure(e, screening)
        finally:
            timings["retrieving_ms"] = (time.time() - t0) * 1000

        trace.clauses = list(clauses)
        logger.info(f"Retrieved {len(clauses)} clause(s) for policy type '{request.policy_type}'")
        if not clauses:
            return self._no_evidence(screening)

        # ── Step 3: Extract (evidence variant) ─────────────────────
        texts: list[str] = []
        if document_ids is not None:
            stages.append(PipelineStage.EXTRACTING)
            t0 = time.time()
            try:
                for document_id in document_ids:
                    text = await self._call(
                        "extraction", deadline,
                        lambda t, d=document_id: self.extractor.extract_text(d, timeout=t),
                    )
                    if text and text.strip():
                        texts.append(text)
            except ExternalServiceError as e:
                return self._service_failure(e, screening)
            finally:
                timings["extracting_ms"] = (time.time() - t0) * 1000
            trace.supporting_texts = texts

        # ── Step 4: Generate ───────────────────────────────────────
        stages.append(PipelineStage.GENERATING)
        t0 = time.time()
        try:
            if document_ids is not None:
                raw = await self._call(
                    "generation", deadline,
                    lambda t: self.generator.generate_decision_with_evidence(
                        request, clauses, texts, timeout=t
                    ),
                )
            else:
                raw = await self._call(
                    "generation", deadline,
                    lambda t: self.generator.generate_decision(request, clauses, timeout=t),
                )
        except ExternalServiceError as e:
            return self._service_failure(e, screening)
        finally:
            timings["generating_ms"] = (time.time() - t0) * 1000

        # ── Step 5: Citation check ─────────────────────────────────
        stages.append(PipelineStage.CITATION_CHECK)
        t0 = time.time()
        citation = self.citation_validator.validate(raw, clauses)
        trace.citation_result = citation
        decision = self._grounded(raw, citation, screening)
        timings["citation_check_ms"] = (time.time() - t0) * 1000

        # ── Step 6: Contradiction check ────────────────────────────
        stages.append(PipelineStage.CONTRADICTION_CHECK)
        t0 = time.time()
        findings = self.contradiction_detector.detect(request, decision, clauses, texts or None)
        decision = decision.with_contradictions(findings)
        if self.contradiction_detector.has_critical(findings):
            decision = decision.escalate(
                "Critical contradiction detected; the claim requires manual review."
            )
        timings["contradiction_check_ms"] = (time.time() - t0) * 1000

        # ── Step 7: Business rules ─────────────────────────────────
        stages.append(PipelineStage.RULE_APPLICATION)
        t0 = time.time()
        decision = self.rule_engine.apply(decision, request, has_supporting_documents=bool(texts))
        timings["rule_application_ms"] = (time.time() - t0) * 1000
        return decision

    async def _call(
        self,
        stage: str,
        deadline: _Deadline,
        invoke: Callable[[Optional[float]], Awaitable[T]],
    ) -> T:
        """
        Run one external call under the remaining deadline.

        The remaining budget is passed to the collaborator and enforced
        with ``asyncio.wait_for``. Any failure is re-raised as
        ExternalServiceError; cancellation propagates untouched.
        """
        remaining = deadline.remaining()
        if remaining is not None and remaining <= 0:
            raise ExternalServiceError(stage, "deadline exceeded before call", timed_out=True)
        try:
            return await asyncio.wait_for(invoke(remaining), timeout=remaining)
        except (asyncio.TimeoutError, TimeoutError):
            detail = "timed out" if remaining is None else f"timed out after {remaining:.2f}s"
            raise ExternalServiceError(stage, detail, timed_out=True) from None
        except Exception as e:
            raise ExternalServiceError(stage, f"{e.__class__.__name__}: {e}") from e

    async def _audit(
        self,
        request: ClaimRequest,
        decision: ClaimDecision,
        clauses: list[PolicyClause],
        context: dict[str, Any],
    ) -> None:
        """Persist the audit record; failures are logged, never raised."""
        timeout = self.config.services.default_timeout_s
        try:
            await asyncio.wait_for(
                self.audit_sink.persist(request, decision, clauses, timeout=timeout, context=context),
                timeout=timeout,
            )
        except Exception as e:
            logger.error(f"Audit write failed: {e.__class__.__name__}: {e}")

    # ── Decision constructors ──────────────────────────────────────

    @staticmethod
    def _service_failure(error: ExternalServiceError, screening: ValidationResult) -> ClaimDecision:
        what = "timed out" if error.timed_out else "failed"
        logger.error(f"External service {what}: {error}")
        return ClaimDecision(
            status=DecisionStatus.MANUAL_REVIEW,
            explanation=f"The {error.stage} service {what}; the claim requires manual review.",
            confidence_score=0.0,
            validation_warnings=list(screening.warnings),
            confidence_rationale=f"External {error.stage} service {what}.",
        )

    @staticmethod
    def _no_evidence(screening: ValidationResult) -> ClaimDecision:
        logger.warning("No policy clauses retrieved; skipping generation")
        return ClaimDecision(
            status=DecisionStatus.MANUAL_REVIEW,
            explanation="No relevant policy clauses were found for this claim.",
            required_documents=list(NO_EVIDENCE_DOCUMENTS),
            confidence_score=0.0,
            validation_warnings=list(screening.warnings),
            confidence_rationale="No policy evidence retrieved.",
        )

    @staticmethod
    def _grounded(
        raw: RawDecision, citation: ValidationResult, screening: ValidationResult
    ) -> ClaimDecision:
        """
        Turn the model proposal into a ClaimDecision.

        An ungrounded proposal keeps nothing of the model's verdict: the
        validator errors become the explanation and confidence is reset.
        """
        warnings = list(screening.warnings) + list(citation.warnings)
        if citation.is_valid:
            return ClaimDecision.from_raw(raw).with_warnings(warnings)

        return ClaimDecision(
            status=DecisionStatus.MANUAL_REVIEW,
            explanation=" ".join(citation.errors),
            clause_references=list(raw.clause_references),
            required_documents=list(raw.required_documents),
            confidence_score=0.0,
            validation_warnings=warnings,
            confidence_rationale="Citation validation failed; the decision is not grounded in retrieved policy clauses.",
        )
