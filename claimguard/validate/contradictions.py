"""
Contradiction Detector
=======================

Finds conflicts between the decision, its cited clauses, the claim and
(optionally) the text of supporting documents. Checks are independent;
each may emit zero or more findings.

Checks:
    1. Decision vs citations: Covered citing only exclusions, or
       Not Covered citing only coverage grants (Critical); citing both
       kinds of language (Warning)
    2. Confidence vs status: very confident Manual Review, or a
       low-confidence definitive status (Warning)
    3. Amount vs limit: claim above a dollar limit stated in a cited
       clause (Critical)
    4. Supporting documents: amounts, dates or procedure disagreeing
       with the claim (Critical)

Any Critical finding forces Manual Review downstream. Findings never
quote dates from the narrative or the documents.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from claimguard.config import ContradictionConfig
from claimguard.schemas.claim import ClaimRequest
from claimguard.schemas.decision import ClaimDecision, DecisionStatus
from claimguard.schemas.evidence import PolicyClause
from claimguard.schemas.validation import Contradiction, Severity

logger = logging.getLogger("claimguard.validate.contradictions")

DOLLAR_AMOUNT = re.compile(r"\$\s?(\d[\d,]*(?:\.\d{1,2})?)")
LIMIT_LANGUAGE = re.compile(r"\b(?:limit|limited|maximum|up\s+to)\b", re.IGNORECASE)
PROCEDURE_LABEL = re.compile(r"\b(?:procedure|treatment|surgery)\s*:\s*([^.,;\n]+)", re.IGNORECASE)

_NUMERIC_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_WORD_DATE = re.compile(
    r"\b(January|February|March|April|May|June|July|August|September|October|November|December"
    r"|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sept|Sep|Oct|Nov|Dec)\.?\s+(\d{1,2}),?\s+(\d{4})\b",
    re.IGNORECASE,
)


def extract_amounts(text: str) -> list[Decimal]:
    """Dollar amounts written with a '$' sign."""
    amounts = []
    for match in DOLLAR_AMOUNT.finditer(text or ""):
        try:
            amounts.append(Decimal(match.group(1).replace(",", "")))
        except InvalidOperation:
            continue
    return amounts


def extract_dates(text: str) -> set[date]:
    """Calendar dates in MM/DD/YYYY, YYYY-MM-DD or 'Month D, YYYY' form."""
    found: set[date] = set()
    if not text:
        return found

    candidates = [(int(y), int(m), int(d)) for m, d, y in _NUMERIC_DATE.findall(text)]
    candidates += [(int(y), int(m), int(d)) for y, m, d in _ISO_DATE.findall(text)]
    for month, day, year in _WORD_DATE.findall(text):
        parsed = datetime.strptime(month[:3].title(), "%b")
        candidates.append((int(year), parsed.month, int(day)))

    for year, month, day in candidates:
        try:
            found.add(date(year, month, day))
        except ValueError:
            continue
    return found


def extract_procedures(text: str) -> list[str]:
    """Values of 'procedure:' / 'treatment:' / 'surgery:' labels, lower-cased."""
    return [m.strip().lower() for m in PROCEDURE_LABEL.findall(text or "") if m.strip()]


def _fmt(amount: Decimal) -> str:
    return f"${amount:,.2f}"


class ContradictionDetector:
    """
    Cross-field consistency checks.

    Usage:
        detector = ContradictionDetector()
        findings = detector.detect(request, decision, clauses, supporting_texts)
        if detector.has_critical(findings):
            decision = decision.escalate("Critical contradiction detected.")

    Args:
        config: Confidence thresholds and document amount tolerance.
    """

    def __init__(self, config: Optional[ContradictionConfig] = None):
        self.config = config or ContradictionConfig()

    def detect(
        self,
        request: ClaimRequest,
        decision: ClaimDecision,
        available_clauses: Sequence[PolicyClause],
        supporting_texts: Optional[Sequence[str]] = None,
    ) -> list[Contradiction]:
        cited = [c for c in available_clauses if c.clause_id in decision.clause_references]

        findings: list[Contradiction] = []
        findings.extend(self._check_citations(decision, cited))
        findings.extend(self._check_confidence(decision))
        findings.extend(self._check_limits(request, cited))
        if supporting_texts:
            findings.extend(self._check_documents(request, supporting_texts))

        if findings:
            critical = sum(1 for f in findings if f.is_critical)
            logger.info(f"Contradictions found: {len(findings)} ({critical} critical)")
        return findings

    @staticmethod
    def has_critical(findings: Sequence[Contradiction]) -> bool:
        return any(f.is_critical for f in findings)

    @staticmethod
    def summarize(findings: Sequence[Contradiction]) -> list[str]:
        """Summaries ordered most severe first."""
        ordered = sorted(findings, key=lambda f: f.severity.rank, reverse=True)
        return [f.summary() for f in ordered]

    # ── Checks ─────────────────────────────────────────────────────

    def _check_citations(
        self, decision: ClaimDecision, cited: list[PolicyClause]
    ) -> list[Contradiction]:
        if not cited:
            return []

        findings = []
        if decision.status == DecisionStatus.COVERED and all(c.is_exclusion for c in cited):
            findings.append(Contradiction(
                source_a="Decision Status (Covered)",
                source_b="Cited Policy Clauses",
                description="Claim marked as covered but every cited clause is an exclusion",
                severity=Severity.CRITICAL,
                impact="May result in incorrect approval",
            ))
        if decision.status == DecisionStatus.NOT_COVERED and all(c.grants_coverage for c in cited):
            findings.append(Contradiction(
                source_a="Decision Status (Not Covered)",
                source_b="Cited Policy Clauses",
                description="Claim marked as not covered but every cited clause grants coverage",
                severity=Severity.CRITICAL,
                impact="May result in incorrect denial",
            ))

        if any(c.grants_coverage for c in cited) and any(c.is_exclusion for c in cited):
            findings.append(Contradiction(
                source_a="Coverage Policy Clause",
                source_b="Exclusion Policy Clause",
                description="Both coverage and exclusion clauses cited, requires policy interpretation",
                severity=Severity.WARNING,
                impact="Ambiguous policy application",
            ))
        return findings

    def _check_confidence(self, decision: ClaimDecision) -> list[Contradiction]:
        score = decision.confidence_score
        if score > self.config.high_confidence and decision.is_manual_review:
            return [Contradiction(
                source_a=f"High Confidence Score ({score:.2f})",
                source_b="Manual Review Status",
                description="Model is confident but the decision requires manual review",
                severity=Severity.WARNING,
                impact="Potential for automated decision",
            )]
        if score < self.config.low_confidence and decision.status.is_definitive:
            return [Contradiction(
                source_a=f"Low Confidence Score ({score:.2f})",
                source_b=f"Automated Decision ({decision.status.value})",
                description="Low confidence decision made automatically",
                severity=Severity.WARNING,
                impact="Risk of incorrect decision",
            )]
        return []

    def _check_limits(
        self, request: ClaimRequest, cited: list[PolicyClause]
    ) -> list[Contradiction]:
        findings = []
        for clause in cited:
            if not LIMIT_LANGUAGE.search(clause.text):
                continue
            amounts = extract_amounts(clause.text)
            if not amounts:
                continue
            # Deductibles and sub-limits are smaller figures in the same clause.
            limit = max(amounts)
            if request.claim_amount > limit:
                findings.append(Contradiction(
                    source_a=f"Claim Amount ({_fmt(request.claim_amount)})",
                    source_b=f"Policy Limit ({_fmt(limit)}) in {clause.clause_id}",
                    description=f"Claim amount exceeds policy limit by {_fmt(request.claim_amount - limit)}",
                    severity=Severity.CRITICAL,
                    impact="May require partial approval or denial",
                ))
        return findings

    def _check_documents(
        self, request: ClaimRequest, supporting_texts: Sequence[str]
    ) -> list[Contradiction]:
        findings = []
        narrative = request.claim_description.lower()
        narrative_dates = extract_dates(request.claim_description)
        tolerance = request.claim_amount * Decimal(str(self.config.amount_tolerance))

        for index, text in enumerate(supporting_texts, start=1):
            source = f"Supporting Document {index}"

            amounts = extract_amounts(text)
            if amounts and not any(abs(a - request.claim_amount) <= tolerance for a in amounts):
                closest = min(amounts, key=lambda a: abs(a - request.claim_amount))
                findings.append(Contradiction(
                    source_a=f"Claimed Amount ({_fmt(request.claim_amount)})",
                    source_b=f"{source} Amount ({_fmt(closest)})",
                    description=(
                        f"No amount in the document is within "
                        f"{self.config.amount_tolerance:.0%} of the claimed amount"
                    ),
                    severity=Severity.CRITICAL,
                    impact="Verify correct claim amount",
                ))

            document_dates = extract_dates(text)
            if narrative_dates and document_dates and not (narrative_dates & document_dates):
                findings.append(Contradiction(
                    source_a="Claim Description Dates",
                    source_b=f"{source} Dates",
                    description="Dates in the document do not match any date in the claim description",
                    severity=Severity.CRITICAL,
                    impact="Verify date of service or incident",
                ))

            procedures = [p for p in extract_procedures(text) if p not in narrative]
            if procedures:
                findings.append(Contradiction(
                    source_a="Claim Description",
                    source_b=f"{source} Procedure",
                    description="Document names a procedure not mentioned in the claim description",
                    severity=Severity.CRITICAL,
                    impact="Verify the treated condition matches the claim",
                ))
        return findings
