"""
Sensitive-Data Redactor
========================

Detects and masks personal identifiers (PII) and health information
(PHI) so that neither the returned explanation nor the audit trail
carries raw identifiers.

Two independent passes:
    - redact():                 pattern families (national ID, card,
                                e-mail, phone, date of birth, postal code)
    - redact_narrative_terms(): labelled health / identity phrases
                                ("diagnosis: ...", "patient name: ...")
                                whose VALUE is replaced with a placeholder

Replacement order matters: payment cards are masked before phone
numbers so a card group is never half-masked as a phone number, and
postal codes run last so already-masked digits are not re-matched.

Data Flow:
    narrative → detect_types (audit logging only)
    explanation → redact_narrative_terms → redact → caller
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from claimguard.config import RedactionConfig


class SensitiveCategory(str, Enum):
    NATIONAL_ID = "NationalId"
    PAYMENT_CARD = "PaymentCard"
    EMAIL = "Email"
    PHONE = "Phone"
    DATE_OF_BIRTH = "DateOfBirth"
    POSTAL_CODE = "PostalCode"


PATTERNS: dict[SensitiveCategory, re.Pattern] = {
    SensitiveCategory.NATIONAL_ID: re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    SensitiveCategory.PAYMENT_CARD: re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
    SensitiveCategory.EMAIL: re.compile(r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b"),
    SensitiveCategory.PHONE: re.compile(r"(?:\(\d{3}\)\s?|\b\d{3}[-.\s]?)\d{3}[-.]?\d{4}\b"),
    SensitiveCategory.DATE_OF_BIRTH: re.compile(
        r"\b(?:0?[1-9]|1[0-2])[/\-](?:0?[1-9]|[12][0-9]|3[01])[/\-](?:19|20)\d{2}\b"
    ),
    # Not preceded by '$', a hyphen or digit separators, not followed by a
    # decimal or thousands group: amounts such as $12000 or 12,000.00 and
    # clause ids such as CLAUSE-10001 stay intact.
    SensitiveCategory.POSTAL_CODE: re.compile(r"(?<![\$\d,.\-])\b\d{5}(?:-\d{4})?\b(?![.,]\d)"),
}

NARRATIVE_TERMS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(?:patient|member|insured)\s+name:\s*[^.,;\n]+", re.IGNORECASE), "patient name"),
    (re.compile(r"\b(?:diagnosis|diagnosed with):\s*[^.,;\n]+", re.IGNORECASE), "diagnosis"),
    (re.compile(r"\b(?:prescription|medication|drug):\s*[^.,;\n]+", re.IGNORECASE), "medication"),
    (re.compile(r"\b(?:procedure|treatment|surgery):\s*[^.,;\n]+", re.IGNORECASE), "procedure"),
    (re.compile(r"\b(?i:doctor|physician|provider)\s+(?i:name:\s*)?[A-Z][a-z]+\s+[A-Z][a-z]+"), "provider"),
]


class SensitiveDataRedactor:
    """
    PII / PHI detector and masker.

    Usage:
        redactor = SensitiveDataRedactor()
        counts = redactor.detect_types(narrative)     # {NationalId: 1}
        safe = redactor.redact(redactor.redact_narrative_terms(text))
        masked = redactor.mask_identifier("POL-2024-0001")  # '****0001'

    Args:
        config: Masking settings (visible suffix, postal prefix, placeholder).
    """

    def __init__(self, config: Optional[RedactionConfig] = None):
        self.config = config or RedactionConfig()

    # ── Detection ──────────────────────────────────────────────────

    def detect_types(self, text: str) -> dict[SensitiveCategory, int]:
        """Count matches per category; categories with no match are omitted."""
        if not text:
            return {}
        counts = {category: len(rx.findall(text)) for category, rx in PATTERNS.items()}
        return {category: n for category, n in counts.items() if n > 0}

    def contains_sensitive_data(self, text: str) -> bool:
        return bool(self.detect_types(text))

    # ── Masking ────────────────────────────────────────────────────

    def mask_identifier(self, identifier: Optional[str], keep: Optional[int] = None) -> str:
        """
        Mask a policy / member number, keeping a short trailing suffix.

        Identifiers no longer than the suffix are fully masked.
        """
        keep = self.config.identifier_visible_suffix if keep is None else keep
        if not identifier or len(identifier) <= keep:
            return "****"
        return "****" + (identifier[-keep:] if keep else "")

    @staticmethod
    def mask_email(email: str) -> str:
        """Keep the domain only: 'jane@example.com' → '***@example.com'."""
        if not email or "@" not in email:
            return "***@***.***"
        return "***@" + email.split("@", 1)[1]

    def _mask_postal(self, match: re.Match) -> str:
        digits = match.group(0).replace("-", "")
        keep = self.config.postal_code_visible_prefix
        return digits[:keep] + "*" * (5 - keep)

    def redact(self, text: str) -> str:
        """Replace every pattern-family match with a masked form."""
        if not text:
            return text

        text = PATTERNS[SensitiveCategory.NATIONAL_ID].sub("***-**-****", text)
        text = PATTERNS[SensitiveCategory.PAYMENT_CARD].sub("****-****-****-****", text)
        text = PATTERNS[SensitiveCategory.EMAIL].sub(lambda m: self.mask_email(m.group(0)), text)
        text = PATTERNS[SensitiveCategory.PHONE].sub("***-***-****", text)
        text = PATTERNS[SensitiveCategory.DATE_OF_BIRTH].sub("**/**/****", text)
        text = PATTERNS[SensitiveCategory.POSTAL_CODE].sub(self._mask_postal, text)
        return text

    def redact_narrative_terms(self, text: str) -> str:
        """Replace the value of labelled PHI phrases with the placeholder."""
        if not text:
            return text
        for rx, label in NARRATIVE_TERMS:
            text = rx.sub(f"{label}: {self.config.placeholder}", text)
        return text

    def redact_for_output(self, text: str) -> str:
        """Both passes, as applied to text leaving the pipeline."""
        return self.redact(self.redact_narrative_terms(text))
