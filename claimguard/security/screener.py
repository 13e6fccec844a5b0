"""
Input Screener
===============

Scans free-text claim narratives for adversarial content BEFORE any
external call is made. This is the only gate in front of the paid
embedding and generation calls.

Detection families:
    1. Instruction override ("ignore previous instructions", ...)
    2. Role hijack ("you are now", "act as", ...), only counted when
       an override phrase is also present, so ordinary narratives that
       happen to use role language ("she was asked to act as a witness")
       are not rejected
    3. Obfuscation: hidden zero-width unicode, base64 blobs, character
       floods, excessive special characters, oversized input
    4. Code / SQL injection tokens

Matching runs on an NFKC-normalised copy with zero-width characters
removed, so full-width letters or a zero-width joiner inside a phrase
cannot split it. All fixed patterns compile once at import time.

Data Flow:
    ClaimRequest.claim_description → InputScreener.screen → ValidationResult
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Optional

from claimguard.config import ScreeningConfig
from claimguard.schemas.validation import ValidationResult
from claimguard.utils import normalize_whitespace

logger = logging.getLogger("claimguard.security.screener")


OVERRIDE_PHRASES = (
    "ignore previous instructions",
    "ignore all previous",
    "ignore the above",
    "ignore prior instructions",
    "disregard the above",
    "disregard all",
    "disregard previous",
    "forget everything",
    "forget all previous",
    "new instructions:",
    "system prompt",
    "override your instructions",
    "developer mode",
    "admin mode",
    "sudo mode",
    "jailbreak",
)

ROLE_HIJACK_PHRASES = (
    "you are now",
    "act as",
    "pretend to be",
    "roleplay as",
    "imagine you are",
    "from now on you",
)

CODE_INJECTION_TOKENS = (
    "<script",
    "javascript:",
    "eval(",
    "exec(",
    "__import__",
    "import os",
    "subprocess",
    "base64.b64decode",
)

SQL_PATTERNS = (
    "drop table",
    "delete from",
    "insert into",
    "union select",
    "'; --",
    "or 1=1",
)


def _phrase_pattern(phrase: str) -> re.Pattern:
    """
    Compile a phrase into a case-insensitive regex.

    Whitespace inside the phrase matches any whitespace run; word
    boundaries are enforced only where the phrase starts or ends with
    a word character.
    """
    body = r"\s+".join(re.escape(word) for word in phrase.split())
    if phrase[0].isalnum():
        body = r"(?<!\w)" + body
    if phrase[-1].isalnum():
        body = body + r"(?!\w)"
    return re.compile(body, re.IGNORECASE)


_OVERRIDE = [(p, _phrase_pattern(p)) for p in OVERRIDE_PHRASES]
_ROLE_HIJACK = [(p, _phrase_pattern(p)) for p in ROLE_HIJACK_PHRASES]
_CODE = [(p, _phrase_pattern(p)) for p in CODE_INJECTION_TOKENS]
_SQL = [(p, _phrase_pattern(p)) for p in SQL_PATTERNS]

HIDDEN_UNICODE = re.compile("[\\u200b-\\u200d\\ufeff\\u2060-\\u2069]")
BASE64_BLOB = re.compile(r"^(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?$")
SCRIPT_TAG = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)


class InputScreener:
    """
    Adversarial input screener.

    Any detected threat is a blocking error: the caller must reject the
    request and must not proceed to retrieval or generation.

    Usage:
        screener = InputScreener()
        result = screener.screen(request.claim_description)
        if not result.is_valid:
            raise SecurityRejection(result.errors)

    Args:
        config: Screening limits (lengths, ratios, repetition).
    """

    def __init__(self, config: Optional[ScreeningConfig] = None):
        self.config = config or ScreeningConfig()
        self._repeat_run = re.compile(r"(.)\1{%d,}" % self.config.max_repeat_run, re.DOTALL)

    @staticmethod
    def _normalize(text: str) -> str:
        return unicodedata.normalize("NFKC", HIDDEN_UNICODE.sub("", text))

    def scan(self, text: str) -> list[str]:
        """
        Return threat descriptions found in ``text`` (empty if clean).
        """
        threats: list[str] = []
        if not text:
            return threats

        normalized = self._normalize(text)

        overrides = [p for p, rx in _OVERRIDE if rx.search(normalized)]
        threats.extend(f"Detected instruction override phrase: '{p}'" for p in overrides)

        if overrides:
            for phrase, rx in _ROLE_HIJACK:
                if rx.search(normalized):
                    threats.append(
                        f"Detected role-hijack phrase alongside instruction override: '{phrase}'"
                    )

        for phrase, rx in _CODE:
            if rx.search(normalized):
                threats.append(f"Detected code injection token: '{phrase}'")

        for phrase, rx in _SQL:
            if rx.search(normalized):
                threats.append(f"Detected SQL-like pattern: '{phrase}'")

        if HIDDEN_UNICODE.search(text):
            threats.append("Contains hidden unicode characters that may be used for obfuscation")

        if self._repeat_run.search(text):
            threats.append("Contains excessive character repetition (potential DoS attempt)")

        limit = self.config.max_input_length
        if len(text) > limit:
            threats.append(f"Input exceeds safe length limit (Length: {len(text)}, Limit: {limit})")

        compact = text.replace("\r", "").replace("\n", "")
        if len(compact) > self.config.base64_min_length and BASE64_BLOB.match(compact):
            threats.append("Input appears to be base64 encoded (potential obfuscation)")

        if len(text) >= 20:
            special = sum(1 for c in text if not c.isalnum() and not c.isspace())
            ratio = special / len(text)
            if ratio > self.config.max_special_char_ratio:
                threats.append(f"Excessive special characters detected ({ratio:.0%} of input)")

        return threats

    def screen(self, narrative: str) -> ValidationResult:
        """
        Screen a claim narrative.

        Returns:
            ValidationResult; ``is_valid`` is False when any threat or
            blocking length problem was found.
        """
        threats = self.scan(narrative)
        if threats:
            logger.warning(f"Input screening blocked narrative: {len(threats)} threat(s)")
            return ValidationResult.from_findings(
                errors=threats,
                warning_message="Claim description contains potentially malicious content",
            )

        if not narrative or not narrative.strip():
            return ValidationResult.from_findings(errors=["Claim description cannot be empty"])

        if len(narrative) > self.config.max_description_length:
            return ValidationResult.from_findings(
                errors=[
                    f"Claim description exceeds maximum length "
                    f"({self.config.max_description_length} characters)"
                ]
            )

        warnings = []
        if len(narrative.strip()) < self.config.min_description_length:
            warnings.append(
                f"Claim description is very short (minimum "
                f"{self.config.min_description_length} characters recommended)"
            )
        return ValidationResult.from_findings(errors=[], warnings=warnings)

    def contains_injection(self, text: str) -> bool:
        return bool(self.scan(text))

    def sanitize(self, text: str) -> str:
        """
        Strip adversarial spans for logging. Never blocks.

        Removes hidden unicode, script blocks and matched override /
        role-hijack phrases, collapses whitespace and truncates to the
        safe length limit.
        """
        if not text:
            return text

        cleaned = self._normalize(text)
        cleaned = SCRIPT_TAG.sub("", cleaned)
        for _, rx in _OVERRIDE + _ROLE_HIJACK:
            cleaned = rx.sub("", cleaned)
        cleaned = normalize_whitespace(cleaned)
        return cleaned[: self.config.max_input_length].strip()
