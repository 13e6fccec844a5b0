"""
OpenAI Adapter Tests
=====================

Reply parsing and prompt construction, exercised against a fake
AsyncOpenAI client so no network access or API key is needed.
"""

from __future__ import annotations

import json
from decimal import Decimal
from types import SimpleNamespace

import pytest

from claimguard.config import ClaimGuardConfig
from claimguard.schemas.decision import DecisionStatus
from claimguard.services.openai_backend import (
    SYSTEM_PROMPT,
    OpenAIDecisionGenerator,
    OpenAIEmbedder,
    document_guidance,
    parse_decision,
    strip_code_fences,
)

from tests.conftest import make_request, standard_clauses


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = []

    async def create(self, **kwargs):
        self.kwargs.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeEmbeddings:
    def __init__(self, vector):
        self.vector = vector
        self.kwargs = []

    async def create(self, **kwargs):
        self.kwargs.append(kwargs)
        return SimpleNamespace(data=[SimpleNamespace(embedding=self.vector)])


def fake_client(content="", vector=None):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=FakeCompletions(content)),
        embeddings=FakeEmbeddings(vector or [0.5, 0.5]),
    )


REPLY = json.dumps({
    "status": "Covered",
    "explanation": "Collision damage is covered under [C-1].",
    "clauseReferences": ["C-1"],
    "requiredDocuments": ["Repair invoice"],
    "confidenceScore": 0.91,
})


class TestParseDecision:

    def test_camel_case_reply(self):
        raw = parse_decision(REPLY)
        assert raw.status == DecisionStatus.COVERED
        assert raw.clause_references == ["C-1"]
        assert raw.required_documents == ["Repair invoice"]
        assert raw.confidence_score == 0.91

    def test_pascal_case_and_fences(self):
        content = "```json\n" + json.dumps({
            "Status": "Denied",
            "Explanation": "Excluded by [C-2].",
            "ClauseReferences": ["C-2"],
            "ConfidenceScore": 0.8,
        }) + "\n```"
        raw = parse_decision(content)
        assert raw.status == DecisionStatus.NOT_COVERED
        assert raw.clause_references == ["C-2"]

    @pytest.mark.parametrize("content", [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"status": "Maybe", "confidenceScore": 0.5}),
        json.dumps({"status": "Covered", "confidenceScore": "high"}),
        json.dumps({"status": "Covered", "confidenceScore": 1.7}),
        "",
    ])
    def test_unparseable_reply_becomes_manual_review(self, content):
        raw = parse_decision(content)
        assert raw.status == DecisionStatus.MANUAL_REVIEW
        assert raw.confidence_score == 0.0
        assert raw.clause_references == []

    def test_strip_code_fences(self):
        assert strip_code_fences("```\n{}\n```") == "{}"
        assert strip_code_fences("{}") == "{}"


class TestDocumentGuidance:

    @pytest.mark.parametrize("amount,prefix", [
        ("100", "Low-value"),
        ("500", "Moderate"),
        ("999.99", "Moderate"),
        ("1000", "Significant"),
        ("5000", "High-value"),
    ])
    def test_bands(self, amount, prefix):
        assert document_guidance(Decimal(amount)).startswith(prefix)


class TestOpenAIDecisionGenerator:

    def test_prompt_masks_policy_number(self):
        generator = OpenAIDecisionGenerator(client=fake_client())
        prompt = generator.build_prompt(make_request(), standard_clauses())
        assert "POL-2024-0001" not in prompt
        assert "****0001" in prompt
        assert "[C-1] Collision damage" in prompt
        assert "Claim Amount: $2,000.00" in prompt
        assert "DOCUMENT REQUIREMENTS: Significant claim" in prompt

    def test_evidence_prompt(self):
        generator = OpenAIDecisionGenerator(client=fake_client())
        prompt = generator.build_prompt(make_request(), standard_clauses(), ["Invoice $2,000", "Police report"])
        assert "SUPPORTING DOCUMENT 1:\nInvoice $2,000" in prompt
        assert "SUPPORTING DOCUMENT 2:\nPolice report" in prompt
        assert "within 10%" in prompt
        assert "DOCUMENT REQUIREMENTS" not in prompt

    @pytest.mark.asyncio
    async def test_generate_decision(self):
        client = fake_client(REPLY)
        generator = OpenAIDecisionGenerator(model="gpt-test", temperature=0.2, max_tokens=50, client=client)
        raw = await generator.generate_decision(make_request(), standard_clauses(), timeout=4.5)

        assert raw.status == DecisionStatus.COVERED
        call = client.chat.completions.kwargs[0]
        assert call["model"] == "gpt-test"
        assert call["temperature"] == 0.2
        assert call["max_tokens"] == 50
        assert call["timeout"] == 4.5
        assert call["response_format"] == {"type": "json_object"}
        assert call["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}

    @pytest.mark.asyncio
    async def test_generate_with_evidence_sends_documents(self):
        client = fake_client(REPLY)
        generator = OpenAIDecisionGenerator(client=client)
        await generator.generate_decision_with_evidence(make_request(), standard_clauses(), ["Invoice $2,000"])
        user_message = client.chat.completions.kwargs[0]["messages"][1]["content"]
        assert "SUPPORTING DOCUMENT 1" in user_message

    @pytest.mark.asyncio
    async def test_empty_reply(self):
        generator = OpenAIDecisionGenerator(client=fake_client(None))
        raw = await generator.generate_decision(make_request(), standard_clauses())
        assert raw.status == DecisionStatus.MANUAL_REVIEW

    @pytest.mark.asyncio
    async def test_api_errors_propagate(self):
        class Failing:
            async def create(self, **kwargs):
                raise RuntimeError("rate limited")

        client = SimpleNamespace(chat=SimpleNamespace(completions=Failing()))
        generator = OpenAIDecisionGenerator(client=client)
        with pytest.raises(RuntimeError):
            await generator.generate_decision(make_request(), standard_clauses())

    def test_from_config(self):
        config = ClaimGuardConfig(openai_api_key="sk-test", openai_model="gpt-x", services={"llm_temperature": 0.3})
        generator = OpenAIDecisionGenerator.from_config(config)
        assert generator.model == "gpt-x"
        assert generator.temperature == 0.3


class TestOpenAIEmbedder:

    @pytest.mark.asyncio
    async def test_embed(self):
        client = fake_client(vector=[0.1, 0.2, 0.3])
        embedder = OpenAIEmbedder(model="emb-test", client=client)
        vector = await embedder.embed("bumper damage", timeout=2.0)
        assert vector == [0.1, 0.2, 0.3]
        assert client.embeddings.kwargs == [{"model": "emb-test", "input": "bumper damage", "timeout": 2.0}]
