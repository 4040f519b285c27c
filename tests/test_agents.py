"""
Tests for the chat agent helpers and its failure handling.

No request reaches Gemini: the models are swapped for failing fakes.
"""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from lyvo.agents import ChatAgent, extract_json, summarize_result
from lyvo.agents.ai_agents import FALLBACK_PAYLOAD
from lyvo.config import AppSettings, GeminiSettings
from lyvo.models.audit import AuditEventType
from lyvo.models.chat import QueryResult, StructuredQuery


class TestExtractJson:

    def test_strips_fences(self):
        text = '```json\n{"action": "QUERY"}\n```'
        assert extract_json(text) == '{"action": "QUERY"}'

    def test_keeps_outer_object(self):
        text = 'Claro! {"action": "ADD_EVENT", "eventDetails": {"title": "x"}} Até mais'
        assert extract_json(text) == '{"action": "ADD_EVENT", "eventDetails": {"title": "x"}}'

    def test_no_object(self):
        assert extract_json("nada aqui") == "nada aqui"


class TestSummarizeResult:

    def test_formats_money(self):
        result = QueryResult(
            query_id=uuid4(),
            success=True,
            data_found=True,
            result_count=1,
            results=[{"card": "Nubank", "total_due": Decimal("1234.5")}],
            aggregation_result={"total_due": Decimal("1234.5"), "card_count": 1},
            query_description="Card invoices for 2025-03",
        )

        lines = summarize_result(result).split("\n")

        assert lines == [
            "total_due: R$1,234.50",
            "card_count: 1",
            "Nubank | R$1,234.50",
        ]


class UnavailableModel:

    async def generate_content_async(self, parts):
        raise RuntimeError("503 service unavailable")


@pytest.fixture
def offline_agent(audit_logger, monkeypatch):
    agent = ChatAgent(
        settings=GeminiSettings(api_key="test-key"),
        app_settings=AppSettings(),
        audit_logger=audit_logger,
    )
    monkeypatch.setattr(agent, "_model", UnavailableModel())
    monkeypatch.setattr(agent, "_answer_model", UnavailableModel())
    return agent


class TestModelFailures:

    def test_classify_falls_back_and_is_audited(self, offline_agent, audit_storage):
        payload = asyncio.run(offline_agent.classify("gastei 50 no mercado"))

        assert payload == FALLBACK_PAYLOAD
        [event] = audit_storage.events
        assert event.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert event.details["service"] == "gemini"
        assert "503" in event.error_message

    def test_answer_falls_back_to_the_data(self, offline_agent, audit_storage):
        query = StructuredQuery(query_type="balance", month="2025-03", original_question="qual meu saldo?")
        result = QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=True,
            result_count=1,
            aggregation_result={"balance": Decimal("250")},
            query_description="Balance for 2025-03",
        )

        answer = asyncio.run(offline_agent.phrase_answer(query, result))

        assert answer == "Com base nos seus registros:\nbalance: R$250.00"
        assert [e.event_type for e in audit_storage.events] == [AuditEventType.EXTERNAL_SERVICE_ERROR]
