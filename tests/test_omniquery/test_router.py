"""Tests for QueryRouter (LLM mocked)."""

from unittest.mock import MagicMock, patch

import pytest
from src.omniquery.models.schemas import Domain

# Patch OpenAI before importing QueryRouter so __init__ gets the mock
_mock_openai_cls = patch("src.omniquery.agents.router.OpenAI", MagicMock())
_mock_openai_cls.start()

from src.omniquery.agents.router import (  # noqa: E402
    FALLBACK_REASONING, QueryRouter, parse_intent, strip_code_fences,
)


def _router_replying(content):
    router = QueryRouter()
    router._llm = MagicMock()
    mock_resp = MagicMock()
    mock_resp.choices[0].message.content = content
    router._llm.chat.completions.create.return_value = mock_resp
    return router


class TestParsing:

    def test_strip_code_fences(self):
        raw = '```json\n{"needsFinancial": true}\n```'
        assert strip_code_fences(raw) == '{"needsFinancial": true}'

    def test_plain_json_untouched(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'

    def test_parse_intent_rejects_prose(self):
        with pytest.raises(ValueError):
            parse_intent("I think you need the financial agent.")


class TestQueryRouter:

    def test_single_domain(self):
        router = _router_replying(
            '{"needsFinancial": true, "needsResearch": false, "needsNews": false,'
            ' "needsWeather": false, "reasoning": "Stock price"}'
        )
        intent = router.classify("Stock price of AAPL")
        assert intent.domains() == [Domain.FINANCIAL]
        assert intent.reasoning == "Stock price"

    def test_multi_domain_in_fence(self):
        router = _router_replying(
            '```json\n{"needsFinancial": true, "needsResearch": true, "needsNews": false,'
            ' "needsWeather": false, "reasoning": "docs + price"}\n```'
        )
        intent = router.classify("Compare AAPL price with my 2022 portfolio docs")
        assert intent.domains() == [Domain.FINANCIAL, Domain.RESEARCH]

    def test_history_only_question_needs_no_agent(self):
        router = _router_replying(
            '{"needsFinancial": false, "needsResearch": false, "needsNews": false,'
            ' "needsWeather": false, "reasoning": "Answerable from history"}'
        )
        assert not router.classify("What is my favorite color?").needs_any_agent()

    def test_prompt_contains_question(self):
        router = _router_replying(
            '{"needsFinancial": false, "needsResearch": false, "needsNews": false, "needsWeather": true}'
        )
        router.classify("Weather in 95054?")
        messages = router._llm.chat.completions.create.call_args.kwargs["messages"]
        assert "Weather in 95054?" in messages[-1]["content"]

    @pytest.mark.parametrize("reply", [
        "not json at all",
        '{"needsFinancial": true}',
        '{"needsFinancial": "true", "needsResearch": false, "needsNews": false, "needsWeather": false}',
        "",
    ])
    def test_malformed_reply_fails_open(self, reply):
        intent = _router_replying(reply).classify("anything")
        assert intent.domains() == list(Domain)
        assert intent.reasoning == FALLBACK_REASONING

    def test_llm_error_fails_open(self):
        router = QueryRouter()
        router._llm = MagicMock()
        router._llm.chat.completions.create.side_effect = RuntimeError("connection refused")
        intent = router.classify("anything")
        assert intent.needs_financial and intent.needs_research
        assert intent.needs_news and intent.needs_weather
        assert intent.reasoning == FALLBACK_REASONING
