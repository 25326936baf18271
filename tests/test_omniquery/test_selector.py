"""Tests for the LLM-assisted provider selector."""

from unittest.mock import MagicMock

import pytest

from src.omniquery.tools.providers.selector import AgenticProviderSelector, parse_provider_selection


def _llm_replying(text):
    llm = MagicMock()
    resp = MagicMock()
    resp.choices[0].message.content = text
    llm.chat.completions.create.return_value = resp
    return llm


@pytest.fixture
def providers(make_provider):
    return [
        make_provider("Google Finance", 3),
        make_provider("Finnhub", 10),
        make_provider("Alpha Vantage", 99),
        make_provider("Yahoo Finance", 100),
    ]


class TestParseProviderSelection:
    @pytest.mark.parametrize("reply, expected", [
        ("Finnhub", "Finnhub"),
        ('"finnhub".', "Finnhub"),
        ("I would pick Alpha Vantage", "Alpha Vantage"),
        ("alphavantage", "Alpha Vantage"),
        ("Yahoo", "Yahoo Finance"),
        ("google finance", "Google Finance"),
    ])
    def test_aliases(self, reply, expected):
        assert parse_provider_selection(reply) == expected

    def test_unknown_returned_cleaned(self):
        assert parse_provider_selection("  Bloomberg. ") == "Bloomberg"


class TestSelectProvider:
    def test_llm_pick(self, tracker, providers):
        selector = AgenticProviderSelector(tracker, llm=_llm_replying("Yahoo Finance"))
        assert selector.select_provider(providers, "AAPL").name == "Yahoo Finance"

    def test_prompt_carries_usage_stats(self, tracker, providers):
        tracker.record_rate_limit("Finnhub", "429")
        llm = _llm_replying("Google Finance")
        AgenticProviderSelector(tracker, llm=llm).select_provider(providers, "MSFT", "daily check")
        prompt = llm.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "Symbol: MSFT" in prompt
        assert "daily check" in prompt
        assert "Recently rate-limited: True" in prompt

    def test_empty_candidates(self, tracker):
        llm = _llm_replying("Finnhub")
        assert AgenticProviderSelector(tracker, llm=llm).select_provider([], "AAPL") is None
        llm.chat.completions.create.assert_not_called()

    def test_unknown_name_falls_back_to_priority(self, tracker, providers):
        selector = AgenticProviderSelector(tracker, llm=_llm_replying("Bloomberg"))
        assert selector.select_provider(providers, "AAPL").name == "Google Finance"

    def test_llm_error_falls_back_to_priority(self, tracker, providers):
        llm = MagicMock()
        llm.chat.completions.create.side_effect = RuntimeError("timeout")
        assert AgenticProviderSelector(tracker, llm=llm).select_provider(providers, "AAPL").name == "Google Finance"


class TestDeterministicSelection:
    def test_priority_skips_recently_rate_limited(self, tracker, providers):
        tracker.record_rate_limit("Google Finance", "429")
        selector = AgenticProviderSelector(tracker, llm=MagicMock())
        assert selector.select_by_priority(providers).name == "Finnhub"

    def test_priority_when_all_rate_limited(self, tracker, providers):
        for p in providers:
            tracker.record_rate_limit(p.name, "429")
        selector = AgenticProviderSelector(tracker, llm=MagicMock())
        assert selector.select_by_priority(providers).name == "Google Finance"

    def test_priority_ignores_unusable(self, tracker, make_provider):
        selector = AgenticProviderSelector(tracker, llm=MagicMock())
        assert selector.select_by_priority([make_provider("Off", 1, enabled=False)]) is None

    def test_simple_prefers_finnhub_with_budget(self, tracker, providers):
        selector = AgenticProviderSelector(tracker, llm=MagicMock())
        assert selector.select_provider_simple(providers).name == "Finnhub"

    def test_simple_skips_busy_finnhub(self, tracker, providers):
        for _ in range(55):
            tracker.record_success("Finnhub")
        selector = AgenticProviderSelector(tracker, llm=MagicMock())
        assert selector.select_provider_simple(providers).name == "Google Finance"
