"""Tests for the domain capabilities (network and stores mocked)."""

from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from src.omniquery.models.errors import AllProvidersFailedError, ToolConfigurationError
from src.omniquery.models.schemas import Domain
from src.omniquery.tools import document_tool, finance_tool, news_tool, weather_tool
from src.omniquery.tools.providers.chain import ResilientQuoteChain
from src.omniquery.tools.registry import DOMAIN_CAPABILITIES


# ── News ─────────────────────────────────────────────────────────────────

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Google News</title>
<item>
  <title>Apple beats earnings estimates - Reuters</title>
  <link>https://news.example/apple</link>
  <pubDate>Wed, 01 May 2024 21:30:00 GMT</pubDate>
  <description>&lt;a href="https://news.example/apple"&gt;Apple beats &lt;b&gt;earnings&lt;/b&gt;&lt;/a&gt;</description>
  <source url="https://www.reuters.com">Reuters</source>
</item>
<item>
  <title>Markets rally on rate hopes - CNBC</title>
  <link>https://news.example/rally</link>
  <pubDate>not a date</pubDate>
</item>
<item>
  <title>Third story</title>
  <link>https://news.example/third</link>
</item>
</channel></rss>
"""


class TestNewsTool:
    def test_parse_feed(self):
        articles = news_tool.parse_feed(RSS)
        assert len(articles) == 3
        first = articles[0]
        assert first.title == "Apple beats earnings estimates"
        assert first.source == "Reuters"
        assert first.published == "2024-05-01"
        assert first.summary == "Apple beats earnings"

    def test_source_split_and_fallbacks(self):
        second, third = news_tool.parse_feed(RSS)[1:]
        assert second.source == "CNBC"
        assert second.published == "not a date"
        assert second.summary == "No description available"
        assert third.source == "Google News"
        assert third.published == "N/A"

    def test_limit(self):
        assert len(news_tool.parse_feed(RSS, limit=1)) == 1

    def test_financial_topic(self):
        assert news_tool.is_financial_topic("AAPL")
        assert news_tool.is_financial_topic("chip stocks")
        assert not news_tool.is_financial_topic("champions league final")

    def test_category_url(self):
        assert "/topics/" in news_tool.category_url("Business")
        assert "/topics/" not in news_tool.category_url("gardening")

    @patch("src.omniquery.tools.news_tool.http_get")
    def test_market_news_adds_market_terms(self, mock_get):
        mock_get.return_value = MagicMock(text=RSS)
        text = news_tool.get_market_news("TSLA", limit=2)
        assert "q=TSLA+stock+market" in mock_get.call_args.args[0]
        assert "Apple beats earnings estimates (Reuters, 2024-05-01)" in text

    @patch("src.omniquery.tools.news_tool.http_get")
    def test_empty_feed(self, mock_get):
        mock_get.return_value = MagicMock(text="<rss><channel></channel></rss>")
        assert "No articles found." in news_tool.get_headlines_by_category("science")

    def test_news_tools_cover_domain(self):
        assert set(news_tool.build_news_tools()) == DOMAIN_CAPABILITIES[Domain.NEWS]


# ── Weather ──────────────────────────────────────────────────────────────

OWM = {
    "name": "Santa Clara",
    "sys": {"country": "US"},
    "weather": [{"main": "Clouds", "description": "broken clouds"}],
    "main": {"temp": 68.2, "feels_like": 67.5, "temp_min": 61.0, "temp_max": 72.0, "humidity": 55},
    "wind": {"speed": 8.1},
    "dt": 1714600000,
}

WEATHER_MOD = "src.omniquery.tools.weather_tool"


class TestWeatherTool:
    @pytest.mark.parametrize("raw, expected", [
        ("Santa Clara, California", "Santa Clara,CA,US"),
        ("Austin, tx", "Austin,TX,US"),
        ("London, UK", "London,UK"),
        ("Paris", "Paris"),
    ])
    def test_normalize_location(self, raw, expected):
        assert weather_tool.normalize_location(raw) == expected

    @patch(f"{WEATHER_MOD}.OPENWEATHER_API_KEY", "key")
    @patch(f"{WEATHER_MOD}.http_get")
    def test_by_zip(self, mock_get):
        mock_get.return_value = MagicMock(json=MagicMock(return_value=OWM))
        text = weather_tool.get_weather_by_zip_code("95054")
        params = mock_get.call_args.args[1]
        assert params["zip"] == "95054,US"
        assert params["units"] == "imperial"
        assert "Santa Clara, US" in text
        assert "68.2°F" in text

    @patch(f"{WEATHER_MOD}.OPENWEATHER_API_KEY", "key")
    @patch(f"{WEATHER_MOD}.http_get")
    def test_by_location(self, mock_get):
        mock_get.return_value = MagicMock(json=MagicMock(return_value=OWM))
        weather_tool.get_weather_by_location("Santa Clara, California")
        assert mock_get.call_args.args[1]["q"] == "Santa Clara,CA,US"

    @pytest.mark.parametrize("bad", ["9505", "abcde", "95054-12"])
    def test_invalid_zip(self, bad):
        with pytest.raises(ValueError):
            weather_tool.get_weather_by_zip_code(bad)

    @patch(f"{WEATHER_MOD}.OPENWEATHER_API_KEY", "")
    def test_missing_key(self):
        with pytest.raises(ToolConfigurationError):
            weather_tool.get_weather_by_location("Paris")


# ── Documents ────────────────────────────────────────────────────────────

DOC_MOD = "src.omniquery.tools.document_tool"


def _weaviate_client(props_list):
    client = MagicMock()
    col = client.collections.get.return_value
    col.query.bm25.return_value = MagicMock(objects=[MagicMock(properties=p) for p in props_list])
    return client


class TestDocumentTool:
    def test_format_empty(self):
        assert document_tool.format_documents([]) == document_tool.NO_DOCUMENTS

    def test_format_documents(self):
        text = document_tool.format_documents([
            {"title": "Portfolio 2022", "source": "portfolio.pdf", "document_type": "pdf", "text": "NVDA 12%"},
        ])
        assert text.startswith("[1] Portfolio 2022 (portfolio.pdf, pdf)")
        assert "NVDA 12%" in text

    @patch(f"{DOC_MOD}._get_weaviate_client")
    def test_query_documents(self, mock_client):
        client = _weaviate_client([{"title": "Notes", "text": "AAPL thesis", "year": None}])
        mock_client.return_value = client
        text = document_tool.query_documents("AAPL", limit=3)
        assert "AAPL thesis" in text
        kwargs = client.collections.get.return_value.query.bm25.call_args.kwargs
        assert kwargs["query"] == "AAPL"
        assert kwargs["limit"] == 3
        assert kwargs["filters"] is None
        client.close.assert_called_once()

    @patch(f"{DOC_MOD}._get_weaviate_client")
    def test_no_hits(self, mock_client):
        mock_client.return_value = _weaviate_client([])
        assert document_tool.query_documents_by_year("bonds", 2022) == document_tool.NO_DOCUMENTS

    @patch(f"{DOC_MOD}._get_weaviate_client")
    def test_client_closed_on_error(self, mock_client):
        client = MagicMock()
        client.collections.get.side_effect = RuntimeError("collection missing")
        mock_client.return_value = client
        with pytest.raises(RuntimeError):
            document_tool.query_documents("anything")
        client.close.assert_called_once()

    def test_reversed_date_range(self):
        with pytest.raises(ValueError):
            document_tool.query_documents_by_date_range("x", "2023-01-01", "2022-01-01")

    @patch(f"{DOC_MOD}._get_weaviate_client")
    def test_advanced_without_filters(self, mock_client):
        client = _weaviate_client([])
        mock_client.return_value = client
        document_tool.query_documents_advanced("budget")
        assert client.collections.get.return_value.query.bm25.call_args.kwargs["filters"] is None


# ── Finance ──────────────────────────────────────────────────────────────

class TestFinanceTool:
    def test_quote_formats_valid_quote(self, tracker, make_provider):
        chain = ResilientQuoteChain([make_provider("Finnhub", 10, price=190.5)], tracker)
        text = finance_tool.make_stock_quote(chain)("aapl")
        assert "AAPL" in text
        assert "190.50" in text
        assert "Source: Finnhub" in text

    def test_collective_failure_raises(self, tracker, make_provider):
        chain = ResilientQuoteChain([make_provider("Finnhub", 10, error="HTTP 500")], tracker)
        with pytest.raises(AllProvidersFailedError) as info:
            finance_tool.make_stock_quote(chain)("AAPL")
        assert info.value.symbol == "AAPL"
        assert "All providers failed" in str(info.value)

    def test_bad_symbol_is_reported_not_raised(self, tracker, make_provider):
        provider = make_provider("Finnhub", 10, price=190.5)
        text = finance_tool.make_stock_quote(ResilientQuoteChain([provider], tracker))("not a ticker")
        assert text.startswith("Invalid ticker symbol: 'not a ticker'")
        assert provider.calls == 0

    def test_bad_period(self):
        with pytest.raises(ValueError):
            finance_tool.get_historical_prices("AAPL", "7w")

    @patch("src.omniquery.tools.finance_tool._safe_import_yfinance")
    def test_historical_prices(self, mock_import):
        idx = pd.date_range("2024-04-01", periods=3, freq="D")
        hist = pd.DataFrame(
            {"Close": [100.0, 105.0, 110.0], "High": [101.0, 106.0, 111.0],
             "Low": [99.0, 104.0, 109.0], "Volume": [1000, 2000, 3000]},
            index=idx,
        )
        mock_import.return_value.Ticker.return_value.history.return_value = hist
        text = finance_tool.get_historical_prices("msft", "5d")
        assert text.startswith("MSFT over 5d: 100.00 → 110.00 (+10.00%)")
        assert "2024-04-03: close 110.00" in text

    @patch("src.omniquery.tools.finance_tool._safe_import_yfinance")
    def test_ratios(self, mock_import):
        mock_import.return_value.Ticker.return_value.info = {
            "shortName": "NVIDIA", "trailingPE": 65.3, "profitMargins": 0.489, "marketCap": 2.2e12,
        }
        text = finance_tool.analyze_financial_ratios("NVDA")
        assert "P/E (trailing): 65.30" in text
        assert "Profit margin: 48.9%" in text
        assert "Market cap: 2,200.0B" in text

    @patch("src.omniquery.tools.finance_tool._safe_import_yfinance")
    def test_market_movers(self, mock_import):
        moves = {"AAPL": (110.0, 100.0), "MSFT": (90.0, 100.0), "NVDA": (101.0, 100.0)}

        def ticker(sym):
            t = MagicMock()
            last, prev = moves.get(sym, (0.0, 0.0))
            t.fast_info.last_price = last
            t.fast_info.previous_close = prev
            return t

        mock_import.return_value.Ticker.side_effect = ticker
        text = finance_tool.get_market_movers(limit=1)
        assert "Top gainers:\n- AAPL: 110.00 (+10.00%)" in text
        assert "Top losers:\n- MSFT: 90.00 (-10.00%)" in text

    def test_financial_tools_cover_domain(self, tracker):
        tools = finance_tool.build_financial_tools(ResilientQuoteChain([], tracker))
        assert set(tools) == DOMAIN_CAPABILITIES[Domain.FINANCIAL]
