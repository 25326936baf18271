"""Closed capability set and per-domain tool tables.

Every tool a specialist may call is one ``Capability`` member, and every
capability belongs to exactly one ``Domain``.  ``build_tool_table`` resolves
a domain's capabilities to concrete callables once, at specialist
construction, and returns a read-only mapping – a specialist holds only its
own table, so it has no way to reach another domain's tools.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping

from ..models.schemas import Domain


class Capability(str, Enum):
    # financial
    GET_STOCK_QUOTE = "get_stock_quote"
    GET_HISTORICAL_PRICES = "get_historical_prices"
    ANALYZE_FINANCIAL_RATIOS = "analyze_financial_ratios"
    GET_MARKET_MOVERS = "get_market_movers"
    GET_ECONOMIC_INDICATORS = "get_economic_indicators"
    # research
    QUERY_DOCUMENTS = "query_documents"
    QUERY_DOCUMENTS_BY_YEAR = "query_documents_by_year"
    QUERY_DOCUMENTS_BY_DATE_RANGE = "query_documents_by_date_range"
    QUERY_DOCUMENTS_ADVANCED = "query_documents_advanced"
    # news
    GET_MARKET_NEWS = "get_market_news"
    GET_HEADLINES_BY_CATEGORY = "get_headlines_by_category"
    # weather
    GET_WEATHER_BY_LOCATION = "get_weather_by_location"
    GET_WEATHER_BY_ZIP_CODE = "get_weather_by_zip_code"


DOMAIN_CAPABILITIES: Mapping[Domain, frozenset[Capability]] = MappingProxyType({
    Domain.FINANCIAL: frozenset({
        Capability.GET_STOCK_QUOTE,
        Capability.GET_HISTORICAL_PRICES,
        Capability.ANALYZE_FINANCIAL_RATIOS,
        Capability.GET_MARKET_MOVERS,
        Capability.GET_ECONOMIC_INDICATORS,
    }),
    Domain.RESEARCH: frozenset({
        Capability.QUERY_DOCUMENTS,
        Capability.QUERY_DOCUMENTS_BY_YEAR,
        Capability.QUERY_DOCUMENTS_BY_DATE_RANGE,
        Capability.QUERY_DOCUMENTS_ADVANCED,
    }),
    Domain.NEWS: frozenset({
        Capability.GET_MARKET_NEWS,
        Capability.GET_HEADLINES_BY_CATEGORY,
    }),
    Domain.WEATHER: frozenset({
        Capability.GET_WEATHER_BY_LOCATION,
        Capability.GET_WEATHER_BY_ZIP_CODE,
    }),
})


def domain_of(capability: Capability) -> Domain:
    for domain, caps in DOMAIN_CAPABILITIES.items():
        if capability in caps:
            return domain
    raise ValueError(f"Capability {capability!r} belongs to no domain")


ToolTable = Mapping[Capability, Callable[..., str]]


def build_tool_table(domain: Domain, implementations: Mapping[Capability, Callable[..., str]]) -> ToolTable:
    """Freeze *implementations* into the tool table for *domain*.

    Raises ``ValueError`` if an implementation is given for another
    domain's capability, or if any of the domain's capabilities is missing.
    """
    allowed = DOMAIN_CAPABILITIES[domain]
    foreign = [c for c in implementations if Capability(c) not in allowed]
    if foreign:
        names = ", ".join(sorted(Capability(c).value for c in foreign))
        raise ValueError(f"{domain.value} specialist cannot be given tools from other domains: {names}")
    missing = allowed - {Capability(c) for c in implementations}
    if missing:
        names = ", ".join(sorted(c.value for c in missing))
        raise ValueError(f"{domain.value} tool table is missing: {names}")
    for cap, fn in implementations.items():
        if not callable(fn):
            raise ValueError(f"Implementation for {Capability(cap).value} is not callable")
    return MappingProxyType({Capability(c): fn for c, fn in implementations.items()})
