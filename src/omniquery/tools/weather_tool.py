"""Weather capabilities backed by the OpenWeatherMap current-weather API."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from ..config.settings import OPENWEATHER_API_KEY
from ..models.errors import ToolConfigurationError
from ..models.schemas import Domain
from .providers.base import http_get
from .registry import Capability, ToolTable, build_tool_table

logger = logging.getLogger(__name__)

_URL = "https://api.openweathermap.org/data/2.5/weather"

US_STATES = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "florida": "FL", "georgia": "GA", "hawaii": "HI", "idaho": "ID",
    "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
    "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS",
    "missouri": "MO", "montana": "MT", "nebraska": "NE", "nevada": "NV",
    "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM", "new york": "NY",
    "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
    "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT",
    "vermont": "VT", "virginia": "VA", "washington": "WA", "west virginia": "WV",
    "wisconsin": "WI", "wyoming": "WY", "district of columbia": "DC",
}
_STATE_CODES = set(US_STATES.values())

_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")


def normalize_location(location: str) -> str:
    """``"Santa Clara, California"`` → ``"Santa Clara,CA,US"``.

    Locations whose last part is not a US state are passed through
    unchanged (``"London, UK"``).
    """
    parts = [p.strip() for p in (location or "").split(",") if p.strip()]
    if len(parts) < 2:
        return ",".join(parts)
    last = parts[-1]
    code = US_STATES.get(last.lower()) or (last.upper() if last.upper() in _STATE_CODES else None)
    if code is None:
        return ",".join(parts)
    return ",".join([*parts[:-1], code, "US"])


def _query(params: dict[str, Any]) -> dict[str, Any]:
    if not OPENWEATHER_API_KEY:
        raise ToolConfigurationError("OPENWEATHER_API_KEY is not set")
    resp = http_get(_URL, {**params, "appid": OPENWEATHER_API_KEY, "units": "imperial"})
    return resp.json()


def format_weather(data: dict[str, Any], label: str) -> str:
    main = data.get("main") or {}
    wind = data.get("wind") or {}
    conditions = data.get("weather") or [{}]
    name = data.get("name") or label
    country = (data.get("sys") or {}).get("country", "")
    observed = data.get("dt")
    lines = [
        f"Current weather for {name}{', ' + country if country else ''}:",
        f"- Conditions: {conditions[0].get('main', 'Unknown')} ({conditions[0].get('description', '')})",
        f"- Temperature: {main.get('temp')}°F (feels like {main.get('feels_like')}°F)",
        f"- High/Low: {main.get('temp_max')}°F / {main.get('temp_min')}°F",
        f"- Humidity: {main.get('humidity')}%",
        f"- Wind: {wind.get('speed')} mph",
    ]
    if observed:
        ts = datetime.fromtimestamp(int(observed), tz=timezone.utc).isoformat(timespec="minutes")
        lines.append(f"- Observed: {ts}")
    return "\n".join(lines)


def get_weather_by_location(location: str) -> str:
    """Current weather for a city, e.g. "Austin, Texas" or "London, UK".

    Args:
        location: City name, optionally followed by state or country.
    """
    query = normalize_location(location)
    logger.info("Weather lookup: %s", query)
    return format_weather(_query({"q": query}), location)


def get_weather_by_zip_code(zip_code: str) -> str:
    """Current weather for a US ZIP code.

    Args:
        zip_code: Five-digit US ZIP code, e.g. "95054".
    """
    zip_code = (zip_code or "").strip()
    if not _ZIP_RE.match(zip_code):
        raise ValueError(f"Invalid US ZIP code: {zip_code!r}")
    logger.info("Weather lookup: ZIP %s", zip_code)
    return format_weather(_query({"zip": f"{zip_code[:5]},US"}), zip_code)


def build_weather_tools() -> ToolTable:
    return build_tool_table(Domain.WEATHER, {
        Capability.GET_WEATHER_BY_LOCATION: get_weather_by_location,
        Capability.GET_WEATHER_BY_ZIP_CODE: get_weather_by_zip_code,
    })
