"""
LifeGuard — Upstream Feeds
Converts weather and places snapshots into normalizer input, and polls
WeatherAPI.com for current conditions (single source).

fetch_current_weather() blocks on HTTP; the server runs it off the event
loop with asyncio.to_thread so the scheduler keeps ticking.
"""
import logging
import os

import requests

from config.settings import WEATHER_API_URL, WEATHER_CITY, WEATHER_TIMEOUT_SEC
from config.tables import CROWD_SCORE_BANDS, PLACE_TYPE_CROWD_POINTS

logger = logging.getLogger(__name__)

NEARBY_POINTS_PER_PLACE = 5


def weather_snapshot_to_raw(snapshot):
    """
    {condition, temperature, humidity, wind_speed, visibility_km} → the
    weather-related keys of a normalizer mapping.
    """
    raw = {"weather": snapshot.get("condition") or "clear"}
    if snapshot.get("temperature") is not None:
        raw["temperature"] = snapshot["temperature"]
    if snapshot.get("humidity") is not None:
        raw["humidity"] = snapshot["humidity"]
    if snapshot.get("wind_speed") is not None:
        raw["wind_speed"] = snapshot["wind_speed"]
    visibility_km = snapshot.get("visibility_km")
    if visibility_km is not None:
        try:
            raw["visibility"] = max(0.0, min(1.0, float(visibility_km) / 10.0))
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric visibility_km: %r", visibility_km)
    return raw


def crowd_score_from_places(snapshot):
    """0-100 crowd score from a places snapshot."""
    places = snapshot.get("places")
    if places:
        total = 0
        for place in places:
            types = place.get("types") or []
            total += max((PLACE_TYPE_CROWD_POINTS.get(t, 0) for t in types), default=0)
        return min(100, total)
    nearby = snapshot.get("nearby_count") or 0
    return min(100, int(nearby) * NEARBY_POINTS_PER_PLACE)


def crowd_level_from_places(snapshot):
    crowd_score = crowd_score_from_places(snapshot)
    for upper, level in CROWD_SCORE_BANDS:
        if upper is None or crowd_score < upper:
            return level
    return CROWD_SCORE_BANDS[-1][1]


def parse_weatherapi_response(payload):
    """WeatherAPI.com current.json body → weather snapshot."""
    current = payload.get("current", {})
    return {
        "condition": current.get("condition", {}).get("text", "Clear"),
        "temperature": current.get("temp_c"),
        "humidity": current.get("humidity"),
        "wind_speed": current.get("wind_kph"),
        "visibility_km": current.get("vis_km"),
        "location": payload.get("location", {}).get("name"),
    }


def fetch_current_weather(city=None, api_key=None):
    """
    Current weather snapshot for `city`, or None when no key is configured
    or the provider fails.
    """
    api_key = api_key if api_key is not None else os.getenv("WX_API_KEY", "")
    city = city or os.getenv("WEATHER_CITY", WEATHER_CITY)
    if not api_key:
        logger.warning("WX_API_KEY not set, skipping weather poll")
        return None
    try:
        resp = requests.get(
            WEATHER_API_URL,
            params={"key": api_key, "q": city, "aqi": "no"},
            timeout=WEATHER_TIMEOUT_SEC,
        )
        resp.raise_for_status()
        return parse_weatherapi_response(resp.json())
    except (requests.RequestException, ValueError) as e:
        logger.warning("Weather fetch failed for %s: %s", city, e)
        return None
