"""
LifeGuard — Normalizer
Turns heterogeneous signals (free text, labels, numeric readings) into a
canonical ConditionVector.

Matching is case-insensitive substring search against ordered keyword
tables; the first match wins. A value that already equals a category name
is taken as-is before any keyword scan, so "heavy" as a crowd label stays
"heavy" while free text only trips on crowd phrases ("heavy crowd").
"""
import re
from collections.abc import Mapping

from config.tables import (
    CROWD_KEYWORDS, CROWD_SCORES,
    HOUR_BUCKETS,
    LOCATION_KEYWORDS, LOCATION_SCORES,
    NORMALIZER_DEFAULTS,
    TEMPERATURE_BANDS, TEMPERATURE_KEYWORDS, TEMPERATURE_SCORES,
    TIME_KEYWORDS, TIME_SCORES,
    VISIBILITY_KEYWORDS, VISIBILITY_SCORES,
    WEATHER_KEYWORDS, WEATHER_SCORES,
)
from risk_model.errors import ValidationError
from risk_model.models import ConditionVector

# Accepted mapping keys, in lookup order
WEATHER_KEYS     = ("weather", "weather_context")
TIME_KEYS        = ("time", "time_of_day", "time_context")
CROWD_KEYS       = ("crowd_density", "crowd", "crowd_context")
VISIBILITY_KEYS  = ("visibility", "visibility_context")
TEMPERATURE_KEYS = ("temperature", "temperature_context")
LOCATION_KEYS    = ("location", "location_context", "location_descriptor")

_CLOCK_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*$")
_CELSIUS_RE = re.compile(r"(-?\d+(?:\.\d+)?)\s*°?\s*c\b")


def time_bucket(hour):
    """Hour of day (0-23) → time category."""
    hour = int(hour) % 24
    label = HOUR_BUCKETS[0][1]
    for start, name in HOUR_BUCKETS:
        if hour >= start:
            label = name
    return label


def temperature_band(celsius):
    """°C → temperature band label."""
    for upper, label in TEMPERATURE_BANDS:
        if upper is None or celsius < upper:
            return label
    return TEMPERATURE_BANDS[-1][1]


def is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_float(value):
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _match(value, keywords, categories, default):
    """Exact category name first, then the first keyword hit, else default."""
    if value is None:
        return default
    text = str(value).strip().lower()
    token = text.replace(" ", "_").replace("-", "_")
    if token in categories:
        return token
    for words, category in keywords:
        for word in words:
            if word in text:
                return category
    return default


def _pick(raw, keys):
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _resolve_time(value):
    if is_number(value):
        return time_bucket(value)
    if isinstance(value, str):
        clock = _CLOCK_RE.match(value)
        if clock and int(clock.group(1)) < 24:
            return time_bucket(int(clock.group(1)))
    return _match(value, TIME_KEYWORDS, TIME_SCORES, NORMALIZER_DEFAULTS["time_of_day"])


def _resolve_visibility(value):
    number = _to_float(value)
    if number is not None:
        if 1.0 < number <= 100.0:
            # kilometres
            number = number / 10.0
        return max(0.0, min(1.0, number))
    return _match(value, VISIBILITY_KEYWORDS, VISIBILITY_SCORES, NORMALIZER_DEFAULTS["visibility"])


def _resolve_temperature(value):
    if value is None:
        return None
    number = _to_float(value)
    if number is not None:
        return number
    text = str(value).lower()
    celsius = _CELSIUS_RE.search(text)
    if celsius:
        return float(celsius.group(1))
    return _match(text, TEMPERATURE_KEYWORDS, TEMPERATURE_SCORES, None)


def _from_text(text):
    lowered = text.lower()
    return ConditionVector(
        weather=_match(lowered, WEATHER_KEYWORDS, WEATHER_SCORES, NORMALIZER_DEFAULTS["weather"]),
        time_of_day=_resolve_time(lowered),
        crowd_density=_match(lowered, CROWD_KEYWORDS, CROWD_SCORES, NORMALIZER_DEFAULTS["crowd_density"]),
        visibility=_match(lowered, VISIBILITY_KEYWORDS, VISIBILITY_SCORES, NORMALIZER_DEFAULTS["visibility"]),
        temperature=_resolve_temperature(lowered),
        location_descriptor=_match(
            lowered, LOCATION_KEYWORDS, LOCATION_SCORES, NORMALIZER_DEFAULTS["location_descriptor"]
        ),
        raw=text,
    )


def normalize(raw):
    """
    Mapping or free-text description → ConditionVector.

    Raises ValidationError when the input is neither a mapping nor a string,
    when a string is blank, or when a mapping lacks weather or time context.
    Malformed values inside present fields fall back to defaults instead.
    """
    if isinstance(raw, str):
        if not raw.strip():
            raise ValidationError("Condition description is empty")
        return _from_text(raw)

    if not isinstance(raw, Mapping):
        raise ValidationError(
            f"Conditions must be a mapping or a description string, got {type(raw).__name__}"
        )

    weather = _pick(raw, WEATHER_KEYS)
    time_value = _pick(raw, TIME_KEYS)
    missing = [name for name, value in (("weather", weather), ("time", time_value)) if value is None]
    if missing:
        raise ValidationError(f"Missing required context: {', '.join(missing)}")

    visibility = _pick(raw, VISIBILITY_KEYS)
    wind_speed = _to_float(raw.get("wind_speed"))
    humidity = _to_float(raw.get("humidity"))

    return ConditionVector(
        weather=_match(weather, WEATHER_KEYWORDS, WEATHER_SCORES, NORMALIZER_DEFAULTS["weather"]),
        time_of_day=_resolve_time(time_value),
        crowd_density=_match(
            _pick(raw, CROWD_KEYS), CROWD_KEYWORDS, CROWD_SCORES, NORMALIZER_DEFAULTS["crowd_density"]
        ),
        visibility=(
            _resolve_visibility(visibility) if visibility is not None
            else NORMALIZER_DEFAULTS["visibility"]
        ),
        temperature=_resolve_temperature(_pick(raw, TEMPERATURE_KEYS)),
        location_descriptor=_match(
            _pick(raw, LOCATION_KEYS), LOCATION_KEYWORDS, LOCATION_SCORES,
            NORMALIZER_DEFAULTS["location_descriptor"],
        ),
        wind_speed=wind_speed,
        humidity=humidity,
        raw=dict(raw),
    )
