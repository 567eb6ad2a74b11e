"""
LifeGuard — Scoring Tables
==========================
Pure data. Category → severity (0-10), keyword priority lists for the
normalizer, recommendation rules, interaction rules and simulation tables.

Keyword lists are evaluated top to bottom and the first match wins, so
specific keywords ("tornado", "heavy rain") sit above generic ones
("storm", "rain").
"""

# ══════════════════════════════════════════════════════════════════════════════
# SEVERITY TABLES (0 = benign, 10 = extreme)
# ══════════════════════════════════════════════════════════════════════════════
WEATHER_SCORES = {
    "clear": 0, "sunny": 0,
    "cloudy": 2, "overcast": 3,
    "light_rain": 4, "rainy": 5, "foggy": 5,
    "snow": 6,
    "heavy_rain": 7, "hail": 7,
    "stormy": 8, "thunderstorm": 8, "blizzard": 8,
    "tornado": 10, "hurricane": 10,
}

TIME_SCORES = {
    "morning": 0, "afternoon": 0,
    "dawn": 2, "evening": 2,
    "night": 5,
    "late_night": 7,
}

CROWD_SCORES = {
    "light": 0,
    "moderate": 2,
    "isolated": 4,
    "heavy": 5,
    "very_heavy": 6,
    "overcrowded": 8,
    "dangerous": 9,
}

VISIBILITY_SCORES = {
    "excellent": 0, "good": 0,
    "fair": 3,
    "poor": 6,
    "very_poor": 8,
    "zero": 10,
}

TEMPERATURE_SCORES = {
    "extreme_cold": 6,
    "very_cold": 4,
    "cold": 2,
    "comfortable": 0,
    "warm": 0,
    "hot": 2,
    "very_hot": 4,
    "extreme_heat": 6,
}

LOCATION_SCORES = {
    "unknown": 0,
    "urban": 1,
    "suburban": 1,
    "rural": 2,
    "remote": 3,
    "waterfront": 3,
    "wilderness": 4,
    "elevated_terrain": 4,
    "hazardous": 5,
}

# Score used when a value is present but not in the table
NEUTRAL_SCORES = {
    "weather": 2,
    "time": 0,
    "crowd": 2,
    "visibility": 2,
    "temperature": 0,
    "location": 0,
}

# Upper bound (exclusive, °C) → temperature band
TEMPERATURE_BANDS = [
    (-10, "extreme_cold"),
    (0,   "very_cold"),
    (10,  "cold"),
    (25,  "comfortable"),
    (30,  "warm"),
    (35,  "hot"),
    (40,  "very_hot"),
    (None, "extreme_heat"),
]

# Start hour (inclusive) → time bucket, evaluated in order
HOUR_BUCKETS = [
    (0,  "late_night"),
    (5,  "dawn"),
    (8,  "morning"),
    (12, "afternoon"),
    (17, "evening"),
    (20, "night"),
]

# Ordered by increasing severity, for monotonic checks and what-if ranges
WEATHER_SEVERITY_ORDER = [
    "clear", "cloudy", "overcast", "light_rain", "rainy",
    "heavy_rain", "thunderstorm", "tornado",
]
CROWD_SEVERITY_ORDER = ["light", "moderate", "heavy", "very_heavy", "overcrowded", "dangerous"]
TIME_SEVERITY_ORDER = ["afternoon", "dawn", "night", "late_night"]
VISIBILITY_SEVERITY_ORDER = ["excellent", "fair", "poor", "very_poor", "zero"]

# ══════════════════════════════════════════════════════════════════════════════
# NORMALIZER KEYWORDS: (keywords, category), first match wins
# ══════════════════════════════════════════════════════════════════════════════
WEATHER_KEYWORDS = [
    (("tornado", "twister"), "tornado"),
    (("hurricane", "cyclone", "typhoon"), "hurricane"),
    (("blizzard",), "blizzard"),
    (("thunderstorm", "thunder", "lightning"), "thunderstorm"),
    (("storm",), "stormy"),
    (("hail",), "hail"),
    (("heavy rain", "heavy_rain", "downpour", "torrential"), "heavy_rain"),
    (("light rain", "light_rain", "drizzle", "shower"), "light_rain"),
    (("rain",), "rainy"),
    (("fog", "mist", "haze", "smoke"), "foggy"),
    (("snow", "sleet"), "snow"),
    (("overcast",), "overcast"),
    (("cloud",), "cloudy"),
    (("sunny",), "sunny"),
    (("clear",), "clear"),
]

TIME_KEYWORDS = [
    (("late night", "late_night", "midnight", "small hours"), "late_night"),
    (("early morning", "early_morning", "dawn", "sunrise", "daybreak"), "dawn"),
    (("evening", "dusk", "sunset"), "evening"),
    (("night", "dark"), "night"),
    (("afternoon", "midday", "noon"), "afternoon"),
    (("morning",), "morning"),
]

CROWD_KEYWORDS = [
    (("dangerous crowd", "crush", "stampede"), "dangerous"),
    (("overcrowd", "packed"), "overcrowded"),
    (("very heavy crowd", "very busy"), "very_heavy"),
    (("moderate crowd", "moderately busy", "some people"), "moderate"),
    (("heavy crowd", "dense crowd", "crowded", "busy"), "heavy"),
    (("isolated", "alone", "deserted", "nobody around"), "isolated"),
    (("light crowd", "sparse", "quiet", "few people"), "light"),
]

VISIBILITY_KEYWORDS = [
    (("zero visibility", "no visibility"), "zero"),
    (("very poor", "very_poor", "extremely poor"), "very_poor"),
    (("poor visibility", "low visibility", "poor"), "poor"),
    (("reduced visibility", "fair"), "fair"),
    (("excellent",), "excellent"),
    (("good visibility", "good"), "good"),
]

TEMPERATURE_KEYWORDS = [
    (("extreme cold", "freezing", "frigid"), "extreme_cold"),
    (("very cold",), "very_cold"),
    (("extreme heat", "scorching", "heatwave", "heat wave"), "extreme_heat"),
    (("very hot",), "very_hot"),
    (("cold", "chilly"), "cold"),
    (("hot",), "hot"),
    (("warm",), "warm"),
    (("mild", "comfortable", "pleasant"), "comfortable"),
]

LOCATION_KEYWORDS = [
    (("construction", "industrial", "hazard", "factory", "quarry"), "hazardous"),
    (("mountain", "cliff", "hill", "ridge", "canyon"), "elevated_terrain"),
    (("water", "beach", "river", "lake", "coast", "harbor", "pier", "shore"), "waterfront"),
    (("wilderness", "forest", "woods", "trail"), "wilderness"),
    (("remote", "isolated", "deserted"), "remote"),
    (("rural", "village", "countryside", "farm"), "rural"),
    (("suburb", "residential"), "suburban"),
    (("urban", "city", "downtown", "street", "mall", "market", "station"), "urban"),
]

NORMALIZER_DEFAULTS = {
    "weather": "clear",
    "time_of_day": "morning",
    "crowd_density": "light",
    "visibility": "good",
    "location_descriptor": "unknown",
}

# ══════════════════════════════════════════════════════════════════════════════
# RECOMMENDATIONS: level advice first, then factor rules in order
# ══════════════════════════════════════════════════════════════════════════════
LEVEL_ADVICE = {
    "LOW": [
        "Low risk - maintain basic awareness",
        "Continue normal activities with basic precautions",
    ],
    "MEDIUM": [
        "Moderate risk - stay alert and prepared",
        "Keep emergency contacts accessible",
        "Identify nearest safe locations",
    ],
    "HIGH": [
        "High risk detected - take immediate precautions",
        "Contact emergency services if in immediate danger",
        "Have an evacuation plan ready",
    ],
    "CRITICAL": [
        "Critical risk - move to a safe location immediately",
        "Contact emergency services",
        "Share your live location with trusted contacts",
    ],
}

# A rule fires when the factor score reaches min_score, or when the factor's
# category equals `category`.
FACTOR_ADVICE = [
    {"factor": "weather", "min_score": 6, "advice": [
        "Seek immediate shelter from severe weather",
        "Monitor weather alerts and warnings",
    ]},
    {"factor": "weather", "min_score": 4, "advice": [
        "Carry weather protection gear",
    ]},
    {"factor": "time", "min_score": 5, "advice": [
        "Use additional lighting and stay in well-lit, populated areas",
        "Travel with others when possible",
    ]},
    {"factor": "time", "min_score": 2, "advice": [
        "Stay in well-lit areas",
    ]},
    {"factor": "crowd", "min_score": 6, "advice": [
        "Avoid overcrowded areas and identify multiple exit routes",
        "Avoid pushing through dense crowds",
    ]},
    {"factor": "crowd", "min_score": 5, "advice": [
        "Stay aware in crowded conditions and keep belongings secure",
    ]},
    {"factor": "crowd", "category": "isolated", "advice": [
        "Inform others of your location and plans",
    ]},
    {"factor": "visibility", "min_score": 6, "advice": [
        "Postpone travel until visibility improves",
        "Use high-visibility clothing and lights",
    ]},
    {"factor": "temperature", "min_score": 4, "advice": [
        "Limit exposure and dress for the temperature",
        "Carry water and take regular breaks indoors",
    ]},
    {"factor": "location", "min_score": 4, "advice": [
        "Exercise extra caution in this location type",
        "Follow all posted safety signs and barriers",
    ]},
    {"factor": "location", "category": "waterfront", "advice": [
        "Maintain safe distance from water edges",
    ]},
    {"factor": "location", "category": "remote", "advice": [
        "Inform others of your location and plans",
    ]},
]

CAUTION_NOTE = "System tends toward caution - verify conditions independently"

# ══════════════════════════════════════════════════════════════════════════════
# BREAKDOWN: impact tiers, interactions, sub-factors
# ══════════════════════════════════════════════════════════════════════════════
IMPACT_TIERS = [
    (40, "CRITICAL"),
    (25, "HIGH"),
    (15, "MEDIUM"),
    (5,  "LOW"),
]

INTERACTION_RULES = [
    {
        "factors": ("weather", "visibility"), "above": (6, 4),
        "strength": "high", "impact_multiplier": 1.3,
        "description": "Poor weather conditions are significantly reducing visibility",
    },
    {
        "factors": ("time", "crowd"), "above": (4, 6),
        "strength": "medium", "impact_multiplier": 1.2,
        "description": "High crowd density during risky time periods",
    },
    {
        "factors": ("location", "weather"), "above": (4, 6),
        "strength": "high", "impact_multiplier": 1.4,
        "description": "Hazardous location combined with severe weather",
    },
    {
        "factors": ("crowd", "visibility"), "above": (6, 4),
        "strength": "medium", "impact_multiplier": 1.25,
        "description": "Poor visibility in crowded conditions increases collision risk",
    },
]

SUB_FACTORS = {
    "weather":     {"intensity": 0.7, "wind": 0.3},
    "time":        {"hour_of_day": 0.7, "lighting": 0.3},
    "crowd":       {"density": 0.7, "isolation": 0.3},
    "visibility":  {"current_conditions": 0.6, "weather_obscuration": 0.4},
    "temperature": {"exposure": 1.0},
    "location":    {"inherent_risk": 1.0},
}

# Wind speed (km/h) at which the wind sub-factor saturates
WIND_SATURATION_KPH = 80

# ══════════════════════════════════════════════════════════════════════════════
# VISIBILITY MODIFIERS (breakdown + simulation)
# ══════════════════════════════════════════════════════════════════════════════
WEATHER_VISIBILITY_IMPACT = {
    "clear": 1.0, "sunny": 1.0,
    "cloudy": 0.8, "overcast": 0.75,
    "light_rain": 0.7, "rainy": 0.5,
    "heavy_rain": 0.4, "snow": 0.4, "hail": 0.4,
    "stormy": 0.3, "thunderstorm": 0.3,
    "foggy": 0.2,
    "blizzard": 0.1, "tornado": 0.1, "hurricane": 0.1,
}

TIME_LIGHT_FACTORS = {
    "dawn": 0.6,
    "morning": 1.0,
    "afternoon": 1.0,
    "evening": 0.8,
    "night": 0.4,
    "late_night": 0.3,
}

# ══════════════════════════════════════════════════════════════════════════════
# SIMULATION
# ══════════════════════════════════════════════════════════════════════════════
SIM_WEATHER_STATES = ["clear", "cloudy", "rainy", "stormy", "foggy"]
SIM_CROWD_LEVELS = ["isolated", "light", "moderate", "heavy", "overcrowded"]

DEFAULT_TRENDS = {
    "weather_trend": {
        "direction": "stable",        # improving / deteriorating / stable
        "rate": 0.1,                  # steps per hour
        "volatility": 0.2,
    },
    "crowd_trend": {
        "direction": "cyclical",      # increasing / decreasing / cyclical / stable
        "peak_times": [9, 13, 18],
        "base_growth_rate": 0.05,
    },
    "visibility_trend": {
        "base_visibility": 0.8,
        "time_dependent": True,
    },
    "temperature_trend": {
        "direction": "stable",        # increasing / decreasing / stable
        "daily_variation": 10,
        "rate": 0.5,
        "base_temperature": 20,
    },
}

# Allowed `direction` per trend block
TREND_DIRECTIONS = {
    "weather_trend": ("improving", "deteriorating", "stable"),
    "crowd_trend": ("increasing", "decreasing", "cyclical", "stable"),
    "temperature_trend": ("increasing", "decreasing", "stable"),
}

# ══════════════════════════════════════════════════════════════════════════════
# WHAT-IF PARAMETERS & TEMPLATES
# ══════════════════════════════════════════════════════════════════════════════
PARAMETER_DEFINITIONS = {
    "weather": {
        "type": "categorical",
        "values": sorted(WEATHER_SCORES),
        "default": "clear",
    },
    "visibility": {"type": "continuous", "min": 0.0, "max": 1.0, "default": 0.8},
    "crowd_density": {
        "type": "categorical",
        "values": sorted(CROWD_SCORES),
        "default": "moderate",
    },
    "time_of_day": {
        "type": "categorical",
        "values": sorted(TIME_SCORES),
        "default": "afternoon",
    },
    "location": {
        "type": "categorical",
        "values": sorted(LOCATION_SCORES),
        "default": "urban",
    },
    "temperature": {"type": "continuous", "min": -20, "max": 50, "default": 20},
}

SCENARIO_TEMPLATES = {
    "severe_weather": {
        "name": "Severe Weather Event",
        "parameters": {"weather": "thunderstorm", "visibility": 0.3, "crowd_density": "light"},
    },
    "crowded_event": {
        "name": "Crowded Event",
        "parameters": {"crowd_density": "overcrowded", "time_of_day": "evening", "location": "urban"},
    },
    "night_emergency": {
        "name": "Night Emergency",
        "parameters": {"time_of_day": "late_night", "visibility": 0.2, "crowd_density": "isolated"},
    },
}

# ══════════════════════════════════════════════════════════════════════════════
# UPSTREAM: places snapshot → crowd level
# ══════════════════════════════════════════════════════════════════════════════
PLACE_TYPE_CROWD_POINTS = {
    "shopping_mall": 20,
    "restaurant": 15,
    "tourist_attraction": 25,
    "transit_station": 30,
    "school": 20,
    "hospital": 15,
    "park": 10,
    "gym": 10,
}

# Upper bound (exclusive) of the 0-100 crowd score → level
CROWD_SCORE_BANDS = [
    (20, "isolated"),
    (40, "light"),
    (60, "moderate"),
    (80, "heavy"),
    (None, "overcrowded"),
]

# ══════════════════════════════════════════════════════════════════════════════
# ANOMALY DETECTOR: metric scales, starting baselines, advice
# ══════════════════════════════════════════════════════════════════════════════
# Weather and crowd on the detector's own intensity scales, not the 0-10
# severity tables, so baselines stay comparable across table changes.
ANOMALY_WEATHER_INTENSITY = {
    "clear": 0, "sunny": 0, "cloudy": 1, "overcast": 1.5,
    "light_rain": 2, "rainy": 3, "heavy_rain": 4, "hail": 4,
    "thunderstorm": 5, "stormy": 5, "foggy": 3,
    "snow": 3, "blizzard": 5, "tornado": 10, "hurricane": 10,
}
ANOMALY_CROWD_INTENSITY = {
    "isolated": 0, "light": 1.5, "moderate": 2.5, "heavy": 3.5,
    "very_heavy": 4, "overcrowded": 5, "dangerous": 6,
}
ANOMALY_VISIBILITY_LEVELS = {
    "excellent": 1.0, "good": 0.8, "fair": 0.6,
    "poor": 0.4, "very_poor": 0.2, "zero": 0.0,
}
ANOMALY_DEFAULTS = {
    "weather_intensity": 1.0,
    "crowd_density": 2.0,
    "visibility": 0.8,
    "temperature": 20.0,
}

ANOMALY_BASELINES = {
    "weather_intensity": {"mean": 0.0,  "std": 1.0,  "min": 0.0,   "max": 5.0},
    "crowd_density":     {"mean": 2.0,  "std": 1.0,  "min": 0.0,   "max": 5.0},
    "visibility":        {"mean": 0.8,  "std": 0.2,  "min": 0.0,   "max": 1.0},
    "temperature":       {"mean": 20.0, "std": 10.0, "min": -20.0, "max": 50.0},
}

# |z| lower bounds, checked top to bottom
ANOMALY_Z_SEVERITY = [
    (4.0, "CRITICAL"),
    (3.5, "HIGH"),
    (2.5, "MEDIUM"),
]
ANOMALY_SEVERITY_WEIGHTS = {"LOW": 1, "MEDIUM": 2, "HIGH": 4, "CRITICAL": 8}

ANOMALY_LEVEL_DESCRIPTIONS = {
    "CRITICAL": "Critical anomalies detected - immediate attention required",
    "HIGH": "High severity anomalies detected",
    "MEDIUM": "Moderate anomalies detected",
    "LOW": "Minor anomalies detected",
    "NORMAL": "No significant anomalies detected",
}

ANOMALY_ADVICE = {
    "critical": [
        "IMMEDIATE ACTION: Assess your safety and consider evacuation",
        "Contact emergency services if in immediate danger",
    ],
    "weather_intensity": "Severe weather detected - seek immediate shelter",
    "visibility": "Extremely poor visibility - stop movement and wait for improvement",
    "environmental_instability": "Environmental conditions are rapidly changing - monitor closely",
    "rapid_risk_increase": "Risk conditions escalating quickly - prepare for emergency action",
    "many": "Multiple anomalies detected - exercise extreme caution",
    "default": "Monitor conditions closely for further anomalies",
}

# ══════════════════════════════════════════════════════════════════════════════
# PREVENTIVE STEPS: confidence boosts and risk reduction per completed step
# ══════════════════════════════════════════════════════════════════════════════
# effectiveness_minutes: how long a completed step keeps reducing risk
PREVENTIVE_STEPS = {
    "seek_shelter": {
        "category": "environmental", "impact_weight": 0.25, "time_sensitivity": "immediate",
        "effectiveness_minutes": 30, "risk_reduction": 0.3, "confidence_boost": 0.2,
    },
    "monitor_weather": {
        "category": "environmental", "impact_weight": 0.15, "time_sensitivity": "moderate",
        "effectiveness_minutes": 15, "risk_reduction": 0.1, "confidence_boost": 0.1,
    },
    "avoid_hazardous_areas": {
        "category": "environmental", "impact_weight": 0.2, "time_sensitivity": "urgent",
        "effectiveness_minutes": 60, "risk_reduction": 0.25, "confidence_boost": 0.15,
    },
    "contact_emergency_services": {
        "category": "communication", "impact_weight": 0.3, "time_sensitivity": "immediate",
        "effectiveness_minutes": 120, "risk_reduction": 0.4, "confidence_boost": 0.25,
    },
    "notify_contacts": {
        "category": "communication", "impact_weight": 0.2, "time_sensitivity": "urgent",
        "effectiveness_minutes": 90, "risk_reduction": 0.15, "confidence_boost": 0.15,
    },
    "share_location": {
        "category": "communication", "impact_weight": 0.15, "time_sensitivity": "moderate",
        "effectiveness_minutes": 60, "risk_reduction": 0.1, "confidence_boost": 0.1,
    },
    "use_safety_equipment": {
        "category": "equipment", "impact_weight": 0.25, "time_sensitivity": "urgent",
        "effectiveness_minutes": 180, "risk_reduction": 0.3, "confidence_boost": 0.2,
    },
    "check_equipment": {
        "category": "equipment", "impact_weight": 0.1, "time_sensitivity": "low",
        "effectiveness_minutes": 30, "risk_reduction": 0.05, "confidence_boost": 0.05,
    },
    "evacuate_area": {
        "category": "movement", "impact_weight": 0.35, "time_sensitivity": "immediate",
        "effectiveness_minutes": 240, "risk_reduction": 0.5, "confidence_boost": 0.3,
    },
    "move_to_safety": {
        "category": "movement", "impact_weight": 0.25, "time_sensitivity": "urgent",
        "effectiveness_minutes": 120, "risk_reduction": 0.3, "confidence_boost": 0.2,
    },
    "stay_in_groups": {
        "category": "movement", "impact_weight": 0.15, "time_sensitivity": "moderate",
        "effectiveness_minutes": 90, "risk_reduction": 0.15, "confidence_boost": 0.1,
    },
    "continuous_monitoring": {
        "category": "monitoring", "impact_weight": 0.2, "time_sensitivity": "moderate",
        "effectiveness_minutes": 45, "risk_reduction": 0.2, "confidence_boost": 0.15,
    },
    "situational_awareness": {
        "category": "monitoring", "impact_weight": 0.15, "time_sensitivity": "low",
        "effectiveness_minutes": 60, "risk_reduction": 0.1, "confidence_boost": 0.1,
    },
}

# Boost multipliers: completing a time-critical step counts for more
TIME_SENSITIVITY_BOOST = {"immediate": 1.3, "urgent": 1.2, "moderate": 1.0, "low": 0.9}
RISK_LEVEL_BOOST = {"LOW": 0.8, "MEDIUM": 1.0, "HIGH": 1.3, "CRITICAL": 1.5}

# Priority multipliers for recommending the next step
RISK_LEVEL_PRIORITY = {"LOW": 0.5, "MEDIUM": 1.0, "HIGH": 1.5, "CRITICAL": 2.0}
TIME_SENSITIVITY_PRIORITY = {"immediate": 2.0, "urgent": 1.5, "moderate": 1.0, "low": 0.7}

NEXT_PHASE_STEPS = ["continuous_monitoring", "situational_awareness", "check_equipment"]
