"""
LifeGuard — Settings & Thresholds
==================================
Engine constants. Secrets and deploy knobs are read from the environment
by the server; everything numeric lives here.
"""

# ══════════════════════════════════════════════════════════════════════════════
# FACTORS & DEFAULT WEIGHTS
# ══════════════════════════════════════════════════════════════════════════════
FACTORS = ("weather", "time", "crowd", "visibility", "temperature", "location")

DEFAULT_WEIGHTS = {
    "weather":     0.25,   # Primary hazard driver
    "time":        0.15,   # Darkness, fewer people around
    "crowd":       0.20,   # Crush / isolation exposure
    "visibility":  0.15,   # Inverted: low visibility = high risk
    "temperature": 0.10,   # Exposure risk at the extremes
    "location":    0.15,   # Inherent hazard of the place
}

WEIGHT_MIN = 0.05
WEIGHT_MAX = 0.50

# ══════════════════════════════════════════════════════════════════════════════
# RISK LEVEL THRESHOLDS (adaptive, bounded)
# ══════════════════════════════════════════════════════════════════════════════
RISK_LEVELS = ("LOW", "MEDIUM", "HIGH", "CRITICAL")

DEFAULT_THRESHOLDS = {
    "low_to_medium":  2.5,
    "medium_to_high": 4.0,
}

THRESHOLD_MIN = 1.0
THRESHOLD_MAX = 6.0
THRESHOLD_MIN_GAP = 0.5

# Fixed ceiling: a single hazard factor at or above this forces CRITICAL.
# Never adapted by the learner.
CRITICAL_FACTOR_CEILING = 9.0
CRITICAL_OVERRIDE_FACTORS = ("weather", "crowd")

# HIGH assessments at or above this score drive the controller to CRITICAL_RISK
CRITICAL_STATE_SCORE = 8.0

SCORE_SCALE = 10.0
DEFAULT_CONFIDENCE = 0.7

# ══════════════════════════════════════════════════════════════════════════════
# ADAPTIVE LEARNER
# ══════════════════════════════════════════════════════════════════════════════
ADAPTATION_THRESHOLD = 5          # Adapt on every 5th recorded outcome
LEARNING_RATE        = 0.05
MAX_WEIGHT_DELTA     = 0.10
CONFIDENCE_DECAY     = 0.95       # Recency weight per day of outcome age
TARGET_PERFORMANCE   = 0.70
FACTOR_SIGNAL_SCORE  = 4.0        # Factor score that "predicts" non-LOW risk

MIN_OUTCOMES_FOR_CONFIDENCE = 3
CONFIDENCE_WINDOW           = 10
CONFIDENCE_FLOOR            = 0.30
CONFIDENCE_CEILING          = 0.95

FALSE_POSITIVE_HIGH = 0.3         # Above → raise thresholds
FALSE_POSITIVE_LOW  = 0.1         # Below → lower thresholds
THRESHOLD_RAISE = {"medium_to_high": 0.2,  "low_to_medium": 0.1}
THRESHOLD_LOWER = {"medium_to_high": -0.1, "low_to_medium": -0.05}

# ══════════════════════════════════════════════════════════════════════════════
# BOUNDED HISTORIES (most-recent-N retention)
# ══════════════════════════════════════════════════════════════════════════════
PREDICTION_HISTORY_MAX = 100
OUTCOME_HISTORY_MAX    = 200
ADAPTATION_HISTORY_MAX = 50
STATE_HISTORY_MAX      = 50
SIMULATION_HISTORY_MAX = 100

# ══════════════════════════════════════════════════════════════════════════════
# STATE CONTROLLER
# ══════════════════════════════════════════════════════════════════════════════
INITIALIZATION_DELAY_MS = 1000

# ══════════════════════════════════════════════════════════════════════════════
# SIMULATION
# ══════════════════════════════════════════════════════════════════════════════
MAX_HOURS_AHEAD      = 48
MAX_INTERVAL_MINUTES = 240
SIM_CONFIDENCE_BASE  = 0.95
SIM_CONFIDENCE_DECAY = 0.05       # Per simulated hour
SIM_CONFIDENCE_FLOOR = 0.30
SIM_VOLATILE_STDEV   = 1.5

# ══════════════════════════════════════════════════════════════════════════════
# ANOMALY DETECTOR
# ══════════════════════════════════════════════════════════════════════════════
ANOMALY_WINDOW          = 10      # Stored points = 2 × window
ANOMALY_Z_THRESHOLD     = 2.5     # |z| above this is an anomaly
ANOMALY_MIN_POINTS      = 5       # No z-score checks before this many points
ANOMALY_MAX_SCORE       = 10.0
ANOMALY_BASELINE_ALPHA  = 0.1     # EMA rate for baseline mean / std
ANOMALY_STD_FLOOR       = 0.25    # Fraction of the initial std a baseline may shrink to
ANOMALY_HISTORY_MAX     = 100
INSTABILITY_THRESHOLD   = 0.3     # Environmental stability below this is flagged
RAPID_RISK_DELTA        = 2.0     # Score jump between assessments flagged as rapid

# ══════════════════════════════════════════════════════════════════════════════
# PRECAUTION TRACKER (confidence from completed preventive steps)
# ══════════════════════════════════════════════════════════════════════════════
PRECAUTION_BASE_CONFIDENCE = 0.5
PRECAUTION_MAX_CONFIDENCE  = 0.95
PRECAUTION_MIN_CONFIDENCE  = 0.1
PRECAUTION_DECAY_PER_TICK  = 0.02
PRECAUTION_DECAY_MS        = 60000    # One decay tick per minute
PRECAUTION_MAX_BOOST       = 0.3
PRECAUTION_HISTORY_MAX     = 100
PRECAUTION_CONTEXT_BLEND   = 0.3      # Share of assessment confidence blended in

# ══════════════════════════════════════════════════════════════════════════════
# UPSTREAM FEEDS (WeatherAPI.com: single source)
# ══════════════════════════════════════════════════════════════════════════════
WEATHER_API_URL  = "http://api.weatherapi.com/v1/current.json"
WEATHER_CITY     = "Delhi"
WEATHER_POLL_SEC = 600       # 10 minutes
WEATHER_TIMEOUT_SEC = 10

# ══════════════════════════════════════════════════════════════════════════════
# ADVISORY (Gemini REST)
# ══════════════════════════════════════════════════════════════════════════════
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
GEMINI_TIMEOUT_SEC = 15

# ══════════════════════════════════════════════════════════════════════════════
# SERVER
# ══════════════════════════════════════════════════════════════════════════════
SERVER_HOST = "0.0.0.0"
SERVER_PORT = 8000
ENGINE_TICK_MS = 250         # Real-time step fed into the virtual clock
WS_PUSH_SEC = 4
