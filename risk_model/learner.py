"""
LifeGuard — Adaptive Weight Learner
Pairs predictions with observed outcomes and nudges the WeightSet toward
factors that have been right recently.

Adaptation runs on every Nth recorded outcome (N = ADAPTATION_THRESHOLD),
counted over the lifetime of the learner, not over the bounded history.
"""
import logging
import time
import uuid
from collections import OrderedDict, deque

from config.settings import (
    ADAPTATION_HISTORY_MAX, ADAPTATION_THRESHOLD, CONFIDENCE_CEILING,
    CONFIDENCE_DECAY, CONFIDENCE_FLOOR, CONFIDENCE_WINDOW, DEFAULT_CONFIDENCE,
    FACTOR_SIGNAL_SCORE, FACTORS, FALSE_POSITIVE_HIGH, FALSE_POSITIVE_LOW,
    LEARNING_RATE, MAX_WEIGHT_DELTA, MIN_OUTCOMES_FOR_CONFIDENCE,
    OUTCOME_HISTORY_MAX, PREDICTION_HISTORY_MAX, RISK_LEVELS, THRESHOLD_LOWER,
    THRESHOLD_MAX, THRESHOLD_MIN, THRESHOLD_MIN_GAP, THRESHOLD_RAISE,
    TARGET_PERFORMANCE, WEIGHT_MAX, WEIGHT_MIN,
)
from config.tables import CAUTION_NOTE
from risk_model.errors import ValidationError
from risk_model.models import OutcomeRecord, PredictionRecord

logger = logging.getLogger(__name__)

INCIDENT_LEVELS = ("HIGH", "CRITICAL")
SECONDS_PER_DAY = 86400.0


def _clamp(value, low, high):
    return max(low, min(high, value))


def level_distance(a, b):
    """Ordinal distance on LOW < MEDIUM < HIGH < CRITICAL."""
    return abs(RISK_LEVELS.index(a) - RISK_LEVELS.index(b))


def calculate_accuracy(predicted_level, actual_level, incident_occurred, environmental_accuracy=1.0):
    """
    Accuracy of one prediction, 0-1.
      0.6 exact level (minus 0.3 per ordinal step of error)
    + 0.3 when "incident predicted" agrees with what happened
    + 0.1 × environmental accuracy
    """
    distance = level_distance(predicted_level, actual_level)
    accuracy = 0.6 if distance == 0 else max(0.0, 0.6 - 0.3 * distance)
    if (predicted_level in INCIDENT_LEVELS) == bool(incident_occurred):
        accuracy += 0.3
    accuracy += 0.1 * _clamp(environmental_accuracy, 0.0, 1.0)
    return _clamp(accuracy, 0.0, 1.0)


def project_weights(weights, low=WEIGHT_MIN, high=WEIGHT_MAX):
    """
    Clamp every weight into [low, high] and rescale to sum 1.0 with the
    bounds still held. Each pass spreads the residual over the weights that
    can still move; at most one pass per factor is needed.
    """
    projected = {f: _clamp(w, low, high) for f, w in weights.items()}
    for _ in range(len(projected) + 1):
        residual = 1.0 - sum(projected.values())
        if abs(residual) < 1e-12:
            break
        if residual > 0:
            free = [f for f, w in projected.items() if w < high]
        else:
            free = [f for f, w in projected.items() if w > low]
        if not free:
            break
        share = residual / len(free)
        for f in free:
            projected[f] = _clamp(projected[f] + share, low, high)
    return projected


class AdaptiveWeightLearner:
    """
    Owns the prediction/outcome histories and is the only writer of the
    engine's WeightSet.
    """

    def __init__(self, weights, clock=time.time,
                 adaptation_threshold=ADAPTATION_THRESHOLD,
                 learning_rate=LEARNING_RATE,
                 max_weight_delta=MAX_WEIGHT_DELTA,
                 confidence_decay=CONFIDENCE_DECAY,
                 target_performance=TARGET_PERFORMANCE):
        self.weights = weights
        self._clock = clock
        self.adaptation_threshold = adaptation_threshold
        self.learning_rate = learning_rate
        self.max_weight_delta = max_weight_delta
        self.confidence_decay = confidence_decay
        self.target_performance = target_performance

        self.predictions = OrderedDict()                          # id → PredictionRecord
        self.outcomes = deque(maxlen=OUTCOME_HISTORY_MAX)         # (PredictionRecord, OutcomeRecord)
        self.adaptation_history = deque(maxlen=ADAPTATION_HISTORY_MAX)
        self.outcome_count = 0
        self.metrics = {
            "total": 0,
            "correct": 0,
            "false_positives": 0,
            "false_negatives": 0,
        }

    # ── Predictions ─────────────────────────────────────────────────────────

    def record_prediction(self, assessment, weights=None):
        record = PredictionRecord(
            id=uuid.uuid4().hex[:12],
            assessment=assessment,
            weights=(weights or self.weights).copy(),
            timestamp=self._clock(),
        )
        self.predictions[record.id] = record
        while len(self.predictions) > PREDICTION_HISTORY_MAX:
            self.predictions.popitem(last=False)
        return record

    def get_prediction(self, prediction_id):
        return self.predictions.get(prediction_id)

    def latest_prediction(self):
        if not self.predictions:
            return None
        return next(reversed(self.predictions.values()))

    # ── Outcomes ────────────────────────────────────────────────────────────

    def record_outcome(self, prediction_id, outcome):
        """
        Pair an observed outcome with an earlier prediction.

        Returns:
            {success, accuracy, adapted, new_weights?, outcome_count}
            or {success: False, error} for an unknown or already-closed id.
        """
        prediction = self.predictions.get(prediction_id)
        if prediction is None:
            return {"success": False, "error": f"Unknown prediction id: {prediction_id}"}
        if not prediction.awaiting_outcome:
            return {"success": False, "error": f"Outcome already recorded for {prediction_id}"}

        actual = str(outcome.get("actual_risk_level") or "").strip().upper()
        if actual not in RISK_LEVELS:
            raise ValidationError(
                f"actual_risk_level must be one of {', '.join(RISK_LEVELS)}"
            )
        env_raw = outcome.get("environmental_accuracy")
        if env_raw is None:
            env_accuracy = 1.0
        else:
            try:
                env_accuracy = _clamp(float(env_raw), 0.0, 1.0)
            except (TypeError, ValueError):
                raise ValidationError("environmental_accuracy must be a number between 0 and 1")

        incident = bool(outcome.get("incident_occurred", False))
        predicted = prediction.assessment.risk_level
        accuracy = calculate_accuracy(predicted, actual, incident, env_accuracy)

        record = OutcomeRecord(
            prediction_id=prediction_id,
            actual_risk_level=actual,
            incident_occurred=incident,
            accuracy=accuracy,
            timestamp=self._clock(),
            incident_severity=outcome.get("incident_severity"),
            user_feedback=outcome.get("user_feedback"),
            environmental_accuracy=env_accuracy,
        )
        prediction.awaiting_outcome = False
        self.outcomes.append((prediction, record))
        self.outcome_count += 1
        self._update_metrics(predicted, actual, accuracy)

        result = {
            "success": True,
            "prediction_id": prediction_id,
            "accuracy": round(accuracy, 3),
            "adapted": False,
            "outcome_count": self.outcome_count,
        }
        if self.outcome_count % self.adaptation_threshold == 0:
            self.adapt()
            result["adapted"] = True
            result["new_weights"] = self.weights.to_dict()
        return result

    def _update_metrics(self, predicted, actual, accuracy):
        self.metrics["total"] += 1
        if accuracy >= TARGET_PERFORMANCE:
            self.metrics["correct"] += 1
        if predicted in INCIDENT_LEVELS and actual not in INCIDENT_LEVELS:
            self.metrics["false_positives"] += 1
        elif predicted not in INCIDENT_LEVELS and actual in INCIDENT_LEVELS:
            self.metrics["false_negatives"] += 1

    # ── Adaptation ──────────────────────────────────────────────────────────

    def _recent(self):
        window = 2 * self.adaptation_threshold
        return list(self.outcomes)[-window:]

    def factor_performance(self, recent=None):
        """
        Recency-weighted hit rate per factor. A factor "predicts" risk when its
        score reaches FACTOR_SIGNAL_SCORE; it is right when that matches
        whether the actual level was above LOW.
        """
        recent = self._recent() if recent is None else recent
        now = self._clock()
        performance = {}
        for factor in FACTORS:
            hits = 0.0
            total = 0.0
            for prediction, outcome in recent:
                age_days = max(0.0, (now - outcome.timestamp) / SECONDS_PER_DAY)
                weight = self.confidence_decay ** age_days
                signal = prediction.assessment.scores().get(factor, 0.0) >= FACTOR_SIGNAL_SCORE
                right = signal == (outcome.actual_risk_level != "LOW")
                hits += weight * right
                total += weight
            performance[factor] = hits / total if total > 0 else 0.5
        return performance

    def false_positive_rate(self, recent=None):
        recent = self._recent() if recent is None else recent
        flagged = [o for p, o in recent if p.assessment.risk_level in INCIDENT_LEVELS]
        if not flagged:
            return 0.0
        wrong = sum(1 for o in flagged if o.actual_risk_level not in INCIDENT_LEVELS)
        return wrong / len(flagged)

    def adapt(self):
        recent = self._recent()
        performance = self.factor_performance(recent)
        old_weights = dict(self.weights.weights)

        stepped = {}
        for factor, weight in old_weights.items():
            delta = _clamp(
                self.learning_rate * (performance.get(factor, 0.5) - self.target_performance),
                -self.max_weight_delta, self.max_weight_delta,
            )
            stepped[factor] = weight + delta
        self.weights.weights = project_weights(stepped)

        fp_rate = self.false_positive_rate(recent)
        old_thresholds = self.weights.thresholds()
        if fp_rate > FALSE_POSITIVE_HIGH:
            self._shift_thresholds(THRESHOLD_RAISE)
        elif fp_rate < FALSE_POSITIVE_LOW:
            self._shift_thresholds(THRESHOLD_LOWER)

        entry = {
            "timestamp": self._clock(),
            "outcome_count": self.outcome_count,
            "performance": {f: round(p, 3) for f, p in performance.items()},
            "weight_changes": {
                f: {"old": round(old_weights[f], 4), "new": round(self.weights.weights[f], 4)}
                for f in old_weights
            },
            "false_positive_rate": round(fp_rate, 3),
            "thresholds": {"old": old_thresholds, "new": self.weights.thresholds()},
        }
        self.adaptation_history.append(entry)
        logger.info(
            "Adapted weights after %d outcomes (fp_rate=%.2f, thresholds=%.2f/%.2f)",
            self.outcome_count, fp_rate, self.weights.low_to_medium, self.weights.medium_to_high,
        )
        return entry

    def _shift_thresholds(self, shift):
        low = _clamp(self.weights.low_to_medium + shift["low_to_medium"], THRESHOLD_MIN, THRESHOLD_MAX)
        high = _clamp(self.weights.medium_to_high + shift["medium_to_high"], THRESHOLD_MIN, THRESHOLD_MAX)
        if high - low < THRESHOLD_MIN_GAP:
            low = high - THRESHOLD_MIN_GAP
            if low < THRESHOLD_MIN:
                low = THRESHOLD_MIN
                high = THRESHOLD_MIN + THRESHOLD_MIN_GAP
        self.weights.low_to_medium = round(low, 4)
        self.weights.medium_to_high = round(high, 4)

    # ── Reporting ───────────────────────────────────────────────────────────

    def prediction_confidence(self):
        if self.outcome_count < MIN_OUTCOMES_FOR_CONFIDENCE:
            return DEFAULT_CONFIDENCE
        window = [o.accuracy for _, o in list(self.outcomes)[-CONFIDENCE_WINDOW:]]
        mean = sum(window) / len(window)
        bonus = min(0.2, self.outcome_count * 0.01)
        return _clamp(mean + bonus, CONFIDENCE_FLOOR, CONFIDENCE_CEILING)

    def advisory_notes(self):
        if self.metrics["false_positives"] > self.metrics["false_negatives"]:
            return [CAUTION_NOTE]
        return []

    def stats(self):
        total = self.metrics["total"]
        return {
            "outcome_count": self.outcome_count,
            "pending_predictions": sum(1 for p in self.predictions.values() if p.awaiting_outcome),
            "adaptation_threshold": self.adaptation_threshold,
            "metrics": {
                **self.metrics,
                "accuracy": round(self.metrics["correct"] / total, 3) if total else None,
            },
            "confidence": round(self.prediction_confidence(), 3),
            "weights": self.weights.to_dict(),
            "adaptations": len(self.adaptation_history),
            "last_adaptation": self.adaptation_history[-1] if self.adaptation_history else None,
        }
