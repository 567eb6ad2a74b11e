"""
LifeGuard — Risk Engine
The one object callers hold. Owns the scheduler, the WeightSet, the
learner, the state controller, the anomaly detector, the precaution
tracker and the latest assessment, and wires the data flow:
raw signals → normalize → score → {breakdown, anomalies → controller, precautions}.

Everything runs on the caller's thread. assess() scores and drives the
controller in one call, so an assessment and its transition never
interleave with a timer callback.
"""
import logging
from collections import deque
from datetime import datetime

from config.settings import SIMULATION_HISTORY_MAX
from risk_model import breakdown as breakdown_analyzer
from risk_model import predictor
from risk_model.anomaly import AnomalyDetector
from risk_model.errors import ValidationError
from risk_model.feeds import crowd_level_from_places, weather_snapshot_to_raw
from risk_model.learner import AdaptiveWeightLearner
from risk_model.models import WeightSet
from risk_model.normalizer import normalize
from risk_model.precautions import PrecautionTracker
from risk_model.scheduler import Scheduler
from risk_model.scorer import score
from risk_model.state_machine import StateController

logger = logging.getLogger(__name__)

# Left only through handle_recovery, never by a background re-assessment
HELD_STATES = ("EMERGENCY_MODE",)


class RiskEngine:

    def __init__(self, scheduler=None, weights=None, autostart=True):
        self.scheduler = scheduler or Scheduler()
        self.weights = weights or WeightSet()
        self.learner = AdaptiveWeightLearner(self.weights, clock=self.scheduler.now)
        self.controller = StateController(self.scheduler)
        self.controller.register_handler("monitoring_cycle", self._monitoring_cycle)
        self.anomalies = AnomalyDetector(clock=self.scheduler.now)
        self.precautions = PrecautionTracker(self.scheduler, self.weights, autostart=autostart)

        self.latest_conditions = None
        self.latest_assessment = None
        self.latest_prediction_id = None
        self.latest_anomalies = None
        self.feeds = {"weather": None, "crowd": None}
        self.simulations = deque(maxlen=SIMULATION_HISTORY_MAX)
        self.cycles = 0

        if autostart:
            self.controller.start()

    # ── Assessment ──────────────────────────────────────────────────────────

    def assess(self, raw, anomalies=None):
        """
        Normalize, score, record the prediction, run anomaly detection and
        drive the controller. Caller-supplied anomalies are passed through
        ahead of the detected ones.

        Returns:
            (PredictionRecord, transitioned)
        """
        conditions = normalize(raw)
        assessment = score(conditions, self.weights, self.learner, timestamp=self.scheduler.now())
        prediction = self.learner.record_prediction(assessment)
        detection = self.anomalies.detect(conditions, assessment)
        combined = list(anomalies or []) + detection["anomalies"]
        transitioned = self.controller.process_risk_assessment(assessment, combined)
        self.precautions.update_context(assessment)

        self.latest_anomalies = detection
        self.latest_conditions = conditions
        self.latest_assessment = assessment
        self.latest_prediction_id = prediction.id
        logger.info(
            "Assessed %s (score %.1f) → state %s",
            assessment.risk_level, assessment.risk_score, self.controller.current_state,
        )
        return prediction, transitioned

    def current_raw(self):
        """Latest conditions with feed readings layered on top, or None."""
        base = self.latest_conditions.to_dict() if self.latest_conditions else {}
        if self.feeds["weather"]:
            base.update(self.feeds["weather"])
        if self.feeds["crowd"]:
            base["crowd_density"] = self.feeds["crowd"]
        if not base.get("weather"):
            return None
        # Re-assessments happen now, whatever time the last input described
        base["time_of_day"] = datetime.fromtimestamp(self.scheduler.now()).hour
        return base

    def reassess(self):
        raw = self.current_raw()
        if raw is None:
            return None
        return self.assess(raw)

    def _monitoring_cycle(self, payload):
        self.cycles += 1
        if self.controller.current_state in HELD_STATES:
            return
        raw = self.current_raw()
        if raw is None:
            return
        conditions = normalize(raw)
        assessment = score(conditions, self.weights, self.learner, timestamp=self.scheduler.now())
        self.latest_conditions = conditions
        self.latest_assessment = assessment
        self.controller.process_risk_assessment(assessment)

    # ── Feedback ────────────────────────────────────────────────────────────

    def record_outcome(self, prediction_id, outcome):
        return self.learner.record_outcome(prediction_id, outcome)

    # ── Explainability & projection ─────────────────────────────────────────

    def breakdown(self, prediction_id=None):
        if prediction_id:
            prediction = self.learner.get_prediction(prediction_id)
            if prediction is None:
                raise ValidationError(f"Unknown prediction id: {prediction_id}")
        else:
            prediction = self.learner.latest_prediction()
            if prediction is None:
                raise ValidationError("No assessment available yet")
        assessment = prediction.assessment
        report = breakdown_analyzer.analyze(assessment.conditions, prediction.weights, assessment)
        report["prediction_id"] = prediction.id
        return report

    def _baseline(self, conditions):
        if conditions is not None:
            return conditions
        if self.latest_conditions is None:
            raise ValidationError("No conditions given and no assessment available yet")
        return self.latest_conditions

    def simulate(self, conditions=None, trend_params=None, hours_ahead=6,
                 interval_minutes=30, seed=None, start_time=None):
        result = predictor.simulate(
            self._baseline(conditions),
            trend_params,
            hours_ahead=hours_ahead,
            interval_minutes=interval_minutes,
            start_time=start_time or datetime.fromtimestamp(self.scheduler.now()),
            seed=seed,
            weights=self.weights,
        )
        self.simulations.append({
            "timestamp": self.scheduler.now(),
            "hours_ahead": hours_ahead,
            "interval_minutes": interval_minutes,
            "trend_direction": result["trend_analysis"]["trend_direction"],
            "peak_level": result["trend_analysis"]["peak_risk"]["level"],
        })
        return result

    def what_if(self, modifications=None, conditions=None, template=None):
        if template:
            modifications = {**predictor.template(template), **(modifications or {})}
        if not modifications:
            raise ValidationError("Provide modifications or a template name")
        return predictor.what_if(self._baseline(conditions), modifications, self.weights)

    def compare_scenarios(self, scenarios, conditions=None):
        return predictor.compare_scenarios(self._baseline(conditions), scenarios, self.weights)

    # ── Upstream feeds ──────────────────────────────────────────────────────

    def update_weather(self, snapshot):
        self.feeds["weather"] = weather_snapshot_to_raw(snapshot)
        return self.reassess()

    def update_crowd(self, snapshot):
        self.feeds["crowd"] = crowd_level_from_places(snapshot)
        return self.reassess()

    # ── Controller & time ───────────────────────────────────────────────────

    def tick(self, ms):
        return self.scheduler.advance(ms)

    def state(self):
        return self.controller.status()

    def snapshot(self):
        return {
            "state": self.controller.current_state,
            "behavior": self.controller.behavior(),
            "assessment": self.latest_assessment.to_dict() if self.latest_assessment else None,
            "prediction_id": self.latest_prediction_id,
            "anomaly_severity": self.latest_anomalies["severity"]["level"] if self.latest_anomalies else None,
            "confidence": round(self.precautions.confidence, 4),
            "weights": self.weights.to_dict(),
            "timestamp": self.scheduler.now(),
        }
