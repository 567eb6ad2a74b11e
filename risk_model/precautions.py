"""
LifeGuard — Precaution Tracker
Confidence bookkeeping for the preventive steps a user reports completing.

Each completed step lifts confidence (scaled by urgency, completion quality,
current risk and how many steps of the same category came before) and, for
as long as it stays effective, shaves a share off the latest risk score.
Confidence decays on a scheduler timer and steps expire once their
effectiveness window has passed.
"""
import logging
from collections import deque

from config.settings import (
    PRECAUTION_BASE_CONFIDENCE, PRECAUTION_CONTEXT_BLEND, PRECAUTION_DECAY_MS,
    PRECAUTION_DECAY_PER_TICK, PRECAUTION_HISTORY_MAX, PRECAUTION_MAX_BOOST,
    PRECAUTION_MAX_CONFIDENCE, PRECAUTION_MIN_CONFIDENCE,
)
from config.tables import (
    NEXT_PHASE_STEPS, PREVENTIVE_STEPS, RISK_LEVEL_BOOST, RISK_LEVEL_PRIORITY,
    TIME_SENSITIVITY_BOOST, TIME_SENSITIVITY_PRIORITY,
)
from risk_model.errors import ValidationError
from risk_model.models import WeightSet
from risk_model.scorer import determine_risk_level

logger = logging.getLogger(__name__)

QUALITY_MULTIPLIERS = {
    ("thoroughness", "high"): 1.2,
    ("speed", "fast"): 1.1,
    ("verification", "confirmed"): 1.15,
}
MAX_QUALITY_MULTIPLIER = 1.5
MAX_RECOMMENDED = 5


def _clamp_confidence(value):
    return max(PRECAUTION_MIN_CONFIDENCE, min(PRECAUTION_MAX_CONFIDENCE, value))


def _step(step_id):
    step = PREVENTIVE_STEPS.get(step_id)
    if step is None:
        raise ValidationError(f"Unknown preventive step: {step_id}")
    return step


def quality_multiplier(completion):
    multiplier = 1.0
    for (field, value), factor in QUALITY_MULTIPLIERS.items():
        if completion.get(field) == value:
            multiplier *= factor
    return min(multiplier, MAX_QUALITY_MULTIPLIER)


class PrecautionTracker:

    def __init__(self, scheduler, weights=None, autostart=True):
        self.scheduler = scheduler
        self.weights = weights or WeightSet()
        self.confidence = PRECAUTION_BASE_CONFIDENCE
        self.risk_level = "UNKNOWN"
        self.last_assessment = None
        self.completed = {}               # step_id → completion record
        self.active = {}                  # step_id → started step
        self.history = deque(maxlen=PRECAUTION_HISTORY_MAX)
        self.confidence_history = deque(maxlen=PRECAUTION_HISTORY_MAX)
        self._decay_timer = None
        if autostart:
            self.start()

    def start(self):
        if self._decay_timer is None:
            self._decay_timer = self.scheduler.call_every(PRECAUTION_DECAY_MS, self.apply_decay)
            self._snapshot("initialization")

    def stop(self):
        if self._decay_timer is not None:
            self.scheduler.cancel(self._decay_timer)
            self._decay_timer = None

    # ── Context ─────────────────────────────────────────────────────────────

    def update_context(self, assessment):
        self.last_assessment = assessment
        self.risk_level = assessment.risk_level
        self.confidence = _clamp_confidence(
            self.confidence * (1 - PRECAUTION_CONTEXT_BLEND)
            + assessment.confidence * PRECAUTION_CONTEXT_BLEND
        )

    # ── Steps ───────────────────────────────────────────────────────────────

    def start_step(self, step_id):
        step = _step(step_id)
        now = self.scheduler.now()
        started = {
            "step_id": step_id,
            "started_at": now,
            "expected_completion": now + step["effectiveness_minutes"] * 60,
            "category": step["category"],
        }
        self.active[step_id] = started
        return dict(started)

    def complete_step(self, step_id, completion=None):
        """
        Record a completed step and lift confidence.

        Returns:
            {step_id, confidence_boost, new_confidence, adjusted_assessment,
             micro_decisions, next_steps}
        """
        step = _step(step_id)
        completion = completion or {}
        boost = self.calculate_boost(step, completion)
        previous = self.confidence
        self.confidence = _clamp_confidence(previous + boost)

        record = {
            "step_id": step_id,
            "category": step["category"],
            "timestamp": self.scheduler.now(),
            "completion": dict(completion),
            "previous_confidence": round(previous, 4),
            "boost": round(boost, 4),
            "new_confidence": round(self.confidence, 4),
        }
        self.completed[step_id] = record
        self.active.pop(step_id, None)
        self.history.append(record)

        adjusted = self.adjusted_assessment()
        decisions = self.micro_decisions(step_id, adjusted)
        self._snapshot("step_completion", step_id)
        logger.info(
            "Step %s completed: confidence %.2f → %.2f",
            step_id, previous, self.confidence,
        )
        return {
            "step_id": step_id,
            "confidence_boost": round(boost, 4),
            "new_confidence": round(self.confidence, 4),
            "adjusted_assessment": adjusted,
            "micro_decisions": decisions,
            "next_steps": self.recommended_steps(),
        }

    def calculate_boost(self, step, completion=None):
        same_category = sum(
            1 for record in self.completed.values() if record["category"] == step["category"]
        )
        boost = (
            step["confidence_boost"]
            * TIME_SENSITIVITY_BOOST.get(step["time_sensitivity"], 1.0)
            * quality_multiplier(completion or {})
            * RISK_LEVEL_BOOST.get(self.risk_level, 1.0)
            * max(0.5, 1 - same_category * 0.1)
        )
        return min(boost, PRECAUTION_MAX_BOOST)

    def _effective(self, record, now):
        minutes = PREVENTIVE_STEPS[record["step_id"]]["effectiveness_minutes"]
        return now - record["timestamp"] < minutes * 60

    def adjusted_assessment(self):
        """Latest assessment with effective completed steps taken off the score, or None."""
        if self.last_assessment is None:
            return None
        now = self.scheduler.now()
        reduction = 0.0
        for record in self.completed.values():
            if self._effective(record, now):
                step = PREVENTIVE_STEPS[record["step_id"]]
                reduction += step["risk_reduction"] * step["impact_weight"]
        reduction = min(reduction, 1.0)

        original = self.last_assessment
        adjusted_score = max(0.0, original.risk_score * (1 - reduction))
        if original.escalated:
            level = original.risk_level
        else:
            level = determine_risk_level(adjusted_score, self.weights)[0]
        return {
            "original_score": original.risk_score,
            "adjusted_score": round(adjusted_score, 2),
            "original_level": original.risk_level,
            "adjusted_level": level,
            "risk_reduction": round(reduction, 4),
            "confidence": round(self.confidence, 4),
        }

    # ── Decisions ───────────────────────────────────────────────────────────

    def micro_decisions(self, step_id, adjusted=None):
        decisions = []
        if self.confidence > 0.8:
            decisions.append({
                "type": "continue_current_strategy",
                "message": "Your safety measures are working well. Continue current approach.",
                "priority": "low",
            })
        elif self.confidence < 0.3:
            decisions.append({
                "type": "escalate_safety_measures",
                "message": "Consider additional safety measures or seek help.",
                "priority": "high",
                "suggested_steps": ["contact_emergency_services", "notify_contacts"],
            })
        else:
            decisions.append({
                "type": "maintain_vigilance",
                "message": "Good progress. Stay alert and consider next safety steps.",
                "priority": "medium",
            })

        if adjusted and adjusted["adjusted_level"] != adjusted["original_level"]:
            decisions.append({
                "type": "risk_level_change",
                "message": (
                    f"Risk level reduced from {adjusted['original_level']} "
                    f"to {adjusted['adjusted_level']} after {step_id}."
                ),
                "priority": "info",
            })

        if self.completion_rate() > 0.7:
            decisions.append({
                "type": "prepare_next_phase",
                "message": "Most preventive steps completed. Prepare for the next phase.",
                "priority": "low",
                "suggested_steps": list(NEXT_PHASE_STEPS),
            })

        if self.risk_level in ("HIGH", "CRITICAL") and self.confidence < 0.5:
            decisions.append({
                "type": "seek_immediate_help",
                "message": "High risk with low confidence. Seek immediate assistance.",
                "priority": "critical",
                "suggested_steps": ["contact_emergency_services", "move_to_safety"],
            })
        return decisions

    def step_priority(self, step_id, risk_level=None):
        step = PREVENTIVE_STEPS[step_id]
        return (
            step["impact_weight"]
            * RISK_LEVEL_PRIORITY.get(risk_level or self.risk_level, 1.0)
            * TIME_SENSITIVITY_PRIORITY.get(step["time_sensitivity"], 1.0)
        )

    def recommended_steps(self, risk_level=None):
        """Top pending steps by priority, damping categories already well covered."""
        done_by_category = {}
        for record in self.completed.values():
            done_by_category[record["category"]] = done_by_category.get(record["category"], 0) + 1

        candidates = []
        for step_id, step in PREVENTIVE_STEPS.items():
            if step_id in self.completed:
                continue
            priority = self.step_priority(step_id, risk_level)
            if done_by_category.get(step["category"], 0) > 2:
                priority *= 0.8
            candidates.append({
                "step_id": step_id,
                "category": step["category"],
                "priority": round(priority, 4),
                "time_sensitivity": step["time_sensitivity"],
            })
        candidates.sort(key=lambda c: (-c["priority"], c["step_id"]))
        return candidates[:MAX_RECOMMENDED]

    def completion_rate(self):
        done = len(self.completed)
        pending = len(self.recommended_steps())
        if done + pending == 0:
            return 0.0
        return done / (done + pending)

    # ── Decay ───────────────────────────────────────────────────────────────

    def apply_decay(self):
        """One decay tick: lower confidence and drop steps past their effectiveness window."""
        previous = self.confidence
        self.confidence = max(PRECAUTION_MIN_CONFIDENCE, self.confidence - PRECAUTION_DECAY_PER_TICK)

        now = self.scheduler.now()
        expired = [
            step_id for step_id, record in self.completed.items()
            if not self._effective(record, now)
        ]
        for step_id in expired:
            del self.completed[step_id]
        if expired:
            logger.debug("Expired preventive steps: %s", ", ".join(expired))

        if self.confidence != previous or expired:
            self._snapshot("decay")

    def _snapshot(self, trigger, step_id=None):
        self.confidence_history.append({
            "timestamp": self.scheduler.now(),
            "confidence": round(self.confidence, 4),
            "trigger": trigger,
            "step_id": step_id,
        })

    def confidence_trend(self):
        recent = list(self.confidence_history)[-5:]
        if len(recent) < 2:
            return "stable"
        change = recent[-1]["confidence"] - recent[0]["confidence"]
        if change > 0.1:
            return "improving"
        if change < -0.1:
            return "declining"
        return "stable"

    # ── Introspection ───────────────────────────────────────────────────────

    def status(self):
        return {
            "confidence": round(self.confidence, 4),
            "risk_level": self.risk_level,
            "completed_steps": [dict(r) for r in self.completed.values()],
            "active_steps": [dict(s) for s in self.active.values()],
            "completion_rate": round(self.completion_rate(), 4),
            "confidence_trend": self.confidence_trend(),
            "recommended_steps": self.recommended_steps(),
            "adjusted_assessment": self.adjusted_assessment(),
        }
