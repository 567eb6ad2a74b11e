"""
LifeGuard — State Controller
Maps assessed risk to application behavior through a fixed state table.
States: INITIALIZING → MONITORING → {LOW,MEDIUM,HIGH,CRITICAL}_RISK →
EMERGENCY_MODE → RECOVERY, plus MAINTENANCE and ERROR.

Only transitions listed in config/states.py are taken; anything else is
refused and leaves the state untouched. Each state runs at most one
monitoring timer on the shared Scheduler.
"""
import logging
from collections import deque

from config.settings import CRITICAL_STATE_SCORE, INITIALIZATION_DELAY_MS, STATE_HISTORY_MAX
from config.states import LEVEL_TO_STATE, STATES
from risk_model.errors import ValidationError

logger = logging.getLogger(__name__)


class StateController:
    """
    Listeners are called as listener(event_dict) after every transition.
    Named handlers are looked up for "monitoring_cycle", "auto_<action>" and
    "<STATE>_cleanup"; a missing handler is a no-op.
    """

    def __init__(self, scheduler, states=None):
        self.scheduler = scheduler
        self.states = states or STATES
        self.current_state = None
        self.previous_state = None
        self.context = {}
        self.entry_time_ms = None
        self.transition_count = 0
        self.running = False
        self.history = deque(maxlen=STATE_HISTORY_MAX)
        self.dispatched = deque(maxlen=STATE_HISTORY_MAX)
        self._listeners = []
        self._handlers = {}
        self._monitor_timer = None
        self._init_timer = None

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def start(self):
        if self.running:
            return False
        self.running = True
        self._execute("INITIALIZING", {"reason": "startup"})
        self._init_timer = self.scheduler.call_later(
            INITIALIZATION_DELAY_MS,
            lambda: self.transition("MONITORING", {"reason": "initialized"}),
        )
        return True

    def stop(self):
        self._cancel_timers()
        self.running = False
        logger.info("State controller stopped in %s", self.current_state)

    def reset(self):
        self.stop()
        self.history.clear()
        self.transition_count = 0
        self.current_state = None
        self.previous_state = None
        self.start()

    def _cancel_timers(self):
        if self._monitor_timer is not None:
            self.scheduler.cancel(self._monitor_timer)
            self._monitor_timer = None
        if self._init_timer is not None:
            self.scheduler.cancel(self._init_timer)
            self._init_timer = None

    # ── Transitions ─────────────────────────────────────────────────────────

    def is_allowed(self, target):
        if target not in self.states:
            return False
        if self.current_state is None:
            return True
        return target in self.states[self.current_state]["transitions"]

    def transition(self, target, context=None):
        """Take a table transition. Returns False (state unchanged) if refused."""
        if target not in self.states:
            logger.warning("Rejected transition to unknown state %r", target)
            return False
        if not self.is_allowed(target):
            logger.info("Rejected transition %s → %s", self.current_state, target)
            return False
        self._execute(target, context or {})
        return True

    def force_transition(self, target, context=None):
        """Maintenance override: bypasses the table. Unknown states still raise."""
        if target not in self.states:
            raise ValidationError(f"Invalid state: {target}")
        logger.warning("Forced transition %s → %s", self.current_state, target)
        self._execute(target, {**(context or {}), "forced": True, "reason": "manual_override"})
        return True

    def _execute(self, target, context):
        previous = self.current_state
        if previous is not None:
            self._exit(previous)

        self.history.append({
            "from": previous,
            "to": target,
            "timestamp": self.scheduler.now(),
            "reason": context.get("reason"),
            "forced": bool(context.get("forced")),
        })
        self.previous_state = previous
        self.current_state = target
        self.context = context
        self.entry_time_ms = self.scheduler.now_ms
        self.transition_count += 1
        logger.info("State transition: %s → %s", previous, target)

        self._enter(target)
        self._notify({
            "from": previous,
            "to": target,
            "context": context,
            "behavior": self.behavior(),
        })

    def _exit(self, state):
        if self._monitor_timer is not None:
            self.scheduler.cancel(self._monitor_timer)
            self._monitor_timer = None
        if state == "INITIALIZING" and self._init_timer is not None:
            self.scheduler.cancel(self._init_timer)
            self._init_timer = None
        self._dispatch(f"{state}_cleanup", {"state": state})

    def _enter(self, state):
        profile = self.states[state]["behavior"]
        interval = profile["polling_interval_ms"]
        if interval > 0:
            self._monitor_timer = self.scheduler.call_every(interval, self._monitoring_cycle)
        for action in profile["auto_actions"]:
            self._dispatch(f"auto_{action}", {"state": state, "context": self.context})

    def _monitoring_cycle(self):
        self._dispatch("monitoring_cycle", {"state": self.current_state})

    # ── Risk-driven and manual inputs ───────────────────────────────────────

    def target_for(self, assessment, anomalies=None):
        target = LEVEL_TO_STATE[assessment.risk_level]
        if assessment.risk_level == "HIGH" and assessment.risk_score >= CRITICAL_STATE_SCORE:
            target = "CRITICAL_RISK"
        if any(str(a.get("severity", "")).upper() == "CRITICAL" for a in anomalies or ()):
            target = "CRITICAL_RISK"
        return target

    def process_risk_assessment(self, assessment, anomalies=None):
        """Move to the state matching an assessment. False when no transition happened."""
        target = self.target_for(assessment, anomalies)
        if target == self.current_state:
            return False
        return self.transition(target, {
            "reason": "risk_assessment",
            "risk_level": assessment.risk_level,
            "risk_score": assessment.risk_score,
            "anomalies": list(anomalies or []),
        })

    def handle_emergency(self, data=None):
        logger.warning("Emergency escalation triggered")
        return self.transition("EMERGENCY_MODE", {"reason": "emergency_escalation", "emergency_data": data or {}})

    def handle_recovery(self, data=None):
        logger.info("Recovery initiated")
        return self.transition("RECOVERY", {"reason": "emergency_recovery", "recovery_data": data or {}})

    def handle_error(self, error):
        logger.error("Controller error: %s", error)
        if self.current_state == "ERROR":
            return False
        return self.transition("ERROR", {"reason": "error", "error": str(error)})

    # ── Listeners & handlers ────────────────────────────────────────────────

    def add_listener(self, listener):
        self._listeners.append(listener)

    def remove_listener(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def register_handler(self, name, handler):
        self._handlers[name] = handler

    def _notify(self, event):
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("State listener failed")

    def _dispatch(self, name, payload):
        handler = self._handlers.get(name)
        self.dispatched.append({
            "action": name,
            "timestamp": self.scheduler.now(),
            "handled": handler is not None,
        })
        if handler is None:
            return
        try:
            handler(payload)
        except Exception:
            logger.exception("Behavior handler %s failed", name)

    # ── Introspection ───────────────────────────────────────────────────────

    def behavior(self):
        if self.current_state is None:
            return {}
        return dict(self.states[self.current_state]["behavior"])

    def status(self):
        state = self.states.get(self.current_state, {})
        return {
            "state": self.current_state,
            "description": state.get("description"),
            "previous_state": self.previous_state,
            "allowed_transitions": list(state.get("transitions", [])),
            "behavior": self.behavior(),
            "entry_time": self.entry_time_ms / 1000.0 if self.entry_time_ms is not None else None,
            "duration_ms": (
                self.scheduler.now_ms - self.entry_time_ms if self.entry_time_ms is not None else 0
            ),
            "transition_count": self.transition_count,
            "running": self.running,
            "history": list(self.history)[-10:],
        }
