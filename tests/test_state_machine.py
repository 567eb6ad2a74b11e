import time

import pytest

from risk_model.errors import ValidationError
from risk_model.models import RiskAssessment
from risk_model.state_machine import StateController


def _assessment(level, risk_score=3.0):
    return RiskAssessment(
        risk_score=risk_score,
        risk_level=level,
        factor_scores=(),
        confidence=0.7,
        recommendations=(),
        timestamp=time.time(),
    )


@pytest.fixture
def controller(scheduler):
    c = StateController(scheduler)
    c.start()
    scheduler.advance(1000)
    return c


def test_start_initializes_then_monitors(scheduler):
    c = StateController(scheduler)
    assert c.start() is True
    assert c.current_state == "INITIALIZING"
    scheduler.advance(999)
    assert c.current_state == "INITIALIZING"
    scheduler.advance(1)
    assert c.current_state == "MONITORING"
    assert c.start() is False


def test_rejected_transition_leaves_state_unchanged(controller):
    history_len = len(controller.history)
    assert controller.transition("EMERGENCY_MODE") is False
    assert controller.transition("NOT_A_STATE") is False
    assert controller.current_state == "MONITORING"
    assert len(controller.history) == history_len


def test_assessment_drives_state(controller):
    assert controller.process_risk_assessment(_assessment("LOW")) is True
    assert controller.current_state == "LOW_RISK"
    assert controller.process_risk_assessment(_assessment("LOW")) is False
    assert controller.process_risk_assessment(_assessment("MEDIUM")) is True
    assert controller.current_state == "MEDIUM_RISK"


def test_high_score_or_critical_anomaly_goes_critical(controller):
    assert controller.process_risk_assessment(_assessment("HIGH", 8.2)) is True
    assert controller.current_state == "CRITICAL_RISK"
    controller.force_transition("MONITORING")
    controller.process_risk_assessment(_assessment("LOW"), anomalies=[{"severity": "critical"}])
    assert controller.current_state == "CRITICAL_RISK"


def test_disallowed_level_jump_is_refused(controller):
    controller.process_risk_assessment(_assessment("HIGH", 5.0))
    assert controller.current_state == "HIGH_RISK"
    # HIGH_RISK cannot drop straight to LOW_RISK
    assert controller.process_risk_assessment(_assessment("LOW")) is False
    assert controller.current_state == "HIGH_RISK"


def test_single_monitoring_timer_at_state_interval(controller, scheduler):
    cycles = []
    controller.register_handler("monitoring_cycle", lambda payload: cycles.append(payload["state"]))

    controller.process_risk_assessment(_assessment("HIGH", 5.0))      # 5000 ms polling
    scheduler.advance(10000)
    assert cycles == ["HIGH_RISK", "HIGH_RISK"]

    controller.process_risk_assessment(_assessment("CRITICAL", 9.0))  # 2000 ms polling
    assert scheduler.pending() == 1
    scheduler.advance(4000)
    assert cycles[2:] == ["CRITICAL_RISK", "CRITICAL_RISK"]


def test_states_without_polling_run_no_timer(controller, scheduler):
    controller.transition("MAINTENANCE")
    assert scheduler.pending() == 0


def test_auto_actions_dispatched_on_entry(controller):
    seen = []
    controller.register_handler("auto_send_location", lambda p: seen.append("send_location"))
    controller.register_handler("auto_log_incident", lambda p: seen.append("log_incident"))
    controller.process_risk_assessment(_assessment("HIGH", 5.0))
    assert seen == ["send_location", "log_incident"]
    actions = [d["action"] for d in controller.dispatched]
    assert "auto_send_location" in actions
    assert "MONITORING_cleanup" in actions


def test_listener_errors_are_contained(controller):
    events = []

    def bad(event):
        raise RuntimeError("listener broke")

    controller.add_listener(bad)
    controller.add_listener(events.append)
    assert controller.process_risk_assessment(_assessment("MEDIUM")) is True
    assert events[-1]["from"] == "MONITORING"
    assert events[-1]["to"] == "MEDIUM_RISK"
    assert events[-1]["behavior"]["polling_interval_ms"] == 15000

    controller.remove_listener(events.append)
    controller.process_risk_assessment(_assessment("LOW"))
    assert events[-1]["to"] == "MEDIUM_RISK"


def test_handler_errors_are_contained(controller):
    def bad(payload):
        raise RuntimeError("handler broke")

    controller.register_handler("auto_send_location", bad)
    assert controller.process_risk_assessment(_assessment("HIGH", 5.0)) is True
    assert controller.current_state == "HIGH_RISK"


def test_emergency_and_recovery(controller):
    assert controller.handle_emergency({"source": "panic_button"}) is False
    controller.process_risk_assessment(_assessment("CRITICAL", 9.5))
    assert controller.handle_emergency({"source": "panic_button"}) is True
    assert controller.current_state == "EMERGENCY_MODE"
    assert controller.context["emergency_data"] == {"source": "panic_button"}
    assert controller.handle_recovery() is True
    assert controller.current_state == "RECOVERY"
    assert controller.previous_state == "EMERGENCY_MODE"


def test_error_handling(controller):
    assert controller.handle_error(RuntimeError("sensor offline")) is True
    assert controller.current_state == "ERROR"
    assert controller.context["error"] == "sensor offline"
    assert controller.handle_error(RuntimeError("again")) is False
    assert controller.transition("MONITORING") is True


def test_force_transition_bypasses_table(controller):
    assert controller.force_transition("EMERGENCY_MODE") is True
    assert controller.current_state == "EMERGENCY_MODE"
    assert controller.history[-1]["forced"] is True
    with pytest.raises(ValidationError):
        controller.force_transition("NOWHERE")


def test_stop_cancels_timers(controller, scheduler):
    controller.process_risk_assessment(_assessment("MEDIUM"))
    assert scheduler.pending() == 1
    controller.stop()
    assert scheduler.pending() == 0
    assert controller.running is False


def test_history_is_bounded(controller):
    for _ in range(40):
        controller.process_risk_assessment(_assessment("LOW"))
        controller.process_risk_assessment(_assessment("MEDIUM"))
    assert len(controller.history) == 50


def test_status(controller, scheduler):
    scheduler.advance(500)
    status = controller.status()
    assert status["state"] == "MONITORING"
    assert status["previous_state"] == "INITIALIZING"
    assert status["duration_ms"] == 500
    assert "LOW_RISK" in status["allowed_transitions"]
    assert status["behavior"]["ui_mode"] == "normal"
