import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from risk_model.engine import RiskEngine
from risk_model.models import WeightSet
from risk_model.scheduler import Scheduler


class FakeClock:
    """Settable clock in seconds for learner tests."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance_days(self, days):
        self.now += days * 86400


SCENARIO_CALM = {
    "weather": "clear",
    "time_of_day": "afternoon",
    "crowd_density": "light",
    "visibility": 0.9,
    "temperature": 20,
}

SCENARIO_SEVERE = {
    "weather": "thunderstorm",
    "time_of_day": "late_night",
    "crowd_density": "overcrowded",
    "visibility": 0.2,
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return Scheduler(start_ms=0)


@pytest.fixture
def weights():
    return WeightSet()


@pytest.fixture
def engine(scheduler):
    return RiskEngine(scheduler=scheduler)


@pytest.fixture
def monitoring_engine(engine):
    """Engine already past initialization."""
    engine.tick(1000)
    assert engine.controller.current_state == "MONITORING"
    return engine
