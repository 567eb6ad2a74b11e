import requests

from conftest import SCENARIO_CALM, SCENARIO_SEVERE
from llm_layer import advisor
from risk_model.breakdown import analyze
from risk_model.models import WeightSet
from risk_model.normalizer import normalize
from risk_model.scorer import score


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


def _assess(raw):
    weights = WeightSet()
    conditions = normalize(raw)
    assessment = score(conditions, weights)
    return assessment, analyze(conditions, weights, assessment)


def test_template_advisory_without_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    assessment, report = _assess(SCENARIO_SEVERE)
    result = advisor.generate_advisory(assessment, report)
    assert result["source"] == "template"
    assert result["urgency_level"] == "P2"
    assert "weather" in result["justification"]
    assert result["recommended_actions"] == list(assessment.recommendations[:4])


def test_template_advisory_low_risk(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    assessment, _ = _assess(SCENARIO_CALM)
    result = advisor.generate_advisory(assessment)
    assert result["urgency_level"] == "P4"
    assert result["check_back"] == "Re-check in 1 hour"


def test_gemini_json_response(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    body = {"candidates": [{"content": {"parts": [{"text":
        'Here you go: {"urgency_level": "P2", "headline": "Take shelter", '
        '"recommended_actions": ["Go indoors"], "justification": "Thunderstorm", "check_back": "5 min"}'
    }]}}]}
    captured = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        captured["url"] = url
        captured["prompt"] = json["contents"][0]["parts"][0]["text"]
        return FakeResponse(body)

    monkeypatch.setattr(advisor.requests, "post", fake_post)
    assessment, report = _assess(SCENARIO_SEVERE)
    result = advisor.generate_advisory(assessment, report, question="Is it safe to walk home?")
    assert result["source"] == "gemini"
    assert result["headline"] == "Take shelter"
    assert captured["url"].endswith("key=test-key")
    assert "Is it safe to walk home?" in captured["prompt"]
    assert "HIGH" in captured["prompt"]


def test_gemini_failure_falls_back(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")

    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(advisor.requests, "post", fake_post)
    assessment, report = _assess(SCENARIO_SEVERE)
    assert advisor.generate_advisory(assessment, report)["source"] == "template"


def test_gemini_plain_text_response(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    body = {"candidates": [{"content": {"parts": [{"text": "Stay indoors tonight."}]}}]}
    monkeypatch.setattr(advisor.requests, "post", lambda *a, **k: FakeResponse(body))
    assessment, _ = _assess(SCENARIO_SEVERE)
    result = advisor.generate_advisory(assessment)
    assert result["source"] == "gemini"
    assert result["headline"] == "Stay indoors tonight."
