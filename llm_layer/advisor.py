"""
LifeGuard — LLM Advisory Layer
Turns an assessment (and its breakdown) into a short structured safety
advisory. Uses Gemini over REST when GEMINI_API_KEY is set, with a
deterministic template fallback.
"""
import json
import logging
import os

import requests
from dotenv import load_dotenv

from config.settings import GEMINI_TIMEOUT_SEC, GEMINI_URL

load_dotenv()

logger = logging.getLogger(__name__)

URGENCY = {
    "LOW": "P4",
    "MEDIUM": "P3",
    "HIGH": "P2",
    "CRITICAL": "P1",
}

CHECK_BACK = {
    "LOW": "Re-check in 1 hour",
    "MEDIUM": "Re-check in 15 minutes",
    "HIGH": "Re-check every 5 minutes",
    "CRITICAL": "Continuous monitoring",
}


def generate_advisory(assessment, breakdown=None, question=None):
    """
    Generate a structured advisory.

    Returns structured JSON:
    {
        urgency_level,
        headline,
        recommended_actions,
        justification,
        check_back,
        source
    }
    """
    payload = assessment.to_dict() if hasattr(assessment, "to_dict") else dict(assessment)
    gemini_key = os.getenv("GEMINI_API_KEY", "")
    if gemini_key:
        advisory = _call_gemini(_build_prompt(payload, breakdown, question), gemini_key)
        if advisory is not None:
            return advisory
    return _fallback_advisory(payload, breakdown)


def _build_prompt(assessment, breakdown=None, question=None):
    """Build structured prompt for LLM."""
    drivers = ""
    if breakdown:
        drivers = "\n".join(
            f"- {f}: {breakdown['factors'][f]['percentage']}% ({breakdown['factors'][f]['impact']})"
            for f in breakdown["ranking"][:3]
        )
        if breakdown.get("interactions"):
            drivers += "\n" + "\n".join(f"- {i['description']}" for i in breakdown["interactions"])

    prompt = f"""You are LifeGuard, a personal safety advisor.

CURRENT ASSESSMENT:
- Risk Level: {assessment.get('risk_level')}
- Risk Score: {assessment.get('risk_score')}/10
- Confidence: {assessment.get('confidence')}
- Conditions: {json.dumps(assessment.get('conditions') or {})}
- Engine recommendations: {json.dumps(assessment.get('recommendations', []))}

TOP RISK DRIVERS:
{drivers or "- not available"}

{"USER QUESTION: " + question if question else "Write a short advisory for a person in these conditions."}

RESPOND IN THIS EXACT JSON FORMAT:
{{
    "urgency_level": "P1/P2/P3/P4",
    "headline": "one sentence",
    "recommended_actions": ["action", "action"],
    "justification": "why, citing the conditions",
    "check_back": "when to re-assess"
}}

Be specific and calm. Do not invent conditions that are not listed."""
    return prompt


def _call_gemini(prompt, api_key):
    """Call Gemini REST. Returns None on any provider failure."""
    try:
        response = requests.post(
            f"{GEMINI_URL}?key={api_key}",
            headers={"Content-Type": "application/json"},
            json={"contents": [{"parts": [{"text": prompt}]}]},
            timeout=GEMINI_TIMEOUT_SEC,
        )
        response.raise_for_status()
        text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
    except (requests.RequestException, KeyError, IndexError, ValueError) as e:
        logger.warning("Gemini advisory failed: %s", e)
        return None

    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            advisory = json.loads(text[start:end])
            advisory["source"] = "gemini"
            return advisory
        except json.JSONDecodeError:
            pass
    return {
        "urgency_level": "P3",
        "headline": text.strip()[:200],
        "recommended_actions": [],
        "justification": "LLM response",
        "check_back": "TBD",
        "source": "gemini",
    }


def _fallback_advisory(assessment, breakdown=None):
    """Template-based fallback when no LLM key is available."""
    level = assessment.get("risk_level", "LOW")
    score = assessment.get("risk_score", 0)
    recommendations = assessment.get("recommendations", [])

    if breakdown and breakdown.get("ranking") and breakdown["factors"][breakdown["ranking"][0]]["percentage"] > 0:
        top = breakdown["ranking"][0]
        driver = f"{top} ({breakdown['factors'][top]['percentage']}% of the score)"
    else:
        driver = None

    if level == "CRITICAL":
        headline = "Critical risk. Move to a safe location now."
    elif level == "HIGH":
        headline = "High risk. Take precautions before continuing."
    elif level == "MEDIUM":
        headline = "Moderate risk. Stay alert."
    else:
        headline = "Low risk. Normal activities are fine."

    justification = f"Risk score {score}/10 ({level})."
    if driver:
        justification += f" Main driver: {driver}."
    if breakdown and breakdown.get("interactions"):
        justification += f" {breakdown['interactions'][0]['description']}."

    return {
        "urgency_level": URGENCY.get(level, "P4"),
        "headline": headline,
        "recommended_actions": list(recommendations[:4]),
        "justification": justification,
        "check_back": CHECK_BACK.get(level, "Re-check in 1 hour"),
        "source": "template",
    }
