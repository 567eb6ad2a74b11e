"""
LifeGuard — API Server (Transport Layer)
=========================================
FastAPI transport layer over a single RiskEngine.
  - Validates request shapes (pydantic) and hands them to the engine
  - Engine ValidationError → 400 with the last good assessment as fallback
  - Drives the engine's virtual clock from an asyncio task
  - Polls WeatherAPI.com off the event loop (asyncio.to_thread)
  - WebSocket pushes state + latest assessment to every client
"""
import asyncio
import logging
import os
import sys
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from config.settings import ENGINE_TICK_MS, SERVER_HOST, SERVER_PORT, WEATHER_CITY, WEATHER_POLL_SEC, WS_PUSH_SEC
from config.tables import LEVEL_ADVICE
from llm_layer.advisor import generate_advisory
from risk_model.engine import RiskEngine
from risk_model.errors import ValidationError
from risk_model.feeds import fetch_current_weather

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="LifeGuard Risk Engine", version="1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logging.error(f"422 Error! URL: {request.url}")
    logging.error(f"Body: {exc.body}")
    logging.error(f"Errors: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors(), "body": exc.body})


# ═══════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════
WX_API_KEY  = os.getenv("WX_API_KEY", "")
GEMINI_KEY  = os.getenv("GEMINI_API_KEY", "")
CITY        = os.getenv("WEATHER_CITY", WEATHER_CITY)
TICK_MS     = int(os.getenv("ENGINE_TICK_MS", ENGINE_TICK_MS))

# ═══════════════════════════════════════════════════════════════════════════
# GLOBAL STATE: one engine per process
# ═══════════════════════════════════════════════════════════════════════════
engine = RiskEngine()
SERVER_STARTED_AT = datetime.now().isoformat()
ws_clients = set()


# ═══════════════════════════════════════════════════════════════════════════
# REQUEST MODELS
# ═══════════════════════════════════════════════════════════════════════════
class AssessRequest(BaseModel):
    conditions: Union[Dict[str, Any], str]
    anomalies: Optional[List[Dict[str, Any]]] = None

class OutcomeRequest(BaseModel):
    prediction_id: str
    actual_risk_level: str
    incident_occurred: bool = False
    incident_severity: Optional[str] = None
    user_feedback: Optional[str] = None
    environmental_accuracy: Optional[float] = None

class SimulateRequest(BaseModel):
    conditions: Optional[Union[Dict[str, Any], str]] = None
    trends: Optional[Dict[str, Any]] = None
    hours_ahead: float = 6
    interval_minutes: float = 30
    seed: Optional[int] = None

class WhatIfRequest(BaseModel):
    conditions: Optional[Union[Dict[str, Any], str]] = None
    modifications: Optional[Dict[str, Any]] = None
    template: Optional[str] = None
    scenarios: Optional[Dict[str, Any]] = None

class StateOverrideRequest(BaseModel):
    data: Optional[Dict[str, Any]] = None

class AdvisoryRequest(BaseModel):
    prediction_id: Optional[str] = None
    question: Optional[str] = None

class WeatherFeed(BaseModel):
    condition: str
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    visibility_km: Optional[float] = None

class CrowdFeed(BaseModel):
    places: Optional[List[Dict[str, Any]]] = None
    nearby_count: Optional[int] = None

class StepRequest(BaseModel):
    step_id: str
    thoroughness: Optional[str] = None
    speed: Optional[str] = None
    verification: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════
def _fallback():
    """Last good assessment, or default guidance before the first one."""
    if engine.latest_assessment is not None:
        return engine.latest_assessment.to_dict()
    return {"risk_level": None, "recommendations": LEVEL_ADVICE["MEDIUM"]}


def _error(e, status_code=400):
    logger.warning("Rejected request: %s", e)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": str(e), "fallback": _fallback()},
    )


def _assessment_payload(prediction, transitioned):
    return {
        "success": True,
        "prediction_id": prediction.id,
        **prediction.assessment.to_dict(),
        "state": engine.controller.current_state,
        "transitioned": transitioned,
        "anomalies": engine.latest_anomalies,
    }


# ═══════════════════════════════════════════════════════════════════════════
# ASSESSMENT & FEEDBACK
# ═══════════════════════════════════════════════════════════════════════════

@app.get("/health")
async def health_check():
    return JSONResponse(content={
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "started_at": SERVER_STARTED_AT,
        "engine": "active",
        "state": engine.controller.current_state,
    })


@app.post("/api/assess")
async def assess(req: AssessRequest):
    """Score a condition snapshot and drive the state controller."""
    try:
        prediction, transitioned = engine.assess(req.conditions, req.anomalies)
    except ValidationError as e:
        return _error(e)
    return JSONResponse(content=_assessment_payload(prediction, transitioned))


@app.post("/api/outcome")
async def record_outcome(req: OutcomeRequest):
    """Feed an observed outcome back to the learner."""
    outcome = req.model_dump(exclude={"prediction_id"})
    try:
        result = engine.record_outcome(req.prediction_id, outcome)
    except ValidationError as e:
        return _error(e)
    if not result["success"]:
        return JSONResponse(content=result, status_code=404)
    return JSONResponse(content=result)


@app.get("/api/breakdown")
async def get_breakdown(prediction_id: Optional[str] = None):
    try:
        return JSONResponse(content=engine.breakdown(prediction_id))
    except ValidationError as e:
        return _error(e)


# ═══════════════════════════════════════════════════════════════════════════
# PROJECTION
# ═══════════════════════════════════════════════════════════════════════════

@app.post("/api/simulate")
async def simulate(req: SimulateRequest):
    try:
        result = engine.simulate(
            req.conditions, req.trends,
            hours_ahead=req.hours_ahead,
            interval_minutes=req.interval_minutes,
            seed=req.seed,
        )
    except ValidationError as e:
        return _error(e)
    return JSONResponse(content=result)


@app.post("/api/what-if")
async def what_if(req: WhatIfRequest):
    """Single what-if (modifications and/or template) or a ranked comparison (scenarios)."""
    try:
        if req.scenarios:
            result = engine.compare_scenarios(req.scenarios, req.conditions)
        else:
            result = engine.what_if(req.modifications, req.conditions, req.template)
    except ValidationError as e:
        return _error(e)
    return JSONResponse(content={"success": True, **result})


# ═══════════════════════════════════════════════════════════════════════════
# STATE CONTROLLER
# ═══════════════════════════════════════════════════════════════════════════

@app.get("/api/state")
async def get_state():
    return JSONResponse(content=engine.state())


@app.post("/api/state/emergency")
async def trigger_emergency(req: StateOverrideRequest):
    ok = engine.controller.handle_emergency(req.data)
    return JSONResponse(
        content={"success": ok, "state": engine.controller.current_state},
        status_code=200 if ok else 409,
    )


@app.post("/api/state/recovery")
async def trigger_recovery(req: StateOverrideRequest):
    ok = engine.controller.handle_recovery(req.data)
    return JSONResponse(
        content={"success": ok, "state": engine.controller.current_state},
        status_code=200 if ok else 409,
    )


@app.get("/api/anomalies")
async def get_anomalies():
    return JSONResponse(content={
        "latest": engine.latest_anomalies,
        "detector": engine.anomalies.status(),
    })


# ═══════════════════════════════════════════════════════════════════════════
# PREVENTIVE STEPS & CONFIDENCE
# ═══════════════════════════════════════════════════════════════════════════

@app.get("/api/precautions")
async def get_precautions():
    return JSONResponse(content=engine.precautions.status())


@app.post("/api/precautions/start")
async def start_precaution(req: StepRequest):
    try:
        started = engine.precautions.start_step(req.step_id)
    except ValidationError as e:
        return _error(e)
    return JSONResponse(content={"success": True, **started})


@app.post("/api/precautions/complete")
async def complete_precaution(req: StepRequest):
    completion = req.model_dump(exclude={"step_id"}, exclude_none=True)
    try:
        result = engine.precautions.complete_step(req.step_id, completion)
    except ValidationError as e:
        return _error(e)
    return JSONResponse(content={"success": True, **result})


@app.get("/api/learning")
async def get_learning():
    stats = engine.learner.stats()
    stats["adaptation_history"] = list(engine.learner.adaptation_history)[-10:]
    return JSONResponse(content=stats)


# ═══════════════════════════════════════════════════════════════════════════
# ADVISORY (Gemini REST, template fallback)
# ═══════════════════════════════════════════════════════════════════════════

@app.post("/api/advisory")
async def advisory(req: AdvisoryRequest):
    try:
        report = engine.breakdown(req.prediction_id)
    except ValidationError as e:
        return _error(e)
    prediction = engine.learner.get_prediction(report["prediction_id"])
    result = await asyncio.to_thread(generate_advisory, prediction.assessment, report, req.question)
    return JSONResponse(content={"prediction_id": prediction.id, "advisory": result})


# ═══════════════════════════════════════════════════════════════════════════
# UPSTREAM FEEDS
# ═══════════════════════════════════════════════════════════════════════════

@app.post("/api/feeds/weather")
async def push_weather(feed: WeatherFeed):
    try:
        result = engine.update_weather(feed.model_dump())
    except ValidationError as e:
        return _error(e)
    return JSONResponse(content=_feed_payload(result))


@app.post("/api/feeds/crowd")
async def push_crowd(feed: CrowdFeed):
    try:
        result = engine.update_crowd(feed.model_dump())
    except ValidationError as e:
        return _error(e)
    return JSONResponse(content=_feed_payload(result))


def _feed_payload(result):
    payload = {"success": True, "feeds": engine.feeds, "assessed": result is not None}
    if result is not None:
        payload["assessment"] = _assessment_payload(*result)
    return payload


# ═══════════════════════════════════════════════════════════════════════════
# BACKGROUND TASKS: clock driver & weather poller
# ═══════════════════════════════════════════════════════════════════════════

async def _clock_driver():
    """Feed real elapsed time into the engine's virtual clock."""
    last = time.monotonic()
    while True:
        await asyncio.sleep(TICK_MS / 1000)
        now = time.monotonic()
        engine.tick(int((now - last) * 1000))
        last = now


async def _weather_poller():
    while True:
        snapshot = await asyncio.to_thread(fetch_current_weather, CITY, WX_API_KEY)
        if snapshot:
            engine.update_weather(snapshot)
            print(f"  [weather] {snapshot['condition']} {snapshot['temperature']}°C")
        await asyncio.sleep(WEATHER_POLL_SEC)


# ═══════════════════════════════════════════════════════════════════════════
# WEBSOCKET (state + latest assessment → every client)
# ═══════════════════════════════════════════════════════════════════════════

async def _broadcast(payload):
    """Send one payload to every registered client, dropping those that fail."""
    for websocket in list(ws_clients):
        try:
            await websocket.send_json(payload)
        except Exception:
            logger.warning("Dropping WebSocket client after failed send", exc_info=True)
            ws_clients.discard(websocket)


async def _ws_broadcaster():
    while True:
        await asyncio.sleep(WS_PUSH_SEC)
        if ws_clients:
            await _broadcast(engine.snapshot())


@app.websocket("/ws")
async def websocket_stream(websocket: WebSocket):
    """Register a client; the broadcaster pushes snapshots every WS_PUSH_SEC seconds."""
    await websocket.accept()
    ws_clients.add(websocket)
    try:
        await websocket.send_json(engine.snapshot())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        ws_clients.discard(websocket)


# ═══════════════════════════════════════════════════════════════════════════
# STARTUP
# ═══════════════════════════════════════════════════════════════════════════

@app.on_event("startup")
async def startup():
    port = int(os.environ.get("PORT", SERVER_PORT))
    print("═" * 55)
    print("  LifeGuard — Risk Engine API v1.0")
    print("═" * 55)
    print(f"  API          : http://localhost:{port}/")
    print(f"  State        : {engine.controller.current_state}")
    print(f"  Weather feed : {'✓ ' + CITY if WX_API_KEY else '✗ Push only (/api/feeds/weather)'}")
    print(f"  Gemini AI    : {'✓ Configured' if GEMINI_KEY else '✗ Template fallback'}")

    asyncio.create_task(_clock_driver())
    print(f"  Clock driver started ({TICK_MS}ms tick)")

    asyncio.create_task(_ws_broadcaster())
    print(f"  WebSocket push started ({WS_PUSH_SEC}s interval)")

    if WX_API_KEY:
        asyncio.create_task(_weather_poller())
        print(f"  Weather poller started ({WEATHER_POLL_SEC}s interval)")


# ═══════════════════════════════════════════════════════════════════════════
# RUN
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", SERVER_PORT))
    uvicorn.run("api.server:app", host=SERVER_HOST, port=port, reload=False)
