"""
FastAPI backend - host service for the SkyWatch flight state engine.

Serves:
- WebSocket endpoint for real-time flight ticks
- REST API for flights, alerts, zones, recordings and simulator control
- Prometheus metrics endpoint
"""

import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, WebSocket, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool

from backend.metrics import get_metrics, HTTP_REQUESTS
from backend.websocket import ConnectionManager
from contracts.validation import RecordingRequest, SeedRequest
from simulation.config import EngineConfig
from simulation.engine import FlightEngine
from simulation.errors import NotFoundError, PersistenceError, ValidationError
from simulation.recorder import as_utc
from simulation.store import create_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Configuration
BACKEND_HOST = os.getenv("BACKEND_HOST", "0.0.0.0")
BACKEND_PORT = int(os.getenv("BACKEND_PORT", "8000"))


# Global state
engine: FlightEngine = None
connection_manager: ConnectionManager = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global engine, connection_manager

    logger.info("=" * 50)
    logger.info("SkyWatch Flight Engine - Starting")
    logger.info("=" * 50)

    config = EngineConfig.from_env()
    store = create_store(config)

    engine = FlightEngine(config, store=store)
    engine.start()
    logger.info(f"Flight engine initialized with {engine.flight_count()} flights")

    connection_manager = ConnectionManager(engine)

    yield

    logger.info("Shutting down...")
    await engine.stop()
    store.close()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="SkyWatch Flight Engine API",
    description="Simulated flight tracking with alerts and position recording",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Middleware to track HTTP requests."""
    response = await call_next(request)
    route = request.scope.get("route")
    HTTP_REQUESTS.labels(
        method=request.method,
        path=getattr(route, "path", request.url.path),
        status=response.status_code
    ).inc()
    return response


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Position store unavailable: {exc}")
    return JSONResponse(status_code=503, content={"error": "Position store unavailable"})


def _flight_or_404(flight_id: str):
    flight = engine.get_flight(flight_id)
    if flight is None:
        raise NotFoundError(f"Flight {flight_id} not found")
    return flight


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "SkyWatch Flight Engine",
        "version": "1.0.0",
        "endpoints": {
            "websocket": "/ws/flights",
            "flights": "/flights",
            "alerts": "/alerts",
            "zones": "/zones",
            "recordings": "/recordings",
            "simulator": "/simulator/status",
            "health": "/health",
            "metrics": "/metrics"
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "running": engine.running,
        "flights": engine.flight_count(),
        "sequence": engine.sequence,
        "connections": len(connection_manager.active_connections)
    }


# ============================================================================
# Flights
# ============================================================================

@app.get("/flights")
async def get_flights():
    """
    Get the current flight snapshot.

    Every flight in the response comes from the same tick.
    """
    snapshot = engine.snapshot()
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "sequence": snapshot.sequence,
        "count": len(snapshot),
        "flights": [flight.to_wire() for flight in snapshot.flights]
    }


@app.get("/flights/count")
async def get_flight_count():
    return {"count": engine.flight_count()}


@app.get("/flights/{flight_id}")
async def get_flight(flight_id: str):
    return _flight_or_404(flight_id).to_wire()


@app.post("/flights/seed")
async def seed_flights(request: Optional[SeedRequest] = None):
    """Replace the population; body is optional (`{"count": N}`)."""
    count = request.count if request else None
    snapshot = engine.reseed(count)
    return {"success": True, "count": len(snapshot), "sequence": snapshot.sequence}


@app.post("/flights/reset")
async def reset_flights():
    """Reseed with the configured default flight count."""
    snapshot = engine.reseed()
    return {"success": True, "count": len(snapshot), "sequence": snapshot.sequence}


# ============================================================================
# Alerts and zones
# ============================================================================

@app.get("/alerts")
async def get_alerts():
    alerts = engine.alerts()
    return {
        "count": len(alerts),
        "alerts": [alert.to_payload().to_wire() for alert in alerts]
    }


@app.get("/alerts/flight/{flight_id}")
async def get_flight_alerts(flight_id: str):
    alerts = engine.flight_alerts(flight_id)
    return {
        "flightId": flight_id,
        "count": len(alerts),
        "alerts": [alert.to_payload().to_wire() for alert in alerts]
    }


@app.delete("/alerts")
async def clear_alerts():
    """Drop every live alert; alerts whose condition still holds return next tick."""
    removed = engine.clear_alerts()
    return {"success": True, "cleared": removed}


@app.delete("/alerts/{alert_id}")
async def dismiss_alert(alert_id: str):
    if not engine.dismiss_alert(alert_id):
        raise NotFoundError(f"Alert {alert_id} not found")
    return {"success": True, "alertId": alert_id}


@app.get("/zones")
async def get_zones():
    return [zone.to_payload().to_wire() for zone in engine.zones()]


# ============================================================================
# Recordings
# ============================================================================

@app.post("/recordings/start")
async def start_recording(request: RecordingRequest):
    flight_id = await engine.start_recording(request.flight_id)
    return {"success": True, "flightId": flight_id, "recording": True}


@app.post("/recordings/stop")
async def stop_recording(request: RecordingRequest):
    stopped = engine.stop_recording(request.flight_id)
    return {"success": stopped, "flightId": request.flight_id, "recording": False}


@app.get("/recordings")
async def get_recordings():
    """Flights currently recording plus every flight with a stored log."""
    stored = await run_in_threadpool(engine.recorder.recorded_flights)
    return {
        "active": engine.recording_flights(),
        "stored": stored,
    }


@app.get("/recordings/{flight_id}/positions")
async def get_recorded_positions(
    flight_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    """Stored positions, oldest first; `start`/`end` bound them inclusively."""
    if (start is None) != (end is None):
        raise ValidationError("start and end must be given together")
    if start is not None:
        start, end = as_utc(start), as_utc(end)
        if start > end:
            raise ValidationError("start must not be after end")
        positions = await run_in_threadpool(engine.recorder.positions_in_range, flight_id, start, end)
    else:
        positions = await run_in_threadpool(engine.recorder.positions, flight_id)

    status = engine.recording_status(flight_id)
    return {
        "flightId": flight_id,
        "recording": flight_id in engine.registry,
        "count": len(positions),
        "positions": [p.to_dict() for p in positions],
        "lastResult": status.to_dict() if status else None,
    }


@app.get("/recordings/{flight_id}/stats")
async def get_recording_stats(flight_id: str):
    stats = await run_in_threadpool(engine.recorder.stats, flight_id)
    return stats.to_dict()


@app.get("/recordings/{flight_id}/changes")
async def get_recording_changes(flight_id: str):
    stats = await run_in_threadpool(engine.recorder.change_stats, flight_id)
    return stats.to_dict()


@app.delete("/recordings/{flight_id}")
async def delete_recording(flight_id: str):
    if not await run_in_threadpool(engine.delete_recording, flight_id):
        raise NotFoundError(f"No recording for flight {flight_id}")
    return {"success": True, "flightId": flight_id}


# ============================================================================
# Simulator control
# ============================================================================

@app.get("/simulator/status")
async def simulator_status():
    return {
        "running": engine.running,
        "tickMs": engine.config.tick_ms,
        "flights": engine.flight_count(),
        "sequence": engine.sequence,
        "subscribers": len(engine.broadcaster),
    }


@app.post("/simulator/pause")
async def pause_simulator():
    await engine.pause()
    return {"success": True, "running": engine.running}


@app.post("/simulator/resume")
async def resume_simulator():
    engine.resume()
    return {"success": True, "running": engine.running}


@app.websocket("/ws/flights")
async def websocket_flights(websocket: WebSocket):
    """
    WebSocket endpoint for real-time flight updates.

    Protocol:
    - On connect: sends a snapshot message with all flights and live alerts
    - Every tick: sends a tick message with all flights and the alerts created that tick
    - {"type": "ping"} is answered with a pong
    - {"type": "request_flights"} is answered with a fresh snapshot

    Message formats:
    - Snapshot: {"schemaVersion": 1, "type": "snapshot", "timestamp": "...", "sequence": N, "flights": [...], "alerts": [...]}
    - Tick: {"schemaVersion": 1, "type": "tick", "timestamp": "...", "sequence": N, "flights": [...], "alerts": [...]}
    """
    if not connection_manager:
        await websocket.close(code=1013, reason="Service not ready")
        return

    await connection_manager.handle_client(websocket)


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return await get_metrics()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "backend.main:app",
        host=BACKEND_HOST,
        port=BACKEND_PORT,
        log_level="info"
    )
