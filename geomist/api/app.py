"""FastAPI app for GEO MIST."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Union

import logging
import math
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from geomist.core.config import Config, get_config
from geomist.core.exceptions import GeoMistError, ValidationError
from geomist.hub.broadcast import BroadcastHub
from geomist.monitoring.alerts import AlertEvaluator
from geomist.monitoring.models import Reading
from geomist.monitoring.pipeline import process_reading
from geomist.monitoring.realtime import SimulationTicker, seed_demo
from geomist.monitoring.store import Store
from geomist import __version__


logger = logging.getLogger(__name__)


class IngestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sensor_id: Optional[Union[str, int]] = Field(None, alias="sensorId")
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    moisture: Optional[float] = None
    battery: Optional[float] = None
    rssi: Optional[float] = None
    # Only used when the sensor is seen for the first time
    name: Optional[str] = None
    zone: Optional[str] = None
    plant: Optional[str] = None

    @field_validator("sensor_id", "name", "zone", "plant", mode="before")
    @classmethod
    def _as_text(cls, v: Any) -> Optional[str]:
        if v is None or (isinstance(v, (str, int, float)) and not v):
            return None
        return str(v)

    @field_validator("temperature", "humidity", "moisture", "battery", "rssi", mode="before")
    @classmethod
    def _as_number(cls, v: Any) -> Optional[float]:
        # Unparseable measurements are dropped, not rejected
        if isinstance(v, bool):
            return None
        try:
            value = float(v)
        except (TypeError, ValueError):
            return None
        return value if math.isfinite(value) else None


class ScheduleFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    zone_id: Optional[str] = Field(None, alias="zoneId")
    time: Optional[str] = None
    days: Optional[List[str]] = None
    duration: Optional[int] = None
    enabled: Optional[bool] = None


def create_app(config: Optional[Config] = None) -> FastAPI:
    cfg = config or Config()
    store = Store(
        history_capacity=cfg.store.history_capacity,
        alert_capacity=cfg.store.alert_capacity,
    )
    hub = BroadcastHub(store, queue_size=cfg.hub.queue_size, snapshot_alerts=cfg.hub.snapshot_alerts)
    evaluator = AlertEvaluator(cfg.thresholds)
    ticker = SimulationTicker(store, hub, evaluator, interval=cfg.simulation.interval)

    if cfg.simulation.seed_demo:
        seed_demo(store, cfg.simulation.seed_history_hours)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if cfg.simulation.enabled:
            ticker.start()
        yield
        await ticker.stop()

    app = FastAPI(title="GEO MIST API", version=__version__, lifespan=lifespan)
    app.state.store = store
    app.state.hub = hub
    app.state.ticker = ticker

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GeoMistError)
    async def geomist_error_handler(request: Request, exc: GeoMistError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
            message = f"{loc}: {errors[0].get('msg')}" if loc else str(errors[0].get("msg"))
        else:
            message = "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.get("/api/health")
    async def health() -> Dict:
        return {"status": "ok", "sensors": store.sensor_count(), "clients": hub.client_count()}

    @app.get("/api/config")
    async def show_config() -> Dict:
        return cfg.dict()

    @app.get("/api/version")
    async def version() -> Dict[str, str]:
        return {"version": __version__}

    @app.get("/api/sensors")
    async def list_sensors() -> List[Dict]:
        return [s.to_dict() for s in store.sensors()]

    @app.get("/api/sensors/{sensor_id}/history")
    async def sensor_history(sensor_id: str, hours: Optional[str] = None) -> List[Dict]:
        return [r.to_dict() for r in store.history(sensor_id, parse_hours(hours))]

    @app.post("/api/ingest")
    async def ingest(body: Any = Body(None)) -> Dict:
        if not isinstance(body, dict):
            raise ValidationError("sensorId required")
        req = IngestRequest.model_validate(body)
        if not req.sensor_id:
            raise ValidationError("sensorId required")
        reading = Reading(
            sensor_id=req.sensor_id,
            temperature=req.temperature,
            humidity=req.humidity,
            moisture=req.moisture,
            battery=req.battery,
            rssi=req.rssi,
        )
        alerts = process_reading(
            store, hub, evaluator, reading, name=req.name, zone=req.zone, plant=req.plant
        )
        logger.debug(f"Ingested reading from {req.sensor_id} ({len(alerts)} alerts)")
        return {"ok": True, "alerts": len(alerts)}

    @app.get("/api/alerts")
    async def list_alerts() -> List[Dict]:
        return [a.to_dict() for a in store.recent_alerts(cfg.store.api_alert_limit)]

    @app.get("/api/schedules")
    async def list_schedules() -> List[Dict]:
        return [s.to_dict() for s in store.schedules()]

    @app.post("/api/schedules")
    async def create_schedule(req: ScheduleFields) -> Dict:
        with store.lock:
            schedule = store.add_schedule(req.model_dump(exclude_none=True))
            hub.broadcast("schedules_updated", [s.to_dict() for s in store.schedules()])
        return schedule.to_dict()

    @app.patch("/api/schedules/{schedule_id}")
    async def patch_schedule(schedule_id: str, req: ScheduleFields) -> Dict:
        with store.lock:
            schedule = store.patch_schedule(schedule_id, req.model_dump(exclude_unset=True))
            hub.broadcast("schedules_updated", [s.to_dict() for s in store.schedules()])
        return schedule.to_dict()

    app.add_api_websocket_route("/ws", hub.session)
    app.add_api_websocket_route("/", hub.session)

    return app


def parse_hours(raw: Optional[str], default: float = 24) -> float:
    """Lenient ``hours`` parsing: anything unparseable, zero or non-finite means ``default``."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value) or value == 0:
        return default
    return value


app = create_app(get_config())
