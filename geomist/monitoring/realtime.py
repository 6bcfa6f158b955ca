"""Synthetic readings, demo seeding and the periodic simulation ticker."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

import numpy as np

from geomist.core.exceptions import MonitoringError
from geomist.hub.broadcast import BroadcastHub
from geomist.monitoring.alerts import AlertEvaluator
from geomist.monitoring.models import Reading, Schedule, SensorMeta, now_ms
from geomist.monitoring.pipeline import process_reading
from geomist.monitoring.store import Store


logger = logging.getLogger(__name__)

HOUR_MS = 3600 * 1000

BASELINES: Dict[str, Dict[str, float]] = {
    "GMS-001": {"temp": 23, "humidity": 70, "moisture": 65},
    "GMS-002": {"temp": 28, "humidity": 58, "moisture": 42},
    "GMS-003": {"temp": 21, "humidity": 74, "moisture": 60},
    "GMS-004": {"temp": 30, "humidity": 55, "moisture": 35},
    "GMS-005": {"temp": 25, "humidity": 68, "moisture": 72},
    "GMS-006": {"temp": 27, "humidity": 63, "moisture": 58},
}
DEFAULT_BASELINE = {"temp": 24, "humidity": 65, "moisture": 55}

DEMO_SENSORS: List[SensorMeta] = [
    SensorMeta(id="GMS-001", name="Basil Pot", zone="A", plant="Basil"),
    SensorMeta(id="GMS-002", name="Tomato Bed", zone="B", plant="Tomato"),
    SensorMeta(id="GMS-003", name="Orchid Shelf", zone="C", plant="Orchid"),
    SensorMeta(id="GMS-004", name="Lettuce Row", zone="A", plant="Lettuce"),
    SensorMeta(id="GMS-005", name="Wheat Field", zone="B", plant="Wheat"),
    SensorMeta(id="GMS-006", name="Bell Pepper Pot", zone="C", plant="Bell Pepper"),
]


def demo_schedules() -> List[Schedule]:
    return [
        Schedule(id="sch-1", zone_id="A", time="06:00", days=["Mon", "Wed", "Fri"], duration=15, enabled=True),
        Schedule(id="sch-2", zone_id="B", time="07:30", days=["Tue", "Thu", "Sat"], duration=20, enabled=True),
        Schedule(id="sch-3", zone_id="C", time="08:00", days=["Mon", "Thu"], duration=10, enabled=False),
    ]


def generate_reading(sensor_id: str, rng: Optional[np.random.Generator] = None, ts: Optional[int] = None) -> Reading:
    rng = rng or np.random.default_rng()
    b = BASELINES.get(sensor_id, DEFAULT_BASELINE)
    return Reading(
        sensor_id=sensor_id,
        temperature=round(float(b["temp"] + rng.uniform(-1.0, 1.0)), 1),
        humidity=round(float(b["humidity"] + rng.uniform(-1.5, 1.5)), 1),
        moisture=round(float(b["moisture"] + rng.uniform(-2.0, 2.0)), 1),
        battery=float(round(85 + rng.uniform(0, 15))),
        rssi=float(-(45 + int(rng.integers(0, 30)))),
        ts=now_ms() if ts is None else ts,
    )


def generate_history(sensor_id: str, hours: int, rng: Optional[np.random.Generator] = None) -> List[Reading]:
    """Hourly readings from ``hours`` ago up to now, oldest first."""
    rng = rng or np.random.default_rng()
    now = now_ms()
    return [generate_reading(sensor_id, rng, ts=now - i * HOUR_MS) for i in range(hours, -1, -1)]


def seed_demo(store: Store, history_hours: int = 48, rng: Optional[np.random.Generator] = None) -> None:
    rng = rng or np.random.default_rng()
    for meta in DEMO_SENSORS:
        store.register_sensor(
            SensorMeta(**meta.to_dict()), generate_history(meta.id, history_hours, rng)
        )
    store.load_schedules(demo_schedules())
    logger.info(f"Seeded {len(DEMO_SENSORS)} demo sensors with {history_hours}h of history")


class SimulationTicker:
    """Keeps the demo alive by pushing a synthetic reading per sensor every interval."""

    def __init__(
        self,
        store: Store,
        hub: BroadcastHub,
        evaluator: AlertEvaluator,
        interval: float = 5.0,
        rng: Optional[np.random.Generator] = None,
    ):
        self.store = store
        self.hub = hub
        self.evaluator = evaluator
        self.interval = interval
        self.rng = rng or np.random.default_rng()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> int:
        """Run one simulation pass; returns the number of alerts raised."""
        raised = 0
        for sensor_id in self.store.sensor_ids():
            reading = generate_reading(sensor_id, self.rng)
            raised += len(process_reading(self.store, self.hub, self.evaluator, reading))
        return raised

    async def run(self, ticks: Optional[int] = None) -> None:
        done = 0
        while ticks is None or done < ticks:
            await asyncio.sleep(self.interval)
            self.tick()
            done += 1

    def start(self) -> None:
        if self.running:
            raise MonitoringError("Simulation ticker already running")
        self._task = asyncio.get_running_loop().create_task(self.run())
        logger.info(f"Simulation ticker started (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Simulation ticker stopped")
