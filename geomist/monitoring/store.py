"""In-memory state for sensors, history, alerts and watering schedules."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import replace
from typing import Callable, Deque, Dict, Iterable, List, Optional

from geomist.core.exceptions import NotFoundError
from geomist.monitoring.models import Alert, Reading, Schedule, Sensor, SensorMeta, now_ms


logger = logging.getLogger(__name__)


class Store:
    """Owner of all mutable domain state.

    Every mutation goes through ``lock`` (re-entrant) so callers that need to
    broadcast in store order can hold it across mutate-then-publish.
    """

    def __init__(
        self,
        history_capacity: int = 168,
        alert_capacity: int = 100,
        clock: Callable[[], int] = now_ms,
    ):
        self.history_capacity = history_capacity
        self.alert_capacity = alert_capacity
        self.clock = clock
        self.lock = threading.RLock()
        self._sensors: Dict[str, Sensor] = {}
        self._history: Dict[str, Deque[Reading]] = {}
        self._alerts: List[Alert] = []
        self._schedules: List[Schedule] = []

    # Sensors / readings

    def register_sensor(self, meta: SensorMeta, history: Iterable[Reading] = ()) -> Sensor:
        """Add a sensor with pre-existing history; existing sensors are kept as-is."""
        with self.lock:
            if meta.id in self._sensors:
                return self._sensors[meta.id]
            buf: Deque[Reading] = deque(history, maxlen=self.history_capacity)
            sensor = Sensor(meta=meta, latest_reading=buf[-1] if buf else None)
            self._sensors[meta.id] = sensor
            self._history[meta.id] = buf
            return sensor

    def upsert_reading(
        self,
        reading: Reading,
        name: Optional[str] = None,
        zone: Optional[str] = None,
        plant: Optional[str] = None,
    ) -> Sensor:
        with self.lock:
            sensor = self._sensors.get(reading.sensor_id)
            if sensor is None:
                meta = SensorMeta(
                    id=reading.sensor_id,
                    name=name or reading.sensor_id,
                    zone=zone or "Unknown",
                    plant=plant or "Unknown",
                )
                sensor = self.register_sensor(meta)
                logger.info(f"Auto-registered sensor {reading.sensor_id}")

            history = self._history[reading.sensor_id]
            ts = self.clock()
            if history and history[-1].ts > ts:
                ts = history[-1].ts
            stamped = replace(reading, ts=ts)

            sensor.latest_reading = stamped
            # deque(maxlen) evicts exactly one head entry per append when full
            history.append(stamped)
            return sensor

    def get_sensor(self, sensor_id: str) -> Optional[Sensor]:
        with self.lock:
            return self._sensors.get(sensor_id)

    def sensors(self) -> List[Sensor]:
        with self.lock:
            return list(self._sensors.values())

    def sensor_ids(self) -> List[str]:
        with self.lock:
            return list(self._sensors)

    def sensor_count(self) -> int:
        with self.lock:
            return len(self._sensors)

    def history(self, sensor_id: str, hours: float = 24) -> List[Reading]:
        cutoff = self.clock() - int(hours * 3600 * 1000)
        with self.lock:
            return [r for r in self._history.get(sensor_id, ()) if r.ts >= cutoff]

    # Alerts

    def record_alerts(self, alerts: List[Alert]) -> bool:
        if not alerts:
            return False
        with self.lock:
            self._alerts.extend(alerts)
            if len(self._alerts) > self.alert_capacity:
                self._alerts = self._alerts[-self.alert_capacity:]
        return True

    def ack_alert(self, alert_id: str) -> bool:
        with self.lock:
            before = len(self._alerts)
            self._alerts = [a for a in self._alerts if a.id != alert_id]
            return len(self._alerts) != before

    def recent_alerts(self, n: int) -> List[Alert]:
        with self.lock:
            return self._alerts[-n:] if n > 0 else []

    def alert_count(self) -> int:
        with self.lock:
            return len(self._alerts)

    # Schedules

    def add_schedule(self, fields: Optional[Dict] = None) -> Schedule:
        values = {k: v for k, v in (fields or {}).items() if k in Schedule.field_names() and k != "id"}
        if values.get("enabled") is None:
            values["enabled"] = True
        schedule = Schedule(id=f"sch-{uuid.uuid4().hex[:12]}", **values)
        with self.lock:
            self._schedules.append(schedule)
        return schedule

    def load_schedules(self, schedules: Iterable[Schedule]) -> None:
        with self.lock:
            self._schedules.extend(schedules)

    def find_schedule(self, schedule_id: str) -> Optional[Schedule]:
        with self.lock:
            return next((s for s in self._schedules if s.id == schedule_id), None)

    def toggle_schedule(self, schedule_id: str) -> Optional[Schedule]:
        with self.lock:
            schedule = self.find_schedule(schedule_id)
            if schedule is not None:
                schedule.enabled = not schedule.enabled
            return schedule

    def patch_schedule(self, schedule_id: str, fields: Dict) -> Schedule:
        with self.lock:
            schedule = self.find_schedule(schedule_id)
            if schedule is None:
                raise NotFoundError()
            for key, value in fields.items():
                if key not in Schedule.field_names() or key == "id":
                    continue
                if key == "enabled" and value is None:
                    continue
                setattr(schedule, key, value)
            return schedule

    def schedules(self) -> List[Schedule]:
        with self.lock:
            return list(self._schedules)
