"""Domain records for the telemetry hub.

Attributes are snake_case; ``to_dict`` renders the camelCase wire format the
dashboard clients consume.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Reading:
    sensor_id: str
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    moisture: Optional[float] = None
    battery: Optional[float] = None
    rssi: Optional[float] = None
    ts: int = 0

    def to_dict(self) -> Dict:
        return {
            "sensorId": self.sensor_id,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "moisture": self.moisture,
            "battery": self.battery,
            "rssi": self.rssi,
            "ts": self.ts,
        }


@dataclass
class SensorMeta:
    id: str
    name: str
    zone: str = "Unknown"
    plant: str = "Unknown"
    type: str = "multi"

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "zone": self.zone,
            "plant": self.plant,
            "type": self.type,
        }


@dataclass
class Sensor:
    meta: SensorMeta
    latest_reading: Optional[Reading] = None

    @property
    def id(self) -> str:
        return self.meta.id

    @property
    def display_name(self) -> str:
        return self.meta.name or self.meta.id

    def to_dict(self) -> Dict:
        return {
            "meta": self.meta.to_dict(),
            "latestReading": self.latest_reading.to_dict() if self.latest_reading else None,
        }


@dataclass(frozen=True)
class Alert:
    id: str
    type: str  # "warning" | "critical"
    sensor_id: str
    message: str
    ts: int

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type,
            "sensorId": self.sensor_id,
            "message": self.message,
            "ts": self.ts,
        }


@dataclass
class Schedule:
    id: str
    zone_id: Optional[str] = None
    time: Optional[str] = None
    days: List[str] = field(default_factory=list)
    duration: Optional[int] = None
    enabled: bool = True

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "zoneId": self.zone_id,
            "time": self.time,
            "days": list(self.days or []),
            "duration": self.duration,
            "enabled": self.enabled,
        }
