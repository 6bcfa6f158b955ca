"""Threshold alerting for sensor readings."""

from __future__ import annotations

import itertools
from typing import Callable, List, Optional

from geomist.core.config import ThresholdConfig
from geomist.monitoring.models import Alert, Reading, now_ms


_alert_seq = itertools.count(1)


class AlertEvaluator:
    """Maps a reading to zero or more alerts using static thresholds."""

    def __init__(self, thresholds: Optional[ThresholdConfig] = None, clock: Callable[[], int] = now_ms):
        self.thresholds = thresholds or ThresholdConfig()
        self.clock = clock

    def evaluate(self, reading: Reading, sensor_name: Optional[str] = None) -> List[Alert]:
        t = self.thresholds
        name = sensor_name or reading.sensor_id
        ts = self.clock()
        seq = next(_alert_seq)
        alerts: List[Alert] = []

        def make(kind: str, level: str, message: str) -> Alert:
            return Alert(
                id=f"alrt-{seq}-{kind}",
                type=level,
                sensor_id=reading.sensor_id,
                message=message,
                ts=ts,
            )

        if reading.temperature is not None and reading.temperature > t.max_temp:
            alerts.append(make("t", "critical", f"High temp at {name}: {reading.temperature}°C"))
        if reading.moisture is not None and reading.moisture < t.min_moisture:
            level = "critical" if reading.moisture < t.critical_moisture else "warning"
            alerts.append(make("m", level, f"Low moisture at {name}: {reading.moisture}%"))
        if reading.humidity is not None and reading.humidity < t.min_humidity:
            alerts.append(make("h", "warning", f"Low humidity at {name}: {reading.humidity}%"))
        return alerts


def evaluate(reading: Reading, sensor_name: Optional[str] = None) -> List[Alert]:
    """Evaluate ``reading`` against the default thresholds."""
    return AlertEvaluator().evaluate(reading, sensor_name)
