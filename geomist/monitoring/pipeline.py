"""Ingestion path shared by the REST endpoint and the simulation ticker."""

from __future__ import annotations

from typing import List, Optional

from geomist.hub.broadcast import BroadcastHub
from geomist.monitoring.alerts import AlertEvaluator
from geomist.monitoring.models import Alert, Reading
from geomist.monitoring.store import Store


def process_reading(
    store: Store,
    hub: BroadcastHub,
    evaluator: AlertEvaluator,
    reading: Reading,
    name: Optional[str] = None,
    zone: Optional[str] = None,
    plant: Optional[str] = None,
) -> List[Alert]:
    # Held across mutate+publish so broadcasts follow store order
    with store.lock:
        sensor = store.upsert_reading(reading, name=name, zone=zone, plant=plant)
        stamped = sensor.latest_reading
        alerts = evaluator.evaluate(stamped, sensor.display_name)
        if store.record_alerts(alerts):
            hub.broadcast("new_alerts", [a.to_dict() for a in alerts])
        hub.broadcast("sensor_update", {"sensor": sensor.to_dict(), "reading": stamped.to_dict()})
    return alerts
