"""Best-effort fan-out of domain events to connected viewers.

Each viewer owns a bounded outbound queue drained by its own ``pump`` task.
``broadcast`` never awaits a socket: a full queue drops the message for that
viewer only. Delivery is at-most-once and unordered across viewers.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import threading
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from geomist.monitoring.models import now_ms
from geomist.monitoring.store import Store


logger = logging.getLogger(__name__)


class ViewerMessage(BaseModel):
    action: str
    payload: Dict[str, Any] = {}


class Viewer:
    def __init__(self, websocket: Any, queue_size: int = 100):
        self.websocket = websocket
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def offer(self, message: str) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            logger.debug("Viewer queue full; dropping message")
            return False

    async def pump(self) -> None:
        """Drain queued messages onto the socket until it fails or is cancelled."""
        while not self.closed:
            message = await self.queue.get()
            try:
                await self.websocket.send_text(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug(f"Viewer send failed, marking closed: {e}")
                self.closed = True


class BroadcastHub:
    def __init__(self, store: Store, queue_size: int = 100, snapshot_alerts: int = 20):
        self.store = store
        self.queue_size = queue_size
        self.snapshot_alerts = snapshot_alerts
        self._viewers: Set[Viewer] = set()
        self._lock = threading.Lock()

    @staticmethod
    def envelope(event: str, data: Any) -> str:
        return json.dumps({"event": event, "data": data, "ts": now_ms()})

    def snapshot(self) -> Dict:
        with self.store.lock:
            return {
                "sensors": [s.to_dict() for s in self.store.sensors()],
                "alerts": [a.to_dict() for a in self.store.recent_alerts(self.snapshot_alerts)],
                "schedules": [s.to_dict() for s in self.store.schedules()],
            }

    def register(self, websocket: Any) -> Viewer:
        viewer = Viewer(websocket, self.queue_size)
        # Snapshot is queued before the viewer becomes visible to broadcast
        with self.store.lock:
            viewer.offer(self.envelope("snapshot", self.snapshot()))
            with self._lock:
                self._viewers.add(viewer)
                total = len(self._viewers)
        logger.info(f"[WS] Client connected. Total: {total}")
        return viewer

    def unregister(self, viewer: Viewer) -> None:
        viewer.closed = True
        with self._lock:
            if viewer not in self._viewers:
                return
            self._viewers.discard(viewer)
            total = len(self._viewers)
        logger.info(f"[WS] Client disconnected. Total: {total}")

    def client_count(self) -> int:
        with self._lock:
            return len(self._viewers)

    def broadcast(self, event: str, data: Any) -> int:
        """Offer one event to every open viewer; returns how many accepted it."""
        message = self.envelope(event, data)
        with self._lock:
            viewers: List[Viewer] = list(self._viewers)
        return sum(1 for v in viewers if v.offer(message))

    def handle_message(self, raw: str) -> Optional[str]:
        """Apply a viewer action; returns the broadcast event name, if any."""
        try:
            msg = ViewerMessage.model_validate_json(raw)
        except ValidationError:
            logger.debug("Ignoring malformed viewer message")
            return None

        payload = msg.payload
        if msg.action == "ack_alert" and "id" in payload:
            with self.store.lock:
                self.store.ack_alert(str(payload["id"]))
                alerts = [a.to_dict() for a in self.store.recent_alerts(self.snapshot_alerts)]
                self.broadcast("alerts_updated", alerts)
            return "alerts_updated"
        if msg.action == "toggle_schedule" and "id" in payload:
            with self.store.lock:
                if self.store.toggle_schedule(str(payload["id"])) is None:
                    return None
                self.broadcast("schedules_updated", [s.to_dict() for s in self.store.schedules()])
            return "schedules_updated"
        if msg.action == "trigger_water" and "zoneId" in payload:
            self.broadcast("watering_triggered", {"zoneId": payload["zoneId"], "ts": now_ms()})
            return "watering_triggered"

        logger.debug(f"Ignoring viewer action {msg.action!r}")
        return None

    async def session(self, websocket: WebSocket) -> None:
        """Serve one viewer connection until the peer disconnects."""
        await websocket.accept()
        viewer = self.register(websocket)
        sender = asyncio.create_task(viewer.pump())
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = (message.get("bytes") or b"").decode("utf-8", errors="replace")
                self.handle_message(raw)
        except WebSocketDisconnect:
            pass
        finally:
            self.unregister(viewer)
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender
