"""Unit tests for the broadcast hub (no network)."""

import asyncio
import json

import pytest

from geomist.hub.broadcast import BroadcastHub, Viewer
from geomist.monitoring.models import Alert, Reading, Schedule
from geomist.monitoring.store import Store


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


def drain(viewer: Viewer):
    out = []
    while not viewer.queue.empty():
        out.append(json.loads(viewer.queue.get_nowait()))
    return out


def make_hub(queue_size=100):
    store = Store()
    store.upsert_reading(Reading(sensor_id="s-1", temperature=20.0))
    store.load_schedules([Schedule(id="sch-1", zone_id="A", enabled=True)])
    return store, BroadcastHub(store, queue_size=queue_size, snapshot_alerts=20)


def test_register_queues_snapshot_first():
    store, hub = make_hub()
    store.record_alerts(
        [Alert(id=f"a-{i}", type="warning", sensor_id="s-1", message="m", ts=i) for i in range(30)]
    )
    viewer = hub.register(FakeSocket())
    hub.broadcast("watering_triggered", {"zoneId": "A"})
    messages = drain(viewer)
    assert [m["event"] for m in messages] == ["snapshot", "watering_triggered"]
    snap = messages[0]["data"]
    assert len(snap["alerts"]) == 20
    assert snap["alerts"][-1]["id"] == "a-29"
    assert snap["sensors"][0]["meta"]["id"] == "s-1"
    assert snap["schedules"][0]["zoneId"] == "A"
    assert isinstance(messages[0]["ts"], int)


def test_unregister_is_idempotent():
    _, hub = make_hub()
    viewer = hub.register(FakeSocket())
    assert hub.client_count() == 1
    hub.unregister(viewer)
    hub.unregister(viewer)
    assert hub.client_count() == 0
    assert hub.broadcast("alerts_updated", []) == 0


def test_broadcast_skips_closed_viewers():
    _, hub = make_hub()
    open_viewer = hub.register(FakeSocket())
    dead_viewer = hub.register(FakeSocket())
    dead_viewer.closed = True
    assert hub.broadcast("alerts_updated", []) == 1
    assert [m["event"] for m in drain(open_viewer)] == ["snapshot", "alerts_updated"]


def test_full_queue_drops_without_blocking_others():
    _, hub = make_hub(queue_size=2)
    slow = hub.register(FakeSocket())
    fast = hub.register(FakeSocket())
    drain(fast)
    for i in range(5):
        hub.broadcast("watering_triggered", {"zoneId": str(i)})
        drain(fast)
    # snapshot + one event fit; the rest were dropped for the slow viewer only
    assert slow.queue.qsize() == 2


def test_toggle_schedule_broadcasts_once():
    store, hub = make_hub()
    viewer = hub.register(FakeSocket())
    drain(viewer)
    assert hub.handle_message(json.dumps({"action": "toggle_schedule", "payload": {"id": "sch-1"}})) == "schedules_updated"
    messages = drain(viewer)
    assert len(messages) == 1
    assert messages[0]["event"] == "schedules_updated"
    assert messages[0]["data"][0]["enabled"] is False
    assert store.find_schedule("sch-1").enabled is False


def test_toggle_unknown_schedule_is_silent():
    _, hub = make_hub()
    viewer = hub.register(FakeSocket())
    drain(viewer)
    assert hub.handle_message(json.dumps({"action": "toggle_schedule", "payload": {"id": "nope"}})) is None
    assert drain(viewer) == []


def test_ack_alert_broadcasts_remaining_alerts():
    store, hub = make_hub()
    store.record_alerts([Alert(id="a-1", type="critical", sensor_id="s-1", message="m", ts=1)])
    viewer = hub.register(FakeSocket())
    drain(viewer)
    hub.handle_message(json.dumps({"action": "ack_alert", "payload": {"id": "a-1"}}))
    messages = drain(viewer)
    assert messages[0]["event"] == "alerts_updated"
    assert messages[0]["data"] == []
    assert store.alert_count() == 0


def test_trigger_water_has_no_state_change():
    store, hub = make_hub()
    viewer = hub.register(FakeSocket())
    drain(viewer)
    hub.handle_message(json.dumps({"action": "trigger_water", "payload": {"zoneId": "B"}}))
    messages = drain(viewer)
    assert messages[0]["event"] == "watering_triggered"
    assert messages[0]["data"]["zoneId"] == "B"
    assert store.find_schedule("sch-1").enabled is True


def test_malformed_messages_are_ignored():
    _, hub = make_hub()
    viewer = hub.register(FakeSocket())
    drain(viewer)
    for raw in ["not json", "[]", json.dumps({"payload": {}}), json.dumps({"action": "explode"}),
                json.dumps({"action": "ack_alert", "payload": "x"}), json.dumps({"action": "ack_alert"})]:
        assert hub.handle_message(raw) is None
    assert drain(viewer) == []


def test_pump_delivers_and_stops_on_failure():
    async def scenario():
        good = Viewer(FakeSocket())
        bad = Viewer(FakeSocket(fail=True))
        for v in (good, bad):
            v.offer('{"event": "a"}')
        task = asyncio.create_task(good.pump())
        await bad.pump()
        await asyncio.sleep(0)
        task.cancel()
        return good, bad

    good, bad = asyncio.run(scenario())
    assert good.websocket.sent == [{"event": "a"}]
    assert bad.closed is True
    assert bad.offer("x") is False


class SessionSocket:
    """Scripted peer: delivers ``incoming`` frames, then disconnects."""

    def __init__(self, incoming, fail_with=None):
        self.incoming = list(incoming)
        self.fail_with = fail_with
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def receive(self):
        for _ in range(3):
            await asyncio.sleep(0)
        if self.incoming:
            frame = self.incoming.pop(0)
            key = "bytes" if isinstance(frame, bytes) else "text"
            return {"type": "websocket.receive", key: frame}
        return {"type": "websocket.disconnect", "code": 1000}

    async def send_text(self, text):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(json.loads(text))


def test_session_serves_actions_and_cleans_up():
    _, hub = make_hub()
    sock = SessionSocket([
        json.dumps({"action": "trigger_water", "payload": {"zoneId": "A"}}),
        json.dumps({"action": "trigger_water", "payload": {"zoneId": "B"}}).encode("utf-8"),
    ])
    asyncio.run(hub.session(sock))
    assert sock.accepted
    assert [m["event"] for m in sock.sent] == ["snapshot", "watering_triggered", "watering_triggered"]
    assert [m["data"]["zoneId"] for m in sock.sent[1:]] == ["A", "B"]
    assert hub.client_count() == 0


def test_session_surfaces_unexpected_sender_errors():
    _, hub = make_hub()
    sock = SessionSocket([], fail_with=ValueError("encoder exploded"))
    with pytest.raises(ValueError):
        asyncio.run(hub.session(sock))
    assert hub.client_count() == 0
