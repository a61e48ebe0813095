import sys
import os
import json
import logging
import threading
import time
from unittest.mock import MagicMock

import redis

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from hobo_core.event_bus import EventBus, EventTypes


def test_local_subscribers_receive_events():
    bus = EventBus()
    received = []
    bus.subscribe(EventTypes.RANK_CHANGED, received.append)

    reached_redis = bus.publish(EventTypes.RANK_CHANGED, {"rank": "PIMP"})

    assert not reached_redis
    assert len(received) == 1
    assert received[0]["type"] == EventTypes.RANK_CHANGED
    assert received[0]["data"] == {"rank": "PIMP"}
    assert "timestamp" in received[0]


def test_publish_to_group_channel():
    client = MagicMock()
    bus = EventBus(client)

    assert bus.publish(EventTypes.PROPERTY_PURCHASED, {"index": 3}, group_id=42)
    bus.close(timeout=5)

    channel, payload = client.publish.call_args[0]
    assert channel == "group:42"
    assert json.loads(payload)["data"] == {"index": 3}


def test_publish_without_group_uses_global_channel():
    client = MagicMock()
    bus = EventBus(client)
    bus.publish(EventTypes.SNAPSHOT_SAVED, {})
    bus.close(timeout=5)
    assert client.publish.call_args[0][0] == "global"


def test_publish_does_not_wait_for_redis():
    release = threading.Event()
    client = MagicMock()
    client.publish.side_effect = lambda channel, payload: release.wait(5)
    bus = EventBus(client)
    received = []
    bus.subscribe(EventTypes.RANK_CHANGED, received.append)

    started = time.monotonic()
    assert bus.publish(EventTypes.RANK_CHANGED, {"rank": "PIMP"})
    assert bus.publish(EventTypes.RANK_CHANGED, {"rank": "KINGPIN"})
    assert time.monotonic() - started < 1
    assert len(received) == 2

    release.set()
    bus.close(timeout=5)
    assert client.publish.call_count == 2


def test_unencodable_event_stays_local(caplog):
    client = MagicMock()
    bus = EventBus(client)
    received = []
    bus.subscribe(EventTypes.SNAPSHOT_SAVED, received.append)

    with caplog.at_level(logging.ERROR):
        assert not bus.publish(EventTypes.SNAPSHOT_SAVED, {"when": object()})

    bus.close(timeout=5)
    assert len(received) == 1
    client.publish.assert_not_called()
    assert "Error encoding event" in caplog.text


def test_redis_failure_still_delivers_locally(caplog):
    client = MagicMock()
    client.publish.side_effect = redis.ConnectionError("down")
    bus = EventBus(client)
    received = []
    bus.subscribe(EventTypes.SNAPSHOT_SAVED, received.append)

    with caplog.at_level(logging.ERROR):
        bus.publish(EventTypes.SNAPSHOT_SAVED, {})
        bus.close(timeout=5)

    assert len(received) == 1
    assert "Error publishing event" in caplog.text


def test_failing_callback_does_not_stop_others(caplog):
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(EventTypes.RANK_CHANGED, broken)
    bus.subscribe(EventTypes.RANK_CHANGED, received.append)

    with caplog.at_level(logging.ERROR):
        bus.publish(EventTypes.RANK_CHANGED, {})

    assert len(received) == 1
    assert "boom" in caplog.text


def test_publish_rank_change_payload():
    bus = EventBus()
    received = []
    bus.subscribe(EventTypes.RANK_CHANGED, received.append)

    bus.publish_rank_change(7, 8, "KINGPIN")

    assert received[0]["data"] == {"group_id": 7, "player_id": 8, "rank": "KINGPIN"}
