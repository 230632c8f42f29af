import json

import pytest

from walkin_queue.mqtt_bridge import MqttQueueBridge
from walkin_queue.service import QueueService

NS = "test/v0"


class FakeMqtt:
    """Stands in for MqttClient; records publishes."""

    def __init__(self):
        self.handlers = []
        self.connect_handlers = []
        self.subscriptions = []
        self.published = []  # (topic, text, retain)
        self.connected = True

    def is_connected(self):
        return self.connected

    def add_handler(self, h):
        self.handlers.append(h)

    def add_connect_handler(self, h):
        self.connect_handlers.append(h)

    def subscribe(self, topic):
        self.subscriptions.append(topic)

    def publish_text(self, topic, text, *, retain=False):
        self.published.append((topic, text, retain))

    # test helpers
    def fire_connect(self):
        for h in self.connect_handlers:
            h()

    def deliver(self, topic, msg):
        for h in self.handlers:
            h(topic, msg)


@pytest.fixture
def setup(clock):
    service = QueueService(clock, notify_rejections=True)
    mqtt = FakeMqtt()
    bridge = MqttQueueBridge(service=service, mqtt=mqtt, namespace=NS)
    bridge.start()
    mqtt.fire_connect()
    return service, mqtt, bridge


def test_connect_subscribes_and_publishes_retained_snapshot(setup):
    _, mqtt, _ = setup
    assert mqtt.subscriptions == [f"{NS}/queue/operations"]
    topic, text, retain = mqtt.published[0]
    assert topic == f"{NS}/queue/state"
    assert retain is True
    assert json.loads(text)["type"] == "STATE"


def test_operation_topic_feeds_service(setup):
    service, mqtt, _ = setup
    mqtt.deliver(f"{NS}/queue/operations", {"type": "ENQUEUE", "payload": {"name": "Ana", "clientId": "kiosk"}})
    assert [e["name"] for e in service.snapshot()["queue"]] == ["Ana"]
    payload = json.loads(mqtt.published[-1][1])["payload"]
    assert payload["lastAction"]["by"] == "kiosk"


def test_other_topics_are_ignored(setup):
    service, mqtt, _ = setup
    mqtt.deliver(f"{NS}/queue/state", {"type": "ENQUEUE", "payload": {"name": "Ana"}})
    assert service.snapshot()["queue"] == []


def test_rejection_notice_on_private_reply_topic(setup):
    _, mqtt, _ = setup
    mqtt.deliver(f"{NS}/queue/operations", {"type": "DEQUEUE", "payload": {"clientId": "kiosk"}})
    topic, text, retain = mqtt.published[-1]
    assert topic == f"{NS}/queue/replies/kiosk"
    assert retain is False
    assert json.loads(text)["code"] == "empty_queue"


def test_reconnect_republishes_without_double_registration(setup):
    service, mqtt, _ = setup
    mqtt.fire_connect()
    assert len(service.hub) == 1
    assert len([p for p in mqtt.published if p[0].endswith("/state")]) == 2


def test_websocket_and_mqtt_observers_share_state(setup, make_channel):
    service, mqtt, _ = setup
    ws = make_channel()
    service.connect(ws)
    mqtt.deliver(f"{NS}/queue/operations", {"type": "ENQUEUE", "payload": {"name": "Ana"}})
    assert ws.sent[-1] == mqtt.published[-1][1]


def test_stop_unregisters(setup):
    service, _, bridge = setup
    bridge.stop()
    assert len(service.hub) == 0
