from __future__ import annotations

# MQTT adapter around the QueueService.
#
# The broker does the per-subscriber fan-out, so the whole MQTT side is a
# single hub channel: the retained state topic. Operations arrive on the
# operations topic and go through the same service (and lock) as WebSocket
# traffic.

import logging
from typing import Any, TYPE_CHECKING

from . import mqtt_topics
from .service import QueueService

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)


class MqttStateChannel:
    """Hub channel publishing snapshots to the retained state topic."""

    def __init__(self, mqtt: MqttClient, topic: str) -> None:
        self.mqtt = mqtt
        self.topic = topic

    def __repr__(self) -> str:
        return f"<MqttStateChannel {self.topic}>"

    @property
    def is_open(self) -> bool:
        return self.mqtt.is_connected()

    def send(self, text: str) -> None:
        self.mqtt.publish_text(self.topic, text, retain=True)


class MqttReplyChannel:
    """Private reply topic of one client, used for rejection notices."""

    def __init__(self, mqtt: MqttClient, topic: str) -> None:
        self.mqtt = mqtt
        self.topic = topic

    @property
    def is_open(self) -> bool:
        return self.mqtt.is_connected()

    def send(self, text: str) -> None:
        self.mqtt.publish_text(self.topic, text)


class MqttQueueBridge:
    def __init__(self, *, service: QueueService, mqtt: MqttClient, namespace: str = mqtt_topics.DEFAULT_NAMESPACE) -> None:
        self.service = service
        self.mqtt = mqtt
        self.namespace = namespace
        self.state_channel = MqttStateChannel(mqtt, mqtt_topics.state(namespace))
        self._registered = False

    def start(self) -> None:
        """Hook into the client. Call before `mqtt.start()` so the first
        connect already subscribes and publishes the snapshot."""
        self.mqtt.add_handler(self._handle_message)
        self.mqtt.add_connect_handler(self._on_connect)

    def stop(self) -> None:
        if self._registered:
            self.service.disconnect(self.state_channel)
            self._registered = False

    def _on_connect(self) -> None:
        self.mqtt.subscribe(mqtt_topics.operations(self.namespace))
        if not self._registered:
            self._registered = True
            self.service.connect(self.state_channel)
        else:
            # The retained message may be gone after a broker restart.
            self.service.refresh(self.state_channel)

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        if topic != mqtt_topics.operations(self.namespace):
            return
        payload = msg.get("payload")
        client_id = payload.get("clientId") if isinstance(payload, dict) else None
        reply_to = None
        if isinstance(client_id, str) and client_id:
            reply_to = MqttReplyChannel(self.mqtt, mqtt_topics.replies(client_id, self.namespace))
        self.service.handle_message(msg, reply_to=reply_to)
