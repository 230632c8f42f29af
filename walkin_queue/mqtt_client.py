"""Small MQTT helper built on top of paho-mqtt.

Why this exists:
- paho-mqtt is callback-based and delivers raw bytes.
- The bridge only wants decoded JSON objects per topic, plus a hook that runs
  on every (re)connect so subscriptions and the retained snapshot come back
  after a broker restart.

Design:
- `MqttClient` manages connection + a background network loop.
- Handlers are called on paho's network thread.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict[str, Any]], None]
ConnectHandler = Callable[[], None]


class MqttClient:
    """Thin wrapper around paho-mqtt with JSON convenience APIs."""

    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
        )
        self._client.on_message = self._on_message
        self._client.on_connect = self._on_connect

        # External subscribers. Called with (topic, json_message).
        self._handlers: list[MessageHandler] = []
        self._connect_handlers: list[ConnectHandler] = []
        self._lock = threading.Lock()

        self._started = False

    def start(self) -> None:
        """Connect and start the background network loop."""
        if self._started:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True

    def stop(self) -> None:
        """Stop and disconnect."""
        if not self._started:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._started = False

    def is_connected(self) -> bool:
        return self._client.is_connected()

    def add_handler(self, handler: MessageHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def add_connect_handler(self, handler: ConnectHandler) -> None:
        with self._lock:
            self._connect_handlers.append(handler)

    def subscribe(self, topic: str) -> None:
        self._client.subscribe(topic, qos=0)

    def publish(self, topic: str, message: dict[str, Any], *, retain: bool = False) -> None:
        self.publish_text(topic, json.dumps(message, ensure_ascii=False, separators=(",", ":")), retain=retain)

    def publish_text(self, topic: str, text: str, *, retain: bool = False) -> None:
        self._client.publish(topic, payload=text.encode("utf-8"), qos=0, retain=retain)

    # -------------------- internal callbacks --------------------

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connection to %s:%d refused: %s", self.host, self.port, reason_code)
            return
        logger.info("Connected to MQTT %s:%d", self.host, self.port)
        with self._lock:
            handlers = list(self._connect_handlers)
        for h in handlers:
            try:
                h()
            except Exception:
                logger.exception("MQTT connect handler failed")

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        # Decode JSON; malformed messages are dropped.
        try:
            raw = msg.payload
            if isinstance(raw, bytes):
                payload = raw.decode("utf-8")
            else:
                payload = str(raw)
            data = json.loads(payload)
        except (UnicodeDecodeError, ValueError):
            logger.debug("Ignoring non-JSON MQTT message on %s", msg.topic)
            return
        if not isinstance(data, dict):
            return

        with self._lock:
            handlers = list(self._handlers)
        for h in handlers:
            try:
                h(msg.topic, data)
            except Exception:
                # Keep the network loop alive; the failure is still visible.
                logger.exception("MQTT handler failed for topic %s", msg.topic)
