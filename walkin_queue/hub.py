from __future__ import annotations

# Broadcast hub: fan-out of full-state snapshots to observer channels.

import json
import logging
import threading
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

STATE_MESSAGE = "STATE"


class Channel(Protocol):
    """One observer's outbound path. `send` must not block."""

    @property
    def is_open(self) -> bool: ...

    def send(self, text: str) -> None: ...


def encode_state(snapshot: dict[str, Any]) -> str:
    return json.dumps({"type": STATE_MESSAGE, "payload": snapshot}, ensure_ascii=False, separators=(",", ":"))


# encode_state always starts its output with this.
STATE_FRAME_PREFIX = f'{{"type":"{STATE_MESSAGE}",'


def is_state_frame(text: str) -> bool:
    return text.startswith(STATE_FRAME_PREFIX)


class BroadcastHub:
    """Tracks observer channels and delivers identical snapshots to all of them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: list[Channel] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def register(self, channel: Channel, snapshot: Callable[[], dict[str, Any]]) -> None:
        """Add a channel and send it the current snapshot once.

        `snapshot` is called by the caller's writer context (QueueService holds
        its lock around this call) so the first view cannot interleave with a
        mutation.
        """
        with self._lock:
            self._channels.append(channel)
        self.send_to(channel, snapshot)

    def send_to(self, channel: Channel, snapshot: Callable[[], dict[str, Any]]) -> bool:
        """Send the current snapshot to a single channel."""
        return self._deliver(channel, encode_state(snapshot()))

    def unregister(self, channel: Channel) -> None:
        with self._lock:
            try:
                self._channels.remove(channel)
            except ValueError:
                pass

    def publish(self, snapshot: dict[str, Any]) -> int:
        """Serialize once and send to every open channel. Returns deliveries."""
        text = encode_state(snapshot)
        with self._lock:
            channels = list(self._channels)
        delivered = 0
        for ch in channels:
            if not ch.is_open:
                continue
            if self._deliver(ch, text):
                delivered += 1
        return delivered

    def _deliver(self, channel: Channel, text: str) -> bool:
        try:
            channel.send(text)
        except Exception:
            logger.warning("Dropping observer channel %r after send failure", channel, exc_info=True)
            self.unregister(channel)
            return False
        return True
