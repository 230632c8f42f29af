from __future__ import annotations

# The queue service is the *authoritative brain* of the system.
#
# It owns one StateStore, one OperationProcessor and one BroadcastHub, and it
# is the only writer: every transport (WebSocket, MQTT) calls into it, and a
# single lock serializes validate -> apply -> snapshot -> fan-out.

import json
import logging
import threading
from typing import Any

from . import errors
from .clock import Clock
from .hub import BroadcastHub, Channel
from .operations import ApplyResult, OperationProcessor, rejected
from .state import StateStore

logger = logging.getLogger(__name__)


class QueueService:
    """Shared queue state plus its observers, scoped to one running server."""

    def __init__(self, clock: Clock | None = None, *, notify_rejections: bool = False) -> None:
        self._lock = threading.Lock()
        self.store = StateStore(clock)
        self.processor = OperationProcessor(self.store)
        self.hub = BroadcastHub()
        self.notify_rejections = notify_rejections

    # -------------------- observers --------------------

    def connect(self, channel: Channel) -> None:
        """Register an observer; it receives the current snapshot first."""
        with self._lock:
            self.hub.register(channel, self.store.snapshot)
        logger.info("Observer connected (total: %d)", len(self.hub))

    def refresh(self, channel: Channel) -> None:
        """Resend the current snapshot to an already registered channel."""
        with self._lock:
            self.hub.send_to(channel, self.store.snapshot)

    def disconnect(self, channel: Channel) -> None:
        self.hub.unregister(channel)
        logger.info("Observer disconnected (total: %d)", len(self.hub))

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self.store.snapshot()

    # -------------------- operations --------------------

    def submit(self, op_type: Any, payload: dict[str, Any] | None = None, caller_id: str = "") -> ApplyResult:
        """Apply one operation and broadcast the new state if it was accepted."""
        with self._lock:
            result = self.processor.apply(op_type, payload, caller_id)
            if result:
                delivered = self.hub.publish(self.store.snapshot())
                logger.info("Accepted %s from %r (delivered to %d observers)", op_type, caller_id, delivered)
            elif result.reason:
                logger.debug("Rejected %s from %r: %s", op_type, caller_id, result.reason)
        return result

    def handle_message(self, data: Any, reply_to: Channel | None = None) -> ApplyResult:
        """Handle one decoded inbound message `{type, payload}`."""
        if not isinstance(data, dict):
            return self._reject(errors.MALFORMED_MESSAGE, None, reply_to)

        payload = data.get("payload")
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            return self._reject(errors.MALFORMED_MESSAGE, data.get("type"), reply_to)

        client_id = payload.get("clientId")
        result = self.submit(data.get("type"), payload, str(client_id) if client_id else "")
        if not result and result.reason:
            self._notify(result.reason, data.get("type"), reply_to)
        return result

    def handle_text(self, raw: str | bytes, reply_to: Channel | None = None) -> ApplyResult:
        """Decode a JSON text frame and handle it. Unparseable text is dropped."""
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            data = json.loads(raw)
        except (UnicodeDecodeError, ValueError):
            return self._reject(errors.MALFORMED_MESSAGE, None, reply_to)
        return self.handle_message(data, reply_to)

    def _reject(self, reason: str, op_type: Any, reply_to: Channel | None) -> ApplyResult:
        logger.debug("Dropped inbound message: %s", reason)
        self._notify(reason, op_type, reply_to)
        return rejected(reason)

    def _notify(self, reason: str, op_type: Any, reply_to: Channel | None) -> None:
        if not self.notify_rejections or reply_to is None or not reply_to.is_open:
            return
        msg = errors.ErrorResponse.for_reason(reason).to_message(
            op_type=op_type if isinstance(op_type, str) else None
        )
        try:
            reply_to.send(json.dumps(msg, ensure_ascii=False))
        except Exception:
            logger.warning("Could not deliver rejection notice to %r", reply_to, exc_info=True)
