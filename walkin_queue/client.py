from __future__ import annotations

# Command-line client.
#
# A client call is short-lived:
# - connect to the WebSocket server
# - read the initial snapshot
# - send one operation tagged with our clientId
# - wait for the snapshot whose lastAction is ours and return it
#
# The server drops rejected operations silently by default, so a timeout
# (None) is how a rejection shows up unless rejection notices are enabled.

import asyncio
import json
import uuid
from typing import Any

from websockets.asyncio.client import connect

from .errors import OperationRejected


def new_client_id() -> str:
    return f"cli-{uuid.uuid4().hex[:8]}"


async def send_operation_async(
    url: str,
    op_type: str,
    payload: dict[str, Any] | None = None,
    *,
    client_id: str | None = None,
    timeout: float = 5.0,
) -> dict[str, Any] | None:
    """Send one operation and return the resulting snapshot, or None on timeout."""
    client_id = client_id or new_client_id()
    loop = asyncio.get_running_loop()

    async with connect(url) as ws:
        first = json.loads(await asyncio.wait_for(ws.recv(), timeout))
        if op_type == "PEEK":
            return first.get("payload")

        body = dict(payload or {})
        body["clientId"] = client_id
        await ws.send(json.dumps({"type": op_type, "payload": body}))

        deadline = loop.time() + timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return None
            try:
                raw = await asyncio.wait_for(ws.recv(), remaining)
            except asyncio.TimeoutError:
                return None
            msg = json.loads(raw)
            if msg.get("type") == "error":
                raise OperationRejected(str(msg.get("code")), str(msg.get("message")))
            if msg.get("type") != "STATE":
                continue
            snapshot = msg.get("payload") or {}
            last = snapshot.get("lastAction") or {}
            if last.get("by") == client_id and last.get("type") == op_type:
                return snapshot


def send_operation(
    url: str,
    op_type: str,
    payload: dict[str, Any] | None = None,
    *,
    client_id: str | None = None,
    timeout: float = 5.0,
) -> dict[str, Any] | None:
    return asyncio.run(send_operation_async(url, op_type, payload, client_id=client_id, timeout=timeout))
