"""WebSocket transport.

Each connection is one observer channel. Inbound text frames go to the
QueueService; outbound frames are queued per connection and written by a
dedicated task, so a slow client only delays itself. A slow client that falls
behind gets the newest snapshot, not every intermediate one.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from .hub import is_state_frame
from .service import QueueService

logger = logging.getLogger(__name__)


class LatestStateOutbox:
    """Frames waiting to be written to one socket.

    Snapshots are complete, so an unsent snapshot is replaced by a newer one.
    Other frames (rejection notices) are kept. `None` closes the outbox.
    """

    def __init__(self) -> None:
        self._frames: deque[str | None] = deque()
        self._ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._frames)

    def put(self, text: str | None) -> None:
        if text is not None and is_state_frame(text):
            self._frames = deque(f for f in self._frames if f is None or not is_state_frame(f))
        self._frames.append(text)
        self._ready.set()

    async def get(self) -> str | None:
        while not self._frames:
            self._ready.clear()
            await self._ready.wait()
        return self._frames.popleft()


class WebSocketChannel:
    """Hub channel backed by one WebSocket connection."""

    def __init__(self, ws: ServerConnection, loop: asyncio.AbstractEventLoop) -> None:
        self.ws = ws
        self._loop = loop
        self._outbox = LatestStateOutbox()
        self._closed = False

    def __repr__(self) -> str:
        return f"<WebSocketChannel {self.ws.remote_address}>"

    @property
    def is_open(self) -> bool:
        return not self._closed and self.ws.state is State.OPEN

    def send(self, text: str) -> None:
        # Always go through the loop's ready queue, even from the loop thread,
        # so frames keep the order in which the service produced them.
        self._loop.call_soon_threadsafe(self._outbox.put, text)

    def close(self) -> None:
        self._closed = True
        self._loop.call_soon_threadsafe(self._outbox.put, None)

    async def pump(self) -> None:
        """Write queued frames until the channel is closed."""
        while True:
            text = await self._outbox.get()
            if text is None:
                return
            try:
                await self.ws.send(text)
            except ConnectionClosed:
                return


class WebSocketServer:
    def __init__(self, service: QueueService, *, host: str = "0.0.0.0", port: int = 8081) -> None:
        self.service = service
        self.host = host
        self.port = port
        self._server: Server | None = None

    async def start(self) -> None:
        self._server = await serve(self._handle_client, self.host, self.port)
        # Resolve the real port when binding to 0.
        sockets = list(self._server.sockets)
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info("WebSocket server listening on ws://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("WebSocket server stopped")

    async def serve_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Future()
        finally:
            await self.stop()

    async def _handle_client(self, ws: ServerConnection) -> None:
        channel = WebSocketChannel(ws, asyncio.get_running_loop())
        writer = asyncio.create_task(channel.pump())
        logger.info("Client connected: %s", ws.remote_address)
        self.service.connect(channel)
        try:
            async for message in ws:
                self.service.handle_text(message, reply_to=channel)
        except ConnectionClosed:
            pass
        finally:
            self.service.disconnect(channel)
            channel.close()
            await writer
            logger.info("Client disconnected: %s", ws.remote_address)
