import asyncio
import json

from websockets.asyncio.client import connect

from walkin_queue.client import send_operation_async
from walkin_queue.hub import encode_state
from walkin_queue.service import QueueService
from walkin_queue.ws_server import LatestStateOutbox, WebSocketServer


async def _recv_state(ws):
    msg = json.loads(await asyncio.wait_for(ws.recv(), 5))
    assert msg["type"] == "STATE"
    return msg["payload"]


def test_observers_receive_initial_and_broadcast_states(clock):
    async def scenario():
        service = QueueService(clock)
        server = WebSocketServer(service, host="127.0.0.1", port=0)
        await server.start()
        url = f"ws://127.0.0.1:{server.port}"
        try:
            async with connect(url) as a, connect(url) as b:
                assert (await _recv_state(a))["queue"] == []
                assert (await _recv_state(b))["queue"] == []

                await a.send(json.dumps({"type": "ENQUEUE", "payload": {"name": " Ana ", "clientId": "a"}}))
                # Rejected operations produce nothing; the next frame is the enqueue.
                await a.send("garbage")
                for ws in (a, b):
                    first = await _recv_state(ws)
                    assert [e["name"] for e in first["queue"]] == ["Ana"]

                await a.send(json.dumps({"type": "DEQUEUE", "payload": {"clientId": "a"}}))
                await b.send(json.dumps({"type": "PEEK", "payload": {}}))
                for ws in (a, b):
                    second = await _recv_state(ws)
                    assert second["queue"] == []
                    assert second["stats"]["ultimoAtendido"] == "Ana"
                    assert second["lastAction"]["type"] == "DEQUEUE"
        finally:
            await server.stop()

    asyncio.run(scenario())


def test_client_helper_returns_own_result(clock):
    async def scenario():
        service = QueueService(clock)
        server = WebSocketServer(service, host="127.0.0.1", port=0)
        await server.start()
        url = f"ws://127.0.0.1:{server.port}"
        try:
            snap = await send_operation_async(url, "BULK_ADD", {"names": ["x", "y"]}, client_id="cli-1")
            assert [e["name"] for e in snap["queue"]] == ["x", "y"]
            assert snap["lastAction"]["by"] == "cli-1"

            peek = await send_operation_async(url, "PEEK")
            assert len(peek["queue"]) == 2

            missing = await send_operation_async(url, "DELETE", {"id": "nope"}, timeout=0.3)
            assert missing is None
        finally:
            await server.stop()

    asyncio.run(scenario())


def test_outbox_keeps_only_newest_unsent_snapshot():
    async def scenario():
        outbox = LatestStateOutbox()
        notice = json.dumps({"type": "error", "code": "empty_queue"})
        outbox.put(encode_state({"queue": [1]}))
        outbox.put(notice)
        outbox.put(encode_state({"queue": [1, 2]}))
        outbox.put(encode_state({"queue": [1, 2, 3]}))
        assert len(outbox) == 2

        assert await outbox.get() == notice
        assert json.loads(await outbox.get())["payload"] == {"queue": [1, 2, 3]}

        outbox.put(None)
        assert await outbox.get() is None

    asyncio.run(scenario())


def test_outbox_get_waits_for_a_frame():
    async def scenario():
        outbox = LatestStateOutbox()
        waiter = asyncio.create_task(outbox.get())
        await asyncio.sleep(0)
        assert not waiter.done()
        outbox.put(encode_state({"queue": []}))
        assert await asyncio.wait_for(waiter, 1) == encode_state({"queue": []})

    asyncio.run(scenario())
