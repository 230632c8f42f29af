import json

from walkin_queue.hub import BroadcastHub, encode_state


def snap():
    return {"queue": [], "stats": {"atendidosHoy": 0}, "lastAction": None}


def test_register_sends_current_snapshot_once(make_channel):
    hub = BroadcastHub()
    ch = make_channel()
    hub.register(ch, snap)
    assert len(ch.sent) == 1
    msg = json.loads(ch.sent[0])
    assert msg == {"type": "STATE", "payload": snap()}


def test_publish_sends_identical_payload_to_open_channels(make_channel):
    hub = BroadcastHub()
    a, b, closed = make_channel(), make_channel(), make_channel()
    for ch in (a, b, closed):
        hub.register(ch, snap)
    closed.open = False

    delivered = hub.publish({"queue": [{"id": "1", "name": "Ana", "createdAt": "t"}]})
    assert delivered == 2
    assert a.sent[-1] == b.sent[-1]
    assert len(closed.sent) == 1


def test_failing_channel_is_dropped_without_blocking_others(make_channel):
    hub = BroadcastHub()
    good, bad = make_channel(), make_channel()
    hub.register(bad, snap)
    hub.register(good, snap)
    bad.fail = True

    assert hub.publish(snap()) == 1
    assert len(hub) == 1
    assert len(good.sent) == 2


def test_unregister_stops_delivery(make_channel):
    hub = BroadcastHub()
    ch = make_channel()
    hub.register(ch, snap)
    hub.unregister(ch)
    hub.unregister(ch)
    hub.publish(snap())
    assert len(ch.sent) == 1


def test_encode_state_keeps_unicode():
    text = encode_state({"stats": {"ultimoAtendido": "—"}})
    assert "—" in text
