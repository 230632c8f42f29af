"""Real-time walk-in queue service (WebSocket + optional MQTT).

One authoritative in-memory queue with daily service statistics. Clients
submit operations and every connected observer receives the full state after
each accepted change:
- a queue service owning the state (single writer)
- a WebSocket server, one channel per observer
- an optional MQTT bridge publishing retained snapshots
- a small command-line client

See README for how to run.
"""
