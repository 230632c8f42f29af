from __future__ import annotations

# Single-entrypoint runner.
#
#     python -m walkin_queue.app serve [--port 8081] [--mqtt-host HOST]
#     python -m walkin_queue.app send ENQUEUE --name "Ana"
#
# `serve` runs the queue service with its WebSocket transport (and the MQTT
# bridge when a broker is given). `send` is a one-shot client.

import argparse
import asyncio
import json
import sys
from typing import Any

from .config import Settings
from .errors import ConfigError, OperationRejected
from .operations import OperationType


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Walk-in queue service (WebSocket + MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_serve = sub.add_parser("serve", help="Start the queue service")
    p_serve.add_argument("--host", default=None, help="bind address (default 0.0.0.0)")
    p_serve.add_argument("--port", type=int, default=None, help="WebSocket port (default 8081)")
    p_serve.add_argument("--timezone", default=None, help="IANA zone used for the daily rollover")
    p_serve.add_argument("--mqtt-host", default=None, help="also bridge to this MQTT broker")
    p_serve.add_argument("--mqtt-port", type=int, default=None)
    p_serve.add_argument("--namespace", default=None, help="MQTT topic namespace")
    p_serve.add_argument(
        "--notify-rejections",
        action="store_true",
        default=None,
        help="send a private error message to clients whose operation was rejected",
    )
    p_serve.add_argument("--log-level", default=None)

    p_send = sub.add_parser("send", help="Send one operation and print the resulting state")
    p_send.add_argument("op", choices=[t.value for t in OperationType])
    p_send.add_argument("--url", default="ws://127.0.0.1:8081")
    p_send.add_argument("--client-id", default=None)
    p_send.add_argument("--name", default=None)
    p_send.add_argument("--names", nargs="+", default=None)
    p_send.add_argument("--id", dest="entry_id", default=None)
    p_send.add_argument("--dir", type=int, default=None, help="-1 moves towards the front, +1 towards the back")
    p_send.add_argument("--file", default=None, help="JSON file with {queue: [...], stats: {...}} for IMPORT_STATE")
    p_send.add_argument("--timeout", type=float, default=5.0)

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.cmd == "serve":
        try:
            settings = Settings.from_env().with_overrides(
                host=args.host,
                port=args.port,
                timezone=args.timezone,
                mqtt_host=args.mqtt_host,
                mqtt_port=args.mqtt_port,
                namespace=args.namespace,
                notify_rejections=args.notify_rejections,
                log_level=args.log_level,
            ).validate()
        except ConfigError as e:
            print(f"[serve] configuration error: {e}", file=sys.stderr)
            sys.exit(2)
        serve(settings)
        return

    if args.cmd == "send":
        sys.exit(_send(args))


def serve(settings: Settings) -> None:
    from .clock import Clock
    from .logging_config import setup_logging
    from .service import QueueService
    from .ws_server import WebSocketServer

    setup_logging(settings.log_level)

    service = QueueService(Clock(settings.timezone), notify_rejections=settings.notify_rejections)
    server = WebSocketServer(service, host=settings.host, port=settings.port)

    mqtt_client = None
    bridge = None
    if settings.mqtt_host:
        # Import MQTT dependencies only when a broker is configured.
        from .mqtt_bridge import MqttQueueBridge
        from .mqtt_client import MqttClient

        mqtt_client = MqttClient(client_id="walkin-queue-service", host=settings.mqtt_host, port=settings.mqtt_port)
        bridge = MqttQueueBridge(service=service, mqtt=mqtt_client, namespace=settings.namespace)
        bridge.start()
        mqtt_client.start()

    print(f"[serve] queue service on ws://{settings.host}:{settings.port} (timezone {settings.timezone})")

    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        pass
    finally:
        if bridge is not None:
            bridge.stop()
        if mqtt_client is not None:
            mqtt_client.stop()


def _build_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if args.name is not None:
        payload["name"] = args.name
    if args.names is not None:
        payload["names"] = args.names
    if args.entry_id is not None:
        payload["id"] = args.entry_id
    if args.dir is not None:
        payload["dir"] = args.dir
    if args.file is not None:
        with open(args.file, encoding="utf-8") as f:
            payload["data"] = json.load(f)
    return payload


def _send(args: argparse.Namespace) -> int:
    from .client import send_operation

    try:
        payload = _build_payload(args)
    except (OSError, ValueError) as e:
        print(f"[client] cannot read {args.file}: {e}", file=sys.stderr)
        return 2

    try:
        snapshot = send_operation(
            args.url,
            args.op,
            payload,
            client_id=args.client_id,
            timeout=args.timeout,
        )
    except OperationRejected as e:
        print(f"[client] {args.op} rejected: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"[client] cannot reach {args.url}: {e}", file=sys.stderr)
        return 1

    if snapshot is None:
        print(f"[client] no state update for {args.op} (rejected or timed out)", file=sys.stderr)
        return 1
    print(json.dumps(snapshot, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    main()
