"""MQTT topic helpers.

We keep topic construction in one place so the service and its clients agree
on naming.

Topic layout under a configurable namespace (default: `walkin/v0`):

- `<ns>/queue/operations`
    Clients publish `{type, payload}` operation messages.
- `<ns>/queue/state`
    The service publishes `{type: "STATE", payload}` after every accepted
    operation. Messages are retained, so a new subscriber gets the current
    snapshot immediately.
- `<ns>/queue/replies/<client_id>`
    Private rejection notices (only when enabled on the service).

You can run multiple independent queues on a shared broker by changing the
`namespace` parameter (e.g. `--namespace shop/front-desk`).
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "walkin/v0"


def operations(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/operations"


def state(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Retained full-state snapshots."""
    return f"{namespace}/queue/state"


def replies(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/replies/{client_id}"
