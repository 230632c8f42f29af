from __future__ import annotations

# In-memory state of the walk-in queue.
#
# The store is plain data plus the invariants that belong to the data itself
# (daily rollover, id lookup). It does no locking: the owning QueueService
# serializes every call.

import re
import uuid
from dataclasses import dataclass, field
from typing import Any

from .clock import Clock

NOBODY_SERVED = "—"

_WS_RUN = re.compile(r"\s+")


def normalize_name(value: Any) -> str:
    """Trim and collapse whitespace runs. Non-strings normalize to ""."""
    if not isinstance(value, str):
        return ""
    return _WS_RUN.sub(" ", value.strip())


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Entry:
    id: str
    name: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "createdAt": self.created_at}


@dataclass
class Stats:
    served_today: int = 0
    last_served: str = NOBODY_SERVED
    day_iso: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "atendidosHoy": self.served_today,
            "ultimoAtendido": self.last_served,
            "diaISO": self.day_iso,
        }


@dataclass(frozen=True)
class LastAction:
    type: str
    by: str
    ts: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "by": self.by, "ts": self.ts}


@dataclass
class QueueState:
    queue: list[Entry] = field(default_factory=list)  # front = next to be served
    stats: Stats = field(default_factory=Stats)
    last_action: LastAction | None = None


class StateStore:
    """Single source of truth for queue, stats and last action."""

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or Clock()
        self.state = self._fresh_state()

    def _fresh_state(self) -> QueueState:
        return QueueState(stats=Stats(day_iso=self.clock.today()))

    # -------------------- invariants --------------------

    def ensure_rollover(self) -> None:
        """Reset the served counter when the civil day has changed."""
        today = self.clock.today()
        stats = self.state.stats
        if stats.day_iso != today:
            self.state.stats = Stats(
                served_today=0,
                last_served=stats.last_served or NOBODY_SERVED,
                day_iso=today,
            )

    def snapshot(self) -> dict[str, Any]:
        self.ensure_rollover()
        last = self.state.last_action
        return {
            "queue": [e.to_dict() for e in self.state.queue],
            "stats": self.state.stats.to_dict(),
            "lastAction": last.to_dict() if last else None,
        }

    def reset(self) -> None:
        self.state = self._fresh_state()

    # -------------------- queue helpers --------------------

    def __len__(self) -> int:
        return len(self.state.queue)

    def make_entry(self, name: str) -> Entry:
        return Entry(id=new_id(), name=name, created_at=self.clock.iso_now())

    def append(self, names: list[str]) -> list[Entry]:
        entries = [self.make_entry(n) for n in names]
        self.state.queue.extend(entries)
        return entries

    def pop_front(self) -> Entry | None:
        if not self.state.queue:
            return None
        entry = self.state.queue.pop(0)
        self.state.stats.served_today += 1
        self.state.stats.last_served = entry.name
        return entry

    def index_of(self, entry_id: str) -> int:
        for i, e in enumerate(self.state.queue):
            if e.id == entry_id:
                return i
        return -1

    def swap(self, i: int, j: int) -> None:
        q = self.state.queue
        q[i], q[j] = q[j], q[i]

    def rename(self, i: int, name: str) -> None:
        self.state.queue[i].name = name

    def remove_at(self, i: int) -> Entry:
        return self.state.queue.pop(i)

    def clear_queue(self) -> None:
        self.state.queue = []

    def replace_queue(self, entries: list[Entry]) -> None:
        self.state.queue = list(entries)

    def replace_stats(self, stats: Stats) -> None:
        self.state.stats = stats

    def record_action(self, op_type: str, by: str) -> None:
        self.state.last_action = LastAction(type=op_type, by=by, ts=self.clock.timestamp_ms())
