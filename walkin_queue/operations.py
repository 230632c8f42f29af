from __future__ import annotations

# Operation processor.
#
# Inbound messages are parsed into one typed operation per kind and then
# applied to the StateStore. An operation either commits completely or leaves
# the state untouched; the caller decides whether to broadcast based on the
# returned ApplyResult.

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from . import errors
from .state import NOBODY_SERVED, Entry, StateStore, Stats, new_id, normalize_name


class OperationType(str, Enum):
    ENQUEUE = "ENQUEUE"
    BULK_ADD = "BULK_ADD"
    DEQUEUE = "DEQUEUE"
    CLEAR_QUEUE = "CLEAR_QUEUE"
    RESET_ALL = "RESET_ALL"
    MOVE = "MOVE"
    EDIT = "EDIT"
    DELETE = "DELETE"
    IMPORT_STATE = "IMPORT_STATE"
    PEEK = "PEEK"


# -------------------- typed payloads --------------------


@dataclass(frozen=True)
class Enqueue:
    name: str


@dataclass(frozen=True)
class BulkAdd:
    names: list[str] | None  # None when the payload field was not a list


@dataclass(frozen=True)
class Dequeue:
    pass


@dataclass(frozen=True)
class ClearQueue:
    pass


@dataclass(frozen=True)
class ResetAll:
    pass


@dataclass(frozen=True)
class Move:
    entry_id: str
    direction: int | None  # None when dir is not an integer


@dataclass(frozen=True)
class Edit:
    entry_id: str
    name: str


@dataclass(frozen=True)
class Delete:
    entry_id: str


@dataclass(frozen=True)
class ImportState:
    data: Any


@dataclass(frozen=True)
class Peek:
    pass


@dataclass(frozen=True)
class Unknown:
    type_name: str


Operation = Union[Enqueue, BulkAdd, Dequeue, ClearQueue, ResetAll, Move, Edit, Delete, ImportState, Peek, Unknown]


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of one operation. Truthy only when the state changed."""

    accepted: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.accepted


ACCEPTED = ApplyResult(True)
NO_OP = ApplyResult(False)


def rejected(reason: str) -> ApplyResult:
    return ApplyResult(False, reason)


# -------------------- parsing --------------------


def _as_id(value: Any) -> str:
    if value is None or value is False:
        return ""
    return str(value)


def _as_direction(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_operation(op_type: Any, payload: dict[str, Any]) -> Operation:
    """Build the typed operation for a raw (type, payload) pair."""
    try:
        kind = OperationType(op_type)
    except ValueError:
        return Unknown(str(op_type))

    match kind:
        case OperationType.ENQUEUE:
            return Enqueue(normalize_name(payload.get("name")))
        case OperationType.BULK_ADD:
            raw = payload.get("names")
            return BulkAdd([normalize_name(n) for n in raw] if isinstance(raw, list) else None)
        case OperationType.DEQUEUE:
            return Dequeue()
        case OperationType.CLEAR_QUEUE:
            return ClearQueue()
        case OperationType.RESET_ALL:
            return ResetAll()
        case OperationType.MOVE:
            return Move(_as_id(payload.get("id")), _as_direction(payload.get("dir")))
        case OperationType.EDIT:
            return Edit(_as_id(payload.get("id")), normalize_name(payload.get("name")))
        case OperationType.DELETE:
            return Delete(_as_id(payload.get("id")))
        case OperationType.IMPORT_STATE:
            return ImportState(payload.get("data"))
        case OperationType.PEEK:
            return Peek()


# Every accepted operation is one of these; Unknown is never accepted.
_TYPE_BY_CLASS: dict[type, OperationType] = {
    Enqueue: OperationType.ENQUEUE,
    BulkAdd: OperationType.BULK_ADD,
    Dequeue: OperationType.DEQUEUE,
    ClearQueue: OperationType.CLEAR_QUEUE,
    ResetAll: OperationType.RESET_ALL,
    Move: OperationType.MOVE,
    Edit: OperationType.EDIT,
    Delete: OperationType.DELETE,
    ImportState: OperationType.IMPORT_STATE,
    Peek: OperationType.PEEK,
}


# -------------------- processor --------------------


class OperationProcessor:
    """Validates operations and applies them to a StateStore."""

    def __init__(self, store: StateStore) -> None:
        self.store = store

    def apply(self, op_type: Any, payload: dict[str, Any] | None = None, caller_id: str = "") -> ApplyResult:
        return self.execute(parse_operation(op_type, payload or {}), caller_id)

    def execute(self, op: Operation, caller_id: str = "") -> ApplyResult:
        self.store.ensure_rollover()
        result = self._dispatch(op)
        if result.accepted:
            self.store.record_action(_TYPE_BY_CLASS[type(op)].value, caller_id)
        return result

    def _dispatch(self, op: Operation) -> ApplyResult:
        store = self.store
        match op:
            case Enqueue(name=name):
                if not name:
                    return rejected(errors.EMPTY_NAME)
                store.append([name])
                return ACCEPTED

            case BulkAdd(names=names):
                cleaned = [n for n in names or [] if n]
                if not cleaned:
                    return rejected(errors.EMPTY_NAME)
                store.append(cleaned)
                return ACCEPTED

            case Dequeue():
                if store.pop_front() is None:
                    return rejected(errors.EMPTY_QUEUE)
                return ACCEPTED

            case ClearQueue():
                store.clear_queue()
                return ACCEPTED

            case ResetAll():
                store.reset()
                return ACCEPTED

            case Move(entry_id=entry_id, direction=direction):
                i = store.index_of(entry_id)
                if i < 0:
                    return rejected(errors.UNKNOWN_ID)
                if direction is None:
                    return rejected(errors.OUT_OF_RANGE)
                j = i + direction
                if j < 0 or j >= len(store):
                    return rejected(errors.OUT_OF_RANGE)
                store.swap(i, j)
                return ACCEPTED

            case Edit(entry_id=entry_id, name=name):
                if not name:
                    return rejected(errors.EMPTY_NAME)
                i = store.index_of(entry_id)
                if i < 0:
                    return rejected(errors.UNKNOWN_ID)
                store.rename(i, name)
                return ACCEPTED

            case Delete(entry_id=entry_id):
                i = store.index_of(entry_id)
                if i < 0:
                    return rejected(errors.UNKNOWN_ID)
                store.remove_at(i)
                return ACCEPTED

            case ImportState(data=data):
                return self._import_state(data)

            case Peek():
                return NO_OP

            case Unknown():
                return rejected(errors.UNKNOWN_OPERATION)

    def _import_state(self, data: Any) -> ApplyResult:
        if not isinstance(data, dict) or not isinstance(data.get("queue"), list):
            return rejected(errors.INVALID_IMPORT)

        # Build everything first so a bad item leaves the state untouched.
        try:
            entries = self._import_entries(data["queue"])
        except ValueError:
            return rejected(errors.INVALID_IMPORT)

        raw_stats = data.get("stats")
        stats_in = raw_stats if isinstance(raw_stats, dict) else {}
        today = self.store.clock.today()

        served = 0
        if stats_in.get("diaISO") == today:
            served = _as_served_count(stats_in.get("atendidosHoy"))

        self.store.replace_queue(entries)
        self.store.replace_stats(
            Stats(
                served_today=served,
                last_served=normalize_name(stats_in.get("ultimoAtendido")) or NOBODY_SERVED,
                day_iso=today,
            )
        )
        return ACCEPTED

    def _import_entries(self, items: list[Any]) -> list[Entry]:
        now_iso = self.store.clock.iso_now()
        entries: list[Entry] = []
        seen: set[str] = set()
        for item in items:
            if not isinstance(item, dict):
                raise ValueError("queue items must be objects")
            raw_name = item.get("name")
            if raw_name is not None and not isinstance(raw_name, str):
                raise ValueError("queue item names must be strings")
            name = normalize_name(raw_name)
            if not name:
                continue
            raw_id = item.get("id")
            entry_id = str(raw_id) if raw_id else new_id()
            if entry_id in seen:
                entry_id = new_id()
            seen.add(entry_id)
            created = item.get("createdAt")
            entries.append(Entry(id=entry_id, name=name, created_at=str(created) if created else now_iso))
        return entries


def _as_served_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value) or value < 0:
        return 0
    return int(value)
