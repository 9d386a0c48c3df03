"""Linearizability checking of operation and event histories."""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from operator import attrgetter
from typing import Any

from .bitset import Bitset
from .model import CheckResult, Event, EventKind, Model, Operation


@dataclass
class _Entry:
    kind: EventKind
    value: Any
    id: int
    time: int
    client_id: int


@dataclass
class LinearizationInfo:
    """Per-partition entries and the longest partial linearizations found."""

    history: list[list[_Entry]] = field(default_factory=list)
    partial_linearizations: list[list[list[int]]] = field(default_factory=list)


class _Node:
    __slots__ = ("value", "match", "id", "next", "prev")

    def __init__(self, value: Any, match: _Node | None, id_: int) -> None:
        self.value = value
        self.match = match  # None for a return node
        self.id = id_
        self.next: _Node | None = None
        self.prev: _Node | None = None


def _make_entries(history: Sequence[Operation]) -> list[_Entry]:
    entries: list[_Entry] = []
    for op_id, op in enumerate(history):
        entries.append(_Entry(EventKind.CALL, op.input, op_id, op.call, op.client_id))
        entries.append(_Entry(EventKind.RETURN, op.output, op_id, op.ret, op.client_id))
    entries.sort(key=attrgetter("time"))
    return entries


def _renumber(events: Sequence[Event]) -> list[Event]:
    ids: dict[int, int] = {}
    return [replace(ev, id=ids.setdefault(ev.id, len(ids))) for ev in events]


def _convert_entries(events: Sequence[Event]) -> list[_Entry]:
    # the position in the event list serves as the time
    return [
        _Entry(ev.kind, ev.value, ev.id, index, ev.client_id)
        for index, ev in enumerate(events)
    ]


def _insert_before(node: _Node, mark: _Node | None) -> _Node:
    if mark is not None:
        before = mark.prev
        mark.prev = node
        node.next = mark
        if before is not None:
            node.prev = before
            before.next = node
    return node


def _length(node: _Node | None) -> int:
    count = 0
    while node is not None:
        node = node.next
        count += 1
    return count


def _make_linked_entries(entries: Sequence[_Entry]) -> _Node | None:
    root: _Node | None = None
    returns: dict[int, _Node] = {}
    for entry in reversed(entries):
        if entry.kind is EventKind.RETURN:
            node = _Node(entry.value, None, entry.id)
            returns[entry.id] = node
        else:
            node = _Node(entry.value, returns.get(entry.id), entry.id)
        _insert_before(node, root)
        root = node
    return root


def _lift(entry: _Node) -> None:
    entry.prev.next = entry.next
    entry.next.prev = entry.prev
    match = entry.match
    match.prev.next = match.next
    if match.next is not None:
        match.next.prev = match.prev


def _unlift(entry: _Node) -> None:
    match = entry.match
    match.prev.next = match
    if match.next is not None:
        match.next.prev = match
    entry.prev.next = entry
    entry.next.prev = entry


def _check_single(
    model: Model,
    history: Sequence[_Entry],
    compute_partial: bool,
    kill: threading.Event,
) -> tuple[bool, list[list[int] | None]]:
    entry = _make_linked_entries(history)
    n = _length(entry) // 2
    linearized = Bitset(n)
    cache: dict[Bitset, list[Any]] = {}
    calls: list[tuple[_Node, Any]] = []
    # longest linearizable prefix that includes each operation
    longest: list[list[int] | None] = [None] * n

    state = model.init()
    head = _insert_before(_Node(None, None, -1), entry)
    while head.next is not None:
        if kill.is_set():
            return False, longest
        if entry.match is not None:
            ok, new_state = model.step(state, entry.value, entry.match.value)
            if ok:
                new_linearized = linearized.clone().set(entry.id)
                seen = cache.setdefault(new_linearized, [])
                if not any(model.equal(new_state, s) for s in seen):
                    seen.append(new_state)
                    calls.append((entry, state))
                    state = new_state
                    linearized.set(entry.id)
                    _lift(entry)
                    entry = head.next
                else:
                    entry = entry.next
            else:
                entry = entry.next
        else:
            if not calls:
                return False, longest
            if compute_partial:
                seq: list[int] | None = None
                for node, _ in calls:
                    best = longest[node.id]
                    if best is None or len(calls) > len(best):
                        if seq is None:
                            seq = [c.id for c, _ in calls]
                        longest[node.id] = seq
            entry, state = calls.pop()
            linearized.clear(entry.id)
            _unlift(entry)
            entry = entry.next

    seq = [node.id for node, _ in calls]
    return True, [seq] * n


def _check_parallel(
    model: Model,
    history: list[list[_Entry]],
    compute_info: bool,
    timeout: float | None,
) -> tuple[CheckResult, LinearizationInfo]:
    kill = threading.Event()
    results: queue.Queue[tuple[bool, BaseException | None]] = queue.Queue()
    longest: list[list[list[int] | None]] = [[] for _ in history]

    def run(index: int, subhistory: list[_Entry]) -> None:
        try:
            ok, prefixes = _check_single(model, subhistory, compute_info, kill)
        except BaseException as exc:  # re-raised in the calling thread
            results.put((False, exc))
            return
        longest[index] = prefixes
        results.put((ok, None))

    threads = [
        threading.Thread(target=run, args=(i, sub), daemon=True)
        for i, sub in enumerate(history)
    ]
    for thread in threads:
        thread.start()

    deadline = time.monotonic() + timeout if timeout else None
    ok = True
    timed_out = False
    count = 0
    while count < len(history):
        wait = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            result, error = results.get(timeout=wait)
        except queue.Empty:
            # a timeout may hide an illegal history
            timed_out = True
            kill.set()
            break
        if error is not None:
            kill.set()
            raise error
        count += 1
        ok = ok and result
        if not ok and not compute_info:
            kill.set()
            break

    info = LinearizationInfo()
    if compute_info:
        for thread in threads:
            thread.join()
        partials: list[list[list[int]]] = []
        for prefixes in longest:
            unique = {id(seq): seq for seq in prefixes if seq is not None}
            partials.append([list(seq) for seq in unique.values()])
        info = LinearizationInfo(history=history, partial_linearizations=partials)

    if not ok:
        return CheckResult.ILLEGAL, info
    if timed_out:
        return CheckResult.UNKNOWN, info
    return CheckResult.OK, info


def _check_events(
    model: Model, history: Sequence[Event], verbose: bool, timeout: float | None
) -> tuple[CheckResult, LinearizationInfo]:
    partitions = model.partition_event(history)
    entries = [_convert_entries(_renumber(part)) for part in partitions]
    return _check_parallel(model, entries, verbose, timeout)


def _check_operations(
    model: Model, history: Sequence[Operation], verbose: bool, timeout: float | None
) -> tuple[CheckResult, LinearizationInfo]:
    partitions = model.partition(history)
    entries = [_make_entries(part) for part in partitions]
    return _check_parallel(model, entries, verbose, timeout)


def check_operations(model: Model, history: Sequence[Operation]) -> bool:
    """Report whether an operation history is linearizable."""
    result, _ = _check_operations(model, history, False, None)
    return result is CheckResult.OK


def check_operations_timeout(
    model: Model, history: Sequence[Operation], timeout: float | None
) -> CheckResult:
    """Check with a timeout in seconds (0 or None for none)."""
    result, _ = _check_operations(model, history, False, timeout)
    return result


def check_operations_verbose(
    model: Model, history: Sequence[Operation], timeout: float | None
) -> tuple[CheckResult, LinearizationInfo]:
    """Check and also return the partial linearizations found."""
    return _check_operations(model, history, True, timeout)


def check_events(model: Model, history: Sequence[Event]) -> bool:
    """Report whether an event history is linearizable."""
    result, _ = _check_events(model, history, False, None)
    return result is CheckResult.OK


def check_events_timeout(
    model: Model, history: Sequence[Event], timeout: float | None
) -> CheckResult:
    """Check with a timeout in seconds (0 or None for none)."""
    result, _ = _check_events(model, history, False, timeout)
    return result


def check_events_verbose(
    model: Model, history: Sequence[Event], timeout: float | None
) -> tuple[CheckResult, LinearizationInfo]:
    """Check and also return the partial linearizations found."""
    return _check_events(model, history, True, timeout)