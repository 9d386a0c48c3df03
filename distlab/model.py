"""Histories, models and results for linearizability checking."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Operation:
    """One operation with its invocation and response times."""

    input: Any
    call: int
    output: Any
    ret: int
    client_id: int = 0


class EventKind(Enum):
    CALL = "call"
    RETURN = "return"


@dataclass(frozen=True)
class Event:
    """A call or return event; the matching pair shares an ``id``."""

    kind: EventKind
    value: Any
    id: int
    client_id: int = 0


def no_partition(history: Sequence[Operation]) -> list[list[Operation]]:
    """Treat the whole history as a single partition."""
    return [list(history)]


def no_partition_event(history: Sequence[Event]) -> list[list[Event]]:
    """Treat the whole event history as a single partition."""
    return [list(history)]


def shallow_equal(state1: Any, state2: Any) -> bool:
    return state1 == state2


def default_describe_operation(input: Any, output: Any) -> str:
    return f"{input} -> {output}"


def default_describe_state(state: Any) -> str:
    return f"{state}"


@dataclass
class Model:
    """A sequential specification of the system being checked.

    ``step(state, input, output)`` returns whether the step is legal and the
    new state; it must not mutate ``state``.
    """

    init: Callable[[], Any]
    step: Callable[[Any, Any, Any], tuple[bool, Any]]
    partition: Callable[[Sequence[Operation]], list[list[Operation]]] = no_partition
    partition_event: Callable[[Sequence[Event]], list[list[Event]]] = no_partition_event
    equal: Callable[[Any, Any], bool] = shallow_equal
    describe_operation: Callable[[Any, Any], str] = default_describe_operation
    describe_state: Callable[[Any], str] = default_describe_state


class CheckResult(str, Enum):
    UNKNOWN = "Unknown"
    OK = "Ok"
    ILLEGAL = "Illegal"