"""Sequential specification of a key/value store for linearizability checks."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .model import Model, Operation

_GET = 0
_PUT = 1
_APPEND = 2


@dataclass(frozen=True)
class KvInput:
    """A client request: ``op`` is 0 for get, 1 for put, 2 for append."""

    op: int
    key: str
    value: str = ""


@dataclass(frozen=True)
class KvOutput:
    """The value a get returned; unused for put and append."""

    value: str = ""


def kv_partition(history: Sequence[Operation]) -> list[list[Operation]]:
    """Split a history by key, ordering the partitions by key."""
    by_key: dict[str, list[Operation]] = {}
    for op in history:
        by_key.setdefault(op.input.key, []).append(op)
    return [by_key[key] for key in sorted(by_key)]


def kv_init() -> str:
    """Initial value of a single key; partitions each hold one key."""
    return ""


def kv_step(state: str, input: KvInput, output: Any) -> tuple[bool, str]:
    """Apply one request to the value of its key."""
    if input.op == _GET:
        return output.value == state, state
    if input.op == _PUT:
        return True, input.value
    return True, state + input.value


def kv_describe_operation(input: KvInput, output: Any) -> str:
    if input.op == _GET:
        return f"get('{input.key}') -> '{output.value}'"
    if input.op == _PUT:
        return f"put('{input.key}', '{input.value}')"
    if input.op == _APPEND:
        return f"append('{input.key}', '{input.value}')"
    return "<invalid>"


KV_MODEL = Model(
    init=kv_init,
    step=kv_step,
    partition=kv_partition,
    describe_operation=kv_describe_operation,
)