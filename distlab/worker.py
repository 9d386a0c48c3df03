"""MapReduce worker: asks the master for tasks and runs them."""

from __future__ import annotations

import dataclasses
import json
import os
import socket
import tempfile
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from itertools import groupby
from operator import attrgetter
from typing import Any

from .master import SOCKET_ENV
from .mrrpc import (
    AskArgs,
    AskReply,
    CompletedArgs,
    CompletedReply,
    ExampleArgs,
    ExampleReply,
    TaskType,
    master_sock,
    receive_message,
    send_message,
)

MapFunc = Callable[[str, str], list["KeyValue"]]
ReduceFunc = Callable[[str, list[str]], str]

_REPLY_TYPES: dict[str, type] = {
    "Master.Task": AskReply,
    "Master.Completed": CompletedReply,
    "Master.Example": ExampleReply,
}


class RpcError(Exception):
    """The master answered a request with an error."""


@dataclass(frozen=True)
class KeyValue:
    """One key/value pair emitted by a map function."""

    key: str
    value: str


def ihash(key: str) -> int:
    """32-bit FNV-1a hash of ``key``, masked to a non-negative value.

    Use ``ihash(key) % n_reduce`` to choose the reduce task for a key.
    """
    h = 0x811C9DC5
    for byte in key.encode("utf-8"):
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h & 0x7FFFFFFF


def _write_atomically(final_name: str, lines: Iterable[str]) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=".", prefix=f"{final_name}-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as out:
            out.writelines(lines)
        os.replace(tmp_name, final_name)
    except BaseException:
        os.unlink(tmp_name)
        raise


def run_map_task(reply: AskReply, mapf: MapFunc) -> list[str]:
    """Run a map task and return the intermediate file names, one per reduce task."""
    with open(reply.map_filename, encoding="utf-8", newline="") as infile:
        content = infile.read()
    buckets: list[list[str]] = [[] for _ in range(reply.n_reduce)]
    for kv in mapf(reply.map_filename, content):
        record = json.dumps({"Key": kv.key, "Value": kv.value})
        buckets[ihash(kv.key) % reply.n_reduce].append(record + "\n")
    filenames = []
    for index, bucket in enumerate(buckets):
        name = f"mr-{reply.map_task_number}-{index}.json"
        _write_atomically(name, bucket)
        filenames.append(name)
    return filenames


def _read_intermediate(filename: str) -> list[KeyValue]:
    pairs = []
    with open(filename, encoding="utf-8") as infile:
        for line in infile:
            try:
                record = json.loads(line)
                pairs.append(KeyValue(record["Key"], record["Value"]))
            except (ValueError, KeyError, TypeError):
                break
    return pairs


def run_reduce_task(reply: AskReply, reducef: ReduceFunc) -> str:
    """Run a reduce task and return the name of its output file."""
    intermediate = [
        kv
        for filename in reply.intermediate_files[: reply.n_maps]
        for kv in _read_intermediate(filename)
    ]
    intermediate.sort(key=attrgetter("key"))
    lines = []
    for key, group in groupby(intermediate, key=attrgetter("key")):
        output = reducef(key, [kv.value for kv in group])
        lines.append(f"{key} {output}\n")
    name = f"mr-out-{reply.reduce_task_number}"
    _write_atomically(name, lines)
    return name


def worker(mapf: MapFunc, reducef: ReduceFunc) -> None:
    """Run tasks until the master says to exit or can no longer be reached."""
    while True:
        try:
            reply = call_task()
        except (OSError, EOFError, RpcError):
            return
        if reply.task_type is TaskType.MAP:
            filenames = run_map_task(reply, mapf)
            args = CompletedArgs(TaskType.MAP, reply.map_task_number, -1, filenames)
        elif reply.task_type is TaskType.REDUCE:
            run_reduce_task(reply, reducef)
            args = CompletedArgs(TaskType.REDUCE, -1, reply.reduce_task_number, [])
        else:
            return
        try:
            call_completed(args)
        except (OSError, EOFError, RpcError):
            return


def call_task() -> AskReply:
    """Ask the master for a task."""
    return call("Master.Task", AskArgs())


def call_completed(args: CompletedArgs) -> CompletedReply:
    """Tell the master a task has finished."""
    return call("Master.Completed", args)


def call_example() -> ExampleReply:
    """Send the example request; the reply's ``y`` should be 100."""
    reply = call("Master.Example", ExampleArgs(x=99))
    print(f"reply.Y {reply.y}")
    return reply


def _build_reply(reply_type: type, data: dict[str, Any]) -> Any:
    reply = reply_type(**data)
    if hasattr(reply, "task_type"):
        reply.task_type = TaskType(reply.task_type)
    return reply


def call(rpcname: str, args: Any) -> Any:
    """Send one request to the master and return its reply.

    Raises OSError if the master cannot be reached and RpcError if it
    answered with an error.
    """
    sockname = os.environ.get(SOCKET_ENV) or master_sock()
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(sockname)
        send_message(sock, {"method": rpcname, "args": dataclasses.asdict(args)})
        response = receive_message(sock)
    if "error" in response:
        raise RpcError(response["error"])
    data = response.get("reply", {})
    reply_type = _REPLY_TYPES.get(rpcname)
    return _build_reply(reply_type, data) if reply_type is not None else data