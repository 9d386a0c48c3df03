"""Messages exchanged between the MapReduce master and its workers."""

from __future__ import annotations

import dataclasses
import json
import os
import socket
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

_HEADER = struct.Struct(">I")


class TaskType(IntEnum):
    MAP = 0
    REDUCE = 1
    EXIT = 2


@dataclass
class ExampleArgs:
    x: int = 0


@dataclass
class ExampleReply:
    y: int = 0


@dataclass
class AskArgs:
    pass


@dataclass
class AskReply:
    """A task handed to a worker.

    Task numbers not relevant to the task type are -1; intermediate files are
    listed only for reduce tasks.
    """

    task_type: TaskType = TaskType.EXIT
    map_task_number: int = -1
    reduce_task_number: int = -1
    n_reduce: int = 0
    map_filename: str = ""
    n_maps: int = 0
    intermediate_files: list[str] = field(default_factory=list)


@dataclass
class CompletedArgs:
    task_type: TaskType
    map_task_number: int = -1
    reduce_task_number: int = -1
    intermediate_files: list[str] = field(default_factory=list)


@dataclass
class CompletedReply:
    pass


def master_sock() -> str:
    """Path of the master's UNIX-domain socket, unique per user."""
    uid = os.getuid() if hasattr(os, "getuid") else -1
    return f"/var/tmp/distlab-mr-{uid}"


def send_message(sock: socket.socket, message: Any) -> None:
    """Send one length-prefixed JSON message; dataclasses are sent as dicts."""
    if dataclasses.is_dataclass(message) and not isinstance(message, type):
        message = dataclasses.asdict(message)
    payload = json.dumps(message).encode("utf-8")
    sock.sendall(_HEADER.pack(len(payload)) + payload)


def _recv_exact(sock: socket.socket, size: int, at_boundary: bool = False) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            if at_boundary and not data:
                raise EOFError("connection closed")
            raise ConnectionError("connection closed in the middle of a message")
        data += chunk
    return bytes(data)


def receive_message(sock: socket.socket) -> Any:
    """Receive one message sent by :func:`send_message`.

    Raises EOFError if the peer closed between messages and ConnectionError
    if it closed part-way through one.
    """
    (size,) = _HEADER.unpack(_recv_exact(sock, _HEADER.size, at_boundary=True))
    return json.loads(_recv_exact(sock, size))