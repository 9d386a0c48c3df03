"""Requests, replies and error codes of the fault-tolerant key/value service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Err(str, Enum):
    OK = "OK"
    ERR_NO_KEY = "ErrNoKey"
    ERR_WRONG_LEADER = "ErrWrongLeader"


class OpKind(str, Enum):
    PUT = "Put"
    GET = "Get"
    APPEND = "Append"


@dataclass
class PutAppendArgs:
    """A put or append request; ``op`` selects which."""

    key: str = ""
    value: str = ""
    op: OpKind = OpKind.PUT
    clerk_id: int = 0
    request_id: int = 0


@dataclass
class PutAppendReply:
    err: Err = Err.OK


@dataclass
class GetArgs:
    key: str = ""
    clerk_id: int = 0
    request_id: int = 0


@dataclass
class GetReply:
    err: Err = Err.OK
    value: str = ""