"""Encoding of RPC and persisted values, with warnings about common mistakes.

Fields whose names start with an underscore are not transmitted; a warning
is logged and counted the first time a type containing one is seen. Decoding
into an instance that already holds non-default values is also reported.
"""

from __future__ import annotations

import base64
import dataclasses
import enum
import json
import logging
import threading
import typing
from typing import IO, Any

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_error_count = 0
_checked: set[Any] = set()
_names_by_type: dict[type, str] = {}
_types_by_name: dict[str, type] = {}


def error_count() -> int:
    """Number of problems reported so far."""
    with _lock:
        return _error_count


def _report() -> int:
    global _error_count
    with _lock:
        previous = _error_count
        _error_count += 1
        return previous


def _default_name(tp: type) -> str:
    return f"{tp.__module__}.{tp.__qualname__}"


def _register(name: str, tp: type) -> None:
    with _lock:
        existing = _types_by_name.get(name)
        if existing is not None and existing is not tp:
            raise ValueError(f"labgob: name {name!r} already registered for {existing!r}")
        known = _names_by_type.get(tp)
        if known is not None and known != name:
            raise ValueError(f"labgob: type {tp!r} already registered as {known!r}")
        _types_by_name[name] = tp
        _names_by_type[tp] = name


def _name_for(tp: type) -> str:
    with _lock:
        name = _names_by_type.get(tp)
    if name is None:
        name = _default_name(tp)
        _register(name, tp)
    return name


def _type_of(value: Any) -> type:
    return value if isinstance(value, type) else type(value)


def register(value: Any) -> None:
    """Register the type of ``value`` (or ``value`` itself if it is a type)."""
    _check_target(value)
    tp = _type_of(value)
    _register(_default_name(tp), tp)


def register_name(name: str, value: Any) -> None:
    """Register the type of ``value`` under an explicit name."""
    _check_target(value)
    _register(name, _type_of(value))


def _field_types(tp: type) -> dict[str, Any]:
    # Annotations kept as strings are not resolved; values are still checked.
    return {
        f.name: f.type for f in dataclasses.fields(tp) if not isinstance(f.type, str)
    }


def _check_type(tp: Any) -> None:
    try:
        with _lock:
            if tp in _checked:
                return
            _checked.add(tp)
    except TypeError:
        return
    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        types = _field_types(tp)
        for f in dataclasses.fields(tp):
            if f.name.startswith("_"):
                logger.warning(
                    "labgob error: private field %s of %s in RPC or persist/snapshot "
                    "will break your Raft",
                    f.name,
                    tp.__name__,
                )
                _report()
            _check_type(types.get(f.name, Any))
        return
    for arg in typing.get_args(tp):
        _check_type(arg)


def _check_value(value: Any) -> None:
    _check_type(type(value))
    if isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            _check_value(item)
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_value(key)
            _check_value(item)
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            _check_value(getattr(value, f.name))


def _check_target(target: Any) -> None:
    if isinstance(target, type) or target is Any or typing.get_origin(target) is not None:
        _check_type(target)
    else:
        _check_value(target)


def _check_default(value: Any, depth: int = 1, name: str = "") -> None:
    if depth > 3 or value is None:
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            inner = f"{name}.{f.name}" if name else f.name
            _check_default(getattr(value, f.name), depth + 1, inner)
        return
    if isinstance(value, (bool, int, float, str, bytes)) and not isinstance(value, enum.Enum):
        if value:
            if _report() < 1:
                logger.warning(
                    "labgob warning: Decoding into a non-default variable/field %s "
                    "may not work",
                    name or type(value).__name__,
                )


def _to_tree(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, enum.Enum):
        return {"__enum__": _name_for(type(value)), "value": _to_tree(value.value)}
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {"__bytes__": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, list):
        return [_to_tree(item) for item in value]
    if isinstance(value, tuple):
        return {"__tuple__": [_to_tree(item) for item in value]}
    if isinstance(value, frozenset):
        return {"__frozenset__": [_to_tree(item) for item in value]}
    if isinstance(value, set):
        return {"__set__": [_to_tree(item) for item in value]}
    if isinstance(value, dict):
        return {"__map__": [[_to_tree(k), _to_tree(v)] for k, v in value.items()]}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "__struct__": _name_for(type(value)),
            "fields": {
                f.name: _to_tree(getattr(value, f.name))
                for f in dataclasses.fields(value)
                if not f.name.startswith("_")
            },
        }
    raise TypeError(f"labgob: cannot encode value of type {type(value).__name__}")


def _lookup(name: str) -> type:
    with _lock:
        tp = _types_by_name.get(name)
    if tp is None:
        raise ValueError(f"labgob: type {name!r} not registered")
    return tp


def _build_struct(tp: type, data: dict[str, Any]) -> Any:
    obj = object.__new__(tp)
    for f in dataclasses.fields(tp):
        if f.name in data:
            value = _from_tree(data[f.name])
        elif f.default is not dataclasses.MISSING:
            value = f.default
        elif f.default_factory is not dataclasses.MISSING:
            value = f.default_factory()
        else:
            value = None
        object.__setattr__(obj, f.name, value)
    return obj


def _from_tree(node: Any) -> Any:
    if isinstance(node, list):
        return [_from_tree(item) for item in node]
    if not isinstance(node, dict):
        return node
    if "__struct__" in node:
        return _build_struct(_lookup(node["__struct__"]), node["fields"])
    if "__enum__" in node:
        return _lookup(node["__enum__"])(_from_tree(node["value"]))
    if "__bytes__" in node:
        return base64.b64decode(node["__bytes__"])
    if "__tuple__" in node:
        return tuple(_from_tree(item) for item in node["__tuple__"])
    if "__set__" in node:
        return {_from_tree(item) for item in node["__set__"]}
    if "__frozenset__" in node:
        return frozenset(_from_tree(item) for item in node["__frozenset__"])
    if "__map__" in node:
        return {_from_tree(k): _from_tree(v) for k, v in node["__map__"]}
    raise ValueError(f"labgob: malformed record {node!r}")


def _expected_type(into: Any) -> type | None:
    if into is None or into is Any:
        return None
    if isinstance(into, type):
        return into
    origin = typing.get_origin(into)
    if origin is not None:
        return origin if isinstance(origin, type) else None
    return type(into)


class LabEncoder:
    """Writes one record per encoded value to a binary stream."""

    def __init__(self, writer: IO[bytes]) -> None:
        self._writer = writer

    def encode(self, value: Any) -> None:
        _check_value(value)
        record = json.dumps(_to_tree(value), separators=(",", ":"))
        self._writer.write(record.encode("utf-8") + b"\n")


class LabDecoder:
    """Reads records written by :class:`LabEncoder`."""

    def __init__(self, reader: IO[bytes]) -> None:
        self._reader = reader

    def decode(self, into: Any = None) -> Any:
        """Return the next value.

        ``into`` names what is expected: a type, a typing form, or an
        existing instance (checked for non-default contents). ``None``
        accepts anything.
        """
        if into is not None:
            _check_target(into)
            if not isinstance(into, type) and into is not Any and typing.get_origin(into) is None:
                _check_default(into)
        line = self._reader.readline()
        if not line:
            raise EOFError("labgob: no more values to decode")
        if not line.endswith(b"\n"):
            raise ValueError("labgob: truncated record")
        value = _from_tree(json.loads(line))
        expected = _expected_type(into)
        if expected is not None and not isinstance(value, expected):
            if not (expected is float and isinstance(value, int)):
                raise TypeError(
                    f"labgob: decoded {type(value).__name__}, expected {expected.__name__}"
                )
        return value