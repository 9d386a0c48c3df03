"""MapReduce applications: word count, indexer, and test applications.

Each application is a pair of map and reduce functions. ``load_app`` finds an
application by name, so a worker or the sequential runner can be told which
one to use on the command line.
"""

from __future__ import annotations

import os
import re
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from itertools import groupby
from pathlib import Path

from .worker import KeyValue

MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]


@dataclass(frozen=True)
class MapReduceApp:
    """A named pair of map and reduce functions."""

    name: str
    map: MapFunc
    reduce: ReduceFunc


def _words(text: str) -> list[str]:
    """Split ``text`` into maximal runs of letters."""
    return ["".join(run) for is_letter, run in groupby(text, key=str.isalpha) if is_letter]


def _byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


# word count


def wc_map(filename: str, contents: str) -> list[KeyValue]:
    """Emit ``(word, "1")`` for every word of ``contents``."""
    return [KeyValue(word, "1") for word in _words(contents)]


def wc_reduce(key: str, values: list[str]) -> str:
    """Return the number of occurrences of the word."""
    return str(len(values))


# inverted index


def indexer_map(document: str, value: str) -> list[KeyValue]:
    """Emit ``(word, document)`` once for each distinct word in ``value``."""
    return [KeyValue(word, document) for word in dict.fromkeys(_words(value))]


def indexer_reduce(key: str, values: list[str]) -> str:
    """Return the number of documents and their sorted, comma-joined names."""
    documents = sorted(values)
    return f"{len(documents)} {','.join(documents)}"


# crash tests


def _maybe_crash() -> None:
    roll = secrets.randbelow(1000)
    if roll < 330:
        os._exit(1)
    elif roll < 660:
        time.sleep(secrets.randbelow(10 * 1000) / 1000)


def _describe_input(filename: str, contents: str) -> list[KeyValue]:
    return [
        KeyValue("a", filename),
        KeyValue("b", str(_byte_length(filename))),
        KeyValue("c", str(_byte_length(contents))),
        KeyValue("d", "xyzzy"),
    ]


def _sorted_join(values: list[str]) -> str:
    return " ".join(sorted(values))


def crash_map(filename: str, contents: str) -> list[KeyValue]:
    """Describe the input; sometimes exits the process or stalls first."""
    _maybe_crash()
    return _describe_input(filename, contents)


def crash_reduce(key: str, values: list[str]) -> str:
    """Join the sorted values; sometimes exits the process or stalls first."""
    _maybe_crash()
    return _sorted_join(values)


def nocrash_map(filename: str, contents: str) -> list[KeyValue]:
    """Same output as :func:`crash_map`, without crashing."""
    return _describe_input(filename, contents)


def nocrash_reduce(key: str, values: list[str]) -> str:
    """Same output as :func:`crash_reduce`, without crashing."""
    return _sorted_join(values)


# parallelism tests


def nparallel(phase: str) -> int:
    """Count the live workers running ``phase`` in this directory, this one included.

    Each worker leaves a marker file named after its process id for about a
    second, so workers running at the same time see each other.
    """
    marker = Path(f"mr-worker-{phase}-{os.getpid()}")
    marker.write_text("x")

    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    alive = 0
    for name in os.listdir("."):
        found = pattern.match(name)
        if found is None:
            continue
        try:
            os.kill(int(found.group(1)), 0)
        except (OSError, OverflowError):
            continue
        alive += 1

    time.sleep(1)
    marker.unlink()
    return alive


def mtiming_map(filename: str, contents: str) -> list[KeyValue]:
    """Report when this worker started and how many map workers ran with it."""
    started = time.time()
    pid = os.getpid()
    count = nparallel("map")
    return [
        KeyValue(f"times-{pid}", f"{started:.1f}"),
        KeyValue(f"parallel-{pid}", str(count)),
    ]


def mtiming_reduce(key: str, values: list[str]) -> str:
    return _sorted_join(values)


def rtiming_map(filename: str, contents: str) -> list[KeyValue]:
    """Emit ten fixed keys so that there is work for many reduce tasks."""
    return [KeyValue(key, "1") for key in "abcdefghij"]


def rtiming_reduce(key: str, values: list[str]) -> str:
    """Report how many reduce workers ran at the same time as this one."""
    return str(nparallel("reduce"))


_APPS = {
    app.name: app
    for app in (
        MapReduceApp("wc", wc_map, wc_reduce),
        MapReduceApp("indexer", indexer_map, indexer_reduce),
        MapReduceApp("crash", crash_map, crash_reduce),
        MapReduceApp("nocrash", nocrash_map, nocrash_reduce),
        MapReduceApp("mtiming", mtiming_map, mtiming_reduce),
        MapReduceApp("rtiming", rtiming_map, rtiming_reduce),
    )
}


def load_app(name: str) -> MapReduceApp:
    """Find an application by name; a directory and an extension are ignored."""
    stem = Path(name).stem
    try:
        return _APPS[stem]
    except KeyError:
        raise ValueError(
            f"unknown application {name!r}; expecting one of {sorted(_APPS)}"
        ) from None