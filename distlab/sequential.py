"""Run a MapReduce application sequentially in one process."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterable, Sequence
from itertools import groupby
from operator import attrgetter

from .mrapps import load_app
from .worker import KeyValue

MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]


def run_sequential(
    mapf: MapFunc,
    reducef: ReduceFunc,
    filenames: Iterable[str],
    output: str | os.PathLike[str],
) -> None:
    """Map every input file, reduce each distinct key, and write ``key value`` lines."""
    intermediate: list[KeyValue] = []
    for filename in filenames:
        with open(filename, encoding="utf-8", newline="") as infile:
            content = infile.read()
        intermediate.extend(mapf(filename, content))

    intermediate.sort(key=attrgetter("key"))

    with open(output, "w", encoding="utf-8", newline="") as out:
        for key, group in groupby(intermediate, key=attrgetter("key")):
            result = reducef(key, [kv.value for kv in group])
            out.write(f"{key} {result}\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Usage: mrsequential APP inputfiles... ; writes mr-out-0."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print("Usage: mrsequential xxx.so inputfiles...", file=sys.stderr)
        return 1
    try:
        app = load_app(args[0])
    except ValueError:
        print(f"cannot load plugin {args[0]}", file=sys.stderr)
        return 1
    try:
        run_sequential(app.map, app.reduce, args[1:], "mr-out-0")
    except OSError as exc:
        print(f"cannot read {exc.filename}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())