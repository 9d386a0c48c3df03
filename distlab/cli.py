"""Command-line entry points for the MapReduce master and worker."""

from __future__ import annotations

import sys
import time
from collections.abc import Sequence

from .master import make_master
from .mrapps import load_app
from .worker import worker

N_REDUCE = 10


def master_main(argv: Sequence[str] | None = None) -> int:
    """Usage: mrmaster inputfiles... ; serves until the job is done."""
    files = sys.argv[1:] if argv is None else list(argv)
    if not files:
        print("Usage: mrmaster inputfiles...", file=sys.stderr)
        return 1
    master = make_master(files, N_REDUCE)
    try:
        while not master.done():
            time.sleep(1)
        time.sleep(1)
    finally:
        master.close()
    return 0


def worker_main(argv: Sequence[str] | None = None) -> int:
    """Usage: mrworker APP ; runs tasks until the master says to exit."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print("Usage: mrworker xxx.so", file=sys.stderr)
        return 1
    try:
        app = load_app(args[0])
    except ValueError:
        print(f"cannot load plugin {args[0]}", file=sys.stderr)
        return 1
    worker(app.map, app.reduce)
    return 0