# distlab

Building blocks for experimenting with distributed systems, in plain Python
with no third-party dependencies.

- **A linearizability checker** (`distlab.checker`, `distlab.model`,
  `distlab.bitset`). You give it a `Model` of a sequential object and a
  concurrent history, and it tells you whether the history is linearizable.
  A history is either a list of `Operation` records (`input`, `call`,
  `output`, `ret`, `client_id`) or an ordered list of call/return `Event`
  records. The model's `partition` or `partition_event` function can split a
  history into independent parts, and each part is checked in its own thread.
- **A key/value model** (`distlab.kvmodel`). It covers get (`op=0`),
  put (`op=1`) and append (`op=2`) on string keys through `KvInput` and
  `KvOutput`, and it partitions the history by key. `KV_MODEL` is ready to
  hand to the checker.
- **A value encoder** (`distlab.labgob`). `LabEncoder` writes one JSON record
  per value to a binary stream, and `LabDecoder` reads them back. It handles
  dataclasses, enums, lists, tuples, sets, dicts and bytes. Dataclass types
  are registered automatically when encoded; use `register` or
  `register_name` when decoding in a process that has not encoded them.
  Dataclass fields whose names start with an underscore are not sent. The
  first time a type with such a field is seen, a warning is logged and
  counted. Decoding into an instance that already holds non-default values is
  counted as well, and logged the first time. `error_count()` returns how
  many problems have been counted.
- **Key/value request and reply types** (`distlab.kvcommon`): `Err`, `OpKind`,
  `GetArgs`, `GetReply`, `PutAppendArgs` and `PutAppendReply`.
- **A MapReduce framework** (`distlab.master`, `distlab.worker`,
  `distlab.mrrpc`). A `Master` hands out map tasks and then reduce tasks over
  a UNIX-domain socket. It hands out a task again if it is not reported
  complete within ten seconds. Workers write intermediate files
  `mr-<map>-<reduce>.json`, then final files `mr-out-<reduce>`, and both are
  written atomically.
- **Example MapReduce applications** (`distlab.mrapps`): word count, an
  inverted indexer, crash and no-crash test applications, and map and reduce
  parallelism probes.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Running MapReduce

The sequential run applies an application's map and reduce functions to the
input files and writes `mr-out-0` in the current directory:

```
distlab-mrsequential wc pg-*.txt
```

For a distributed run, start the master with the input files, then start one
or more workers for the same application in the same directory:

```
distlab-mrmaster pg-*.txt
distlab-mrworker wc
```

The master uses 10 reduce tasks. It exits about a second after every task is
done. Each worker asks for tasks until the master tells it to exit or can no
longer be reached. Reduce task *N* writes `mr-out-N`, with one `key value`
line for each distinct key, in key order.

The master listens on `/var/tmp/distlab-mr-<uid>`. To use another socket
path, set the environment variable `DISTLAB_MR_SOCKET`, and set it the same
way for the master and for its workers.

The commands accept the application names that `distlab.mrapps.load_app`
knows: `wc`, `indexer`, `crash`, `nocrash`, `mtiming` and `rtiming`. A
directory and a file extension on the name are ignored, so `wc.so` also
selects `wc`.

## Using the pieces from Python

Word count over some files, written to a chosen output file:

```python
from distlab.mrapps import wc_map, wc_reduce
from distlab.sequential import run_sequential

run_sequential(wc_map, wc_reduce, ["a.txt", "b.txt"], "mr-out-0")
```

Checking a key/value history for linearizability:

```python
from distlab.checker import check_operations
from distlab.kvmodel import KV_MODEL, KvInput, KvOutput
from distlab.model import Operation

history = [
    Operation(input=KvInput(1, "x", "a"), call=0, output=KvOutput(), ret=10, client_id=0),
    Operation(input=KvInput(0, "x"), call=5, output=KvOutput("a"), ret=15, client_id=1),
]
ok = check_operations(KV_MODEL, history)  # True
```

`check_operations_timeout` and `check_operations_verbose` take a timeout in
seconds (`0` or `None` for none) and return a `CheckResult` (`OK`, `ILLEGAL`
or `UNKNOWN`). `UNKNOWN` means the check timed out, and a history reported
this way may still be illegal. The verbose variant also returns a
`LinearizationInfo` that holds the longest partial linearizations found for
each partition. The event-based variants are `check_events`,
`check_events_timeout` and `check_events_verbose`.

A `Master` can also be driven directly. `task()` returns the next `AskReply`,
`completed()` records a finished task, and `done()` reports whether the whole
job has finished. `serve()` starts listening on the socket, and `close()`
stops it. A master is also a context manager.

## What the package does not do

- There is no simulated RPC network, and no key/value client or server.
  `distlab.kvcommon` defines only the request and reply types, and
  `distlab.kvmodel` only models a key/value store for the checker.
- There is no consensus or replication layer.
- There is no visualization of checker results. `LinearizationInfo` holds the
  data, but nothing renders it.
- The MapReduce master and workers talk over a UNIX-domain socket, so they
  must run on the same host.