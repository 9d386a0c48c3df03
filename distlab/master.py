"""MapReduce master: hands out map and reduce tasks to workers."""

from __future__ import annotations

import contextlib
import dataclasses
import os
import socket
import threading
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

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

SOCKET_ENV = "DISTLAB_MR_SOCKET"
TASK_TIMEOUT = 10.0


class _Status(Enum):
    UNASSIGNED = 0
    RUNNING = 1
    DONE = 2


def _first_unassigned(statuses: list[_Status]) -> int | None:
    return next((i for i, s in enumerate(statuses) if s is _Status.UNASSIGNED), None)


def _decode_args(arg_type: type, data: dict[str, Any]) -> Any:
    args = arg_type(**data)
    if hasattr(args, "task_type"):
        args.task_type = TaskType(args.task_type)
    return args


class Master:
    """Tracks task state; a task not completed in time is handed out again."""

    def __init__(
        self,
        files: Sequence[str],
        n_reduce: int,
        *,
        sockname: str | None = None,
        task_timeout: float = TASK_TIMEOUT,
    ) -> None:
        if n_reduce < 1:
            raise ValueError(f"n_reduce must be positive, got {n_reduce}")
        self.map_files = list(files)
        self.n_maps = len(self.map_files)
        self.n_reduce = n_reduce
        self.sockname = sockname or os.environ.get(SOCKET_ENV) or master_sock()
        self._task_timeout = task_timeout
        self._map_status = [_Status.UNASSIGNED] * self.n_maps
        self._reduce_status = [_Status.UNASSIGNED] * n_reduce
        self._cond = threading.Condition()
        self._timers: list[threading.Timer] = []
        self._listener: socket.socket | None = None
        self._closed = False

    def __enter__(self) -> Master:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def task(self, args: AskArgs) -> AskReply:
        """Hand out an unassigned task, waiting until one is available."""
        with self._cond:
            while True:
                if self._closed:
                    raise RuntimeError("master is closed")
                if all(s is _Status.DONE for s in self._map_status):
                    if all(s is _Status.DONE for s in self._reduce_status):
                        return AskReply(
                            task_type=TaskType.EXIT,
                            n_reduce=self.n_reduce,
                            n_maps=self.n_maps,
                        )
                    reduce_task = _first_unassigned(self._reduce_status)
                    if reduce_task is None:
                        self._cond.wait()
                        continue
                    self._reduce_status[reduce_task] = _Status.RUNNING
                    self._start_timer(TaskType.REDUCE, reduce_task)
                    return AskReply(
                        task_type=TaskType.REDUCE,
                        reduce_task_number=reduce_task,
                        n_reduce=self.n_reduce,
                        n_maps=self.n_maps,
                        intermediate_files=[
                            f"mr-{i}-{reduce_task}.json" for i in range(self.n_maps)
                        ],
                    )
                map_task = _first_unassigned(self._map_status)
                if map_task is None:
                    self._cond.wait()
                    continue
                self._map_status[map_task] = _Status.RUNNING
                self._start_timer(TaskType.MAP, map_task)
                return AskReply(
                    task_type=TaskType.MAP,
                    map_task_number=map_task,
                    n_reduce=self.n_reduce,
                    map_filename=self.map_files[map_task],
                    n_maps=self.n_maps,
                )

    def _start_timer(self, task_type: TaskType, task: int) -> None:
        timer = threading.Timer(self._task_timeout, self._expire, args=(task_type, task))
        timer.daemon = True
        self._timers.append(timer)
        timer.start()

    def _expire(self, task_type: TaskType, task: int) -> None:
        with self._cond:
            statuses = self._map_status if task_type is TaskType.MAP else self._reduce_status
            if statuses[task] is _Status.RUNNING:
                statuses[task] = _Status.UNASSIGNED
                self._cond.notify_all()

    def completed(self, args: CompletedArgs) -> CompletedReply:
        """Record that a worker finished a task."""
        with self._cond:
            if args.task_type is TaskType.MAP:
                statuses, number = self._map_status, args.map_task_number
            elif args.task_type is TaskType.REDUCE:
                statuses, number = self._reduce_status, args.reduce_task_number
            else:
                raise ValueError(f"cannot complete a task of type {args.task_type!r}")
            if not 0 <= number < len(statuses):
                raise ValueError(f"no {args.task_type.name.lower()} task {number}")
            statuses[number] = _Status.DONE
            self._cond.notify_all()
        return CompletedReply()

    def example(self, args: ExampleArgs) -> ExampleReply:
        return ExampleReply(y=args.x + 1)

    def done(self) -> bool:
        """Report whether every map and reduce task has finished."""
        with self._cond:
            return all(s is _Status.DONE for s in self._map_status) and all(
                s is _Status.DONE for s in self._reduce_status
            )

    def _handlers(self) -> dict[str, tuple[Callable[[Any], Any], type]]:
        return {
            "Master.Task": (self.task, AskArgs),
            "Master.Completed": (self.completed, CompletedArgs),
            "Master.Example": (self.example, ExampleArgs),
        }

    def _dispatch(self, message: Any) -> dict[str, Any]:
        try:
            method, arg_type = self._handlers()[message["method"]]
        except (KeyError, TypeError):
            return {"error": f"unknown method in request {message!r}"}
        try:
            reply = method(_decode_args(arg_type, message.get("args") or {}))
        except Exception as exc:
            return {"error": str(exc)}
        return {"reply": dataclasses.asdict(reply)}

    def serve(self) -> None:
        """Listen for worker requests on the UNIX-domain socket."""
        with contextlib.suppress(FileNotFoundError):
            os.remove(self.sockname)
        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        listener.bind(self.sockname)
        listener.listen()
        listener.settimeout(0.2)
        self._listener = listener
        threading.Thread(target=self._accept_loop, args=(listener,), daemon=True).start()

    def _accept_loop(self, listener: socket.socket) -> None:
        while not self._closed:
            try:
                conn, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(None)
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket) -> None:
        with conn:
            while True:
                try:
                    message = receive_message(conn)
                except (EOFError, OSError, ValueError):
                    return
                try:
                    send_message(conn, self._dispatch(message))
                except OSError:
                    return

    def close(self) -> None:
        """Stop serving; blocked task requests fail."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        if self._listener is not None:
            self._listener.close()
            self._listener = None
            with contextlib.suppress(FileNotFoundError):
                os.remove(self.sockname)


def make_master(files: Sequence[str], n_reduce: int) -> Master:
    """Create a master for ``files`` with ``n_reduce`` reduce tasks and serve it."""
    master = Master(files, n_reduce)
    master.serve()
    return master