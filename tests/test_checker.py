import time

import pytest

from distlab.checker import (
    check_events,
    check_events_timeout,
    check_events_verbose,
    check_operations,
    check_operations_timeout,
    check_operations_verbose,
)
from distlab.model import CheckResult, Event, EventKind, Model, Operation


def _register_step(state, inp, out):
    op, value = inp
    if op == "put":
        return True, value
    return out == state, state


def register_model():
    return Model(init=lambda: 0, step=_register_step)


def keyed_model():
    def partition(history):
        groups = {}
        for op in history:
            groups.setdefault(op.input[0], []).append(op)
        return [groups[k] for k in sorted(groups)]

    def step(state, inp, out):
        _, op, value = inp
        return _register_step(state, (op, value), out)

    return Model(init=lambda: 0, step=step, partition=partition)


GOOD_OPS = [
    Operation(("put", 100), 0, None, 100, client_id=0),
    Operation(("get", None), 25, 100, 75, client_id=1),
    Operation(("get", None), 30, 0, 60, client_id=2),
]

BAD_OPS = [
    Operation(("put", 200), 0, None, 100, client_id=0),
    Operation(("get", None), 10, 200, 30, client_id=1),
    Operation(("get", None), 40, 0, 90, client_id=2),
]


def _ev(kind, value, id_, client=0):
    return Event(kind, value, id_, client)


C, R = EventKind.CALL, EventKind.RETURN

GOOD_EVENTS = [
    _ev(C, ("put", 100), 0),
    _ev(C, ("get", None), 1, 1),
    _ev(C, ("get", None), 2, 2),
    _ev(R, 0, 2, 2),
    _ev(R, 100, 1, 1),
    _ev(R, None, 0),
]

BAD_EVENTS = [
    _ev(C, ("put", 200), 0),
    _ev(C, ("get", None), 1, 1),
    _ev(R, 200, 1, 1),
    _ev(C, ("get", None), 2, 2),
    _ev(R, 0, 2, 2),
    _ev(R, None, 0),
]


def _replays(model, ops, seq):
    state = model.init()
    for op_id in seq:
        ok, state = model.step(state, ops[op_id].input, ops[op_id].output)
        if not ok:
            return False
    return True


def test_linearizable_operations():
    assert check_operations(register_model(), GOOD_OPS) is True


def test_non_linearizable_operations():
    assert check_operations(register_model(), BAD_OPS) is False


def test_timeout_variant_results():
    model = register_model()
    assert check_operations_timeout(model, GOOD_OPS, 0) is CheckResult.OK
    assert check_operations_timeout(model, BAD_OPS, None) is CheckResult.ILLEGAL


def test_empty_history_is_linearizable():
    assert check_operations(register_model(), []) is True


def test_linearizable_events():
    assert check_events(register_model(), GOOD_EVENTS) is True
    assert check_events_timeout(register_model(), GOOD_EVENTS, 5) is CheckResult.OK


def test_non_linearizable_events():
    assert check_events(register_model(), BAD_EVENTS) is False


def test_event_ids_are_renumbered():
    mapping = {0: 500, 1: 77, 2: 9}
    shifted = [Event(e.kind, e.value, mapping[e.id], e.client_id) for e in GOOD_EVENTS]
    assert check_events(register_model(), shifted) is True
    bad_shifted = [Event(e.kind, e.value, mapping[e.id], e.client_id) for e in BAD_EVENTS]
    assert check_events(register_model(), bad_shifted) is False


def test_verbose_ok_gives_full_linearization():
    model = register_model()
    result, info = check_operations_verbose(model, GOOD_OPS, 0)
    assert result is CheckResult.OK
    assert len(info.history) == 1
    assert len(info.history[0]) == 2 * len(GOOD_OPS)
    assert len(info.partial_linearizations) == 1
    (seq,) = info.partial_linearizations[0]
    assert sorted(seq) == list(range(len(GOOD_OPS)))
    assert _replays(model, GOOD_OPS, seq)


def test_verbose_illegal_partials_are_valid_prefixes():
    model = register_model()
    result, info = check_operations_verbose(model, BAD_OPS, 0)
    assert result is CheckResult.ILLEGAL
    partials = info.partial_linearizations[0]
    assert partials
    for seq in partials:
        assert len(seq) < len(BAD_OPS)
        assert _replays(model, BAD_OPS, seq)


def test_verbose_events():
    result, info = check_events_verbose(register_model(), BAD_EVENTS, 0)
    assert result is CheckResult.ILLEGAL
    assert len(info.history[0]) == len(BAD_EVENTS)


def test_partitioned_history():
    ok_ops = [
        Operation(("a", "put", 1), 0, None, 10),
        Operation(("a", "get", None), 20, 1, 30),
        Operation(("b", "put", 2), 0, None, 10),
        Operation(("b", "get", None), 20, 2, 30),
    ]
    assert check_operations(keyed_model(), ok_ops) is True

    mixed = ok_ops[:2] + [
        Operation(("b", "put", 2), 0, None, 10),
        Operation(("b", "get", None), 20, 0, 30),
    ]
    result, info = check_operations_verbose(keyed_model(), mixed, 0)
    assert result is CheckResult.ILLEGAL
    assert len(info.partial_linearizations) == 2


def test_non_verbose_info_is_empty():
    # the non-verbose variants only return the result
    assert check_operations_timeout(register_model(), BAD_OPS, 0) is CheckResult.ILLEGAL
    _, info = check_operations_verbose(register_model(), [], 0)
    assert info.partial_linearizations == [[]]


def test_timeout_gives_unknown():
    def slow_step(state, inp, out):
        time.sleep(0.02)
        return False, state

    model = Model(init=lambda: 0, step=slow_step)
    ops = [Operation(("put", i), 0, None, 1000) for i in range(40)]
    assert check_operations_timeout(model, ops, 0.05) is CheckResult.UNKNOWN


def test_step_errors_propagate():
    def broken(state, inp, out):
        raise ValueError("bad step")

    model = Model(init=lambda: 0, step=broken)
    with pytest.raises(ValueError):
        check_operations(model, GOOD_OPS)