import dataclasses

import pytest

from distlab.model import (
    CheckResult,
    Event,
    EventKind,
    Model,
    Operation,
    default_describe_operation,
    default_describe_state,
    no_partition,
    no_partition_event,
    shallow_equal,
)


def _model():
    return Model(init=lambda: 0, step=lambda s, i, o: (True, s))


def test_no_partition_wraps_history():
    ops = [Operation("a", 0, "b", 1), Operation("c", 2, "d", 3, client_id=1)]
    assert no_partition(ops) == [ops]


def test_no_partition_event_wraps_history():
    events = [Event(EventKind.CALL, "x", 0), Event(EventKind.RETURN, "y", 0)]
    assert no_partition_event(events) == [events]


def test_shallow_equal():
    assert shallow_equal("abc", "abc") is True
    assert shallow_equal(1, 2) is False


def test_default_descriptions():
    assert default_describe_operation("in", "out") == "in -> out"
    assert default_describe_state(42) == "42"


def test_model_defaults_are_filled():
    m = _model()
    op = Operation("in", 0, "out", 1)
    assert m.partition([op]) == [[op]]
    assert m.equal(3, 3)
    assert m.describe_operation("in", "out") == default_describe_operation("in", "out")
    assert m.describe_state("s") == default_describe_state("s")
    assert m.init() == 0


def test_operation_is_frozen():
    op = Operation("in", 0, "out", 5)
    with pytest.raises(dataclasses.FrozenInstanceError):
        op.call = 3  # type: ignore[misc]
    assert op.call == 0


def test_operation_default_client():
    assert Operation("in", 0, "out", 1).client_id == 0


def test_check_result_from_value():
    assert CheckResult("Ok") is CheckResult.OK
    assert CheckResult("Illegal") is CheckResult.ILLEGAL
    assert CheckResult("Unknown") is CheckResult.UNKNOWN