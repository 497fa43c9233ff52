"""Contiguous sibling ordering"""

import random

import pytest

from app.core.exceptions import NotFoundException, ValidationException
from app.services.ordering import OrderSequencer, OrderShift, apply_shifts, sequenced


def assert_contiguous(orders):
    assert sorted(orders.values()) == list(range(1, len(orders) + 1))


def test_append_goes_after_last():
    placement = OrderSequencer({1: 1, 2: 2}).append()
    assert placement.order == 3
    assert placement.shifts == ()


def test_append_to_empty_set():
    assert OrderSequencer({}).append().order == 1


def test_insert_pushes_occupants_down():
    orders = {"a": 1, "b": 2, "c": 3}
    placement = OrderSequencer(orders).insert_at(2)
    orders = apply_shifts(orders, placement.shifts)
    orders["new"] = placement.order
    assert orders == {"a": 1, "new": 2, "b": 3, "c": 4}


def test_insert_past_end_appends():
    placement = OrderSequencer({"a": 1, "b": 2}).insert_at(10)
    assert placement.order == 3
    assert placement.shifts == ()


@pytest.mark.parametrize("position", [0, -1, "2", 1.5, True])
def test_insert_rejects_invalid_position(position):
    with pytest.raises(ValidationException):
        OrderSequencer({"a": 1}).insert_at(position)


def test_move_down_and_up():
    orders = {"a": 1, "b": 2, "c": 3, "d": 4}
    sequencer = OrderSequencer(orders)

    down = sequencer.move("a", 3)
    moved = apply_shifts(orders, down.shifts)
    moved["a"] = down.order
    assert moved == {"b": 1, "c": 2, "a": 3, "d": 4}

    up = sequencer.move("d", 1)
    moved = apply_shifts(orders, up.shifts)
    moved["d"] = up.order
    assert moved == {"d": 1, "a": 2, "b": 3, "c": 4}


def test_move_to_same_position_is_a_no_op():
    placement = OrderSequencer({"a": 1, "b": 2}).move("b", 2)
    assert placement.order == 2
    assert placement.shifts == ()


def test_move_out_of_range_is_rejected():
    with pytest.raises(ValidationException, match="between 1 and 2"):
        OrderSequencer({"a": 1, "b": 2}).move("a", 3)


def test_move_unknown_item():
    with pytest.raises(NotFoundException):
        OrderSequencer({"a": 1}, label="Quiz").move("z", 1)


def test_delete_closes_the_gap():
    orders = {"a": 1, "b": 2, "c": 3}
    shifts = OrderSequencer(orders).delete("b")
    del orders["b"]
    assert apply_shifts(orders, shifts) == {"a": 1, "c": 2}


def test_shift_excludes_the_moving_item():
    shift = OrderShift(start=1, end=3, delta=1, exclude_id="a")
    assert not shift.applies_to("a", 2)
    assert shift.applies_to("b", 2)
    assert not shift.applies_to("c", 4)


def test_random_operations_keep_orders_contiguous():
    rng = random.Random(7)
    orders = {}
    next_id = 1
    for _ in range(300):
        sequencer = OrderSequencer(orders)
        operation = rng.choice(["append", "insert", "move", "delete"]) if orders else "append"
        if operation == "append":
            placement = sequencer.append()
            orders = apply_shifts(orders, placement.shifts)
            orders[next_id] = placement.order
            next_id += 1
        elif operation == "insert":
            placement = sequencer.insert_at(rng.randint(1, len(orders) + 3))
            orders = apply_shifts(orders, placement.shifts)
            orders[next_id] = placement.order
            next_id += 1
        elif operation == "move":
            item_id = rng.choice(list(orders))
            placement = sequencer.move(item_id, rng.randint(1, len(orders)))
            orders = apply_shifts(orders, placement.shifts)
            orders[item_id] = placement.order
        else:
            item_id = rng.choice(list(orders))
            shifts = sequencer.delete(item_id)
            del orders[item_id]
            orders = apply_shifts(orders, shifts)
        assert_contiguous(orders)


def test_reorder_returns_only_changed_items():
    sequencer = OrderSequencer({1: 1, 2: 2, 3: 3}, label="Quiz")
    assert sequencer.reorder([(1, 3), (2, 1), (3, 2)]) == {1: 3, 2: 1, 3: 2}
    assert sequencer.reorder([(1, 1), (2, 2), (3, 3)]) == {}


def test_reorder_reports_id_mismatch():
    sequencer = OrderSequencer({1: 1, 2: 2, 3: 3}, label="Quiz")
    with pytest.raises(ValidationException) as excinfo:
        sequencer.reorder([(1, 1), (2, 2), (4, 3)])
    assert excinfo.value.message == "Quiz IDs mismatch"
    assert excinfo.value.details["missingIds"] == [3]
    assert excinfo.value.details["extraIds"] == [4]


@pytest.mark.parametrize(
    "assignments",
    [
        [(1, 1), (2, 1), (3, 2)],
        [(1, 1), (2, 2), (3, 5)],
        [(1, 0), (2, 1), (3, 2)],
        [(1, "1"), (2, 2), (3, 3)],
    ],
)
def test_reorder_requires_a_permutation(assignments):
    with pytest.raises(ValidationException):
        OrderSequencer({1: 1, 2: 2, 3: 3}).reorder(assignments)


def test_sequenced_numbers_from_one():
    assert sequenced(["x", "y"]) == [(1, "x"), (2, "y")]
