import random

import pytest

from kanban.reindex import (
    Shift,
    append_position,
    apply_shifts,
    clamp_position,
    is_dense,
    plan_move_across,
    plan_move_within,
    plan_remove,
)


def lists(placements):
    """Group ``{item: (container, position)}`` into ``{container: [items by position]}``."""
    out = {}
    for item, (container, position) in sorted(placements.items(), key=lambda kv: kv[1][1]):
        out.setdefault(container, []).append(item)
    return out


def move(placements, item, target, new):
    container, old = placements[item]
    shifted = apply_shifts(placements, plan_move_across(container, old, target, new))
    shifted[item] = (target, new)
    return shifted


def remove(placements, item):
    container, position = placements.pop(item)
    return apply_shifts(placements, plan_remove(container, position))


def test_append_position_starts_at_one():
    assert append_position(None) == 1
    assert append_position(0) == 1
    assert append_position(4) == 5


def test_plan_remove_decrements_later_siblings():
    assert plan_remove("a", 2) == [Shift("a", 3, None, -1)]


def test_plan_move_within_forward_and_backward():
    assert plan_move_within("a", 1, 3) == [Shift("a", 2, 3, -1)]
    assert plan_move_within("a", 4, 2) == [Shift("a", 2, 3, +1)]
    assert plan_move_within("a", 2, 2) == []


def test_plan_move_across_opens_and_closes_slots():
    assert plan_move_across("a", 1, "b", 2) == [Shift("a", 2, None, -1), Shift("b", 2, None, +1)]


def test_plan_move_across_same_container_is_within_move():
    assert plan_move_across("a", 1, "a", 3) == plan_move_within("a", 1, 3)


@pytest.mark.parametrize(
    "requested, slots, expected",
    [(0, 3, 1), (-5, 3, 1), (2, 3, 2), (3, 3, 3), (99, 3, 3), (4, 0, 1)],
)
def test_clamp_position(requested, slots, expected):
    assert clamp_position(requested, slots) == expected


def test_is_dense():
    assert is_dense([])
    assert is_dense([3, 1, 2])
    assert not is_dense([1, 3])
    assert not is_dense([1, 1, 2])
    assert not is_dense([0, 1])


def test_remove_keeps_relative_order():
    placements = {name: ("a", i) for i, name in enumerate("pqrst", start=1)}
    after = remove(placements, "r")
    assert lists(after) == {"a": ["p", "q", "s", "t"]}
    assert is_dense(p for _, p in after.values())


def test_move_within_then_back_restores_order():
    placements = {name: ("a", i) for i, name in enumerate("pqrst", start=1)}
    there = move(placements, "q", "a", 5)
    assert lists(there) == {"a": ["p", "r", "s", "t", "q"]}
    back = move(there, "q", "a", 2)
    assert back == placements


def test_move_across_scenario():
    placements = {"a1": ("A", 1), "a2": ("A", 2), "a3": ("A", 3), "b1": ("B", 1), "b2": ("B", 2)}
    after = move(placements, "a1", "B", 2)
    assert lists(after) == {"A": ["a2", "a3"], "B": ["b1", "a1", "b2"]}
    assert after["a2"] == ("A", 1)
    assert after["b2"] == ("B", 3)
    assert len(after) == len(placements)


def test_random_operations_keep_every_list_dense():
    rng = random.Random(1234)
    placements = {}
    next_item = 0
    containers = ["A", "B", "C"]

    for _ in range(500):
        op = rng.choice(["add", "add", "remove", "move"])
        if op == "add" or not placements:
            container = rng.choice(containers)
            current = [p for c, p in placements.values() if c == container]
            placements[next_item] = (container, append_position(max(current, default=None)))
            next_item += 1
        elif op == "remove":
            placements = remove(placements, rng.choice(list(placements)))
        else:
            item = rng.choice(list(placements))
            source = placements[item][0]
            target = rng.choice(containers)
            size = sum(1 for c, _ in placements.values() if c == target)
            slots = size if target == source else size + 1
            before = len(placements)
            placements = move(placements, item, target, clamp_position(rng.randint(-2, slots + 2), slots))
            assert len(placements) == before

        for container in containers:
            assert is_dense(p for c, p in placements.values() if c == container)
