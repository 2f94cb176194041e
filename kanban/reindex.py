"""Dense 1-based position maintenance for ordered lists.

Columns are ordered within a board and cards within a column. Every list keeps
its positions as exactly ``1..n``. The planners here never touch storage: they
describe which sibling ranges have to shift, and the stores turn each
:class:`Shift` into one bulk ``UPDATE``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Iterable, Mapping, Optional

Placement = tuple[Hashable, int]  # (container id, position)


@dataclass(frozen=True)
class Shift:
    """Move every sibling in ``container`` with ``low <= position <= high`` by ``delta``.

    ``high`` of ``None`` means unbounded.
    """

    container: Hashable
    low: int
    high: Optional[int]
    delta: int

    def covers(self, position: int) -> bool:
        return position >= self.low and (self.high is None or position <= self.high)


def append_position(current_max: Optional[int]) -> int:
    """Position for an item appended to a list whose highest position is ``current_max``."""
    return (current_max or 0) + 1


def clamp_position(requested: int, slots: int) -> int:
    """Clamp a requested target into ``[1, slots]``.

    ``slots`` is the number of places the item can land in: the list size for a
    move inside the list, the list size plus one when the item arrives from
    elsewhere.
    """
    return max(1, min(requested, max(slots, 1)))


def plan_remove(container: Hashable, position: int) -> list[Shift]:
    """Close the gap left by removing the item at ``position``."""
    return [Shift(container, position + 1, None, -1)]


def plan_move_within(container: Hashable, old: int, new: int) -> list[Shift]:
    """Rotate the closed interval between ``old`` and ``new`` by one place."""
    if old < new:
        return [Shift(container, old + 1, new, -1)]
    if old > new:
        return [Shift(container, new, old - 1, +1)]
    return []


def plan_move_across(
    source: Hashable, old: int, target: Hashable, new: int
) -> list[Shift]:
    """Close the gap at ``old`` in ``source`` and open a slot at ``new`` in ``target``.

    The two shifts touch different containers, so their relative order does not
    matter. Both have to be applied before the moved item is written to its new
    place, and all of it must commit together.
    """
    if source == target:
        return plan_move_within(source, old, new)
    return [Shift(source, old + 1, None, -1), Shift(target, new, None, +1)]


def apply_shifts(
    placements: Mapping[Hashable, Placement], shifts: Iterable[Shift]
) -> dict[Hashable, Placement]:
    """Apply ``shifts`` to an in-memory ``{item: (container, position)}`` mapping."""
    result = dict(placements)
    for shift in shifts:
        for item, (container, position) in result.items():
            if container == shift.container and shift.covers(position):
                result[item] = (container, position + shift.delta)
    return result


def is_dense(positions: Iterable[int]) -> bool:
    """True when ``positions`` is exactly ``1..n`` in some order."""
    ordered = sorted(positions)
    return ordered == list(range(1, len(ordered) + 1))
