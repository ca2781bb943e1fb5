from __future__ import annotations

from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def cartesian(value_sets: Sequence[Sequence[T]]) -> List[Tuple[T, ...]]:
    """
    Every combination taking one value per set, in set order.
    Built iteratively, one property at a time; any empty set yields no combinations.
    """
    if not value_sets or any(len(vs) == 0 for vs in value_sets):
        return []
    combos: List[Tuple[T, ...]] = [()]
    for values in value_sets:
        combos = [c + (v,) for c in combos for v in values]
    return combos
