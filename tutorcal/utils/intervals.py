"""
Half-open interval algebra.

Every interval is ``[start, end)``: it contains ``start`` and stops just
before ``end``. Endpoints may be any totally ordered values (aware datetimes,
minutes, ints). Intervals that merely touch do not overlap.
"""

from __future__ import annotations

from typing import Any, Iterable, List, NamedTuple, Optional


class Interval(NamedTuple):
    start: Any
    end: Any

    @property
    def is_empty(self) -> bool:
        return not self.start < self.end


def overlaps(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """True when ``[a_start, a_end)`` and ``[b_start, b_end)`` share any point."""
    return a_start < b_end and b_start < a_end


def clip_interval(interval: Interval, lower: Any, upper: Any) -> Optional[Interval]:
    """Clip ``interval`` to ``[lower, upper)``; ``None`` when nothing is left."""
    start = interval.start if lower < interval.start else lower
    end = interval.end if interval.end < upper else upper
    if not start < end:
        return None
    return Interval(start, end)


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Sort and coalesce intervals.

    Overlapping and touching intervals are merged; empty or inverted inputs
    are dropped.
    """
    ordered = sorted((i for i in intervals if i.start < i.end), key=lambda i: i.start)
    if not ordered:
        return []

    merged: List[Interval] = []
    cur_start, cur_end = ordered[0]
    for start, end in ordered[1:]:
        if not cur_end < start:
            if cur_end < end:
                cur_end = end
        else:
            merged.append(Interval(cur_start, cur_end))
            cur_start, cur_end = start, end
    merged.append(Interval(cur_start, cur_end))
    return merged


def subtract_intervals(
    ranges: Iterable[Interval], busy: Iterable[Interval]
) -> List[Interval]:
    """
    Remove every ``busy`` interval from ``ranges``.

    ``ranges`` may arrive unsorted; the output is ascending. Busy intervals
    are merged first so a single forward sweep over them suffices.
    """
    cuts = merge_intervals(busy)
    bases = sorted((r for r in ranges if r.start < r.end), key=lambda r: r.start)
    result: List[Interval] = []

    # bases may overlap each other, so the sweep restarts from the first cut
    # that could still touch the current base.
    first_cut = 0
    for base in bases:
        while first_cut < len(cuts) and not base.start < cuts[first_cut].end:
            first_cut += 1

        cursor = base.start
        idx = first_cut
        while idx < len(cuts) and cuts[idx].start < base.end:
            cut = cuts[idx]
            if cursor < cut.start:
                result.append(Interval(cursor, cut.start))
            if cursor < cut.end:
                cursor = cut.end
            if not cursor < base.end:
                break
            idx += 1
        if cursor < base.end:
            result.append(Interval(cursor, base.end))

    result.sort(key=lambda r: r.start)
    return result
