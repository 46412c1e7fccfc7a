# tutorcal/services/availability_resolver.py
"""
Availability resolution.

Turns a teacher's availability rules into concrete UTC ranges and projects
free time into calendar background events and bookable slots. Everything in
this module is a pure function of its arguments: no sessions, no clocks.

Rules hold wall-clock times in the teacher's timezone, so a rule such as
"Mondays 09:00-17:00" maps to different UTC offsets across a DST change.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..core.timezone_utils import ensure_utc, local_date, localize_wall_clock, to_utc_iso
from ..models.availability import RuleKind
from ..models.lesson import OCCUPYING_STATUSES
from ..utils.intervals import Interval, clip_interval, merge_intervals, overlaps, subtract_intervals
from ..utils.time_of_day import MINUTES_PER_DAY, parse_time_of_day

logger = logging.getLogger(__name__)

WEEKLY_BACKGROUND_COLOR = "rgba(59, 130, 246, 0.1)"
ONE_TIME_BACKGROUND_COLOR = "rgba(34, 197, 94, 0.15)"
WEEKLY_CLASS_NAME = "weekly-availability"
ONE_TIME_CLASS_NAME = "one-time-availability"


class RuleLike(Protocol):
    id: str
    is_recurring: bool
    day_of_week: Optional[int]
    specific_date: Optional[date]
    start_time: str
    end_time: str


class LessonLike(Protocol):
    start_time: datetime
    end_time: datetime
    status: str


@dataclass(frozen=True)
class AvailabilityRange:
    """
    A concrete span of availability.

    ``rule_ids`` lists every rule that contributed to the span after merging;
    ``is_one_time`` is true only when all of them were dated rules.
    """

    start: datetime
    end: datetime
    rule_ids: Tuple[str, ...] = ()
    is_one_time: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": to_utc_iso(self.start),
            "end": to_utc_iso(self.end),
            "rule_ids": list(self.rule_ids),
            "is_one_time": self.is_one_time,
        }


@dataclass(frozen=True)
class CalendarBackgroundEvent:
    id: str
    start: datetime
    end: datetime
    background_color: str
    class_names: List[str] = field(default_factory=list)
    display: str = "background"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start": to_utc_iso(self.start),
            "end": to_utc_iso(self.end),
            "display": self.display,
            "backgroundColor": self.background_color,
            "classNames": list(self.class_names),
        }


@dataclass(frozen=True)
class BookableSlot:
    start: datetime
    end: datetime

    def to_dict(self) -> Dict[str, str]:
        return {"startTime": to_utc_iso(self.start), "endTime": to_utc_iso(self.end)}


# Rule kind dispatch


def _weekday_sunday_zero(day: date) -> int:
    return (day.weekday() + 1) % 7


def _recurring_applies(rule: RuleLike, day: date) -> bool:
    return rule.day_of_week == _weekday_sunday_zero(day)


def _dated_applies(rule: RuleLike, day: date) -> bool:
    return rule.specific_date == day


_DATE_MATCHERS: Dict[RuleKind, Callable[[RuleLike, date], bool]] = {
    RuleKind.RECURRING: _recurring_applies,
    RuleKind.DATED: _dated_applies,
}


def _rule_kind(rule: RuleLike) -> Optional[RuleKind]:
    """Kind of a well-formed rule, ``None`` when the kind invariant is violated."""
    if rule.is_recurring:
        if rule.day_of_week is None or rule.specific_date is not None:
            return None
        if not 0 <= rule.day_of_week <= 6:
            return None
        return RuleKind.RECURRING
    if rule.specific_date is None or rule.day_of_week is not None:
        return None
    return RuleKind.DATED


@dataclass(frozen=True)
class _ParsedRule:
    id: str
    kind: RuleKind
    start_minutes: int
    end_minutes: int
    source: Any


def _parse_rules(rules: Iterable[RuleLike]) -> List[_ParsedRule]:
    parsed: List[_ParsedRule] = []
    for rule in rules:
        kind = _rule_kind(rule)
        if kind is None:
            logger.warning("Skipping availability rule %s: kind fields are inconsistent", rule.id)
            continue
        try:
            start_minutes = parse_time_of_day(rule.start_time)
            end_minutes = parse_time_of_day(rule.end_time)
        except ValueError:
            logger.warning(
                "Skipping availability rule %s: unparseable times %r-%r",
                rule.id,
                rule.start_time,
                rule.end_time,
            )
            continue
        if start_minutes >= end_minutes or start_minutes >= MINUTES_PER_DAY:
            logger.warning(
                "Skipping availability rule %s: start %s is not before end %s",
                rule.id,
                rule.start_time,
                rule.end_time,
            )
            continue
        parsed.append(_ParsedRule(rule.id, kind, start_minutes, end_minutes, rule))
    return parsed


def _wall_clock_instant(day: date, minutes: int, tz: tzinfo) -> datetime:
    day_offset, minute_of_day = divmod(minutes, MINUTES_PER_DAY)
    wall = time(minute_of_day // 60, minute_of_day % 60)
    return localize_wall_clock(day + timedelta(days=day_offset), wall, tz)


def _merge_ranges(ranges: Sequence[AvailabilityRange]) -> List[AvailabilityRange]:
    ordered = sorted(ranges, key=lambda r: (r.start, r.end))
    merged: List[AvailabilityRange] = []
    for current in ordered:
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            rule_ids = last.rule_ids + tuple(i for i in current.rule_ids if i not in last.rule_ids)
            merged[-1] = AvailabilityRange(
                start=last.start,
                end=max(last.end, current.end),
                rule_ids=rule_ids,
                is_one_time=last.is_one_time and current.is_one_time,
            )
        else:
            merged.append(current)
    return merged


def get_availability_ranges(
    rules: Iterable[RuleLike],
    range_start: datetime,
    range_end: datetime,
    tz: tzinfo,
) -> List[AvailabilityRange]:
    """
    Expand rules into merged UTC availability ranges within ``[range_start, range_end)``.

    Days are walked in the teacher's local calendar from the local date of
    ``range_start`` through the local date of ``range_end``. Weekly and dated
    rules are additive. Malformed rules are skipped with a warning.
    """
    range_start = ensure_utc(range_start)
    range_end = ensure_utc(range_end)
    if range_start >= range_end:
        return []

    parsed = _parse_rules(rules)
    if not parsed:
        return []

    concrete: List[AvailabilityRange] = []
    day = local_date(range_start, tz)
    last_day = local_date(range_end, tz)
    while day <= last_day:
        for rule in parsed:
            if not _DATE_MATCHERS[rule.kind](rule.source, day):
                continue
            start = _wall_clock_instant(day, rule.start_minutes, tz)
            end = _wall_clock_instant(day, rule.end_minutes, tz)
            clipped = clip_interval(Interval(start, end), range_start, range_end)
            if clipped is None:
                continue
            concrete.append(
                AvailabilityRange(
                    start=clipped.start,
                    end=clipped.end,
                    rule_ids=(rule.id,),
                    is_one_time=rule.kind is RuleKind.DATED,
                )
            )
        day += timedelta(days=1)

    return _merge_ranges(concrete)


def subtract_busy_from_availability(
    ranges: Sequence[AvailabilityRange], busy: Iterable[Interval]
) -> List[AvailabilityRange]:
    """
    Remove busy intervals from availability ranges.

    Each surviving fragment keeps the provenance of the range it was cut
    from; ranges that are completely covered disappear.
    """
    cuts = merge_intervals(Interval(ensure_utc(b.start), ensure_utc(b.end)) for b in busy)
    if not cuts:
        return sorted(ranges, key=lambda r: r.start)
    cut_ends = [cut.end for cut in cuts]

    result: List[AvailabilityRange] = []
    for availability in ranges:
        first = bisect_right(cut_ends, availability.start)
        last = first
        while last < len(cuts) and cuts[last].start < availability.end:
            last += 1
        fragments = subtract_intervals(
            [Interval(availability.start, availability.end)], cuts[first:last]
        )
        result.extend(
            AvailabilityRange(
                start=fragment.start,
                end=fragment.end,
                rule_ids=availability.rule_ids,
                is_one_time=availability.is_one_time,
            )
            for fragment in fragments
        )
    result.sort(key=lambda r: r.start)
    return result


def to_calendar_background_events(
    ranges: Sequence[AvailabilityRange],
) -> List[CalendarBackgroundEvent]:
    """Project ranges to background events, one-off availability styled apart from weekly."""
    events = []
    for index, availability in enumerate(ranges):
        rule_id = availability.rule_ids[0] if availability.rule_ids else "range"
        events.append(
            CalendarBackgroundEvent(
                id=f"availability-{rule_id}-{index}",
                start=availability.start,
                end=availability.end,
                background_color=(
                    ONE_TIME_BACKGROUND_COLOR if availability.is_one_time else WEEKLY_BACKGROUND_COLOR
                ),
                class_names=[
                    ONE_TIME_CLASS_NAME if availability.is_one_time else WEEKLY_CLASS_NAME
                ],
            )
        )
    return events


def generate_bookable_slots(
    ranges: Sequence[AvailabilityRange],
    slot_minutes: int = 60,
    buffer_minutes: int = 0,
) -> List[BookableSlot]:
    """Carve back-to-back fixed-length slots from the start of each range."""
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")
    if buffer_minutes < 0:
        raise ValueError("buffer_minutes must not be negative")

    length = timedelta(minutes=slot_minutes)
    step = timedelta(minutes=slot_minutes + buffer_minutes)
    slots: List[BookableSlot] = []
    for availability in ranges:
        slot_start = availability.start
        while slot_start + length <= availability.end:
            slots.append(BookableSlot(slot_start, slot_start + length))
            slot_start += step
    return slots


def filter_conflicting_slots(
    slots: Iterable[BookableSlot], busy: Sequence[Interval]
) -> List[BookableSlot]:
    """Drop every slot that overlaps a busy interval."""
    return [
        slot
        for slot in slots
        if not any(overlaps(slot.start, slot.end, b.start, b.end) for b in busy)
    ]


def lessons_to_busy_intervals(lessons: Iterable[LessonLike]) -> List[Interval]:
    """Busy intervals for every lesson that still occupies time."""
    return [
        Interval(ensure_utc(lesson.start_time), ensure_utc(lesson.end_time))
        for lesson in lessons
        if lesson.status in OCCUPYING_STATUSES
    ]
