"""Cycle ordering, interval derivation, and cycle membership.

Every component derives "which cycle does this date belong to" and "how long
was each cycle" through the functions here, so all of them agree on the
same boundaries.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from src.cycles.base import CycleRecord

logger = logging.getLogger("cyclesense.cycles.timeline")


@dataclass(frozen=True)
class CycleLength:
    """Length of one completed cycle.

    Attributes:
        cycle_index: Position of the cycle in the chronologically sorted list.
        start_date:  First day of the cycle.
        length:      Days until the next period started.
    """

    cycle_index: int
    start_date: date
    length: int


def sort_cycles(cycles: Sequence[CycleRecord]) -> list[CycleRecord]:
    """Return a new list of cycles ordered by start date (stable)."""
    return sorted(cycles, key=lambda c: c.start_date)


def cycle_lengths(
    ordered: Sequence[CycleRecord],
    min_days: int = 10,
    max_days: int = 120,
) -> list[CycleLength]:
    """Lengths of every cycle that has a successor.

    Intervals outside ``[min_days, max_days]`` are data-entry errors and are
    dropped.

    Args:
        ordered:  Cycles sorted by start date.
        min_days: Shortest plausible interval.
        max_days: Longest plausible interval.
    """
    lengths: list[CycleLength] = []
    for i in range(1, len(ordered)):
        prev = ordered[i - 1]
        interval = (ordered[i].start_date - prev.start_date).days
        if not (min_days <= interval <= max_days):
            logger.debug(
                "Excluding implausible %d-day interval starting %s", interval, prev.start_date
            )
            continue
        lengths.append(CycleLength(cycle_index=i - 1, start_date=prev.start_date, length=interval))
    return lengths


def cycle_intervals(
    ordered: Sequence[CycleRecord],
    min_days: int = 10,
    max_days: int = 120,
) -> list[int]:
    """Plausible day counts between consecutive period starts, oldest first."""
    return [c.length for c in cycle_lengths(ordered, min_days, max_days)]


def cycle_containing(
    day: date,
    ordered: Sequence[CycleRecord],
    horizon_days: int = 45,
) -> int | None:
    """Index of the cycle whose span contains ``day``.

    A cycle spans ``[start_date, next start_date)``.  The most recent cycle
    has no successor; it spans ``horizon_days`` from its start, or through
    its logged end date if that is later.

    Args:
        day:          Date to place.
        ordered:      Cycles sorted by start date.
        horizon_days: Span of the open, most recent cycle.

    Returns:
        Index into ``ordered`` or None if the date falls outside every cycle.
    """
    if not ordered:
        return None

    starts = [c.start_date for c in ordered]
    idx = bisect_right(starts, day) - 1
    if idx < 0:
        return None
    if idx < len(ordered) - 1:
        return idx

    last = ordered[idx]
    end = last.start_date + timedelta(days=horizon_days)
    if last.end_date is not None and last.end_date >= end:
        end = last.end_date + timedelta(days=1)
    return idx if day < end else None


def cycle_day(day: date, cycle: CycleRecord) -> int:
    """1-indexed day of ``day`` within ``cycle`` (day 1 = period start)."""
    return (day - cycle.start_date).days + 1


def actual_length(
    ordered: Sequence[CycleRecord],
    index: int,
    default: int = 28,
) -> int:
    """Observed length of the cycle at ``index``, or ``default`` when open."""
    if index + 1 < len(ordered):
        length = (ordered[index + 1].start_date - ordered[index].start_date).days
        if length > 0:
            return length
    return default
