"""
services/date_ranges.py — Day-selection compaction.

Turns an unordered collection of calendar days into the minimal ordered list
of maximal runs of consecutive days. Each run becomes one allocation row, so
a selection of Mon, Tue, Thu yields two ranges: Mon-Tue and Thu.

Pure and deterministic: no I/O, no dependency on input order, duplicates are
ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DayRange:
    start: date
    end: date
    days: tuple[date, ...]

    @property
    def day_count(self) -> int:
        return len(self.days)


def compact_days(days: Iterable[date]) -> list[DayRange]:
    """
    Deduplicates and sorts `days`, then partitions them into maximal runs
    where consecutive elements are exactly one calendar day apart.

    Returns the ranges in ascending start order. Every input day appears in
    exactly one range. Empty input returns [].
    """
    ordered = sorted(set(days))
    if not ordered:
        return []

    ranges: list[DayRange] = []
    bucket = [ordered[0]]

    for day in ordered[1:]:
        if day - bucket[-1] == _ONE_DAY:
            bucket.append(day)
            continue
        ranges.append(DayRange(start=bucket[0], end=bucket[-1], days=tuple(bucket)))
        bucket = [day]

    ranges.append(DayRange(start=bucket[0], end=bucket[-1], days=tuple(bucket)))
    return ranges
