"""
Due-time summaries for progress displays.

These helpers never feed back into scheduling. They group cards by how soon
they become due and estimate when the user should come back if nothing is
due right now.
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional

from .srs import (
    MS_PER_HOUR,
    MS_PER_MINUTE,
    HistoryLookup,
    lookup_record,
    next_review_time,
)


CLUSTER_WINDOW_MS = MS_PER_HOUR

TIMELINE_LABELS = (
    'Overdue', '<=30m', '<=1h', '<=4h', '<=12h', '<=24h', '<=7d', '<=30d', '>30d',
)
# Upper bounds in hours for timeline buckets 1..7; anything later lands in the last
TIMELINE_BOUNDS_HOURS = (0.5, 1, 4, 12, 24, 168, 720)

# Due-rate histogram: 15 minute slots over the next day, last slot dropped
DUE_RATE_SLOT_MINUTES = 15
DUE_RATE_SLOTS = 24 * 60 // DUE_RATE_SLOT_MINUTES - 1


@dataclass(frozen=True)
class DueBuckets:
    """Cards grouped by time until due. Buckets never overlap."""
    overdue: int = 0
    due_soon_15min: int = 0
    due_soon_1h: int = 0
    due_soon_6h: int = 0
    due_soon_24h: int = 0
    due_later: int = 0

    @property
    def total(self) -> int:
        return (self.overdue + self.due_soon_15min + self.due_soon_1h
                + self.due_soon_6h + self.due_soon_24h + self.due_later)

    def as_dict(self) -> dict:
        return {
            'overdue': self.overdue,
            'due_soon_15min': self.due_soon_15min,
            'due_soon_1h': self.due_soon_1h,
            'due_soon_6h': self.due_soon_6h,
            'due_soon_24h': self.due_soon_24h,
            'due_later': self.due_later,
        }


@dataclass(frozen=True)
class NextReviewSummary:
    """When the next card becomes due and how many follow close behind."""
    eta_label: str
    cluster_count: int
    next_review_at: int

    @property
    def message(self) -> str:
        plural = 's' if self.cluster_count > 1 else ''
        return f"Next review: {self.cluster_count} card{plural} in ~{self.eta_label}."

    def as_dict(self) -> dict:
        return {
            'eta_label': self.eta_label,
            'cluster_count': self.cluster_count,
            'next_review_at': self.next_review_at,
            'message': self.message,
        }


def _due_at(history_lookup: HistoryLookup, item, mode: str, now: int) -> int:
    due_at = next_review_time(lookup_record(history_lookup, item, mode))
    return now if due_at is None else due_at


def bucket_by_time_to_due(items, history_lookup: HistoryLookup, mode: str, now: int) -> DueBuckets:
    """
    Count cards by how far away their next review is.

    New cards count as overdue. The result always sums to ``len(items)``.
    """
    counts = [0] * 6
    for item in items or []:
        delay = _due_at(history_lookup, item, mode, now) - now
        if delay <= 0:
            counts[0] += 1
        elif delay < 15 * MS_PER_MINUTE:
            counts[1] += 1
        elif delay < MS_PER_HOUR:
            counts[2] += 1
        elif delay < 6 * MS_PER_HOUR:
            counts[3] += 1
        elif delay < 24 * MS_PER_HOUR:
            counts[4] += 1
        else:
            counts[5] += 1
    return DueBuckets(*counts)


def due_timeline(items, history_lookup: HistoryLookup, mode: str, now: int) -> list:
    """Nine-bucket histogram of time until due, labelled by TIMELINE_LABELS."""
    buckets = [0] * len(TIMELINE_LABELS)
    for item in items or []:
        delay_hours = (_due_at(history_lookup, item, mode, now) - now) / MS_PER_HOUR
        if delay_hours <= 0:
            buckets[0] += 1
            continue
        for index, bound in enumerate(TIMELINE_BOUNDS_HOURS, start=1):
            if delay_hours <= bound:
                buckets[index] += 1
                break
        else:
            buckets[-1] += 1
    return buckets


def due_rate_histogram(items, history_lookup: HistoryLookup, mode: str, now: int) -> list:
    """
    Count cards coming due in each 15 minute slot of the next 23.75 hours.

    Slot 0 also holds new and overdue cards. Cards due later are left out.
    """
    slots = [0] * DUE_RATE_SLOTS
    for item in items or []:
        delay_minutes = (_due_at(history_lookup, item, mode, now) - now) / MS_PER_MINUTE
        index = max(0, math.floor(delay_minutes / DUE_RATE_SLOT_MINUTES))
        if index < DUE_RATE_SLOTS:
            slots[index] += 1
    return slots


def humanize_delay(delay_ms: int) -> str:
    """
    Render a positive delay as minutes, hours or days, always rounding up.

    Under two hours the delay is shown in minutes, under a day in hours.
    """
    hours = delay_ms / MS_PER_HOUR
    if hours < 2:
        value, unit = math.ceil(delay_ms / MS_PER_MINUTE), 'minute'
    elif hours < 24:
        value, unit = math.ceil(hours), 'hour'
    else:
        value, unit = math.ceil(hours / 24), 'day'
    return f"{value} {unit}{'s' if value > 1 else ''}"


def next_review_summary(
    items,
    history_lookup: HistoryLookup,
    mode: str,
    now: int,
    include: Optional[Callable] = None
) -> Optional[NextReviewSummary]:
    """
    Estimate when the next already-seen card becomes due.

    New cards are skipped because they are due immediately. Returns None when
    no card has a review time in the future.
    """
    upcoming = []
    for item in items or []:
        if include is not None and not include(item):
            continue
        due_at = next_review_time(lookup_record(history_lookup, item, mode))
        if due_at is not None and due_at > now:
            upcoming.append(due_at)

    if not upcoming:
        return None

    earliest = min(upcoming)
    cluster_count = sum(1 for due_at in upcoming if due_at <= earliest + CLUSTER_WINDOW_MS)
    return NextReviewSummary(
        eta_label=humanize_delay(earliest - now),
        cluster_count=cluster_count,
        next_review_at=earliest,
    )
