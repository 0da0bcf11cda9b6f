"""
Adaptive review scheduler.

Each card keeps one performance record per learning mode. This module turns a
record into a recommended re-review delay, decides whether the card is due,
and ranks due cards so the most urgent one is shown next.

Spacing is driven by the length of the current correct streak. Recent
mistakes, low accuracy and repeated misses shorten the interval; long streaks
stretch it, up to a hard cap.

All timestamps are epoch milliseconds. Nothing here reads the wall clock or
the global random generator directly: callers pass ``now`` and an optional
``rng`` so results can be reproduced.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional


logger = logging.getLogger(__name__)

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE

# Base intervals in hours, indexed by correct streak length (30 min to 60 days)
BASE_INTERVALS = (0.5, 4, 24, 72, 168, 336, 720, 1440)

MIN_INTERVAL_HOURS = 0.5   # 30 minutes
MAX_INTERVAL_HOURS = 2160  # 90 days

# Interval modifiers
RECENT_MISS_FACTOR = 0.3       # Last answer was wrong
MIN_REVIEWS_FOR_ACCURACY = 3   # Accuracy is ignored below this many answers
MISS_STREAK_BASE = 0.5         # Applied once per consecutive miss
LONG_STREAK_THRESHOLD = 5      # Correct streaks longer than this earn a bonus
LONG_STREAK_STEP = 0.1
LONG_STREAK_MAX_BONUS = 2.0

# Accuracy tiers: (minimum accuracy, modifier), checked in order
ACCURACY_TIERS = (
    (0.9, 1.3),
    (0.7, 1.0),
    (0.5, 0.7),
)
LOW_ACCURACY_FACTOR = 0.4

# Priority weights
NEW_CARD_PRIORITY = 1500
MISS_STREAK_PRIORITY = 500
MISS_STREAK_STEP_PRIORITY = 100
OVERDUE_HOUR_PRIORITY = 10
ACCURACY_BOOST_THRESHOLD = 0.6
ACCURACY_BOOST_WEIGHT = 200
JITTER_SCALE = 5


@dataclass(frozen=True)
class PerformanceRecord:
    """Answer history of one card in one learning mode."""
    total_correct: int = 0
    total_incorrect: int = 0
    last_correct_at: Optional[int] = None
    last_incorrect_at: Optional[int] = None
    correct_streak_len: int = 0
    incorrect_streak_len: int = 0
    correct_streak_started_at: Optional[int] = None
    incorrect_streak_started_at: Optional[int] = None

    @property
    def total(self) -> int:
        return self.total_correct + self.total_incorrect

    @property
    def accuracy(self) -> float:
        return self.total_correct / self.total if self.total > 0 else 0

    @property
    def is_new(self) -> bool:
        """True when the card has never been answered in this mode."""
        return self.total == 0

    @property
    def last_review_at(self) -> int:
        """Timestamp of the most recent answer, 0 if there is none."""
        return max(self.last_correct_at or 0, self.last_incorrect_at or 0)

    def as_dict(self) -> dict:
        return {
            'total_correct': self.total_correct,
            'total_incorrect': self.total_incorrect,
            'last_correct_at': self.last_correct_at,
            'last_incorrect_at': self.last_incorrect_at,
            'correct_streak_len': self.correct_streak_len,
            'incorrect_streak_len': self.incorrect_streak_len,
            'correct_streak_started_at': self.correct_streak_started_at,
            'incorrect_streak_started_at': self.incorrect_streak_started_at,
        }


def new_record() -> PerformanceRecord:
    """Return the record of a card that has never been answered."""
    return PerformanceRecord()


HistoryLookup = Callable[[str, str], Optional[PerformanceRecord]]


def lookup_record(history_lookup: HistoryLookup, item, mode: str) -> PerformanceRecord:
    """Fetch an item's record, treating a missing one as a new card."""
    record = history_lookup(item.item_id, mode)
    return record if record is not None else new_record()


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def recommended_interval_hours(record: PerformanceRecord) -> float:
    """
    Calculate how long to wait before showing a card again.

    The correct streak picks a rung from BASE_INTERVALS. The rung is then
    scaled down after a recent mistake, by overall accuracy once there are
    enough answers, and exponentially for every consecutive miss. Streaks
    longer than five earn a bonus of up to 2x.

    Returns the interval in hours, clamped to [0.5, 2160].
    """
    index = min(record.correct_streak_len, len(BASE_INTERVALS) - 1)
    base = BASE_INTERVALS[index]

    modifier = 1.0

    if record.last_correct_at and record.last_incorrect_at:
        if record.last_incorrect_at > record.last_correct_at:
            modifier *= RECENT_MISS_FACTOR

    if record.total >= MIN_REVIEWS_FOR_ACCURACY:
        modifier *= _accuracy_modifier(record.accuracy)

    if record.incorrect_streak_len > 0:
        modifier *= MISS_STREAK_BASE ** record.incorrect_streak_len

    if record.correct_streak_len > LONG_STREAK_THRESHOLD:
        bonus = 1 + (record.correct_streak_len - LONG_STREAK_THRESHOLD) * LONG_STREAK_STEP
        modifier *= min(LONG_STREAK_MAX_BONUS, bonus)

    return max(MIN_INTERVAL_HOURS, min(base * modifier, MAX_INTERVAL_HOURS))


def _accuracy_modifier(accuracy: float) -> float:
    for threshold, factor in ACCURACY_TIERS:
        if accuracy >= threshold:
            return factor
    return LOW_ACCURACY_FACTOR


def _due_instant(record: PerformanceRecord) -> Optional[float]:
    if record.is_new or record.last_review_at == 0:
        return None
    return record.last_review_at + recommended_interval_hours(record) * MS_PER_HOUR


def next_review_time(record: PerformanceRecord) -> Optional[int]:
    """
    Return when the card should next be reviewed, rounded up to the
    millisecond, or None for a new card.
    """
    due_at = _due_instant(record)
    return None if due_at is None else math.ceil(due_at)


def is_due(record: PerformanceRecord, now: int) -> bool:
    """
    Check whether the recommended interval since the last answer has elapsed.

    A card with no answers is always due, whatever its timestamps say.
    """
    if record.is_new:
        return True
    if record.last_correct_at is None and record.last_incorrect_at is None:
        return True

    expected = _due_instant(record)
    if expected is None:
        return True
    return now >= expected


def priority(
    record: PerformanceRecord,
    now: int,
    rng: Callable[[], float] = random.random
) -> float:
    """
    Score a due card. Higher scores are shown first.

    New cards get a fixed score that outranks ordinary reviews. Otherwise the
    score grows with a running miss streak, with the hours the card has sat
    past its due time, and with low accuracy. A small jitter from ``rng``
    breaks exact ties.
    """
    if record.is_new:
        score = NEW_CARD_PRIORITY
    else:
        score = 0.0
        if record.incorrect_streak_len > 0:
            score += MISS_STREAK_PRIORITY + MISS_STREAK_STEP_PRIORITY * record.incorrect_streak_len

        expected = record.last_review_at + recommended_interval_hours(record) * MS_PER_HOUR
        overdue_hours = max(1, (now - expected) / MS_PER_HOUR)
        score += overdue_hours * OVERDUE_HOUR_PRIORITY

        if record.accuracy < ACCURACY_BOOST_THRESHOLD:
            score += (ACCURACY_BOOST_THRESHOLD - record.accuracy) * ACCURACY_BOOST_WEIGHT

    return score + rng() * JITTER_SCALE


def due_items(
    items: Optional[Iterable],
    history_lookup: HistoryLookup,
    mode: str,
    now: int,
    include: Optional[Callable] = None
) -> list:
    """Return the due items accepted by ``include``, in input order."""
    if not items:
        return []
    return [
        item for item in items
        if is_due(lookup_record(history_lookup, item, mode), now)
        and (include is None or include(item))
    ]


def count_due(items, history_lookup: HistoryLookup, mode: str, now: int,
              include: Optional[Callable] = None) -> int:
    """Count due items accepted by ``include``."""
    return len(due_items(items, history_lookup, mode, now, include))


def select_next(
    items: Optional[Iterable],
    history_lookup: HistoryLookup,
    mode: str,
    now: int,
    include: Optional[Callable] = None,
    rng: Callable[[], float] = random.random
):
    """
    Pick the single most urgent due card.

    Args:
        items: Candidate items, each exposing an ``item_id``
        history_lookup: Callable (item_id, mode) -> PerformanceRecord or None
        mode: Learning mode whose history is used
        now: Current time in epoch milliseconds
        include: Optional predicate applied by the host (flags, tags)
        rng: Zero-argument callable returning a float in [0, 1)

    Returns:
        The highest-priority due item, or None if nothing is due. On equal
        scores the earliest item in input order wins.
    """
    candidates = list(items or [])
    due = due_items(candidates, history_lookup, mode, now, include)
    if not due:
        logger.debug("No due cards among %d candidates (mode=%s)", len(candidates), mode)
        return None

    best_item = None
    best_score = None
    for item in due:
        score = priority(lookup_record(history_lookup, item, mode), now, rng)
        if best_score is None or score > best_score:
            best_item, best_score = item, score

    logger.debug(
        "Selected %s with priority %.2f from %d due of %d candidates (mode=%s)",
        best_item.item_id, best_score, len(due), len(candidates), mode
    )
    return best_item


@dataclass(frozen=True)
class SchedulerContext:
    """
    Everything one scheduling call needs, built fresh by the host per request.

    ``clock`` returns the current time in epoch milliseconds and is read once
    per operation so a single call sees a consistent ``now``.
    """
    items: tuple
    history_lookup: HistoryLookup
    mode: str
    clock: Callable[[], int]
    include: Optional[Callable] = None
    rng: Callable[[], float] = field(default=random.random)

    def select_next(self):
        return select_next(self.items, self.history_lookup, self.mode, self.clock(),
                           include=self.include, rng=self.rng)

    def due_items(self) -> list:
        return due_items(self.items, self.history_lookup, self.mode, self.clock(), self.include)

    def count_due(self) -> int:
        return len(self.due_items())

    def buckets(self):
        from .forecast import bucket_by_time_to_due
        return bucket_by_time_to_due(self.items, self.history_lookup, self.mode, self.clock())

    def next_review(self):
        from .forecast import next_review_summary
        return next_review_summary(self.items, self.history_lookup, self.mode, self.clock(),
                                   include=self.include)


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return to_epoch_ms(datetime.now(timezone.utc))
