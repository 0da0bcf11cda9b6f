"""Answer bookkeeping and per-deck statistics built on performance records."""

from dataclasses import dataclass, replace

from .srs import PerformanceRecord, HistoryLookup, lookup_record


LEADERBOARD_SIZE = 10

STREAK_BUCKET_LABELS = ('0', '1', '2-3', '4-5', '6+')
# Upper bounds for correct streak buckets; anything longer lands in the last
STREAK_BUCKET_BOUNDS = (0, 1, 3, 5)


@dataclass(frozen=True)
class DeckMetrics:
    """
    Deck-wide counts. Accuracy and streak figures cover answered cards only.
    """
    total_cards: int
    reviewed_count: int
    new_count: int
    overall_accuracy: float = 0.0
    max_correct_streak: int = 0
    max_incorrect_streak: int = 0
    average_correct_streak: float = 0.0

    def as_dict(self) -> dict:
        return {
            'total_cards': self.total_cards,
            'reviewed_count': self.reviewed_count,
            'new_count': self.new_count,
            'overall_accuracy': round(self.overall_accuracy, 3),
            'max_correct_streak': self.max_correct_streak,
            'max_incorrect_streak': self.max_incorrect_streak,
            'average_correct_streak': round(self.average_correct_streak, 1),
        }


def apply_answer(record: PerformanceRecord, correct: bool, now: int) -> PerformanceRecord:
    """
    Return the record after one answer given at ``now``.

    A correct answer bumps the correct total, stamps ``last_correct_at``,
    clears any incorrect streak and starts or extends the correct streak. An
    incorrect answer does the mirror image. Only one streak is ever running.
    """
    if correct:
        if record.correct_streak_len == 0:
            streak_len, started_at = 1, now
        else:
            streak_len, started_at = record.correct_streak_len + 1, record.correct_streak_started_at
        return replace(
            record,
            total_correct=record.total_correct + 1,
            last_correct_at=now,
            correct_streak_len=streak_len,
            correct_streak_started_at=started_at,
            incorrect_streak_len=0,
            incorrect_streak_started_at=None,
        )

    if record.incorrect_streak_len == 0:
        streak_len, started_at = 1, now
    else:
        streak_len, started_at = record.incorrect_streak_len + 1, record.incorrect_streak_started_at
    return replace(
        record,
        total_incorrect=record.total_incorrect + 1,
        last_incorrect_at=now,
        incorrect_streak_len=streak_len,
        incorrect_streak_started_at=started_at,
        correct_streak_len=0,
        correct_streak_started_at=None,
    )


def _answered_records(items, history_lookup: HistoryLookup, mode: str):
    for item in items or []:
        record = lookup_record(history_lookup, item, mode)
        if not record.is_new:
            yield item, record


def compute_metrics(items, history_lookup: HistoryLookup, mode: str) -> DeckMetrics:
    """Count cards and summarize the answers given to them in ``mode``."""
    items = list(items or [])
    records = [record for _, record in _answered_records(items, history_lookup, mode)]

    total_correct = sum(record.total_correct for record in records)
    total_answers = sum(record.total for record in records)
    correct_streaks = [record.correct_streak_len for record in records]

    return DeckMetrics(
        total_cards=len(items),
        reviewed_count=len(records),
        new_count=len(items) - len(records),
        overall_accuracy=total_correct / total_answers if total_answers else 0.0,
        max_correct_streak=max(correct_streaks, default=0),
        max_incorrect_streak=max((record.incorrect_streak_len for record in records), default=0),
        average_correct_streak=sum(correct_streaks) / len(records) if records else 0.0,
    )


def streak_histogram(items, history_lookup: HistoryLookup, mode: str) -> list:
    """Answered cards per correct streak bucket, labelled by STREAK_BUCKET_LABELS."""
    buckets = [0] * len(STREAK_BUCKET_LABELS)
    for _, record in _answered_records(items, history_lookup, mode):
        for index, bound in enumerate(STREAK_BUCKET_BOUNDS):
            if record.correct_streak_len <= bound:
                buckets[index] += 1
                break
        else:
            buckets[-1] += 1
    return buckets


def accuracy_leaders(items, history_lookup: HistoryLookup, mode: str, limit: int = LEADERBOARD_SIZE):
    """
    Rank answered cards by accuracy.

    Returns a (best, worst) pair of lists of (item, record) tuples. Within the
    same accuracy, cards with more answers come first.
    """
    answered = list(_answered_records(items, history_lookup, mode))
    best = sorted(answered, key=lambda pair: (-pair[1].accuracy, -pair[1].total))
    worst = sorted(answered, key=lambda pair: (pair[1].accuracy, -pair[1].total))
    return best[:limit], worst[:limit]
