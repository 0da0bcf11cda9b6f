"""
Unit tests for the vocabulary trainer.

Test organization:
- Interval/Due/Priority/Scheduler tests: pure functions in srs
- Forecast tests: due buckets, timeline and next-review summary
- Stats and filter tests: answer bookkeeping and host-side filters
- Model tests: Deck, Card, CardStats, ReviewLog
- View tests: JSON API
- Command tests: sync_deck_stats
"""

import json
from dataclasses import dataclass, field, replace
from io import StringIO
from unittest.mock import patch

from django.contrib.auth.models import User
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import Client, TestCase
from django.urls import reverse

from . import conf, srs
from . import filters
from .forecast import (
    DueBuckets,
    bucket_by_time_to_due,
    due_rate_histogram,
    due_timeline,
    humanize_delay,
    next_review_summary,
)
from .models import Deck, Card, CardStats, ReviewLog, UserPreferences
from .stats import accuracy_leaders, apply_answer, compute_metrics, streak_histogram


HOUR = srs.MS_PER_HOUR
MINUTE = srs.MS_PER_MINUTE
T0 = 1_700_000_000_000  # Fixed "now" in epoch ms
MODE = 'LM-hanzi-first'


def no_jitter():
    return 0.0


@dataclass
class FakeItem:
    item_id: str
    tags: list = field(default_factory=list)
    hsk: str = ''
    starred: bool = False
    ignored: bool = False


def make_record(**kwargs):
    return replace(srs.new_record(), **kwargs)


def answered_once(at):
    """One correct answer at ``at``: 4 hour interval."""
    return make_record(total_correct=1, last_correct_at=at,
                       correct_streak_len=1, correct_streak_started_at=at)


def mastered(at, streak=3):
    """A run of correct answers ending at ``at``."""
    return make_record(total_correct=streak, last_correct_at=at,
                       correct_streak_len=streak, correct_streak_started_at=at - streak * HOUR)


def failing(last_correct_at, last_incorrect_at, misses=2):
    """One early success followed by ``misses`` consecutive failures."""
    return make_record(
        total_correct=1, total_incorrect=misses,
        last_correct_at=last_correct_at, last_incorrect_at=last_incorrect_at,
        incorrect_streak_len=misses, incorrect_streak_started_at=last_incorrect_at,
    )


def lookup_from(records, mode=MODE):
    """History lookup over {item_id: record} for a single mode."""
    def lookup(item_id, lookup_mode):
        if lookup_mode != mode:
            return None
        return records.get(item_id)
    return lookup


# =============================================================================
# Interval Model Tests
# =============================================================================

class IntervalModelTests(TestCase):
    """Tests for recommended_interval_hours."""

    def test_new_record_gets_minimum_interval(self):
        """A card with no streak sits on the first rung (30 minutes)."""
        self.assertEqual(srs.recommended_interval_hours(srs.new_record()), 0.5)

    def test_single_correct_answer(self):
        """First correct answer moves to the 4 hour rung."""
        self.assertEqual(srs.recommended_interval_hours(answered_once(T0)), 4)

    def test_streak_rungs(self):
        """Each rung of the base table is used for its streak length."""
        for streak, expected in enumerate(srs.BASE_INTERVALS[:6]):
            # Fewer than three answers, no accuracy modifier
            record = make_record(correct_streak_len=streak)
            self.assertEqual(srs.recommended_interval_hours(record), max(0.5, expected))

    def test_high_accuracy_stretches_interval(self):
        """Accuracy >= 90% over 3+ answers multiplies by 1.3."""
        record = mastered(T0, streak=3)
        self.assertAlmostEqual(srs.recommended_interval_hours(record), 72 * 1.3)

    def test_accuracy_tiers(self):
        """Each accuracy tier applies its modifier to the 24 hour rung."""
        cases = [
            (9, 1, 1.3),   # 90%
            (3, 1, 1.0),   # 75%
            (3, 2, 0.7),   # 60%
            (2, 3, 0.4),   # 40%
        ]
        for correct, incorrect, factor in cases:
            record = make_record(total_correct=correct, total_incorrect=incorrect,
                                 correct_streak_len=2)
            self.assertAlmostEqual(
                srs.recommended_interval_hours(record), 24 * factor,
                msg=f"{correct}/{correct + incorrect} correct"
            )

    def test_accuracy_ignored_below_three_answers(self):
        """With fewer than three answers accuracy does not modify the interval."""
        record = make_record(total_correct=1, total_incorrect=1, correct_streak_len=2)
        self.assertEqual(srs.recommended_interval_hours(record), 24)

    def test_recent_miss_shrinks_interval(self):
        """A wrong latest answer multiplies the interval by 0.3."""
        record = make_record(
            total_correct=1, total_incorrect=1,
            last_correct_at=T0, last_incorrect_at=T0 + HOUR,
            correct_streak_len=3,
        )
        self.assertAlmostEqual(srs.recommended_interval_hours(record), 72 * 0.3)

    def test_miss_streak_halves_per_miss(self):
        """Each consecutive miss halves the interval."""
        record = make_record(correct_streak_len=4, incorrect_streak_len=2)
        self.assertAlmostEqual(srs.recommended_interval_hours(record), 168 * 0.25)

    def test_long_streak_bonus(self):
        """Streaks longer than five get +10% per extra answer."""
        record = make_record(correct_streak_len=6)
        self.assertAlmostEqual(srs.recommended_interval_hours(record), 720 * 1.1)

    def test_long_streak_bonus_capped(self):
        """The streak bonus never exceeds 2x and the result never exceeds 90 days."""
        record = make_record(correct_streak_len=30)
        self.assertEqual(srs.recommended_interval_hours(record), srs.MAX_INTERVAL_HOURS)

    def test_repeated_failure_collapses_to_minimum(self):
        """A failing card bottoms out at 30 minutes."""
        record = failing(T0, T0 + HOUR, misses=3)
        self.assertEqual(srs.recommended_interval_hours(record), srs.MIN_INTERVAL_HOURS)

    def test_interval_always_within_bounds(self):
        """Interval stays in [0.5, 2160] across a grid of records."""
        for correct in range(0, 12, 3):
            for incorrect in range(0, 12, 3):
                for correct_streak in range(0, 15, 2):
                    for incorrect_streak in range(0, 5):
                        record = make_record(
                            total_correct=correct, total_incorrect=incorrect,
                            correct_streak_len=correct_streak,
                            incorrect_streak_len=incorrect_streak,
                            last_correct_at=T0, last_incorrect_at=T0 + incorrect,
                        )
                        interval = srs.recommended_interval_hours(record)
                        self.assertGreaterEqual(interval, 0.5)
                        self.assertLessEqual(interval, 2160)

    def test_epoch_ms_conversion(self):
        moment = srs.from_epoch_ms(T0)
        self.assertEqual(moment.year, 2023)
        self.assertEqual(srs.to_epoch_ms(moment), T0)

    def test_next_review_time(self):
        """Next review is the last answer plus the interval; None for new cards."""
        self.assertIsNone(srs.next_review_time(srs.new_record()))
        self.assertEqual(srs.next_review_time(answered_once(T0)), T0 + 4 * HOUR)


# =============================================================================
# Due Classifier Tests
# =============================================================================

class DueClassifierTests(TestCase):
    """Tests for is_due."""

    def test_new_card_always_due(self):
        """A card with no answers is due at any time."""
        for now in (0, T0, T0 + 1000 * HOUR):
            self.assertTrue(srs.is_due(srs.new_record(), now))

    def test_not_due_before_interval(self):
        """Answered once, 3 hours later: interval is 4 hours so not due."""
        self.assertFalse(srs.is_due(answered_once(T0), T0 + 3 * HOUR))

    def test_due_after_interval(self):
        """Answered once, 5 hours later: due."""
        self.assertTrue(srs.is_due(answered_once(T0), T0 + 5 * HOUR))

    def test_due_exactly_at_interval(self):
        """Due as soon as the interval has fully elapsed."""
        self.assertTrue(srs.is_due(answered_once(T0), T0 + 4 * HOUR))

    def test_uses_latest_answer(self):
        """The later of the two last-answer timestamps is the reference."""
        record = make_record(
            total_correct=1, total_incorrect=1,
            last_correct_at=T0, last_incorrect_at=T0 + HOUR,
            incorrect_streak_len=1, incorrect_streak_started_at=T0 + HOUR,
        )
        # Interval collapses to 30 minutes after the miss
        self.assertFalse(srs.is_due(record, T0 + HOUR + 20 * MINUTE))
        self.assertTrue(srs.is_due(record, T0 + HOUR + 30 * MINUTE))

    def test_counts_without_timestamps_are_due(self):
        """Inconsistent records with totals but no timestamps are treated as due."""
        record = make_record(total_correct=3, correct_streak_len=3)
        self.assertTrue(srs.is_due(record, T0))

    def test_zero_totals_due_despite_timestamps(self):
        """No answers means due, even with a recent timestamp and a streak."""
        record = make_record(last_correct_at=T0, correct_streak_len=3)
        self.assertTrue(srs.is_due(record, T0 + HOUR))
        self.assertIsNone(srs.next_review_time(record))

        items = [FakeItem('a')]
        lookup = lookup_from({'a': record})
        self.assertEqual(bucket_by_time_to_due(items, lookup, MODE, T0 + HOUR), DueBuckets(overdue=1))
        self.assertEqual(due_timeline(items, lookup, MODE, T0 + HOUR)[0], 1)
        self.assertIsNone(next_review_summary(items, lookup, MODE, T0 + HOUR))
        self.assertIs(srs.select_next(items, lookup, MODE, T0 + HOUR), items[0])

    def test_due_instant_not_truncated(self):
        """A due time with a fractional millisecond is not reached early."""
        half_ms_past_an_hour = 1 + 0.5 / srs.MS_PER_HOUR
        with patch('vocab.srs.recommended_interval_hours', return_value=half_ms_past_an_hour):
            record = answered_once(T0)
            self.assertFalse(srs.is_due(record, T0 + HOUR))
            self.assertTrue(srs.is_due(record, T0 + HOUR + 1))
            self.assertEqual(srs.next_review_time(record), T0 + HOUR + 1)


# =============================================================================
# Priority Ranker Tests
# =============================================================================

class PriorityTests(TestCase):
    """Tests for priority scoring."""

    def test_new_card_fixed_priority(self):
        self.assertEqual(srs.priority(srs.new_record(), T0, rng=no_jitter), 1500)

    def test_failing_card_priority(self):
        """Miss streak, minimum overdue term and low-accuracy boost add up."""
        record = failing(T0, T0 + HOUR, misses=2)
        now = T0 + HOUR + 30 * MINUTE  # Exactly due
        expected = 500 + 2 * 100 + 1 * 10 + (0.6 - 1 / 3) * 200
        self.assertAlmostEqual(srs.priority(record, now, rng=no_jitter), expected)

    def test_overdue_hours_increase_priority(self):
        """Ten hours past due scores 10 points per hour."""
        record = answered_once(T0)
        self.assertAlmostEqual(srs.priority(record, T0 + 14 * HOUR, rng=no_jitter), 100)

    def test_overdue_term_has_floor_of_one_hour(self):
        record = answered_once(T0)
        self.assertAlmostEqual(srs.priority(record, T0 + 4 * HOUR, rng=no_jitter), 10)

    def test_accurate_card_gets_no_boost(self):
        record = mastered(T0, streak=3)
        due_at = srs.next_review_time(record)
        self.assertAlmostEqual(srs.priority(record, due_at, rng=no_jitter), 10)

    def test_jitter_is_bounded(self):
        """Jitter adds rng() * 5."""
        self.assertAlmostEqual(srs.priority(srs.new_record(), T0, rng=lambda: 0.5), 1502.5)
        self.assertLess(srs.priority(srs.new_record(), T0, rng=lambda: 0.999), 1505)


# =============================================================================
# Scheduler Tests
# =============================================================================

class SelectNextTests(TestCase):
    """Tests for select_next and due_items."""

    def test_empty_or_missing_items(self):
        lookup = lookup_from({})
        self.assertIsNone(srs.select_next(None, lookup, MODE, T0))
        self.assertIsNone(srs.select_next([], lookup, MODE, T0))

    def test_new_card_beats_failing_card(self):
        """A new card (1500) outranks a card with a two-miss streak (~760)."""
        old, new = FakeItem('old'), FakeItem('new')
        lookup = lookup_from({
            'old': failing(T0 - 3 * HOUR, T0 - 2 * HOUR, misses=2),
            'new': srs.new_record(),
        })
        self.assertIs(srs.select_next([old, new], lookup, MODE, T0, rng=no_jitter), new)

    def test_missing_record_is_new_card(self):
        """A lookup miss is treated as a brand-new card, not an error."""
        item = FakeItem('unknown')
        self.assertIs(srs.select_next([item], lookup_from({}), MODE, T0), item)

    def test_nothing_due_returns_none(self):
        items = [FakeItem('a'), FakeItem('b')]
        lookup = lookup_from({'a': answered_once(T0), 'b': mastered(T0)})
        self.assertIsNone(srs.select_next(items, lookup, MODE, T0 + HOUR))

    def test_history_is_per_mode(self):
        """A card answered in one mode is still new in another."""
        item = FakeItem('a')
        lookup = lookup_from({'a': answered_once(T0)}, mode=MODE)
        self.assertIsNone(srs.select_next([item], lookup, MODE, T0 + HOUR))
        self.assertIs(srs.select_next([item], lookup, 'LM-listening', T0 + HOUR), item)

    def test_predicate_excludes_items(self):
        starred = FakeItem('starred', starred=True)
        plain = FakeItem('plain')
        lookup = lookup_from({})
        include = lambda item: item.starred
        self.assertIs(srs.select_next([plain, starred], lookup, MODE, T0, include=include), starred)
        self.assertIsNone(srs.select_next([plain], lookup, MODE, T0, include=include))

    def test_most_overdue_card_wins(self):
        items = [FakeItem('recent'), FakeItem('stale')]
        lookup = lookup_from({
            'recent': answered_once(T0 - 5 * HOUR),
            'stale': answered_once(T0 - 50 * HOUR),
        })
        self.assertEqual(srs.select_next(items, lookup, MODE, T0, rng=no_jitter).item_id, 'stale')

    def test_very_overdue_card_can_outrank_new_card(self):
        """The new-card constant is fixed; the overdue term is not bounded."""
        items = [FakeItem('new'), FakeItem('forgotten')]
        lookup = lookup_from({'forgotten': answered_once(T0 - 200 * HOUR)})
        self.assertEqual(srs.select_next(items, lookup, MODE, T0, rng=no_jitter).item_id, 'forgotten')

    def test_ties_resolve_to_input_order(self):
        items = [FakeItem('first'), FakeItem('second')]
        self.assertEqual(
            srs.select_next(items, lookup_from({}), MODE, T0, rng=no_jitter).item_id, 'first'
        )

    def test_deterministic_with_fixed_clock_and_rng(self):
        items = [FakeItem(str(i)) for i in range(10)]
        lookup = lookup_from({
            str(i): answered_once(T0 - (5 + i % 3) * HOUR) for i in range(10)
        })
        picks = {srs.select_next(items, lookup, MODE, T0, rng=no_jitter).item_id for _ in range(5)}
        self.assertEqual(len(picks), 1)

    def test_selected_item_is_due_and_included(self):
        items = [FakeItem(str(i), starred=i % 2 == 0) for i in range(8)]
        lookup = lookup_from({
            str(i): answered_once(T0 - i * HOUR) for i in range(8)
        })
        include = lambda item: item.starred
        selected = srs.select_next(items, lookup, MODE, T0, include=include)
        self.assertIn(selected, items)
        self.assertTrue(include(selected))
        self.assertTrue(srs.is_due(lookup(selected.item_id, MODE), T0))

    def test_due_items_is_ordered_subset(self):
        items = [FakeItem('a'), FakeItem('b'), FakeItem('c')]
        lookup = lookup_from({'b': answered_once(T0)})
        due = srs.due_items(items, lookup, MODE, T0 + HOUR)
        self.assertEqual([item.item_id for item in due], ['a', 'c'])
        self.assertEqual(srs.count_due(items, lookup, MODE, T0 + HOUR), 2)


class SchedulerContextTests(TestCase):
    """Tests for the per-call SchedulerContext."""

    def setUp(self):
        self.items = (FakeItem('a'), FakeItem('b', starred=True))
        self.lookup = lookup_from({'a': answered_once(T0), 'b': answered_once(T0)})

    def make_context(self, now, **kwargs):
        return srs.SchedulerContext(
            items=self.items, history_lookup=self.lookup, mode=MODE,
            clock=lambda: now, rng=no_jitter, **kwargs
        )

    def test_uses_injected_clock(self):
        self.assertIsNone(self.make_context(T0 + HOUR).select_next())
        self.assertEqual(self.make_context(T0 + 5 * HOUR).select_next().item_id, 'a')

    def test_applies_include(self):
        context = self.make_context(T0 + 5 * HOUR, include=lambda item: item.starred)
        self.assertEqual(context.select_next().item_id, 'b')
        self.assertEqual(context.count_due(), 1)

    def test_progress_helpers(self):
        context = self.make_context(T0 + HOUR)
        self.assertEqual(context.buckets().due_soon_6h, 2)
        summary = context.next_review()
        self.assertEqual(summary.cluster_count, 2)
        self.assertEqual(summary.eta_label, '3 hours')


# =============================================================================
# Forecast Tests
# =============================================================================

class DueBucketTests(TestCase):
    """Tests for bucket_by_time_to_due."""

    def test_overdue_and_later(self):
        """3 overdue and 7 far-future cards."""
        items = [FakeItem(f'o{i}') for i in range(3)] + [FakeItem(f'l{i}') for i in range(7)]
        records = {f'o{i}': answered_once(T0 - 10 * HOUR) for i in range(3)}
        records.update({f'l{i}': mastered(T0) for i in range(7)})

        buckets = bucket_by_time_to_due(items, lookup_from(records), MODE, T0)
        self.assertEqual(buckets, DueBuckets(overdue=3, due_later=7))
        self.assertEqual(buckets.as_dict(), {
            'overdue': 3, 'due_soon_15min': 0, 'due_soon_1h': 0,
            'due_soon_6h': 0, 'due_soon_24h': 0, 'due_later': 7,
        })

    def test_each_bucket(self):
        two_rungs = make_record(total_correct=2, last_correct_at=T0 - 12 * HOUR,
                                correct_streak_len=2)
        records = {
            'new': srs.new_record(),
            'soon15': answered_once(T0 - 4 * HOUR + 10 * MINUTE),
            'soon1h': answered_once(T0 - 4 * HOUR + 30 * MINUTE),
            'soon6h': answered_once(T0 - 2 * HOUR),
            'soon24h': two_rungs,
            'later': mastered(T0),
        }
        items = [FakeItem(key) for key in records]
        buckets = bucket_by_time_to_due(items, lookup_from(records), MODE, T0)
        self.assertEqual(buckets, DueBuckets(1, 1, 1, 1, 1, 1))

    def test_buckets_partition_items(self):
        items = [FakeItem(str(i)) for i in range(40)]
        records = {str(i): answered_once(T0 - i * HOUR) for i in range(0, 40, 2)}
        buckets = bucket_by_time_to_due(items, lookup_from(records), MODE, T0)
        self.assertEqual(buckets.total, 40)

    def test_empty(self):
        self.assertEqual(bucket_by_time_to_due([], lookup_from({}), MODE, T0).total, 0)


class DueTimelineTests(TestCase):
    """Tests for the nine-bucket due timeline."""

    def test_timeline_buckets(self):
        records = {
            'new': srs.new_record(),
            '10m': answered_once(T0 - 4 * HOUR + 10 * MINUTE),
            '45m': answered_once(T0 - 4 * HOUR + 45 * MINUTE),
            '2h': answered_once(T0 - 2 * HOUR),
            'later': mastered(T0),
        }
        items = [FakeItem(key) for key in records]
        timeline = due_timeline(items, lookup_from(records), MODE, T0)
        # mastered(T0) is due in 93.6 hours, which is within 7 days
        self.assertEqual(timeline, [1, 1, 1, 1, 0, 0, 1, 0, 0])
        self.assertEqual(sum(timeline), len(items))


class HumanizeDelayTests(TestCase):
    """Tests for humanize_delay."""

    def test_minutes(self):
        self.assertEqual(humanize_delay(30 * 1000), '1 minute')
        self.assertEqual(humanize_delay(MINUTE), '1 minute')
        self.assertEqual(humanize_delay(90 * MINUTE), '90 minutes')

    def test_hours(self):
        self.assertEqual(humanize_delay(2 * HOUR), '2 hours')
        self.assertEqual(humanize_delay(5 * HOUR + 30 * MINUTE), '6 hours')

    def test_days(self):
        self.assertEqual(humanize_delay(24 * HOUR), '1 day')
        self.assertEqual(humanize_delay(50 * HOUR), '3 days')


class DueRateHistogramTests(TestCase):
    """Tests for the 15 minute due-rate histogram."""

    def test_slots(self):
        def due_in(delay):
            # 24 hour interval
            return make_record(total_correct=2, correct_streak_len=2,
                               last_correct_at=T0 - 24 * HOUR + delay)

        records = {
            'new': srs.new_record(),
            'overdue': due_in(-HOUR),
            '10m': due_in(10 * MINUTE),
            '20m': due_in(20 * MINUTE),
            '3h': due_in(3 * HOUR),
            '1422m': due_in(1422 * MINUTE),
            '1430m': due_in(1430 * MINUTE),
        }
        items = [FakeItem(key) for key in records]
        slots = due_rate_histogram(items, lookup_from(records), MODE, T0)

        self.assertEqual(len(slots), 95)
        self.assertEqual(slots[0], 3)
        self.assertEqual(slots[1], 1)
        self.assertEqual(slots[12], 1)
        self.assertEqual(slots[94], 1)
        # Due after the last slot
        self.assertEqual(sum(slots), len(items) - 1)


class NextReviewSummaryTests(TestCase):
    """Tests for next_review_summary."""

    def test_none_when_only_new_cards(self):
        items = [FakeItem('a'), FakeItem('b')]
        self.assertIsNone(next_review_summary(items, lookup_from({}), MODE, T0))

    def test_none_when_everything_overdue(self):
        items = [FakeItem('a')]
        lookup = lookup_from({'a': answered_once(T0 - 10 * HOUR)})
        self.assertIsNone(next_review_summary(items, lookup, MODE, T0))

    def test_cluster_within_one_hour(self):
        records = {
            'a': answered_once(T0 - 2 * HOUR),                # due in 2h
            'b': answered_once(T0 - 90 * MINUTE),             # due in 2.5h
            'c': answered_once(T0 - HOUR),                    # due in 3h
            'd': answered_once(T0 + HOUR),                    # due in 5h
            'new': srs.new_record(),
        }
        items = [FakeItem(key) for key in records]
        summary = next_review_summary(items, lookup_from(records), MODE, T0)

        self.assertEqual(summary.cluster_count, 3)
        self.assertEqual(summary.eta_label, '2 hours')
        self.assertEqual(summary.next_review_at, T0 + 2 * HOUR)
        self.assertEqual(summary.message, 'Next review: 3 cards in ~2 hours.')

    def test_include_filter(self):
        items = [FakeItem('a'), FakeItem('b', starred=True)]
        lookup = lookup_from({
            'a': answered_once(T0 - 3 * HOUR),
            'b': answered_once(T0),
        })
        summary = next_review_summary(items, lookup, MODE, T0, include=lambda item: item.starred)
        self.assertEqual(summary.cluster_count, 1)
        self.assertEqual(summary.eta_label, '4 hours')
        self.assertEqual(summary.message, 'Next review: 1 card in ~4 hours.')


# =============================================================================
# Stats Tests
# =============================================================================

class ApplyAnswerTests(TestCase):
    """Tests for apply_answer."""

    def test_first_correct_answer(self):
        record = apply_answer(srs.new_record(), True, T0)
        self.assertEqual(record.total_correct, 1)
        self.assertEqual(record.last_correct_at, T0)
        self.assertEqual(record.correct_streak_len, 1)
        self.assertEqual(record.correct_streak_started_at, T0)
        self.assertIsNone(record.last_incorrect_at)

    def test_streak_continues_from_start(self):
        record = apply_answer(srs.new_record(), True, T0)
        record = apply_answer(record, True, T0 + HOUR)
        self.assertEqual(record.correct_streak_len, 2)
        self.assertEqual(record.correct_streak_started_at, T0)
        self.assertEqual(record.last_correct_at, T0 + HOUR)

    def test_miss_breaks_correct_streak(self):
        record = apply_answer(srs.new_record(), True, T0)
        record = apply_answer(record, True, T0 + HOUR)
        record = apply_answer(record, False, T0 + 2 * HOUR)
        self.assertEqual(record.correct_streak_len, 0)
        self.assertIsNone(record.correct_streak_started_at)
        self.assertEqual(record.incorrect_streak_len, 1)
        self.assertEqual(record.incorrect_streak_started_at, T0 + 2 * HOUR)
        self.assertEqual(record.total_correct, 2)
        self.assertEqual(record.total_incorrect, 1)

    def test_streaks_stay_exclusive(self):
        """After any answer sequence at most one streak is running."""
        sequence = [True, True, False, False, False, True, False, True, True, True]
        record = srs.new_record()
        previous_totals = (0, 0)
        for i, correct in enumerate(sequence):
            record = apply_answer(record, correct, T0 + i * HOUR)
            self.assertFalse(record.correct_streak_len and record.incorrect_streak_len)
            self.assertGreaterEqual(record.total_correct, previous_totals[0])
            self.assertGreaterEqual(record.total_incorrect, previous_totals[1])
            previous_totals = (record.total_correct, record.total_incorrect)
        self.assertEqual(record.correct_streak_len, 3)
        self.assertEqual(record.total, len(sequence))

    def test_does_not_mutate_input(self):
        original = srs.new_record()
        apply_answer(original, True, T0)
        self.assertEqual(original, srs.new_record())


class DeckMetricsTests(TestCase):
    """Tests for compute_metrics, streak_histogram and accuracy_leaders."""

    def setUp(self):
        self.items = [FakeItem(key) for key in ('a', 'b', 'c', 'd')]
        self.lookup = lookup_from({
            'a': make_record(total_correct=9, total_incorrect=1, correct_streak_len=4),
            'b': make_record(total_correct=1, total_incorrect=3, incorrect_streak_len=2),
            'c': make_record(total_correct=2, total_incorrect=0, correct_streak_len=2),
        })

    def test_compute_metrics(self):
        """Accuracy pools every answer; streak figures cover answered cards."""
        metrics = compute_metrics(self.items, self.lookup, MODE)
        self.assertEqual(metrics.as_dict(), {
            'total_cards': 4,
            'reviewed_count': 3,
            'new_count': 1,
            'overall_accuracy': 0.75,
            'max_correct_streak': 4,
            'max_incorrect_streak': 2,
            'average_correct_streak': 2.0,
        })

    def test_compute_metrics_without_answers(self):
        metrics = compute_metrics(self.items, lookup_from({}), MODE)
        self.assertEqual(metrics.overall_accuracy, 0.0)
        self.assertEqual(metrics.average_correct_streak, 0.0)
        self.assertEqual(metrics.max_correct_streak, 0)

    def test_streak_histogram(self):
        """Buckets 0, 1, 2-3, 4-5, 6+; new cards are left out."""
        self.assertEqual(streak_histogram(self.items, self.lookup, MODE), [1, 0, 1, 1, 0])

        lookup = lookup_from({
            str(streak): make_record(total_correct=streak or 1, correct_streak_len=streak)
            for streak in range(9)
        })
        items = [FakeItem(str(streak)) for streak in range(9)]
        self.assertEqual(streak_histogram(items, lookup, MODE), [1, 1, 2, 2, 3])

    def test_accuracy_leaders(self):
        best, worst = accuracy_leaders(self.items, self.lookup, MODE)
        self.assertEqual([item.item_id for item, _ in best], ['c', 'a', 'b'])
        self.assertEqual([item.item_id for item, _ in worst], ['b', 'a', 'c'])

    def test_accuracy_leaders_limit(self):
        best, worst = accuracy_leaders(self.items, self.lookup, MODE, limit=1)
        self.assertEqual(len(best), 1)
        self.assertEqual(len(worst), 1)


# =============================================================================
# Filter Tests
# =============================================================================

class FilterTests(TestCase):
    """Tests for host-side filters."""

    def setUp(self):
        self.items = [
            FakeItem('a', tags=['food'], hsk='HSK1'),
            FakeItem('b', tags=['travel', 'food'], hsk='HSK2', starred=True),
            FakeItem('c', tags=[], hsk='', ignored=True),
            FakeItem('d', tags=['travel'], hsk='HSK1', starred=True, ignored=True),
        ]

    def ids(self, items):
        return [item.item_id for item in items]

    def test_no_selection_keeps_everything(self):
        self.assertEqual(self.ids(filters.filter_items(self.items)), ['a', 'b', 'c', 'd'])

    def test_tag_filter_matches_any(self):
        result = filters.filter_items(self.items, tags=['food'])
        self.assertEqual(self.ids(result), ['a', 'b'])

    def test_tag_and_hsk_combine(self):
        result = filters.filter_items(self.items, tags=['travel'], hsk_levels=['HSK1'])
        self.assertEqual(self.ids(result), ['d'])

    def test_flag_predicate_default_hides_ignored(self):
        include = filters.flag_predicate()
        self.assertEqual(self.ids(filter(include, self.items)), ['a', 'b'])

    def test_flag_predicate_starred_only(self):
        include = filters.flag_predicate(starred_only=True)
        self.assertEqual(self.ids(filter(include, self.items)), ['b'])

    def test_flag_predicate_show_ignored_is_exclusive(self):
        include = filters.flag_predicate(show_ignored=True)
        self.assertEqual(self.ids(filter(include, self.items)), ['c', 'd'])

    def test_tristate_predicate(self):
        self.assertEqual(
            self.ids(filter(filters.tristate_flag_predicate(), self.items)), ['a', 'b', 'c', 'd']
        )
        self.assertEqual(
            self.ids(filter(filters.tristate_flag_predicate(starred=False), self.items)), ['a', 'c']
        )
        self.assertEqual(
            self.ids(filter(filters.tristate_flag_predicate(starred=True, ignored=False), self.items)),
            ['b']
        )

    def test_available_filters(self):
        self.assertEqual(filters.available_filters(self.items), {
            'tags': ['food', 'travel'],
            'hsk': ['HSK1', 'HSK2'],
        })


# =============================================================================
# Model Tests
# =============================================================================

class ModelTestMixin:
    """Creates a user, a deck and three cards."""

    def setUp(self):
        self.user = User.objects.create_user(username='testuser', password='testpass123')
        self.deck = Deck.objects.create(name='HSK 1', owner=self.user)
        self.cards = [
            Card.objects.create(deck=self.deck, card_key=f'card-{i}', front=f'字{i}', back=f'word {i}')
            for i in range(3)
        ]


class DeckModelTests(ModelTestMixin, TestCase):
    """Tests for the Deck model."""

    def test_deck_str(self):
        self.assertEqual(str(self.deck), 'HSK 1')

    def test_history_lookup_reads_records(self):
        self.cards[0].answer(MODE, True, now=T0)
        lookup = self.deck.history_lookup()
        self.assertEqual(lookup('card-0', MODE), answered_once(T0))
        self.assertIsNone(lookup('card-0', 'LM-listening'))
        self.assertIsNone(lookup('card-1', MODE))

    def test_cards_due_count(self):
        """New cards count as due; recently answered ones do not."""
        self.cards[0].answer(MODE, True, now=T0)
        self.assertEqual(self.deck.cards_due_count(MODE, now=T0 + HOUR), 2)
        self.assertEqual(self.deck.cards_due_count(MODE, now=T0 + 5 * HOUR), 3)

    def test_cards_new_count(self):
        self.cards[0].answer(MODE, False, now=T0)
        self.assertEqual(self.deck.cards_new_count(MODE), 2)
        self.assertEqual(self.deck.cards_new_count('LM-listening'), 3)

    def test_sync_stats_creates_one_record_per_mode(self):
        modes = list(conf.learning_modes())
        created, removed = self.deck.sync_stats(modes)
        self.assertEqual(created, len(self.cards) * len(modes))
        self.assertEqual(removed, 0)
        for card in self.cards:
            self.assertEqual(
                sorted(card.stats.values_list('mode', flat=True)), sorted(modes)
            )

    def test_sync_stats_is_idempotent(self):
        modes = list(conf.learning_modes())
        self.deck.sync_stats(modes)
        self.assertEqual(self.deck.sync_stats(modes), (0, 0))

    def test_sync_stats_prunes_retired_modes(self):
        CardStats.objects.create(card=self.cards[0], mode='LM-retired', total_correct=4)
        created, removed = self.deck.sync_stats([MODE])
        self.assertEqual(created, 3)
        self.assertEqual(removed, 1)
        self.assertFalse(CardStats.objects.filter(mode='LM-retired').exists())

    def test_reset_stats(self):
        self.cards[0].answer(MODE, True, now=T0)
        self.cards[1].answer('LM-listening', False, now=T0)
        self.assertEqual(self.deck.reset_stats(), 2)
        self.assertTrue(all(stats.record.is_new for stats in CardStats.objects.all()))
        self.assertFalse(ReviewLog.objects.exists())

    def test_reset_stats_single_mode(self):
        self.cards[0].answer(MODE, True, now=T0)
        self.cards[1].answer('LM-listening', False, now=T0)
        self.assertEqual(self.deck.reset_stats(mode=MODE), 1)
        self.assertTrue(self.cards[0].get_record(MODE).is_new)
        self.assertFalse(self.cards[1].get_record('LM-listening').is_new)
        self.assertEqual(ReviewLog.objects.count(), 1)


class CardModelTests(ModelTestMixin, TestCase):
    """Tests for Card and CardStats."""

    def test_item_id_is_card_key(self):
        self.assertEqual(self.cards[0].item_id, 'card-0')

    def test_get_record_defaults_to_new(self):
        self.assertEqual(self.cards[0].get_record(MODE), srs.new_record())

    def test_answer_creates_record_and_log(self):
        log = self.cards[0].answer(MODE, True, now=T0)
        self.assertEqual(self.cards[0].get_record(MODE), answered_once(T0))
        self.assertTrue(log.correct)
        self.assertEqual(log.mode, MODE)
        self.assertEqual(log.interval_before, 0.5)
        self.assertEqual(log.interval_after, 4)

    def test_answers_accumulate(self):
        card = self.cards[0]
        card.answer(MODE, True, now=T0)
        card.answer(MODE, False, now=T0 + HOUR)
        card.answer(MODE, False, now=T0 + 2 * HOUR)
        record = card.get_record(MODE)
        self.assertEqual((record.total_correct, record.total_incorrect), (1, 2))
        self.assertEqual(record.incorrect_streak_len, 2)
        self.assertEqual(record.incorrect_streak_started_at, T0 + HOUR)
        self.assertEqual(card.stats.count(), 1)
        self.assertEqual(card.review_logs.count(), 3)

    def test_modes_are_independent(self):
        card = self.cards[0]
        card.answer(MODE, True, now=T0)
        self.assertTrue(card.get_record('LM-listening').is_new)

    def test_stats_round_trip(self):
        stats = CardStats.objects.create(card=self.cards[0], mode=MODE)
        record = failing(T0, T0 + HOUR, misses=2)
        stats.store(record)
        stats.refresh_from_db()
        self.assertEqual(stats.record, record)

    def test_deleting_card_removes_stats(self):
        self.cards[0].answer(MODE, True, now=T0)
        self.cards[0].delete()
        self.assertFalse(CardStats.objects.exists())


class UserPreferencesModelTests(ModelTestMixin, TestCase):
    """Tests for saved filters."""

    def test_filters_round_trip(self):
        preferences = UserPreferences.objects.create(user=self.user)
        self.assertEqual(preferences.filters_for(self.deck), {'tags': [], 'hsk': []})
        preferences.save_filters(self.deck, ['food'], ['HSK1'])
        preferences.refresh_from_db()
        self.assertEqual(preferences.filters_for(self.deck), {'tags': ['food'], 'hsk': ['HSK1']})


# =============================================================================
# View Tests
# =============================================================================

class ViewTestMixin(ModelTestMixin):
    """Logged-in client on top of the model fixtures."""

    def setUp(self):
        super().setUp()
        self.client = Client()
        self.client.login(username='testuser', password='testpass123')

    def get_json(self, url, **params):
        response = self.client.get(url, params)
        return response, json.loads(response.content)

    def post_json(self, url, data):
        response = self.client.post(url, data=json.dumps(data), content_type='application/json')
        return response, json.loads(response.content)


class NextCardViewTests(ViewTestMixin, TestCase):
    """Tests for the next-card endpoint."""

    def url(self, deck=None):
        return reverse('next_card', kwargs={'deck_pk': (deck or self.deck).pk})

    def test_requires_login(self):
        self.client.logout()
        response, data = self.get_json(self.url())
        self.assertEqual(response.status_code, 401)
        self.assertEqual(data['error'], 'Authentication required')

    def test_reads_clock_once(self):
        """Selection and the next-review summary see the same instant."""
        for card in self.cards:
            card.answer(MODE, True, now=T0)
        with patch('vocab.srs.system_clock', side_effect=[T0 + HOUR, T0 + 10 * HOUR]) as clock:
            _, data = self.get_json(self.url(), mode=MODE)
        self.assertEqual(clock.call_count, 1)
        self.assertIsNone(data['card'])
        self.assertEqual(data['next_review']['cluster_count'], 3)

    def test_unknown_deck_is_json_404(self):
        response = self.client.get(reverse('next_card', kwargs={'deck_pk': 9999}))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(json.loads(response.content), {'error': 'Not found'})

    def test_post_not_allowed(self):
        response = self.client.post(self.url())
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response['Allow'], 'GET')
        self.assertIn('error', json.loads(response.content))

    def test_returns_new_card(self):
        response, data = self.get_json(self.url(), mode=MODE)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['mode'], MODE)
        self.assertIn(data['card']['card_key'], {'card-0', 'card-1', 'card-2'})
        self.assertEqual(data['card']['stats'], srs.new_record().as_dict())
        self.assertEqual(data['remaining_due'], 3)

    def test_unknown_mode_falls_back_to_default(self):
        _, data = self.get_json(self.url(), mode='LM-bogus')
        self.assertEqual(data['mode'], conf.default_mode())

    def test_saved_mode_is_used(self):
        UserPreferences.objects.create(user=self.user, learning_mode='LM-listening')
        _, data = self.get_json(self.url())
        self.assertEqual(data['mode'], 'LM-listening')

    def test_nothing_due_returns_next_review(self):
        for card in self.cards:
            card.answer(MODE, True, now=T0)
        with patch('vocab.srs.system_clock', return_value=T0 + HOUR):
            _, data = self.get_json(self.url(), mode=MODE)
        self.assertIsNone(data['card'])
        self.assertEqual(data['next_review']['cluster_count'], 3)
        self.assertEqual(data['next_review']['eta_label'], '3 hours')
        self.assertEqual(data['message'], 'No cards due for review. Next review: 3 cards in ~3 hours.')

    def test_empty_deck(self):
        empty = Deck.objects.create(name='Empty', owner=self.user)
        _, data = self.get_json(self.url(empty))
        self.assertIsNone(data['card'])
        self.assertIsNone(data['next_review'])
        self.assertEqual(data['message'], 'No cards due for review.')

    def test_failing_card_preferred_over_answered(self):
        self.cards[0].answer(MODE, True, now=T0)
        self.cards[1].answer(MODE, False, now=T0)
        self.cards[1].answer(MODE, False, now=T0 + HOUR)
        self.cards[2].answer(MODE, True, now=T0)
        with patch('vocab.srs.system_clock', return_value=T0 + 5 * HOUR):
            _, data = self.get_json(self.url(), mode=MODE)
        self.assertEqual(data['card']['card_key'], 'card-1')

    def test_starred_filter(self):
        Card.objects.filter(pk=self.cards[2].pk).update(starred=True)
        _, data = self.get_json(self.url(), mode=MODE, starred='true')
        self.assertEqual(data['card']['card_key'], 'card-2')
        self.assertEqual(data['remaining_due'], 1)

    def test_ignored_cards_hidden(self):
        Card.objects.filter(deck=self.deck).update(ignored=True)
        _, data = self.get_json(self.url(), mode=MODE)
        self.assertIsNone(data['card'])

    def test_tag_filter(self):
        Card.objects.filter(pk=self.cards[1].pk).update(tags=['food'])
        _, data = self.get_json(self.url(), mode=MODE, tags='food')
        self.assertEqual(data['card']['card_key'], 'card-1')

    def test_saved_filters_apply(self):
        Card.objects.filter(pk=self.cards[0].pk).update(hsk='HSK2')
        preferences = UserPreferences.objects.create(user=self.user)
        preferences.save_filters(self.deck, [], ['HSK2'])
        _, data = self.get_json(self.url(), mode=MODE)
        self.assertEqual(data['card']['card_key'], 'card-0')
        self.assertEqual(data['remaining_due'], 1)

    def test_other_users_deck_is_404(self):
        other = User.objects.create_user(username='other', password='testpass123')
        deck = Deck.objects.create(name='Private', owner=other)
        response = self.client.get(self.url(deck))
        self.assertEqual(response.status_code, 404)


class AnswerViewTests(ViewTestMixin, TestCase):
    """Tests for the answer endpoint."""

    def url(self, card=None):
        return reverse('answer_card', kwargs={'pk': (card or self.cards[0]).pk})

    def test_correct_answer(self):
        with patch('vocab.srs.system_clock', return_value=T0):
            response, data = self.post_json(self.url(), {'mode': MODE, 'correct': True})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(data['success'])
        self.assertEqual(data['stats'], answered_once(T0).as_dict())
        self.assertEqual(data['interval_hours'], 4)
        self.assertEqual(data['next_review_at'], T0 + 4 * HOUR)
        self.assertEqual(ReviewLog.objects.count(), 1)

    def test_incorrect_answer(self):
        _, data = self.post_json(self.url(), {'mode': MODE, 'correct': False})
        self.assertEqual(data['stats']['total_incorrect'], 1)
        self.assertEqual(data['stats']['incorrect_streak_len'], 1)

    def test_answer_then_not_due(self):
        self.post_json(self.url(), {'mode': MODE, 'correct': True})
        self.assertEqual(self.deck.cards_due_count(MODE), 2)

    def test_invalid_json(self):
        response = self.client.post(self.url(), data='not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_unknown_mode_rejected(self):
        response, data = self.post_json(self.url(), {'mode': 'LM-bogus', 'correct': True})
        self.assertEqual(response.status_code, 400)
        self.assertIn('mode', data['errors'])
        self.assertFalse(CardStats.objects.exists())

    def test_missing_correct_rejected(self):
        response, data = self.post_json(self.url(), {'mode': MODE})
        self.assertEqual(response.status_code, 400)
        self.assertIn('correct', data['errors'])

    def test_get_not_allowed(self):
        response, data = self.get_json(self.url())
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response['Allow'], 'POST')
        self.assertEqual(data['error'], 'Method GET not allowed')

    def test_other_users_card_is_404(self):
        other = User.objects.create_user(username='other', password='testpass123')
        deck = Deck.objects.create(name='Private', owner=other)
        card = Card.objects.create(deck=deck, card_key='x', front='x')
        response, data = self.post_json(self.url(card), {'mode': MODE, 'correct': True})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(data, {'error': 'Not found'})
        self.assertFalse(CardStats.objects.exists())


class ProgressViewTests(ViewTestMixin, TestCase):
    """Tests for deck list, progress and stats endpoints."""

    def test_deck_list(self):
        self.cards[0].answer(MODE, True, now=T0)
        with patch('vocab.srs.system_clock', return_value=T0 + HOUR):
            _, data = self.get_json(reverse('deck_list'), mode=MODE)
        self.assertEqual(len(data['decks']), 1)
        deck = data['decks'][0]
        self.assertEqual(deck['card_count'], 3)
        self.assertEqual(deck['due_count'], 2)
        self.assertEqual(deck['new_count'], 2)
        self.assertEqual(list(data['modes']), list(conf.learning_modes()))

    def test_deck_list_flag_filters(self):
        Card.objects.filter(pk=self.cards[0].pk).update(starred=True)
        Card.objects.filter(pk=self.cards[1].pk).update(ignored=True)
        _, data = self.get_json(reverse('deck_list'), mode=MODE, starred='true')
        self.assertEqual(data['decks'][0]['due_count'], 1)
        _, data = self.get_json(reverse('deck_list'), mode=MODE, ignored='false')
        self.assertEqual(data['decks'][0]['due_count'], 2)

    def test_progress(self):
        self.cards[0].answer(MODE, True, now=T0)
        with patch('vocab.srs.system_clock', side_effect=[T0 + HOUR]):
            _, data = self.get_json(reverse('deck_progress', kwargs={'pk': self.deck.pk}), mode=MODE)
        self.assertEqual(data['total'], 3)
        self.assertEqual(data['due_now'], 2)
        self.assertEqual(data['buckets']['overdue'], 2)
        self.assertEqual(data['buckets']['due_soon_6h'], 1)
        self.assertEqual(data['next_review']['cluster_count'], 1)

    def test_stats(self):
        Card.objects.filter(pk=self.cards[0].pk).update(tags=['food'], hsk='HSK1')
        self.cards[0].answer(MODE, True, now=T0)
        self.cards[1].answer(MODE, False, now=T0)
        with patch('vocab.srs.system_clock', return_value=T0 + HOUR):
            _, data = self.get_json(reverse('deck_stats', kwargs={'pk': self.deck.pk}), mode=MODE)
        self.assertEqual(data['metrics'], {
            'total_cards': 3,
            'reviewed_count': 2,
            'new_count': 1,
            'overall_accuracy': 0.5,
            'max_correct_streak': 1,
            'max_incorrect_streak': 1,
            'average_correct_streak': 0.5,
        })
        self.assertEqual(sum(row['count'] for row in data['timeline']), 3)
        # New and overdue cards in the first slot, card-0 due in 3 hours
        self.assertEqual(data['due_rate']['slot_minutes'], 15)
        self.assertEqual(len(data['due_rate']['counts']), 95)
        self.assertEqual(data['due_rate']['counts'][0], 2)
        self.assertEqual(data['due_rate']['counts'][12], 1)
        self.assertEqual(data['streaks'], [
            {'label': '0', 'count': 1},
            {'label': '1', 'count': 1},
            {'label': '2-3', 'count': 0},
            {'label': '4-5', 'count': 0},
            {'label': '6+', 'count': 0},
        ])
        self.assertEqual(data['best'][0]['card_key'], 'card-0')
        self.assertEqual(data['worst'][0]['card_key'], 'card-1')
        self.assertEqual(data['filters'], {'tags': ['food'], 'hsk': ['HSK1']})


class DeckMaintenanceViewTests(ViewTestMixin, TestCase):
    """Tests for reset and flag endpoints."""

    def test_reset_requires_matching_name(self):
        self.cards[0].answer(MODE, True, now=T0)
        response = self.client.post(
            reverse('deck_reset', kwargs={'pk': self.deck.pk}), {'confirm_name': 'Wrong'}
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(self.cards[0].get_record(MODE).is_new)

    def test_reset(self):
        self.cards[0].answer(MODE, True, now=T0)
        response = self.client.post(
            reverse('deck_reset', kwargs={'pk': self.deck.pk}), {'confirm_name': 'HSK 1'}
        )
        data = json.loads(response.content)
        self.assertTrue(data['success'])
        self.assertEqual(data['record_count'], 1)
        self.assertTrue(self.cards[0].get_record(MODE).is_new)

    def test_reset_one_mode_json(self):
        self.cards[0].answer(MODE, True, now=T0)
        self.cards[0].answer('LM-listening', True, now=T0)
        response, data = self.post_json(
            reverse('deck_reset', kwargs={'pk': self.deck.pk}),
            {'confirm_name': 'HSK 1', 'mode': 'LM-listening'}
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(self.cards[0].get_record(MODE).is_new)
        self.assertTrue(self.cards[0].get_record('LM-listening').is_new)

    def test_flags(self):
        url = reverse('card_flags', kwargs={'pk': self.cards[0].pk})
        response, data = self.post_json(url, {'starred': True})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data, {'success': True, 'starred': True, 'ignored': False})
        self.cards[0].refresh_from_db()
        self.assertTrue(self.cards[0].starred)

    def test_flags_require_a_value(self):
        url = reverse('card_flags', kwargs={'pk': self.cards[0].pk})
        response, _ = self.post_json(url, {})
        self.assertEqual(response.status_code, 400)


class SettingsViewTests(ViewTestMixin, TestCase):
    """Tests for the settings API."""

    def test_get_defaults(self):
        _, data = self.get_json(reverse('api_settings'))
        self.assertEqual(data['learning_mode'], conf.default_mode())
        self.assertEqual(data['theme'], 'light')

    def test_set_mode_keeps_other_fields(self):
        self.post_json(reverse('api_settings'), {'selected_deck': self.deck.pk})
        response, data = self.post_json(reverse('api_settings'), {'learning_mode': 'LM-listening'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['learning_mode'], 'LM-listening')
        self.assertEqual(data['selected_deck'], self.deck.pk)

    def test_invalid_mode_rejected(self):
        response, _ = self.post_json(reverse('api_settings'), {'learning_mode': 'LM-bogus'})
        self.assertEqual(response.status_code, 400)

    def test_save_filters_for_selected_deck(self):
        _, data = self.post_json(reverse('api_settings'), {
            'selected_deck': self.deck.pk, 'tags': ['food', 'travel'], 'hsk': 'HSK1',
        })
        self.assertEqual(data['saved_filters'][str(self.deck.pk)], {
            'tags': ['food', 'travel'], 'hsk': ['HSK1'],
        })

    def test_cannot_select_other_users_deck(self):
        other = User.objects.create_user(username='other', password='testpass123')
        deck = Deck.objects.create(name='Private', owner=other)
        response, _ = self.post_json(reverse('api_settings'), {'selected_deck': deck.pk})
        self.assertEqual(response.status_code, 400)


class AuthViewTests(ModelTestMixin, TestCase):
    """Tests for the JSON login and logout endpoints."""

    def setUp(self):
        super().setUp()
        self.client = Client()

    def login(self, username='testuser', password='testpass123'):
        response = self.client.post(
            reverse('api_login'),
            data=json.dumps({'username': username, 'password': password}),
            content_type='application/json',
        )
        return response, json.loads(response.content)

    def test_login_page_reports_status(self):
        response = self.client.get(reverse('api_login'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content), {'authenticated': False, 'username': None})
        self.assertIn('csrftoken', response.cookies)

    def test_login_then_use_api(self):
        response, data = self.login()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data, {'success': True, 'authenticated': True, 'username': 'testuser'})
        self.assertTrue(UserPreferences.objects.filter(user=self.user).exists())

        response = self.client.get(reverse('deck_list'))
        self.assertEqual(response.status_code, 200)

    def test_bad_credentials(self):
        response, data = self.login(password='wrong')
        self.assertEqual(response.status_code, 400)
        self.assertIn('__all__', data['errors'])
        self.assertEqual(self.client.get(reverse('deck_list')).status_code, 401)

    def test_invalid_json(self):
        response = self.client.post(reverse('api_login'), data='nope', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_logout(self):
        self.login()
        response = self.client.post(reverse('api_logout'))
        self.assertEqual(json.loads(response.content)['authenticated'], False)
        self.assertEqual(self.client.get(reverse('deck_list')).status_code, 401)


class AdminTests(ModelTestMixin, TestCase):
    def test_card_stats_changelist(self):
        User.objects.create_superuser(username='admin', password='adminpass123', email='a@example.com')
        self.cards[0].answer(MODE, True, now=T0)
        CardStats.objects.create(card=self.cards[1], mode=MODE)
        client = Client()
        client.login(username='admin', password='adminpass123')
        response = client.get(reverse('admin:vocab_cardstats_changelist'))
        self.assertEqual(response.status_code, 200)


class HealthCheckTests(TestCase):
    def test_health_check(self):
        response = self.client.get(reverse('health_check'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content)['status'], 'healthy')


# =============================================================================
# Management Command Tests
# =============================================================================

class SyncDeckStatsCommandTests(ModelTestMixin, TestCase):
    """Tests for the sync_deck_stats management command."""

    def test_creates_missing_records(self):
        out = StringIO()
        call_command('sync_deck_stats', stdout=out)
        expected = len(self.cards) * len(conf.learning_modes())
        self.assertEqual(CardStats.objects.count(), expected)
        self.assertIn(f'{expected} record(s) created', out.getvalue())

    def test_dry_run_writes_nothing(self):
        CardStats.objects.create(card=self.cards[0], mode='LM-retired')
        out = StringIO()
        call_command('sync_deck_stats', '--dry-run', stdout=out)
        self.assertEqual(CardStats.objects.count(), 1)
        self.assertIn('[DRY RUN]', out.getvalue())
        self.assertIn('1 removed', out.getvalue())

    def test_single_deck(self):
        other = Deck.objects.create(name='Other', owner=self.user)
        Card.objects.create(deck=other, card_key='x', front='x')
        call_command('sync_deck_stats', '--deck', str(other.pk), stdout=StringIO())
        self.assertEqual(CardStats.objects.filter(card__deck=self.deck).count(), 0)
        self.assertEqual(CardStats.objects.filter(card__deck=other).count(), len(conf.learning_modes()))

    def test_logs_summary(self):
        with self.assertLogs('vocab.management.commands.sync_deck_stats', level='INFO') as logs:
            call_command('sync_deck_stats', stdout=StringIO())
        finished = logs.records[-1]
        self.assertEqual(finished.getMessage(), 'Finished sync_deck_stats command')
        self.assertEqual(finished.records_created, len(self.cards) * len(conf.learning_modes()))
        self.assertEqual(finished.records_removed, 0)

    def test_unknown_deck(self):
        with self.assertRaises(CommandError):
            call_command('sync_deck_stats', '--deck', '9999', stdout=StringIO())
