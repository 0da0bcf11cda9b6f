import logging

from django.db import models, transaction
from django.contrib.auth.models import User
from django.utils import timezone

from . import srs
from .stats import apply_answer

logger = logging.getLogger(__name__)


class Deck(models.Model):
    """A collection of vocabulary cards."""
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='decks')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        unique_together = ['name', 'owner']

    def __str__(self):
        return self.name

    def history_lookup(self):
        """
        Snapshot every performance record of this deck.

        Returns a callable (item_id, mode) -> PerformanceRecord or None, the
        shape the scheduler expects. Missing pairs read as None.
        """
        records = {
            (row.card.card_key, row.mode): row.record
            for row in CardStats.objects.filter(card__deck=self).select_related('card')
        }

        def lookup(item_id, mode):
            return records.get((item_id, mode))
        return lookup

    def cards_due_count(self, mode, now=None, include=None):
        """Return count of cards due in ``mode``, new cards included."""
        now = srs.system_clock() if now is None else now
        return srs.count_due(list(self.cards.all()), self.history_lookup(), mode, now, include)

    def cards_new_count(self, mode):
        """Return count of cards never answered in ``mode``."""
        answered = CardStats.objects.filter(card__deck=self, mode=mode).filter(
            models.Q(total_correct__gt=0) | models.Q(total_incorrect__gt=0)
        ).count()
        return self.cards.count() - answered

    def sync_stats(self, modes):
        """
        Make sure every card has exactly one record per mode in ``modes``.

        Missing records are created empty; records of modes that are no
        longer configured are deleted. Returns (created, removed).
        """
        modes = list(modes)
        existing = set(
            CardStats.objects.filter(card__deck=self).values_list('card_id', 'mode')
        )
        missing = [
            CardStats(card_id=card_id, mode=mode)
            for card_id in self.cards.values_list('pk', flat=True)
            for mode in modes
            if (card_id, mode) not in existing
        ]
        CardStats.objects.bulk_create(missing)
        removed, _ = CardStats.objects.filter(card__deck=self).exclude(mode__in=modes).delete()

        logger.info(
            "Synced stats for deck %s: %d created, %d removed",
            self.pk, len(missing), removed
        )
        return len(missing), removed

    def reset_stats(self, mode=None):
        """Return every record (or only those of ``mode``) to the new-card state."""
        stats = CardStats.objects.filter(card__deck=self)
        logs = ReviewLog.objects.filter(card__deck=self)
        if mode:
            stats = stats.filter(mode=mode)
            logs = logs.filter(mode=mode)

        reset_count = stats.update(**srs.new_record().as_dict(), updated_at=timezone.now())
        logs.delete()

        logger.info("Reset %d records in deck %s (mode=%s)", reset_count, self.pk, mode or 'all')
        return reset_count


class Card(models.Model):
    """A vocabulary card. Scheduling state lives in CardStats, one row per mode."""

    deck = models.ForeignKey(Deck, on_delete=models.CASCADE, related_name='cards')
    card_key = models.CharField(max_length=100, help_text="Stable identifier from the deck source")
    front = models.TextField(help_text="Prompt, e.g. the hanzi")
    back = models.TextField(blank=True, help_text="Answer, e.g. the English meaning")
    pinyin = models.CharField(max_length=200, blank=True)
    notes = models.TextField(blank=True, help_text="Additional notes or hints")
    tags = models.JSONField(default=list, blank=True)
    hsk = models.CharField(max_length=20, blank=True)

    starred = models.BooleanField(default=False)
    ignored = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['id']
        unique_together = ['deck', 'card_key']

    def __str__(self):
        return f"{self.front[:50]}..."

    @property
    def item_id(self):
        return self.card_key

    def get_record(self, mode):
        """Current performance record in ``mode``; a new record if none is stored."""
        stats = self.stats.filter(mode=mode).first()
        return stats.record if stats else srs.new_record()

    def answer(self, mode, correct, now=None):
        """
        Record one answer in ``mode`` and return the ReviewLog entry created.

        The record is read, updated and written back inside a single
        transaction with the row locked, so two answers to the same card and
        mode cannot interleave.
        """
        now = srs.system_clock() if now is None else now

        with transaction.atomic():
            stats, _ = CardStats.objects.select_for_update().get_or_create(card=self, mode=mode)
            before = stats.record
            after = apply_answer(before, correct, now)
            stats.store(after)

            log = ReviewLog.objects.create(
                card=self,
                mode=mode,
                correct=correct,
                interval_before=srs.recommended_interval_hours(before),
                interval_after=srs.recommended_interval_hours(after),
            )

        logger.info(
            "Recorded %s answer for card %s in %s",
            'correct' if correct else 'incorrect', self.card_key, mode,
            extra={'deck_id': self.deck_id, 'interval_hours': log.interval_after}
        )
        return log


class CardStats(models.Model):
    """Performance record of one card in one learning mode. Timestamps are epoch ms."""

    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='stats')
    mode = models.CharField(max_length=50)

    total_correct = models.PositiveIntegerField(default=0)
    total_incorrect = models.PositiveIntegerField(default=0)
    last_correct_at = models.BigIntegerField(null=True, blank=True)
    last_incorrect_at = models.BigIntegerField(null=True, blank=True)
    correct_streak_len = models.PositiveIntegerField(default=0)
    incorrect_streak_len = models.PositiveIntegerField(default=0)
    correct_streak_started_at = models.BigIntegerField(null=True, blank=True)
    incorrect_streak_started_at = models.BigIntegerField(null=True, blank=True)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ['card', 'mode']
        verbose_name_plural = 'Card stats'

    def __str__(self):
        return f"{self.card.card_key} [{self.mode}]"

    @property
    def record(self):
        return srs.PerformanceRecord(**{name: getattr(self, name) for name in RECORD_FIELDS})

    def store(self, record):
        """Copy ``record`` onto this row and save it."""
        for name, value in record.as_dict().items():
            setattr(self, name, value)
        self.save()


RECORD_FIELDS = tuple(srs.new_record().as_dict())


class ReviewLog(models.Model):
    """Log of answers for analytics."""
    card = models.ForeignKey(Card, on_delete=models.CASCADE, related_name='review_logs')
    mode = models.CharField(max_length=50)
    correct = models.BooleanField()
    interval_before = models.FloatField(help_text="Recommended interval in hours before the answer")
    interval_after = models.FloatField(help_text="Recommended interval in hours after the answer")
    reviewed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-reviewed_at']


class UserPreferences(models.Model):
    """Per-user settings: learning mode, selected deck, theme and saved filters."""

    class Theme(models.TextChoices):
        LIGHT = 'light', 'Light'
        DARK = 'dark', 'Dark'
        SYSTEM = 'system', 'System'

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='preferences')
    learning_mode = models.CharField(max_length=50, blank=True)
    selected_deck = models.ForeignKey(
        Deck, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    theme = models.CharField(
        max_length=10,
        choices=Theme.choices,
        default=Theme.LIGHT
    )
    # Per-deck filter selections: {"<deck pk>": {"tags": [...], "hsk": [...]}}
    saved_filters = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'User preferences'

    def __str__(self):
        return f"Preferences for {self.user.username}"

    def filters_for(self, deck):
        saved = self.saved_filters.get(str(deck.pk), {})
        return {'tags': list(saved.get('tags', [])), 'hsk': list(saved.get('hsk', []))}

    def save_filters(self, deck, tags, hsk):
        self.saved_filters = {
            **self.saved_filters,
            str(deck.pk): {'tags': list(tags), 'hsk': list(hsk)},
        }
        self.save(update_fields=['saved_filters', 'updated_at'])
