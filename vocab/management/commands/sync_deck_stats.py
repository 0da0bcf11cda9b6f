"""
Management command to keep performance records in step with the configured
learning modes.

Every card gets one record per mode in VOCAB_LEARNING_MODES; records of modes
that are no longer configured are deleted. Records of deleted cards go away
with the card itself.

    python manage.py sync_deck_stats
    python manage.py sync_deck_stats --deck 3 --dry-run
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from vocab import conf
from vocab.models import Deck, CardStats

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Create missing per-mode performance records and prune records of retired modes'

    def add_arguments(self, parser):
        parser.add_argument(
            '--deck',
            type=int,
            action='append',
            dest='decks',
            help='Only sync this deck id (repeatable)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without writing anything',
        )

    def handle(self, *args, **options):
        modes = list(conf.learning_modes())
        dry_run = options['dry_run']

        decks = Deck.objects.all()
        if options['decks']:
            decks = decks.filter(pk__in=options['decks'])
            missing_ids = set(options['decks']) - set(decks.values_list('pk', flat=True))
            if missing_ids:
                raise CommandError(f"Unknown deck id(s): {', '.join(map(str, sorted(missing_ids)))}")

        logger.info(
            "Starting sync_deck_stats command",
            extra={'dry_run': dry_run, 'modes': modes, 'deck_count': decks.count()}
        )

        total_created = 0
        total_removed = 0
        for deck in decks:
            if dry_run:
                created, removed = self._preview(deck, modes)
            else:
                created, removed = deck.sync_stats(modes)
            total_created += created
            total_removed += removed
            self.stdout.write(f"{deck.name}: {created} created, {removed} removed")

        prefix = '[DRY RUN] ' if dry_run else ''
        self.stdout.write(self.style.SUCCESS(
            f"{prefix}Synced {decks.count()} deck(s): "
            f"{total_created} record(s) created, {total_removed} removed"
        ))
        logger.info(
            "Finished sync_deck_stats command",
            extra={'records_created': total_created, 'records_removed': total_removed, 'dry_run': dry_run}
        )

    def _preview(self, deck, modes):
        """Count the changes sync_stats would make without making them."""
        stats = CardStats.objects.filter(card__deck=deck)
        existing = set(stats.values_list('card_id', 'mode'))
        created = sum(
            1
            for card_id in deck.cards.values_list('pk', flat=True)
            for mode in modes
            if (card_id, mode) not in existing
        )
        removed = stats.exclude(mode__in=modes).count()
        return created, removed
