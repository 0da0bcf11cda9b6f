"""Deck overview and progress views."""

from django.db.models import Count
from django.http import JsonResponse
from django.shortcuts import get_object_or_404

from .. import conf, srs
from ..filters import available_filters, tristate_flag_predicate
from ..forecast import (
    DUE_RATE_SLOT_MINUTES,
    TIMELINE_LABELS,
    bucket_by_time_to_due,
    due_rate_histogram,
    due_timeline,
    next_review_summary,
)
from ..models import Deck
from ..stats import STREAK_BUCKET_LABELS, accuracy_leaders, compute_metrics, streak_histogram
from .helpers import (
    api_login_required,
    build_scheduler_context,
    card_payload,
    get_or_create_preferences,
    require_methods,
)


def _tristate(value):
    """'true'/'false' query values to True/False; anything else means any."""
    return {'true': True, 'false': False}.get((value or '').lower())


@api_login_required
@require_methods('GET')
def deck_list(request):
    """
    List the user's decks with due counts in the current learning mode.

    Optional ``starred`` and ``ignored`` query parameters ('true' or 'false')
    restrict the due count; when omitted either flag matches.
    """
    preferences = get_or_create_preferences(request.user)
    mode = conf.resolve_mode(request.GET.get('mode'), preferences.learning_mode)
    include = tristate_flag_predicate(
        starred=_tristate(request.GET.get('starred')),
        ignored=_tristate(request.GET.get('ignored')),
    )
    now = srs.system_clock()

    decks = Deck.objects.filter(owner=request.user).annotate(card_count=Count('cards'))
    return JsonResponse({
        'mode': mode,
        'modes': conf.learning_modes(),
        'selected_deck': preferences.selected_deck_id,
        'decks': [
            {
                'id': deck.pk,
                'name': deck.name,
                'description': deck.description,
                'card_count': deck.card_count,
                'due_count': deck.cards_due_count(mode, now=now, include=include),
                'new_count': deck.cards_new_count(mode),
            }
            for deck in decks
        ],
    })


@api_login_required
@require_methods('GET')
def deck_progress(request, pk):
    """Due-time buckets for the progress strip, plus when to come back."""
    deck = get_object_or_404(Deck, pk=pk, owner=request.user)
    context, error = build_scheduler_context(request, deck)
    if error:
        return error

    now = context.clock()
    buckets = bucket_by_time_to_due(context.items, context.history_lookup, context.mode, now)
    summary = next_review_summary(
        context.items, context.history_lookup, context.mode, now, include=context.include
    )

    return JsonResponse({
        'mode': context.mode,
        'total': buckets.total,
        'due_now': srs.count_due(
            context.items, context.history_lookup, context.mode, now, context.include
        ),
        'buckets': buckets.as_dict(),
        'next_review': summary.as_dict() if summary else None,
    })


@api_login_required
@require_methods('GET')
def deck_stats(request, pk):
    """
    Statistics screen: counts and accuracy, due timeline, 15 minute due rate,
    correct streak distribution and best/worst cards.
    """
    deck = get_object_or_404(Deck, pk=pk, owner=request.user)
    context, error = build_scheduler_context(request, deck)
    if error:
        return error

    now = context.clock()
    metrics = compute_metrics(context.items, context.history_lookup, context.mode)
    timeline = due_timeline(context.items, context.history_lookup, context.mode, now)
    due_rate = due_rate_histogram(context.items, context.history_lookup, context.mode, now)
    streaks = streak_histogram(context.items, context.history_lookup, context.mode)
    best, worst = accuracy_leaders(context.items, context.history_lookup, context.mode)

    def leaderboard(rows):
        return [
            {**card_payload(card, record), 'accuracy': round(record.accuracy, 3)}
            for card, record in rows
        ]

    return JsonResponse({
        'mode': context.mode,
        'metrics': metrics.as_dict(),
        'timeline': [
            {'label': label, 'count': count}
            for label, count in zip(TIMELINE_LABELS, timeline)
        ],
        'due_rate': {'slot_minutes': DUE_RATE_SLOT_MINUTES, 'counts': due_rate},
        'streaks': [
            {'label': label, 'count': count}
            for label, count in zip(STREAK_BUCKET_LABELS, streaks)
        ],
        'best': leaderboard(best),
        'worst': leaderboard(worst),
        'filters': available_filters(deck.cards.all()),
    })
