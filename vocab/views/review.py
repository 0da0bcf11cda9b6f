"""Review session API: pick the next card and record answers."""

from django.http import JsonResponse
from django.shortcuts import get_object_or_404

from .. import srs
from ..forecast import next_review_summary
from ..forms import AnswerForm
from ..models import Deck, Card
from .helpers import (
    api_login_required,
    build_scheduler_context,
    card_payload,
    error_response,
    form_error_response,
    parse_json_body,
    require_methods,
)


@api_login_required
@require_methods('GET')
def next_card(request, deck_pk):
    """
    Return the most urgent due card of a deck.

    When nothing is due the response carries ``card: null`` and, if some card
    is scheduled later, a summary of when to come back.
    """
    deck = get_object_or_404(Deck, pk=deck_pk, owner=request.user)
    context, error = build_scheduler_context(request, deck)
    if error:
        return error

    now = context.clock()
    card = srs.select_next(
        context.items, context.history_lookup, context.mode, now,
        include=context.include, rng=context.rng
    )

    if card is None:
        summary = next_review_summary(
            context.items, context.history_lookup, context.mode, now, include=context.include
        )
        if summary:
            message = f"No cards due for review. {summary.message}"
        else:
            message = 'No cards due for review.'
        return JsonResponse({
            'card': None,
            'mode': context.mode,
            'remaining_due': 0,
            'next_review': summary.as_dict() if summary else None,
            'message': message,
        })

    record = srs.lookup_record(context.history_lookup, card, context.mode)
    return JsonResponse({
        'card': card_payload(card, record),
        'mode': context.mode,
        'remaining_due': srs.count_due(
            context.items, context.history_lookup, context.mode, now, context.include
        ),
        'next_review': None,
    })


@api_login_required
@require_methods('POST')
def answer_card(request, pk):
    """Record a correct or incorrect answer for a card in one learning mode."""
    card = get_object_or_404(Card, pk=pk, deck__owner=request.user)

    data = parse_json_body(request)
    if data is None:
        return error_response('Invalid JSON')

    form = AnswerForm(data)
    if not form.is_valid():
        return form_error_response(form)

    mode = form.cleaned_data['mode']
    log = card.answer(mode, form.cleaned_data['correct'])
    record = card.get_record(mode)

    return JsonResponse({
        'success': True,
        'mode': mode,
        'stats': record.as_dict(),
        'interval_hours': round(log.interval_after, 2),
        'next_review_at': srs.next_review_time(record),
    })
