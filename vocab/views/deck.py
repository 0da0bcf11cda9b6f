"""Deck and card maintenance views."""

from django.http import JsonResponse
from django.shortcuts import get_object_or_404

from .. import conf
from ..forms import CardFlagsForm
from ..models import Deck, Card
from .helpers import (
    api_login_required,
    error_response,
    form_error_response,
    parse_json_body,
    require_methods,
)


@api_login_required
@require_methods('POST')
def deck_reset(request, pk):
    """Reset the performance history of a deck, for every mode or just one."""
    deck = get_object_or_404(Deck, pk=pk, owner=request.user)

    # Accept both form posts and JSON bodies
    data = request.POST if request.POST else (parse_json_body(request) or {})

    # Verify deck name matches for confirmation
    confirm_name = str(data.get('confirm_name', '')).strip()
    if confirm_name != deck.name:
        return JsonResponse({
            'success': False,
            'error': 'Deck name does not match'
        }, status=400)

    mode = data.get('mode') or None
    if mode is not None and not conf.is_valid_mode(mode):
        return error_response(f'Unknown learning mode: {mode}')

    reset_count = deck.reset_stats(mode=mode)

    return JsonResponse({
        'success': True,
        'message': f'Reset {reset_count} records in "{deck.name}"',
        'record_count': reset_count,
    })


@api_login_required
@require_methods('POST')
def card_flags(request, pk):
    """Star, unstar, ignore or unignore a card."""
    card = get_object_or_404(Card, pk=pk, deck__owner=request.user)

    data = parse_json_body(request)
    if data is None:
        return error_response('Invalid JSON')

    form = CardFlagsForm(data)
    if not form.is_valid():
        return form_error_response(form)

    update_fields = []
    for flag in ('starred', 'ignored'):
        value = form.cleaned_data.get(flag)
        if value is not None:
            setattr(card, flag, value)
            update_fields.append(flag)
    card.save(update_fields=update_fields + ['updated_at'])

    return JsonResponse({
        'success': True,
        'starred': card.starred,
        'ignored': card.ignored,
    })
