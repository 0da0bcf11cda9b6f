"""Shared helper functions for views."""

import json
import logging
from functools import wraps

from django.http import JsonResponse

from .. import conf, srs
from ..filters import filter_items, flag_predicate
from ..forms import ReviewFilterForm
from ..models import UserPreferences

logger = logging.getLogger(__name__)


def get_or_create_preferences(user):
    """Get or create user preferences."""
    preferences, _ = UserPreferences.objects.get_or_create(user=user)
    return preferences


def parse_json_body(request):
    """Decode a JSON object request body. Returns None if it is not one."""
    try:
        data = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def error_response(message, status=400, **extra):
    logger.warning("Rejected request (%d): %s", status, message, extra={'details': extra})
    return JsonResponse({'error': message, **extra}, status=status)


def api_login_required(view):
    """Like login_required, but answers anonymous requests with a JSON 401."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return error_response('Authentication required', status=401)
        return view(request, *args, **kwargs)
    return wrapper


def require_methods(*methods):
    """Like require_http_methods, but answers other methods with a JSON 405."""
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                response = error_response(f'Method {request.method} not allowed', status=405)
                response['Allow'] = ', '.join(methods)
                return response
            return view(request, *args, **kwargs)
        return wrapper
    return decorator


def form_error_response(form):
    return error_response('Invalid request', errors=form.errors.get_json_data())


def card_payload(card, record=None):
    """Serialize a card, optionally with its performance record in the active mode."""
    data = {
        'id': card.pk,
        'card_key': card.card_key,
        'front': card.front,
        'back': card.back,
        'pinyin': card.pinyin,
        'notes': card.notes,
        'tags': card.tags,
        'hsk': card.hsk,
        'starred': card.starred,
        'ignored': card.ignored,
    }
    if record is not None:
        data['stats'] = record.as_dict()
    return data


def build_scheduler_context(request, deck):
    """
    Build a SchedulerContext from the request's filter parameters.

    The mode falls back to the user's saved mode, then the configured
    default. Tag and HSK selections fall back to the filters saved for this
    deck when the request gives none.

    Returns (context, None) on success or (None, error response).
    """
    form = ReviewFilterForm(request.GET)
    if not form.is_valid():
        return None, form_error_response(form)

    preferences = get_or_create_preferences(request.user)
    mode = conf.resolve_mode(form.cleaned_data['mode'], preferences.learning_mode)

    tags = form.cleaned_data['tags']
    hsk = form.cleaned_data['hsk']
    if not tags and not hsk:
        saved = preferences.filters_for(deck)
        tags, hsk = saved['tags'], saved['hsk']

    items = filter_items(deck.cards.all(), tags=tags, hsk_levels=hsk)
    context = srs.SchedulerContext(
        items=tuple(items),
        history_lookup=deck.history_lookup(),
        mode=mode,
        clock=srs.system_clock,
        include=flag_predicate(
            starred_only=form.cleaned_data['starred'],
            show_ignored=form.cleaned_data['ignored'],
        ),
    )
    return context, None
