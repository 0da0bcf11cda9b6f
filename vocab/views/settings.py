"""Settings API views."""

from django.http import JsonResponse

from .. import conf
from ..forms import UserPreferencesForm
from .helpers import (
    api_login_required,
    form_error_response,
    get_or_create_preferences,
    parse_json_body,
    require_methods,
)


def _settings_payload(preferences):
    return {
        'learning_mode': conf.resolve_mode(preferences.learning_mode),
        'modes': conf.learning_modes(),
        'selected_deck': preferences.selected_deck_id,
        'theme': preferences.theme,
        'saved_filters': preferences.saved_filters,
    }


@api_login_required
@require_methods('GET', 'POST')
def api_settings(request):
    """
    Read or update the user's settings.

    POST takes a JSON object with any of ``learning_mode``,
    ``selected_deck``, ``theme``, and ``tags``/``hsk`` to save the filter
    selection of the selected deck. Omitted keys keep their current value.
    """
    preferences = get_or_create_preferences(request.user)

    if request.method == 'GET':
        return JsonResponse(_settings_payload(preferences))

    data = parse_json_body(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    merged = {
        'learning_mode': preferences.learning_mode,
        'selected_deck': preferences.selected_deck_id,
        'theme': preferences.theme,
        **data,
    }
    form = UserPreferencesForm(merged, instance=preferences, user=request.user)
    if not form.is_valid():
        return form_error_response(form)

    preferences = form.save()
    if ('tags' in data or 'hsk' in data) and preferences.selected_deck is not None:
        preferences.save_filters(
            preferences.selected_deck,
            form.cleaned_data['tags'],
            form.cleaned_data['hsk'],
        )

    return JsonResponse({'success': True, **_settings_payload(preferences)})
