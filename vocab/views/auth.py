"""Session authentication for API clients."""

import logging

from django.contrib.auth import login, logout
from django.contrib.auth.forms import AuthenticationForm
from django.http import JsonResponse
from django.views.decorators.csrf import ensure_csrf_cookie

from .helpers import (
    error_response,
    form_error_response,
    get_or_create_preferences,
    parse_json_body,
    require_methods,
)

logger = logging.getLogger(__name__)


def _user_payload(user):
    if not user.is_authenticated:
        return {'authenticated': False, 'username': None}
    return {'authenticated': True, 'username': user.get_username()}


@ensure_csrf_cookie
@require_methods('GET', 'POST')
def api_login(request):
    """
    GET reports whether the session is logged in and sets the CSRF cookie.
    POST takes ``{"username": ..., "password": ...}`` and starts a session.
    """
    if request.method == 'GET':
        return JsonResponse(_user_payload(request.user))

    data = parse_json_body(request)
    if data is None:
        return error_response('Invalid JSON')

    form = AuthenticationForm(request, data=data)
    if not form.is_valid():
        return form_error_response(form)

    user = form.get_user()
    login(request, user)
    get_or_create_preferences(user)
    logger.info("User %s logged in", user.get_username())

    return JsonResponse({'success': True, **_user_payload(user)})


@require_methods('POST')
def api_logout(request):
    """End the session."""
    logout(request)
    return JsonResponse({'success': True, **_user_payload(request.user)})
