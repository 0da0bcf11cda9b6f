"""Views package for the vocab app."""

from .dashboard import deck_list, deck_progress, deck_stats
from .deck import deck_reset, card_flags
from .review import next_card, answer_card
from .settings import api_settings
from .health import health_check
from .auth import api_login, api_logout

__all__ = [
    # Dashboard
    'deck_list',
    'deck_progress',
    'deck_stats',
    # Deck
    'deck_reset',
    'card_flags',
    # Review
    'next_card',
    'answer_card',
    # Settings
    'api_settings',
    # Health
    'health_check',
    # Auth
    'api_login',
    'api_logout',
]
