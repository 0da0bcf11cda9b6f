"""Learning mode configuration read from Django settings."""

from django.conf import settings


DEFAULT_LEARNING_MODES = {
    'LM-hanzi-first': 'Hanzi -> English',
    'LM-english-first': 'English -> Hanzi',
    'LM-listening': 'Listening',
}
DEFAULT_MODE = 'LM-hanzi-first'


def learning_modes() -> dict:
    """Configured learning modes, mode id -> label, in display order."""
    return dict(getattr(settings, 'VOCAB_LEARNING_MODES', DEFAULT_LEARNING_MODES))


def default_mode() -> str:
    mode = getattr(settings, 'VOCAB_DEFAULT_MODE', DEFAULT_MODE)
    modes = learning_modes()
    return mode if mode in modes else next(iter(modes))


def is_valid_mode(mode) -> bool:
    return mode in learning_modes()


def resolve_mode(mode, fallback=None) -> str:
    """
    Return ``mode`` if it is configured, else ``fallback`` if that is
    configured, else the default mode.
    """
    if is_valid_mode(mode):
        return mode
    if is_valid_mode(fallback):
        return fallback
    return default_mode()
