"""Configuration for django-facility-dm.

All options live in a single FACILITY_DM dict in Django settings:

    FACILITY_DM = {
        "MAX_MESSAGE_LENGTH": 5000,
        "STRICT_CONVERSATION_LOOKUP": False,
        "SUBSCRIPTION_QUEUE_SIZE": 100,
        "FACILITY_FALLBACK_NAME": "Facility",
        "CONSUMER_FALLBACK_NAME": "User",
    }

Missing keys fall back to DEFAULTS.
"""

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

DEFAULTS = {
    "MAX_MESSAGE_LENGTH": 5000,
    "STRICT_CONVERSATION_LOOKUP": False,
    "SUBSCRIPTION_QUEUE_SIZE": 100,
    "FACILITY_FALLBACK_NAME": "Facility",
    "CONSUMER_FALLBACK_NAME": "User",
}

_POSITIVE_INTS = ("MAX_MESSAGE_LENGTH", "SUBSCRIPTION_QUEUE_SIZE")


def get_setting(name: str):
    """Read a FACILITY_DM option, falling back to its default.

    Raises:
        ImproperlyConfigured: If the name is unknown or the value is invalid
    """
    if name not in DEFAULTS:
        raise ImproperlyConfigured(f"Unknown FACILITY_DM option: {name}")

    user_settings = getattr(settings, "FACILITY_DM", None) or {}
    value = user_settings.get(name, DEFAULTS[name])

    if name in _POSITIVE_INTS and (not isinstance(value, int) or value < 1):
        raise ImproperlyConfigured(
            f"FACILITY_DM['{name}'] must be a positive integer, got {value!r}"
        )
    return value
