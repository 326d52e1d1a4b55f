"""Django Facility DM - direct messages between consumers and care facilities."""

__version__ = "0.1.0"

__all__ = [
    # Models
    "Conversation",
    "Facility",
    "Message",
    "MessagingProfile",
    "UserType",
    # Identity
    "Identity",
    # Services
    "fetch_messages",
    "get_or_create_conversation",
    "get_unread_count",
    "list_conversations",
    "send_message",
    # Realtime
    "notifier",
    # Exceptions
    "MessagingError",
    "NotFoundError",
    "ValidationError",
    "AuthorizationError",
    "TransientStoreError",
]

_MODELS = ("Conversation", "Facility", "Message", "MessagingProfile", "UserType")
_SERVICES = (
    "fetch_messages",
    "get_or_create_conversation",
    "get_unread_count",
    "list_conversations",
    "send_message",
)
_EXCEPTIONS = (
    "MessagingError",
    "NotFoundError",
    "ValidationError",
    "AuthorizationError",
    "TransientStoreError",
)


def __getattr__(name: str):
    """Lazy import to avoid AppRegistryNotReady errors."""
    if name in _MODELS:
        from . import models

        return getattr(models, name)
    if name == "Identity":
        from .identity import Identity

        return Identity
    if name in _SERVICES:
        from . import services

        return getattr(services, name)
    if name == "notifier":
        from .realtime import notifier

        return notifier
    if name in _EXCEPTIONS:
        from . import exceptions

        return getattr(exceptions, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
