"""Exceptions for django-facility-dm."""

import functools
from contextlib import contextmanager

from django.db import InterfaceError, OperationalError


class MessagingError(Exception):
    """Base exception for messaging errors."""

    pass


class NotFoundError(MessagingError):
    """Referenced conversation, facility or user does not exist."""

    def __init__(self, entity: str, identifier=None):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} '{identifier}' not found")


class ValidationError(MessagingError):
    """Message content or a required identifier is missing or invalid."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class AuthorizationError(MessagingError):
    """User is not a party to the referenced conversation."""

    def __init__(self, user_id, conversation_id):
        self.user_id = user_id
        self.conversation_id = conversation_id
        super().__init__(
            f"User {user_id} is not a party to conversation {conversation_id}"
        )


class TransientStoreError(MessagingError):
    """The database is temporarily unreachable. Safe to retry."""

    def __init__(self, operation: str, original_error: Exception = None):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Store unavailable during {operation}: {original_error}")


@contextmanager
def store_errors(operation: str):
    """Translate connection-level database errors into TransientStoreError."""
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        raise TransientStoreError(operation, original_error=e) from e


def translates_store_errors(func):
    """Decorator form of store_errors(), named after the wrapped function."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with store_errors(func.__name__):
            return func(*args, **kwargs)

    return wrapper
