"""Explicit caller identity for messaging calls.

Every directory and channel operation takes an Identity instead of reading
a "current user" from request or thread state.
"""

from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError

from .exceptions import ValidationError
from .models.profile import MessagingProfile, UserType


def normalize_user_id(user_id, field: str = "user_id"):
    """Coerce a user id to the user model's primary key type.

    Ids taken from request data arrive as strings, while party checks
    compare against the foreign key values stored on the models.

    Raises:
        ValidationError: The value cannot be a user primary key
    """
    try:
        return get_user_model()._meta.pk.to_python(user_id)
    except DjangoValidationError:
        raise ValidationError(field, "is not a valid user id")


@dataclass(frozen=True)
class Identity:
    """An authenticated account as seen by the messaging services."""

    user_id: int
    role: str = UserType.CONSUMER

    def __post_init__(self):
        object.__setattr__(self, "user_id", normalize_user_id(self.user_id))

    @property
    def is_consumer(self) -> bool:
        return self.role == UserType.CONSUMER

    @property
    def is_facility_operator(self) -> bool:
        return self.role == UserType.FACILITY

    @classmethod
    def for_user(cls, user) -> "Identity":
        """Resolve the identity of a Django user.

        The role comes from the user's MessagingProfile. Accounts without a
        profile are treated as consumers.
        """
        try:
            role = user.messaging_profile.user_type
        except MessagingProfile.DoesNotExist:
            role = UserType.CONSUMER
        return cls(user_id=user.pk, role=role)
