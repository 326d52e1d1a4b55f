"""MessagingProfile model: display name and role for an account."""

from django.conf import settings
from django.db import models

from .base import TimeStampedModel


class UserType(models.TextChoices):
    """Role of an account in direct messaging."""

    CONSUMER = "consumer", "Consumer"
    FACILITY = "facility", "Facility Operator"


class MessagingProfile(TimeStampedModel):
    """Display attributes for a user taking part in direct messages.

    The account itself (login, session, password) belongs to the identity
    provider behind AUTH_USER_MODEL. This row only carries what the
    conversation list and message thread need to render a party.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="messaging_profile",
    )
    full_name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Name shown to the other party",
    )
    user_type = models.CharField(
        max_length=20,
        choices=UserType.choices,
        default=UserType.CONSUMER,
    )

    class Meta:
        verbose_name = "Messaging Profile"
        verbose_name_plural = "Messaging Profiles"

    def __str__(self):
        return f"{self.full_name or self.user_id} ({self.user_type})"
