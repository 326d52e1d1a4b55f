"""Conversation model: the thread between one consumer and one facility."""

from django.conf import settings
from django.db import models
from django.db.models.functions import Greatest
from django.utils import timezone

from .base import UUIDModel


class Conversation(UUIDModel):
    """The single message thread between a consumer and a facility.

    Exactly one row exists per (consumer, facility) pair; the database
    enforces it, so concurrent first contacts cannot create duplicates.
    The two parties are the consumer and the facility's operator.

    Usage:
        from django_facility_dm.services.directory import get_or_create_conversation

        conversation_id = get_or_create_conversation(consumer.pk, facility.pk)
    """

    consumer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="facility_conversations",
        help_text="Consumer who started the conversation",
    )
    facility = models.ForeignKey(
        "django_facility_dm.Facility",
        on_delete=models.CASCADE,
        related_name="conversations",
    )
    last_message_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Timestamp of most recent activity (denormalized for sorting)",
    )

    class Meta:
        verbose_name = "Conversation"
        verbose_name_plural = "Conversations"
        ordering = ["-last_message_at", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["consumer", "facility"],
                name="unique_consumer_facility_conversation",
            ),
        ]
        indexes = [
            models.Index(fields=["consumer", "-last_message_at"], name="fdm_conv_consumer_recent_idx"),
            models.Index(fields=["facility", "-last_message_at"], name="fdm_conv_facility_recent_idx"),
        ]

    def __str__(self):
        return f"Conversation: {str(self.pk)[:8]}"

    @property
    def operator_id(self):
        return self.facility.operator_id

    @property
    def party_ids(self) -> frozenset:
        """User ids of the consumer and the facility operator."""
        return frozenset((self.consumer_id, self.operator_id))

    def is_party(self, user_id) -> bool:
        return user_id in self.party_ids

    def counterpart_id(self, user_id):
        """Return the other party's user id, or None if user_id is not a party."""
        if user_id == self.consumer_id:
            return self.operator_id
        if user_id == self.operator_id:
            return self.consumer_id
        return None

    def touch_last_message(self, at) -> None:
        """Move last_message_at forward to `at` in one atomic UPDATE.

        Never moves it backwards, even if a concurrent send with a later
        timestamp committed first.
        """
        now = timezone.now()
        Conversation.objects.filter(pk=self.pk).update(
            last_message_at=Greatest(models.F("last_message_at"), models.Value(at)),
            updated_at=now,
        )
        self.refresh_from_db(fields=["last_message_at", "updated_at"])
