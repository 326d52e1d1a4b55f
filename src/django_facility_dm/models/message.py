"""Message model for direct messages inside a conversation."""

from django.conf import settings
from django.db import models

from .base import TimeStampedModel


class Message(TimeStampedModel):
    """One message in a conversation.

    Messages are immutable after creation except for the read flag, which
    only moves from unread to read and only for the recipient. Order within
    a conversation is (created_at, id); both are assigned on insert.
    """

    conversation = models.ForeignKey(
        "django_facility_dm.Conversation",
        on_delete=models.CASCADE,
        related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_facility_messages",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="received_facility_messages",
        help_text="The other party of the conversation at send time",
    )
    content = models.TextField()

    # === Read Tracking ===
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the recipient first displayed the message",
    )

    class Meta:
        verbose_name = "Message"
        verbose_name_plural = "Messages"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["conversation", "created_at"], name="fdm_msg_conv_created_idx"),
            models.Index(fields=["conversation", "is_read"], name="fdm_msg_conv_read_idx"),
            models.Index(fields=["recipient", "is_read"], name="fdm_msg_recipient_read_idx"),
        ]

    def __str__(self):
        return f"Message {self.pk} in {self.conversation_id} ({'read' if self.is_read else 'unread'})"
