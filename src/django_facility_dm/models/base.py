"""Abstract base models shared by the messaging tables.

Conversations and messages are never deleted by this app, so there is no
soft-delete layer here; only timestamps and an opaque primary key.
"""
import uuid

from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model with created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class UUIDModel(TimeStampedModel):
    """Timestamped model with a UUID4 primary key.

    Used where identifiers are handed to clients and shouldn't be guessable.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True
