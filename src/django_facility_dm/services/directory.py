"""Conversation directory services.

This module provides the inbox side of direct messaging:
- Resolving (or creating) the conversation between a consumer and a facility
- Listing the conversations visible to an identity, with counterpart name,
  last message preview and unread count
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction

from .. import selectors
from ..conf import get_setting
from ..exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
    translates_store_errors,
)
from ..identity import Identity, normalize_user_id
from ..models import Conversation, MessagingProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LastMessagePreview:
    """Most recent message of a conversation, as shown in the inbox."""

    content: str
    sender_id: int
    is_read: bool
    created_at: datetime


@dataclass(frozen=True)
class ConversationSummary:
    """One inbox row, seen from a specific identity."""

    id: uuid.UUID
    consumer_id: int
    facility_id: int
    counterpart_name: str
    consumer_name: str
    facility_name: str
    last_message: Optional[LastMessagePreview]
    unread_count: int
    last_message_at: datetime
    created_at: datetime


def _consumer_name(conversation: Conversation) -> str:
    try:
        full_name = conversation.consumer.messaging_profile.full_name
    except MessagingProfile.DoesNotExist:
        full_name = ""
    return full_name or get_setting("CONSUMER_FALLBACK_NAME")


def _to_summary(conversation: Conversation, identity: Identity) -> ConversationSummary:
    facility_name = conversation.facility.name or get_setting("FACILITY_FALLBACK_NAME")
    consumer_name = _consumer_name(conversation)

    # The consumer sees the facility; the operator sees the consumer.
    if conversation.consumer_id == identity.user_id:
        counterpart_name = facility_name
    else:
        counterpart_name = consumer_name

    last_message = None
    if conversation.last_created_at is not None:
        last_message = LastMessagePreview(
            content=conversation.last_content,
            sender_id=conversation.last_sender_id,
            is_read=bool(conversation.last_is_read),
            created_at=conversation.last_created_at,
        )

    return ConversationSummary(
        id=conversation.pk,
        consumer_id=conversation.consumer_id,
        facility_id=conversation.facility_id,
        counterpart_name=counterpart_name,
        consumer_name=consumer_name,
        facility_name=facility_name,
        last_message=last_message,
        unread_count=conversation.unread_count,
        last_message_at=conversation.last_message_at,
        created_at=conversation.created_at,
    )


@translates_store_errors
def list_conversations(identity: Identity) -> list[ConversationSummary]:
    """List every conversation the identity is a party to.

    Most recently active first. Runs as a single query regardless of the
    number of conversations.

    Args:
        identity: Consumer or facility operator viewing their inbox

    Returns:
        List of ConversationSummary, ordered by last_message_at descending

    Raises:
        TransientStoreError: Database unreachable; keep showing the old list
    """
    return [
        _to_summary(conversation, identity)
        for conversation in selectors.conversation_summaries(identity.user_id)
    ]


@translates_store_errors
def get_conversation_summary(identity: Identity, conversation_id) -> ConversationSummary:
    """Get a single inbox row, e.g. for a thread header.

    Raises:
        NotFoundError: Conversation does not exist
        AuthorizationError: Identity is not a party to the conversation
    """
    conversation = selectors.get_conversation_by_id(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation", conversation_id)
    if not conversation.is_party(identity.user_id):
        raise AuthorizationError(identity.user_id, conversation_id)

    summary = (
        selectors.conversation_summaries(identity.user_id)
        .filter(pk=conversation.pk)
        .first()
    )
    return _to_summary(summary, identity)


@translates_store_errors
def get_or_create_conversation(consumer_id, facility_id) -> uuid.UUID:
    """Return the conversation id for a consumer/facility pair, creating it once.

    Idempotent: repeated calls for the same pair return the same id. The
    unique constraint on (consumer, facility) makes this hold under
    concurrent first contact too; get_or_create re-reads the winner's row
    when its own insert loses the race.

    Args:
        consumer_id: User id of the consumer making contact
        facility_id: Facility being contacted

    Returns:
        The Conversation's id

    Raises:
        ValidationError: Missing or malformed identifier, operator contacting
            own facility, or consumer_id belongs to a facility account
        NotFoundError: Consumer or facility does not exist
    """
    if consumer_id in (None, ""):
        raise ValidationError("consumer_id", "is required")
    if facility_id in (None, ""):
        raise ValidationError("facility_id", "is required")

    facility = selectors.get_facility_by_id(facility_id)
    if facility is None:
        raise NotFoundError("Facility", facility_id)

    consumer_id = normalize_user_id(consumer_id, field="consumer_id")
    consumer = (
        get_user_model()
        .objects.select_related("messaging_profile")
        .filter(pk=consumer_id)
        .first()
    )
    if consumer is None:
        raise NotFoundError("User", consumer_id)

    if facility.operator_id == consumer_id:
        raise ValidationError("consumer_id", "operator cannot message their own facility")
    if Identity.for_user(consumer).is_facility_operator:
        raise ValidationError("consumer_id", "must be a consumer account")

    with transaction.atomic():
        conversation, created = Conversation.objects.get_or_create(
            consumer_id=consumer_id,
            facility=facility,
        )

    if created:
        logger.info(
            "Conversation %s created for consumer %s and facility %s",
            conversation.pk,
            consumer_id,
            facility.pk,
        )
    return conversation.pk
