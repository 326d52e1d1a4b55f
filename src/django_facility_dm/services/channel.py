"""Message channel services for a single conversation.

This module provides the thread side of direct messaging:
- Fetching a conversation's history (which marks it read for the viewer)
- Sending messages
- Counting unread messages across an identity's conversations
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from .. import selectors
from ..conf import get_setting
from ..exceptions import (
    AuthorizationError,
    MessagingError,
    NotFoundError,
    ValidationError,
    store_errors,
    translates_store_errors,
)
from ..identity import Identity, normalize_user_id
from ..models import Conversation, Message, MessagingProfile, UserType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThreadMessage:
    """A message as displayed in a thread, with sender details."""

    id: int
    conversation_id: uuid.UUID
    sender_id: int
    recipient_id: int
    sender_name: str
    sender_role: str
    content: str
    is_read: bool
    created_at: datetime


def _sender_details(message: Message, conversation: Conversation) -> tuple[str, str]:
    if message.sender_id == conversation.consumer_id:
        role = UserType.CONSUMER
        fallback = get_setting("CONSUMER_FALLBACK_NAME")
    else:
        role = UserType.FACILITY
        fallback = conversation.facility.name or get_setting("FACILITY_FALLBACK_NAME")

    try:
        name = message.sender.messaging_profile.full_name
    except MessagingProfile.DoesNotExist:
        name = ""
    return name or fallback, role


def _flip_read(conversation: Conversation, viewer_id, message_ids=None) -> int:
    """Mark the other party's unread messages as read in one UPDATE.

    If message_ids is given, only those messages are flipped, so nothing
    inserted after the viewer's fetch is marked read unseen.
    """
    qs = Message.objects.filter(conversation=conversation, is_read=False).exclude(
        sender_id=viewer_id
    )
    if message_ids is not None:
        qs = qs.filter(pk__in=message_ids)

    now = timezone.now()
    flipped = qs.update(is_read=True, read_at=now, updated_at=now)
    if flipped:
        logger.debug(
            "Marked %d message(s) read in conversation %s for user %s",
            flipped,
            conversation.pk,
            viewer_id,
        )
    return flipped


def _get_party_conversation(identity: Identity, conversation_id) -> Conversation:
    conversation = selectors.get_conversation_by_id(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation", conversation_id)
    if not conversation.is_party(identity.user_id):
        raise AuthorizationError(identity.user_id, conversation_id)
    return conversation


@translates_store_errors
def fetch_messages(identity: Identity, conversation_id) -> list[ThreadMessage]:
    """Get a conversation's messages in order and mark them read for the viewer.

    Viewing a thread consumes its unread state: every message from the
    other party that this call returns is flipped to read. The returned
    items already reflect that.

    A conversation id that does not exist returns an empty list, unless
    FACILITY_DM["STRICT_CONVERSATION_LOOKUP"] is set.

    Args:
        identity: Party viewing the thread
        conversation_id: Conversation to read

    Returns:
        List of ThreadMessage ordered by (created_at, id)

    Raises:
        NotFoundError: Conversation missing and strict lookup enabled
        AuthorizationError: Identity is not a party to the conversation
    """
    conversation = selectors.get_conversation_by_id(conversation_id)
    if conversation is None:
        if get_setting("STRICT_CONVERSATION_LOOKUP"):
            raise NotFoundError("Conversation", conversation_id)
        logger.debug("fetch_messages: conversation %s not found", conversation_id)
        return []
    if not conversation.is_party(identity.user_id):
        raise AuthorizationError(identity.user_id, conversation_id)

    messages = list(
        conversation.messages.select_related("sender__messaging_profile").order_by(
            "created_at", "id"
        )
    )

    to_flip = [
        m.pk for m in messages if not m.is_read and m.sender_id != identity.user_id
    ]
    if to_flip:
        _flip_read(conversation, identity.user_id, message_ids=to_flip)
    flipped = set(to_flip)

    result = []
    for message in messages:
        sender_name, sender_role = _sender_details(message, conversation)
        result.append(
            ThreadMessage(
                id=message.pk,
                conversation_id=message.conversation_id,
                sender_id=message.sender_id,
                recipient_id=message.recipient_id,
                sender_name=sender_name,
                sender_role=sender_role,
                content=message.content,
                is_read=message.is_read or message.pk in flipped,
                created_at=message.created_at,
            )
        )
    return result


def send_message(conversation_id, sender_id, content: str) -> Message:
    """Send a message within an existing conversation.

    - Trims content and rejects empty or oversized messages
    - Checks the sender is a party before writing anything
    - Sets the recipient to the other party
    - Moves conversation.last_message_at forward

    Args:
        conversation_id: Conversation to post to
        sender_id: User id of the sender
        content: Message text

    Returns:
        The new Message, with database-assigned id and created_at

    Raises:
        ValidationError: Empty/oversized content or missing identifiers
        NotFoundError: Conversation does not exist
        AuthorizationError: Sender is not a party to the conversation
        TransientStoreError: Database unreachable; nothing was written
    """
    if conversation_id in (None, ""):
        raise ValidationError("conversation_id", "is required")
    if sender_id in (None, ""):
        raise ValidationError("sender_id", "is required")
    sender_id = normalize_user_id(sender_id, field="sender_id")
    if not isinstance(content, str):
        raise ValidationError("content", "must be text")

    content = content.strip()
    if not content:
        raise ValidationError("content", "must not be empty")
    max_length = get_setting("MAX_MESSAGE_LENGTH")
    if len(content) > max_length:
        raise ValidationError("content", f"must be at most {max_length} characters")

    with store_errors("send_message"):
        conversation = _get_party_conversation(
            Identity(user_id=sender_id), conversation_id
        )
        recipient_id = conversation.counterpart_id(sender_id)

        with transaction.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender_id=sender_id,
                recipient_id=recipient_id,
                content=content,
            )
            conversation.touch_last_message(message.created_at)

    logger.info(
        "Message %s sent in conversation %s by user %s",
        message.pk,
        conversation.pk,
        sender_id,
    )
    return message


@translates_store_errors
def mark_conversation_read(identity: Identity, conversation_id) -> int:
    """Mark every message from the other party as read.

    Returns:
        Number of messages flipped from unread to read

    Raises:
        NotFoundError: Conversation does not exist
        AuthorizationError: Identity is not a party to the conversation
    """
    conversation = _get_party_conversation(identity, conversation_id)
    return _flip_read(conversation, identity.user_id)


@translates_store_errors
def get_unread_count(identity: Identity) -> int:
    """Count unread messages from other parties across all conversations."""
    return selectors.unread_messages_for(identity.user_id).count()


class MessageComposer:
    """Draft state for the compose box of one thread.

    The draft is cleared only after a successful send. A failed send keeps
    the text so it can be retried without retyping, and records the error.

    Usage:
        composer = MessageComposer(identity, conversation_id)
        composer.draft = "Is there a vacancy in April?"
        try:
            composer.submit()
        except MessagingError:
            show(composer.error)  # composer.draft is unchanged
    """

    def __init__(self, identity: Identity, conversation_id, draft: str = ""):
        self.identity = identity
        self.conversation_id = conversation_id
        self.draft = draft
        self.error = None

    @property
    def can_submit(self) -> bool:
        return bool(self.draft.strip())

    def submit(self) -> Message:
        try:
            message = send_message(
                self.conversation_id, self.identity.user_id, self.draft
            )
        except MessagingError as e:
            self.error = e
            logger.warning(
                "Send failed in conversation %s: %s", self.conversation_id, e
            )
            raise
        self.draft = ""
        self.error = None
        return message
