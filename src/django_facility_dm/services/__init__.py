"""django-facility-dm services.

Re-exports all services for convenient importing.
"""

from .channel import (
    MessageComposer,
    ThreadMessage,
    fetch_messages,
    get_unread_count,
    mark_conversation_read,
    send_message,
)
from .directory import (
    ConversationSummary,
    LastMessagePreview,
    get_conversation_summary,
    get_or_create_conversation,
    list_conversations,
)

__all__ = [
    # Conversation directory
    "ConversationSummary",
    "LastMessagePreview",
    "get_conversation_summary",
    "get_or_create_conversation",
    "list_conversations",
    # Message channel
    "MessageComposer",
    "ThreadMessage",
    "fetch_messages",
    "get_unread_count",
    "mark_conversation_read",
    "send_message",
]
