"""
Django Facility DM Selectors - read-only queries shared by the services.

Usage:
    from django_facility_dm.selectors import get_conversation_by_id, visible_conversations
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count, IntegerField, OuterRef, Q, QuerySet, Subquery
from django.db.models.functions import Coalesce

from django_facility_dm.models import Conversation, Facility, Message


def get_conversation_by_id(conversation_id) -> Conversation | None:
    """Get a conversation with its facility, or None if not found.

    Malformed ids are treated as not found.
    """
    try:
        return (
            Conversation.objects.select_related("facility")
            .filter(pk=conversation_id)
            .first()
        )
    except (DjangoValidationError, ValueError, TypeError):
        return None


def get_facility_by_id(facility_id) -> Facility | None:
    """Get a facility by ID, or None if not found."""
    try:
        return Facility.objects.filter(pk=facility_id).first()
    except (ValueError, TypeError):
        return None


def party_filter(user_id) -> Q:
    """Conversations where user_id is the consumer or operates the facility."""
    return Q(consumer_id=user_id) | Q(facility__operator_id=user_id)


def visible_conversations(user_id) -> QuerySet[Conversation]:
    """Get all conversations the user is a party to."""
    return Conversation.objects.filter(party_filter(user_id))


def conversation_summaries(user_id) -> QuerySet[Conversation]:
    """Visible conversations annotated for the inbox, in one query.

    Annotations:
    - last_content, last_sender_id, last_is_read, last_created_at
    - unread_count: messages from the other party not yet read

    Names come through select_related on the facility and the consumer's
    messaging profile.
    """
    latest_message = Message.objects.filter(
        conversation=OuterRef("pk")
    ).order_by("-created_at", "-id")

    unread = (
        Message.objects.filter(conversation=OuterRef("pk"), is_read=False)
        .exclude(sender_id=user_id)
        .order_by()
        .values("conversation")
        .annotate(n=Count("pk"))
        .values("n")
    )

    return (
        visible_conversations(user_id)
        .select_related("facility", "consumer__messaging_profile")
        .annotate(
            last_content=Subquery(latest_message.values("content")[:1]),
            last_sender_id=Subquery(latest_message.values("sender_id")[:1]),
            last_is_read=Subquery(latest_message.values("is_read")[:1]),
            last_created_at=Subquery(latest_message.values("created_at")[:1]),
            unread_count=Coalesce(
                Subquery(unread, output_field=IntegerField()), 0
            ),
        )
        .order_by("-last_message_at", "-created_at")
    )


def unread_messages_for(user_id) -> QuerySet[Message]:
    """Unread messages from the other party across the user's conversations."""
    return Message.objects.filter(
        Q(conversation__consumer_id=user_id)
        | Q(conversation__facility__operator_id=user_id),
        is_read=False,
    ).exclude(sender_id=user_id)
