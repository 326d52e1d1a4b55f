"""django-facility-dm models.

Re-exports all models for convenient importing:
    from django_facility_dm.models import Conversation, Facility, Message
"""

from .conversation import Conversation
from .facility import Facility
from .message import Message
from .profile import MessagingProfile, UserType

__all__ = [
    "Conversation",
    "Facility",
    "Message",
    "MessagingProfile",
    "UserType",
]
