"""Conversation state module.

Holds the ordered message list the user is looking at.
"""

from .models import ConversationSession, Message, PendingAttachment, Role, new_id
from .store import ConversationStore, StoreEvent, StoreEventKind

__all__ = [
    "ConversationSession",
    "ConversationStore",
    "Message",
    "PendingAttachment",
    "Role",
    "StoreEvent",
    "StoreEventKind",
    "new_id",
]
