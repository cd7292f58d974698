"""
ConsultStream: the streaming response pipeline of a business-intelligence assistant.

Model answers arrive as text fragments; widget blocks (charts, KPIs,
frameworks, image requests) embedded in them are separated from the prose,
the live conversation is updated fragment by fragment, and sessions are
persisted with a debounced writer.
"""

__version__ = "0.1.0"

from .artifacts import Artifact, ArtifactKind, ExtractionResult, FenceScanner, extract
from .chat import ChatController
from .conversation import ConversationSession, ConversationStore, Message, PendingAttachment, Role
from .errors import ArtifactParseError, ConsultStreamError, FollowUpError, PersistenceError, StreamError
from .followup import FollowUpOrchestrator
from .persistence import KeyValueStore, SessionPersistenceManager, create_key_value_store
from .streaming import MessageUpdate, StreamConsumer

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ArtifactParseError",
    "ChatController",
    "ConsultStreamError",
    "ConversationSession",
    "ConversationStore",
    "ExtractionResult",
    "FenceScanner",
    "FollowUpError",
    "FollowUpOrchestrator",
    "KeyValueStore",
    "Message",
    "MessageUpdate",
    "PendingAttachment",
    "PersistenceError",
    "Role",
    "SessionPersistenceManager",
    "StreamConsumer",
    "StreamError",
    "create_key_value_store",
    "extract",
]
