"""Ordered, id-keyed conversation state.

Hidden design decisions:
- Messages live in an insertion-ordered dict keyed by message id
- Updates replace exactly one entry; every other message object is untouched
- Updates for ids outside the current session are dropped silently
- Observers are notified synchronously after every mutation
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .models import MUTABLE_MESSAGE_FIELDS, ConversationSession, Message, new_id, utc_now

logger = logging.getLogger(__name__)


class StoreEventKind(str, Enum):
    APPEND = "append"
    UPDATE = "update"
    RESET = "reset"
    LOAD = "load"


@dataclass(frozen=True)
class StoreEvent:
    """Change notification delivered to store listeners."""

    kind: StoreEventKind
    session_id: str
    message_id: str | None = None


StoreListener = Callable[["ConversationStore", StoreEvent], None]


class ConversationStore:
    """The conversation currently shown to the user.

    Mutated only by the stream consumer, the follow-up orchestrator and
    explicit user actions (send, new session).
    """

    def __init__(self, session_id: str | None = None):
        self._session_id = session_id or new_id()
        self._title: str | None = None
        self._messages: dict[str, Message] = {}
        self._last_modified = utc_now()
        self._listeners: list[StoreListener] = []

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def title(self) -> str | None:
        """Session title, or None until one has been derived."""
        return self._title

    @title.setter
    def title(self, value: str | None) -> None:
        self._title = value

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def get(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def append(self, message: Message) -> Message:
        """Add a message at the end of the conversation.

        Raises:
            ValueError: If a message with the same id is already present
        """
        if message.id in self._messages:
            raise ValueError(f"Message {message.id} already in session {self._session_id}")
        self._messages[message.id] = message
        self._touch(StoreEvent(StoreEventKind.APPEND, self._session_id, message.id))
        return message

    def update_by_id(self, message_id: str, **fields: Any) -> bool:
        """Replace one message with a copy carrying the given fields.

        Args:
            message_id: Target message
            **fields: New values for content, artifact, grounding_metadata, is_error

        Returns:
            True if the message was updated, False if the id is unknown
            (for example a stream still writing into a superseded session)

        Raises:
            ValueError: If a field other than the mutable ones is given
        """
        unknown = set(fields) - MUTABLE_MESSAGE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update message fields: {', '.join(sorted(unknown))}")

        current = self._messages.get(message_id)
        if current is None:
            logger.debug("Dropping stale update for message %s", message_id)
            return False

        self._messages[message_id] = current.model_copy(update=fields)
        self._touch(StoreEvent(StoreEventKind.UPDATE, self._session_id, message_id))
        return True

    def reset(self) -> str:
        """Start a new session: clear messages and issue a new session id.

        Persisted snapshots are not touched.

        Returns:
            The new session id
        """
        self._session_id = new_id()
        self._title = None
        self._messages = {}
        self._touch(StoreEvent(StoreEventKind.RESET, self._session_id))
        return self._session_id

    def load(self, session: ConversationSession) -> None:
        """Replace the current state with a persisted session."""
        self._session_id = session.id
        self._title = session.title
        self._messages = {message.id: message for message in session.messages}
        self._last_modified = session.last_modified
        self._notify(StoreEvent(StoreEventKind.LOAD, self._session_id))

    def snapshot(self) -> list[Message]:
        """Messages in conversation order."""
        return list(self._messages.values())

    def to_session(self) -> ConversationSession:
        """Immutable copy of the current state for persistence."""
        return ConversationSession(
            id=self._session_id,
            title=self._title or "",
            messages=self.snapshot(),
            last_modified=self._last_modified,
        )

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change observer.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _touch(self, event: StoreEvent) -> None:
        self._last_modified = utc_now()
        self._notify(event)

    def _notify(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(self, event)
            except Exception:
                # An observer failing must not break the stream writing into the store
                logger.exception("Store listener failed on %s", event.kind.value)
