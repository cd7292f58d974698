"""Chat controller: the send and new-session actions of the conversation view.

Wires the stream source, consumer, store and persistence manager together.
Nothing raised by the pipeline escapes past this class.
"""

import logging
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

from .conversation import ConversationSession, ConversationStore, Message, PendingAttachment, Role
from .conversation.store import StoreEvent, StoreEventKind
from .errors import StreamError
from .followup import FollowUpOrchestrator
from .llm.base import LLMProvider
from .llm.models import ChatMessage, InlineData, StreamChunk
from .persistence import SessionPersistenceManager, derive_title
from .streaming import MessageUpdate, StreamConsumer

logger = logging.getLogger(__name__)


class ChatController:
    """Owns the active conversation for its lifetime."""

    def __init__(
        self,
        provider: LLMProvider,
        persistence: SessionPersistenceManager,
        store: ConversationStore | None = None,
        language: str = "English",
    ):
        """Initialize the controller.

        Args:
            provider: Model stream source, also used for image follow-ups
            persistence: Manager writing sessions to the key/value backend
            store: Conversation state (a fresh one if omitted)
            language: Language answers are requested in
        """
        self.store = store or ConversationStore()
        self._provider = provider
        self._persistence = persistence
        self._language = language
        self._consumer = StreamConsumer(FollowUpOrchestrator(self.store, provider))
        self._pending_attachment: PendingAttachment | None = None
        self._in_flight: set[str] = set()
        self._last_usage: dict[str, Any] | None = None
        self._unsubscribe = self.store.subscribe(self._on_store_change)

    @property
    def persistence(self) -> SessionPersistenceManager:
        return self._persistence

    @property
    def pending_attachment(self) -> PendingAttachment | None:
        return self._pending_attachment

    @property
    def last_usage(self) -> dict[str, Any] | None:
        """Token usage reported by the most recently completed stream."""
        return self._last_usage

    @property
    def busy(self) -> bool:
        """Whether an assistant message is still streaming."""
        return bool(self._in_flight)

    async def start(self) -> ConversationSession | None:
        """Restore the most recently saved session, if there is one."""
        latest = await self._persistence.load_latest()
        if latest is not None:
            self.store.load(latest)
            logger.info("Restored session %s (%d messages)", latest.id, len(latest.messages))
        return latest

    def attach(self, attachment: PendingAttachment | str | Path) -> PendingAttachment:
        """Set the file sent with the next message, replacing any previous one."""
        if not isinstance(attachment, PendingAttachment):
            attachment = PendingAttachment.from_path(attachment)
        self._pending_attachment = attachment
        return attachment

    def clear_attachment(self) -> None:
        self._pending_attachment = None

    async def send(
        self,
        text: str,
        thinking: bool = False,
        context: str | None = None,
        on_update: Callable[[MessageUpdate], None] | None = None,
    ) -> str | None:
        """Send a user message and stream the answer into the conversation.

        Args:
            text: User message
            thinking: Request a reasoning budget from the model
            context: Optional dashboard snapshot for the model
            on_update: Extra observer for each MessageUpdate (e.g. a live renderer)

        Returns:
            Id of the assistant message, or None if there was nothing to send
        """
        text = text.strip()
        attachment = self._pending_attachment
        if not text and attachment is None:
            return None

        history = self._history()
        self.store.append(Message(role=Role.USER, content=text or f"[{attachment.name}]"))
        if not self.store.title:
            self.store.title = derive_title(self.store.to_session())
        assistant = self.store.append(Message(role=Role.ASSISTANT))
        session_id = self.store.session_id
        inline = attachment.to_inline() if attachment is not None else None

        def apply(update: MessageUpdate) -> None:
            self.store.update_by_id(update.message_id, **update.fields())
            if on_update is not None:
                on_update(update)

        self._in_flight.add(assistant.id)
        try:
            fragments = self._fragments(history, text, inline, thinking, context)
            await self._consumer.consume(assistant.id, fragments, apply)
        except StreamError as e:
            logger.warning("Answer %s in session %s ended with an error: %s", assistant.id, session_id, e)
        finally:
            self._in_flight.discard(assistant.id)
            # Discarded whether or not the send succeeded
            if self._pending_attachment is attachment:
                self._pending_attachment = None

        return assistant.id

    async def new_session(self) -> str:
        """Start a fresh conversation.

        The current session is written out first; its persisted snapshot is
        kept. Streams still writing into the old session become no-ops.

        Returns:
            The new session id
        """
        await self._persistence.flush()
        return self.store.reset()

    async def close(self) -> None:
        """Write any pending save, release the provider and stop observing the store."""
        await self._consumer.drain()
        await self._persistence.flush()
        self._unsubscribe()
        await self._provider.close()

    def _history(self) -> list[ChatMessage]:
        return [
            ChatMessage(role=message.role.value, content=message.content)
            for message in self.store.snapshot()
            if message.content and not message.is_error
        ]

    async def _fragments(
        self,
        history: list[ChatMessage],
        text: str,
        inline: InlineData | None,
        thinking: bool,
        context: str | None,
    ) -> AsyncIterator[StreamChunk]:
        # Opening the request happens inside the consumer so failures surface as stream errors
        stream = await self._provider.chat_stream(
            history,
            text,
            attachment=inline,
            thinking=thinking,
            language=self._language,
            context=context,
        )
        async for chunk in stream:
            yield chunk

        if stream.usage:
            self._last_usage = stream.usage
            logger.debug(
                "Token usage for session %s: %d prompt, %d completion, %d total",
                self.store.session_id,
                stream.usage.get("prompt_tokens", 0),
                stream.usage.get("completion_tokens", 0),
                stream.usage.get("total_tokens", 0),
            )

    def _on_store_change(self, store: ConversationStore, event: StoreEvent) -> None:
        if event.kind == StoreEventKind.RESET:
            self._persistence.cancel()
        elif event.kind in (StoreEventKind.APPEND, StoreEventKind.UPDATE):
            self._persistence.save_debounced(store.to_session())
