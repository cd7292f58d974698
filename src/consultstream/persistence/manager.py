"""Debounced, best-effort persistence of conversation sessions.

Hidden design decisions:
- All sessions of one user live under a single key as a JSON list,
  most recently saved first
- Saves are trailing-edge debounced through one cancellable timer task
- Writes of the per-user list are serialized, so overlapping saves never
  drop each other's sessions
- Titles are derived once from the first user message
- Storage failures never escape the debounced path
"""

import asyncio
import logging
import re

from pydantic import TypeAdapter, ValidationError

from ..config import (
    CHATS_KEY_PREFIX,
    DEFAULT_SESSION_TITLE,
    SAVE_DEBOUNCE_SECONDS,
    TITLE_ELLIPSIS,
    TITLE_MAX_LENGTH,
)
from ..conversation.models import ConversationSession
from ..errors import PersistenceError
from .base import KeyValueStore

logger = logging.getLogger(__name__)

_SESSIONS = TypeAdapter(list[ConversationSession])
_WHITESPACE = re.compile(r"\s+")


def derive_title(session: ConversationSession, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Short title from the first user message.

    Args:
        session: Session to title
        max_length: Characters kept before the ellipsis is appended

    Returns:
        The collapsed, truncated first user message, or the default title
        if there is no user message yet
    """
    first = session.first_user_message
    if first is None:
        return DEFAULT_SESSION_TITLE

    text = _WHITESPACE.sub(" ", first.content).strip()
    if not text:
        return DEFAULT_SESSION_TITLE
    if len(text) > max_length:
        return text[:max_length].rstrip() + TITLE_ELLIPSIS
    return text


def chats_key(user_key: str) -> str:
    return f"{CHATS_KEY_PREFIX}:{user_key}"


class SessionPersistenceManager:
    """Writes conversation snapshots to an injected key/value backend.

    One outstanding save timer exists per manager; every call to
    ``save_debounced`` replaces it, and ``cancel`` drops it.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        user_key: str = "local",
        delay: float = SAVE_DEBOUNCE_SECONDS,
    ):
        """Initialize the manager.

        Args:
            backend: Connected key/value store
            user_key: Key under which this user's sessions are stored
            delay: Debounce window in seconds
        """
        self._backend = backend
        self._user_key = user_key
        self._delay = delay
        self._timer: asyncio.Task | None = None
        self._writing: asyncio.Task | None = None
        self._pending: ConversationSession | None = None
        self._lock = asyncio.Lock()

    @property
    def user_key(self) -> str:
        return self._user_key

    @property
    def has_pending(self) -> bool:
        """Whether a debounced save is waiting to fire or still being written."""
        waiting = self._timer is not None and not self._timer.done()
        writing = self._writing is not None and not self._writing.done()
        return waiting or writing

    def save_debounced(self, session: ConversationSession) -> None:
        """Schedule a save of the session after the debounce window.

        A call inside the window restarts the timer and replaces the session
        that will be written. Must be called from within a running event loop.
        """
        self._pending = session
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._save_after_delay())

    async def _save_after_delay(self) -> None:
        await asyncio.sleep(self._delay)

        session = self._pending
        self._pending = None
        # From here on the task is a write; cancel() no longer interrupts it
        self._timer = None
        if session is None:
            return

        self._writing = asyncio.current_task()
        try:
            await self.save_now(session)
        except PersistenceError as e:
            # Next successful save supersedes this one
            logger.warning("Debounced save of session %s failed: %s", session.id, e)
        finally:
            if self._writing is asyncio.current_task():
                self._writing = None

    def cancel(self) -> None:
        """Drop the pending save, if any."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        self._pending = None

    async def flush(self) -> bool:
        """Write the pending session immediately instead of waiting.

        A debounced write that has already started is awaited first, so the
        backend can be disconnected as soon as this returns.

        Returns:
            True if a pending session was written
        """
        session = self._pending
        self.cancel()

        writing = self._writing
        if writing is not None and not writing.done():
            await asyncio.wait([writing])

        if session is None:
            return False
        try:
            return await self.save_now(session)
        except PersistenceError as e:
            logger.warning("Flushing session %s failed: %s", session.id, e)
            return False

    async def save_now(self, session: ConversationSession) -> bool:
        """Write a session to the backend right away.

        The session moves to the head of the user's list. Empty sessions
        are not written.

        Returns:
            True if the session was written

        Raises:
            PersistenceError: If the backend read or write fails
        """
        if not session.messages:
            return False

        key = chats_key(self._user_key)
        async with self._lock:
            return await self._insert_at_head(key, session)

    async def _insert_at_head(self, key: str, session: ConversationSession) -> bool:
        sessions = await self._read_all(key)

        title = session.title
        if not title:
            previous = next((s for s in sessions if s.id == session.id), None)
            title = previous.title if previous and previous.title else derive_title(session)
        session = session.model_copy(update={"title": title})

        remaining = [s for s in sessions if s.id != session.id]
        await self._write_all(key, [session, *remaining])
        logger.debug("Saved session %s (%d messages)", session.id, len(session.messages))
        return True

    async def load_latest(self, user_key: str | None = None) -> ConversationSession | None:
        """Most recently saved session for a user.

        Best effort: a missing or unreadable store yields None.
        """
        try:
            sessions = await self._read_all(chats_key(user_key or self._user_key))
        except PersistenceError as e:
            logger.warning("Could not load latest session: %s", e)
            return None
        return sessions[0] if sessions else None

    async def list_sessions(self, user_key: str | None = None) -> list[ConversationSession]:
        """All saved sessions, most recent first.

        Raises:
            PersistenceError: If the backend cannot be read
        """
        return await self._read_all(chats_key(user_key or self._user_key))

    async def get_session(self, session_id: str, user_key: str | None = None) -> ConversationSession | None:
        """Find one saved session by id (or id prefix)."""
        for session in await self.list_sessions(user_key):
            if session.id == session_id or session.id.startswith(session_id):
                return session
        return None

    async def delete_session(self, session_id: str, user_key: str | None = None) -> bool:
        """Remove a saved session.

        Returns:
            True if a session was removed

        Raises:
            PersistenceError: If the backend read or write fails
        """
        key = chats_key(user_key or self._user_key)
        async with self._lock:
            sessions = await self._read_all(key)
            remaining = [s for s in sessions if s.id != session_id]
            if len(remaining) == len(sessions):
                return False
            await self._write_all(key, remaining)
            return True

    async def _read_all(self, key: str) -> list[ConversationSession]:
        try:
            raw = await self._backend.get(key)
        except Exception as e:
            raise PersistenceError(f"read failed: {e}", key=key) from e

        if raw is None:
            return []
        try:
            return _SESSIONS.validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"stored sessions are unreadable ({e.error_count()} errors)", key=key) from e

    async def _write_all(self, key: str, sessions: list[ConversationSession]) -> None:
        blob = _SESSIONS.dump_json(sessions).decode("utf-8")
        try:
            await self._backend.set(key, blob)
        except Exception as e:
            raise PersistenceError(f"write failed: {e}", key=key) from e
