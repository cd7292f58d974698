"""Stream consumer: turns model fragments into message updates.

Hidden design decisions:
- One fence scanner per in-flight message, so concurrent streams never
  share a buffer
- Update callbacks are fire-and-forget; the consumer never waits on them
- Configuration errors and transport failures become a visible notice in
  the message instead of a silent stall
- Placeholder artifacts are handed to the follow-up orchestrator only after
  the stream has finished
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterable, Awaitable, Callable
from dataclasses import dataclass

from ..artifacts import Artifact, FenceScanner
from ..config import CONFIG_ERROR_SENTINEL, MISSING_CREDENTIALS_NOTICE, STREAM_INTERRUPTED_NOTICE
from ..errors import StreamError
from ..followup import FollowUpOrchestrator
from ..llm.models import GroundingMetadata, StreamChunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageUpdate:
    """Latest derived state of an in-flight assistant message."""

    message_id: str
    content: str
    artifact: Artifact | None = None
    grounding_metadata: GroundingMetadata | None = None
    is_error: bool = False
    done: bool = False

    def fields(self) -> dict:
        """Message fields to apply to the conversation store."""
        return {
            "content": self.content,
            "artifact": self.artifact,
            "grounding_metadata": self.grounding_metadata,
            "is_error": self.is_error,
        }


UpdateCallback = Callable[[MessageUpdate], Awaitable[None] | None]


class StreamConsumer:
    """Consumes a fragment stream for one assistant message at a time.

    A new ``consume`` call may start while an earlier one is still running;
    each call keeps its own buffer keyed by its message id.
    """

    def __init__(
        self,
        follow_ups: FollowUpOrchestrator | None = None,
        missing_credentials_notice: str = MISSING_CREDENTIALS_NOTICE,
        interrupted_notice: str = STREAM_INTERRUPTED_NOTICE,
    ):
        """Initialize the consumer.

        Args:
            follow_ups: Orchestrator for placeholder artifacts (None disables follow-ups)
            missing_credentials_notice: Text shown when the source lacks credentials
            interrupted_notice: Text appended when the transport fails mid-stream
        """
        self._follow_ups = follow_ups
        self._missing_credentials_notice = missing_credentials_notice
        self._interrupted_notice = interrupted_notice
        self._callbacks: set[asyncio.Future] = set()

    async def consume(
        self,
        message_id: str,
        fragments: AsyncIterable[StreamChunk],
        on_update: UpdateCallback,
    ) -> MessageUpdate:
        """Drive a fragment stream to completion.

        Every fragment grows the buffer, the buffer is re-extracted, and
        ``on_update`` receives the latest clean text and artifact.

        Args:
            message_id: Assistant message the stream writes into
            fragments: Async iterable of StreamChunk in arrival order
            on_update: Called with each MessageUpdate; an awaitable result is
                scheduled and not awaited

        Returns:
            The final MessageUpdate (``done=True``)

        Raises:
            StreamError: If the transport fails or the source reports a
                configuration error; the notice has already been delivered
                through ``on_update``
        """
        scanner = FenceScanner()
        latest = MessageUpdate(message_id=message_id, content="")
        grounding: GroundingMetadata | None = None

        try:
            async for chunk in fragments:
                if CONFIG_ERROR_SENTINEL in chunk.text:
                    self._emit(on_update, MessageUpdate(
                        message_id=message_id,
                        content=self._missing_credentials_notice,
                        is_error=True,
                        done=True,
                    ))
                    raise StreamError("model source is missing credentials", message_id=message_id, config_error=True)

                if chunk.grounding_metadata is not None and not chunk.grounding_metadata.is_empty:
                    grounding = chunk.grounding_metadata

                result = scanner.feed(chunk.text)
                latest = MessageUpdate(
                    message_id=message_id,
                    content=result.clean_text,
                    artifact=result.artifact,
                    grounding_metadata=grounding,
                )
                self._emit(on_update, latest)
        except StreamError:
            raise
        except Exception as e:
            content = self._interrupted_notice
            if latest.content:
                content = f"{latest.content}\n\n{self._interrupted_notice}"
            self._emit(on_update, MessageUpdate(
                message_id=message_id,
                content=content,
                artifact=latest.artifact,
                grounding_metadata=grounding,
                is_error=True,
                done=True,
            ))
            raise StreamError(str(e) or type(e).__name__, message_id=message_id) from e

        final = MessageUpdate(
            message_id=message_id,
            content=latest.content,
            artifact=latest.artifact,
            grounding_metadata=grounding,
            done=True,
        )
        self._emit(on_update, final)

        if final.artifact is not None and final.artifact.needs_follow_up and self._follow_ups is not None:
            await self._follow_ups.run(message_id, final.artifact)

        return final

    def _emit(self, on_update: UpdateCallback, update: MessageUpdate) -> None:
        try:
            result = on_update(update)
        except Exception:
            logger.exception("Update callback failed for message %s", update.message_id)
            return

        if inspect.isawaitable(result):
            future = asyncio.ensure_future(result)
            self._callbacks.add(future)
            future.add_done_callback(self._callback_done)

    def _callback_done(self, future: asyncio.Future) -> None:
        self._callbacks.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Async update callback failed: %s", future.exception())

    async def drain(self) -> None:
        """Wait for scheduled async callbacks to finish."""
        if self._callbacks:
            await asyncio.gather(*list(self._callbacks), return_exceptions=True)
