import base64
from collections.abc import AsyncIterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WebSource(BaseModel):
    """A web page the model grounded part of its answer on."""

    model_config = ConfigDict(frozen=True)

    uri: str = Field(description="Source URL")
    title: str = Field(default="", description="Source page title")


class GroundingChunk(BaseModel):
    """One grounding citation."""

    model_config = ConfigDict(frozen=True)

    web: WebSource | None = None


class GroundingMetadata(BaseModel):
    """Citation blob attached to streamed fragments when search grounding is on."""

    model_config = ConfigDict(frozen=True)

    grounding_chunks: list[GroundingChunk] = Field(default_factory=list)
    web_search_queries: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.grounding_chunks and not self.web_search_queries


class StreamChunk(BaseModel):
    """One incremental fragment delivered by the model stream."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Fragment text")
    grounding_metadata: GroundingMetadata | None = Field(
        default=None,
        description="Grounding citations, when the source reports them"
    )


class InlineData(BaseModel):
    """Binary attachment sent inline with a user message."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = Field(description="MIME type of the payload")
    data_base64: str = Field(description="Base64-encoded payload")

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "InlineData":
        return cls(mime_type=mime_type, data_base64=base64.b64encode(data).decode("ascii"))

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data_base64)


class ChatMessage(BaseModel):
    """Represents a chat message in the history sent to the model."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user' or 'assistant'")
    content: str = Field(description="Content of the message")


class GeneratedImage(BaseModel):
    """Binary image returned by an image generator."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(description="Raw image bytes")
    mime_type: str = Field(default="image/png", description="Image MIME type")

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class StreamingResponse:
    """Wrapper for streaming model responses that captures usage info.

    Acts as an async iterator of StreamChunk objects while storing token usage
    that becomes available at the end of the stream.

    Usage:
        stream = await provider.chat_stream(history, "How are we doing?")
        async for chunk in stream:
            print(chunk.text, end="")
        # After iteration, usage is available
        print(stream.usage)  # {"prompt_tokens": 100, "completion_tokens": 50, ...}
    """

    def __init__(self, async_iter: AsyncIterator[StreamChunk]):
        """Initialize with an async iterator of stream chunks.

        Args:
            async_iter: Async iterator yielding StreamChunk objects
        """
        self._iter = async_iter
        self._usage: dict[str, Any] | None = None

    @property
    def usage(self) -> dict[str, Any] | None:
        """Get token usage info (available after iteration completes)."""
        return self._usage

    def set_usage(self, usage: dict[str, Any]) -> None:
        """Set token usage info (called by provider at end of stream)."""
        self._usage = usage

    def __aiter__(self) -> "StreamingResponse":
        """Return self as async iterator."""
        return self

    async def __anext__(self) -> StreamChunk:
        """Get next chunk from the underlying iterator."""
        return await self._iter.__anext__()
