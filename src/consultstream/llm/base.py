from abc import ABC, abstractmethod
from typing import Any

from .models import ChatMessage, GeneratedImage, InlineData, StreamingResponse


class ImageGenerator(ABC):
    """Request/response source for rendered images.

    Used for the secondary fetch behind image placeholder widgets.
    """

    @abstractmethod
    async def generate_image(self, prompt: str) -> GeneratedImage | None:
        """Render an image for a prompt.

        Args:
            prompt: Description of the image to render

        Returns:
            The generated image, or None if the service returned no image

        Raises:
            Exception: Provider-specific transport errors
        """


class LLMProvider(ImageGenerator):
    """Abstract base class for model stream sources.

    This module hides the design decision of which model service to use.
    Implementations must handle provider-specific details like:
    - API client setup and authentication
    - Request format conversion (history, attachments, system instruction)
    - Mapping streamed responses to StreamChunk objects
    - Reporting missing credentials through the configuration sentinel

    Supports async context manager protocol for proper resource cleanup:
        async with provider:
            stream = await provider.chat_stream(history, message)
        # Automatically cleaned up
    """

    @abstractmethod
    async def chat_stream(
        self,
        history: list[ChatMessage],
        message: str,
        attachment: InlineData | None = None,
        thinking: bool = False,
        language: str = "English",
        context: str | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Open a streamed answer to a user message.

        Args:
            history: Earlier turns of the conversation, oldest first
            message: The new user message
            attachment: Optional inline file sent with the message
            thinking: Grant the model a reasoning budget before answering
            language: Language the answer must be written in
            context: Optional dashboard snapshot injected into the instruction
            **kwargs: Provider-specific parameters

        Returns:
            StreamingResponse yielding StreamChunk objects in arrival order

        Raises:
            Exception: Provider-specific errors opening or reading the stream
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""
        pass

    async def __aenter__(self) -> "LLMProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            # Suppress harmless cleanup errors from httpx/anyio
            if "Event loop is closed" not in str(e):
                raise
