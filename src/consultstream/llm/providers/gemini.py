"""Google Gemini stream source.

Uses the official Google GenAI SDK for async streamed chat and image generation.
Reference: https://github.com/googleapis/python-genai

Note: Gemini can return chunks without text (safety filtering, thinking
parts, trailing usage chunks). Those are skipped rather than forwarded.
"""

from collections.abc import AsyncIterator, Callable
from typing import Any

from google import genai
from google.genai import types

from ...config import (
    CONFIG_ERROR_SENTINEL,
    DEFAULT_CHAT_MODEL,
    DEFAULT_IMAGE_MODEL,
    IMAGE_ASPECT_RATIO,
    THINKING_BUDGET,
)
from ...prompts import get_system_instruction
from ..base import LLMProvider
from ..models import (
    ChatMessage,
    GeneratedImage,
    GroundingChunk,
    GroundingMetadata,
    InlineData,
    StreamChunk,
    StreamingResponse,
    WebSource,
)

# Default safety settings - relaxed to avoid blocking business analysis content
DEFAULT_SAFETY_SETTINGS = [
    types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="BLOCK_ONLY_HIGH"),
    types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="BLOCK_ONLY_HIGH"),
]


class GeminiProvider(LLMProvider):
    """Google Gemini stream source.

    Hidden design decisions:
    - Google GenAI client initialization
    - History and attachment conversion to Gemini contents
    - Grounding metadata conversion
    - Missing credentials are reported in-band with the configuration sentinel
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_CHAT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        grounding: bool = False,
        **client_kwargs: Any
    ):
        """Initialize Gemini provider.

        Args:
            api_key: Google AI API key (None reports a configuration error on use)
            model: Default chat model (gemini-2.5-flash, gemini-2.5-pro)
            image_model: Model used for image placeholders
            grounding: Enable Google Search grounding on chat requests
            **client_kwargs: Additional kwargs for Client
        """
        self._model = model
        self._image_model = image_model
        self._grounding = grounding
        self._client = genai.Client(api_key=api_key, **client_kwargs) if api_key else None

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    @property
    def grounding(self) -> bool:
        """Whether chat requests enable Google Search grounding."""
        return self._grounding

    def _convert_history(self, history: list[ChatMessage]) -> list[types.Content]:
        """Convert ChatMessage history to Gemini contents.

        Args:
            history: Earlier conversation turns

        Returns:
            Gemini Content list ('assistant' becomes 'model')
        """
        contents = []
        for msg in history:
            if not msg.content:
                continue
            role = "user" if msg.role == "user" else "model"
            contents.append(types.Content(role=role, parts=[types.Part(text=msg.content)]))
        return contents

    def _convert_grounding(self, candidate: Any) -> GroundingMetadata | None:
        raw = getattr(candidate, "grounding_metadata", None)
        if raw is None:
            return None

        chunks = []
        for chunk in raw.grounding_chunks or []:
            web = getattr(chunk, "web", None)
            if web is not None and web.uri:
                chunks.append(GroundingChunk(web=WebSource(uri=web.uri, title=web.title or "")))

        metadata = GroundingMetadata(
            grounding_chunks=chunks,
            web_search_queries=list(raw.web_search_queries or []),
        )
        return None if metadata.is_empty else metadata

    def _extract_text(self, chunk: Any) -> str:
        """Extract text from a streamed chunk, skipping thought parts."""
        if chunk.candidates:
            candidate = chunk.candidates[0]
            if candidate.content and candidate.content.parts:
                texts = [
                    part.text for part in candidate.content.parts
                    if part.text and not getattr(part, "thought", False)
                ]
                return "".join(texts)
        return ""

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
        """Open a streamed answer using Google Gemini.

        Args:
            history: Earlier turns, oldest first
            message: New user message
            attachment: Optional inline file sent with the message
            thinking: Grant a thinking budget before answering
            language: Answer language
            context: Optional dashboard snapshot
            **kwargs: Additional GenerateContentConfig parameters

        Returns:
            StreamingResponse that yields StreamChunk objects and captures usage info
        """
        if self._client is None:
            return StreamingResponse(self._config_error())

        parts = [types.Part(text=message)]
        if attachment is not None:
            parts.append(types.Part(
                inline_data=types.Blob(data=attachment.to_bytes(), mime_type=attachment.mime_type)
            ))
        contents = self._convert_history(history)
        contents.append(types.Content(role="user", parts=parts))

        config = types.GenerateContentConfig(
            system_instruction=get_system_instruction(language=language, context=context),
            safety_settings=DEFAULT_SAFETY_SETTINGS,
            **kwargs
        )
        if thinking:
            config.thinking_config = types.ThinkingConfig(thinking_budget=THINKING_BUDGET)
        if self._grounding:
            config.tools = [types.Tool(google_search=types.GoogleSearch())]

        response = StreamingResponse(
            self._stream_generator(contents, config, on_usage=lambda usage: response.set_usage(usage))
        )
        return response

    async def _config_error(self) -> AsyncIterator[StreamChunk]:
        yield StreamChunk(text=CONFIG_ERROR_SENTINEL)

    async def _stream_generator(
        self,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
        on_usage: Callable[[dict[str, Any]], None],
    ) -> AsyncIterator[StreamChunk]:
        """Internal generator that yields chunks and captures usage."""
        usage = None

        stream = await self._client.aio.models.generate_content_stream(
            model=self._model, contents=contents, config=config
        )
        async for chunk in stream:
            # Capture usage_metadata from chunks (available in final chunk)
            if chunk.usage_metadata:
                usage = {
                    "prompt_tokens": chunk.usage_metadata.prompt_token_count or 0,
                    "completion_tokens": chunk.usage_metadata.candidates_token_count or 0,
                    "total_tokens": chunk.usage_metadata.total_token_count or 0,
                }

            text = self._extract_text(chunk)
            if text:
                grounding = self._convert_grounding(chunk.candidates[0])
                yield StreamChunk(text=text, grounding_metadata=grounding)

        if usage:
            on_usage(usage)

    async def generate_image(self, prompt: str) -> GeneratedImage | None:
        """Render an image with the Gemini image model.

        Args:
            prompt: Image description

        Returns:
            First inline image in the response, or None if there is none
        """
        if self._client is None:
            raise RuntimeError("Gemini image generation requires GEMINI_API_KEY")

        response = await self._client.aio.models.generate_content(
            model=self._image_model,
            contents=prompt,
            config=types.GenerateContentConfig(
                image_config=types.ImageConfig(aspect_ratio=IMAGE_ASPECT_RATIO),
            ),
        )

        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts or []:
                if part.inline_data and part.inline_data.data:
                    return GeneratedImage(
                        data=part.inline_data.data,
                        mime_type=part.inline_data.mime_type or "image/png",
                    )
        return None

    async def close(self) -> None:
        """Close the Gemini client.

        Note: The Google GenAI client doesn't require explicit closing,
        but we implement this for interface consistency.
        """
        pass
