from .base import ImageGenerator, LLMProvider
from .factory import create_llm_provider
from .models import (
    ChatMessage,
    GeneratedImage,
    GroundingChunk,
    GroundingMetadata,
    InlineData,
    StreamChunk,
    StreamingResponse,
    WebSource,
)
from .providers import GeminiProvider, SimulatedProvider

__all__ = [
    "ImageGenerator",
    "LLMProvider",
    "create_llm_provider",
    "ChatMessage",
    "GeneratedImage",
    "GroundingChunk",
    "GroundingMetadata",
    "InlineData",
    "StreamChunk",
    "StreamingResponse",
    "WebSource",
    "GeminiProvider",
    "SimulatedProvider",
]
