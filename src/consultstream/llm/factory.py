from typing import Any

from .base import LLMProvider
from .providers import GeminiProvider, SimulatedProvider


def create_llm_provider(provider: str, **config: Any) -> LLMProvider:
    """Create a model stream source.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider type ('gemini' or 'simulated')
        **config: Provider-specific configuration
            For Gemini:
                - api_key: str | None (required key; None reports missing credentials)
                - model: str (default: 'gemini-2.5-flash')
                - image_model: str (default: 'gemini-2.5-flash-image')
                - grounding: bool (default: False)
            For Simulated:
                - word_delay: float (default: 0.02)
                - configured: bool (default: True)

    Returns:
        Initialized provider instance

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> provider = create_llm_provider(
        ...     "gemini",
        ...     api_key="...",
        ...     model="gemini-2.5-flash"
        ... )

        >>> provider = create_llm_provider("simulated", word_delay=0)
    """
    provider_lower = provider.lower()

    if provider_lower == "gemini":
        if "api_key" not in config:
            raise TypeError("Gemini provider requires 'api_key' in config")
        return GeminiProvider(**config)

    if provider_lower in ("simulated", "mock"):
        return SimulatedProvider(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'gemini', 'simulated'"
    )
