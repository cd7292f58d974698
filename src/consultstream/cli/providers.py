"""Provider factory functions for CLI.

Centralizes creation of the stream source, persistence backend and chat
controller from settings. Hides configuration details from command
implementations.
"""

from rich.console import Console

from ..chat import ChatController
from ..config import Settings
from ..llm import LLMProvider, create_llm_provider
from ..persistence import KeyValueStore, SessionPersistenceManager, create_key_value_store

# Default console for output
_console = Console()


def get_provider(settings: Settings, console: Console | None = None) -> LLMProvider:
    """Create the model stream source.

    Gemini without a key still streams, reporting missing credentials in-band.
    """
    con = console or _console
    if settings.provider == "gemini":
        if not settings.gemini_api_key:
            con.print("[yellow]Warning: GEMINI_API_KEY not set, answers will report missing credentials[/yellow]")
        return create_llm_provider(
            "gemini",
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            image_model=settings.image_model,
            grounding=settings.grounding,
        )

    if settings.provider != "simulated":
        con.print(f"[yellow]Unknown provider '{settings.provider}', using simulated answers[/yellow]")
    return create_llm_provider("simulated")


def get_store(settings: Settings) -> KeyValueStore:
    """Create the key/value backend (not yet connected)."""
    if settings.store == "sqlite":
        return create_key_value_store("sqlite", path=settings.db_path)
    return create_key_value_store("memory")


def get_controller(
    settings: Settings,
    backend: KeyValueStore,
    console: Console | None = None,
) -> ChatController:
    """Create a chat controller over a connected backend."""
    persistence = SessionPersistenceManager(
        backend,
        user_key=settings.user_key,
        delay=settings.debounce_seconds,
    )
    return ChatController(
        provider=get_provider(settings, console),
        persistence=persistence,
        language=settings.language,
    )
