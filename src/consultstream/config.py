"""Configuration constants and environment settings.

Centralizes magic numbers and user-visible notices for the pipeline,
and reads runtime settings from the environment.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class LogLevel:
    """Log level constants with numeric values for comparison.

    Standard logging hierarchy: DEBUG < INFO < WARNING < ERROR
    Lower numeric value = more verbose (shows more messages).
    """

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40

    _names = {
        DEBUG: "DEBUG",
        INFO: "INFO",
        WARNING: "WARNING",
        ERROR: "ERROR",
    }

    _from_string = {
        "debug": DEBUG,
        "info": INFO,
        "warning": WARNING,
        "error": ERROR,
    }

    @classmethod
    def name(cls, level: int) -> str:
        """Get the name for a log level."""
        return cls._names.get(level, "UNKNOWN")

    @classmethod
    def from_string(cls, level_str: str) -> int:
        """Convert string to log level. Returns WARNING if invalid."""
        return cls._from_string.get(level_str.lower(), cls.WARNING)


# Artifact wire format
WIDGET_FENCE_OPEN = "```json-widget"
WIDGET_FENCE_CLOSE = "```"

# Persistence
SAVE_DEBOUNCE_SECONDS = 1.0  # Quiet period after the last mutation before saving
TITLE_MAX_LENGTH = 30  # Characters kept from the first user message
TITLE_ELLIPSIS = "..."
DEFAULT_SESSION_TITLE = "New Chat"
CHATS_KEY_PREFIX = "consultstream:chats"

# Stream source
CONFIG_ERROR_SENTINEL = "__CONSULTSTREAM_CONFIG_ERROR__"  # Emitted by providers lacking credentials
MISSING_CREDENTIALS_NOTICE = (
    "The assistant is not configured: no API credentials were found. "
    "Set GEMINI_API_KEY and try again."
)
STREAM_INTERRUPTED_NOTICE = "The response was interrupted before it finished. Please try again."

# Models
DEFAULT_CHAT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
IMAGE_ASPECT_RATIO = "16:9"
THINKING_BUDGET = 1024  # Tokens granted when deep thinking is requested

# Simulated provider
SIMULATED_WORD_DELAY = 0.02  # Seconds between simulated words


class Settings(BaseModel):
    """Runtime settings resolved from the environment."""

    gemini_api_key: str | None = Field(default=None, description="Google AI API key")
    gemini_model: str = Field(default=DEFAULT_CHAT_MODEL, description="Chat model name")
    image_model: str = Field(default=DEFAULT_IMAGE_MODEL, description="Image model name")
    provider: str = Field(default="simulated", description="Stream source: 'gemini' or 'simulated'")
    store: str = Field(default="sqlite", description="Persistence backend: 'memory' or 'sqlite'")
    db_path: str = Field(default="./consultstream.db", description="SQLite database path")
    user_key: str = Field(default="local", description="Key under which sessions are stored")
    language: str = Field(default="English", description="Response language")
    debounce_seconds: float = Field(default=SAVE_DEBOUNCE_SECONDS, ge=0.0)
    log_level: str = Field(default="warning")
    grounding: bool = Field(default=False, description="Ground Gemini answers with Google Search")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (and a .env file if present).

        Environment variables:
            GEMINI_API_KEY: Gemini API key (provider defaults to 'gemini' when set)
            GEMINI_MODEL: Chat model (default: gemini-2.5-flash)
            GEMINI_IMAGE_MODEL: Image model (default: gemini-2.5-flash-image)
            CONSULTSTREAM_PROVIDER: 'gemini' or 'simulated'
            CONSULTSTREAM_STORE: 'memory' or 'sqlite' (default: sqlite)
            CONSULTSTREAM_DB_PATH: SQLite file (default: ./consultstream.db)
            CONSULTSTREAM_USER: Storage user key (default: local)
            CONSULTSTREAM_LANGUAGE: Response language (default: English)
            CONSULTSTREAM_DEBOUNCE_SECONDS: Save debounce window (default: 1.0)
            CONSULTSTREAM_LOG_LEVEL: debug, info, warning, error (default: warning)
            CONSULTSTREAM_GROUNDING: 1/true/yes/on to enable search grounding (default: off)
        """
        load_dotenv()

        api_key = os.getenv("GEMINI_API_KEY") or None
        default_provider = "gemini" if api_key else "simulated"

        return cls(
            gemini_api_key=api_key,
            gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_CHAT_MODEL),
            image_model=os.getenv("GEMINI_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
            provider=os.getenv("CONSULTSTREAM_PROVIDER", default_provider).lower(),
            store=os.getenv("CONSULTSTREAM_STORE", "sqlite").lower(),
            db_path=os.getenv("CONSULTSTREAM_DB_PATH", "./consultstream.db"),
            user_key=os.getenv("CONSULTSTREAM_USER", "local"),
            language=os.getenv("CONSULTSTREAM_LANGUAGE", "English"),
            debounce_seconds=float(os.getenv("CONSULTSTREAM_DEBOUNCE_SECONDS", str(SAVE_DEBOUNCE_SECONDS))),
            log_level=os.getenv("CONSULTSTREAM_LOG_LEVEL", "warning"),
            grounding=os.getenv("CONSULTSTREAM_GROUNDING", "").strip().lower() in ("1", "true", "yes", "on"),
        )
