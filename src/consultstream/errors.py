"""Error taxonomy for the streaming response pipeline.

Every failure mode here degrades to a visible-but-contained state.
Nothing in the pipeline retries automatically.
"""


class ConsultStreamError(Exception):
    """Base class for pipeline errors."""

    def is_retryable(self) -> bool:
        """Override in subclasses to control retry behavior."""
        return False


class StreamError(ConsultStreamError):
    """Transport failure or declared configuration error while streaming."""

    def __init__(self, message: str, message_id: str | None = None, config_error: bool = False):
        super().__init__(f"Stream failed: {message}")
        self.message_id = message_id
        self.config_error = config_error


class ArtifactParseError(ConsultStreamError):
    """A closed widget fence whose body is not a valid artifact."""

    def __init__(self, message: str, body: str = ""):
        super().__init__(f"Invalid artifact: {message}")
        self.body = body


class FollowUpError(ConsultStreamError):
    """Secondary fetch for a placeholder artifact failed."""

    def __init__(self, message: str, prompt: str | None = None):
        msg = f"Follow-up failed: {message}"
        if prompt:
            msg += f" (prompt: {prompt[:60]})"
        super().__init__(msg)
        self.prompt = prompt


class PersistenceError(ConsultStreamError):
    """Session store read or write failed."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(f"Persistence error: {message}")
        self.key = key
