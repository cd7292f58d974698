"""Pytest configuration and shared fixtures."""
import asyncio
import json
import logging
from collections.abc import AsyncIterator

import pytest

from consultstream.conversation import ConversationStore, Message, Role
from consultstream.llm.base import ImageGenerator
from consultstream.llm.models import GeneratedImage, StreamChunk
from consultstream.persistence.in_memory import InMemoryKeyValueStore

KPI_WIDGET = {"type": "kpi", "title": "Growth", "data": {"metrics": [{"label": "X", "value": 1}]}}


def fence(widget: dict | str) -> str:
    """Wrap a widget (or raw body text) in a json-widget fence."""
    body = widget if isinstance(widget, str) else json.dumps(widget)
    return f"```json-widget\n{body}\n```"


async def chunks(*texts: str) -> AsyncIterator[StreamChunk]:
    """Async fragment stream from plain strings."""
    for text in texts:
        yield StreamChunk(text=text)


async def failing_chunks(*texts: str, error: Exception | None = None) -> AsyncIterator[StreamChunk]:
    """Fragment stream that breaks after the given texts."""
    for text in texts:
        yield StreamChunk(text=text)
    raise error or ConnectionError("connection reset")


class CountingStore(InMemoryKeyValueStore):
    """In-memory backend that records every write."""

    def __init__(self):
        super().__init__()
        self.writes: list[tuple[str, str]] = []
        self.fail_writes = False
        self.fail_reads = False
        self.read_delay = 0.0

    async def get(self, key: str) -> str | None:
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if self.fail_reads:
            raise OSError("disk unavailable")
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes.append((key, value))
        await super().set(key, value)


class FakeImageSource(ImageGenerator):
    """Image generator returning fixed bytes, or failing on demand."""

    def __init__(self, data: bytes = b"\x89PNG fake", error: Exception | None = None):
        self.data = data
        self.error = error
        self.prompts: list[str] = []

    async def generate_image(self, prompt: str) -> GeneratedImage | None:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if not self.data:
            return None
        return GeneratedImage(data=self.data, mime_type="image/png")


@pytest.fixture
def kpi_widget():
    return dict(KPI_WIDGET)


@pytest.fixture
def store():
    return ConversationStore()


@pytest.fixture
def backend():
    return CountingStore()


@pytest.fixture
def image_source():
    return FakeImageSource()


@pytest.fixture
def assistant_message(store):
    """An empty assistant placeholder already in the store."""
    store.append(Message(role=Role.USER, content="How is growth?"))
    return store.append(Message(role=Role.ASSISTANT))


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handler and propagation changes made by configure_logging."""
    logger = logging.getLogger("consultstream")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
