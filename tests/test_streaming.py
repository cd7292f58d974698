"""Unit tests for the streaming module."""
import asyncio

import pytest

from consultstream.artifacts import ArtifactKind
from consultstream.config import MISSING_CREDENTIALS_NOTICE, STREAM_INTERRUPTED_NOTICE
from consultstream.errors import StreamError
from consultstream.followup import FollowUpOrchestrator
from consultstream.llm.models import GroundingChunk, GroundingMetadata, StreamChunk, WebSource
from consultstream.streaming import MessageUpdate, StreamConsumer

from conftest import KPI_WIDGET, chunks, failing_chunks, fence

IMAGE_WIDGET = {"type": "image_request", "title": "Launch Visual", "data": {"prompt": "A product launch stage"}}


class TestMessageUpdate:
    """Tests for MessageUpdate."""

    def test_fields(self):
        """Test the store fields carried by an update."""
        update = MessageUpdate(message_id="m1", content="Hi", done=True)
        assert update.fields() == {
            "content": "Hi",
            "artifact": None,
            "grounding_metadata": None,
            "is_error": False,
        }


class TestStreamConsumer:
    """Tests for StreamConsumer."""

    @pytest.mark.asyncio
    async def test_updates_per_fragment(self):
        """Test that every fragment yields an update with the latest clean text."""
        updates: list[MessageUpdate] = []
        consumer = StreamConsumer()

        final = await consumer.consume(
            "m1",
            chunks(
                "Here is the data:\n",
                "```json-widget\n",
                '{"type":"kpi","title":"Growth","data":{"metrics":[{"label":"X","value":1}]}}',
                "\n```",
            ),
            updates.append,
        )

        assert len(updates) == 5
        assert [u.done for u in updates] == [False, False, False, False, True]
        assert updates[1].content == "Here is the data:\n```json-widget\n"
        assert updates[1].artifact is None
        assert updates[3].content == "Here is the data:"
        assert updates[3].artifact.type == ArtifactKind.KPI
        assert final == updates[-1]
        assert final.content == "Here is the data:"
        assert final.is_error is False

    @pytest.mark.asyncio
    async def test_two_fragment_scenario(self, kpi_widget):
        """Test the final state for a fence completed in the last fragment."""
        final = await StreamConsumer().consume(
            "m1",
            chunks(
                "Here is the ",
                'data:\n```json-widget\n{"type":"kpi","title":"Growth",'
                '"data":{"metrics":[{"label":"X","value":1}]}}\n```',
            ),
            lambda update: None,
        )

        assert final.content == "Here is the data:"
        assert final.artifact.model_dump(mode="json") == kpi_widget

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        """Test that a stream with no fragments still finishes."""
        updates = []
        final = await StreamConsumer().consume("m1", chunks(), updates.append)

        assert updates == [final]
        assert final.content == ""
        assert final.done is True

    @pytest.mark.asyncio
    async def test_grounding_is_kept(self):
        """Test that the latest non-empty grounding is carried forward."""
        grounding = GroundingMetadata(grounding_chunks=[GroundingChunk(web=WebSource(uri="https://example.com"))])

        async def stream():
            yield StreamChunk(text="Sourced ", grounding_metadata=grounding)
            yield StreamChunk(text="answer", grounding_metadata=GroundingMetadata())

        final = await StreamConsumer().consume("m1", stream(), lambda update: None)
        assert final.grounding_metadata == grounding

    @pytest.mark.asyncio
    async def test_config_error_sentinel(self):
        """Test that the sentinel becomes a visible notice and a StreamError."""
        updates = []

        async def stream():
            yield StreamChunk(text="__CONSULTSTREAM_CONFIG_ERROR__")
            yield StreamChunk(text="never read")

        with pytest.raises(StreamError) as exc_info:
            await StreamConsumer().consume("m1", stream(), updates.append)

        assert exc_info.value.config_error is True
        assert exc_info.value.message_id == "m1"
        assert len(updates) == 1
        assert updates[0].content == MISSING_CREDENTIALS_NOTICE
        assert updates[0].is_error is True

    @pytest.mark.asyncio
    async def test_config_error_sentinel_inside_text(self):
        """Test that a sentinel glued to other text is never shown."""
        updates = []

        with pytest.raises(StreamError) as exc_info:
            await StreamConsumer().consume(
                "m1",
                chunks("Checking... ", "sorry __CONSULTSTREAM_CONFIG_ERROR__ \n"),
                updates.append,
            )

        assert exc_info.value.config_error is True
        assert updates[-1].content == MISSING_CREDENTIALS_NOTICE
        assert all("__CONSULTSTREAM_CONFIG_ERROR__" not in u.content for u in updates)

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_partial_text(self):
        """Test that a mid-stream failure appends a notice to the clean text."""
        updates = []

        with pytest.raises(StreamError) as exc_info:
            await StreamConsumer().consume("m1", failing_chunks("Revenue is ", "up."), updates.append)

        assert exc_info.value.config_error is False
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert updates[-1].content == f"Revenue is up.\n\n{STREAM_INTERRUPTED_NOTICE}"
        assert updates[-1].is_error is True
        assert updates[-1].done is True

    @pytest.mark.asyncio
    async def test_transport_failure_before_any_text(self):
        """Test the notice alone when nothing arrived."""
        updates = []
        with pytest.raises(StreamError):
            await StreamConsumer().consume("m1", failing_chunks(), updates.append)

        assert updates == [MessageUpdate(
            message_id="m1", content=STREAM_INTERRUPTED_NOTICE, is_error=True, done=True,
        )]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_stream(self):
        """Test that a crashing observer is logged and skipped."""
        def broken(update):
            raise RuntimeError("render failed")

        final = await StreamConsumer().consume("m1", chunks("a", "b"), broken)
        assert final.content == "ab"

    @pytest.mark.asyncio
    async def test_async_callback_is_not_awaited(self):
        """Test that async observers are scheduled without blocking the stream."""
        release = asyncio.Event()
        seen = []

        async def slow(update):
            await release.wait()
            seen.append(update.content)

        consumer = StreamConsumer()
        final = await consumer.consume("m1", chunks("a", "b"), slow)

        assert final.content == "ab"
        assert seen == []

        release.set()
        await consumer.drain()
        assert seen == ["a", "ab", "ab"]

    @pytest.mark.asyncio
    async def test_concurrent_streams_are_isolated(self):
        """Test that two in-flight streams never mix their buffers."""
        updates: dict[str, list[MessageUpdate]] = {"m1": [], "m2": []}

        async def slow_chunks(*texts):
            for text in texts:
                await asyncio.sleep(0)
                yield StreamChunk(text=text)

        def record(update):
            updates[update.message_id].append(update)

        consumer = StreamConsumer()
        first, second = await asyncio.gather(
            consumer.consume("m1", slow_chunks("Alpha ", "one ", fence(KPI_WIDGET)), record),
            consumer.consume("m2", slow_chunks("Beta ", "two"), record),
        )

        assert first.content == "Alpha one"
        assert first.artifact.type == ArtifactKind.KPI
        assert second.content == "Beta two"
        assert second.artifact is None
        assert all("Beta" not in u.content for u in updates["m1"])

    @pytest.mark.asyncio
    async def test_follow_up_runs_after_stream(self, store, assistant_message, image_source):
        """Test that a placeholder is resolved once the stream has finished."""
        consumer = StreamConsumer(FollowUpOrchestrator(store, image_source))

        def apply(update):
            store.update_by_id(update.message_id, **update.fields())

        final = await consumer.consume(
            assistant_message.id,
            chunks("Concept below.\n", fence(IMAGE_WIDGET)),
            apply,
        )

        # The final stream update still carries the placeholder
        assert final.artifact.type == ArtifactKind.IMAGE_REQUEST
        assert image_source.prompts == ["A product launch stage"]

        message = store.get(assistant_message.id)
        assert message.artifact.type == ArtifactKind.IMAGE
        assert message.content == "Concept below."

    @pytest.mark.asyncio
    async def test_no_follow_up_for_plain_widgets(self, store, assistant_message, image_source):
        """Test that ordinary widgets trigger no secondary fetch."""
        consumer = StreamConsumer(FollowUpOrchestrator(store, image_source))
        await consumer.consume(assistant_message.id, chunks(fence(KPI_WIDGET)), lambda update: None)

        assert image_source.prompts == []
