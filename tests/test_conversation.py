"""Unit tests for the conversation module."""
import pytest

from consultstream.artifacts import Artifact
from consultstream.conversation import (
    ConversationSession,
    ConversationStore,
    Message,
    PendingAttachment,
    Role,
    StoreEventKind,
)

from conftest import KPI_WIDGET


class TestMessage:
    """Tests for Message and session models."""

    def test_defaults(self):
        """Test that a new message gets an id and empty clean content."""
        message = Message(role=Role.ASSISTANT)

        assert message.id
        assert message.content == ""
        assert message.artifact is None
        assert message.is_error is False

    def test_ids_are_unique(self):
        """Test that generated ids do not repeat."""
        ids = {Message(role=Role.USER).id for _ in range(100)}
        assert len(ids) == 100

    def test_first_user_message(self):
        """Test finding the first user message of a session."""
        session = ConversationSession(messages=[
            Message(role=Role.ASSISTANT, content="Welcome"),
            Message(role=Role.USER, content="First"),
            Message(role=Role.USER, content="Second"),
        ])
        assert session.first_user_message.content == "First"

    def test_session_json_round_trip_keeps_artifact(self):
        """Test that a persisted session restores its artifacts."""
        artifact = Artifact.model_validate(KPI_WIDGET)
        session = ConversationSession(messages=[Message(role=Role.ASSISTANT, content="x", artifact=artifact)])

        restored = ConversationSession.model_validate_json(session.model_dump_json())
        assert restored == session


class TestPendingAttachment:
    """Tests for PendingAttachment."""

    def test_from_path(self, tmp_path):
        """Test reading an attachment and guessing its MIME type."""
        path = tmp_path / "report.csv"
        path.write_bytes(b"quarter,revenue\nQ1,1.2\n")

        attachment = PendingAttachment.from_path(path)

        assert attachment.name == "report.csv"
        assert attachment.mime_type == "text/csv"
        assert attachment.to_inline().to_bytes() == b"quarter,revenue\nQ1,1.2\n"

    def test_unknown_extension(self, tmp_path):
        """Test the fallback MIME type."""
        path = tmp_path / "blob.zzz"
        path.write_bytes(b"\x00\x01")
        assert PendingAttachment.from_path(path).mime_type == "application/octet-stream"


class TestConversationStore:
    """Tests for ConversationStore."""

    def test_append_keeps_order(self, store):
        """Test that messages are kept in insertion order."""
        first = store.append(Message(role=Role.USER, content="a"))
        second = store.append(Message(role=Role.ASSISTANT))

        assert [m.id for m in store.snapshot()] == [first.id, second.id]
        assert len(store) == 2
        assert first.id in store

    def test_duplicate_append_fails(self, store):
        """Test that the same id cannot be appended twice."""
        message = store.append(Message(role=Role.USER, content="a"))
        with pytest.raises(ValueError):
            store.append(message)

    def test_update_replaces_only_target(self, store, assistant_message):
        """Test that an update leaves every other message object untouched."""
        before = store.snapshot()

        assert store.update_by_id(assistant_message.id, content="Partial answer")

        after = store.snapshot()
        assert after[0] is before[0]
        assert after[1] is not before[1]
        assert after[1].content == "Partial answer"
        assert after[1].id == assistant_message.id
        # The original object is never mutated
        assert assistant_message.content == ""

    def test_update_sets_artifact_and_error(self, store, assistant_message):
        """Test updating several mutable fields at once."""
        artifact = Artifact.model_validate(KPI_WIDGET)
        store.update_by_id(assistant_message.id, content="Done", artifact=artifact, is_error=True)

        message = store.get(assistant_message.id)
        assert message.artifact == artifact
        assert message.is_error is True

    def test_update_unknown_id_is_noop(self, store, assistant_message):
        """Test that updates for unknown ids are dropped."""
        before = store.snapshot()
        assert store.update_by_id("no-such-id", content="ghost") is False
        assert store.snapshot() == before

    def test_update_immutable_field_fails(self, store, assistant_message):
        """Test that only the pipeline-owned fields can change."""
        with pytest.raises(ValueError):
            store.update_by_id(assistant_message.id, role=Role.USER)

    def test_update_after_reset_is_dropped(self, store, assistant_message):
        """Test that a stream still writing into the old session changes nothing."""
        old_session = store.session_id
        new_session = store.reset()

        assert new_session != old_session
        assert len(store) == 0
        assert store.update_by_id(assistant_message.id, content="late") is False
        assert store.snapshot() == []

    def test_load_and_to_session(self, store):
        """Test restoring a persisted session."""
        session = ConversationSession(
            title="Growth review",
            messages=[Message(role=Role.USER, content="How is growth?")],
        )
        store.load(session)

        assert store.session_id == session.id
        assert store.title == "Growth review"
        assert store.to_session() == session

    def test_to_session_without_title(self, store):
        """Test that an untitled store produces an empty title for the writer to derive."""
        store.append(Message(role=Role.USER, content="a"))
        assert store.to_session().title == ""

    def test_listeners_receive_events(self, store):
        """Test that observers see every mutation kind."""
        events = []
        store.subscribe(lambda s, event: events.append(event.kind))

        message = store.append(Message(role=Role.USER, content="a"))
        store.update_by_id(message.id, content="b")
        store.update_by_id("missing", content="c")
        store.reset()
        store.load(ConversationSession())

        assert events == [
            StoreEventKind.APPEND,
            StoreEventKind.UPDATE,
            StoreEventKind.RESET,
            StoreEventKind.LOAD,
        ]

    def test_unsubscribe(self, store):
        """Test removing an observer."""
        events = []
        unsubscribe = store.subscribe(lambda s, event: events.append(event))
        unsubscribe()
        unsubscribe()

        store.append(Message(role=Role.USER, content="a"))
        assert events == []

    def test_failing_listener_does_not_break_store(self, store, caplog):
        """Test that an observer error is logged and the mutation still happens."""
        def broken(s, event):
            raise RuntimeError("renderer crashed")

        store.subscribe(broken)
        with caplog.at_level("ERROR", logger="consultstream"):
            message = store.append(Message(role=Role.USER, content="a"))

        assert store.get(message.id) == message
        assert any("Store listener failed" in record.message for record in caplog.records)
