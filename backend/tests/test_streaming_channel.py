"""
Unit Tests: Streaming Event Channel
===================================

Per-artifact ordering rules and channel lifecycle.
"""

import asyncio
import json

import pytest

from app.core.exceptions import StreamingException
from app.streaming.channel import ArtifactStreamGuard, ArtifactStreamState, ArtifactWriter, EventChannel
from app.streaming.events import StreamEvent, StreamEventType, error_event, text_event


def artifact_event(event_type, artifact_id="a1", data=None):
    return StreamEvent(type=event_type, data=data, artifact_id=artifact_id)


class TestArtifactStreamGuard:
    """Ordering checks applied to every write"""

    def test_full_sequence(self):
        guard = ArtifactStreamGuard()

        for event_type in (StreamEventType.KIND, StreamEventType.ID, StreamEventType.TITLE, StreamEventType.CLEAR):
            guard.check(artifact_event(event_type))
        guard.check(artifact_event(StreamEventType.CODE_DELTA, data="x"))
        guard.check(artifact_event(StreamEventType.CODE_DELTA, data="xy"))
        guard.check(artifact_event(StreamEventType.FINISH))

        assert guard.state_of("a1") == ArtifactStreamState.FINISHED
        assert guard.active_artifact is None

    def test_delta_before_header(self):
        with pytest.raises(StreamingException):
            ArtifactStreamGuard().check(artifact_event(StreamEventType.CODE_DELTA, data="x"))

    def test_header_after_delta(self):
        guard = ArtifactStreamGuard()
        guard.check(artifact_event(StreamEventType.KIND, data="code"))
        guard.check(artifact_event(StreamEventType.CODE_DELTA, data="x"))

        with pytest.raises(StreamingException):
            guard.check(artifact_event(StreamEventType.TITLE, data="late"))

    def test_finish_without_open_stream(self):
        with pytest.raises(StreamingException):
            ArtifactStreamGuard().check(artifact_event(StreamEventType.FINISH))

    def test_second_finish_is_rejected(self):
        guard = ArtifactStreamGuard()
        guard.check(artifact_event(StreamEventType.KIND, data="code"))
        guard.check(artifact_event(StreamEventType.FINISH))

        with pytest.raises(StreamingException):
            guard.check(artifact_event(StreamEventType.FINISH))

    def test_interleaving_artifacts_is_rejected(self):
        """A second artifact cannot start while the first is still open"""
        guard = ArtifactStreamGuard()
        guard.check(artifact_event(StreamEventType.KIND, "a1", "code"))

        with pytest.raises(StreamingException):
            guard.check(artifact_event(StreamEventType.KIND, "a2", "document"))

    def test_model_text_while_artifact_open(self):
        guard = ArtifactStreamGuard()
        guard.check(artifact_event(StreamEventType.KIND, data="code"))

        with pytest.raises(StreamingException):
            guard.check(text_event("hello"))

    def test_errors_are_always_allowed(self):
        guard = ArtifactStreamGuard()
        guard.check(artifact_event(StreamEventType.KIND, data="code"))

        guard.check(error_event("boom", "STREAMING_FAILED", "corr_1"))

    def test_finished_artifact_can_reopen(self):
        """A later operation in the same turn may stream the same artifact again"""
        guard = ArtifactStreamGuard()
        guard.check(artifact_event(StreamEventType.KIND, data="code"))
        guard.check(artifact_event(StreamEventType.FINISH))

        guard.check(artifact_event(StreamEventType.KIND, data="code"))

        assert guard.state_of("a1") == ArtifactStreamState.HEADER

    def test_missing_artifact_id(self):
        with pytest.raises(StreamingException):
            ArtifactStreamGuard().check(StreamEvent(type=StreamEventType.KIND, data="code"))


class TestEventChannel:
    """Queueing, draining and closing"""

    @pytest.mark.asyncio
    async def test_consumer_receives_events_in_order(self):
        channel = EventChannel()
        writer = ArtifactWriter(channel, "a1", "code", "Reverse")

        channel.write(text_event("Sure. "))
        writer.open()
        writer.replace("def")
        writer.replace("def f(): pass")
        writer.finish()
        channel.write(text_event("Done."))
        channel.close()

        received = [event async for event in channel]

        assert [event.type for event in received] == [
            StreamEventType.TEXT,
            StreamEventType.KIND, StreamEventType.ID, StreamEventType.TITLE, StreamEventType.CLEAR,
            StreamEventType.CODE_DELTA, StreamEventType.CODE_DELTA,
            StreamEventType.FINISH,
            StreamEventType.TEXT,
        ]
        assert channel.events_written == 9

    @pytest.mark.asyncio
    async def test_consumer_waits_for_producer(self):
        channel = EventChannel()

        async def produce():
            await asyncio.sleep(0)
            channel.write(text_event("a"))
            await asyncio.sleep(0)
            channel.write(text_event("b"))
            channel.close()

        producer = asyncio.create_task(produce())
        received = [event.data async for event in channel]
        await producer

        assert received == ["a", "b"]

    def test_write_after_close(self):
        channel = EventChannel()
        channel.close()

        with pytest.raises(StreamingException):
            channel.write(text_event("late"))

    def test_rejected_event_is_not_queued(self):
        channel = EventChannel()

        with pytest.raises(StreamingException):
            channel.write(artifact_event(StreamEventType.FINISH))

        assert channel.drain() == []

    def test_writer_finishes_once(self):
        channel = EventChannel()
        writer = ArtifactWriter(channel, "a1", "document", "Notes")
        writer.open()
        writer.append("# Notes")
        writer.finish()
        writer.finish()

        types = [event.type for event in channel.drain()]
        assert types.count(StreamEventType.FINISH) == 1
        assert StreamEventType.TEXT_DELTA in types

    def test_writer_open_without_clear_keeps_content(self):
        """Suggestion streams announce the artifact without clearing it"""
        channel = EventChannel()
        writer = ArtifactWriter(channel, "a1", "document", "Notes")
        writer.open(clear=False)
        writer.suggest({"id": "s1", "originalText": "a", "suggestedText": "b", "description": "c"})
        writer.finish()

        events = channel.drain()
        assert [event.type for event in events] == [
            StreamEventType.KIND, StreamEventType.ID, StreamEventType.TITLE,
            StreamEventType.SUGGESTION, StreamEventType.FINISH,
        ]
        assert events[3].data["suggestedText"] == "b"
        assert events[3].transient

    def test_suggestion_before_header_is_rejected(self):
        channel = EventChannel()
        writer = ArtifactWriter(channel, "a1", "document", "Notes")

        with pytest.raises(StreamingException):
            writer.suggest({"id": "s1"})


class TestStreamEvent:

    def test_wire_format(self):
        event = StreamEvent(type=StreamEventType.CODE_DELTA, data="x = 1", artifact_id="a1")

        assert event.to_wire() == {"type": "data-codeDelta", "data": "x = 1", "transient": True, "artifactId": "a1"}

    def test_sse_format(self):
        sse = text_event("hi").to_sse()

        assert sse["event"] == "text-delta"
        assert json.loads(sse["data"]) == {"type": "text-delta", "data": "hi", "transient": True}

    def test_error_event_is_persistent(self):
        event = error_event("Boom", "STREAMING_FAILED", "corr_1")

        assert event.transient is False
        assert event.data == {"message": "Boom", "code": "STREAMING_FAILED", "correlationId": "corr_1"}
