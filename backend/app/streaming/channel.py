"""
Streaming Event Channel
Single-writer ordered sink that relays artifact and model events to the UI
"""

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from app.core.exceptions import StreamingException
from app.streaming.events import StreamEvent, StreamEventType

logger = logging.getLogger(__name__)


class StreamSink(Protocol):
    """Anything that accepts stream events in order"""

    def write(self, event: StreamEvent) -> None:
        ...


class ArtifactStreamState(Enum):
    HEADER = "header"
    STREAMING = "streaming"
    FINISHED = "finished"


class ArtifactStreamGuard:
    """
    Enforces per-artifact event ordering on a turn's stream

    Header events open an artifact stream, deltas follow, and one finish closes
    it. While a stream is open, no other artifact's events and no model text
    may be written. A finished artifact may be opened again by a later
    operation in the same turn.
    """

    def __init__(self):
        self._states: Dict[str, ArtifactStreamState] = {}
        self._active: Optional[str] = None

    @property
    def active_artifact(self) -> Optional[str]:
        return self._active

    def state_of(self, artifact_id: str) -> Optional[ArtifactStreamState]:
        return self._states.get(artifact_id)

    def check(self, event: StreamEvent) -> None:
        if event.type == StreamEventType.ERROR:
            return

        if event.type == StreamEventType.TEXT:
            if self._active is not None:
                raise StreamingException(
                    f"Model text written while artifact {self._active} is streaming",
                    context={"artifact_id": self._active}
                )
            return

        artifact_id = event.artifact_id
        if not artifact_id:
            raise StreamingException(f"{event.type.value} event is missing its artifact id")

        if self._active is not None and self._active != artifact_id:
            raise StreamingException(
                f"{event.type.value} for artifact {artifact_id} interleaves with open artifact {self._active}",
                context={"artifact_id": artifact_id, "open_artifact_id": self._active}
            )

        state = self._states.get(artifact_id)

        if event.is_header:
            if state == ArtifactStreamState.STREAMING:
                raise StreamingException(
                    f"Header for artifact {artifact_id} written after its deltas",
                    context={"artifact_id": artifact_id}
                )
            self._states[artifact_id] = ArtifactStreamState.HEADER
            self._active = artifact_id
        elif event.is_delta:
            if state not in (ArtifactStreamState.HEADER, ArtifactStreamState.STREAMING):
                raise StreamingException(
                    f"Delta for artifact {artifact_id} written before its header",
                    context={"artifact_id": artifact_id}
                )
            self._states[artifact_id] = ArtifactStreamState.STREAMING
        elif event.type == StreamEventType.FINISH:
            if state not in (ArtifactStreamState.HEADER, ArtifactStreamState.STREAMING):
                raise StreamingException(
                    f"Finish for artifact {artifact_id} without an open stream",
                    context={"artifact_id": artifact_id}
                )
            self._states[artifact_id] = ArtifactStreamState.FINISHED
            self._active = None


_CLOSED = object()


class EventChannel:
    """
    Ordered in-process event channel for one chat turn

    Writes never block; the consumer drains events with ``async for``. Every
    write is checked against an ArtifactStreamGuard before it is queued.
    """

    def __init__(self, guard: Optional[ArtifactStreamGuard] = None):
        self.guard = guard or ArtifactStreamGuard()
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._closed = False
        self.events_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, event: StreamEvent) -> None:
        if self._closed:
            raise StreamingException(f"Cannot write {event.type.value}: channel is closed")
        self.guard.check(event)
        self._queue.put_nowait(event)
        self.events_written += 1

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def drain(self) -> List[StreamEvent]:
        """Return every event queued so far without waiting"""
        events: List[StreamEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                # keep the close marker for any later consumer
                self._queue.put_nowait(_CLOSED)
                break
            events.append(item)
        return events


class ArtifactWriter:
    """Writes one artifact's header, delta and finish events to a sink"""

    def __init__(self, sink: StreamSink, artifact_id: str, kind: str, title: str):
        self.sink = sink
        self.artifact_id = artifact_id
        self.kind = kind
        self.title = title
        self.opened = False
        self.finished = False

    def _event(self, event_type: StreamEventType, data=None) -> StreamEvent:
        return StreamEvent(type=event_type, data=data, transient=True, artifact_id=self.artifact_id)

    def open(self, clear: bool = True) -> None:
        """
        Write the header events so the UI can render the artifact panel

        Without ``clear`` the panel keeps its content, for streams that
        annotate an artifact instead of rewriting it.
        """
        header = [
            (StreamEventType.KIND, self.kind),
            (StreamEventType.ID, self.artifact_id),
            (StreamEventType.TITLE, self.title),
        ]
        if clear:
            header.append((StreamEventType.CLEAR, None))
        for event_type, data in header:
            self.sink.write(self._event(event_type, data))
        self.opened = True

    def replace(self, content: str) -> None:
        """Send the whole buffer; the UI replaces what it shows"""
        self.sink.write(self._event(StreamEventType.CODE_DELTA, content))

    def append(self, delta: str) -> None:
        """Send a text fragment; the UI appends it"""
        self.sink.write(self._event(StreamEventType.TEXT_DELTA, delta))

    def suggest(self, suggestion: Dict[str, Any]) -> None:
        """Send one proposed edit of the artifact"""
        self.sink.write(self._event(StreamEventType.SUGGESTION, suggestion))

    def finish(self) -> None:
        if self.opened and not self.finished:
            self.finished = True
            self.sink.write(self._event(StreamEventType.FINISH))
