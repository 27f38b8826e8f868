from app.streaming.events import StreamEvent, StreamEventType, text_event, error_event
from app.streaming.channel import (
    StreamSink, EventChannel, ArtifactStreamGuard, ArtifactStreamState, ArtifactWriter
)

__all__ = [
    "StreamEvent",
    "StreamEventType",
    "text_event",
    "error_event",
    "StreamSink",
    "EventChannel",
    "ArtifactStreamGuard",
    "ArtifactStreamState",
    "ArtifactWriter",
]
