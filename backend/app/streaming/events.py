"""
Typed stream events consumed by the chat UI
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class StreamEventType(str, Enum):
    """Wire tags of the event protocol"""
    KIND = "data-kind"
    ID = "data-id"
    TITLE = "data-title"
    CLEAR = "data-clear"
    CODE_DELTA = "data-codeDelta"
    TEXT_DELTA = "data-textDelta"
    SUGGESTION = "data-suggestion"
    FINISH = "data-finish"
    # Primary model tokens and turn-level failures
    TEXT = "text-delta"
    ERROR = "error"


HEADER_EVENT_TYPES = (
    StreamEventType.KIND,
    StreamEventType.ID,
    StreamEventType.TITLE,
    StreamEventType.CLEAR,
)

DELTA_EVENT_TYPES = (StreamEventType.CODE_DELTA, StreamEventType.TEXT_DELTA, StreamEventType.SUGGESTION)


class StreamEvent(BaseModel):
    """
    One unit of the streaming protocol

    ``transient`` events are rendered live but never persisted in the
    conversation history.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: StreamEventType
    data: Any = None
    transient: bool = True
    artifact_id: Optional[str] = Field(default=None, alias="artifactId")

    @property
    def is_header(self) -> bool:
        return self.type in HEADER_EVENT_TYPES

    @property
    def is_delta(self) -> bool:
        return self.type in DELTA_EVENT_TYPES

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type.value,
            "data": self.data,
            "transient": self.transient,
        }
        if self.artifact_id is not None:
            payload["artifactId"] = self.artifact_id
        return payload

    def to_sse(self) -> Dict[str, str]:
        """Event dict in the shape expected by sse-starlette"""
        return {"event": self.type.value, "data": json.dumps(self.to_wire())}


def text_event(delta: str) -> StreamEvent:
    return StreamEvent(type=StreamEventType.TEXT, data=delta)


def error_event(message: str, code: str, correlation_id: Optional[str]) -> StreamEvent:
    return StreamEvent(
        type=StreamEventType.ERROR,
        data={"message": message, "code": code, "correlationId": correlation_id},
        transient=False,
    )
