"""
Chat streaming API endpoint
Runs one orchestrator turn per request and relays its events over SSE
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from app.agents.orchestrator import ChatOrchestrator
from app.core.correlation import correlation_scope, get_correlation_id, new_correlation_id
from app.core.dependencies import get_identity, get_orchestrator
from app.core.exceptions import ArtifactAgentsException, ErrorCode, get_user_friendly_message
from app.schemas.chat import ChatRequest, Identity
from app.streaming.channel import EventChannel
from app.streaming.events import error_event

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("")
async def chat(
    request: ChatRequest,
    identity: Identity = Depends(get_identity),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator)
):
    """
    Stream one chat turn

    Events are named after their wire tag. A final ``done`` event carries the
    turn summary; a failed turn ends with an ``error`` event instead.
    """
    identity = identity.model_copy(update={"chat_id": request.chat_id})
    correlation_id = get_correlation_id() or new_correlation_id()
    channel = EventChannel()

    async def run_turn():
        with correlation_scope(correlation_id):
            try:
                return await orchestrator.converse(request.messages, channel, identity, model_id=request.model_id)
            except ArtifactAgentsException as e:
                logger.error(f"Chat turn failed: {e.details.message}", extra=e.to_log_dict())
                channel.write(error_event(e.user_message(), e.code.value, e.correlation_id))
            except Exception as e:
                logger.error(f"Chat turn failed unexpectedly: {e}", exc_info=True)
                channel.write(error_event(
                    get_user_friendly_message(ErrorCode.STREAMING_FAILED),
                    ErrorCode.STREAMING_FAILED.value,
                    correlation_id
                ))
            finally:
                channel.close()
            return None

    async def event_stream():
        turn = asyncio.create_task(run_turn())
        try:
            async for event in channel:
                yield event.to_sse()

            result = await turn
            if result is not None:
                yield {"event": "done", "data": json.dumps(result.model_dump(mode="json"))}
        finally:
            if not turn.done():
                logger.info(f"Client disconnected, cancelling turn [{correlation_id}]")
                turn.cancel()

    return EventSourceResponse(event_stream(), headers={"X-Correlation-Id": correlation_id})
