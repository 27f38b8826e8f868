"""
Artifact Agents - Test Configuration & Fixtures
===============================================

Shared fixtures
- in-memory artifact and configuration stores
- scripted generation client
- seeded agent configuration and the wired service container
"""

import asyncio
import copy
from typing import Any, AsyncIterator, Dict, List, Optional

import pytest
from langchain_core.messages import AIMessageChunk

from app.core.config import settings
from app.core.default_configs import default_agent_configs
from app.core.dependencies import build_services
from app.schemas.chat import Identity
from app.services.activity_logger import AgentActivityLogger
from app.services.artifact_store import InMemoryArtifactStore
from app.services.config_store import InMemoryAgentConfigStore
from app.services.tool_config_cache import InMemoryToolConfigCache
from app.streaming.channel import EventChannel

TEST_PROVIDER = "test"


# ==================== Fakes ====================

def tool_call_chunk(name: str, args: str, call_id: str, index: int = 0) -> Dict[str, Any]:
    return {"name": name, "args": args, "id": call_id, "index": index}


def tool_label(tool: Any) -> str:
    """Name of a bound tool; provider built-in tools are plain dicts"""
    name = getattr(tool, "name", None)
    if name:
        return name
    return tool.get("type") or next(iter(tool))


class FakeGenerationClient:
    """
    Scripted stand-in for GenerationClient

    ``contents`` feed structured generations, ``texts`` feed raw text streams,
    ``items`` feed list generations (one list per call) and ``chat_turns``
    feed the primary model, one list of chunks per call.
    Structured content is streamed as growing prefixes, the way partial JSON
    parsing regenerates the object on every chunk.
    """

    provider_name = "fake"

    def __init__(
        self,
        contents: Optional[List[str]] = None,
        texts: Optional[List[str]] = None,
        items: Optional[List[List[Dict[str, str]]]] = None,
        chat_turns: Optional[List[List[AIMessageChunk]]] = None,
        error: Optional[Exception] = None
    ):
        self.contents = list(contents or [])
        self.texts = list(texts or [])
        self.items = list(items or [])
        self.chat_turns = list(chat_turns or [])
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def resolve_model_id(self, model_id: Optional[str]) -> str:
        return model_id or "fake-model"

    def _next_content(self) -> str:
        return self.contents.pop(0) if self.contents else "def reverse(s):\n    return s[::-1]\n"

    async def stream_object(self, *, system_prompt, prompt, model_id=None, field="content", temperature=None):
        self.calls.append({"method": "stream_object", "system_prompt": system_prompt, "prompt": prompt, "model_id": model_id})
        content = self._next_content()
        if self.error:
            raise self.error
        step = max(1, len(content) // 3)
        for end in list(range(step, len(content), step)) + [len(content)]:
            yield {field: content[:end]}

    async def generate_object(self, *, system_prompt, prompt, model_id=None, field="content", temperature=None):
        self.calls.append({"method": "generate_object", "system_prompt": system_prompt, "prompt": prompt, "model_id": model_id})
        if self.error:
            raise self.error
        return {field: self._next_content()}

    async def stream_text(self, *, system_prompt, prompt, model_id=None, temperature=None):
        self.calls.append({"method": "stream_text", "system_prompt": system_prompt, "prompt": prompt, "model_id": model_id})
        text = self.texts.pop(0) if self.texts else "# Notes\n\nSome text.\n"
        if self.error:
            raise self.error
        step = max(1, len(text) // 3)
        for start in range(0, len(text), step):
            yield text[start:start + step]

    async def stream_items(self, *, system_prompt, prompt, item_fields, model_id=None, field="items", temperature=None):
        self.calls.append({
            "method": "stream_items",
            "system_prompt": system_prompt,
            "prompt": prompt,
            "model_id": model_id,
            "field": field,
        })
        if self.error:
            raise self.error
        for item in (self.items.pop(0) if self.items else []):
            yield {name: item[name] for name in item_fields}

    async def stream_chat(self, *, messages, model_id=None, tools=None, temperature=None):
        self.calls.append({
            "method": "stream_chat",
            "messages": list(messages),
            "model_id": model_id,
            "tools": [tool_label(tool) for tool in tools] if tools else [],
            "temperature": temperature,
        })
        if self.error:
            raise self.error
        chunks = self.chat_turns.pop(0) if self.chat_turns else [AIMessageChunk(content="Done.")]
        for chunk in chunks:
            yield chunk


class BlockingGenerationClient(FakeGenerationClient):
    """Streams one partial object, then waits until cancelled"""

    def __init__(self):
        super().__init__()
        self.first_partial_sent = asyncio.Event()

    async def stream_object(self, *, system_prompt, prompt, model_id=None, field="content", temperature=None):
        yield {field: "def partial("}
        self.first_partial_sent.set()
        await asyncio.Event().wait()


class MidStreamFailureClient(FakeGenerationClient):
    """Streams one partial snapshot, then fails with the given error"""

    def __init__(self, error: Exception, partial: str = "def half_writ"):
        super().__init__()
        self.failure = error
        self.partial = partial

    async def stream_object(self, *, system_prompt, prompt, model_id=None, field="content", temperature=None):
        yield {field: self.partial}
        raise self.failure

    async def stream_text(self, *, system_prompt, prompt, model_id=None, temperature=None):
        yield self.partial
        raise self.failure


# ==================== Configuration ====================

@pytest.fixture
def agent_configs() -> Dict[str, Dict[str, Any]]:
    """Default agent configuration documents under the test provider"""
    return copy.deepcopy(default_agent_configs(TEST_PROVIDER))


@pytest.fixture
def config_store(agent_configs) -> InMemoryAgentConfigStore:
    return InMemoryAgentConfigStore(agent_configs)


@pytest.fixture
def config_cache() -> InMemoryToolConfigCache:
    return InMemoryToolConfigCache(ttl_seconds=60)


# ==================== Stores and clients ====================

@pytest.fixture
def artifact_store() -> InMemoryArtifactStore:
    return InMemoryArtifactStore()


@pytest.fixture
def generation_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def activity_logger() -> AgentActivityLogger:
    return AgentActivityLogger(enabled=True, logger_name="test_agent_activity")


@pytest.fixture
def channel() -> EventChannel:
    return EventChannel()


@pytest.fixture
def identity() -> Identity:
    return Identity(user_id="user-123", chat_id="chat-1")


@pytest.fixture
def services(artifact_store, config_store, config_cache, generation_client):
    """Service container wired with in-memory stores and the fake client"""
    test_settings = settings.model_copy(update={"AGENT_PROVIDER": TEST_PROVIDER})
    return build_services(
        test_settings,
        artifact_store=artifact_store,
        config_store=config_store,
        generation_client=generation_client,
        cache=config_cache
    )


# ==================== Test marker configuration ====================

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
