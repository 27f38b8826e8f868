"""
Integration Tests: HTTP API
===========================

Runs the FastAPI app in-process with in-memory services:
1. Chat turn streamed over SSE
2. Artifact version reads
3. Configuration read and partial update
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from langchain_core.messages import AIMessageChunk
from pydantic import ValidationError

from app.core.dependencies import cleanup_services, initialize_services
from app.main import app
from app.schemas.agent_config import ChatAgentConfig
from app.schemas.artifact import ArtifactKind

from conftest import TEST_PROVIDER, tool_call_chunk

CHAT_KEY = f"chat_model_agent_{TEST_PROVIDER}"
PYTHON_KEY = f"python_agent_{TEST_PROVIDER}"
PROVIDER_TOOLS_KEY = f"provider_tools_agent_{TEST_PROVIDER}"


@pytest.fixture
async def client(services):
    await initialize_services(services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
    await cleanup_services()


def parse_sse(body: str):
    """Split an SSE body into (event, data) pairs"""
    events = []
    event_name, data_lines = None, []
    for line in body.splitlines():
        if line.startswith("event:"):
            event_name = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:"):].strip())
        elif not line.strip() and data_lines:
            events.append((event_name, json.loads("\n".join(data_lines))))
            event_name, data_lines = None, []
    if data_lines:
        events.append((event_name, json.loads("\n".join(data_lines))))
    return events


async def seed_artifact(store, versions=("v1", "v2")):
    for content in versions:
        await store.save_version(
            "art-1", content=content, title="Reverse", kind=ArtifactKind.CODE,
            user_id="user-123", chat_id="chat-1"
        )


@pytest.mark.integration
class TestChatEndpoint:

    @pytest.mark.asyncio
    async def test_chat_turn_streams_artifact_and_summary(self, client, generation_client, artifact_store):
        """A turn that creates code streams the artifact, the reply text and a done summary"""
        generation_client.chat_turns = [
            [AIMessageChunk(
                content="",
                tool_call_chunks=[tool_call_chunk(
                    "pythonAgent", json.dumps({"input": "write a function that reverses a string"}), "call-1"
                )]
            )],
            [AIMessageChunk(content="Here is your function.")],
        ]

        response = await client.post(
            "/api/v1/chat",
            json={"chat_id": "chat-1", "messages": [{"role": "user", "content": "Reverse a string in Python"}]},
            headers={"X-User-Id": "user-123", "X-Correlation-Id": "corr_api_test"}
        )

        assert response.status_code == 200
        assert response.headers["x-correlation-id"] == "corr_api_test"

        events = parse_sse(response.text)
        names = [name for name, _ in events]
        assert names[:4] == ["data-kind", "data-id", "data-title", "data-clear"]
        assert names.count("data-finish") == 1
        assert "data-codeDelta" in names
        assert names[-2:] == ["text-delta", "done"]

        summary = events[-1][1]
        assert summary["text"] == "Here is your function."
        assert summary["tool_rounds"] == 1
        assert summary["correlation_id"] == "corr_api_test"
        assert len(summary["artifacts"]) == 1

        saved = await artifact_store.list_by_chat("chat-1")
        assert [record.id for record in saved] == [summary["artifacts"][0]["id"]]
        assert saved[0].user_id == "user-123"

    @pytest.mark.asyncio
    async def test_empty_history_is_rejected(self, client):
        response = await client.post("/api/v1/chat", json={"messages": []})

        assert response.status_code == 422


@pytest.mark.integration
class TestArtifactEndpoints:

    @pytest.mark.asyncio
    async def test_current_version(self, client, artifact_store):
        await seed_artifact(artifact_store)

        response = await client.get("/api/v1/artifacts/art-1")

        assert response.status_code == 200
        assert response.json()["version_number"] == 2
        assert response.json()["content"] == "v2"

    @pytest.mark.asyncio
    async def test_version_listing(self, client, artifact_store):
        await seed_artifact(artifact_store)

        response = await client.get("/api/v1/artifacts/art-1/versions")

        assert [entry["version_number"] for entry in response.json()] == [1, 2]
        assert "content" not in response.json()[0]

    @pytest.mark.asyncio
    async def test_specific_version(self, client, artifact_store):
        await seed_artifact(artifact_store)

        response = await client.get("/api/v1/artifacts/art-1/versions/1")

        assert response.json()["content"] == "v1"

    @pytest.mark.asyncio
    async def test_chat_listing(self, client, artifact_store):
        await seed_artifact(artifact_store)

        response = await client.get("/api/v1/artifacts", params={"chat_id": "chat-1"})

        assert [entry["id"] for entry in response.json()] == ["art-1"]

    @pytest.mark.asyncio
    async def test_missing_artifact(self, client):
        response = await client.get("/api/v1/artifacts/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ARTIFACT_NOT_FOUND"
        assert response.headers["x-error-code"] == "ARTIFACT_NOT_FOUND"


@pytest.mark.integration
class TestConfigEndpoints:

    @pytest.mark.asyncio
    async def test_get_config(self, client):
        response = await client.get(f"/api/v1/config/{CHAT_KEY}")

        assert response.status_code == 200
        assert response.json()["config_data"]["enabled"] is True

    @pytest.mark.asyncio
    async def test_unknown_key(self, client):
        response = await client.get("/api/v1/config/rust_agent_test")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_patch_merges_and_invalidates(self, client, services, config_store):
        """A partial update is merged and visible to the next resolution"""
        await services.resolver.resolve_agent_config(services.registry.agent_class("pythonAgent").agent_type)

        response = await client.patch(
            f"/api/v1/config/{PYTHON_KEY}",
            json={"tools": {"update": {"enabled": False}}},
            headers={"X-User-Id": "admin"}
        )

        assert response.status_code == 200
        stored = await config_store.get(PYTHON_KEY)
        assert stored["tools"]["update"]["enabled"] is False
        assert stored["tools"]["update"]["userPromptTemplate"]

        config = await services.resolver.resolve_agent_config(services.registry.agent_class("pythonAgent").agent_type)
        assert not config.tools["update"].enabled

    @pytest.mark.asyncio
    async def test_patch_rejects_invalid_document(self, client, config_store):
        response = await client.patch(f"/api/v1/config/{CHAT_KEY}", json={"availableModels": "all"})

        assert response.status_code == 422
        assert isinstance((await config_store.get(CHAT_KEY))["availableModels"], list)

    @pytest.mark.asyncio
    async def test_patch_provider_tools_config(self, client, config_store):
        response = await client.patch(
            f"/api/v1/config/{PROVIDER_TOOLS_KEY}",
            json={"tools": {"codeExecution": {"enabled": True}}}
        )

        assert response.status_code == 200
        stored = await config_store.get(PROVIDER_TOOLS_KEY)
        assert stored["tools"]["codeExecution"]["enabled"] is True
        assert stored["tools"]["googleSearch"]["enabled"] is True

    @pytest.mark.asyncio
    async def test_patch_rejects_invalid_provider_tools_config(self, client, config_store):
        response = await client.patch(
            f"/api/v1/config/{PROVIDER_TOOLS_KEY}",
            json={"tools": {"codeExecution": {"enabled": "sometimes"}}}
        )

        assert response.status_code == 422
        assert (await config_store.get(PROVIDER_TOOLS_KEY))["tools"]["codeExecution"]["enabled"] is False


class TestConfigStoreUpdate:
    """Deep-merge updates with validation"""

    @pytest.mark.asyncio
    async def test_validate_sees_merged_document(self, config_store):
        seen = []

        await config_store.update(CHAT_KEY, {"systemPrompt": "Be brief."}, validate=seen.append)

        assert seen[0]["systemPrompt"] == "Be brief."
        assert seen[0]["availableModels"]

    @pytest.mark.asyncio
    async def test_failed_validation_stores_nothing(self, config_store):
        with pytest.raises(ValidationError):
            await config_store.update(
                CHAT_KEY, {"availableModels": "all"}, validate=ChatAgentConfig.model_validate
            )

        assert isinstance((await config_store.get(CHAT_KEY))["availableModels"], list)


@pytest.mark.integration
class TestServiceEndpoints:

    @pytest.mark.asyncio
    async def test_health(self, client):
        with patch("app.main.get_db_health_info", AsyncMock(return_value={"status": "healthy"})):
            response = await client.get("/health")

        assert response.json()["status"] == "healthy"
        assert "x-correlation-id" in response.headers

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        assert response.json()["api_base"] == "/api/v1"
