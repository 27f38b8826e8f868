"""
Unit Tests: Tool Configuration Resolver
=======================================

Validation of agent configuration documents and caching by config key.
"""

import pytest

from app.agents.tool_config_resolver import ToolConfigResolver
from app.core.exceptions import AgentException, ConfigurationException, ErrorCode
from app.schemas.agent_config import AgentType, NamedParameterSet, SimpleParameter, build_config_key, parse_config_key
from app.services.config_store import InMemoryAgentConfigStore
from app.services.tool_config_cache import InMemoryToolConfigCache

from conftest import TEST_PROVIDER

CHAT_KEY = build_config_key(AgentType.CHAT_MODEL_AGENT, TEST_PROVIDER)
PYTHON_KEY = build_config_key(AgentType.PYTHON_AGENT, TEST_PROVIDER)
PROVIDER_TOOLS_KEY = build_config_key(AgentType.PROVIDER_TOOLS_AGENT, TEST_PROVIDER)


def make_resolver(configs):
    return ToolConfigResolver(InMemoryAgentConfigStore(configs), InMemoryToolConfigCache(), TEST_PROVIDER)


class TestResolveTools:
    """Delegated tool descriptors for the primary agent"""

    @pytest.mark.asyncio
    async def test_resolves_enabled_tools(self, agent_configs):
        resolver = make_resolver(agent_configs)

        descriptors = await resolver.resolve_tools()

        assert [d.name for d in descriptors] == ["pythonAgent", "mermaidAgent", "documentAgent", "providerToolsAgent"]
        assert all(d.enabled for d in descriptors)
        schemas = {d.name: d.input_parameter_schema for d in descriptors}
        assert isinstance(schemas["pythonAgent"], SimpleParameter)
        assert isinstance(schemas["providerToolsAgent"], SimpleParameter)
        assert isinstance(schemas["documentAgent"], NamedParameterSet)
        assert "suggestion" in schemas["documentAgent"].parameters["operation"].enum

    @pytest.mark.asyncio
    async def test_disabled_tools_are_skipped(self, agent_configs):
        agent_configs[CHAT_KEY]["tools"]["mermaidAgent"]["enabled"] = False
        resolver = make_resolver(agent_configs)

        descriptors = await resolver.resolve_tools()

        assert "mermaidAgent" not in [d.name for d in descriptors]

    @pytest.mark.asyncio
    async def test_empty_description_fails_resolution(self, agent_configs):
        """An enabled tool with a blank description is a configuration error"""
        agent_configs[CHAT_KEY]["tools"]["documentAgent"]["description"] = "   "
        resolver = make_resolver(agent_configs)

        with pytest.raises(ConfigurationException) as exc_info:
            await resolver.resolve_tools()

        assert exc_info.value.code == ErrorCode.INVALID_CONFIGURATION
        assert "documentAgent" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_tool_input_fails_resolution(self, agent_configs):
        del agent_configs[CHAT_KEY]["tools"]["pythonAgent"]["tool_input"]
        resolver = make_resolver(agent_configs)

        with pytest.raises(ConfigurationException):
            await resolver.resolve_tools()

    @pytest.mark.asyncio
    async def test_named_parameters_need_operation_and_instruction(self, agent_configs):
        agent_configs[CHAT_KEY]["tools"]["pythonAgent"]["tool_input"] = {
            "type": "named",
            "parameters": {"instruction": {"parameter_description": "What to do"}},
        }
        resolver = make_resolver(agent_configs)

        with pytest.raises(ConfigurationException) as exc_info:
            await resolver.resolve_tools()

        assert "operation" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_named_parameters(self, agent_configs):
        agent_configs[CHAT_KEY]["tools"]["pythonAgent"]["tool_input"] = {
            "type": "named",
            "parameters": {
                "operation": {"parameter_description": "Operation", "enum": ["create", "update"]},
                "instruction": {"parameter_description": "What to do"},
                "artifact_id": {"parameter_description": "Artifact to change"},
            },
        }
        resolver = make_resolver(agent_configs)

        descriptor = await resolver.resolve("pythonAgent")

        assert isinstance(descriptor.input_parameter_schema, NamedParameterSet)
        assert set(descriptor.input_parameter_schema.parameters) == {"operation", "instruction", "artifact_id"}

    @pytest.mark.asyncio
    async def test_resolve_unknown_tool(self, agent_configs):
        resolver = make_resolver(agent_configs)

        with pytest.raises(ConfigurationException) as exc_info:
            await resolver.resolve("rustAgent")

        assert exc_info.value.code == ErrorCode.CONFIG_NOT_FOUND

    @pytest.mark.asyncio
    async def test_resolve_disabled_tool(self, agent_configs):
        agent_configs[CHAT_KEY]["tools"]["pythonAgent"]["enabled"] = False
        resolver = make_resolver(agent_configs)

        with pytest.raises(AgentException) as exc_info:
            await resolver.resolve("pythonAgent")

        assert exc_info.value.code == ErrorCode.AGENT_DISABLED


class TestResolveChatConfig:
    """Primary agent configuration"""

    @pytest.mark.asyncio
    async def test_missing_config_key(self):
        resolver = make_resolver({})

        with pytest.raises(ConfigurationException) as exc_info:
            await resolver.resolve_chat_config()

        assert exc_info.value.code == ErrorCode.CONFIG_NOT_FOUND
        assert exc_info.value.details.context["config_key"] == CHAT_KEY

    @pytest.mark.asyncio
    async def test_disabled_chat_agent(self, agent_configs):
        agent_configs[CHAT_KEY]["enabled"] = False

        with pytest.raises(ConfigurationException):
            await make_resolver(agent_configs).resolve_chat_config()

    @pytest.mark.asyncio
    async def test_no_enabled_models(self, agent_configs):
        for model in agent_configs[CHAT_KEY]["availableModels"]:
            model["enabled"] = False

        with pytest.raises(ConfigurationException):
            await make_resolver(agent_configs).resolve_chat_config()

    @pytest.mark.asyncio
    async def test_malformed_document(self, agent_configs):
        agent_configs[CHAT_KEY]["availableModels"] = "gemini"

        with pytest.raises(ConfigurationException) as exc_info:
            await make_resolver(agent_configs).resolve_chat_config()

        assert exc_info.value.code == ErrorCode.CONFIG_VALIDATION_FAILED

    @pytest.mark.asyncio
    async def test_default_model(self, agent_configs):
        config = await make_resolver(agent_configs).resolve_chat_config()

        assert config.default_model().id == "gemini-2.0-flash"
        assert len(config.enabled_models()) == 2


class TestResolveAgentConfig:
    """Specialized agent configuration"""

    @pytest.mark.asyncio
    async def test_valid_agent_config(self, agent_configs):
        config = await make_resolver(agent_configs).resolve_agent_config(AgentType.PYTHON_AGENT)

        assert config.enabled
        assert set(config.tools) == {"generate", "create", "update", "fix", "explain", "revert"}
        assert "{currentContent}" in config.tools["update"].user_prompt_template

    @pytest.mark.asyncio
    async def test_enabled_operation_without_template(self, agent_configs):
        """update, fix and explain need a user prompt template"""
        del agent_configs[PYTHON_KEY]["tools"]["fix"]["userPromptTemplate"]

        with pytest.raises(ConfigurationException) as exc_info:
            await make_resolver(agent_configs).resolve_agent_config(AgentType.PYTHON_AGENT)

        assert "user_prompt_template" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_disabled_operation_may_be_incomplete(self, agent_configs):
        agent_configs[PYTHON_KEY]["tools"]["fix"] = {"enabled": False}

        config = await make_resolver(agent_configs).resolve_agent_config(AgentType.PYTHON_AGENT)

        assert not config.tools["fix"].enabled

    @pytest.mark.asyncio
    async def test_unknown_operation(self, agent_configs):
        agent_configs[PYTHON_KEY]["tools"]["deploy"] = {"enabled": True, "systemPrompt": "Deploy it"}

        with pytest.raises(ConfigurationException):
            await make_resolver(agent_configs).resolve_agent_config(AgentType.PYTHON_AGENT)


    @pytest.mark.asyncio
    async def test_document_suggestion_needs_template(self, agent_configs):
        document_key = build_config_key(AgentType.DOCUMENT_AGENT, TEST_PROVIDER)
        config = await make_resolver(agent_configs).resolve_agent_config(AgentType.DOCUMENT_AGENT)
        assert "{instruction}" in config.tools["suggestion"].user_prompt_template

        del agent_configs[document_key]["tools"]["suggestion"]["userPromptTemplate"]
        with pytest.raises(ConfigurationException):
            await make_resolver(agent_configs).resolve_agent_config(AgentType.DOCUMENT_AGENT)


class TestResolveProviderToolsConfig:
    """Provider tools agent configuration"""

    @pytest.mark.asyncio
    async def test_default_config(self, agent_configs):
        config = await make_resolver(agent_configs).resolve_provider_tools_config()

        assert config.enabled
        assert config.enabled_tools() == ["googleSearch", "urlContext"]

    @pytest.mark.asyncio
    async def test_unknown_tool_fails_resolution(self, agent_configs):
        agent_configs[PROVIDER_TOOLS_KEY]["tools"]["imageGeneration"] = {"enabled": True}

        with pytest.raises(ConfigurationException) as exc_info:
            await make_resolver(agent_configs).resolve_provider_tools_config()

        assert "imageGeneration" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_enabled_without_prompt_fails_resolution(self, agent_configs):
        agent_configs[PROVIDER_TOOLS_KEY]["systemPrompt"] = " "

        with pytest.raises(ConfigurationException):
            await make_resolver(agent_configs).resolve_provider_tools_config()


class TestResolverCaching:
    """Configuration is cached per key and invalidated explicitly"""

    @pytest.mark.asyncio
    async def test_cached_until_invalidated(self, agent_configs):
        store = InMemoryAgentConfigStore(agent_configs)
        resolver = ToolConfigResolver(store, InMemoryToolConfigCache(ttl_seconds=300), TEST_PROVIDER)

        await resolver.resolve_chat_config()
        await store.update(CHAT_KEY, {"systemPrompt": "Be brief."})

        assert (await resolver.resolve_chat_config()).system_prompt != "Be brief."

        await resolver.invalidate(CHAT_KEY)

        assert (await resolver.resolve_chat_config()).system_prompt == "Be brief."


class TestConfigKeys:

    def test_build_and_parse(self):
        assert build_config_key(AgentType.PYTHON_AGENT, "google") == "python_agent_google"
        assert parse_config_key("chat_model_agent_google") == (AgentType.CHAT_MODEL_AGENT, "google")
        assert parse_config_key("document_agent_azure_eu") == (AgentType.DOCUMENT_AGENT, "azure_eu")
        assert parse_config_key("provider_tools_agent_google") == (AgentType.PROVIDER_TOOLS_AGENT, "google")

    def test_parse_unknown(self):
        assert parse_config_key("rust_agent_google") is None
        assert parse_config_key("python_agent_") is None
