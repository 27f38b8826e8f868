"""
Tool Configuration Resolver

Loads agent configuration by composite key, validates it and turns the
orchestrator's delegated tools into ToolDescriptors. Any enabled tool with an
incomplete definition fails resolution.
"""

from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar
import logging

from pydantic import BaseModel, ValidationError

from app.agents.base import Operation
from app.agents.provider_tools_agent import KNOWN_PROVIDER_TOOLS
from app.core.exceptions import AgentException, ConfigurationException, ErrorCode
from app.schemas.agent_config import (
    AgentToolConfig, AgentType, ChatAgentConfig, DelegatedToolConfig, NamedParameterSet,
    ProviderToolsAgentConfig, SimpleParameter, ToolDescriptor, build_config_key
)
from app.services.config_store import AgentConfigStore
from app.services.tool_config_cache import ToolConfigCache

ConfigModel = TypeVar("ConfigModel", bound=BaseModel)

# Prompts each enabled operation needs; revert is deterministic and needs none
REQUIRED_PROMPTS: Dict[Operation, Tuple[str, ...]] = {
    Operation.GENERATE: ("system_prompt",),
    Operation.CREATE: ("system_prompt",),
    Operation.UPDATE: ("system_prompt", "user_prompt_template"),
    Operation.FIX: ("system_prompt", "user_prompt_template"),
    Operation.EXPLAIN: ("system_prompt", "user_prompt_template"),
    Operation.REVERT: (),
    Operation.SUGGESTION: ("system_prompt", "user_prompt_template"),
}

REQUIRED_NAMED_PARAMETERS = ("operation", "instruction")


class ToolConfigResolver:
    """Read-only access to validated agent configuration"""

    def __init__(self, config_store: AgentConfigStore, cache: ToolConfigCache, provider: str):
        self.config_store = config_store
        self.cache = cache
        self.provider = provider
        self.logger = logging.getLogger(self.__class__.__name__)

    async def _load(self, config_key: str) -> Dict[str, Any]:
        data = await self.cache.get(config_key)
        if data is not None:
            return data

        data = await self.config_store.get(config_key)
        if data is None:
            raise ConfigurationException(
                f"No configuration stored under {config_key}",
                config_key=config_key,
                code=ErrorCode.CONFIG_NOT_FOUND
            )
        await self.cache.set(config_key, data)
        self.logger.debug(f"Loaded configuration {config_key} from store")
        return data

    def _parse(self, model: Type[ConfigModel], data: Dict[str, Any], config_key: str) -> ConfigModel:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ConfigurationException(
                f"Configuration {config_key} is malformed: {e}",
                config_key=config_key,
                code=ErrorCode.CONFIG_VALIDATION_FAILED,
                original_error=e
            ) from e

    async def resolve_agent_config(self, agent_type: AgentType, provider: Optional[str] = None) -> AgentToolConfig:
        """
        Load a specialized agent's configuration

        Raises:
            ConfigurationException: missing key, malformed document, unknown
                operation, or an enabled operation without its prompts
        """
        config_key = build_config_key(agent_type, provider or self.provider)
        config = self._parse(AgentToolConfig, await self._load(config_key), config_key)

        for operation_name, tool in config.tools.items():
            if not tool.enabled:
                continue
            try:
                operation = Operation(operation_name)
            except ValueError:
                raise ConfigurationException(
                    f"Unknown operation '{operation_name}' enabled in {config_key}",
                    config_key=config_key
                )
            for field_name in REQUIRED_PROMPTS[operation]:
                value = getattr(tool, field_name)
                if not value or not value.strip():
                    raise ConfigurationException(
                        f"Operation '{operation_name}' in {config_key} is enabled but has no {field_name}",
                        config_key=config_key
                    )
        return config

    async def resolve_provider_tools_config(self, provider: Optional[str] = None) -> ProviderToolsAgentConfig:
        """Load the provider tools agent's configuration; unknown tool names fail resolution"""
        config_key = build_config_key(AgentType.PROVIDER_TOOLS_AGENT, provider or self.provider)
        config = self._parse(ProviderToolsAgentConfig, await self._load(config_key), config_key)

        unknown = [name for name in config.tools if name not in KNOWN_PROVIDER_TOOLS]
        if unknown:
            raise ConfigurationException(
                f"Unknown provider tools in {config_key}: {', '.join(unknown)}",
                config_key=config_key
            )
        if config.enabled and not config.system_prompt.strip():
            raise ConfigurationException(f"{config_key} is enabled but has no systemPrompt", config_key=config_key)
        return config

    async def resolve_chat_config(self, provider: Optional[str] = None) -> ChatAgentConfig:
        """Load the primary agent's configuration; it must be enabled with at least one enabled model"""
        config_key = build_config_key(AgentType.CHAT_MODEL_AGENT, provider or self.provider)
        config = self._parse(ChatAgentConfig, await self._load(config_key), config_key)

        if not config.enabled:
            raise ConfigurationException(f"The chat agent in {config_key} is disabled", config_key=config_key)
        if not config.enabled_models():
            raise ConfigurationException(f"{config_key} has no enabled models", config_key=config_key)
        return config

    def _descriptor(self, name: str, tool: DelegatedToolConfig, config_key: str) -> ToolDescriptor:
        if not tool.description or not tool.description.strip():
            raise ConfigurationException(f"Tool '{name}' is enabled but has no description", config_key=config_key)

        schema = tool.tool_input
        if schema is None:
            raise ConfigurationException(f"Tool '{name}' is enabled but has no tool_input", config_key=config_key)

        if isinstance(schema, SimpleParameter):
            if not schema.parameter_name.strip() or not (schema.parameter_description or "").strip():
                raise ConfigurationException(
                    f"Tool '{name}' needs a parameter name and description",
                    config_key=config_key
                )
        elif isinstance(schema, NamedParameterSet):
            missing = [param for param in REQUIRED_NAMED_PARAMETERS if param not in schema.parameters]
            if missing:
                raise ConfigurationException(
                    f"Tool '{name}' is missing parameters: {', '.join(missing)}",
                    config_key=config_key
                )
            for param_name, param in schema.parameters.items():
                if not (param.parameter_description or "").strip():
                    raise ConfigurationException(
                        f"Parameter '{param_name}' of tool '{name}' has no description",
                        config_key=config_key
                    )

        return ToolDescriptor(
            name=name,
            enabled=True,
            description=tool.description.strip(),
            input_parameter_schema=schema
        )

    async def resolve(self, tool_name: str, provider: Optional[str] = None) -> ToolDescriptor:
        """Validate and describe one delegated tool"""
        provider = provider or self.provider
        config_key = build_config_key(AgentType.CHAT_MODEL_AGENT, provider)
        chat_config = await self.resolve_chat_config(provider)

        tool = chat_config.tools.get(tool_name)
        if tool is None:
            raise ConfigurationException(
                f"Tool '{tool_name}' is not configured in {config_key}",
                config_key=config_key,
                code=ErrorCode.CONFIG_NOT_FOUND
            )
        if not tool.enabled:
            raise AgentException(f"Tool '{tool_name}' is disabled", agent=tool_name)
        return self._descriptor(tool_name, tool, config_key)

    async def resolve_tools(
        self,
        provider: Optional[str] = None,
        chat_config: Optional[ChatAgentConfig] = None
    ) -> List[ToolDescriptor]:
        """Every enabled delegated tool, validated; one incomplete tool fails the whole set"""
        provider = provider or self.provider
        config_key = build_config_key(AgentType.CHAT_MODEL_AGENT, provider)
        if chat_config is None:
            chat_config = await self.resolve_chat_config(provider)

        descriptors = [
            self._descriptor(name, tool, config_key)
            for name, tool in chat_config.tools.items()
            if tool.enabled
        ]
        self.logger.info(f"Resolved {len(descriptors)} enabled tools from {config_key}")
        return descriptors

    async def invalidate(self, config_key: str) -> None:
        await self.cache.invalidate(config_key)
