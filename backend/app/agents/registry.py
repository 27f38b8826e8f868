"""Artifact agent registry: delegated tool name to specialized agent"""

import logging
from typing import Dict, List, Optional, Type

from app.agents.base import SpecializedStreamingAgent
from app.agents.code_agent import CodeAgent
from app.agents.diagram_agent import DiagramAgent
from app.agents.document_agent import DocumentAgent
from app.agents.provider_tools_agent import ProviderToolsAgent
from app.agents.tool_config_resolver import ToolConfigResolver
from app.core.exceptions import AgentException, ErrorCode
from app.services.activity_logger import AgentActivityLogger
from app.services.artifact_store import ArtifactVersionStore

PROVIDER_TOOLS_TOOL = "providerToolsAgent"

DEFAULT_AGENT_CLASSES: Dict[str, Type[SpecializedStreamingAgent]] = {
    "pythonAgent": CodeAgent,
    "mermaidAgent": DiagramAgent,
    "documentAgent": DocumentAgent,
}


class ArtifactAgentRegistry:
    """Builds configured specialized agents on demand"""

    def __init__(
        self,
        resolver: ToolConfigResolver,
        generation_client,
        store: ArtifactVersionStore,
        activity_logger: Optional[AgentActivityLogger] = None,
        agent_classes: Optional[Dict[str, Type[SpecializedStreamingAgent]]] = None
    ):
        self.resolver = resolver
        self.generation_client = generation_client
        self.store = store
        self.activity_logger = activity_logger or AgentActivityLogger()
        self.agent_classes = dict(agent_classes or DEFAULT_AGENT_CLASSES)
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def tool_names(self) -> List[str]:
        return list(self.agent_classes)

    def agent_class(self, tool_name: str) -> Type[SpecializedStreamingAgent]:
        agent_class = self.agent_classes.get(tool_name)
        if agent_class is None:
            raise AgentException(
                f"No agent is registered for tool '{tool_name}'",
                agent=tool_name,
                code=ErrorCode.AGENT_NOT_FOUND
            )
        return agent_class

    async def create_agent(self, tool_name: str, provider: Optional[str] = None) -> SpecializedStreamingAgent:
        """Resolve the agent's current configuration and build it"""
        agent_class = self.agent_class(tool_name)
        config = await self.resolver.resolve_agent_config(agent_class.agent_type, provider)
        agent = agent_class(config, self.generation_client, self.store, self.activity_logger)
        self.logger.debug(f"Created {agent_class.__name__} for tool {tool_name}")
        return agent

    async def create_provider_tools_agent(self, provider: Optional[str] = None) -> ProviderToolsAgent:
        """Build the provider tools agent; it must be enabled"""
        config = await self.resolver.resolve_provider_tools_config(provider)
        if not config.enabled:
            raise AgentException("The provider tools agent is disabled", agent="Provider tools")
        return ProviderToolsAgent(config, self.generation_client, self.activity_logger)
