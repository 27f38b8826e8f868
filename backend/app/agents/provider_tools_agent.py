"""
Provider tools agent

Runs the provider's built-in tools (web search, URL context, code execution)
on behalf of the primary model and hands back plain text. It produces no
artifact and writes nothing to the turn's stream.
"""

from typing import Any, Dict, List, Optional
import logging

from langchain_core.messages import HumanMessage, SystemMessage

from app.agents.base import AgentResult
from app.core.exceptions import AgentException, ArtifactAgentsException, ErrorCode, get_user_friendly_message
from app.core.generation import message_text
from app.schemas.agent_config import AgentType, ProviderToolsAgentConfig
from app.schemas.chat import Identity
from app.services.activity_logger import AgentActivityLogger, AgentOperationCategory, AgentOperationType

PROVIDER_TOOLS_TEMPERATURE = 0.7

# Built-in tool definitions as each provider's chat model binds them
NATIVE_TOOLS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "google": {
        "googleSearch": {"google_search": {}},
        "urlContext": {"url_context": {}},
        "codeExecution": {"code_execution": {}},
    },
    "openai": {
        "googleSearch": {"type": "web_search_preview"},
        "codeExecution": {"type": "code_interpreter", "container": {"type": "auto"}},
    },
    "anthropic": {
        "googleSearch": {"type": "web_search_20250305", "name": "web_search", "max_uses": 5},
        "codeExecution": {"type": "code_execution_20250522", "name": "code_execution"},
    },
}

KNOWN_PROVIDER_TOOLS = ("googleSearch", "urlContext", "codeExecution")


class ProviderToolsAgent:
    """Answers one free-text request with the provider's built-in tools"""

    agent_type = AgentType.PROVIDER_TOOLS_AGENT

    def __init__(
        self,
        config: ProviderToolsAgentConfig,
        generation_client,
        activity_logger: Optional[AgentActivityLogger] = None
    ):
        self.config = config
        self.generation_client = generation_client
        self.activity_logger = activity_logger or AgentActivityLogger()
        self.logger = logging.getLogger(self.__class__.__name__)

    def native_tools(self) -> List[Dict[str, Any]]:
        """Tool definitions for the enabled tools the current provider supports"""
        provider = self.generation_client.provider_name
        available = NATIVE_TOOLS.get(provider, {})
        tools = []
        for name in self.config.enabled_tools():
            if name not in available:
                self.logger.warning(f"{name} is not available on {provider}; skipping")
                continue
            tools.append(available[name])
        return tools

    async def execute(self, input_text: str, identity: Identity, model_id: Optional[str] = None) -> AgentResult:
        """Never raises for operational failures; they come back as "Error: ..." output"""
        try:
            async with self.activity_logger.track(
                self.agent_type,
                AgentOperationType.TOOL_INVOCATION,
                AgentOperationCategory.TOOL_USE,
                user_id=identity.user_id,
                model_id=model_id,
                operation_metadata={"tools": self.config.enabled_tools()}
            ):
                if not self.config.enabled:
                    raise AgentException("The provider tools agent is disabled", agent="Provider tools")

                messages = [SystemMessage(content=self.config.system_prompt), HumanMessage(content=input_text)]
                parts: List[str] = []
                async for chunk in self.generation_client.stream_chat(
                    messages=messages,
                    model_id=model_id,
                    tools=self.native_tools(),
                    temperature=PROVIDER_TOOLS_TEMPERATURE
                ):
                    parts.append(message_text(chunk))
            output = "".join(parts)
            self.logger.info(f"Provider tools answered with {len(output)} characters")
            return AgentResult(success=True, output=output)

        except ArtifactAgentsException as e:
            self.logger.warning(f"Provider tools failed: {e.details.message}", extra=e.to_log_dict())
            return AgentResult(success=False, output=f"Error: {e.user_message()}", error_code=e.code.value)
        except Exception as e:
            self.logger.error(f"Provider tools failed unexpectedly: {e}", exc_info=True)
            return AgentResult(
                success=False,
                output=f"Error: {get_user_friendly_message(ErrorCode.STREAMING_FAILED)}",
                error_code=ErrorCode.STREAMING_FAILED.value
            )
