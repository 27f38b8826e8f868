"""
Pydantic schemas for agent configuration documents

Configuration is stored as camelCase JSON under composite keys such as
``python_agent_google`` or ``chat_model_agent_google``.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Literal, Tuple, Union, Annotated
from enum import Enum


class AgentType(str, Enum):
    """Agent types; each one prefixes its configuration key"""
    CHAT_MODEL_AGENT = "chat_model_agent"
    PYTHON_AGENT = "python_agent"
    MERMAID_AGENT = "mermaid_agent"
    DOCUMENT_AGENT = "document_agent"
    PROVIDER_TOOLS_AGENT = "provider_tools_agent"


def build_config_key(agent_type: AgentType, provider: str) -> str:
    """Composite configuration key, e.g. python_agent_google"""
    return f"{AgentType(agent_type).value}_{provider}"


def parse_config_key(config_key: str) -> Optional[Tuple[AgentType, str]]:
    """Split a composite key into agent type and provider; None when no agent type matches"""
    for agent_type in sorted(AgentType, key=lambda item: len(item.value), reverse=True):
        prefix = f"{agent_type.value}_"
        if config_key.startswith(prefix) and len(config_key) > len(prefix):
            return agent_type, config_key[len(prefix):]
    return None


class RateLimit(BaseModel):
    """Advisory per-agent request limits"""
    model_config = ConfigDict(populate_by_name=True)

    per_minute: Optional[int] = Field(None, alias="perMinute")
    per_hour: Optional[int] = Field(None, alias="perHour")
    per_day: Optional[int] = Field(None, alias="perDay")


class OperationToolConfig(BaseModel):
    """Settings for one operation of a specialized agent"""
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    description: Optional[str] = None
    system_prompt: Optional[str] = Field(None, alias="systemPrompt")
    user_prompt_template: Optional[str] = Field(None, alias="userPromptTemplate")


class AgentToolConfig(BaseModel):
    """Configuration of a specialized artifact agent"""
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    system_prompt: str = Field("", alias="systemPrompt")
    tools: Dict[str, OperationToolConfig] = Field(default_factory=dict)
    rate_limit: Optional[RateLimit] = Field(None, alias="rateLimit")


class ProviderToolToggle(BaseModel):
    enabled: bool = False


class ProviderToolsAgentConfig(BaseModel):
    """
    Configuration of the provider tools agent

    ``tools`` switches the provider's built-in tools on and off by name:
    ``googleSearch``, ``urlContext`` and ``codeExecution``.
    """
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    system_prompt: str = Field("", alias="systemPrompt")
    tools: Dict[str, ProviderToolToggle] = Field(default_factory=dict)
    rate_limit: Optional[RateLimit] = Field(None, alias="rateLimit")

    def enabled_tools(self) -> List[str]:
        return [name for name, toggle in self.tools.items() if toggle.enabled]


class SimpleParameter(BaseModel):
    """A delegated tool that takes one free-text argument"""
    type: Literal["simple"]
    parameter_name: str = "input"
    parameter_description: Optional[str] = None


class NamedParameter(BaseModel):
    parameter_description: Optional[str] = None
    enum: Optional[List[str]] = None


class NamedParameterSet(BaseModel):
    """A delegated tool that takes several named arguments"""
    type: Literal["named"]
    parameters: Dict[str, NamedParameter] = Field(default_factory=dict)


ToolInput = Annotated[Union[SimpleParameter, NamedParameterSet], Field(discriminator="type")]


class DelegatedToolConfig(BaseModel):
    """How a specialized agent is exposed to the primary model"""
    enabled: bool = False
    description: Optional[str] = None
    tool_input: Optional[ToolInput] = None


class ModelOption(BaseModel):
    """A model the primary agent may run on"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    enabled: bool = True
    is_default: bool = Field(False, alias="isDefault")
    thinking_enabled: bool = Field(False, alias="thinkingEnabled")


class ChatAgentConfig(BaseModel):
    """Configuration of the primary conversational agent"""
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    system_prompt: str = Field("", alias="systemPrompt")
    available_models: List[ModelOption] = Field(default_factory=list, alias="availableModels")
    tools: Dict[str, DelegatedToolConfig] = Field(default_factory=dict)
    rate_limit: Optional[RateLimit] = Field(None, alias="rateLimit")

    def enabled_models(self) -> List[ModelOption]:
        return [model for model in self.available_models if model.enabled]

    def default_model(self) -> Optional[ModelOption]:
        models = self.enabled_models()
        return next((model for model in models if model.is_default), models[0] if models else None)


class ToolDescriptor(BaseModel):
    """A validated, enabled tool ready to be shown to the primary model"""
    model_config = ConfigDict(frozen=True)

    name: str
    enabled: bool
    description: str
    input_parameter_schema: ToolInput


class ConfigResponse(BaseModel):
    """Schema for configuration read/update responses"""
    config_key: str
    config_data: Dict
