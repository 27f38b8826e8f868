"""
Agent layer

The chat orchestrator delegates artifact work to one specialized streaming
agent per artifact kind, each exposed to the primary model as a tool.
"""

from .base import AgentResult, Operation, OperationRequest, SpecializedStreamingAgent
from .code_agent import CodeAgent
from .diagram_agent import DiagramAgent
from .document_agent import DocumentAgent
from .provider_tools_agent import ProviderToolsAgent
from .registry import ArtifactAgentRegistry
from .tool_config_resolver import ToolConfigResolver
from .delegated_tools import ConversationArtifactContext, DelegatedToolset
from .orchestrator import ChatOrchestrator, FinalResponse

__all__ = [
    "AgentResult",
    "Operation",
    "OperationRequest",
    "SpecializedStreamingAgent",
    "CodeAgent",
    "DiagramAgent",
    "DocumentAgent",
    "ProviderToolsAgent",
    "ArtifactAgentRegistry",
    "ToolConfigResolver",
    "ConversationArtifactContext",
    "DelegatedToolset",
    "ChatOrchestrator",
    "FinalResponse",
]
