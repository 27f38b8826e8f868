"""
Orchestrating Agent

Runs one chat turn: resolves the enabled delegated tools, streams the primary
model's reply and executes the tool calls it asks for, one at a time, until
the model answers without tools or the round ceiling is reached.
"""

import logging
from typing import List, Optional, Sequence

from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field

from app.agents.delegated_tools import ConversationArtifactContext, DelegatedToolset
from app.agents.registry import PROVIDER_TOOLS_TOOL, ArtifactAgentRegistry
from app.agents.tool_config_resolver import ToolConfigResolver
from app.core.correlation import correlation_scope
from app.core.exceptions import ArtifactAgentsException, ErrorCode, ProviderException
from app.core.generation import message_text
from app.schemas.agent_config import AgentType, ChatAgentConfig, ModelOption, ToolDescriptor
from app.schemas.artifact import ArtifactSummary
from app.schemas.chat import ChatMessage, Identity
from app.services.activity_logger import AgentActivityLogger, AgentOperationCategory, AgentOperationType
from app.streaming.channel import StreamSink
from app.streaming.events import text_event

TOOL_USAGE_GUIDANCE = (
    "When the user asks for code, a diagram or a document, or asks to change, fix, explain "
    "or revert one, call the matching tool instead of writing the content yourself. "
    "Tool results only contain the artifact id, title and kind; the user already sees the "
    "artifact, so do not repeat its content. Refer to earlier artifacts by their id."
)

PROVIDER_TOOLS_GUIDANCE = (
    "When you need to search the web, read the content of a URL, or run code to compute "
    "an answer, call the providerToolsAgent tool and use its result in your reply."
)


class FinalResponse(BaseModel):
    """Result of one chat turn"""
    text: str
    artifacts: List[ArtifactSummary] = Field(default_factory=list)
    tool_rounds: int = 0
    correlation_id: str


def to_langchain_messages(history: Sequence[ChatMessage]) -> List[BaseMessage]:
    message_types = {"user": HumanMessage, "assistant": AIMessage, "system": SystemMessage}
    return [message_types[message.role](content=message.content) for message in history]


class ChatOrchestrator:
    """Primary conversational agent that delegates artifact work to specialized agents"""

    def __init__(
        self,
        resolver: ToolConfigResolver,
        generation_client,
        registry: ArtifactAgentRegistry,
        max_tool_rounds: int = 5,
        temperature: float = 0.7,
        provider: Optional[str] = None,
        activity_logger: Optional[AgentActivityLogger] = None
    ):
        self.resolver = resolver
        self.generation_client = generation_client
        self.registry = registry
        self.max_tool_rounds = max_tool_rounds
        self.temperature = temperature
        self.provider = provider or resolver.provider
        self.activity_logger = activity_logger or AgentActivityLogger()
        self.logger = logging.getLogger(self.__class__.__name__)

    def build_system_prompt(self, chat_config: ChatAgentConfig, descriptors: List[ToolDescriptor]) -> str:
        sections = [chat_config.system_prompt.strip()] if chat_config.system_prompt.strip() else []
        if descriptors:
            tool_lines = "\n".join(f"- {descriptor.name}: {descriptor.description}" for descriptor in descriptors)
            sections.append(f"Available tools:\n{tool_lines}")
            sections.append(TOOL_USAGE_GUIDANCE)
        if any(descriptor.name == PROVIDER_TOOLS_TOOL for descriptor in descriptors):
            sections.append(PROVIDER_TOOLS_GUIDANCE)
        return "\n\n".join(sections)

    def select_model(self, chat_config: ChatAgentConfig, requested: Optional[str] = None) -> ModelOption:
        """
        Pick the model for this turn

        Raises:
            ProviderException: MODEL_NOT_FOUND for an unknown id, MODEL_DISABLED
                for a configured but disabled one
        """
        if requested:
            option = next((model for model in chat_config.available_models if model.id == requested), None)
            if option is None:
                raise ProviderException(
                    f"Model {requested} is not configured",
                    provider=self.provider, code=ErrorCode.MODEL_NOT_FOUND, model=requested
                )
            if not option.enabled:
                raise ProviderException(
                    f"Model {requested} is disabled",
                    provider=self.provider, code=ErrorCode.MODEL_DISABLED, model=requested
                )
            return option
        return chat_config.default_model()

    async def _load_context(self, identity: Identity) -> ConversationArtifactContext:
        context = ConversationArtifactContext()
        if identity.chat_id:
            for record in await self.registry.store.list_by_chat(identity.chat_id):
                context.record(record.id, record.title, record.kind)
        return context

    async def converse(
        self,
        history: Sequence[ChatMessage],
        sink: Optional[StreamSink],
        identity: Identity,
        model_id: Optional[str] = None
    ) -> FinalResponse:
        """
        Run one turn of the conversation

        Configuration and primary-model failures propagate and end the turn.
        Tool failures are returned to the model as tool results.
        """
        with correlation_scope() as correlation_id:
            chat_config = await self.resolver.resolve_chat_config(self.provider)
            descriptors = await self.resolver.resolve_tools(self.provider, chat_config)
            model = self.select_model(chat_config, model_id)

            toolset = DelegatedToolset(
                self.registry,
                sink,
                identity,
                context=await self._load_context(identity),
                model_id=model.id,
                provider=self.provider
            )
            tools = toolset.build(descriptors)
            tools_by_name = {tool.name: tool for tool in tools}

            messages: List[BaseMessage] = [SystemMessage(content=self.build_system_prompt(chat_config, descriptors))]
            messages.extend(to_langchain_messages(history))

            self.logger.info(
                f"Turn started [{correlation_id}] model={model.id} tools={list(tools_by_name)}"
            )

            text_parts: List[str] = []
            tool_rounds = 0
            while True:
                round_tools = tools if tools and tool_rounds < self.max_tool_rounds else None
                reply = await self._stream_reply(messages, model.id, round_tools, sink, text_parts)
                messages.append(reply)

                if not round_tools or not reply.tool_calls:
                    break

                tool_rounds += 1
                for tool_call in reply.tool_calls:
                    result = await self._run_tool(tools_by_name, tool_call)
                    messages.append(ToolMessage(content=result, tool_call_id=tool_call["id"], name=tool_call["name"]))

            if tool_rounds >= self.max_tool_rounds:
                self.logger.warning(f"Tool round ceiling of {self.max_tool_rounds} reached [{correlation_id}]")

            return FinalResponse(
                text="".join(text_parts),
                artifacts=toolset.artifacts,
                tool_rounds=tool_rounds,
                correlation_id=correlation_id
            )

    async def _stream_reply(
        self,
        messages: List[BaseMessage],
        model_id: str,
        tools: Optional[List[BaseTool]],
        sink: Optional[StreamSink],
        text_parts: List[str]
    ) -> AIMessage:
        """Stream one model call, relaying its text and collecting its tool calls"""
        aggregate: Optional[AIMessageChunk] = None
        async for chunk in self.generation_client.stream_chat(
            messages=messages, model_id=model_id, tools=tools, temperature=self.temperature
        ):
            text = message_text(chunk)
            if text:
                text_parts.append(text)
                if sink is not None:
                    sink.write(text_event(text))
            aggregate = chunk if aggregate is None else aggregate + chunk

        if aggregate is None:
            return AIMessage(content="")
        return AIMessage(content=aggregate.content, tool_calls=aggregate.tool_calls)

    async def _run_tool(self, tools_by_name, tool_call) -> str:
        name = tool_call["name"]
        tool = tools_by_name.get(name)
        if tool is None:
            self.logger.warning(f"Model requested unknown tool {name}")
            return f"Error: Unknown tool '{name}'"

        try:
            async with self.activity_logger.track(
                AgentType.CHAT_MODEL_AGENT,
                AgentOperationType.TOOL_INVOCATION,
                AgentOperationCategory.TOOL_USE,
                operation_metadata={"tool": name}
            ):
                return await tool.ainvoke(tool_call["args"])
        except ArtifactAgentsException as e:
            return f"Error: {e.user_message()}"
        except Exception as e:
            self.logger.warning(f"Tool {name} failed: {e}")
            return f"Error: {e}"
